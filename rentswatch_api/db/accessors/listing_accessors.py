import pandas as pd
from sqlalchemy import select

from rentswatch_api.db.db_session import session_scope
from rentswatch_api.db.schemas.listing_schema import Listing


def get_listings() -> pd.DataFrame:
    """Fetch all listings in insertion (primary key) order."""
    with session_scope() as session:
        stmt = select(Listing.__table__).order_by(Listing.id)
        return pd.read_sql(stmt, session.bind)
