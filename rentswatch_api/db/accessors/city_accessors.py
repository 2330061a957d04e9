import pandas as pd
from sqlalchemy import select

from rentswatch_api.db.db_session import session_scope
from rentswatch_api.db.schemas.city_schema import City


def get_cities() -> pd.DataFrame:
    """Fetch all configured cities, ordered by name."""
    with session_scope() as session:
        stmt = select(City.__table__).order_by(City.name)
        return pd.read_sql(stmt, session.bind)
