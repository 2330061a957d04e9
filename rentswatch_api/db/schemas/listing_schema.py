from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Float, Index, Integer, Numeric, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class Listing(Base):
    __tablename__ = "listings"
    __table_args__ = (
        Index("ix_listings_lat_lng", "latitude", "longitude"),
        {"schema": "public"},
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)

    # Location
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    neighborhood: Mapped[str | None] = mapped_column(String(120))

    # Property details
    living_space: Mapped[float] = mapped_column(Numeric(7, 2), nullable=False)
    total_rent: Mapped[float] = mapped_column(Numeric(9, 2), nullable=False)
    rooms: Mapped[int | None] = mapped_column(Integer)

    # Observation time
    timestamp: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
