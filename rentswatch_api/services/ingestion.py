"""
Listing and city ingestion from a CSV file or the database.
"""
import logging
import os

import pandas as pd

from rentswatch_api.db.accessors.city_accessors import get_cities
from rentswatch_api.db.accessors.listing_accessors import get_listings
from rentswatch_api.services.cities import parse_flag

logger = logging.getLogger(__name__)

CITY_COLUMNS = ["name", "latitude", "longitude", "radius_km", "rankable"]


def _read_csv(path: str) -> pd.DataFrame:
    if not os.path.exists(path):
        raise FileNotFoundError(f"CSV source not found: {path}")
    return pd.read_csv(path)


def load_listings(csv_path: str = "") -> pd.DataFrame:
    """Raw listing frame; CSV when a path is configured, otherwise the DB."""
    if csv_path:
        df = _read_csv(csv_path)
        source = csv_path
    else:
        df = get_listings()
        source = "db:listings"
    logger.info("Loaded %d raw listings from %s", len(df), source)
    return df


def load_cities(csv_path: str = "") -> pd.DataFrame:
    df = _read_csv(csv_path) if csv_path else get_cities()
    missing = [c for c in ("name", "latitude", "longitude") if c not in df.columns]
    if missing:
        raise ValueError(f"City frame is missing columns: {missing}")
    if "radius_km" not in df.columns:
        df["radius_km"] = 20.0
    if "rankable" not in df.columns:
        df["rankable"] = None
    df["radius_km"] = df["radius_km"].fillna(20.0)
    df["rankable"] = df["rankable"].astype(object).map(parse_flag).astype(bool)
    return df[CITY_COLUMNS]
