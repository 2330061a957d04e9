"""
Region selection over the listing store.
Validation, haversine radius search and attribute filters.
"""

import logging
import math
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional, Union

import numpy as np
import pandas as pd

from rentswatch_api.services.store import ListingStore
from rentswatch_api.utils.errors import InvalidQueryError

logger = logging.getLogger(__name__)

# =========================
# Config
# =========================
EARTH_RADIUS_KM = 6371.0
MAX_RADIUS_KM = 20.0
DEFAULT_MIN_LIVING_SPACE = 0.0
DEFAULT_MAX_LIVING_SPACE = 200.0


@dataclass(frozen=True)
class RegionQuery:
    latitude: float
    longitude: float
    radius_km: float
    min_living_space: float = DEFAULT_MIN_LIVING_SPACE
    max_living_space: float = DEFAULT_MAX_LIVING_SPACE
    rooms: Optional[FrozenSet[int]] = None
    limit: Optional[int] = None


# =========================
# Utilities
# =========================
def haversine(lat1: float, lon1: float, lat2: np.ndarray, lon2: np.ndarray) -> np.ndarray:
    """Vectorized Haversine distance in km between one point and arrays."""
    lat1, lon1, lat2, lon2 = map(np.radians, [lat1, lon1, lat2, lon2])
    dlat, dlon = lat2 - lat1, lon2 - lon1
    a = np.sin(dlat / 2) ** 2 + np.cos(lat1) * np.cos(lat2) * np.sin(dlon / 2) ** 2
    return EARTH_RADIUS_KM * 2 * np.arcsin(np.sqrt(np.clip(a, 0.0, 1.0)))


def _as_float(name: str, value) -> float:
    try:
        out = float(value)
    except (TypeError, ValueError):
        raise InvalidQueryError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(out):
        raise InvalidQueryError(f"{name} must be finite")
    return out


def parse_rooms(rooms: Union[None, str, int, Iterable]) -> Optional[FrozenSet[int]]:
    """
    Parse a room filter from "1,2", 3 or an iterable of ints.
    None or an empty value means no room filter.
    """
    if rooms is None:
        return None
    if isinstance(rooms, str):
        parts = [p.strip() for p in rooms.split(",") if p.strip()]
    elif isinstance(rooms, (int, np.integer)):
        parts = [rooms]
    else:
        parts = list(rooms)
    if not parts:
        return None

    parsed = set()
    for p in parts:
        if isinstance(p, bool):
            raise InvalidQueryError(f"Invalid room count: {p!r}")
        try:
            as_float = float(p)
        except (TypeError, ValueError):
            raise InvalidQueryError(f"Invalid room count: {p!r}")
        if not as_float.is_integer() or as_float < 0:
            raise InvalidQueryError(f"Room counts must be non-negative integers, got {p!r}")
        parsed.add(int(as_float))
    return frozenset(parsed)


# =========================
# Query construction
# =========================
def build_region_query(
    latitude,
    longitude,
    radius_km,
    min_living_space=None,
    max_living_space=None,
    rooms=None,
    limit=None,
) -> RegionQuery:
    """
    Validate raw parameters into a RegionQuery.

    Clamping policy: radius above MAX_RADIUS_KM and max living space above
    DEFAULT_MAX_LIVING_SPACE are clamped. Everything else out of range raises
    InvalidQueryError.
    """
    lat = _as_float("latitude", latitude)
    lng = _as_float("longitude", longitude)
    if not -90.0 <= lat <= 90.0:
        raise InvalidQueryError(f"latitude out of range: {lat}")
    if not -180.0 <= lng <= 180.0:
        raise InvalidQueryError(f"longitude out of range: {lng}")

    radius = _as_float("radius", radius_km)
    if radius <= 0:
        raise InvalidQueryError(f"radius must be positive, got {radius}")
    if radius > MAX_RADIUS_KM:
        logger.debug("Clamping radius %.2f km to %.0f km", radius, MAX_RADIUS_KM)
        radius = MAX_RADIUS_KM

    min_space = DEFAULT_MIN_LIVING_SPACE if min_living_space is None else _as_float("min_living_space", min_living_space)
    max_space = DEFAULT_MAX_LIVING_SPACE if max_living_space is None else _as_float("max_living_space", max_living_space)
    if min_space < 0:
        raise InvalidQueryError(f"min_living_space must be >= 0, got {min_space}")
    if max_space <= 0:
        raise InvalidQueryError(f"max_living_space must be > 0, got {max_space}")
    max_space = min(max_space, DEFAULT_MAX_LIVING_SPACE)
    if min_space > max_space:
        raise InvalidQueryError(
            f"min_living_space ({min_space}) is greater than max_living_space ({max_space})"
        )

    if limit is not None:
        if isinstance(limit, bool):
            raise InvalidQueryError(f"limit must be an integer, got {limit!r}")
        as_float = _as_float("limit", limit)
        if not as_float.is_integer():
            raise InvalidQueryError(f"limit must be an integer, got {limit!r}")
        if as_float < 0:
            raise InvalidQueryError(f"limit must be >= 0, got {limit!r}")
        limit = int(as_float) or None

    return RegionQuery(
        latitude=lat,
        longitude=lng,
        radius_km=radius,
        min_living_space=min_space,
        max_living_space=max_space,
        rooms=parse_rooms(rooms),
        limit=limit,
    )


# =========================
# Selection
# =========================
def select_frame(frame: pd.DataFrame, query: RegionQuery) -> pd.DataFrame:
    """Filter a listing frame by radius and attributes, keeping frame order."""
    if frame.empty:
        out = frame.copy()
        out["distance_km"] = pd.Series(dtype=float)
        return out

    dkm = haversine(
        query.latitude, query.longitude,
        frame["latitude"].to_numpy(dtype=float), frame["longitude"].to_numpy(dtype=float),
    )
    mask = (
        (dkm <= query.radius_km)
        & (frame["living_space"] >= query.min_living_space).to_numpy()
        & (frame["living_space"] <= query.max_living_space).to_numpy()
    )
    if query.rooms is not None:
        # unknown room counts (NaN) never match
        mask &= frame["rooms"].isin(list(query.rooms)).to_numpy()

    out = frame.loc[mask].copy()
    out["distance_km"] = dkm[mask]
    if query.limit:
        out = out.head(query.limit)
    return out


def select(store: ListingStore, query: RegionQuery) -> pd.DataFrame:
    """Listings of `store` inside the query region. Empty is a valid result."""
    return select_frame(store.frame, query)
