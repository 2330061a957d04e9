"""
Precomputed per-city statistics.

Every configured city gets its StatsResult computed against one listing
snapshot when the store is refreshed. The name -> snapshot mapping is
rebuilt in full and published by swapping a single reference, so readers
never see a mix of old and new city stats.
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Union

import numpy as np
import pandas as pd

from rentswatch_api.services.aggregation import stats_for_region
from rentswatch_api.services.geo_filter import build_region_query
from rentswatch_api.services.ranking import Indicator, RegionSnapshot, rank_regions
from rentswatch_api.services.store import ListingStore
from rentswatch_api.utils.errors import InvalidQueryError

logger = logging.getLogger(__name__)

TRUE_TOKENS = frozenset({"1", "true", "yes", "y", "t", "on"})
FALSE_TOKENS = frozenset({"0", "false", "no", "n", "f", "off"})


def parse_flag(value, default: bool = True) -> bool:
    """
    Read a boolean cell from a CSV or DB frame.

    Blank or missing cells fall back to `default`; any other value that is
    not a recognised true/false token is rejected.
    """
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return default
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    token = str(value).strip().lower()
    if not token:
        return default
    if token.endswith(".0"):
        token = token[:-2]
    if token in TRUE_TOKENS:
        return True
    if token in FALSE_TOKENS:
        return False
    raise ValueError(f"Not a boolean flag: {value!r}")


@dataclass(frozen=True)
class City:
    name: str
    latitude: float
    longitude: float
    radius_km: float = 20.0
    rankable: bool = True


def cities_from_frame(df: pd.DataFrame) -> List[City]:
    return [
        City(
            name=str(row["name"]),
            latitude=float(row["latitude"]),
            longitude=float(row["longitude"]),
            radius_km=float(row.get("radius_km", 20.0)),
            rankable=parse_flag(row.get("rankable")),
        )
        for row in df.to_dict(orient="records")
    ]


class CityRegistry:
    def __init__(self):
        self._snapshots: Mapping[str, RegionSnapshot] = MappingProxyType({})

    def __len__(self) -> int:
        return len(self._snapshots)

    def rebuild(self, store: ListingStore, cities: Iterable[City]) -> int:
        """Compute stats for every city against `store` and publish them."""
        snapshots: Dict[str, RegionSnapshot] = {}
        for city in cities:
            try:
                query = build_region_query(city.latitude, city.longitude, city.radius_km)
            except InvalidQueryError as e:
                logger.warning("Skipping city %s: %s", city.name, e)
                continue
            snapshots[city.name] = RegionSnapshot(
                name=city.name,
                stats=stats_for_region(store, query),
                rankable=city.rankable,
                latitude=query.latitude,
                longitude=query.longitude,
                radius_km=query.radius_km,
            )

        self._snapshots = MappingProxyType(snapshots)
        logger.info("Rebuilt stats for %d cities", len(snapshots))
        return len(snapshots)

    def index(self, offset: int = 0, limit: Optional[int] = None) -> List[RegionSnapshot]:
        items = list(self._snapshots.values())
        end = None if limit is None else offset + limit
        return items[offset:end]

    def get(self, name: str) -> Optional[RegionSnapshot]:
        return self._snapshots.get(name)

    def ranking(self, indicator: Union[str, Indicator]) -> List[RegionSnapshot]:
        return rank_regions(self._snapshots.values(), indicator)
