"""
Region statistics façade: one selection, every calculator.
"""

import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from rentswatch_api.services import deciles as decile_calc
from rentswatch_api.services import regression
from rentswatch_api.services.geo_filter import RegionQuery, select
from rentswatch_api.services.regression import GroupStats
from rentswatch_api.services.store import ListingStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatsResult:
    total: int
    avg_price_per_sqm: Optional[float]
    std_err: Optional[float]
    inequality_index: Optional[float]
    deciles: List[float]
    insufficient_data: bool
    neighborhoods: List[GroupStats] = field(default_factory=list)
    months: List[GroupStats] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def stats_for_region(store: ListingStore, query: RegionQuery) -> StatsResult:
    """
    Filter `store` once and compute all statistics on that selection.

    Pass the snapshot acquired at the start of the request, not the holder,
    so a concurrent refresh cannot change the data mid-computation.
    """
    start = time.perf_counter()
    selection = select(store, query)

    reg = regression.compute(selection)
    result = StatsResult(
        total=reg.total,
        avg_price_per_sqm=reg.avg_price_per_sqm,
        std_err=reg.std_err,
        inequality_index=reg.inequality_index,
        deciles=decile_calc.deciles(selection),
        insufficient_data=reg.insufficient_data,
        neighborhoods=reg.neighborhoods,
        months=regression.monthly_stats(selection),
    )

    logger.debug(
        "Region stats (%.5f, %.5f, r=%.1f km): %d listings in %.1f ms",
        query.latitude, query.longitude, query.radius_km,
        result.total, (time.perf_counter() - start) * 1000,
    )
    return result
