"""
Ranking of precomputed region statistics by a chosen indicator.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Union

from rentswatch_api.services.aggregation import StatsResult
from rentswatch_api.utils.errors import InvalidQueryError


class Indicator(str, Enum):
    AVG_PRICE_PER_SQM = "avgPricePerSqm"
    TOTAL = "total"
    INEQUALITY_INDEX = "inequalityIndex"


INDICATOR_ACCESSORS: Dict[Indicator, Callable[[StatsResult], Optional[float]]] = {
    Indicator.AVG_PRICE_PER_SQM: lambda s: s.avg_price_per_sqm,
    Indicator.TOTAL: lambda s: s.total,
    Indicator.INEQUALITY_INDEX: lambda s: s.inequality_index,
}


@dataclass(frozen=True)
class RegionSnapshot:
    name: str
    stats: StatsResult
    rankable: bool = True
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    radius_km: Optional[float] = None


def parse_indicator(value: Union[str, Indicator]) -> Indicator:
    try:
        return Indicator(value)
    except ValueError:
        allowed = ", ".join(i.value for i in Indicator)
        raise InvalidQueryError(f"Unknown ranking indicator {value!r} (expected one of: {allowed})")


def rank_regions(
    regions: Iterable[RegionSnapshot],
    indicator: Union[str, Indicator] = Indicator.AVG_PRICE_PER_SQM,
) -> List[RegionSnapshot]:
    """
    Rankable regions with a value for `indicator`, highest first.
    Ties keep their input order.
    """
    accessor = INDICATOR_ACCESSORS[parse_indicator(indicator)]
    eligible = [r for r in regions if r.rankable and accessor(r.stats) is not None]
    return sorted(eligible, key=lambda r: accessor(r.stats), reverse=True)
