"""
Regression statistics over a listing selection.

The headline indicator is the OLS slope of total rent on living space
(`rent ~ slope * space + intercept`), i.e. the marginal rent of one more
square meter. A ratio of means would fold fixed fees into the per-m2
figure; the free intercept absorbs them instead.

Selections that cannot support a regression (fewer than two listings, or
every listing with the same living space) raise InsufficientDataError
from `regress`. `compute` turns that into an explicit
`insufficient_data` flag rather than reporting 0 or NaN.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

import numpy as np
import pandas as pd
from scipy import stats

from rentswatch_api.utils.errors import InsufficientDataError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Regression:
    slope: float
    intercept: float
    std_err: float
    total: int


@dataclass(frozen=True)
class GroupStats:
    key: str
    total: int
    avg_price_per_sqm: Optional[float] = None
    std_err: Optional[float] = None


@dataclass(frozen=True)
class RegressionStats:
    total: int
    avg_price_per_sqm: Optional[float]
    std_err: Optional[float]
    inequality_index: Optional[float]
    insufficient_data: bool
    neighborhoods: List[GroupStats] = field(default_factory=list)


# =========================
# OLS
# =========================
def regress(living_space: Iterable[float], total_rent: Iterable[float]) -> Regression:
    """
    Simple linear regression of rent on living space.

    std_err is the standard error of the slope:
    sqrt(SSR / (n - 2)) / sqrt(sum((x - mean(x))**2)); it is 0 for n == 2.
    """
    x = np.asarray(living_space, dtype=float)
    y = np.asarray(total_rent, dtype=float)
    if x.shape != y.shape:
        raise ValueError("living_space and total_rent must have the same length")

    n = int(x.size)
    if n < 2:
        raise InsufficientDataError(f"Need at least 2 listings to regress, got {n}")
    if np.ptp(x) == 0:
        raise InsufficientDataError("All listings have the same living space")

    res = stats.linregress(x, y)
    return Regression(
        slope=float(res.slope),
        intercept=float(res.intercept),
        std_err=float(res.stderr),
        total=n,
    )


def _group_regression(key: str, group: pd.DataFrame) -> GroupStats:
    try:
        reg = regress(group["living_space"], group["total_rent"])
    except InsufficientDataError:
        return GroupStats(key=key, total=len(group))
    return GroupStats(key=key, total=len(group), avg_price_per_sqm=reg.slope, std_err=reg.std_err)


def group_stats(selection: pd.DataFrame, keys: pd.Series) -> List[GroupStats]:
    """Per-group regression, sorted by key. Rows with a null key are skipped."""
    if selection.empty:
        return []
    keyed = selection.assign(_key=keys.to_numpy())
    keyed = keyed[keyed["_key"].notna()]
    return [
        _group_regression(str(key), group)
        for key, group in keyed.groupby("_key", sort=True)
    ]


def neighborhood_stats(selection: pd.DataFrame) -> List[GroupStats]:
    if "neighborhood" not in selection.columns:
        return []
    return group_stats(selection, selection["neighborhood"])


def monthly_stats(selection: pd.DataFrame) -> List[GroupStats]:
    """Per calendar month (YYYY-MM of `timestamp`) regression, ascending."""
    if "timestamp" not in selection.columns or selection.empty:
        return []
    ts = pd.to_datetime(selection["timestamp"], errors="coerce", utc=True)
    if ts.isna().all():
        return []
    months = ts.dt.strftime("%Y-%m").where(ts.notna(), None)
    return group_stats(selection, months)


# =========================
# Inequality
# =========================
def inequality_from_groups(groups: List[GroupStats]) -> Optional[float]:
    slopes = [g.avg_price_per_sqm for g in groups if g.avg_price_per_sqm is not None]
    if len(slopes) < 2:
        return None
    return float(np.std(slopes, ddof=0))


def inequality_index(selection: pd.DataFrame) -> Optional[float]:
    """
    Population standard deviation of per-neighborhood slopes.
    None unless at least two neighborhoods have a valid regression.
    """
    return inequality_from_groups(neighborhood_stats(selection))


# =========================
# Entry point
# =========================
def compute(selection: pd.DataFrame) -> RegressionStats:
    total = int(len(selection))
    hoods = neighborhood_stats(selection)
    try:
        reg = regress(selection["living_space"], selection["total_rent"])
    except InsufficientDataError as e:
        logger.debug("Insufficient data for regression: %s", e)
        return RegressionStats(
            total=total,
            avg_price_per_sqm=None,
            std_err=None,
            inequality_index=inequality_from_groups(hoods),
            insufficient_data=True,
            neighborhoods=hoods,
        )

    return RegressionStats(
        total=total,
        avg_price_per_sqm=reg.slope,
        std_err=reg.std_err,
        inequality_index=inequality_from_groups(hoods),
        insufficient_data=False,
        neighborhoods=hoods,
    )
