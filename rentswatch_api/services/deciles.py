"""
Decile boundaries of per-listing rent per square meter.

Unlike the regression slope, this view looks at the dispersion of the
individual observations: each listing contributes total_rent / living_space
with unit weight.

Rank convention (reproducible): values are sorted ascending and boundary
k (k = 1..9) is interpolated linearly between the order statistics around
0-indexed rank k * (n - 1) / 10. This is numpy's "linear" percentile
method.
"""

from typing import List

import numpy as np
import pandas as pd

DECILE_PERCENTS = [10 * k for k in range(1, 10)]


def price_per_sqm(selection: pd.DataFrame) -> np.ndarray:
    if selection.empty:
        return np.array([], dtype=float)
    return (selection["total_rent"] / selection["living_space"]).to_numpy(dtype=float)


def deciles_of(values: np.ndarray) -> List[float]:
    values = np.sort(np.asarray(values, dtype=float))
    if values.size < 2:
        return []
    return [float(v) for v in np.percentile(values, DECILE_PERCENTS, method="linear")]


def deciles(selection: pd.DataFrame) -> List[float]:
    """Nine ascending boundaries, or [] for fewer than two listings."""
    return deciles_of(price_per_sqm(selection))
