import numpy as np
import pandas as pd
import pytest

from rentswatch_api.services.deciles import deciles, deciles_of, price_per_sqm


def _frame(space, rent):
    return pd.DataFrame({"living_space": space, "total_rent": rent})


def test_deciles_hit_order_statistics_exactly():
    # n = 11 -> rank k * (n - 1) / 10 = k, no interpolation needed
    values = np.arange(1.0, 12.0)
    assert deciles_of(values) == pytest.approx([float(v) for v in range(2, 11)], rel=1e-12)


def test_deciles_interpolate_linearly():
    # n = 2 -> rank k / 10 between 0 and 10
    assert deciles_of(np.array([10.0, 0.0])) == pytest.approx([float(k) for k in range(1, 10)])


def test_deciles_rank_formula():
    values = np.array([3.0, 9.0, 4.0, 15.0, 7.5])
    ordered = np.sort(values)
    n = len(values)
    expected = []
    for k in range(1, 10):
        rank = k * (n - 1) / 10
        lo = int(np.floor(rank))
        hi = min(lo + 1, n - 1)
        expected.append(ordered[lo] + (rank - lo) * (ordered[hi] - ordered[lo]))
    assert deciles_of(values) == pytest.approx(expected, rel=1e-12)


def test_deciles_use_per_listing_price():
    frame = _frame([50, 100], [500, 1500])
    assert list(price_per_sqm(frame)) == [10.0, 15.0]
    assert deciles(frame)[4] == pytest.approx(12.5)


@pytest.mark.parametrize("n", [0, 1])
def test_too_few_listings_yield_no_deciles(n):
    frame = _frame([50.0] * n, [500.0] * n)
    assert deciles(frame) == []


def test_deciles_are_non_decreasing_and_bounded(berlin_store):
    out = deciles(berlin_store.frame)
    ppsqm = price_per_sqm(berlin_store.frame)
    assert len(out) == 9
    assert all(a <= b for a, b in zip(out, out[1:]))
    assert ppsqm.min() <= out[4] <= ppsqm.max()


def test_constant_prices_give_constant_deciles():
    frame = _frame([40, 80, 120], [400, 800, 1200])
    assert deciles(frame) == pytest.approx([10.0] * 9)
