import pytest

from rentswatch_api.services.aggregation import stats_for_region
from rentswatch_api.services.deciles import deciles
from rentswatch_api.services.geo_filter import build_region_query, select
from rentswatch_api.services.regression import compute

from conftest import BERLIN, HAMBURG


def test_scenario_exact_slope(scenario_store):
    result = stats_for_region(scenario_store, build_region_query(*BERLIN, 5))
    assert result.total == 3
    assert result.avg_price_per_sqm == pytest.approx(15.0)
    assert result.std_err == pytest.approx(0.0, abs=1e-9)
    assert result.insufficient_data is False
    assert len(result.deciles) == 9


def test_no_listings_in_range(berlin_store):
    result = stats_for_region(berlin_store, build_region_query(*HAMBURG, 20))
    assert result.total == 0
    assert result.deciles == []
    assert result.insufficient_data is True
    assert result.avg_price_per_sqm is None
    assert result.std_err is None
    assert result.inequality_index is None
    assert result.months == []


def test_statistics_share_one_selection(berlin_store):
    q = build_region_query(*BERLIN, 20, min_living_space=50, rooms="2,3", limit=15)
    result = stats_for_region(berlin_store, q)

    sel = select(berlin_store, q)
    expected = compute(sel)
    assert result.total == len(sel) == 15
    assert result.avg_price_per_sqm == expected.avg_price_per_sqm
    assert result.inequality_index == expected.inequality_index
    assert result.deciles == deciles(sel)
    assert sum(m.total for m in result.months) == 15


def test_full_region_has_every_breakdown(berlin_store):
    result = stats_for_region(berlin_store, build_region_query(*BERLIN, 20))
    assert result.total == berlin_store.size
    assert [n.key for n in result.neighborhoods] == ["Mitte", "Neukoelln", "Spandau"]
    assert result.inequality_index is not None and result.inequality_index > 0
    assert len(result.months) == 4


def test_to_dict_is_plain_data(scenario_store):
    payload = stats_for_region(scenario_store, build_region_query(*BERLIN, 5)).to_dict()
    assert payload["total"] == 3
    assert payload["neighborhoods"] == []
    assert isinstance(payload["deciles"], list)
