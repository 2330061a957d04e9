import logging
import threading

import numpy as np
import pandas as pd
import pytest

from rentswatch_api.services.store import (
    StoreHolder,
    build_store,
    empty_store,
    normalize_listings_frame,
)
from rentswatch_api.utils.errors import UpstreamUnavailableError

from conftest import make_listings, synthetic_neighborhoods


def test_normalize_drops_rows_failing_bounds(caplog):
    raw = make_listings([
        {"living_space": 50, "total_rent": 500},
        {"living_space": 0, "total_rent": 500},
        {"living_space": 60, "total_rent": -1},
        {"latitude": np.nan, "living_space": 60, "total_rent": 600},
        {"latitude": 123.0, "living_space": 60, "total_rent": 600},
        {"living_space": "70", "total_rent": "700"},
    ])
    with caplog.at_level(logging.WARNING):
        out = normalize_listings_frame(raw)
    assert list(out["living_space"]) == [50.0, 70.0]
    assert list(out.index) == [0, 1]
    assert "Dropped 4 listings" in caplog.text


def test_normalize_cleans_optional_columns():
    raw = make_listings([
        {"living_space": 50, "total_rent": 500, "rooms": -2, "neighborhood": "  Mitte "},
        {"living_space": 60, "total_rent": 600, "rooms": "3", "neighborhood": ""},
    ])
    out = normalize_listings_frame(raw)
    assert np.isnan(out.loc[0, "rooms"])
    assert out.loc[1, "rooms"] == 3
    assert out.loc[0, "neighborhood"] == "Mitte"
    assert out.loc[1, "neighborhood"] is None
    assert out["neighborhood"].dtype == object


def test_normalize_fills_missing_optional_columns():
    out = normalize_listings_frame(pd.DataFrame({
        "latitude": [52.5], "longitude": [13.4], "living_space": [40], "total_rent": [400],
    }))
    assert set(["rooms", "neighborhood", "timestamp"]).issubset(out.columns)
    assert out["timestamp"].isna().all()


def test_normalize_requires_core_columns():
    with pytest.raises(ValueError, match="total_rent"):
        normalize_listings_frame(pd.DataFrame({"latitude": [1], "longitude": [1], "living_space": [1]}))


def test_empty_store():
    store = empty_store()
    assert store.size == 0
    assert len(store) == 0


def test_holder_not_ready_until_published():
    holder = StoreHolder()
    assert not holder.ready
    with pytest.raises(UpstreamUnavailableError):
        holder.current()
    holder.publish(empty_store())
    assert holder.ready


def test_refresh_swaps_snapshot_and_keeps_old_one_intact():
    holder = StoreHolder(build_store(synthetic_neighborhoods(n=9)))
    old = holder.current()
    old_frame = old.frame.copy()

    new = holder.refresh(lambda: synthetic_neighborhoods(n=30, seed=1))

    assert holder.current() is new
    assert new.size == 30
    assert old.size == 9
    assert old.frame.equals(old_frame)


def test_failed_refresh_keeps_previous_store():
    holder = StoreHolder(build_store(synthetic_neighborhoods(n=9)))
    previous = holder.current()

    def broken_loader():
        raise ConnectionError("database is down")

    with pytest.raises(UpstreamUnavailableError, match="database is down"):
        holder.refresh(broken_loader)
    assert holder.current() is previous


def test_concurrent_refreshes_publish_complete_stores():
    holder = StoreHolder(empty_store())
    sizes = [10, 20, 30, 40]

    def refresh(n):
        holder.refresh(lambda: synthetic_neighborhoods(n=n))

    threads = [threading.Thread(target=refresh, args=(n,)) for n in sizes]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert holder.current().size in sizes


def test_refresh_with_malformed_frame_keeps_previous_store():
    holder = StoreHolder(build_store(synthetic_neighborhoods(n=9)))
    previous = holder.current()

    with pytest.raises(UpstreamUnavailableError, match="missing columns"):
        holder.refresh(lambda: pd.DataFrame({"lat": [1.0], "lng": [2.0]}))
    assert holder.current() is previous


def test_refresh_with_malformed_frame_leaves_empty_holder_not_ready():
    holder = StoreHolder()
    with pytest.raises(UpstreamUnavailableError):
        holder.refresh(lambda: pd.DataFrame({"lat": [1.0], "lng": [2.0]}))
    assert not holder.ready
