from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from rentswatch_api.services.store import build_store

BERLIN = (52.52437, 13.41053)
HAMBURG = (53.55108, 9.99368)


def make_listings(rows: list[dict]) -> pd.DataFrame:
    """Listing frame with sensible defaults for omitted columns."""
    defaults = {
        "latitude": BERLIN[0],
        "longitude": BERLIN[1],
        "rooms": None,
        "neighborhood": None,
        "timestamp": None,
    }
    return pd.DataFrame([{**defaults, **r} for r in rows])


def synthetic_neighborhoods(n: int = 100, seed: int = 7) -> pd.DataFrame:
    """Listings around Berlin split over three neighborhoods with distinct price levels."""
    rng = np.random.default_rng(seed)
    slopes = {"Mitte": 18.0, "Neukoelln": 11.0, "Spandau": 8.0}
    names = list(slopes)
    rows = []
    for i in range(n):
        hood = names[i % 3]
        space = float(rng.uniform(25, 150))
        rent = 120.0 + slopes[hood] * space + float(rng.normal(0, 40))
        rows.append({
            "latitude": BERLIN[0] + float(rng.uniform(-0.03, 0.03)),
            "longitude": BERLIN[1] + float(rng.uniform(-0.03, 0.03)),
            "living_space": space,
            "total_rent": max(rent, 50.0),
            "rooms": int(rng.integers(1, 5)),
            "neighborhood": hood,
            "timestamp": f"2015-{(i % 4) + 1:02d}-15T10:00:00Z",
        })
    return pd.DataFrame(rows)


@pytest.fixture
def scenario_store():
    """Three listings on one point with an exact linear rent/space relation."""
    return build_store(make_listings([
        {"living_space": 50, "total_rent": 500, "rooms": 2},
        {"living_space": 60, "total_rent": 650, "rooms": 2},
        {"living_space": 70, "total_rent": 800, "rooms": 3},
    ]))


@pytest.fixture
def berlin_store():
    return build_store(synthetic_neighborhoods())
