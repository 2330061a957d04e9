"""
In-memory listing store with atomic snapshot publication.

A ListingStore is an immutable snapshot of cleaned listings backed by a
pandas DataFrame. Readers grab the current snapshot from a StoreHolder
once per query and keep using it; a refresh builds a complete new
snapshot before swapping the holder's single reference, so no query ever
sees a half-loaded store.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

import numpy as np
import pandas as pd

from rentswatch_api.utils.errors import UpstreamUnavailableError

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ["latitude", "longitude", "living_space", "total_rent"]
OPTIONAL_COLUMNS = ["rooms", "neighborhood", "timestamp"]
STORE_COLUMNS = REQUIRED_COLUMNS + OPTIONAL_COLUMNS


# =========================
# Normalization
# =========================
def normalize_listings_frame(df: pd.DataFrame) -> pd.DataFrame:
    """
    Coerce a raw listing frame to the store layout and drop rows that fail
    the bounds check (non-finite coordinates, space or rent <= 0).

    Row order is preserved and the index is reset to 0..n-1.
    """
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Listing frame is missing columns: {missing}")

    out = pd.DataFrame(index=df.index)
    if "id" in df.columns:
        out["id"] = df["id"]
    for col in REQUIRED_COLUMNS:
        out[col] = pd.to_numeric(df[col], errors="coerce").astype(float)

    if "rooms" in df.columns:
        rooms = pd.to_numeric(df["rooms"], errors="coerce").astype(float)
        out["rooms"] = rooms.where(rooms >= 0)
    else:
        out["rooms"] = np.nan

    if "neighborhood" in df.columns:
        names = df["neighborhood"].astype(object).map(
            lambda v: None if pd.isna(v) or str(v).strip() == "" else str(v).strip()
        )
        # map() may hand back NaN for None depending on the pandas version
        out["neighborhood"] = names.astype(object).where(names.notna(), None)
    else:
        out["neighborhood"] = None

    if "timestamp" in df.columns:
        out["timestamp"] = pd.to_datetime(df["timestamp"], errors="coerce", utc=True)
    else:
        out["timestamp"] = pd.NaT

    valid = (
        np.isfinite(out["latitude"]) & out["latitude"].between(-90, 90)
        & np.isfinite(out["longitude"]) & out["longitude"].between(-180, 180)
        & (out["living_space"] > 0)
        & (out["total_rent"] > 0)
    )
    dropped = int((~valid).sum())
    if dropped:
        logger.warning("Dropped %d listings failing bounds checks (of %d)", dropped, len(out))

    return out[valid].reset_index(drop=True)


# =========================
# Snapshot
# =========================
@dataclass(frozen=True)
class ListingStore:
    """Immutable listing snapshot. Consumers must never write to `frame`."""
    frame: pd.DataFrame
    loaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def size(self) -> int:
        return len(self.frame)

    def __len__(self) -> int:
        return self.size


def build_store(df: pd.DataFrame, loaded_at: Optional[datetime] = None) -> ListingStore:
    frame = normalize_listings_frame(df)
    return ListingStore(frame=frame, loaded_at=loaded_at or datetime.now(timezone.utc))


def empty_store() -> ListingStore:
    return build_store(pd.DataFrame(columns=STORE_COLUMNS))


# =========================
# Publication
# =========================
class StoreHolder:
    """Holds the currently published ListingStore."""

    def __init__(self, store: Optional[ListingStore] = None):
        self._store = store
        self._write_lock = threading.Lock()

    @property
    def ready(self) -> bool:
        return self._store is not None

    def current(self) -> ListingStore:
        store = self._store
        if store is None:
            raise UpstreamUnavailableError("Listing store has not been loaded yet")
        return store

    def publish(self, store: ListingStore) -> None:
        with self._write_lock:
            self._store = store
        logger.info("Published listing store with %d listings", store.size)

    def refresh(self, loader: Callable[[], pd.DataFrame]) -> ListingStore:
        """
        Load a fresh frame, build the new snapshot and swap it in.

        On loader failure, or when the loaded frame cannot be turned into a
        store, the previously published store stays in place.
        """
        with self._write_lock:
            try:
                store = build_store(loader())
            except UpstreamUnavailableError:
                raise
            except Exception as e:
                logger.exception("Listing ingestion failed")
                raise UpstreamUnavailableError(f"Listing ingestion failed: {e}") from e

            self._store = store

        logger.info("Refreshed listing store: %d listings", store.size)
        return store
