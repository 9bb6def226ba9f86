"""Page-local dashboard state.

Each page owns one :class:`DashboardSession`. Loads are sequenced with a
request token: only the most recently started load may replace the parcel
list, so a slow response for an old filter is dropped instead of overwriting
newer data. Until a load lands the previous parcels stay visible.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import datetime
from typing import List, Optional

from parcelboard.data import fetch_parcels_by_date_range, seed_database
from parcelboard.filters import DashboardFilters
from parcelboard.models import Parcel
from parcelboard.store import ParcelStore, ParcelStoreError

logger = logging.getLogger(__name__)


class DashboardSession:
    def __init__(self, store: ParcelStore, filters: Optional[DashboardFilters] = None):
        self.store = store
        self.filters = filters or DashboardFilters()
        self.parcels: List[Parcel] = []
        self.loading = False
        self.last_error: Optional[str] = None
        self.loaded_at: Optional[datetime] = None
        self._latest_token = 0
        self._lock = threading.Lock()

    @property
    def latest_token(self) -> int:
        return self._latest_token

    def begin_load(self) -> int:
        with self._lock:
            self._latest_token += 1
            self.loading = True
            return self._latest_token

    def complete_load(self, token: int, parcels: List[Parcel], now: Optional[datetime] = None) -> bool:
        """Apply a finished load. Returns False when a newer load has started since."""
        with self._lock:
            if token != self._latest_token:
                logger.debug("Dropping stale load %d (latest is %d)", token, self._latest_token)
                return False
            self.parcels = list(parcels)
            self.loading = False
            self.last_error = None
            self.loaded_at = now or datetime.now().astimezone()
            return True

    def fail_load(self, token: int, exc: BaseException) -> bool:
        with self._lock:
            if token != self._latest_token:
                return False
            self.loading = False
            self.last_error = f"{type(exc).__name__}: {exc}"
        logger.error("Failed to load parcels: %s", self.last_error)
        return True

    def reload(self, now: Optional[datetime] = None) -> bool:
        token = self.begin_load()
        try:
            parcels = fetch_parcels_by_date_range(self.store, self.filters.date_range(now=now))
        except ParcelStoreError as exc:
            self.fail_load(token, exc)
            return False
        return self.complete_load(token, parcels, now=now)

    def change_filter(self, time_filter: str, now: Optional[datetime] = None, **overrides) -> bool:
        self.filters = replace(self.filters, time_filter=time_filter, **overrides)
        return self.reload(now=now)

    def seed(self, now: Optional[datetime] = None) -> bool:
        try:
            seed_database(self.store)
        except ParcelStoreError:
            logger.exception("Failed to seed database")
            with self._lock:
                self.last_error = "Failed to seed database."
            return False
        return self.reload(now=now)
