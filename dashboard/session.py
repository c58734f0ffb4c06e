"""Session state for one dashboard user.

The dataset and the filter configuration are the only mutable state. Every
mutation goes through a method on `DashboardSession`, which recomputes the
filtered frame and then the summary from it before releasing the lock, so
readers never see a summary built from a different filter pass.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

import pandas as pd

from dashboard.data import Dataset, FieldDescriptor, check_supported, ingest
from dashboard.filters import FilterConfig, apply_filters, normalize_filters
from dashboard.metrics import DashboardSummary, summarize

logger = logging.getLogger(__name__)

Listener = Callable[["DashboardSession"], None]


@dataclass(frozen=True, eq=False)
class SessionSnapshot:
    dataset: Dataset
    filters: FilterConfig
    filtered: pd.DataFrame
    summary: DashboardSummary
    embed_visible: bool
    version: int


class DashboardSession:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._listeners: List[Listener] = []
        self._upload_seq = 0
        self._dataset = Dataset()
        self._filters = FilterConfig()
        self._embed_visible = False
        self._filtered: pd.DataFrame = self._dataset.frame
        self._summary = DashboardSummary()
        self._version = 0

    # ----- read-only snapshots -----
    @property
    def dataset(self) -> Dataset:
        with self._lock:
            return self._dataset

    @property
    def fields(self) -> List[FieldDescriptor]:
        with self._lock:
            return list(self._dataset.fields)

    @property
    def filters(self) -> FilterConfig:
        with self._lock:
            return self._filters

    @property
    def filtered(self) -> pd.DataFrame:
        with self._lock:
            return self._filtered

    @property
    def summary(self) -> DashboardSummary:
        with self._lock:
            return self._summary

    @property
    def embed_visible(self) -> bool:
        with self._lock:
            return self._embed_visible

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return SessionSnapshot(
                dataset=self._dataset,
                filters=self._filters,
                filtered=self._filtered,
                summary=self._summary,
                embed_visible=self._embed_visible,
                version=self._version,
            )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call `listener` after every recomputation; returns an unsubscribe function."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    # ----- mutation entry points -----
    def begin_upload(self, filename: Optional[str] = None) -> int:
        """Issue an upload ticket; a named file with an unsupported format is refused without one."""
        if filename is not None:
            check_supported(filename)
        with self._lock:
            self._upload_seq += 1
            return self._upload_seq

    def complete_upload(self, ticket: int, filename: str, content: bytes) -> bool:
        """Parse and install an upload unless a newer upload has started since `ticket`.

        Raises IngestError on failure; the current dataset is kept in that case.
        """
        dataset = ingest(filename, content)
        with self._lock:
            if ticket != self._upload_seq:
                logger.info("Discarding stale upload %r (ticket %d, latest %d)", filename, ticket, self._upload_seq)
                return False
            # Filters are kept across uploads.
            self._dataset = dataset
            self._recompute()
        return True

    def ingest(self, filename: str, content: bytes) -> Dataset:
        ticket = self.begin_upload(filename)
        self.complete_upload(ticket, filename, content)
        return self.dataset

    def set_filters(self, filters: FilterConfig | dict) -> FilterConfig:
        if not isinstance(filters, FilterConfig):
            filters = normalize_filters(filters)
        with self._lock:
            if filters != self._filters:
                self._filters = filters
                self._recompute()
            return self._filters

    def update_filters(self, **changes: object) -> FilterConfig:
        with self._lock:
            current = self._filters
            raw = {
                "query": changes.get("query", current.query),
                "date_range": changes.get("date_range", current.date_range),
                "numeric_bounds": changes.get("numeric_bounds", current.numeric_bounds),
            }
            return self.set_filters(normalize_filters(raw))

    def set_embed_visible(self, visible: bool) -> bool:
        with self._lock:
            self._embed_visible = bool(visible)
            return self._embed_visible

    def toggle_embed(self) -> bool:
        with self._lock:
            return self.set_embed_visible(not self._embed_visible)

    def reset(self) -> None:
        with self._lock:
            # Invalidate any upload still in flight.
            self._upload_seq += 1
            self._dataset = Dataset()
            self._filters = FilterConfig()
            self._embed_visible = False
            self._recompute()

    # ----- derived state -----
    def _recompute(self) -> None:
        filtered = apply_filters(self._dataset.frame, self._filters)
        self._filtered = filtered
        self._summary = summarize(filtered, self._dataset.fields)
        self._version += 1
        for listener in list(self._listeners):
            listener(self)
