from __future__ import annotations

import threading
from collections.abc import Iterator

from .models import ListingRecord


class AggregationStore:
    """
    Records gathered during one run, keyed by detail URL.

    Shared by every detail task of every page. All mutation goes through
    insert()/mark_processed()/mark_transport_failure(), which serialize on one lock.
    A key, once inserted, is never overwritten.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, ListingRecord] = {}
        self._processed = 0
        self._transport_failures = 0

    # ---- mutation ----
    def insert(self, record: ListingRecord) -> bool:
        """Insert-or-noop. Returns True if the record was added."""
        with self._lock:
            if record.detail_url in self._records:
                return False
            self._records[record.detail_url] = record
            return True

    def mark_processed(self) -> int:
        with self._lock:
            self._processed += 1
            return self._processed

    def mark_transport_failure(self) -> int:
        with self._lock:
            self._transport_failures += 1
            return self._transport_failures

    # ---- reads ----
    @property
    def processed(self) -> int:
        with self._lock:
            return self._processed

    @property
    def transport_failures(self) -> int:
        with self._lock:
            return self._transport_failures

    def records(self) -> list[ListingRecord]:
        """Snapshot in discovery order."""
        with self._lock:
            return list(self._records.values())

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._records.keys())

    def get(self, detail_url: str) -> ListingRecord | None:
        with self._lock:
            return self._records.get(detail_url)

    def __contains__(self, detail_url: object) -> bool:
        with self._lock:
            return detail_url in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __iter__(self) -> Iterator[ListingRecord]:
        return iter(self.records())
