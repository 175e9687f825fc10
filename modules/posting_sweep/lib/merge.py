from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Protocol, Union, runtime_checkable

from .models import ListingRecord
from .store import AggregationStore


@runtime_checkable
class Sink(Protocol):
    """
    System of record for previously collected listings.
    - existing_keys(): detail URLs already recorded
    - append_records(records): store new records; an empty sequence is a no-op
    """

    def existing_keys(self) -> set[str]: ...

    def append_records(self, records: Sequence[ListingRecord]) -> None: ...


def merge(
    aggregated: Union[AggregationStore, Iterable[ListingRecord]],
    existing: Iterable[str],
) -> list[ListingRecord]:
    """
    Records whose detail URL is not in `existing`, in discovery order.
    Returns [] when nothing is new; callers treat that as a no-op.
    """
    seen = set(existing)
    records = aggregated.records() if isinstance(aggregated, AggregationStore) else list(aggregated)

    out: list[ListingRecord] = []
    for rec in records:
        if rec.detail_url in seen:
            continue
        seen.add(rec.detail_url)
        out.append(rec)
    return out
