"""
Engine for one posting sweep: walk search pages, gather retained listings,
and hand only the unseen ones to the sink.

Features:
  - Sequential page traversal, bounded concurrent detail fetches per page
  - Content filtering and skills extraction per detail page
  - Dedup against the sink's existing keys (writes only after the full merge)
  - Dependency injection for testability (`client`, `sink`)
  - Structured logging via `logging_bridge`
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field

from . import logging_bridge
from .config import SearchQuery, Settings
from .db import SqliteSink
from .errors import PageUnavailable, SweepError
from .filters import ResultFilter
from .http_client import HttpClient
from .merge import Sink, merge
from .models import FetchFailure, ListingRecord
from .processor import DetailProcessor, PageProcessor
from .skills import SkillExtractor
from .store import AggregationStore


# =============================================================================
# PAGINATOR
# =============================================================================
class Paginator:
    """
    Drives pages 1..traversal_depth in order. Page N's detail work finishes
    before page N+1 is requested.

    The depth is fixed by the caller; the API's count/lastDocument are only
    consulted when `stop_when_exhausted` is set.
    """

    def __init__(
        self,
        client: HttpClient,
        base_url: str,
        page_processor: PageProcessor,
        *,
        stop_when_exhausted: bool = False,
    ):
        self.client = client
        self.base_url = base_url
        self.page_processor = page_processor
        self.stop_when_exhausted = stop_when_exhausted
        self.pages_fetched = 0

    @property
    def store(self) -> AggregationStore:
        return self.page_processor.store

    def run(self, query: SearchQuery) -> AggregationStore:
        cancel = self.page_processor.cancel_event
        for page in range(1, query.traversal_depth + 1):
            if cancel.is_set():
                break

            params = query.page_params(page)
            response = self.client.fetch(self.base_url, params)
            if isinstance(response, FetchFailure):
                raise PageUnavailable(page, response.url or self.base_url, response)
            self.pages_fetched += 1

            search_page = self.page_processor.process(response, page=page, url=response.url or self.base_url)

            if self.stop_when_exhausted and search_page.exhausted:
                logging_bridge.activity({
                    "component": "posting_sweep.engine",
                    "op": "exhausted",
                    "page": page,
                    "count": search_page.count,
                    "last_document": search_page.last_document,
                })
                break
        return self.store


# =============================================================================
# RUN SUMMARY
# =============================================================================
@dataclass
class RunSummary:
    aggregated: list[ListingRecord] = field(default_factory=list)
    new_records: list[ListingRecord] = field(default_factory=list)
    processed: int = 0
    transport_failures: int = 0
    pages: int = 0
    written: bool = False
    durations_us: dict[str, int] = field(default_factory=dict)


def build_paginator(settings: Settings, client: HttpClient) -> Paginator:
    store = AggregationStore()
    detail = DetailProcessor(
        client,
        store,
        result_filter=ResultFilter(settings.query.content_filters),
        extractor=SkillExtractor(settings.skills_pattern),
        cancel_event=threading.Event(),
        max_transport_failures=settings.max_transport_failures,
    )
    page_processor = PageProcessor(detail, pool_size=settings.pool_size)
    return Paginator(
        client,
        settings.base_url,
        page_processor,
        stop_when_exhausted=settings.stop_when_exhausted,
    )


# =============================================================================
# MAIN ORCHESTRATOR
# =============================================================================
def run_once(
    settings: Settings,
    *,
    sink: Sink | None = None,
    client: HttpClient | None = None,
) -> RunSummary:
    """
    Sweep, merge against the sink, then append the delta.

    Args:
        settings: Validated run configuration.
        sink: Optional Sink override (defaults to SqliteSink on settings.sqlite_path).
        client: Optional HttpClient override.

    Returns:
        RunSummary. With settings.dry_run the sink is read but never written.

    Raises:
        SweepError subclasses on run-fatal failures; the sink is untouched then.
    """
    start_ns = time.perf_counter_ns()
    q = settings.query
    own_client = client is None
    http = client or HttpClient(timeout=settings.timeout, pool_maxsize=settings.pool_size)
    paginator = build_paginator(settings, http)

    logging_bridge.activity({
        "component": "posting_sweep.engine",
        "op": "start",
        "query": _query_record(q),
        "base_url": settings.base_url,
        "pool_size": settings.pool_size,
    })

    try:
        store = paginator.run(q)
    except SweepError as e:
        logging_bridge.error({
            "component": "posting_sweep.engine",
            "op": "sweep",
            "query": _query_record(q),
            "pages_fetched": paginator.pages_fetched,
            "error": repr(e),
        })
        raise
    finally:
        if own_client:
            http.close()
    sweep_us = int((time.perf_counter_ns() - start_ns) // 1000)

    # -------------------------------------------------------------------------
    # MERGE, then write (only after every page drained)
    # -------------------------------------------------------------------------
    target = sink if sink is not None else SqliteSink(settings.sqlite_path, settings.sheet)
    new_records = merge(store, target.existing_keys())

    written = False
    if new_records and not settings.dry_run:
        target.append_records(new_records)
        written = True

    total_us = int((time.perf_counter_ns() - start_ns) // 1000)
    summary = RunSummary(
        aggregated=store.records(),
        new_records=new_records,
        processed=store.processed,
        transport_failures=store.transport_failures,
        pages=paginator.pages_fetched,
        written=written,
        durations_us={"sweep": sweep_us, "_total_us": total_us},
    )

    logging_bridge.activity({
        "component": "posting_sweep.engine",
        "op": "summary" if new_records else "no_new",
        "query": _query_record(q),
        "pages": summary.pages,
        "processed": summary.processed,
        "aggregated": len(summary.aggregated),
        "new_total": len(new_records),
        "transport_failures": summary.transport_failures,
        "dry_run": settings.dry_run,
        "written": written,
        "durations_us": summary.durations_us,
    })
    return summary


def _query_record(q: SearchQuery) -> dict:
    return {
        "keyword": q.keyword,
        "age_days": q.age_days,
        "traversal_depth": q.traversal_depth,
        "content_filters": list(q.content_filters),
    }
