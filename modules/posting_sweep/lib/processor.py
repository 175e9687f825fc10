"""
Per-listing and per-page processing.

DetailProcessor handles ONE listing: fetch its detail page, apply the content
filters, extract skills, and contribute at most one record to the shared store.

PageProcessor decodes ONE search-result page and fans its listings out to a
bounded thread pool, returning only after every task for the page finished.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any

from . import logging_bridge
from .config import DEFAULT_POOL_SIZE
from .errors import SchemaViolation, TransportFailure
from .filters import ResultFilter
from .http_client import HttpClient
from .models import FetchFailure, ListingRecord, ListingSummary, SearchPage
from .skills import SkillExtractor
from .store import AggregationStore

LOG = logging.getLogger(__name__)


class DetailProcessor:
    def __init__(
        self,
        client: HttpClient,
        store: AggregationStore,
        *,
        result_filter: ResultFilter | None = None,
        extractor: SkillExtractor | None = None,
        cancel_event: threading.Event | None = None,
        max_transport_failures: int = 10,
    ):
        self.client = client
        self.store = store
        self.result_filter = result_filter or ResultFilter()
        self.extractor = extractor or SkillExtractor()
        self.cancel_event = cancel_event or threading.Event()
        self.max_transport_failures = max_transport_failures

    def process(self, listing: ListingSummary) -> None:
        """
        Timeouts and connection errors drop the listing like a malformed URL does,
        until more than `max_transport_failures` have happened in the run; then the
        failure is re-raised and the cancel event is set.
        """
        if self.cancel_event.is_set():
            return
        self.store.mark_processed()

        try:
            response = self.client.fetch(listing.detail_url)
        except TransportFailure as e:
            failures = self.store.mark_transport_failure()
            logging_bridge.error({
                "component": "posting_sweep.processor",
                "op": "detail_transport_failure",
                "url": listing.detail_url,
                "failures": failures,
                "error": repr(e.cause or e),
            })
            if failures > self.max_transport_failures:
                self.cancel_event.set()
                raise
            return

        if isinstance(response, FetchFailure):
            LOG.debug("Dropping %s: %s %s", listing.detail_url, response.kind.value, response.detail)
            return

        if not self.result_filter.matches(response):
            LOG.debug("Dropping %s: content filters not matched", listing.detail_url)
            return

        skills = self.extractor.extract(response)
        self.store.insert(ListingRecord.from_summary(listing, skills))


class PageProcessor:
    def __init__(
        self,
        detail: DetailProcessor,
        *,
        pool_size: int = DEFAULT_POOL_SIZE,
    ):
        self.detail = detail
        self.store = detail.store
        self.cancel_event = detail.cancel_event
        self.pool_size = max(1, int(pool_size))

    def process(self, response: Any, *, page: int | None = None, url: str = "") -> SearchPage:
        """
        Decode the page and process every listing on it concurrently.

        Raises SchemaViolation if the body is not the expected JSON shape, and
        re-raises the first fatal task error once the page's pool has drained.
        """
        url = url or str(getattr(response, "url", "") or "")
        search_page = SearchPage.from_json(_decode_json(response, page, url), page=page, url=url)

        logging_bridge.activity({
            "component": "posting_sweep.processor",
            "op": "page",
            "page": page,
            "url": url,
            "last_document": search_page.last_document,
            "count": search_page.count,
            "processed": self.store.processed,
            "listings": len(search_page.items),
        })

        listings = _unique_listings(search_page.items)
        if not listings or self.cancel_event.is_set():
            return search_page

        first_error: BaseException | None = None
        workers = min(self.pool_size, len(listings))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="posting-detail") as pool:
            futures = {pool.submit(self.detail.process, item): item for item in listings}
            for fut in as_completed(futures):
                if fut.cancelled():
                    continue
                exc = fut.exception()
                if exc is None or first_error is not None:
                    continue
                first_error = exc
                self.cancel_event.set()
                for pending in futures:
                    pending.cancel()
                logging_bridge.error({
                    "component": "posting_sweep.processor",
                    "op": "detail_task",
                    "page": page,
                    "url": futures[fut].detail_url,
                    "error": repr(exc),
                })

        if first_error is not None:
            raise first_error
        return search_page


# ---- helpers ----


def _decode_json(response: Any, page: int | None, url: str) -> Any:
    if isinstance(response, (dict, list)):
        return response
    if response is None or isinstance(response, FetchFailure):
        raise SchemaViolation(page, url, f"no response body ({response!r})")
    try:
        return response.json()
    except ValueError as e:
        text = str(getattr(response, "text", "") or "")
        preview = text[:200].replace("\n", " ")
        raise SchemaViolation(page, url, f"body is not JSON; starts: {preview!r}") from e


def _unique_listings(items: list[ListingSummary]) -> list[ListingSummary]:
    """First occurrence of each detail URL, in page order."""
    seen: set[str] = set()
    out: list[ListingSummary] = []
    for item in items:
        if item.detail_url in seen:
            continue
        seen.add(item.detail_url)
        out.append(item)
    return out
