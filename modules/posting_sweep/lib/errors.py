from __future__ import annotations

from typing import Any


class SweepError(Exception):
    """Base exception for run-fatal sweep failures."""


class TransportFailure(SweepError):
    """Timeout or connection error while talking to the remote host."""

    def __init__(self, url: str, cause: BaseException | None = None):
        self.url = url
        self.cause = cause
        reason = f": {cause!r}" if cause is not None else ""
        super().__init__(f"transport failure fetching {url!r}{reason}")


class SchemaViolation(SweepError):
    """A search-result page did not decode into the expected shape."""

    def __init__(self, page: int | None, url: str, reason: str):
        self.page = page
        self.url = url
        self.reason = reason
        where = f"page {page}" if page is not None else "search page"
        super().__init__(f"{where} ({url or 'unknown url'}) has unexpected JSON: {reason}")


class PageUnavailable(SweepError):
    """A search-result page could not be fetched at all."""

    def __init__(self, page: int, url: str, failure: Any):
        self.page = page
        self.url = url
        self.failure = failure
        super().__init__(f"page {page} ({url}) could not be fetched: {failure}")
