# modules/posting_sweep/lib/__init__.py
from __future__ import annotations

# Re-export commonly-used types for convenience
from .config import ConfigError, SearchQuery, Settings
from .engine import Paginator, RunSummary, run_once
from .errors import PageUnavailable, SchemaViolation, SweepError, TransportFailure
from .merge import Sink, merge
from .models import FetchFailure, ListingRecord, ListingSummary, SearchPage
from .store import AggregationStore

__all__ = [
    "AggregationStore",
    "ConfigError",
    "FetchFailure",
    "ListingRecord",
    "ListingSummary",
    "PageUnavailable",
    "Paginator",
    "RunSummary",
    "SchemaViolation",
    "SearchPage",
    "SearchQuery",
    "Settings",
    "Sink",
    "SweepError",
    "TransportFailure",
    "merge",
    "run_once",
]
