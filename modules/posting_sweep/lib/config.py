from __future__ import annotations

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import yaml

from .utils import getenv_str, sheet_label, truthy

DEFAULT_BASE_URL = "http://service.dice.com/api/rest/jobsearch/v1/simple.json"
DEFAULT_SQLITE_PATH = "/app/local/state/posting_sweep.db"
DEFAULT_POOL_SIZE = 50


# -----------------------------
# Exceptions
# -----------------------------
class ConfigError(ValueError):
    """Raised when provided kwargs/env cannot form a valid Settings."""


# -----------------------------
# Models
# -----------------------------
@dataclass(frozen=True)
class SearchQuery:
    """
    What to ask the search API for, and which detail pages to keep.
    - keyword: search text (the API's `text` parameter)
    - age_days: how many days back postings are fetched (`age`)
    - traversal_depth: number of result pages to walk, starting at 1
    - content_filters: regexes a detail page must ALL match to be kept
    """

    keyword: str
    age_days: int = 1
    traversal_depth: int = 1
    content_filters: tuple[str, ...] = ()

    def page_params(self, page: int) -> dict[str, Any]:
        return {"text": self.keyword, "age": self.age_days, "page": page, "sort": 1}


@dataclass
class Settings:
    """
    Canonical configuration for a 'posting_sweep' run.

    The query is immutable for the run; everything else tunes how the sweep
    talks to the network and where new records end up.
    """

    query: SearchQuery
    base_url: str = DEFAULT_BASE_URL

    # Sink
    sqlite_path: str = DEFAULT_SQLITE_PATH
    sheet: str = field(default_factory=sheet_label)

    # Runtime behavior
    pool_size: int = DEFAULT_POOL_SIZE
    timeout: float = 15.0
    max_transport_failures: int = 10
    stop_when_exhausted: bool = False
    skills_pattern: str | None = None
    dry_run: bool = False

    # ------------- constructors -------------
    @classmethod
    def from_env_and_kwargs(cls, kwargs: Mapping[str, Any] | None) -> Settings:
        """
        Build Settings from kwargs with validation.

        Expected kwargs (all optional unless stated otherwise):

            keyword: str                      # REQUIRED
            age_days: int = 1
            traversal_depth: int = 1
            content_filters: list[str] | str = []

            base_url: str = $POSTING_SWEEP_BASE_URL or the Dice simple search endpoint
            sqlite_path: str = $POSTING_SWEEP_SQLITE_PATH or "/app/local/state/posting_sweep.db"
            sheet: str = today's label, e.g. "Monday, Oct 19"

            pool_size: int = 50
            timeout: float = 15.0
            max_transport_failures: int = 10
            stop_when_exhausted: bool = false
            skills_pattern: str | None
            dry_run: bool = false
        """
        kw = dict(kwargs or {})

        keyword = str(kw.get("keyword") or "").strip()
        if not keyword:
            raise ConfigError("Missing search keyword. Provide 'keyword'.")

        query = SearchQuery(
            keyword=keyword,
            age_days=_as_int(kw, "age_days", 1),
            traversal_depth=_as_int(kw, "traversal_depth", 1),
            content_filters=_as_patterns(kw.get("content_filters")),
        )

        base_url = str(kw.get("base_url") or getenv_str("POSTING_SWEEP_BASE_URL") or DEFAULT_BASE_URL).strip()
        sqlite_path = str(kw.get("sqlite_path") or getenv_str("POSTING_SWEEP_SQLITE_PATH") or DEFAULT_SQLITE_PATH)
        sheet = str(kw.get("sheet") or "").strip() or sheet_label()
        skills_pattern = kw.get("skills_pattern")

        settings = cls(
            query=query,
            base_url=base_url,
            sqlite_path=sqlite_path,
            sheet=sheet,
            pool_size=_as_int(kw, "pool_size", DEFAULT_POOL_SIZE),
            timeout=_as_float(kw, "timeout", 15.0),
            max_transport_failures=_as_int(kw, "max_transport_failures", 10),
            stop_when_exhausted=truthy(kw.get("stop_when_exhausted")),
            skills_pattern=str(skills_pattern) if skills_pattern else None,
            dry_run=truthy(kw.get("dry_run")),
        )
        _validate_settings(settings)
        return settings


def load_settings_file(path: str) -> dict[str, Any]:
    """
    Read a JSON or YAML mapping of Settings kwargs.
    The result is meant to be merged under explicit kwargs before
    calling Settings.from_env_and_kwargs.
    """
    try:
        with open(path, encoding="utf-8") as f:
            text = f.read()
    except FileNotFoundError as e:
        raise ConfigError(f"posting_sweep config file not found: {path}") from e

    lower = path.lower()
    try:
        if lower.endswith((".yml", ".yaml")):
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"posting_sweep config file is invalid: {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"posting_sweep config file must hold a mapping: {path}")
    return data


# -----------------------------
# Helpers
# -----------------------------
def _as_int(kw: Mapping[str, Any], key: str, default: int) -> int:
    v = kw.get(key)
    if v is None or v == "":
        return default
    try:
        return int(v)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{key}' must be an integer (got {v!r}).") from e


def _as_float(kw: Mapping[str, Any], key: str, default: float) -> float:
    v = kw.get(key)
    if v is None or v == "":
        return default
    try:
        return float(v)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{key}' must be a number (got {v!r}).") from e


def _as_patterns(value: Any) -> tuple[str, ...]:
    """Accept a single pattern string or a list of them; order is kept."""
    if not value:
        return ()
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, (list, tuple)):
        raise ConfigError("'content_filters' must be a string or a list of strings.")
    return tuple(str(p) for p in value if str(p))


def _validate_settings(s: Settings) -> None:
    q = s.query
    if q.age_days < 0:
        raise ConfigError("'age_days' must be >= 0.")
    if q.traversal_depth < 0:
        raise ConfigError("'traversal_depth' must be >= 0.")
    if s.pool_size <= 0:
        raise ConfigError("'pool_size' must be >= 1.")
    if s.timeout <= 0:
        raise ConfigError("'timeout' must be > 0.")
    if s.max_transport_failures < 0:
        raise ConfigError("'max_transport_failures' must be >= 0.")
    if not s.base_url:
        raise ConfigError("'base_url' cannot be empty.")
    if not s.sqlite_path.strip():
        raise ConfigError("'sqlite_path' cannot be empty.")

    for p in (*q.content_filters, *([s.skills_pattern] if s.skills_pattern else [])):
        try:
            re.compile(p)
        except re.error as e:
            raise ConfigError(f"Invalid pattern {p!r}: {e}") from e
