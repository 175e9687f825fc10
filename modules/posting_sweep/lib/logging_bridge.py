from __future__ import annotations

import logging
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

try:
    from service import logging_utils as _logging_backend
except ImportError:  # module run without the service package on sys.path
    _logging_backend = None

LOG = logging.getLogger(__name__)

MASK = "***REDACTED***"

# Query-string parameters that carry credentials on search or detail URLs
_SECRET_PARAMS = frozenset({"api_key", "apikey", "key", "token", "access_token", "password", "sig"})
_SECRET_FIELDS = frozenset({"authorization", "cookie", "password", "token"})


def scrub_url(url: str) -> str:
    """Mask userinfo passwords and credential query params in a URL."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    netloc = parts.netloc
    userinfo, at, host = netloc.rpartition("@")
    if at and ":" in userinfo:
        netloc = f"{userinfo.split(':', 1)[0]}:{MASK}@{host}"
    query = parts.query
    if query:
        pairs = parse_qsl(query, keep_blank_values=True)
        if any(k.lower() in _SECRET_PARAMS for k, _ in pairs):
            query = urlencode([(k, MASK if k.lower() in _SECRET_PARAMS else v) for k, v in pairs], safe="*")
    return urlunsplit((parts.scheme, netloc, parts.path, query, parts.fragment))


def _scrub(record: dict[str, Any]) -> dict[str, Any]:
    out = dict(record)
    for k, v in record.items():
        lk = str(k).lower()
        if lk in _SECRET_FIELDS:
            out[k] = MASK
        elif isinstance(v, str) and (lk == "url" or lk.endswith("_url")):
            out[k] = scrub_url(v)
    return out


def _emit(writer: str, fallback: logging.Logger, level: int, record: dict[str, Any]) -> None:
    payload = _scrub(record)
    write = getattr(_logging_backend, writer, None)
    if write is not None:
        try:
            write(payload)
            return
        except (OSError, TypeError, ValueError):
            LOG.debug("%s failed, using stdlib logging", writer, exc_info=True)
    fallback.log(level, payload)


def activity(record: dict[str, Any]) -> None:
    """Structured progress record (page fetched, run summary)."""
    _emit("write_activity_log", logging.getLogger("posting_sweep.activity"), logging.INFO, record)


def error(record: dict[str, Any]) -> None:
    _emit("write_error_log", logging.getLogger("posting_sweep.error"), logging.ERROR, record)
