# service/logging_utils.py
from __future__ import annotations

import contextlib
import datetime as _dt
import json
import os
import socket
from collections.abc import Iterable
from typing import Any

# A minimal set of keys/substrings to redact (case-insensitive, substring match)
_DEFAULT_REDACT_KEYS = {
    "password",
    "token",
    "apikey",
    "api_key",
    "secret",
    "authorization",
    "cookie",
}

# Host + process metadata (fixed per-process)
_HOSTNAME = socket.gethostname()
_PID = os.getpid()


# ---- Public API --------------------------------------------------------------


def write_activity_log(record: dict[str, Any]) -> None:
    """
    Append one structured activity record to today's activity JSONL file.

    Files live in $LOG_DIR (default /app/local/logs) and are named
    <ACTIVITY_LOG_PREFIX>-YYYY-MM-DD.jsonl. Never mutates the passed-in dict.
    May raise on unrecoverable I/O/serialization errors.
    """
    _write_jsonl(_log_path_for_today(_env("ACTIVITY_LOG_PREFIX", "activity")), record)


def write_error_log(record: dict[str, Any]) -> None:
    """Same as write_activity_log, into the <ERROR_LOG_PREFIX> file."""
    _write_jsonl(_log_path_for_today(_env("ERROR_LOG_PREFIX", "error")), record)


def get_activity_log_path() -> str:
    return _log_path_for_today(_env("ACTIVITY_LOG_PREFIX", "activity"))


def get_error_log_path() -> str:
    return _log_path_for_today(_env("ERROR_LOG_PREFIX", "error"))


def redact(record: dict[str, Any], keys: set[str] | None = None) -> dict[str, Any]:
    """
    Redacted deep copy of `record`: values whose KEYS contain any of the
    substrings in `keys` (case-insensitive) are replaced.
    """
    return _redact_deep(record, keys or _DEFAULT_REDACT_KEYS)


# ---- Internal helpers --------------------------------------------------------


def _env(name: str, default: str) -> str:
    # Read at call time so tests can point LOG_DIR at a temp dir
    return os.getenv(name) or default


def _log_path_for_today(prefix: str) -> str:
    today = _dt.date.today().isoformat()
    return os.path.join(_env("LOG_DIR", "/app/local/logs"), f"{prefix}-{today}.jsonl")


def _rotate_file_if_needed(path: str) -> None:
    """Size-based rotation when ACTIVITY_LOG_MAX_BYTES > 0; date rotation is in the filename."""
    max_bytes = int(_env("ACTIVITY_LOG_MAX_BYTES", "0"))
    if max_bytes <= 0:
        return
    try:
        if os.path.getsize(path) < max_bytes:
            return
    except FileNotFoundError:
        return
    ts = _dt.datetime.now().strftime("%Y%m%d-%H%M%S")
    with contextlib.suppress(FileNotFoundError):
        os.replace(path, f"{path}.{ts}")


def _key_matches(name: str, patterns: Iterable[str]) -> bool:
    n = name.lower()
    return any(pat in n for pat in patterns)


def _redact_deep(value: Any, patterns: Iterable[str]) -> Any:
    if isinstance(value, dict):
        return {
            k: ("***REDACTED***" if isinstance(k, str) and _key_matches(k, patterns) else _redact_deep(v, patterns))
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [_redact_deep(v, patterns) for v in value]
    return value


def _write_jsonl(path: str, record: dict[str, Any]) -> None:
    """
    Redact, stamp ts/host/pid, serialize, then append one line with O_APPEND.
    Concurrent writers from worker threads each issue a single os.write.
    """
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    _rotate_file_if_needed(path)

    payload = dict(_redact_deep(record, _DEFAULT_REDACT_KEYS))
    payload.setdefault("ts", _dt.datetime.now(_dt.timezone.utc).isoformat().replace("+00:00", "Z"))
    payload["_meta"] = {"host": _HOSTNAME, "pid": _PID}

    # Serialize first so any serialization errors happen before file ops.
    data = (json.dumps(payload, ensure_ascii=False, separators=(",", ":"), default=str) + "\n").encode("utf-8")

    fd = os.open(path, os.O_CREAT | os.O_APPEND | os.O_WRONLY, 0o644)
    try:
        os.write(fd, data)
    finally:
        os.close(fd)
