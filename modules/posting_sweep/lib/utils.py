from __future__ import annotations

import os
from datetime import date, datetime, timezone
from typing import Any


def truthy(v: Any) -> bool:
    """
    Normalize common truthy inputs from env/kwargs.
    Accepts bools or strings like: '1', 'true', 'yes', 'on'.
    """
    if isinstance(v, bool):
        return v
    if v is None:
        return False
    if isinstance(v, (int, float)):
        return v != 0
    s = str(v).strip().lower()
    return s in {"1", "true", "yes", "on", "y", "t"}


def now_iso() -> str:
    """
    UTC ISO-8601 timestamp with 'Z' suffix.
    """
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def sheet_label(day: date | None = None) -> str:
    """Default per-day sheet name, e.g. 'Monday, Oct 19'."""
    return (day or date.today()).strftime("%A, %b %d")


def getenv_str(name: str, default: str | None = None) -> str | None:
    val = os.getenv(name)
    return val if val is not None else default
