from __future__ import annotations

from typing import Any

from .lib.config import Settings, load_settings_file
from .lib.engine import RunSummary
from .lib.engine import run_once as _run_engine
from .lib.logging_bridge import activity as log_activity
from .lib.merge import Sink


def run(*, config_path: str | None = None, sink: Sink | None = None, **kwargs: Any) -> RunSummary:
    """
    Entry point for the 'posting_sweep' module.

    Accepts kwargs (from the CLI or a config file), including:
      keyword: str                  # required
      age_days: int = 1
      traversal_depth: int = 1
      content_filters: list[str] = []
      sqlite_path: str = "/app/local/state/posting_sweep.db"
      sheet: str = today's label
      pool_size: int = 50
      dry_run: bool = False

    config_path: optional JSON/YAML file whose values sit under explicit kwargs.
    sink: optional Sink replacing the SQLite sink.
    """
    merged: dict[str, Any] = {}
    if config_path:
        merged.update(load_settings_file(config_path))
    merged.update({k: v for k, v in kwargs.items() if v is not None})

    settings = Settings.from_env_and_kwargs(merged)

    log_activity({
        "component": "posting_sweep.main",
        "op": "start",
        "keyword": settings.query.keyword,
        "sheet": settings.sheet,
        "flags": {
            "dry_run": settings.dry_run,
            "stop_when_exhausted": settings.stop_when_exhausted,
        },
    })

    return _run_engine(settings, sink=sink)
