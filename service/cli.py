# service/cli.py
"""
User-facing command-line entrypoints.

Subcommands
-----------
run -s KEYWORD [-a DAYS] [-d DEPTH] [-r PATTERN ...] [--dry-run] ...
    - Sweeps the search API via modules.posting_sweep.run(...)
    - Appends new listings to the SQLite sink (unless --dry-run)
    - Prints a concise summary and the new listings

count [--sheet NAME]
    - Prints how many listings the SQLite sink holds

validate-config
    - Loads/validates --config (plus any run flags) and returns nonzero on error
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from collections.abc import Iterable
from typing import Any

from modules.posting_sweep import run as run_sweep
from modules.posting_sweep.lib import db
from modules.posting_sweep.lib.config import ConfigError, Settings, load_settings_file
from modules.posting_sweep.lib.errors import SweepError
from modules.posting_sweep.lib.models import ListingRecord
from service import logging_utils as L

LOG = logging.getLogger("service.cli")


# ----------------------------- Logging setup ---------------------------------
def _ensure_logging() -> None:
    """Initialize a reasonable logging setup if none exists yet."""
    root = logging.getLogger()
    if not root.handlers:
        level = os.getenv("LOG_LEVEL", "INFO").upper()
        logging.basicConfig(
            level=getattr(logging, level, logging.INFO),
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )


# -------------------------- Utility / glue code ------------------------------
def _run_kwargs(args: argparse.Namespace) -> dict[str, Any]:
    """Map parsed flags onto Settings kwargs; unset flags stay out so config files apply."""
    kw: dict[str, Any] = {
        "keyword": args.search,
        "age_days": args.age,
        "traversal_depth": args.depth,
        "content_filters": args.page_search or None,
        "sqlite_path": args.sqlite_path,
        "sheet": args.sheet,
        "pool_size": args.pool_size,
        "base_url": args.base_url,
    }
    if args.dry_run:
        kw["dry_run"] = True
    if args.stop_when_exhausted:
        kw["stop_when_exhausted"] = True
    return {k: v for k, v in kw.items() if v is not None}


def _print_records(records: Iterable[ListingRecord]) -> None:
    for r in records:
        print(f"{r.date}\t{r.title}\t{r.company}\t{r.location}\t{r.skills}\t{r.detail_url}")


# ------------------------------ Subcommands ----------------------------------
def cmd_run(args: argparse.Namespace) -> int:
    start_time = time.monotonic()
    kwargs = _run_kwargs(args)
    LOG.debug("Run posting_sweep with kwargs=%s", kwargs)

    try:
        summary = run_sweep(config_path=args.config, **kwargs)
    except KeyboardInterrupt:
        return 130
    except ConfigError as e:
        print(f"ERROR: configuration invalid: {e}", file=sys.stderr)
        return 2
    except SweepError as e:
        duration_ms = int((time.monotonic() - start_time) * 1000)
        print(f"FAILURE: {e} (parameters: {kwargs})", file=sys.stderr)
        L.write_error_log({
            "where": "cli.run",
            "kwargs": kwargs,
            "error": repr(e),
            "duration_ms": duration_ms,
        })
        return 1

    duration_ms = int((time.monotonic() - start_time) * 1000)
    L.write_activity_log({
        "event": "cli_run",
        "kwargs": kwargs,
        "new_total": len(summary.new_records),
        "written": summary.written,
        "duration_ms": duration_ms,
    })

    print(
        f"Pages: {summary.pages} | Processed: {summary.processed} | "
        f"Kept: {len(summary.aggregated)} | New: {len(summary.new_records)}"
    )
    if not summary.new_records:
        print("No new postings found.")
        return 0
    _print_records(summary.new_records)
    if not summary.written:
        print("DRY RUN: nothing written.")
    return 0


def cmd_count(args: argparse.Namespace) -> int:
    path = args.sqlite_path or os.getenv("POSTING_SWEEP_SQLITE_PATH") or "/app/local/state/posting_sweep.db"
    n = db.count_rows(path, args.sheet)
    scope = f"sheet {args.sheet!r}" if args.sheet else "all sheets"
    print(f"{n} postings in {path} ({scope})")
    return 0


def cmd_validate_config(args: argparse.Namespace) -> int:
    try:
        merged: dict[str, Any] = load_settings_file(args.config) if args.config else {}
        merged.update(_run_kwargs(args))
        Settings.from_env_and_kwargs(merged)
    except ConfigError as e:
        print(f"ERROR: configuration invalid: {e}", file=sys.stderr)
        return 1
    print("OK: configuration is valid.")
    return 0


# ------------------------------- Argparse ------------------------------------
def _add_run_flags(sp: argparse.ArgumentParser) -> None:
    sp.add_argument(
        "-s",
        "--search",
        help="Keyword to search postings for, e.g. 'java' or 'ruby'.",
    )
    sp.add_argument("-a", "--age", type=int, help="How many days back to fetch postings (default 1).")
    sp.add_argument(
        "-d",
        "--depth",
        type=int,
        help="How many result pages to traverse (default 1).",
    )
    sp.add_argument(
        "-r",
        "--page-search",
        action="append",
        metavar="PATTERN",
        help="Regex a posting's detail page must match to be kept (repeatable, all must match).",
    )
    sp.add_argument("--sqlite-path", help="SQLite file used as the sink.")
    sp.add_argument("--sheet", help="Sheet name to dedupe/append against (default: today's date).")
    sp.add_argument("--pool-size", type=int, help="Concurrent detail fetches per page (default 50).")
    sp.add_argument("--base-url", help="Search API endpoint.")
    sp.add_argument("--stop-when-exhausted", action="store_true", help="Stop once the API reports the last page.")
    sp.add_argument("--dry-run", action="store_true", help="Do everything except write to the sink.")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="python -m service.cli",
        description="Job posting sweep tools",
    )
    p.add_argument(
        "--config",
        help="Path to a JSON/YAML file with run settings (flags override it).",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    sp = sub.add_parser("run", help="Sweep postings and append new ones to the sink.")
    _add_run_flags(sp)
    sp.set_defaults(func=cmd_run)

    sp = sub.add_parser("count", help="Print how many postings the sink holds.")
    sp.add_argument("--sqlite-path", help="SQLite file used as the sink.")
    sp.add_argument("--sheet", help="Only count this sheet.")
    sp.set_defaults(func=cmd_count)

    sp = sub.add_parser("validate-config", help="Verify configuration correctness.")
    _add_run_flags(sp)
    sp.set_defaults(func=cmd_validate_config)

    return p


# --------------------------------- Main --------------------------------------
def main(argv: Iterable[str] | None = None) -> int:
    _ensure_logging()
    parser = _build_parser()
    args = parser.parse_args(args=list(argv) if argv is not None else None)
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
