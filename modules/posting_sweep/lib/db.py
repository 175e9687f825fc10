from __future__ import annotations

import contextlib
import os
import sqlite3
from collections.abc import Sequence

from .logging_bridge import error as log_error
from .models import ListingRecord
from .utils import now_iso, sheet_label

# ---- Public API -------------------------------------------------------------


class SqliteSink:
    """
    SQLite-backed Sink.

    Rows are grouped into named sheets (by default one per day, e.g.
    "Monday, Oct 19"); existing_keys() and append_records() act on this
    sink's sheet only. Dedupe key: (sheet, url).
    """

    def __init__(self, sqlite_path: str, sheet: str | None = None):
        self.sqlite_path = sqlite_path
        self.sheet = (sheet or "").strip() or sheet_label()
        init_db(sqlite_path)

    def existing_keys(self) -> set[str]:
        with contextlib.closing(_connect(self.sqlite_path)) as conn:
            _apply_pragmas(conn)
            cur = conn.execute("SELECT url FROM postings WHERE sheet = ?", (self.sheet,))
            return {row[0] for row in cur.fetchall()}

    def append_records(self, records: Sequence[ListingRecord]) -> None:
        """
        Append records in the given order. INSERT OR IGNORE keeps repeated
        appends of the same URL harmless. Empty input touches nothing.
        """
        if not records:
            return
        ts = now_iso()
        try:
            with contextlib.closing(_connect(self.sqlite_path)) as conn:
                _apply_pragmas(conn)
                cur = conn.cursor()
                cur.execute("BEGIN IMMEDIATE")
                try:
                    for r in records:
                        cur.execute(
                            """
                            INSERT OR IGNORE INTO postings
                              (sheet, date, title, company, location, skills, url, first_seen_utc)
                            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                            """,
                            (self.sheet, r.date, r.title, r.company, r.location, r.skills, r.detail_url, ts),
                        )
                    conn.commit()
                except Exception:
                    conn.rollback()
                    raise
        except Exception as e:
            log_error({
                "component": "posting_sweep.db",
                "op": "append_records",
                "sqlite_path": self.sqlite_path,
                "sheet": self.sheet,
                "error": repr(e),
            })
            raise

    def rows(self) -> list[ListingRecord]:
        """Records of this sheet in insertion order."""
        with contextlib.closing(_connect(self.sqlite_path)) as conn:
            _apply_pragmas(conn)
            cur = conn.execute(
                "SELECT url, title, company, location, date, skills FROM postings WHERE sheet = ? ORDER BY id",
                (self.sheet,),
            )
            return [
                ListingRecord(detail_url=u, title=t, company=c, location=loc, date=d, skills=s)
                for (u, t, c, loc, d, s) in cur.fetchall()
            ]


def init_db(sqlite_path: str) -> None:
    """
    Ensure the SQLite database and schema exist.
    Safe to call multiple times.
    """
    _ensure_dir(sqlite_path)
    with contextlib.closing(_connect(sqlite_path)) as conn:
        _apply_pragmas(conn)
        _ensure_schema(conn)


# ---- Nice-to-have helpers for tests & diagnostics --------------------------


def count_rows(sqlite_path: str, sheet: str | None = None) -> int:
    """Return rows in the postings table (optionally one sheet); 0 if DB missing."""
    if not os.path.exists(sqlite_path):
        return 0
    with contextlib.closing(_connect(sqlite_path)) as conn:
        _apply_pragmas(conn)
        _ensure_schema(conn)
        if sheet is None:
            cur = conn.execute("SELECT COUNT(*) FROM postings")
        else:
            cur = conn.execute("SELECT COUNT(*) FROM postings WHERE sheet = ?", (sheet,))
        (n,) = cur.fetchone()
    return int(n or 0)


def reset_db(sqlite_path: str) -> None:
    """
    Remove the DB file entirely (for pytest fixtures).
    Safe if it doesn't exist.
    """
    with contextlib.suppress(FileNotFoundError):
        os.remove(sqlite_path)


# ---- Internal utilities -----------------------------------------------------


def _ensure_dir(sqlite_path: str) -> None:
    d = os.path.dirname(os.path.abspath(sqlite_path)) or "."
    os.makedirs(d, exist_ok=True)


def _connect(sqlite_path: str) -> sqlite3.Connection:
    # isolation_level=None gives autocommit mode; we'll manage transactions explicitly.
    return sqlite3.connect(sqlite_path, timeout=30.0, isolation_level=None)


def _apply_pragmas(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA temp_store=MEMORY;")


def _ensure_schema(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS postings (
          id INTEGER PRIMARY KEY,
          sheet    TEXT NOT NULL,
          date     TEXT NOT NULL,
          title    TEXT NOT NULL,
          company  TEXT NOT NULL,
          location TEXT NOT NULL,
          skills   TEXT NOT NULL,
          url      TEXT NOT NULL,
          first_seen_utc TEXT NOT NULL
        );
        """
    )
    conn.execute(
        """
        CREATE UNIQUE INDEX IF NOT EXISTS ux_postings_sheet_url
          ON postings (sheet, url);
        """
    )
