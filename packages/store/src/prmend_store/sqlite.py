"""SQLiteLedger: indexed local ledger for long-running pollers.

Why SQLite alongside the JSON file:
- Batteries included: ships with Python, no extra dependencies.
- Each record_outcome() is a single-row INSERT instead of a full document
  rewrite, which matters once the ledger holds many thousands of comments.
- The PRIMARY KEY on comment_id enforces write-once at the storage level.

Schema:
  ledger: one row per handled review comment.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from pathlib import Path

from prmend_store.base import BaseLedger
from prmend_store.models import LedgerEntry

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS ledger (
    comment_id      INTEGER PRIMARY KEY,
    repo            TEXT NOT NULL,
    pr_number       INTEGER NOT NULL,
    path            TEXT,
    processed_at    TEXT,
    outcome         TEXT NOT NULL,
    detail          TEXT,
    resolved        INTEGER DEFAULT 0,
    commit_message  TEXT,
    branch          TEXT
);
CREATE INDEX IF NOT EXISTS idx_ledger_repo ON ledger (repo);
CREATE INDEX IF NOT EXISTS idx_ledger_pr   ON ledger (repo, pr_number);
"""


class SQLiteLedger(BaseLedger):
    """Stores the ledger in a local SQLite database file.

    Configure via .prmend.yml: `ledger: sqlite` and `ledger_path: /path/to/ledger.db`.
    """

    def __init__(self, db_path: str | os.PathLike = "~/.prmend/ledger.db"):
        self._path = Path(db_path).expanduser()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = self._open()
        except sqlite3.DatabaseError as e:
            # Not a database (or damaged beyond use): set it aside and start empty.
            aside = self._path.with_name(self._path.name + ".corrupt")
            logger.warning("Ledger at %s is unreadable, moving it to %s: %s", self._path, aside, e)
            os.replace(self._path, aside)
            self._conn = self._open()

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path)
        try:
            conn.row_factory = sqlite3.Row
            conn.executescript(_SCHEMA)
            conn.commit()
        except sqlite3.DatabaseError:
            conn.close()
            raise
        return conn

    def has_processed(self, comment_id: int) -> bool:
        row = self._conn.execute("SELECT 1 FROM ledger WHERE comment_id=?", (comment_id,)).fetchone()
        return row is not None

    def record_outcome(self, entry: LedgerEntry) -> None:
        cur = self._conn.execute(
            """
            INSERT OR IGNORE INTO ledger
              (comment_id, repo, pr_number, path, processed_at,
               outcome, detail, resolved, commit_message, branch)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.comment_id,
                entry.repo,
                entry.pr_number,
                entry.path,
                entry.processed_at,
                entry.outcome,
                entry.detail,
                int(entry.resolved),
                entry.commit_message,
                entry.branch,
            ),
        )
        self._conn.commit()
        if cur.rowcount == 0:
            logger.warning("Comment %s already recorded; keeping the original entry.", entry.comment_id)

    def get(self, comment_id: int) -> LedgerEntry | None:
        row = self._conn.execute("SELECT * FROM ledger WHERE comment_id=?", (comment_id,)).fetchone()
        return self._row_to_entry(row) if row is not None else None

    def list_entries(self, repo: str | None = None, pr_number: int | None = None) -> list[LedgerEntry]:
        clauses = []
        params: list = []
        if repo is not None:
            clauses.append("repo=?")
            params.append(repo)
        if pr_number is not None:
            clauses.append("pr_number=?")
            params.append(pr_number)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._conn.execute(f"SELECT * FROM ledger{where} ORDER BY processed_at", params).fetchall()
        return [self._row_to_entry(r) for r in rows]

    def close(self) -> None:
        self._conn.close()

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> LedgerEntry:
        return LedgerEntry(
            comment_id=row["comment_id"],
            repo=row["repo"],
            pr_number=row["pr_number"],
            path=row["path"] or "",
            processed_at=row["processed_at"] or "",
            outcome=row["outcome"],
            detail=row["detail"],
            resolved=bool(row["resolved"]),
            commit_message=row["commit_message"],
            branch=row["branch"],
        )
