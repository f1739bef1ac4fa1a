"""JSONFileLedger: the default ledger, a single JSON document on disk.

Data format:

    {"processed": {"<comment_id>": {<LedgerEntry fields>}, ...}}

The whole document is rewritten on every record_outcome(). Writes go to a
temporary file in the same directory which is fsynced and then renamed over
the original, so a crash mid-write leaves either the old or the new document,
never a truncated one.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from prmend_store.base import BaseLedger
from prmend_store.models import LedgerEntry

logger = logging.getLogger(__name__)


class JSONFileLedger(BaseLedger):
    """Keeps the full ledger in memory and mirrors it to a JSON file.

    Suitable for the volumes a single poller produces (one entry per bot
    comment). Switch to SQLiteLedger if the file grows into the tens of
    thousands of entries.
    """

    def __init__(self, path: str | os.PathLike = "~/.prmend/ledger.json"):
        self._path = Path(path).expanduser()
        self._entries: dict[str, LedgerEntry] = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, LedgerEntry]:
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning("Ledger at %s could not be read, starting empty: %s", self._path, e)
            return {}
        try:
            data = json.loads(text)
            processed = data.get("processed", {})
            entries = {}
            for key, raw in processed.items():
                raw = {"comment_id": int(key), **raw}
                entries[str(key)] = LedgerEntry.from_dict(raw)
            return entries
        except (ValueError, TypeError, AttributeError) as e:
            # Keep the unreadable document for recovery; the next flush writes a fresh one.
            aside = self._path.with_name(self._path.name + ".corrupt")
            logger.warning("Ledger at %s is unreadable, moving it to %s (%s): %s", self._path, aside, type(e).__name__, e)
            os.replace(self._path, aside)
            return {}

    def _flush(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"processed": {key: entry.to_dict() for key, entry in self._entries.items()}}
        fd, tmp_name = tempfile.mkstemp(prefix=".ledger-", suffix=".json", dir=self._path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def has_processed(self, comment_id: int) -> bool:
        return str(comment_id) in self._entries

    def record_outcome(self, entry: LedgerEntry) -> None:
        key = str(entry.comment_id)
        if key in self._entries:
            logger.warning("Comment %s already recorded; keeping the original entry.", entry.comment_id)
            return
        self._entries[key] = entry
        try:
            self._flush()
        except OSError:
            del self._entries[key]
            raise

    def get(self, comment_id: int) -> LedgerEntry | None:
        return self._entries.get(str(comment_id))

    def list_entries(self, repo: str | None = None, pr_number: int | None = None) -> list[LedgerEntry]:
        results = list(self._entries.values())
        if repo is not None:
            results = [e for e in results if e.repo == repo]
        if pr_number is not None:
            results = [e for e in results if e.pr_number == pr_number]
        return sorted(results, key=lambda e: e.processed_at)
