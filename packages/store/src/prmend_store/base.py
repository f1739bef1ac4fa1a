"""Abstract idempotency ledger interface.

The poller depends on BaseLedger, not on a concrete backend, so the backing
store (flat JSON file, SQLite, anything keyed) can be swapped without
touching pipeline code.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from prmend_store.models import LedgerEntry


class BaseLedger(ABC):
    """Durable record of which review comments have been handled.

    Entries are write-once: once record_outcome() returns, the comment id is
    excluded from processing for good, including across restarts. A corrupt
    or missing backing store must load as empty rather than raise.
    """

    @abstractmethod
    def has_processed(self, comment_id: int) -> bool:
        """Return True if an outcome was already recorded for comment_id."""

    @abstractmethod
    def record_outcome(self, entry: LedgerEntry) -> None:
        """Durably persist entry before returning.

        Recording an id that is already present is a no-op.
        """

    @abstractmethod
    def get(self, comment_id: int) -> LedgerEntry | None:
        """Return the entry for comment_id, or None."""

    @abstractmethod
    def list_entries(self, repo: str | None = None, pr_number: int | None = None) -> list[LedgerEntry]:
        """Return entries ordered by processing time, optionally filtered.

        Returns an empty list if nothing matches. Never raises.
        """

    def close(self) -> None:
        """Release any resources held by the ledger.

        Default is a no-op so callers can always call close() safely.
        """
