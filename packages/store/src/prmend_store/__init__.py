"""Idempotency ledger backends for prmend."""

from prmend_store.base import BaseLedger
from prmend_store.json_file import JSONFileLedger
from prmend_store.models import LedgerEntry
from prmend_store.sqlite import SQLiteLedger

__all__ = ["BaseLedger", "JSONFileLedger", "LedgerEntry", "SQLiteLedger"]
