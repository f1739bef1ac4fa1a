"""Ledger data models.

Decoupled from prmend_core so the ledger can be inspected (history, stats)
without importing the pipeline, and prmend_core stays free of persistence
details beyond the BaseLedger interface.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

# Outcome strings written to the ledger. Kept as plain strings so every
# backend can store them without an enum mapping.
FIXED = "fixed"
SKIPPED_FILE_NOT_FOUND = "skipped:file_not_found"
SKIPPED_NO_CHANGES = "skipped:no_changes"
ERROR_AGENT_FAILURE = "error:agent_failure"
ERROR_WORKSPACE_FAILURE = "error:workspace_failure"

OUTCOMES = (
    FIXED,
    SKIPPED_FILE_NOT_FOUND,
    SKIPPED_NO_CHANGES,
    ERROR_AGENT_FAILURE,
    ERROR_WORKSPACE_FAILURE,
)


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class LedgerEntry:
    """The recorded outcome for one review comment.

    Written once per comment id and never updated afterwards.
    """

    comment_id: int
    repo: str  # "owner/name"
    pr_number: int
    outcome: str  # one of OUTCOMES
    path: str = ""
    detail: str | None = None
    resolved: bool = False
    commit_message: str | None = None
    branch: str | None = None
    processed_at: str = field(default_factory=_utcnow)  # ISO-8601 UTC timestamp

    @property
    def is_error(self) -> bool:
        return self.outcome.startswith("error:")

    @property
    def is_skipped(self) -> bool:
        return self.outcome.startswith("skipped:")

    def to_dict(self) -> dict:
        return {
            "comment_id": self.comment_id,
            "repo": self.repo,
            "pr_number": self.pr_number,
            "path": self.path,
            "processed_at": self.processed_at,
            "outcome": self.outcome,
            "detail": self.detail,
            "resolved": self.resolved,
            "commit_message": self.commit_message,
            "branch": self.branch,
        }

    @classmethod
    def from_dict(cls, d: dict) -> LedgerEntry:
        return cls(
            comment_id=int(d.get("comment_id", 0)),
            repo=d.get("repo", ""),
            pr_number=int(d.get("pr_number", 0)),
            path=d.get("path", "") or "",
            processed_at=d.get("processed_at", ""),
            outcome=d.get("outcome", ERROR_AGENT_FAILURE),
            detail=d.get("detail"),
            resolved=bool(d.get("resolved", False)),
            commit_message=d.get("commit_message"),
            branch=d.get("branch"),
        )
