"""Value types passed between pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass

from prmend_store.models import (
    ERROR_AGENT_FAILURE,
    ERROR_WORKSPACE_FAILURE,
    FIXED,
    SKIPPED_FILE_NOT_FOUND,
    SKIPPED_NO_CHANGES,
)

__all__ = [
    "ERROR_AGENT_FAILURE",
    "ERROR_WORKSPACE_FAILURE",
    "FIXED",
    "SKIPPED_FILE_NOT_FOUND",
    "SKIPPED_NO_CHANGES",
    "FixOutcome",
    "ReviewComment",
    "TaskDescriptor",
]


@dataclass(frozen=True)
class ReviewComment:
    """An inline review comment as fetched from the REST API.

    `id` is the REST/database id; `node_id` is the GraphQL id of the comment
    itself (not of its thread; the two identifier spaces do not overlap).
    """

    id: int
    pr_number: int
    body: str = ""
    author: str = ""
    node_id: str = ""
    path: str | None = None
    line: int | None = None
    start_line: int | None = None
    diff_hunk: str = ""
    review_id: int | None = None

    @classmethod
    def from_github(cls, raw, pr_number: int) -> ReviewComment:
        """Build from a PyGithub PullRequestComment.

        `line` is None when the commented line no longer exists in the current
        diff (e.g. after a force-push), so fall back to the original position.
        """
        user = getattr(raw, "user", None)
        line = getattr(raw, "line", None) or getattr(raw, "original_line", None)
        start_line = getattr(raw, "start_line", None) or getattr(raw, "original_start_line", None)
        return cls(
            id=raw.id,
            pr_number=pr_number,
            body=raw.body or "",
            author=getattr(user, "login", "") or "",
            node_id=getattr(raw, "node_id", "") or "",
            path=raw.path or None,
            line=line,
            start_line=start_line,
            diff_hunk=getattr(raw, "diff_hunk", "") or "",
            review_id=getattr(raw, "pull_request_review_id", None),
        )


@dataclass(frozen=True)
class TaskDescriptor:
    """What the fix agent is asked to do for one review comment."""

    comment_id: int
    path: str
    title: str
    priority: str  # "P0" (most severe) .. "P3"
    description: str
    line: int | None = None
    start_line: int | None = None
    diff_hunk: str = ""

    @property
    def summary(self) -> str:
        """One-line label used in commit messages and logs."""
        if self.title:
            return self.title
        return self.description[:60].splitlines()[0] if self.description else f"comment {self.comment_id}"


@dataclass(frozen=True)
class FixOutcome:
    status: str
    detail: str | None = None
    commit_message: str | None = None
    branch: str | None = None

    @property
    def fixed(self) -> bool:
        return self.status == FIXED

    @property
    def is_error(self) -> bool:
        return self.status.startswith("error:")
