"""Poll loop: repositories → open PRs → bot review comments → fixes.

Everything runs sequentially on one thread. Each repository has a single
working directory, so two pipelines on the same repo would race on it;
sequential processing is what keeps the workspace single-writer.

Per comment, the pipeline is:

    classify → workspace ensure/checkout → fix executor → thread resolver → ledger

and the ledger write for one comment completes before the next comment
starts. Anything that goes wrong inside that pipeline becomes a ledger
entry; nothing from one comment aborts the cycle.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING

import requests
from github import GithubException

from prmend_core.classifier import classify, is_actionable, is_from_reviewer
from prmend_core.config import parse_repos
from prmend_core.gh.pull_request import get_pull_requests, get_repo, get_review_comments, get_unified_diff, is_fork
from prmend_core.models import ERROR_AGENT_FAILURE, ERROR_WORKSPACE_FAILURE, FIXED, FixOutcome, ReviewComment
from prmend_core.workspace import GitError
from prmend_store.models import LedgerEntry

if TYPE_CHECKING:
    from prmend_core.executor import FixExecutor
    from prmend_core.gh.threads import ThreadResolver
    from prmend_core.workspace import WorkspaceManager
    from prmend_store.base import BaseLedger

logger = logging.getLogger(__name__)

# Errors that make a repo or PR unreachable for this cycle only.
TRANSIENT_ERRORS = (GithubException, requests.RequestException)


class CancellationToken:
    """Cooperative stop signal shared between the signal handler and the poller."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to timeout seconds; return True early if cancelled."""
        return self._event.wait(timeout)


@dataclass
class PollResults:
    processed: int = 0
    fixed: int = 0
    skipped: int = 0
    errors: int = 0
    resolved: int = 0

    def add(self, entry: LedgerEntry) -> None:
        self.processed += 1
        if entry.outcome == FIXED:
            self.fixed += 1
        elif entry.is_error:
            self.errors += 1
        else:
            self.skipped += 1
        if entry.resolved:
            self.resolved += 1

    def as_dict(self) -> dict:
        return {
            "processed": self.processed,
            "fixed": self.fixed,
            "skipped": self.skipped,
            "errors": self.errors,
            "resolved": self.resolved,
        }


class Poller:
    def __init__(
        self,
        config: dict,
        github,
        ledger: BaseLedger,
        workspaces: WorkspaceManager,
        executor: FixExecutor,
        resolver: ThreadResolver,
        token: CancellationToken | None = None,
    ):
        self.config = config
        self.github = github
        self.ledger = ledger
        self.workspaces = workspaces
        self.executor = executor
        self.resolver = resolver
        self.token = token or CancellationToken()
        self.bot_login = config.get("bot_login", "")
        self.repos = parse_repos(config)

    # ------------------------------------------------------------------ #
    # Discovery                                                            #
    # ------------------------------------------------------------------ #

    def actionable_comments(self, pr) -> list[ReviewComment]:
        return [c for c in get_review_comments(pr) if is_from_reviewer(c, self.bot_login) and is_actionable(c)]

    def poll_once(self, repo_filter: str | None = None) -> PollResults:
        """Run one full cycle over every configured repository."""
        results = PollResults()

        for owner, repo in self.repos:
            if self.token.cancelled:
                break
            full_name = f"{owner}/{repo}"
            if repo_filter and full_name != repo_filter:
                continue

            logger.info("Checking repo %s", full_name, extra={"repo": full_name})
            try:
                prs = get_pull_requests(get_repo(self.github, owner, repo))
            except TRANSIENT_ERRORS as e:
                logger.error("Failed to list PRs for %s: %s", full_name, e, extra={"repo": full_name})
                continue
            logger.info("Found %d open PR(s)", len(prs), extra={"repo": full_name, "count": len(prs)})

            for pr in prs:
                if self.token.cancelled:
                    break
                self._poll_pull_request(pr, owner, repo, results)

        return results

    def _poll_pull_request(self, pr, owner: str, repo: str, results: PollResults) -> None:
        full_name = f"{owner}/{repo}"
        log_ctx = {"repo": full_name, "pr": pr.number}
        try:
            comments = self.actionable_comments(pr)
        except TRANSIENT_ERRORS as e:
            logger.error("Failed to get PR comments: %s", e, extra=log_ctx)
            return

        pending = []
        for comment in comments:
            if self.ledger.has_processed(comment.id):
                logger.debug("Already processed comment %s", comment.id, extra=log_ctx)
            else:
                pending.append(comment)
        if not pending:
            return
        if is_fork(pr):
            logger.info("Skipping PR from a fork; cannot push to its branch", extra=log_ctx)
            return

        for comment in pending:
            if self.token.cancelled:
                break
            entry = self.process_comment(comment, pr, owner, repo)
            results.add(entry)

    # ------------------------------------------------------------------ #
    # Per-comment pipeline                                                 #
    # ------------------------------------------------------------------ #

    def process_comment(self, comment: ReviewComment, pr, owner: str, repo: str) -> LedgerEntry:
        """Take one comment through the pipeline and record the outcome.

        Does nothing and returns the existing entry if the comment was
        already recorded.
        """
        existing = self.ledger.get(comment.id)
        if existing is not None:
            return existing

        task = classify(comment)
        branch = pr.head.ref
        full_name = f"{owner}/{repo}"
        log_ctx = {"comment_id": comment.id, "repo": full_name, "pr": pr.number, "path": task.path}
        logger.info(
            "Processing comment: %s",
            task.summary,
            extra={**log_ctx, "line": task.line, "priority": task.priority},
        )

        resolved = False
        try:
            outcome = self._fix(task, pr, owner, repo, branch)
        except Exception as e:
            logger.exception("Failed to process comment", extra=log_ctx)
            outcome = FixOutcome(status=ERROR_AGENT_FAILURE, detail=f"{type(e).__name__}: {e}", branch=branch)

        if outcome.fixed:
            # The fix is already pushed; a resolution failure must not change the outcome.
            try:
                resolved = self.resolver.resolve(owner, repo, pr.number, comment.id)
            except Exception:
                logger.exception("Failed to resolve review thread", extra=log_ctx)

        entry = LedgerEntry(
            comment_id=comment.id,
            repo=full_name,
            pr_number=pr.number,
            path=task.path,
            outcome=outcome.status,
            detail=outcome.detail,
            resolved=resolved,
            commit_message=outcome.commit_message,
            branch=outcome.branch or branch,
        )
        self.ledger.record_outcome(entry)
        logger.info("Recorded outcome %s", entry.outcome, extra={**log_ctx, "resolved": resolved})
        return entry

    def _fix(self, task, pr, owner: str, repo: str, branch: str) -> FixOutcome:
        try:
            repo_dir = self.workspaces.ensure(owner, repo)
            self.workspaces.checkout(repo_dir, branch)
        except GitError as e:
            logger.error("Could not prepare workspace: %s", e, extra={"repo": f"{owner}/{repo}", "branch": branch})
            return FixOutcome(status=ERROR_WORKSPACE_FAILURE, detail=str(e), branch=branch)

        try:
            diff = get_unified_diff(pr, max_chars=self.config.get("max_diff_chars"))
        except TRANSIENT_ERRORS as e:
            logger.warning("Failed to get PR diff: %s", e, extra={"repo": f"{owner}/{repo}", "pr": pr.number})
            diff = ""

        return self.executor.apply(repo_dir, task, branch, diff)

    # ------------------------------------------------------------------ #
    # Loop                                                                 #
    # ------------------------------------------------------------------ #

    def run_forever(self, repo_filter: str | None = None) -> None:
        interval = float(self.config.get("poll_interval", 60))
        while not self.token.cancelled:
            try:
                results = self.poll_once(repo_filter)
                if results.processed:
                    logger.info("Poll cycle complete", extra=results.as_dict())
            except Exception:
                logger.exception("Poll cycle failed")
            if self.token.wait(interval):
                break
