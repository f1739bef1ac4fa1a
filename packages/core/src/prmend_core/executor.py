"""Apply one fix task to a prepared workspace.

The only step in the pipeline that changes shared remote state: a successful
run ends with a real push to the pull request branch.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from prmend_core.agents import AgentError, AgentTimeout
from prmend_core.models import (
    ERROR_AGENT_FAILURE,
    FIXED,
    SKIPPED_FILE_NOT_FOUND,
    SKIPPED_NO_CHANGES,
    FixOutcome,
    TaskDescriptor,
)
from prmend_core.workspace import Git, GitError

if TYPE_CHECKING:
    from prmend_core.agents import BaseFixAgent

logger = logging.getLogger(__name__)

COMMIT_PREFIX = "fix: address review feedback: "


def commit_message_for(task: TaskDescriptor) -> str:
    return COMMIT_PREFIX + task.summary


def _target_file(workspace: Path, rel_path: str) -> Path | None:
    """Resolve rel_path inside workspace; None if missing or outside it."""
    root = workspace.resolve()
    target = (root / rel_path).resolve()
    if target != root and root not in target.parents:
        return None
    return target if target.is_file() else None


class FixExecutor:
    def __init__(self, agent: BaseFixAgent):
        self.agent = agent

    def apply(self, workspace: Path, task: TaskDescriptor, branch: str, diff_context: str = "") -> FixOutcome:
        """Run the agent for task, then commit and push whatever it changed.

        The workspace must already be checked out at origin/<branch>.
        """
        workspace = Path(workspace)
        log_ctx = {"comment_id": task.comment_id, "path": task.path, "branch": branch}

        if _target_file(workspace, task.path) is None:
            logger.warning("File not found in workspace: %s", task.path, extra=log_ctx)
            return FixOutcome(status=SKIPPED_FILE_NOT_FOUND, detail=task.path, branch=branch)

        prompt = self.agent.build_prompt(task, diff_context)
        try:
            result = self.agent.run(prompt, workspace)
        except AgentTimeout as e:
            logger.error("Fix agent timed out: %s", e, extra=log_ctx)
            return FixOutcome(status=ERROR_AGENT_FAILURE, detail=str(e), branch=branch)
        except AgentError as e:
            logger.error("Fix agent failed: %s", e, extra=log_ctx)
            return FixOutcome(status=ERROR_AGENT_FAILURE, detail=str(e), branch=branch)
        logger.info("Fix agent completed (%d chars of output)", len(result.output), extra=log_ctx)

        git = Git(workspace)
        try:
            if not git.has_changes():
                logger.warning("Fix agent made no file changes", extra=log_ctx)
                return FixOutcome(status=SKIPPED_NO_CHANGES, branch=branch)

            message = commit_message_for(task)
            git("add", "-A")
            git("commit", "-m", message)
            # A failure below leaves a local commit that was never pushed; the
            # next checkout() hard-resets it away.
            git("push", "origin", branch)
        except GitError as e:
            logger.error("Could not commit/push fix: %s", e, extra=log_ctx)
            return FixOutcome(status=ERROR_AGENT_FAILURE, detail=str(e), branch=branch)

        logger.info("Pushed fix: %s", message, extra=log_ctx)
        return FixOutcome(status=FIXED, commit_message=message, branch=branch)
