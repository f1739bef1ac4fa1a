"""Base fix agent implementing the Template Method pattern.

Every agent shares the same invocation contract:
    run() → _command()               ← only this differs per agent
          → subprocess with the prompt on stdin, stdout captured
          → hard deadline: SIGTERM to the process group, short grace, then SIGKILL

Subclasses implement one thing only: _command(), the argv that starts the
agent in non-interactive mode reading its instructions from stdin.

The agent edits files in the working directory as a side effect. Whether it
actually changed anything is decided afterwards from `git status`, never
from its output.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from prmend_core.models import TaskDescriptor

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 300
_KILL_GRACE_SECONDS = 10


class AgentError(RuntimeError):
    """The agent could not be started or exited unsuccessfully."""


class AgentTimeout(AgentError):
    """The agent exceeded its deadline and was terminated."""


@dataclass(frozen=True)
class AgentResult:
    returncode: int
    output: str


class BaseFixAgent(ABC):
    DEFAULT_BIN: str = ""
    KILL_GRACE_SECONDS: int = _KILL_GRACE_SECONDS

    def __init__(self, binary: str | None = None, timeout: int = _DEFAULT_TIMEOUT):
        self.binary = binary or self.DEFAULT_BIN
        self.timeout = timeout

    @property
    def name(self) -> str:
        return self.__class__.__name__

    # ------------------------------------------------------------------ #
    # Abstract: implement in each agent                                   #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _command(self) -> list[str]:
        """Return the argv that runs the agent non-interactively on stdin."""

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def version_command(self) -> list[str]:
        return [self.binary, "--version"]

    def build_prompt(self, task: TaskDescriptor, diff_context: str = "") -> str:
        """Build the instruction payload for one review comment.

        Deterministic for a given task and diff so reruns are comparable.
        """
        diff_section = f"\nPull request diff for context:\n{diff_context}\n" if diff_context else ""
        return f"""You MUST edit the file "{task.path}" to fix the code review issue described below. \
Use your edit tool to make the change. Do NOT just describe the fix. Actually edit the file.

Review comment title: {task.title or "N/A"}
Priority: {task.priority}
File: {task.path}
Line: {task.line or "N/A"}
Start line: {task.start_line or "N/A"}

Review comment:
{task.description}

Diff hunk for context:
{task.diff_hunk or "N/A"}
{diff_section}
INSTRUCTIONS:
1. Read the file "{task.path}" if needed
2. Make the minimal, focused fix for this review comment
3. Do NOT commit, push, or make unrelated changes
4. Do NOT just explain what to do. You MUST edit the file"""

    def run(self, prompt: str, cwd: str | Path) -> AgentResult:
        """Run the agent in cwd with prompt on stdin, enforcing self.timeout.

        Raises AgentTimeout when the deadline passes and AgentError on any
        other failure. The process runs in its own session so a terminal
        Ctrl-C reaches the poller but not the agent mid-edit.
        """
        argv = self._command()
        logger.debug("Starting %s: %s", self.name, " ".join(argv), extra={"cwd": str(cwd)})
        try:
            proc = subprocess.Popen(
                argv,
                cwd=str(cwd),
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                start_new_session=True,
            )
        except OSError as e:
            raise AgentError(f"could not start {argv[0]}: {e}") from e

        try:
            stdout, stderr = proc.communicate(input=prompt, timeout=self.timeout)
        except subprocess.TimeoutExpired:
            self._terminate(proc)
            raise AgentTimeout(f"agent timed out after {self.timeout}s")

        # Helpers the agent left running must not keep editing the workspace.
        self._signal_group(proc, signal.SIGKILL)

        if proc.returncode != 0:
            tail = (stderr or "").strip()[-500:]
            raise AgentError(f"agent exited with code {proc.returncode}" + (f": {tail}" if tail else ""))
        return AgentResult(returncode=proc.returncode, output=(stdout or "").strip())

    def _signal_group(self, proc: subprocess.Popen, sig: int) -> None:
        # The agent leads its own session, so its pgid is its pid. Helpers it
        # spawned (tool shells, servers) share the group and the stdout pipe.
        try:
            os.killpg(proc.pid, sig)
        except (ProcessLookupError, PermissionError):
            pass

    def _terminate(self, proc: subprocess.Popen) -> None:
        self._signal_group(proc, signal.SIGTERM)
        try:
            proc.communicate(timeout=self.KILL_GRACE_SECONDS)
            return
        except subprocess.TimeoutExpired:
            logger.warning("%s process group still running after SIGTERM, killing it", self.name)
        self._signal_group(proc, signal.SIGKILL)
        try:
            proc.communicate(timeout=self.KILL_GRACE_SECONDS)
        except subprocess.TimeoutExpired:
            # Something outside the group still holds the pipes; stop waiting on it.
            logger.error("%s output pipes still open after SIGKILL, abandoning them", self.name)
            proc.kill()
            for pipe in (proc.stdin, proc.stdout, proc.stderr):
                if pipe is not None:
                    pipe.close()
            proc.wait(timeout=self.KILL_GRACE_SECONDS)
