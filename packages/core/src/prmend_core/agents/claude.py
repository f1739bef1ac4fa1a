from __future__ import annotations

from prmend_core.agents.base import BaseFixAgent


class ClaudeCodeAgent(BaseFixAgent):
    DEFAULT_BIN = "claude"

    def _command(self) -> list[str]:
        # -p reads the prompt from stdin and exits when done; permissions are
        # skipped because nobody is around to approve edits in a poll loop.
        return [self.binary, "-p", "--dangerously-skip-permissions"]
