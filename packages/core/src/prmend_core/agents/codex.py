from __future__ import annotations

from prmend_core.agents.base import BaseFixAgent


class CodexAgent(BaseFixAgent):
    DEFAULT_BIN = "codex"

    def _command(self) -> list[str]:
        # "-" makes `codex exec` read the prompt from stdin.
        return [self.binary, "exec", "--full-auto", "-"]
