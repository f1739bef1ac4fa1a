from __future__ import annotations

from prmend_core.agents.base import AgentError, AgentResult, AgentTimeout, BaseFixAgent
from prmend_core.agents.claude import ClaudeCodeAgent
from prmend_core.agents.codex import CodexAgent

_AGENTS = {
    "claude": ClaudeCodeAgent,
    "codex": CodexAgent,
}

__all__ = [
    "AgentError",
    "AgentResult",
    "AgentTimeout",
    "BaseFixAgent",
    "ClaudeCodeAgent",
    "CodexAgent",
    "get_agent",
]


def get_agent(config: dict) -> BaseFixAgent:
    name = config.get("agent", "claude")
    try:
        cls = _AGENTS[name]
    except KeyError:
        raise ValueError(f"Unknown fix agent: {name!r}. Choose one of: {', '.join(sorted(_AGENTS))}.")
    return cls(binary=config.get("agent_bin"), timeout=int(config.get("agent_timeout", 300)))
