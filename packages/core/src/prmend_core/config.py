import os
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG: dict = {
    "repos": [],  # "owner/name" strings or {"owner": ..., "repo": ...} mappings
    "bot_login": "chatgpt-codex-connector[bot]",
    "poll_interval": 60,  # seconds between poll cycles
    "clone_base": "/tmp/prmend",
    "clone_protocol": "ssh",  # "ssh" | "https"
    "agent": "claude",  # "claude" | "codex"
    "agent_bin": None,  # None = use the agent's default executable name
    "agent_timeout": 300,  # seconds before the fix agent is terminated
    "max_diff_chars": 20000,
    "ledger": "json",  # "json" | "sqlite"
    "ledger_path": None,  # None = ~/.prmend/ledger.json or ~/.prmend/ledger.db
    "telegram_chat_id": None,
}

_DEFAULT_LEDGER_DIR = Path("~/.prmend")


def load_config(config_path: str = ".prmend.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .prmend.yml in the current directory
      3. CLI argument overrides
    """
    config = {**DEFAULT_CONFIG, "repos": list(DEFAULT_CONFIG["repos"])}

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            raise ValueError(f"{config_path} must contain a mapping at the top level.")
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    if not config.get("ledger_path"):
        filename = "ledger.db" if config.get("ledger") == "sqlite" else "ledger.json"
        config["ledger_path"] = str(_DEFAULT_LEDGER_DIR / filename)

    # Resolve credentials from environment variables
    config["github_token"] = os.environ.get("GITHUB_TOKEN")
    config["telegram_token"] = os.environ.get("PRMEND_TELEGRAM_TOKEN")

    return config


def parse_repos(config: dict) -> list[tuple[str, str]]:
    """
    Normalise the configured repository list to (owner, repo) pairs.

    Accepts "owner/name" strings and {"owner": ..., "repo": ...} mappings.
    Raises ValueError on anything else so a typo fails at startup, not mid-poll.
    """
    repos: list[tuple[str, str]] = []
    for item in config.get("repos") or []:
        if isinstance(item, str):
            owner, sep, name = item.strip().partition("/")
        elif isinstance(item, dict):
            owner, name = str(item.get("owner") or ""), str(item.get("repo") or "")
            sep = "/"
        else:
            raise ValueError(f"Invalid repository entry: {item!r}")
        if not sep or not owner or not name or "/" in name:
            raise ValueError(f"Invalid repository entry: {item!r}. Expected 'owner/name'.")
        repos.append((owner, name))
    return repos
