"""Startup checks: fail fast before the first poll if the environment is broken.

Each check either returns a short description for the startup log or raises
PreflightError. The run command turns PreflightError into exit status 1, so
a missing tool or a bad token never shows up later as a per-comment error
written permanently to the ledger.
"""

from __future__ import annotations

import logging
import os
import subprocess

import requests
from github import Github, GithubException

logger = logging.getLogger(__name__)

_VERSION_TIMEOUT = 10


class PreflightError(RuntimeError):
    pass


def resolve_github_token() -> str | None:
    """Return a GitHub token or None if no valid source is available.

    Resolution order (stops at first success):
      1. GITHUB_TOKEN environment variable
      2. `gh auth token`, the GitHub CLI session stored by `gh auth login`

    Never raises.
    """
    token = os.environ.get("GITHUB_TOKEN")
    if token:
        return token

    try:
        result = subprocess.run(["gh", "auth", "token"], capture_output=True, text=True, timeout=5)
        if result.returncode == 0:
            gh_token = result.stdout.strip()
            if gh_token:
                logger.debug("Resolved GitHub token via gh CLI session.")
                return gh_token
    except (FileNotFoundError, subprocess.TimeoutExpired):
        pass

    return None


def check_executable(argv: list[str]) -> str:
    """Run `<tool> --version` and return the first line of its output."""
    try:
        result = subprocess.run(argv, capture_output=True, text=True, timeout=_VERSION_TIMEOUT)
    except (OSError, subprocess.TimeoutExpired) as e:
        raise PreflightError(f"{argv[0]} is not available: {e}") from e
    if result.returncode != 0:
        raise PreflightError(f"{' '.join(argv)} exited with code {result.returncode}")
    lines = (result.stdout or result.stderr or "").strip().splitlines()
    return lines[0] if lines else ""


def check_github(gh: Github) -> str:
    """Verify the token is accepted and return the authenticated login."""
    try:
        return gh.get_user().login
    except (GithubException, requests.RequestException) as e:
        raise PreflightError(f"GitHub token rejected: {e}") from e


def run_preflight(gh: Github, agent) -> None:
    git_version = check_executable(["git", "--version"])
    logger.info("Preflight: git", extra={"version": git_version})
    agent_version = check_executable(agent.version_command())
    logger.info("Preflight: %s", agent.binary, extra={"version": agent_version})
    login = check_github(gh)
    logger.info("Preflight: GitHub auth OK", extra={"login": login})
