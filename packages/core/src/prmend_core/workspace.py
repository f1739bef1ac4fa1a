"""Local working copies of the watched repositories.

One directory per (owner, repo) under `clone_base`, reused across poll
cycles. Nothing about its state is trusted between runs: a previous run may
have died after the agent edited files, or after a local commit that never
made it to the remote. checkout() therefore discards everything local and
pins the branch to the remote tip before each pipeline run.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

GIT_TIMEOUT = 120  # seconds; clone of a large repo is the slowest call

_CLONE_URLS = {
    "ssh": "git@github.com:{owner}/{repo}.git",
    "https": "https://github.com/{owner}/{repo}.git",
}


class GitError(RuntimeError):
    """A git command failed, timed out or could not be started."""

    def __init__(self, args: tuple[str, ...], returncode: int | None, stderr: str):
        self.args_ = args
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"git {' '.join(args)} failed (rc={returncode}): {stderr}")


@dataclass(frozen=True)
class GitResult:
    code: int
    out: str
    err: str


class Git:
    """Runs git commands inside one working directory.

    Each command runs in its own session so a Ctrl-C aimed at the poller
    does not kill a clone or push half-way; the poller stops at the next
    iteration boundary instead.
    """

    def __init__(self, cwd: Path, timeout: int = GIT_TIMEOUT):
        self.cwd = Path(cwd)
        self.timeout = timeout

    def __call__(self, *args: str) -> str:
        """Run `git <args>` and return stripped stdout. Raises GitError on failure."""
        result = self.run(*args)
        if result.code != 0:
            raise GitError(args, result.code, result.err or result.out)
        return result.out

    def run(self, *args: str) -> GitResult:
        """Run `git <args>` and return the result without checking the exit code."""
        logger.debug("git %s", " ".join(args), extra={"cwd": str(self.cwd)})
        try:
            res = subprocess.run(
                ["git", *args],
                cwd=self.cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                start_new_session=True,
            )
        except subprocess.TimeoutExpired:
            raise GitError(args, None, f"timed out after {self.timeout}s")
        except OSError as e:
            raise GitError(args, None, str(e)) from e
        return GitResult(code=res.returncode, out=(res.stdout or "").strip(), err=(res.stderr or "").strip())

    def has_changes(self) -> bool:
        return bool(self("status", "--porcelain"))


class WorkspaceManager:
    """Owns the clone directories under clone_base."""

    def __init__(self, clone_base: str | Path, protocol: str = "ssh"):
        if protocol not in _CLONE_URLS:
            raise ValueError(f"Unknown clone protocol: {protocol!r}. Choose 'ssh' or 'https'.")
        self.clone_base = Path(clone_base).expanduser()
        self.protocol = protocol

    def path_for(self, owner: str, repo: str) -> Path:
        return self.clone_base / f"{owner}--{repo}"

    def clone_url(self, owner: str, repo: str) -> str:
        return _CLONE_URLS[self.protocol].format(owner=owner, repo=repo)

    def ensure(self, owner: str, repo: str) -> Path:
        """Return the clone for owner/repo, cloning or fetching as needed."""
        repo_dir = self.path_for(owner, repo)
        if not (repo_dir / ".git").exists():
            self.clone_base.mkdir(parents=True, exist_ok=True)
            logger.info("Cloning %s/%s", owner, repo, extra={"owner": owner, "repo": repo, "to": str(repo_dir)})
            Git(self.clone_base)("clone", self.clone_url(owner, repo), str(repo_dir))
        else:
            Git(repo_dir)("fetch", "--all", "--prune")
        return repo_dir

    def checkout(self, repo_dir: Path, branch: str) -> None:
        """Discard local state and put `branch` at origin/<branch>."""
        git = Git(repo_dir)
        git("reset", "--hard")
        git("clean", "-fd")
        try:
            git("checkout", branch)
        except GitError:
            logger.debug("Branch %s not local, creating tracking branch", branch)
            git("checkout", "-b", branch, f"origin/{branch}")
        git("reset", "--hard", f"origin/{branch}")
