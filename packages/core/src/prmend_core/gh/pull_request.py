from __future__ import annotations

from github import Github

from prmend_core.models import ReviewComment


def get_client(token: str) -> Github:
    return Github(token)


def get_repo(gh: Github, owner: str, repo: str):
    return gh.get_repo(f"{owner}/{repo}")


def get_pull_requests(repo, state: str = "open") -> list:
    # Materialise the paginated list so API errors surface here, not mid-loop.
    return list(repo.get_pulls(state=state))


def get_review_comments(pr) -> list[ReviewComment]:
    """Return the inline review comments on a PR, in API order."""
    return [ReviewComment.from_github(c, pr.number) for c in pr.get_review_comments()]


def is_fork(pr) -> bool:
    """True when the PR head branch lives in another repository."""
    head_repo = getattr(pr.head, "repo", None)
    if head_repo is None:
        # Head repository deleted; nothing to push to.
        return True
    return head_repo.full_name != pr.base.repo.full_name


def get_unified_diff(pr, max_chars: int | None = None) -> str:
    """Assemble a unified diff of the PR from its per-file patches."""
    parts = []
    for f in pr.get_files():
        old = f.previous_filename or f.filename
        parts.append(f"diff --git a/{old} b/{f.filename}")
        parts.append(f"--- a/{old}" if f.status != "added" else "--- /dev/null")
        parts.append(f"+++ b/{f.filename}" if f.status != "removed" else "+++ /dev/null")
        if f.patch:
            parts.append(f.patch)
    diff = "\n".join(parts)
    if max_chars and len(diff) > max_chars:
        diff = diff[:max_chars] + "\n... [diff truncated]"
    return diff
