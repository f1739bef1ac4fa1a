"""Turn automated review comments into fix tasks.

Comment body grammar produced by the reviewer bot:

    **<sub><sub>![P1 Badge](https://img.shields.io/...)</sub></sub>  Title text**

    Free-form description of the problem, possibly several paragraphs.

    Useful? React with 👍 / 👎.

- Title: the first bold span, with HTML tags and image badges removed.
- Priority: the badge alt text `P<digit>`; absent means P2.
- Description: everything after the first bold span, minus the
  "Useful? React with" call-to-action trailer.
"""

from __future__ import annotations

import re

from prmend_core.models import ReviewComment, TaskDescriptor

DEFAULT_PRIORITY = "P2"

_ACK_RE = re.compile(r"^\s*(👍|LGTM|Looks good|Approved)", re.IGNORECASE)
_BOLD_RE = re.compile(r"\*\*(.+?)\*\*", re.DOTALL)
_HTML_TAG_RE = re.compile(r"<[^>]+>")
_IMAGE_RE = re.compile(r"!\[[^\]]*\]\([^)]*\)")
_PRIORITY_RE = re.compile(r"!\[P(\d)")
_TRAILER_RE = re.compile(r"\n*Useful\?\s*React with.*", re.DOTALL)


def is_from_reviewer(comment: ReviewComment, bot_login: str) -> bool:
    return comment.author == bot_login


def is_actionable(comment: ReviewComment) -> bool:
    """Return False for summary comments (no file) and plain acknowledgements."""
    if not comment.path:
        return False
    if _ACK_RE.match(comment.body or ""):
        return False
    return True


def extract_title(body: str) -> str:
    match = _BOLD_RE.search(body)
    if not match:
        return ""
    title = _HTML_TAG_RE.sub("", match.group(1))
    title = _IMAGE_RE.sub("", title)
    return title.strip()


def extract_description(body: str) -> str:
    match = _BOLD_RE.search(body)
    description = body[match.end() :] if match else body
    return _TRAILER_RE.sub("", description.strip()).strip()


def extract_priority(body: str) -> str:
    match = _PRIORITY_RE.search(body)
    return f"P{match.group(1)}" if match else DEFAULT_PRIORITY


def classify(comment: ReviewComment) -> TaskDescriptor:
    """Build a TaskDescriptor. Never raises; filter with is_actionable() first."""
    body = comment.body or ""
    return TaskDescriptor(
        comment_id=comment.id,
        path=comment.path or "",
        title=extract_title(body),
        priority=extract_priority(body),
        description=extract_description(body),
        line=comment.line,
        start_line=comment.start_line,
        diff_hunk=comment.diff_hunk,
    )
