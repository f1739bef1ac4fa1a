"""Tests for comment filtering and title/priority/description extraction."""

import pytest

from prmend_core.classifier import (
    DEFAULT_PRIORITY,
    classify,
    extract_description,
    extract_priority,
    extract_title,
    is_actionable,
    is_from_reviewer,
)
from prmend_core.models import ReviewComment

BOT = "chatgpt-codex-connector[bot]"

# Shape of a real comment from the reviewer bot.
BOT_BODY = (
    "**<sub><sub>![P1 Badge](https://img.shields.io/badge/P1-orange?style=flat)</sub></sub>  "
    "Guard against missing session**\n\n"
    "`get_session()` can return `None` when the cookie expired, and the next line "
    "dereferences it.\n\n"
    "Useful? React with 👍 / 👎."
)


def make_comment(body=BOT_BODY, path="src/auth.py", author=BOT, **kwargs):
    return ReviewComment(id=1001, pr_number=7, body=body, path=path, author=author, **kwargs)


class TestActionability:
    def test_inline_bot_comment_is_actionable(self):
        assert is_actionable(make_comment()) is True

    def test_comment_without_path_is_not_actionable(self):
        assert is_actionable(make_comment(path=None)) is False
        assert is_actionable(make_comment(path="")) is False

    @pytest.mark.parametrize(
        "body",
        ["👍", "LGTM", "lgtm, nice work", "  Looks good to me", "APPROVED", "approved with nits"],
    )
    def test_acknowledgements_are_not_actionable(self, body):
        assert is_actionable(make_comment(body=body)) is False

    def test_ack_word_later_in_body_is_still_actionable(self):
        assert is_actionable(make_comment(body="This LGTM except the null check")) is True

    def test_reviewer_identity_is_exact_match(self):
        assert is_from_reviewer(make_comment(), BOT) is True
        assert is_from_reviewer(make_comment(author="octocat"), BOT) is False
        assert is_from_reviewer(make_comment(author="chatgpt-codex-connector"), BOT) is False


class TestExtraction:
    def test_plain_title_and_description(self):
        body = "**Fix null check** Do X.\nUseful? React with 👍"
        assert extract_title(body) == "Fix null check"
        assert extract_description(body) == "Do X."

    def test_badge_and_html_stripped_from_title(self):
        assert extract_title(BOT_BODY) == "Guard against missing session"

    def test_description_excludes_title_and_trailer(self):
        description = extract_description(BOT_BODY)
        assert description.startswith("`get_session()` can return `None`")
        assert "Useful?" not in description
        assert "Guard against" not in description

    def test_no_bold_span_gives_empty_title_and_whole_body(self):
        body = "Rename this variable.\n\nUseful? React with 👍 / 👎."
        assert extract_title(body) == ""
        assert extract_description(body) == "Rename this variable."

    def test_trailer_removed_even_without_preceding_newline(self):
        assert extract_description("**T** Fix it. Useful? React with 👍") == "Fix it."

    def test_everything_after_trailer_is_dropped(self):
        body = "**T**\nBody text\n\nUseful? React with 👍 / 👎.\n<!-- bot metadata -->"
        assert extract_description(body) == "Body text"

    def test_multiline_bold_title(self):
        assert extract_title("**Split\ntitle** rest") == "Split\ntitle"

    def test_priority_from_badge(self):
        assert extract_priority(BOT_BODY) == "P1"
        assert extract_priority("**![P0 Badge](x) Crash**") == "P0"

    def test_priority_defaults_to_middle(self):
        assert DEFAULT_PRIORITY == "P2"
        assert extract_priority("**Some title** with no badge") == "P2"

    def test_bare_p_digit_text_is_not_a_badge(self):
        assert extract_priority("**Title** see P0 incident notes") == "P2"


class TestClassify:
    def test_builds_task_descriptor(self):
        comment = make_comment(line=42, start_line=40, diff_hunk="@@ -1 +1 @@\n-a\n+b")
        task = classify(comment)

        assert task.comment_id == 1001
        assert task.path == "src/auth.py"
        assert task.title == "Guard against missing session"
        assert task.priority == "P1"
        assert task.line == 42
        assert task.start_line == 40
        assert task.diff_hunk.startswith("@@")
        assert "Useful?" not in task.description

    def test_never_raises_on_empty_body(self):
        task = classify(make_comment(body=""))
        assert task.title == ""
        assert task.description == ""
        assert task.priority == "P2"

    def test_summary_falls_back_to_description(self):
        task = classify(make_comment(body="Handle the empty list case before indexing into it, otherwise it raises."))
        assert task.summary == "Handle the empty list case before indexing into it, otherwis"
        assert len(task.summary) == 60
