"""Tests for Telegram notifications."""

from unittest.mock import MagicMock

import requests

from prmend_core.notify import TelegramNotifier, build_notifier, format_summary
from prmend_core.orchestrator import PollResults


class TestTelegramNotifier:
    def test_posts_html_message(self, mocker):
        post = mocker.patch("prmend_core.notify.requests.post", return_value=MagicMock(status_code=200))

        assert TelegramNotifier("123:abc", "42").send("<b>hi</b>") is True

        url = post.call_args.args[0]
        assert url == "https://api.telegram.org/bot123:abc/sendMessage"
        assert post.call_args.kwargs["json"] == {"chat_id": "42", "text": "<b>hi</b>", "parse_mode": "HTML"}
        assert post.call_args.kwargs["timeout"] == 10

    def test_api_error_returns_false(self, mocker):
        mocker.patch("prmend_core.notify.requests.post", return_value=MagicMock(status_code=401))
        assert TelegramNotifier("bad", "42").send("x") is False

    def test_network_error_is_swallowed(self, mocker):
        mocker.patch("prmend_core.notify.requests.post", side_effect=requests.Timeout("slow"))
        assert TelegramNotifier("123:abc", "42").send("x") is False


class TestBuildNotifier:
    def test_disabled_without_chat_id(self):
        assert build_notifier({"telegram_token": "123:abc"}) is None

    def test_disabled_without_token(self):
        assert build_notifier({"telegram_chat_id": "42"}) is None

    def test_enabled_with_both(self):
        assert isinstance(build_notifier({"telegram_chat_id": "42", "telegram_token": "123:abc"}), TelegramNotifier)


def test_format_summary():
    results = PollResults(processed=4, fixed=2, skipped=1, errors=1)
    assert format_summary(results) == "<b>prmend</b> poll complete\nFixed: 2 | Skipped: 1 | Errors: 1"
