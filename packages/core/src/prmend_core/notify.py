"""Fire-and-forget status notifications.

A notification is a courtesy, never part of the critical path: delivery
failures are logged and swallowed.
"""

from __future__ import annotations

import logging

import requests

logger = logging.getLogger(__name__)

_TELEGRAM_URL = "https://api.telegram.org/bot{token}/sendMessage"
_TIMEOUT = 10


class TelegramNotifier:
    def __init__(self, token: str, chat_id: str | int):
        self._token = token
        self._chat_id = chat_id

    def send(self, text: str) -> bool:
        """Send an HTML-formatted message. Returns False on any failure."""
        try:
            resp = requests.post(
                _TELEGRAM_URL.format(token=self._token),
                json={"chat_id": self._chat_id, "text": text, "parse_mode": "HTML"},
                timeout=_TIMEOUT,
            )
        except requests.RequestException as e:
            logger.warning("Telegram send failed: %s", e)
            return False
        if resp.status_code != 200:
            logger.warning("Telegram API error", extra={"status_code": resp.status_code})
            return False
        return True


def build_notifier(config: dict) -> TelegramNotifier | None:
    """Return a notifier when both chat id and bot token are configured."""
    chat_id = config.get("telegram_chat_id")
    token = config.get("telegram_token")
    if not chat_id:
        return None
    if not token:
        logger.warning("telegram_chat_id is set but PRMEND_TELEGRAM_TOKEN is not; notifications disabled.")
        return None
    return TelegramNotifier(token=token, chat_id=chat_id)


def format_summary(results) -> str:
    return (
        "<b>prmend</b> poll complete\n"
        f"Fixed: {results.fixed} | Skipped: {results.skipped} | Errors: {results.errors}"
    )
