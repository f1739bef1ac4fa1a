"""Logging setup for the CLI.

Library modules only ever call logging.getLogger(__name__) and pass context
through `extra=`. This module decides how those records look: a rich console
handler for interactive use, or one JSON object per line for service logs.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from rich.console import Console
from rich.logging import RichHandler

# Attributes every LogRecord has; anything else came in through `extra=`.
_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


def _extras(record: logging.LogRecord) -> dict:
    return {k: v for k, v in vars(record).items() if k not in _RESERVED}


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
            **_extras(record),
        }
        if record.exc_info:
            entry["error"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ContextRichHandler(RichHandler):
    """RichHandler that appends `extra=` context as key=value pairs."""

    def render_message(self, record: logging.LogRecord, message: str):
        extras = _extras(record)
        if extras:
            message = f"{message}  " + " ".join(f"{k}={v}" for k, v in extras.items())
        return super().render_message(record, message)


def configure_logging(fmt: str = "rich", verbose: bool = False) -> None:
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    if fmt == "json":
        handler: logging.Handler = logging.StreamHandler()
        handler.setFormatter(JSONFormatter())
    else:
        handler = ContextRichHandler(console=Console(stderr=True), show_path=False, markup=False)

    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    # PyGithub and urllib3 are chatty at DEBUG; keep them at WARNING.
    for noisy in ("github", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
