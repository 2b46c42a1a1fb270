"""Structured logging helpers for the mockup server."""

from __future__ import annotations

import logging
import os
import sys
from enum import Enum
from io import StringIO
from typing import Any

import structlog
from rich.console import Console
from rich.text import Text

LOGGER_NAME = "mockup_server"
LOG_FORMAT_ENV = "CONSOLE_OUTPUT_FORMAT"

_HIDDEN_KEYS = ("color_message", "stack", "exception")


class LogFormat(str, Enum):
    CONSOLE = "console"
    PLAIN = "plain"
    JSON = "json"


# Values accepted from the environment; "auto" and "rich" are the colored console.
_ENV_LOG_FORMATS = {
    "auto": LogFormat.CONSOLE,
    "rich": LogFormat.CONSOLE,
    "console": LogFormat.CONSOLE,
    "plain": LogFormat.PLAIN,
    "json": LogFormat.JSON,
}


def select_log_format(option: LogFormat | None = None) -> LogFormat:
    """An explicit option wins, then $CONSOLE_OUTPUT_FORMAT, then colored console output."""

    if option is not None:
        return LogFormat(option)
    env_value = os.environ.get(LOG_FORMAT_ENV, "").strip().lower()
    return _ENV_LOG_FORMATS.get(env_value, LogFormat.CONSOLE)


class RichConsoleRenderer:
    """structlog renderer printing one colored line per event with rich."""

    def __init__(self, width: int = 200) -> None:
        self.width = width
        self.level_styles = {
            "debug": "dim cyan",
            "info": "cyan",
            "warning": "yellow",
            "error": "bold red",
            "critical": "bold white on red",
        }

    def __call__(self, logger: Any, name: str, event_dict: dict[str, Any]) -> str:
        timestamp = event_dict.pop("timestamp", "")
        level = event_dict.pop("level", "info")
        event = str(event_dict.pop("event", ""))
        exception = event_dict.pop("exception", None)

        text = Text()
        text.append(timestamp, style="dim white")
        text.append(" ")
        text.append(f"[{level:<8}]", style=self.level_styles.get(level, "white"))
        text.append(" ")
        text.append(event, style="bold white")

        items = [(key, value) for key, value in sorted(event_dict.items()) if key not in _HIDDEN_KEYS]
        if items:
            text.append(" " * max(1, 24 - len(event)))
        for index, (key, value) in enumerate(items):
            text.append(f"{key}=", style="dim white")
            text.append(str(value), style="bright_cyan")
            if index < len(items) - 1:
                text.append(" ")
        if exception:
            text.append("\n")
            text.append(str(exception), style="red")

        buffer = StringIO()
        console = Console(file=buffer, force_terminal=True, width=self.width, legacy_windows=False)
        console.print(text, end="")
        return buffer.getvalue()


def configure_logging(log_level: str, log_format: LogFormat = LogFormat.CONSOLE) -> structlog.stdlib.BoundLogger:
    """Configure structlog for console, plain or JSON output and return the server logger."""

    log_format = LogFormat(log_format)
    normalized_level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=normalized_level,
        stream=sys.stdout,
        format="%(message)s",
        force=True,
    )

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="%H:%M:%S.%f", key="timestamp"),
        structlog.processors.format_exc_info,
    ]

    if log_format is LogFormat.CONSOLE:
        processors.append(RichConsoleRenderer())
    elif log_format is LogFormat.PLAIN:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(normalized_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    return structlog.get_logger(LOGGER_NAME)
