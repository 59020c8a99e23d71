"""Logging setup for the ``persevere`` logger hierarchy.

Library modules log through stdlib loggers (``persevere.executor``,
``persevere.scheduler``, ``persevere.streams``) and never configure
handlers themselves. Applications that want the output call
``configure_logging`` once at startup.

Example:
    >>> configure_logging()                          # from PERSEVERE_LOG_* settings
    >>> configure_logging(level="DEBUG", format="json")
"""

from __future__ import annotations

import json
import logging
import sys
from typing import TYPE_CHECKING, Literal, TextIO

if TYPE_CHECKING:
    from persevere.config import LoggingSettings

ROOT_LOGGER = "persevere"

_TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "ts": self.formatTime(record),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": record.getMessage(),
        }
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(
    settings: LoggingSettings | None = None,
    *,
    level: str | None = None,
    format: Literal["json", "text"] | None = None,
    stream: TextIO | None = None,
) -> logging.Logger:
    """Attach a stream handler to the ``persevere`` logger.

    Explicit arguments override settings. Calling again replaces the
    handler installed by the previous call rather than adding another.

    Returns:
        The configured ``persevere`` logger
    """
    if settings is None:
        from persevere.config import get_settings
        settings = get_settings().logging

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level or settings.level)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.set_name("persevere")
    handler.setFormatter(
        JsonFormatter() if (format or settings.format) == "json" else logging.Formatter(_TEXT_FORMAT)
    )
    for existing in [h for h in logger.handlers if h.get_name() == "persevere"]:
        logger.removeHandler(existing)
    logger.addHandler(handler)
    return logger
