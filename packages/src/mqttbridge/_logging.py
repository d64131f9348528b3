"""Log formatting and root logger configuration.

The bridge normally runs under systemd or in a container, where
journald and log collectors parse structured output far more reliably
than free text.  :class:`JsonFormatter` therefore emits one JSON object
per record (JSON Lines).  The ``text`` format is meant for running the
bridge by hand in a terminal.

Each JSON line carries ``service`` and ``version`` so lines from
several bridges on one host can be told apart.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from typing import Any

from mqttbridge._settings import LoggingSettings

_MEGABYTE = 1024 * 1024

_TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class JsonFormatter(logging.Formatter):
    """Emit log records as single-line JSON objects.

    Fields: ``timestamp`` (UTC, ISO 8601), ``level``, ``logger``,
    ``message``, ``service``, and when available ``version``,
    ``exception`` and ``stack_info``.

    Args:
        service: Name included in every line.
        version: Version string, omitted from output when empty.
    """

    def __init__(
        self,
        *,
        service: str = "",
        version: str = "",
    ) -> None:
        super().__init__()
        self._service = service
        self._version = version

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self._service,
        }

        if self._version:
            entry["version"] = self._version

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            entry["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(entry, default=str)


def configure_logging(
    settings: LoggingSettings,
    *,
    service: str = "mqttbridge",
    version: str = "",
) -> None:
    """Configure the root logger from *settings*.

    Existing root handlers are removed first, so calling this twice
    (once with defaults before the config file is read, once with the
    loaded settings) leaves exactly one set of handlers installed.

    A stderr stream handler is always installed.  When
    ``settings.file`` is set a :class:`RotatingFileHandler` is added.
    """
    root = logging.getLogger()

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    if settings.format == "json":
        formatter: logging.Formatter = JsonFormatter(service=service, version=version)
    else:
        formatter = logging.Formatter(_TEXT_FORMAT)

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    if settings.file is not None:
        file_handler = RotatingFileHandler(
            settings.file,
            maxBytes=settings.max_file_size_mb * _MEGABYTE,
            backupCount=settings.backup_count,
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    root.setLevel(settings.level)
