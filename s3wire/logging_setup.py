"""Logging for the protocol layer.

The library only ever logs through the ``s3wire`` logger and never
installs handlers on import; :func:`setup_logging` is for applications
(and the CLI) that want s3wire's own console/JSON output.

Every record may carry two context fields: the wire ``operation`` and
the multipart ``upload_id``. :func:`get_logger` attaches them.

Usage::

    from s3wire.logging_setup import setup_logging, get_logger

    setup_logging(level="DEBUG")
    logger = get_logger(operation="ListParts", upload_id="abc")
    logger.info("Part recorded")
"""

from __future__ import annotations

import json
import logging
import os
import sys
from typing import Any, MutableMapping

from s3wire.config import DEFAULT_LOG_LEVEL

LOGGER_NAME = "s3wire"

CONTEXT_FIELDS = ("operation", "upload_id")

logging.getLogger(LOGGER_NAME).addHandler(logging.NullHandler())


def _context(record: logging.LogRecord) -> dict[str, str]:
    return {
        name: getattr(record, name)
        for name in CONTEXT_FIELDS
        if getattr(record, name, None)
    }


class ProtocolFormatter(logging.Formatter):
    """Single-line console format; the context is shown as ``[op:upload]``.

    Upload ids are long opaque strings, so only their first 12
    characters are shown.
    """

    LEVEL_COLORS: dict[int, str] = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, *, use_color: bool = True) -> None:
        super().__init__(datefmt="%Y-%m-%d %H:%M:%S")
        self.use_color = use_color and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        context = _context(record)
        tag = ":".join(
            filter(None, [
                context.get("operation"),
                context.get("upload_id", "")[:12],
            ])
        )
        level = f"{record.levelname:8s}"
        if self.use_color and record.levelno in self.LEVEL_COLORS:
            level = f"{self.LEVEL_COLORS[record.levelno]}{level}{self.RESET}"

        line = (
            f"{self.formatTime(record, self.datefmt)}.{int(record.msecs):03d} "
            f"{level} {f'[{tag}]' if tag else '':24s} {record.getMessage()}"
        )
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class JsonFormatter(logging.Formatter):
    """One JSON object per line; absent context keys are omitted."""

    KEYS = {"operation": "op", "upload_id": "upload"}

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for name, value in _context(record).items():
            data[self.KEYS[name]] = value
        if record.exc_info:
            data["exc"] = self.formatException(record.exc_info)
        return json.dumps(data)


class ContextLogger(logging.LoggerAdapter):
    """Adapter that stamps its context onto every record it emits."""

    def process(
        self,
        msg: str,
        kwargs: MutableMapping[str, Any],
    ) -> tuple[str, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs

    def bind(self, **context: str) -> ContextLogger:
        """Return a logger with ``context`` added to this one's."""
        return ContextLogger(self.logger, {**self.extra, **context})


def setup_logging(
    *,
    level: str | None = None,
    log_file: str | None = None,
    json_output: bool | None = None,
) -> logging.Logger:
    """Install console (and optionally file) handlers on the s3wire logger.

    Calling it again replaces the handlers from the previous call.

    Args:
        level: Log level name; ``S3WIRE_LOG_LEVEL`` when omitted.
        log_file: Also write to this file; ``S3WIRE_LOG_FILE`` when omitted.
        json_output: JSON lines instead of text; ``S3WIRE_LOG_JSON=1``
            when omitted.

    Returns:
        The configured ``s3wire`` logger.
    """
    level = level or os.environ.get("S3WIRE_LOG_LEVEL", DEFAULT_LOG_LEVEL)
    log_file = log_file or os.environ.get("S3WIRE_LOG_FILE")
    if json_output is None:
        json_output = os.environ.get("S3WIRE_LOG_JSON", "0") == "1"

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    for handler in handlers:
        if json_output:
            handler.setFormatter(JsonFormatter())
        else:
            # Colors only make sense on a terminal
            handler.setFormatter(
                ProtocolFormatter(
                    use_color=isinstance(handler, logging.StreamHandler)
                    and not isinstance(handler, logging.FileHandler),
                )
            )

    logger = logging.getLogger(LOGGER_NAME)
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()
    for handler in handlers:
        logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.propagate = False
    return logger


def get_logger(
    *,
    operation: str | None = None,
    upload_id: str | None = None,
) -> ContextLogger:
    """Return the s3wire logger with optional context attached.

    Never installs handlers, so applications embedding the library keep
    control of output.
    """
    context = {"operation": operation, "upload_id": upload_id}
    return ContextLogger(
        logging.getLogger(LOGGER_NAME),
        {name: value for name, value in context.items() if value is not None},
    )
