"""Logging configuration helpers (human + JSON).

This module centralizes lightweight logging setup:
 - Plain human-readable logs to stderr
 - Optional JSON logs to stdout (for piping/collection)
 - Optional file logs

Library modules never print; they emit structured events through
:func:`log_event` on the ``update_siren`` logger and leave handler setup to
the host application or the CLI.

Design goals
 - stdlib logging only
 - Idempotent configuration for tests and repeated calls
 - Logging never breaks an evaluation
"""

from __future__ import annotations
import json
import logging
import sys
from typing import Optional

LOGGER_NAME = "update_siren"

_STRUCTURED_FIELDS = (
    "event",
    "bundle_id",
    "decision",
    "source",
    "version",
    "path",
    "error_type",
)


class JSONFormatter(logging.Formatter):
    """Minimal JSON formatter for structured log collection.

    Emits an object with ``level`` and ``message`` plus any structured fields
    set via ``extra=...`` (see ``_STRUCTURED_FIELDS``).
    """

    def format(self, record):
        payload = {
            "level": record.levelname,
            "message": record.getMessage(),
        }
        for k in _STRUCTURED_FIELDS:
            if hasattr(record, k):
                payload[k] = getattr(record, k)
        return json.dumps(payload)


def configure_logging(
    verbose: bool,
    log_file: Optional[str] = None,
    log_json: bool = False,
    log_level: Optional[str] = None,
) -> None:
    """Configure the root logger according to CLI flags.

    Parameters
    - ``verbose``: When ``True``, sets level to ``DEBUG`` (unless ``log_level``
      overrides). Otherwise defaults to ``WARNING``.
    - ``log_file``: Optional path to tee logs to a file (plain text format).
    - ``log_json``: When ``True``, also emit JSON lines to stdout.
    - ``log_level``: Optional explicit level name (debug, info, warning, error).

    Handlers added by a previous call are removed first, so repeated calls
    never duplicate output.
    """

    if log_level:
        level = {
            "debug": logging.DEBUG,
            "info": logging.INFO,
            "warning": logging.WARNING,
            "error": logging.ERROR,
        }.get(log_level.lower(), logging.WARNING)
    else:
        level = logging.DEBUG if verbose else logging.WARNING

    logger = logging.getLogger()
    logger.setLevel(level)

    for h in list(logger.handlers):
        if getattr(h, "_added_by_configure_logging", False):
            logger.removeHandler(h)
            h.close()

    fmt = "%(levelname)s: %(message)s"
    stream = logging.StreamHandler()
    stream.setFormatter(logging.Formatter(fmt))
    setattr(stream, "_added_by_configure_logging", True)
    logger.addHandler(stream)

    if log_json:
        json_handler = logging.StreamHandler(sys.stdout)
        json_handler.setFormatter(JSONFormatter())
        setattr(json_handler, "_added_by_configure_logging", True)
        logger.addHandler(json_handler)

    if log_file:
        fh = logging.FileHandler(log_file)
        fh.setFormatter(logging.Formatter(fmt))
        setattr(fh, "_added_by_configure_logging", True)
        logger.addHandler(fh)

    for handler in logger.handlers:
        handler.setLevel(level)


def log_event(event: str, level: int = logging.DEBUG, **fields) -> None:
    """Emit a structured event log on the package logger.

    Common ``fields`` include ``bundle_id``, ``decision``, ``source``,
    ``version``, ``path`` and ``error_type``. The function never raises.
    """
    try:
        logging.getLogger(LOGGER_NAME).log(
            level, event, extra={"event": event, **fields}
        )
    except Exception:
        pass


__all__ = ["configure_logging", "log_event", "JSONFormatter", "LOGGER_NAME"]
