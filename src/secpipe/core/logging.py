"""Logging setup for secpipe.

All modules log through ``get_logger(__name__)`` under the ``secpipe``
namespace. Handlers installed by ``configure_logging`` carry a masking filter
so that values bound by the credential vault never reach log output.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Callable, Optional

ROOT_LOGGER_NAME = "secpipe"

_TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the secpipe namespace."""
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


class JSONFormatter(logging.Formatter):
    """One JSON object per line with timestamp, level, logger and message."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        elif record.exc_text:
            log_entry["exception"] = record.exc_text
        return json.dumps(log_entry)


class SecretMaskingFilter(logging.Filter):
    """Rewrites each record's message through a masking function.

    The masking function is normally ``CredentialVault.mask``.
    """

    def __init__(self, mask: Callable[[str], str]) -> None:
        super().__init__()
        self._mask = mask

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = self._mask(message)
        if masked != message:
            record.msg = masked
            record.args = None
        if record.exc_info and record.exc_info[0] is not None:
            record.exc_text = self._mask(
                logging.Formatter().formatException(record.exc_info)
            )
            record.exc_info = None
        return True


def configure_logging(
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
    log_format: str = "text",
    mask: Optional[Callable[[str], str]] = None,
) -> None:
    """Configure the secpipe logger.

    Args:
        debug: Log at DEBUG level.
        verbose: Log at INFO level.
        quiet: Only log errors.
        log_format: "json" for NDJSON output, anything else for text.
        mask: Optional masking function applied to every record.
    """
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers.clear()
    logger.propagate = False

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))
    if mask is not None:
        handler.addFilter(SecretMaskingFilter(mask))

    logger.addHandler(handler)


def install_mask(mask: Callable[[str], str]) -> None:
    """Attach a masking filter to every handler of the secpipe logger."""
    for handler in logging.getLogger(ROOT_LOGGER_NAME).handlers:
        handler.addFilter(SecretMaskingFilter(mask))
