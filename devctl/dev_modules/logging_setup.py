"""Logging configuration for devctl.

Debug log goes to <state dir>/devctl.log, truncated to the
last _MAX_LOG_LINES lines at startup. --verbose mirrors log
records to stderr. Failing to set up the log file never
aborts the command.
"""
from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

LOGGER_NAME = "devctl"
LOG_FILE_NAME = "devctl.log"
_MAX_LOG_LINES = 1000
_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


def _truncate_log(log_file: Path) -> None:
    if not log_file.exists():
        return
    try:
        lines = log_file.read_text().splitlines()
        if len(lines) > _MAX_LOG_LINES:
            log_file.write_text(
                "\n".join(lines[-_MAX_LOG_LINES:]) + "\n",
            )
    except OSError:
        pass


def setup_logging(
    state_dir: Path | None,
    *,
    verbose: bool = False,
) -> logging.Logger:
    """Configure the devctl logger; safe to call repeatedly.

    Handlers from a previous call are replaced.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT)

    if state_dir is not None:
        log_file = state_dir / LOG_FILE_NAME
        _truncate_log(log_file)
        try:
            file_handler = logging.FileHandler(str(log_file))
        except OSError:
            # Continue without a log file
            pass
        else:
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    if verbose:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setLevel(logging.DEBUG)
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)

    if not logger.handlers:
        logger.addHandler(logging.NullHandler())
    return logger
