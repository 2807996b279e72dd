"""Logging utilities with custom trace level."""

import logging
from typing import Any

# Define custom TRACE level (lower than DEBUG)
TRACE_LEVEL = 5

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
QUIET_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"

# Third-party loggers that are chatty at INFO
NOISY_LOGGERS = ("faster_whisper", "httpx", "httpcore")


def add_trace_level() -> None:
    """Add a custom TRACE logging level."""
    logging.addLevelName(TRACE_LEVEL, "TRACE")

    def trace(self: logging.Logger, message: str, *args: Any, **kwargs: Any) -> None:
        """Log a message with severity 'TRACE'."""
        if self.isEnabledFor(TRACE_LEVEL):
            self._log(TRACE_LEVEL, message, args, **kwargs)

    logging.Logger.trace = trace


def get_logger(name: str) -> logging.Logger:
    """Get a logger with trace support."""
    if not hasattr(logging.Logger, "trace"):
        add_trace_level()

    return logging.getLogger(name)


def configure_logging(verbose: bool = False, trace: bool = False) -> None:
    """
    Configure root logging for the bot.

    Args:
        verbose: Enable DEBUG output
        trace: Enable TRACE output (per-frame segmenter decisions)
    """
    add_trace_level()

    if trace:
        logging.basicConfig(level=TRACE_LEVEL, format=LOG_FORMAT)
        third_party_level = logging.INFO
    elif verbose:
        logging.basicConfig(level=logging.DEBUG, format=LOG_FORMAT)
        third_party_level = logging.INFO
    else:
        logging.basicConfig(level=logging.INFO, format=QUIET_LOG_FORMAT)
        third_party_level = logging.WARNING

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)
