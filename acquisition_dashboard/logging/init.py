from __future__ import annotations

import logging
import sys

"""Console logging for the dashboard.

One stdout handler on the `acquisition_dashboard` logger; module loggers
(logging.getLogger(__name__)) inside the package propagate into it. Each line
starts with a label (DEBUG, INFO, WARN, ERROR or SUMMARY) so the status line
printed after every snapshot can be grepped as `SUMMARY stage=...`.

`--debug` switches the handler to DEBUG through enable_debug(); the HTTP
connection chatter of urllib3 (pulled in by requests) stays at WARNING.
"""

__all__ = [
    "APP_LOGGER_NAME",
    "SUMMARY_LEVEL",
    "LabeledFormatter",
    "setup_logging",
    "enable_debug",
    "get_logger",
    "log_summary",
    "reset_logging",
]

APP_LOGGER_NAME = "acquisition_dashboard"

# between INFO and WARNING so the status line survives a WARNING threshold
SUMMARY_LEVEL = 25

QUIET_LOGGERS = ("urllib3",)

_logger: logging.Logger | None = None


class LabeledFormatter(logging.Formatter):
    """Formats records as '<LABEL> <message>' with any traceback appended."""

    LEVEL_LABELS = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        logging.WARNING: "WARN",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "CRITICAL",
        SUMMARY_LEVEL: "SUMMARY",
    }

    def format(self, record: logging.LogRecord) -> str:
        label = self.LEVEL_LABELS.get(record.levelno, record.levelname)
        line = f"{label} {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """Return the dashboard logger, configuring it on first use.

    `level` only applies to that first call; use enable_debug() afterwards.
    Propagation to the root logger is off so lines are printed once.
    """
    global _logger

    if _logger is not None:
        return _logger

    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")

    logger = logging.getLogger(APP_LOGGER_NAME)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(LabeledFormatter())
    logger.addHandler(handler)
    logger.propagate = False

    _logger = logger
    _set_level(logger, level)
    return logger


def enable_debug() -> logging.Logger:
    """Lower the dashboard logger and its handler to DEBUG."""
    logger = get_logger()
    _set_level(logger, logging.DEBUG)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return logger


def _set_level(logger: logging.Logger, level: int) -> None:
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)


def get_logger() -> logging.Logger:
    if _logger is None:
        return setup_logging()
    return _logger


def log_summary(message: str) -> None:
    get_logger().log(SUMMARY_LEVEL, message)


def reset_logging() -> None:
    """Forget the configured logger and detach its handlers (tests)."""
    global _logger
    logger = logging.getLogger(APP_LOGGER_NAME)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    _logger = None
