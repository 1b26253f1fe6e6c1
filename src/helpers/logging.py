"""Logger module."""

import logging
import sys

import colorlog

loggers: dict[str, logging.Logger] = {}

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}


def _resolve_level(log_level: str) -> int:
    """Map a level name to its logging constant.

    Raises:
        ValueError: If the level name is unknown.
    """
    level = LOG_LEVELS.get(log_level.upper())
    if level is None:
        err_msg = f"Invalid log level: {log_level}"
        raise ValueError(err_msg)
    return level


def get_logger(
    name: str,
    log_handler: str = "stdout",
    log_level: str = "INFO",
    log_color: bool = False,
) -> logging.Logger:
    """Get logger.

    Loggers are cached per name, so the handler is attached only once.

    Args:
        name: The name of the logger.
        log_handler: The log handler type ('stdout').
        log_level: The logging level ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL').
        log_color: Whether to use colored output.

    Returns:
        logging.Logger: Configured logger instance.

    Raises:
        ValueError: If invalid handler or log level is provided.
    """
    if name in loggers:
        return loggers[name]

    if log_handler != "stdout":
        err_msg = f"Invalid handler: {log_handler}"
        raise ValueError(err_msg)

    level = _resolve_level(log_level)

    if log_color:
        logger = colorlog.getLogger(name)
        handler: logging.Handler = colorlog.StreamHandler(sys.stdout)
        formatter: logging.Formatter = colorlog.ColoredFormatter(
            f"%(log_color)s {LOG_FORMAT}", log_colors=LOG_COLORS
        )
    else:
        logger = logging.getLogger(name)
        handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter(LOG_FORMAT)

    logger.setLevel(level)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    loggers[name] = logger
    return logger


def set_log_level(log_level: str) -> None:
    """Apply a level to every logger created through get_logger.

    Used by entry points once the run configuration is known, since module
    loggers are created at import time.

    Args:
        log_level: The logging level name.

    Raises:
        ValueError: If the level name is unknown.
    """
    level = _resolve_level(log_level)
    for logger in loggers.values():
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)


__all__ = ["get_logger", "set_log_level"]
