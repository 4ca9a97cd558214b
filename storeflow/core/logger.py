"""
Logger lookup for storeflow components.

Every module asks for its logger through get_logger(). By default that is a
standard library logger under the 'storeflow' namespace with a NullHandler,
so nothing is printed unless the application configures logging. A host
application that logs through something else (structlog, loguru) can route
all storeflow output there with set_logger().

    from storeflow.core.logger import get_logger
    logger = get_logger(__name__)
"""

import logging
from typing import Any

ROOT_LOGGER_NAME = "storeflow"

_custom_logger: Any = None


class NullLogger:  # pragma: no cover
    """Logger that drops everything, for silencing storeflow entirely."""

    def debug(self, *args, **kwargs): pass
    def info(self, *args, **kwargs): pass
    def warning(self, *args, **kwargs): pass
    def error(self, *args, **kwargs): pass
    def exception(self, *args, **kwargs): pass
    def critical(self, *args, **kwargs): pass
    def log(self, *args, **kwargs): pass


def set_logger(logger: Any) -> None:
    """
    Route all storeflow logging to ``logger``.

    The object needs debug/info/warning/error/exception methods. Pass None to
    return to standard logging.
    """
    global _custom_logger
    _custom_logger = logger


def get_logger(name: str = ROOT_LOGGER_NAME) -> Any:
    if _custom_logger is not None:
        return _custom_logger

    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.addHandler(logging.NullHandler())
    return logger


def resolve_level(level: int | str) -> int | None:
    """Turn 'debug', 'INFO' or 10 into a logging level; None if unknown."""
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    return resolved if isinstance(resolved, int) else None


def set_level(level: int | str) -> bool:
    """Set the level of the 'storeflow' namespace. Returns False for unknown names."""
    resolved = resolve_level(level)
    if resolved is None:
        return False
    logging.getLogger(ROOT_LOGGER_NAME).setLevel(resolved)
    return True


def configure_default_logging(  # pragma: no cover
    level: int | str = logging.INFO,
    format_string: str = "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
) -> None:
    """Console logging for scripts and local runs."""
    logging.basicConfig(level=resolve_level(level) or logging.INFO, format=format_string)
    set_level(level)
