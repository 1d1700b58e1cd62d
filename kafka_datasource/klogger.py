import logging
import os
from collections.abc import Callable
from typing import Any, Literal

CORE_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "core")


def get_filter(strategy: Literal["all", "core-only"]) -> Callable[[Any], bool]:
    """
    Factory function for creating log record filters. `core-only` passes records emitted from the
    `kafka_datasource.core` package, i.e. the consuming machinery, and drops configuration chatter.
    """
    match strategy:
        case "all":

            def _filter(_) -> bool:
                return True

        case "core-only":

            def _filter(record: Any) -> bool:
                return os.path.dirname(os.path.abspath(record.pathname)) == CORE_DIR

        case _:
            raise ValueError(f"Unknown filter strategy {strategy}")
    return _filter


def get_custom_logger(
    loglevel: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING",
    name: str = "kafka_datasource",
    strategy: Literal["all", "core-only"] = "all",
) -> logging.Logger:
    """
    Initializes (if not already done) and returns the package logger. A stream handler is attached only when nothing
    up the hierarchy handles records yet, so applications configuring logging themselves keep their setup.
    """
    logger = logging.getLogger(name)

    if not logger.hasHandlers():
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(logging.Formatter("%(levelname)-8s %(module)-15s > %(message)s"))
        stream_handler.addFilter(get_filter(strategy))
        logger.addHandler(stream_handler)
    if logger.level != logging.getLevelName(loglevel):
        logger.setLevel(logging.getLevelName(loglevel))

    return logger
