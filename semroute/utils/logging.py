"""Logging configuration and utilities."""

import sys
import time
from typing import Any, Optional

from loguru import logger

from semroute.config import get_config


LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)


def setup_logging(log_level: Optional[str] = None, colorize: bool = True) -> None:
    """Setup loguru logging with proper formatting.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR). Uses config if None.
        colorize: Whether to emit ANSI colors on stdout.
    """
    level = log_level or get_config().log_level

    # Remove default logger
    logger.remove()

    logger.add(
        sys.stdout,
        format=LOG_FORMAT,
        level=level,
        colorize=colorize,
    )

    logger.info(f"Logging initialized at level: {level}")


class LatencyLogger:
    """Context manager for logging operation latency."""

    def __init__(
        self,
        operation: str,
        level: str = "DEBUG",
        extra: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize latency logger.

        Args:
            operation: Operation name for logging.
            level: Loguru level name used on success.
            extra: Extra data bound to the log records.
        """
        self._operation = operation
        self._level = level
        self._logger = logger.bind(**(extra or {}))
        self._start_time: float = 0
        self.elapsed_ms: float = 0

    def __enter__(self) -> "LatencyLogger":
        """Start timing."""
        self._start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Log latency."""
        self.elapsed_ms = (time.perf_counter() - self._start_time) * 1000

        if exc_type is not None:
            self._logger.error(f"{self._operation} failed after {self.elapsed_ms:.2f}ms: {exc_val}")
        else:
            self._logger.log(self._level, f"{self._operation} completed in {self.elapsed_ms:.2f}ms")


def latency_log(
    operation: str,
    level: str = "DEBUG",
    extra: dict[str, Any] | None = None,
) -> LatencyLogger:
    """
    Create a latency logging context manager.

    Args:
        operation: Operation name.
        level: Log level.
        extra: Extra data to bind.

    Returns:
        LatencyLogger context manager.
    """
    return LatencyLogger(operation, level, extra)
