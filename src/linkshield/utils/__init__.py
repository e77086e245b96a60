"""Shared utilities for LinkShield."""

from .async_utils import (
    AsyncContextManager,
    ConcurrencyLimiter,
    create_task_with_error_handling,
    run_with_timeout,
)
from .logging import get_structured_logger, setup_logging
from .types import AsyncTimeoutError, UtilityError

__all__ = [
    "setup_logging",
    "get_structured_logger",
    "run_with_timeout",
    "ConcurrencyLimiter",
    "AsyncContextManager",
    "create_task_with_error_handling",
    "UtilityError",
    "AsyncTimeoutError",
]
