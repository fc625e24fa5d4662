"""Decorator utilities for cross-cutting concerns."""
import functools
import logging
import time
from typing import Any, Callable, TypeVar, cast

# Setup logging
logger = logging.getLogger(__name__)

F = TypeVar('F', bound=Callable[..., Any])


def log_duration(operation: str) -> Callable[[F], F]:
    """Decorator to log how long a transfer operation took.

    Args:
        operation: Name used in the log line, e.g. "upload"

    Returns:
        Decorator that logs duration on success and on failure, then re-raises
    """
    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.monotonic()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                duration = time.monotonic() - start_time
                logger.warning(f"{operation} failed after {duration:.2f}s: {type(e).__name__}")
                raise
            duration = time.monotonic() - start_time
            logger.info(f"{operation} completed in {duration:.2f}s")
            return result
        return cast(F, wrapper)
    return decorator
