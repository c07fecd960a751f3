"""Decorator utilities for cross-cutting concerns."""
import functools
import logging
import time
from typing import Any, Callable, Optional, TypeVar, cast

logger = logging.getLogger(__name__)

F = TypeVar('F', bound=Callable[..., Any])


def log_execution_time(func: Optional[F] = None, *, label: Optional[str] = None):
    """Log how long a call took, and whether it raised.

    Usable bare (``@log_execution_time``) or with a label
    (``@log_execution_time(label="completion call")``).

    Args:
        func: The function to decorate
        label: Name to log instead of the function's ``__qualname__``

    Returns:
        Decorated function that logs execution time
    """
    def decorator(inner: F) -> F:
        name = label or inner.__qualname__

        @functools.wraps(inner)
        def wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            try:
                result = inner(*args, **kwargs)
            except Exception as e:
                duration = time.perf_counter() - start_time
                logger.warning(f"{name} failed after {duration:.2f}s: {e}")
                raise
            duration = time.perf_counter() - start_time
            logger.info(f"{name} completed in {duration:.2f}s")
            return result

        return cast(F, wrapper)

    if func is not None:
        return decorator(func)
    return decorator
