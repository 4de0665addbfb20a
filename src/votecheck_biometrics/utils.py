"""
Utility functions and decorators for the VoteCheck biometric gate.

This module provides logging setup, a timing decorator for the numeric
stages of the pipeline, and identifier generation for sessions and
extraction requests.
"""

import functools
import logging
import math
import time
import uuid
from typing import Any, Callable, Optional, TypeVar

import structlog

# Initialize structured logger
logger = structlog.get_logger(__name__)

# Type variable for generic decorators
F = TypeVar("F", bound=Callable[..., Any])


def configure_logging(level: Optional[str] = None, structured: Optional[bool] = None) -> None:
    """
    Configure structlog for the package.

    Parameters
    ----------
    level : str, optional
        Logging level name. Defaults to ``config.LOG_LEVEL``.
    structured : bool, optional
        Render JSON when True, console lines otherwise. Defaults to
        ``config.STRUCTURED_LOGGING``.
    """
    from . import config

    level_name = (level or config.LOG_LEVEL).upper()
    use_json = config.STRUCTURED_LOGGING if structured is None else structured

    renderer = (
        structlog.processors.JSONRenderer()
        if use_json
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level_name)
        ),
        cache_logger_on_first_use=False,
    )


def timer(func: F) -> F:
    """
    Decorator to measure and log function execution time.

    Parameters
    ----------
    func : Callable
        Function to be timed.

    Returns
    -------
    Callable
        Wrapped function with timing capability.

    Examples
    --------
    >>> @timer
    ... def aggregate():
    ...     return "done"
    >>> result = aggregate()  # Logs execution time
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.perf_counter()

        try:
            result = func(*args, **kwargs)
        except Exception as e:
            logger.error(
                "Function execution failed",
                function_name=func.__name__,
                module=func.__module__,
                execution_time_ms=(time.perf_counter() - start_time) * 1000,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        logger.debug(
            "Function execution completed",
            function_name=func.__name__,
            module=func.__module__,
            execution_time_ms=(time.perf_counter() - start_time) * 1000,
        )
        return result

    return wrapper


def to_percentage(fraction: float) -> int:
    """
    Whole percentage of a fraction, rounding halves up.

    Examples
    --------
    >>> to_percentage(0.125)
    13
    >>> to_percentage(0.594)
    59
    """
    return int(math.floor(fraction * 100 + 0.5))


def generate_session_id() -> str:
    """
    Generate a unique capture session identifier.

    Returns
    -------
    str
        32-character hexadecimal identifier.
    """
    return uuid.uuid4().hex


def generate_correlation_id(prefix: str = "extract") -> str:
    """
    Generate an identifier that ties an extraction request to its response.

    Examples
    --------
    >>> generate_correlation_id().startswith("extract_")
    True
    """
    return f"{prefix}_{uuid.uuid4().hex[:12]}"
