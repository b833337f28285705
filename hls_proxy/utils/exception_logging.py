"""
Helpers for logging and describing upstream failures.

Streaming responses run inside anyio task groups, so a failure surfacing from a
relay can arrive wrapped in an ``ExceptionGroup``. These helpers unwrap such
groups and never raise themselves, because they run on error paths where a
second exception would hide the first one.
"""

import logging
from typing import Optional


def _safe_str(obj) -> str:
    """
    Convert an object to string, falling back to ``repr`` and then to the type name.

    Args:
        obj: The object to convert to string

    Returns:
        A string representation of the object
    """
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} object (string conversion failed)>"


def _safe_get_exceptions(exception_group) -> list:
    """Return the sub-exceptions of an exception group, or an empty list."""
    try:
        return list(exception_group.exceptions)
    except Exception:
        return []


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: Optional[BaseException],
    level: int = logging.ERROR,
) -> None:
    """
    Log an exception, expanding exception groups into one record per sub-exception.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g., "[Passthrough]", "[Manifest]")
        exception: The exception to log
        level: The logging level to use (default: ERROR)
    """
    safe_prefix = _safe_str(prefix) if prefix is not None else ""
    sub_exceptions = _safe_get_exceptions(exception) if exception is not None else []

    try:
        if sub_exceptions:
            logger.log(
                level,
                f"{safe_prefix} Exception with {len(sub_exceptions)} sub-exceptions: "
                f"{_safe_str(exception)}",
            )
            for i, sub_exc in enumerate(sub_exceptions):
                logger.log(
                    level,
                    f"{safe_prefix} Sub-exception {i+1}: "
                    f"{type(sub_exc).__name__}: {_safe_str(sub_exc)}",
                    exc_info=sub_exc,
                )
        else:
            # Client-input errors are expected; keep tracebacks for real failures
            logger.log(
                level,
                f"{safe_prefix} Exception: {_safe_str(exception)}",
                exc_info=exception if level >= logging.ERROR and exception else False,
            )
    except Exception:
        try:
            logger.log(level, f"{safe_prefix} Exception (logging failed)")
        except Exception:
            pass


def format_exception_message(exception: Optional[BaseException]) -> str:
    """
    Describe an exception in one line, suitable for a plain-text diagnostic body.

    Exception groups are rendered as ``main (Sub-exceptions: Type: msg; ...)``.
    Exceptions with an empty message are described by their type name, which
    is what httpx raises for several transport failures.
    """
    if exception is None:
        return "None"

    sub_exceptions = _safe_get_exceptions(exception)
    if sub_exceptions:
        parts = [
            f"{type(sub_exc).__name__}: {_safe_str(sub_exc)}"
            for sub_exc in sub_exceptions
        ]
        return f"{_safe_str(exception)} (Sub-exceptions: {'; '.join(parts)})"

    text = _safe_str(exception)
    return text if text else type(exception).__name__
