"""
Exception logging helpers that never raise, even for broken exception objects.
"""

import logging


def _safe_str(obj) -> str:
    """
    Convert an object to string, falling back to repr and finally to the type name.
    """
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            try:
                return f"<{type(obj).__name__} object (string conversion failed)>"
            except Exception:
                return "<object (all string conversions failed)>"


def _safe_get_exceptions(exception_group) -> list:
    try:
        return list(exception_group.exceptions)
    except Exception:
        return []


def exception_message(exception: Exception) -> str:
    """
    Message suitable for a response body: the exception text, or its type name
    when the text is empty.
    """
    if exception is None:
        return "None"
    message = _safe_str(exception)
    if message:
        return message
    return type(exception).__name__


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: Exception,
    level: int = logging.ERROR,
) -> None:
    """
    Log an exception, expanding exception groups into one record per member.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g., "[Proxy]", "[Backend]")
        exception: The exception to log
        level: The logging level to use (default: ERROR)
    """
    try:
        safe_prefix = _safe_str(prefix) if prefix is not None else ""
        safe_exception_str = _safe_str(exception) if exception is not None else "None"

        sub_exceptions = []
        if exception is not None and hasattr(exception, "exceptions"):
            sub_exceptions = _safe_get_exceptions(exception)

        if sub_exceptions:
            logger.log(
                level,
                f"{safe_prefix} Exception with {len(sub_exceptions)} sub-exceptions: {safe_exception_str}",
            )
            for i, sub_exc in enumerate(sub_exceptions):
                try:
                    sub_message = f"{safe_prefix} Sub-exception {i+1}: {type(sub_exc).__name__}: {_safe_str(sub_exc)}"
                    logger.log(level, sub_message, exc_info=sub_exc)
                except Exception:
                    continue
            return

        try:
            logger.log(
                level,
                f"{safe_prefix} Exception: {safe_exception_str}",
                exc_info=exception if exception is not None else False,
            )
        except Exception:
            logger.log(level, f"{safe_prefix} Exception: {safe_exception_str}")
    except Exception:
        # Logging must never take down a request
        try:
            if logger is not None:
                logger.log(logging.ERROR, "Exception logging failed")
        except Exception:
            pass
