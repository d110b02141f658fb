"""
Helpers for best-effort side effects.

Some steps in the account workflows must never change the outcome of the
primary operation (clearing flags, compensating deletes, non-critical
emails). run_non_fatal() executes such a step, records any failure in the
log and reports whether it succeeded.
"""

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


def run_non_fatal(description: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> bool:
    """
    Run ``func(*args, **kwargs)`` and swallow any exception it raises.

    Args:
        description: Short human-readable label used in the log line
        func: Callable to execute

    Returns:
        True if the call completed, False if it raised
    """
    try:
        func(*args, **kwargs)
        return True
    except Exception as e:
        logger.exception(f"Non-fatal step failed ({description}): {e}")
        return False
