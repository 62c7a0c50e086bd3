from collections.abc import Callable
from typing import TypeVar

from compression_worker.logging.logger import Log

T = TypeVar("T")


def best_effort(description: str, func: Callable[..., T], *args: object) -> T | None:
    """Run a non-critical side effect. Failures are logged and swallowed.

    Returns the call's result, or None if it raised.
    """
    try:
        return func(*args)
    except Exception as exc:
        Log.warning(f"Non-critical step '{description}' failed: {exc}")
        return None
