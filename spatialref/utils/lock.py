"""Process-wide lock serializing every call into the PROJ engine.

PROJ contexts are not safe to share between threads, so every operation that
touches an engine object (parsing, querying, comparing, transforming and
releasing) runs while holding ENGINE_LOCK. The lock is reentrant so that an
operation already holding it may call other locked helpers.
"""

import functools as ft
import threading
from typing import Any, Callable, TypeVar

F = TypeVar("F", bound=Callable[..., Any])

# Reentrant: lazy initialization and equivalence checks call other locked helpers
ENGINE_LOCK = threading.RLock()


def engine_locked(func: F) -> F:
    """
    Decorate a function so that its whole body runs under ENGINE_LOCK.

    Args:
        func: The function to wrap

    Returns:
        The wrapped function
    """

    @ft.wraps(func)
    def _wrapper(*args, **kwargs):
        with ENGINE_LOCK:
            return func(*args, **kwargs)

    return _wrapper  # type: ignore
