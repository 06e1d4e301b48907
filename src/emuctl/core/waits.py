from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

from ..utils.logging import get_logger

DEFAULT_POLLING_INTERVAL_MS = 1000

_log = get_logger(__name__)


def wait_for_condition(
    predicate: Callable[[], bool],
    timeout_ms: int,
    interval_ms: int = DEFAULT_POLLING_INTERVAL_MS,
    progress: Callable[[int], None] | None = None,
    *,
    logger: Any | None = None,
) -> bool:
    """
    Poll *predicate* until it returns True or *timeout_ms* elapses.

    Fixed-delay polling, no backoff. The predicate is evaluated first, then
    the loop sleeps *interval_ms* (clipped to the time left), so a predicate
    that turns true after k intervals returns after at least k * interval_ms
    and a predicate that never does returns False no later than
    timeout_ms + interval_ms.

    Args:
        predicate (Callable[[], bool]): Check to repeat; exceptions propagate.
        timeout_ms (int): Total budget in milliseconds.
        interval_ms (int): Delay between attempts in milliseconds.
        progress (Callable[[int], None] | None): Called with the whole seconds
            remaining, at most once per elapsed second; values strictly decrease.
        logger (Any | None): structlog logger for the timeout warning.

    Returns:
        bool: True as soon as the predicate succeeds, False on timeout.
    """
    log = logger or _log
    timeout_s = timeout_ms / 1000.0
    interval_s = max(interval_ms, 0) / 1000.0
    total_seconds = timeout_ms // 1000
    last_reported = 0

    start = time.monotonic()
    while True:
        elapsed = time.monotonic() - start
        if elapsed >= timeout_s:
            break

        if predicate():
            return True

        if progress is not None:
            elapsed_seconds = int(time.monotonic() - start)
            if elapsed_seconds > last_reported:
                last_reported = elapsed_seconds
                progress(max(total_seconds - elapsed_seconds, 0))

        remaining = timeout_s - (time.monotonic() - start)
        if remaining <= 0:
            break
        time.sleep(min(interval_s, remaining))

    log.warning("Condition not met within timeout", action="wait", timeout_ms=timeout_ms)
    return False


def format_time(seconds: int) -> str:
    """Render a duration as '2m 5s' or '45s'."""
    mins, secs = divmod(max(int(seconds), 0), 60)
    return f"{mins}m {secs}s" if mins > 0 else f"{secs}s"
