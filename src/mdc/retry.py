from __future__ import annotations

import random
import time
from typing import Callable, TypeVar

ResultT = TypeVar("ResultT")

RetryHook = Callable[[Exception, int, float], None]


def backoff_delay(attempt: int, *, base_delay_seconds: float, max_delay_seconds: float) -> float:
    return min(base_delay_seconds * (2 ** (attempt - 1)), max_delay_seconds)


def execute_with_retry(
    operation: Callable[[], ResultT],
    *,
    should_retry: Callable[[Exception, int], bool],
    attempts: int = 3,
    base_delay_seconds: float = 0.5,
    max_delay_seconds: float = 4.0,
    sleep_fn: Callable[[float], None] = time.sleep,
    rand_fn: Callable[[float, float], float] = random.uniform,
    on_retry: RetryHook | None = None,
) -> ResultT:
    """Run ``operation`` until it succeeds, the attempts run out or ``should_retry`` says stop.

    Delay grows as ``base * 2 ** (attempt - 1)`` capped at ``max_delay_seconds``,
    plus up to 50% random jitter.
    """
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except Exception as exc:
            if attempt >= attempts or not should_retry(exc, attempt):
                raise
            delay = backoff_delay(attempt, base_delay_seconds=base_delay_seconds, max_delay_seconds=max_delay_seconds)
            delay += rand_fn(0.0, delay * 0.5)
            if on_retry is not None:
                on_retry(exc, attempt, delay)
            sleep_fn(delay)
    raise RuntimeError("retry operation failed without explicit error")
