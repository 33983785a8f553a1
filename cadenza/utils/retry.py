from __future__ import annotations

import asyncio
import random


def compute_backoff(
    attempt: int, base: float = 1.5, jitter: float = 0.5, max_delay: float = 300.0
) -> float:
    """Exponential backoff for ``attempt`` capped at ``max_delay``, plus jitter."""
    delay = min(base ** attempt, max_delay)
    return delay + random.uniform(0, jitter)


async def schedule_retry(
    attempt: int, base: float = 1.5, jitter: float = 0.5, max_delay: float = 300.0
) -> float:
    """Sleep for the computed backoff delay and return it."""
    delay = compute_backoff(attempt, base=base, jitter=jitter, max_delay=max_delay)
    await asyncio.sleep(delay)
    return delay
