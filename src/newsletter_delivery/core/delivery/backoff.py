"""Exponential backoff with a cap and jitter."""

import random
from typing import Optional

from ..config import RetryPolicy


def compute_backoff(
    attempt: int,
    policy: RetryPolicy,
    rng: Optional[random.Random] = None,
) -> float:
    """
    Seconds to wait before retrying after `attempt` failed attempts.

    `min(max_delay, base * 2**attempt)`, then shortened by a random
    fraction of at most `policy.jitter` so workers that failed together
    do not all come back at the same instant. Never exceeds the cap.
    """
    attempt = max(0, int(attempt))
    try:
        delay = policy.base_delay_seconds * (2 ** attempt)
    except OverflowError:
        delay = policy.max_delay_seconds
    delay = min(policy.max_delay_seconds, delay)
    if policy.jitter > 0 and delay > 0:
        delay -= delay * policy.jitter * (rng or random).random()
    return delay
