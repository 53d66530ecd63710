"""
Tests for retry backoff.
"""

import random

import pytest

from newsletter_delivery.core.config import RetryPolicy
from newsletter_delivery.core.delivery.backoff import compute_backoff


class TestComputeBackoff:

    def test_doubles_per_attempt_without_jitter(self):
        policy = RetryPolicy(base_delay_seconds=5, max_delay_seconds=300, jitter=0)

        assert compute_backoff(0, policy) == 5
        assert compute_backoff(1, policy) == 10
        assert compute_backoff(2, policy) == 20
        assert compute_backoff(3, policy) == 40

    def test_capped_at_max_delay(self):
        policy = RetryPolicy(base_delay_seconds=5, max_delay_seconds=60, jitter=0)

        assert compute_backoff(10, policy) == 60
        assert compute_backoff(5000, policy) == 60

    def test_jitter_only_shortens(self):
        """Jittered delays stay within [delay * (1 - jitter), delay]."""
        policy = RetryPolicy(base_delay_seconds=10, max_delay_seconds=300, jitter=0.2)
        rng = random.Random(42)

        for attempt in range(8):
            ceiling = min(300, 10 * 2 ** attempt)
            delay = compute_backoff(attempt, policy, rng)
            assert ceiling * 0.8 <= delay <= ceiling

    def test_negative_attempt_treated_as_zero(self):
        policy = RetryPolicy(base_delay_seconds=3, max_delay_seconds=300, jitter=0)
        assert compute_backoff(-4, policy) == 3

    def test_zero_base_means_no_wait(self):
        policy = RetryPolicy(base_delay_seconds=0, max_delay_seconds=0, jitter=0.5)
        assert compute_backoff(3, policy) == 0


class TestRetryPolicy:

    def test_defaults(self):
        policy = RetryPolicy()
        assert policy.max_attempts == 5
        assert policy.base_delay_seconds == 5.0
        assert policy.max_delay_seconds == 300.0
        assert policy.jitter == 0.2

    def test_max_attempts_must_be_positive(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)
