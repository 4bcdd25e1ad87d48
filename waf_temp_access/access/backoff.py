from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff: delay after failed attempt k (0-indexed) is
    ``base * 2**k + uniform(0, jitter)``. Attempts are counted in total, not as retries."""

    max_attempts: int
    base_delay_seconds: float = 1.0
    jitter_seconds: float = 0.0

    def delay(self, attempt: int, rng: Optional[random.Random] = None) -> float:
        d = self.base_delay_seconds * (2 ** attempt)
        if self.jitter_seconds > 0:
            r = rng.random() if rng is not None else random.random()
            d += r * self.jitter_seconds
        return d

    def is_last(self, attempt: int) -> bool:
        return attempt >= self.max_attempts - 1


# optimistic-lock conflicts on the versioned allow-list
VERSIONED_POLICY = RetryPolicy(max_attempts=10, base_delay_seconds=1.0, jitter_seconds=1.0)
# any non-benign error on the unversioned rule path
UNVERSIONED_POLICY = RetryPolicy(max_attempts=5, base_delay_seconds=1.0, jitter_seconds=0.0)


def versioned_policy_from_settings(settings) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.versioned_max_attempts,
        base_delay_seconds=settings.retry_base_delay_seconds,
        jitter_seconds=settings.retry_jitter_seconds,
    )


def unversioned_policy_from_settings(settings) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.unversioned_max_attempts,
        base_delay_seconds=settings.retry_base_delay_seconds,
        jitter_seconds=0.0,
    )
