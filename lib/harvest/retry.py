"""Bounded retry policy with randomized backoff."""

import random
from typing import Iterator, Optional


class RetryPolicy:
    """Max attempts plus a uniform random backoff between attempts.

    The random backoff keeps concurrent sessions from retrying in lockstep.
    Pass a seeded ``random.Random`` to make delays deterministic in tests.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        backoff_min: float = 1.0,
        backoff_max: float = 5.0,
        rng: Optional[random.Random] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if backoff_min < 0 or backoff_max < backoff_min:
            raise ValueError("invalid backoff range")
        self.max_attempts = max_attempts
        self.backoff_min = backoff_min
        self.backoff_max = backoff_max
        self._rng = rng or random.Random()

    def attempts(self) -> Iterator[int]:
        """Yield attempt numbers, 1-based."""
        return iter(range(1, self.max_attempts + 1))

    def should_retry(self, attempt: int) -> bool:
        return attempt < self.max_attempts

    def backoff(self) -> float:
        """Seconds to wait before the next attempt."""
        return self._rng.uniform(self.backoff_min, self.backoff_max)
