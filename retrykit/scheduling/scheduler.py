import random
from typing import Optional, Tuple

from retrykit.classification.categories import ClassifiedError
from retrykit.scheduling.policy import AttemptState, RetryPolicy


# 2 ** 63 seconds is far beyond any sane max_delay; past this the cap applies.
_MAX_EXPONENT = 63


class RetryScheduler:
    """
    Decides whether a classified failure is retried and how long to wait.

    Delays grow exponentially from ``policy.base_delay``, are capped at
    ``policy.max_delay`` and spread by multiplicative jitter so concurrent
    callers do not retry in lockstep.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    def should_retry(
        self,
        classified: ClassifiedError,
        attempt: AttemptState,
        policy: RetryPolicy
    ) -> Tuple[bool, float]:
        """
        Decide the next step after a failed attempt.

        Args:
            classified: The classified failure of the current attempt
            attempt: State of the run, numbered from 1
            policy: Retry policy of the call site

        Returns:
            (True, delay) to retry after ``delay`` seconds, otherwise (False, 0.0)
        """
        if not classified.category.retryable:
            return False, 0.0
        if attempt.attempt_number >= policy.max_attempts:
            return False, 0.0

        delay = self.compute_delay(attempt.attempt_number, policy, classified.retry_after)
        floor = 0.0
        if classified.retry_after is not None:
            floor = min(classified.retry_after, policy.max_delay)
        return True, self.apply_jitter(delay, policy, floor=floor)

    @staticmethod
    def compute_delay(
        attempt_number: int,
        policy: RetryPolicy,
        retry_after: Optional[float] = None
    ) -> float:
        """
        Un-jittered delay after attempt ``attempt_number``.

        ``base_delay * 2 ** (attempt_number - 1)`` capped at ``max_delay``. A
        larger server hint replaces the exponential delay, but max_delay caps
        server hints as well: a hint longer than the caller's ceiling is
        treated as "wait as long as allowed", never as permission to exceed it.
        """
        exponent = max(attempt_number - 1, 0)
        if exponent >= _MAX_EXPONENT:
            delay = policy.max_delay
        else:
            delay = min(policy.base_delay * (2 ** exponent), policy.max_delay)

        if retry_after is not None and retry_after > delay:
            delay = min(retry_after, policy.max_delay)
        return delay

    def apply_jitter(self, delay: float, policy: RetryPolicy, floor: float = 0.0) -> float:
        """Spread ``delay`` by +/- ``jitter_fraction`` and clamp to [floor, max_delay]."""
        if policy.jitter_fraction > 0:
            factor = self._rng.uniform(1.0 - policy.jitter_fraction, 1.0 + policy.jitter_fraction)
            delay = delay * factor
        return max(min(delay, policy.max_delay), floor, 0.0)
