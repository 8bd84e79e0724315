"""Marcus — Retry Pacing.

One delay curve shared by adapter retries and database start-up.
"""

from __future__ import annotations

import random
from dataclasses import dataclass


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry settings for transient upstream failures.

    Binds the curve parameters once per adapter (from settings) and lets a
    server ``Retry-After`` override the computed delay.
    """

    max_attempts: int = 3
    base_seconds: float = 1.0
    factor: float = 2.0
    max_seconds: float = 30.0
    jitter_pct: float = 0.1

    def delay_for(self, attempt: int, retry_after: float | None = None) -> float:
        """Delay before the retry that follows ``attempt``.

        A server-provided ``retry_after`` wins over the computed delay but is
        still capped at ``max_seconds``.
        """
        if retry_after is not None and retry_after >= 0:
            return min(float(retry_after), self.max_seconds)
        return compute_backoff_seconds(
            attempt,
            base=self.base_seconds,
            factor=self.factor,
            max_seconds=self.max_seconds,
            jitter_pct=self.jitter_pct,
        )


NO_RETRY = RetryPolicy(max_attempts=1)


def compute_backoff_seconds(
    attempt: int,
    *,
    base: float = 1.0,
    factor: float = 2.0,
    max_seconds: float = 30.0,
    jitter_pct: float = 0.0,
) -> float:
    """Delay before retry number ``attempt`` (1-based): ``base * factor**(attempt-1)``.

    Capped at ``max_seconds``, then spread by up to ``jitter_pct`` either way.
    ``RetryPolicy.delay_for`` and ``Database.connect`` both pace their loops
    with it.
    """
    delay = min(base * factor ** (max(attempt, 1) - 1), max_seconds)
    if jitter_pct > 0:
        spread = delay * jitter_pct
        delay += random.uniform(-spread, spread)
    return max(delay, 0.0)


__all__ = ["RetryPolicy", "NO_RETRY", "compute_backoff_seconds"]
