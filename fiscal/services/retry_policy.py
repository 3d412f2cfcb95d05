"""
Retry round model.

Attempts are grouped in rounds of FISCAL_ATTEMPTS_PER_ROUND. Inside a round
attempts are FISCAL_INTRA_ROUND_DELAY_SECONDS apart; rounds are separated by
FISCAL_ROUND_DELAYS_MINUTES. The first submission is attempt 1 of round 1.
"""

import math
from dataclasses import dataclass, field
from datetime import timedelta

from django.conf import settings

DEFAULT_ROUND_DELAYS_MINUTES = {1: 0, 2: 5, 3: 15, 4: 30}


@dataclass(frozen=True)
class RetryPolicy:
    attempts_per_round: int = 3
    max_attempts: int = 12
    intra_round_delay: timedelta = timedelta(seconds=5)
    round_delays: dict = field(default_factory=lambda: {
        number: timedelta(minutes=minutes) for number, minutes in DEFAULT_ROUND_DELAYS_MINUTES.items()
    })
    recovery_delay: timedelta = timedelta(hours=2)

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        delays = getattr(settings, "FISCAL_ROUND_DELAYS_MINUTES", DEFAULT_ROUND_DELAYS_MINUTES)
        return cls(
            attempts_per_round=getattr(settings, "FISCAL_ATTEMPTS_PER_ROUND", 3),
            max_attempts=getattr(settings, "FISCAL_MAX_ATTEMPTS", 12),
            intra_round_delay=timedelta(seconds=getattr(settings, "FISCAL_INTRA_ROUND_DELAY_SECONDS", 5)),
            round_delays={int(number): timedelta(minutes=minutes) for number, minutes in delays.items()},
            recovery_delay=timedelta(seconds=getattr(settings, "FISCAL_RECOVERY_DELAY_SECONDS", 7200)),
        )

    @property
    def last_round(self) -> int:
        return max(self.round_delays)

    def round_for(self, retry_count: int) -> int:
        """Round an attempt count belongs to. 0 attempts is round 1."""
        return min(max(1, math.ceil(retry_count / self.attempts_per_round)), self.last_round)

    def attempt_in_round(self, retry_count: int) -> int:
        """Position of the last attempt inside its round, 1-based. 0 maps to the last slot."""
        position = retry_count % self.attempts_per_round
        return position or self.attempts_per_round

    def round_exhausted(self, retry_count: int) -> bool:
        return retry_count > 0 and retry_count % self.attempts_per_round == 0

    def next_round_delay(self, retry_count: int) -> timedelta | None:
        """
        Delay before the round following a completed one, or None when the
        attempt budget is spent.
        """
        if retry_count >= self.max_attempts:
            return None
        next_round = retry_count // self.attempts_per_round + 1
        delay = self.round_delays.get(next_round)
        if delay is None or next_round == 1:
            return None
        return delay

    def describe(self, retry_count: int) -> dict:
        """Round/attempt summary for operator views."""
        return {
            "retry_count": retry_count,
            "max_attempts": self.max_attempts,
            "current_round": self.round_for(retry_count),
            "attempt_in_round": self.attempt_in_round(retry_count),
            "attempts_per_round": self.attempts_per_round,
            "remaining_attempts": max(0, self.max_attempts - retry_count),
        }
