import time
from dataclasses import dataclass
from typing import Callable

from config import BACKOFF_FACTOR, DELAYS


@dataclass
class RateLimiterState:
    last_call_at: float = 0.0
    consecutive_errors: int = 0
    backoff: float = DELAYS["MIN_RATE_LIMIT_WAIT"]


class RateLimiter:
    """
    Two separate knobs:

    * cadence  - minimum spacing between calls, applied before every request
                 (doubled while the last call failed)
    * backoff  - the penalty wait after an explicit rate limit signal; grows by
                 `factor` on each consecutive error up to `max_wait` and drops
                 back to `min_wait` on the first success
    """

    def __init__(
        self,
        between_calls: float = DELAYS["BETWEEN_CALLS"],
        min_wait: float = DELAYS["MIN_RATE_LIMIT_WAIT"],
        max_wait: float = DELAYS["MAX_RATE_LIMIT_WAIT"],
        factor: float = BACKOFF_FACTOR,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if factor <= 1:
            raise ValueError("backoff factor must be > 1")
        self.between_calls = between_calls
        self.min_wait = min_wait
        self.max_wait = max_wait
        self.factor = factor
        self.clock = clock
        self.sleep = sleep
        self.state = RateLimiterState(backoff=min_wait)

    def spacing(self) -> float:
        if self.state.consecutive_errors > 0:
            return self.between_calls * 2
        return self.between_calls

    def wait_if_needed(self) -> float:
        """Sleep just long enough to keep the call spacing. Returns the time slept."""
        elapsed = self.clock() - self.state.last_call_at
        delay = max(0.0, self.spacing() - elapsed)
        if delay > 0:
            self.sleep(delay)
        self.state.last_call_at = self.clock()
        return delay

    def record_success(self) -> None:
        self.state.consecutive_errors = 0
        self.state.backoff = self.min_wait

    def record_error(self) -> None:
        self.state.consecutive_errors += 1
        self.state.backoff = min(self.state.backoff * self.factor, self.max_wait)

    def get_wait_time(self) -> float:
        return self.state.backoff

    def __repr__(self):
        s = self.state
        return f"<RateLimiter errors={s.consecutive_errors} backoff={s.backoff:.2f}s>"
