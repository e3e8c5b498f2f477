"""Tests for the retry policy around page fetches."""

import pytest

from conftest import CONTRACT
from utils.errors import QuotaExhausted, RateLimited, RetriesExhausted, UpstreamError
from utils.fetch_base import FetchResult
from utils.rate_limiter import RateLimiter
from utils.retry import RetryWrapper


class FlakyFetcher:
    def __init__(self, outcomes, limiter=None):
        self.outcomes = list(outcomes)
        self.limiter = limiter
        self.calls = 0
        self.backoff_seen = []

    def fetch_page(self, address, page, start_block=0):
        self.calls += 1
        if self.limiter is not None:
            self.backoff_seen.append(self.limiter.get_wait_time())
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def limiter(clock):
    return RateLimiter(
        between_calls=0.3, min_wait=6.0, max_wait=15.0, factor=1.5, clock=clock, sleep=clock.sleep
    )


GOOD = FetchResult(addresses=["0x01"], last_block=42, raw_count=1)


class TestRateLimitScenario:
    def test_three_rate_limits_then_success(self, limiter, clock):
        fetcher = FlakyFetcher([RateLimited("NOTOK")] * 3 + [GOOD], limiter)
        client = RetryWrapper(fetcher, limiter, max_retries=4)

        result = client.fetch_with_retry(CONTRACT, 1, 0)

        assert result is GOOD
        assert fetcher.calls == 4
        # backoff after each of the three failures, strictly increasing
        failures = fetcher.backoff_seen[1:]
        assert failures == sorted(failures) and len(set(failures)) == 3
        assert failures == [pytest.approx(9.0), pytest.approx(13.5), 15.0]
        # the waits between attempts were the backoff values
        for wait in failures:
            assert wait in clock.sleeps
        # reset after the success
        assert limiter.get_wait_time() == 6.0
        assert limiter.state.consecutive_errors == 0

    def test_exhausted_retries_degrade_to_empty(self, limiter):
        fetcher = FlakyFetcher([RateLimited("NOTOK")] * 3, limiter)
        client = RetryWrapper(fetcher, limiter, max_retries=3)

        result = client.fetch_with_retry(CONTRACT, 5, 100)

        assert result.is_empty
        assert fetcher.calls == 3

    def test_strict_mode_raises(self, limiter):
        fetcher = FlakyFetcher([RateLimited("NOTOK")] * 2, limiter)
        client = RetryWrapper(fetcher, limiter, max_retries=2, strict=True)

        with pytest.raises(RetriesExhausted) as exc:
            client.fetch_with_retry(CONTRACT, 5, 100)
        assert exc.value.page == 5
        assert exc.value.attempts == 2

    def test_per_call_budget_overrides_default(self, limiter):
        fetcher = FlakyFetcher([RateLimited("NOTOK")] * 5, limiter)
        client = RetryWrapper(fetcher, limiter, max_retries=5)

        client.fetch_with_retry(CONTRACT, 1, 0, max_retries=2)

        assert fetcher.calls == 2


class TestNoRetry:
    def test_quota_propagates_immediately(self, limiter):
        fetcher = FlakyFetcher([QuotaExhausted("Max rate limit reached"), GOOD])
        client = RetryWrapper(fetcher, limiter, max_retries=3)

        with pytest.raises(QuotaExhausted):
            client.fetch_with_retry(CONTRACT, 1, 0)
        assert fetcher.calls == 1
        assert limiter.state.consecutive_errors == 1

    def test_upstream_error_propagates_immediately(self, limiter):
        fetcher = FlakyFetcher([UpstreamError("Invalid API Key"), GOOD])
        client = RetryWrapper(fetcher, limiter, max_retries=3)

        with pytest.raises(UpstreamError):
            client.fetch_with_retry(CONTRACT, 1, 0)
        assert fetcher.calls == 1

    def test_success_records_success(self, limiter):
        limiter.record_error()
        fetcher = FlakyFetcher([GOOD])
        client = RetryWrapper(fetcher, limiter)

        assert client.fetch_with_retry(CONTRACT, 1, 0) is GOOD
        assert limiter.state.consecutive_errors == 0

    def test_cadence_applied_before_each_attempt(self, limiter, clock):
        fetcher = FlakyFetcher([GOOD, GOOD])
        client = RetryWrapper(fetcher, limiter)

        client.fetch_with_retry(CONTRACT, 1, 0)
        client.fetch_with_retry(CONTRACT, 2, 42)

        assert clock.sleeps == [pytest.approx(0.3)]
