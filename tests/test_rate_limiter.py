"""Tests for the call cadence and rate limit backoff."""

import pytest

from utils.rate_limiter import RateLimiter


def make_limiter(clock):
    return RateLimiter(
        between_calls=0.3,
        min_wait=6.0,
        max_wait=15.0,
        factor=1.5,
        clock=clock,
        sleep=clock.sleep,
    )


class TestCadence:
    def test_first_call_does_not_sleep(self, clock):
        limiter = make_limiter(clock)
        assert limiter.wait_if_needed() == 0
        assert clock.sleeps == []

    def test_back_to_back_calls_are_spaced(self, clock):
        limiter = make_limiter(clock)
        limiter.wait_if_needed()
        limiter.wait_if_needed()
        assert clock.sleeps == [pytest.approx(0.3)]

    def test_spacing_doubles_while_erroring(self, clock):
        limiter = make_limiter(clock)
        limiter.wait_if_needed()
        limiter.record_error()
        limiter.wait_if_needed()
        assert clock.sleeps == [pytest.approx(0.6)]

    def test_no_sleep_when_enough_time_passed(self, clock):
        limiter = make_limiter(clock)
        limiter.wait_if_needed()
        clock.now += 5
        assert limiter.wait_if_needed() == 0
        assert clock.sleeps == []

    def test_partial_elapsed_only_sleeps_the_rest(self, clock):
        limiter = make_limiter(clock)
        limiter.wait_if_needed()
        clock.now += 0.1
        limiter.wait_if_needed()
        assert clock.sleeps == [pytest.approx(0.2)]


class TestBackoff:
    def test_starts_at_floor(self, clock):
        assert make_limiter(clock).get_wait_time() == 6.0

    def test_grows_and_clamps(self, clock):
        limiter = make_limiter(clock)
        seen = []
        for _ in range(4):
            limiter.record_error()
            seen.append(limiter.get_wait_time())
        assert seen == [pytest.approx(9.0), pytest.approx(13.5), 15.0, 15.0]
        assert limiter.state.consecutive_errors == 4

    def test_success_resets(self, clock):
        limiter = make_limiter(clock)
        limiter.record_error()
        limiter.record_error()
        limiter.record_success()
        assert limiter.get_wait_time() == 6.0
        assert limiter.state.consecutive_errors == 0

    def test_factor_must_grow(self, clock):
        with pytest.raises(ValueError):
            RateLimiter(factor=1.0, clock=clock, sleep=clock.sleep)

    def test_instances_do_not_share_state(self, clock):
        a, b = make_limiter(clock), make_limiter(clock)
        a.record_error()
        assert b.get_wait_time() == 6.0
