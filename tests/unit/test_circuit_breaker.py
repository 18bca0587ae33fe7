"""
Unit tests for CircuitBreaker state transitions.
"""
import pytest

from service_clients.resilience.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitPermit, CircuitState


@pytest.fixture
def breaker(fake_clock):
    return CircuitBreaker(CircuitBreakerConfig(failure_threshold=3, reset_timeout=30.0), name="test", clock=fake_clock)


def trip(breaker: CircuitBreaker, times: int = 3) -> None:
    for _ in range(times):
        breaker.allow_request()
        breaker.record_failure()


class TestCircuitBreakerConfig:
    """Tests for config validation."""

    def test_defaults(self):
        config = CircuitBreakerConfig()
        assert config.failure_threshold == 5
        assert config.reset_timeout == 30.0

    def test_rejects_zero_threshold(self):
        with pytest.raises(ValueError, match="failure_threshold"):
            CircuitBreakerConfig(failure_threshold=0)

    def test_rejects_non_positive_timeout(self):
        with pytest.raises(ValueError, match="reset_timeout"):
            CircuitBreakerConfig(reset_timeout=0)


class TestClosedState:
    """Tests for CLOSED behaviour."""

    def test_starts_closed(self, breaker):
        assert breaker.state == CircuitState.CLOSED
        assert breaker.get_state() == CircuitState.CLOSED
        assert breaker.allow_request()

    def test_opens_at_threshold(self, breaker):
        trip(breaker, 2)
        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 2

        trip(breaker, 1)
        assert breaker.state == CircuitState.OPEN
        assert breaker.stats.total_opens == 1

    def test_success_resets_counter(self, breaker):
        trip(breaker, 2)
        breaker.record_success()
        assert breaker.failure_count == 0

        trip(breaker, 2)
        assert breaker.state == CircuitState.CLOSED

    def test_threshold_of_one(self, fake_clock):
        breaker = CircuitBreaker(CircuitBreakerConfig(failure_threshold=1), clock=fake_clock)
        breaker.record_failure()
        assert breaker.state == CircuitState.OPEN


class TestOpenState:
    """Tests for OPEN behaviour."""

    def test_rejects_until_timeout(self, breaker, fake_clock):
        trip(breaker)
        assert not breaker.allow_request()

        fake_clock.advance(29.9)
        assert not breaker.allow_request()
        assert breaker.state == CircuitState.OPEN

    def test_retry_after_counts_down(self, breaker, fake_clock):
        trip(breaker)
        assert breaker.retry_after == pytest.approx(30.0)
        fake_clock.advance(10)
        assert breaker.retry_after == pytest.approx(20.0)

    def test_retry_after_zero_when_closed(self, breaker):
        assert breaker.retry_after == 0.0

    def test_state_read_does_not_transition(self, breaker, fake_clock):
        trip(breaker)
        fake_clock.advance(60)
        assert breaker.state == CircuitState.OPEN

    def test_failures_while_open_ignored(self, breaker, fake_clock):
        trip(breaker)
        breaker.record_failure()
        fake_clock.advance(30)
        assert breaker.allow_request()
        assert breaker.stats.total_opens == 1


class TestHalfOpenState:
    """Tests for the single recovery trial."""

    def test_moves_to_half_open_after_timeout(self, breaker, fake_clock):
        trip(breaker)
        fake_clock.advance(30)

        assert breaker.allow_request()
        assert breaker.state == CircuitState.HALF_OPEN

    def test_only_one_trial(self, breaker, fake_clock):
        trip(breaker)
        fake_clock.advance(30)

        assert breaker.allow_request()
        assert not breaker.allow_request()
        assert not breaker.allow_request()

    def test_trial_success_closes(self, breaker, fake_clock):
        trip(breaker)
        fake_clock.advance(30)
        breaker.allow_request()
        breaker.record_success()

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0
        assert breaker.allow_request()

    def test_trial_failure_reopens_with_fresh_timer(self, breaker, fake_clock):
        trip(breaker)
        fake_clock.advance(30)
        breaker.allow_request()
        breaker.record_failure()

        assert breaker.state == CircuitState.OPEN
        assert breaker.retry_after == pytest.approx(30.0)
        assert breaker.stats.total_opens == 2

    def test_release_trial_frees_slot(self, breaker, fake_clock):
        trip(breaker)
        fake_clock.advance(30)
        breaker.allow_request()
        breaker.release_trial()

        assert breaker.state == CircuitState.HALF_OPEN
        assert breaker.allow_request()


class TestStaleOutcomes:
    """Tests for outcomes of calls admitted under an earlier state."""

    def test_late_success_does_not_close_open_circuit(self, breaker):
        slow = breaker.acquire()
        trip(breaker)
        assert breaker.state == CircuitState.OPEN

        breaker.record_success(slow)
        assert breaker.state == CircuitState.OPEN
        assert not breaker.allow_request()

    def test_success_while_open_ignored_without_permit(self, breaker):
        trip(breaker)
        breaker.record_success()
        assert breaker.state == CircuitState.OPEN

    def test_late_success_during_trial_does_not_close(self, breaker, fake_clock):
        slow = breaker.acquire()
        trip(breaker)
        fake_clock.advance(30)
        trial = breaker.acquire()
        assert trial.trial

        breaker.record_success(slow)
        assert breaker.state == CircuitState.HALF_OPEN
        assert breaker.stats.trial_in_flight

        breaker.record_success(trial)
        assert breaker.state == CircuitState.CLOSED

    def test_late_failure_does_not_reopen_recovered_circuit(self, breaker, fake_clock):
        slow = breaker.acquire()
        trip(breaker)
        fake_clock.advance(30)
        breaker.record_success(breaker.acquire())

        breaker.record_failure(slow)
        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0

    def test_release_ignores_non_trial_permit(self, breaker, fake_clock):
        slow = breaker.acquire()
        trip(breaker)
        fake_clock.advance(30)
        breaker.acquire()

        breaker.release_trial(slow)
        assert not breaker.allow_request()

    def test_permit_generation_changes_on_transition(self, breaker):
        before = breaker.acquire()
        assert before == CircuitPermit(before.generation)
        trip(breaker)
        breaker.reset()
        assert breaker.acquire().generation != before.generation

    def test_concurrent_failures_counted_once_each(self, fake_clock):
        breaker = CircuitBreaker(CircuitBreakerConfig(failure_threshold=10), clock=fake_clock)
        permits = [breaker.acquire() for _ in range(5)]
        for permit in permits:
            breaker.record_failure(permit)
        assert breaker.failure_count == 5
        assert breaker.state == CircuitState.CLOSED

    def test_concurrent_failures_open_once(self, breaker):
        permits = [breaker.acquire() for _ in range(6)]
        for permit in permits:
            breaker.record_failure(permit)
        assert breaker.state == CircuitState.OPEN
        assert breaker.stats.total_opens == 1


class TestReset:
    """Tests for manual reset."""

    def test_reset_closes_open_circuit(self, breaker):
        trip(breaker)
        breaker.reset()

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0
        assert breaker.allow_request()

    def test_stats_snapshot(self, breaker, fake_clock):
        trip(breaker)
        stats = breaker.stats
        assert stats.state == CircuitState.OPEN
        assert stats.opened_at == fake_clock.now
        assert stats.trial_in_flight is False
