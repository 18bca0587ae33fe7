"""
Circuit breaker for per-service fault isolation.

- CLOSED: All requests go through; consecutive failures are counted
- OPEN: Requests fail fast until reset_timeout has elapsed
- HALF_OPEN: Exactly one trial request; its outcome closes or re-opens
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject requests
    HALF_OPEN = "half_open"  # Testing if service recovered


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Breaker thresholds.

    Attributes:
        failure_threshold: Consecutive failures that open the circuit.
        reset_timeout: Seconds to stay OPEN before allowing a trial.
    """

    failure_threshold: int = 5
    reset_timeout: float = 30.0

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if self.reset_timeout <= 0:
            raise ValueError("reset_timeout must be > 0")


@dataclass(frozen=True)
class CircuitBreakerStats:
    state: CircuitState
    failure_count: int
    opened_at: Optional[float]
    trial_in_flight: bool
    total_opens: int


@dataclass(frozen=True)
class CircuitPermit:
    """Admission handed out by acquire(); outcomes are matched against it.

    ``generation`` changes on every state transition, so an outcome from a
    call admitted under an earlier state is recognised as stale.
    """

    generation: int
    trial: bool = False


class CircuitBreaker:
    """
    Thread-safe circuit breaker owned by a single client.

    Callers ``acquire()`` a permit before a call and report the outcome with
    ``record_success(permit)`` or ``record_failure(permit)``. Outcomes that
    say nothing about availability (e.g. an auth rejection) should call
    ``release_trial(permit)`` so a HALF_OPEN trial slot is not leaked.
    Without a permit, outcomes apply to the current state.
    """

    def __init__(
        self,
        config: Optional[CircuitBreakerConfig] = None,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or CircuitBreakerConfig()
        self.name = name
        self._clock = clock
        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: Optional[float] = None
        self._trial_in_flight = False
        self._total_opens = 0
        self._generation = 0

    @property
    def state(self) -> CircuitState:
        """Current state. Pure read; timeouts are only applied by acquire()."""
        with self._lock:
            return self._state

    def get_state(self) -> CircuitState:
        return self.state

    @property
    def failure_count(self) -> int:
        with self._lock:
            return self._failure_count

    @property
    def retry_after(self) -> float:
        """Seconds until an OPEN circuit will admit a trial (0 if not OPEN)."""
        with self._lock:
            if self._state != CircuitState.OPEN or self._opened_at is None:
                return 0.0
            return max(0.0, self.config.reset_timeout - (self._clock() - self._opened_at))

    def acquire(self) -> Optional[CircuitPermit]:
        """Admit a request, returning its permit, or None when rejected.

        Claims the single trial slot when HALF_OPEN.
        """
        with self._lock:
            if self._state == CircuitState.CLOSED:
                return CircuitPermit(self._generation)

            if self._state == CircuitState.OPEN:
                if self._clock() - (self._opened_at or 0.0) < self.config.reset_timeout:
                    return None
                self._state = CircuitState.HALF_OPEN
                self._trial_in_flight = False
                self._generation += 1
                logger.info("Circuit breaker %s HALF_OPEN, testing recovery", self.name)

            # HALF_OPEN: one trial at a time
            if self._trial_in_flight:
                return None
            self._trial_in_flight = True
            return CircuitPermit(self._generation, trial=True)

    def allow_request(self) -> bool:
        """Check if a request may proceed, claiming the trial slot when HALF_OPEN."""
        return self.acquire() is not None

    def record_success(self, permit: Optional[CircuitPermit] = None) -> None:
        """Record successful call.

        Only a HALF_OPEN trial closes the circuit. A success while OPEN, or
        one carrying a permit from an earlier state, changes nothing.
        """
        with self._lock:
            if self._is_stale(permit):
                return
            if self._state == CircuitState.CLOSED:
                self._failure_count = 0
            elif self._state == CircuitState.HALF_OPEN:
                self._close()
                logger.info("Circuit breaker %s CLOSED after successful trial", self.name)

    def record_failure(self, permit: Optional[CircuitPermit] = None) -> None:
        """Record an availability failure."""
        with self._lock:
            if self._is_stale(permit):
                return

            if self._state == CircuitState.HALF_OPEN:
                self._open()
                logger.warning("Circuit breaker %s re-OPENED after failed trial", self.name)
                return

            if self._state == CircuitState.OPEN:
                return

            self._failure_count += 1
            if self._failure_count >= self.config.failure_threshold:
                self._open()
                logger.warning(
                    "Circuit breaker %s OPEN after %d failures",
                    self.name,
                    self._failure_count,
                )

    def release_trial(self, permit: Optional[CircuitPermit] = None) -> None:
        """Free the HALF_OPEN trial slot without changing state."""
        with self._lock:
            if permit is not None and (not permit.trial or self._is_stale(permit)):
                return
            self._trial_in_flight = False

    def reset(self) -> None:
        """Force CLOSED."""
        with self._lock:
            self._close()
        logger.info("Circuit breaker %s manually reset", self.name)

    @property
    def stats(self) -> CircuitBreakerStats:
        with self._lock:
            return CircuitBreakerStats(
                state=self._state,
                failure_count=self._failure_count,
                opened_at=self._opened_at,
                trial_in_flight=self._trial_in_flight,
                total_opens=self._total_opens,
            )

    # Helpers below expect the caller to hold the lock

    def _is_stale(self, permit: Optional[CircuitPermit]) -> bool:
        return permit is not None and permit.generation != self._generation

    def _open(self) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = self._clock()
        self._trial_in_flight = False
        self._total_opens += 1
        self._generation += 1

    def _close(self) -> None:
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at = None
        self._trial_in_flight = False
        self._generation += 1
