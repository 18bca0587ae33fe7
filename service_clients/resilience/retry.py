"""
Retry with exponential backoff and jitter.

Usage:
    handler = RetryHandler(RetryConfig(max_retries=3))
    result = await handler.execute(lambda ctx: client.get("/thing"))

The handler decides retryability from the failed attempt's ``status_code``
and ``code`` attributes (see ``RetryableError``), or from a custom
predicate when one is configured. The final error is re-raised unchanged.
"""

import errno
import logging
import random
import threading
import time
from dataclasses import dataclass, field, replace
from typing import Awaitable, Callable, Optional, TypeVar

from service_clients.errors import AbortedError
from service_clients.resilience.cancellation import CancellationToken, cancellable_sleep

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
DEFAULT_RETRYABLE_ERROR_CODES = frozenset(
    {"ECONNRESET", "ECONNREFUSED", "ETIMEDOUT", "ENOTFOUND", "EPIPE", "EAI_AGAIN"}
)


@dataclass(frozen=True)
class RetryConfig:
    """Immutable retry policy.

    Attributes:
        max_retries: Retries after the first attempt (total attempts = max_retries + 1).
        base_delay: Delay before the first retry, in seconds.
        max_delay: Cap on the un-jittered delay, in seconds.
        backoff_multiplier: Growth factor per attempt, must be > 1.
        jitter_factor: Relative jitter in [0, 1]; 0.25 means +/-25%.
        retryable_status_codes: HTTP statuses that may be retried.
        retryable_error_codes: Transport error codes that may be retried.
        should_retry: Optional predicate that overrides status/code matching.
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    backoff_multiplier: float = 2.0
    jitter_factor: float = 0.25
    retryable_status_codes: frozenset[int] = DEFAULT_RETRYABLE_STATUS_CODES
    retryable_error_codes: frozenset[str] = DEFAULT_RETRYABLE_ERROR_CODES
    should_retry: Optional[Callable[[BaseException], bool]] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        if self.backoff_multiplier <= 1:
            raise ValueError("backoff_multiplier must be > 1")
        if not 0 <= self.jitter_factor <= 1:
            raise ValueError("jitter_factor must be between 0 and 1")
        # Accept any iterable for the code sets
        object.__setattr__(self, "retryable_status_codes", frozenset(self.retryable_status_codes))
        object.__setattr__(self, "retryable_error_codes", frozenset(self.retryable_error_codes))

    def with_overrides(self, **changes) -> "RetryConfig":
        return replace(self, **changes)


@dataclass(frozen=True)
class RetryContext:
    """Passed to the action on every attempt."""

    attempt: int  # 0 = first try
    elapsed: float  # seconds since the first attempt started
    last_error: Optional[BaseException] = None


@dataclass(frozen=True)
class RetryAttempt:
    """Payload for the ``on_retry`` callback."""

    attempt: int  # attempt that just failed
    error: BaseException
    next_delay: float  # seconds


@dataclass(frozen=True)
class RetryGiveUp:
    """Payload for the ``on_give_up`` callback."""

    total_attempts: int
    error: BaseException


@dataclass
class RetryStatistics:
    """Cumulative counters for one handler."""

    total_attempts: int = 0
    successful_attempts: int = 0
    failed_attempts: int = 0
    total_retries: int = 0


SleepFunc = Callable[[float, Optional[CancellationToken]], Awaitable[None]]


class RetryHandler:
    """
    Executes an async action under a RetryConfig.

    Attempts within one ``execute`` run strictly one after another. One
    handler may be shared by concurrent callers; statistics updates are
    serialized by a lock.
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        *,
        rng: Optional[random.Random] = None,
        sleep: Optional[SleepFunc] = None,
    ):
        self.config = config or RetryConfig()
        self._rng = rng or random.Random()
        self._sleep = sleep or cancellable_sleep
        self._stats = RetryStatistics()
        self._stats_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def is_retryable(self, error: BaseException) -> bool:
        """Decide whether a failed attempt may be retried."""
        if isinstance(error, AbortedError):
            return False
        if self.config.should_retry is not None:
            return bool(self.config.should_retry(error))

        status_code = getattr(error, "status_code", None)
        if isinstance(status_code, int) and status_code in self.config.retryable_status_codes:
            return True

        code = getattr(error, "code", None)
        if not isinstance(code, str) and isinstance(error, OSError) and error.errno is not None:
            code = errno.errorcode.get(error.errno)
        return isinstance(code, str) and code in self.config.retryable_error_codes

    def compute_delay(self, attempt: int) -> float:
        """Backoff delay in seconds before retrying after ``attempt`` failed."""
        cfg = self.config
        base = min(cfg.max_delay, cfg.base_delay * cfg.backoff_multiplier**attempt)
        jitter = self._rng.uniform(-cfg.jitter_factor, cfg.jitter_factor) if cfg.jitter_factor else 0.0
        delay = base * (1 + jitter)
        return max(0.0, min(delay, cfg.max_delay * (1 + cfg.jitter_factor)))

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(
        self,
        action: Callable[[RetryContext], Awaitable[T]],
        *,
        cancel_token: Optional[CancellationToken] = None,
        on_retry: Optional[Callable[[RetryAttempt], None]] = None,
        on_give_up: Optional[Callable[[RetryGiveUp], None]] = None,
    ) -> T:
        """
        Run ``action`` until it succeeds or retries are exhausted.

        Args:
            action: Called with a fresh RetryContext per attempt
            cancel_token: Aborts before an attempt or during a backoff sleep
            on_retry: Called before each backoff sleep
            on_give_up: Called once when the handler stops retrying

        Returns:
            The action's result

        Raises:
            AbortedError: If cancelled
            Exception: The last attempt's error, unchanged
        """
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        started = time.monotonic()
        last_error: Optional[BaseException] = None
        attempt = 0

        while True:
            context = RetryContext(attempt=attempt, elapsed=time.monotonic() - started, last_error=last_error)
            self._bump(total_attempts=1, total_retries=1 if attempt > 0 else 0)

            try:
                result = await action(context)
            except AbortedError:
                self._bump(failed_attempts=1)
                raise
            except Exception as exc:
                self._bump(failed_attempts=1)
                last_error = exc

                if cancel_token is not None and cancel_token.cancelled:
                    raise AbortedError(cancel_token.reason or "Operation aborted", code="ABORTED") from exc

                if attempt >= self.config.max_retries or not self.is_retryable(exc):
                    if on_give_up is not None:
                        on_give_up(RetryGiveUp(total_attempts=attempt + 1, error=exc))
                    raise

                delay = self.compute_delay(attempt)
                logger.debug(
                    "Attempt %d failed (%s); retrying in %.3fs",
                    attempt + 1,
                    type(exc).__name__,
                    delay,
                )
                if on_retry is not None:
                    on_retry(RetryAttempt(attempt=attempt, error=exc, next_delay=delay))

                await self._sleep(delay, cancel_token)
                attempt += 1
                continue

            self._bump(successful_attempts=1)
            return result

    def get_statistics(self) -> RetryStatistics:
        """Snapshot of the cumulative counters."""
        with self._stats_lock:
            return replace(self._stats)

    def _bump(self, **deltas: int) -> None:
        with self._stats_lock:
            for name, delta in deltas.items():
                setattr(self._stats, name, getattr(self._stats, name) + delta)
