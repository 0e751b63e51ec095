"""
Fault tolerance for the persistence mirror.

The engine's committed in-memory state is authoritative; the database is a
durable mirror of it.  Two patterns keep a struggling database from taking
the fund down with it:

1. **Circuit Breaker** — after ``failure_threshold`` consecutive failures the
   breaker opens and database calls fail fast until ``recovery_timeout`` has
   passed; then one probe is let through.

   States:
   - CLOSED    → normal operation; failures are counted.
   - OPEN      → every call fails immediately with :class:`CircuitBreakerError`.
   - HALF_OPEN → one probe call; success closes, failure re-opens.

2. **Retry with Exponential Backoff** — snapshot writes are retried on
   transient errors with doubling, jittered delays.

Neither pattern is applied to host ledger transfers: a failed transfer is
reported to the caller as ``TransferFailed`` and never retried here.
"""

import asyncio
import functools
import logging
import random
import time
from enum import Enum
from typing import Any, Callable, Optional, Tuple, Type

from sqlalchemy.exc import OperationalError

from alphafund.core.config import settings
from alphafund.core.exceptions import CircuitBreakerError

logger = logging.getLogger(__name__)

TRANSIENT_DB_ERRORS: Tuple[Type[Exception], ...] = (
    OperationalError,
    ConnectionError,
    OSError,
    TimeoutError,
)


# ────────────────────────────────────────────────────────────────────────────
# Circuit Breaker
# ────────────────────────────────────────────────────────────────────────────


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Guards the fund's database mirror.

    Snapshot saves, event queries and the health check all go through one
    shared instance, :data:`db_circuit_breaker`.  While it is OPEN,
    :class:`~alphafund.services.fund_service.FundService` marks persistence
    stale and keeps serving from memory instead of waiting on timeouts.

    Parameters
    ----------
    name : str
        Shown in logs and in the ``/health`` payload.
    failure_threshold : int
        Consecutive transient database errors that open the circuit.
    recovery_timeout : float
        Seconds before one more snapshot save or query is let through.
    expected_exceptions : tuple
        Errors that count against the database.  Anything else, such as an
        integrity error from a bad snapshot, propagates untouched.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        expected_exceptions: Tuple[Type[Exception], ...] = (Exception,),
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exceptions = expected_exceptions

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: float = 0.0
        self._success_count = 0

    @property
    def state(self) -> CircuitState:
        """Current state, moving OPEN → HALF_OPEN once the timeout has passed."""
        if self._state == CircuitState.OPEN:
            elapsed = time.monotonic() - self._last_failure_time
            if elapsed >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
                logger.info("Circuit '%s' → HALF_OPEN after %.1fs", self.name, elapsed)
        return self._state

    def _record_success(self) -> None:
        if self._state != CircuitState.CLOSED:
            logger.info(
                "Circuit '%s' → CLOSED (probe succeeded after %d failures)",
                self.name,
                self._failure_count,
            )
        self._failure_count = 0
        self._success_count += 1
        self._state = CircuitState.CLOSED

    def _record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.error(
                "Circuit '%s' → OPEN after %d/%d database failures; "
                "database calls suspended for %.1fs",
                self.name,
                self._failure_count,
                self.failure_threshold,
                self.recovery_timeout,
            )
        else:
            logger.warning(
                "Circuit '%s' failure #%d/%d",
                self.name,
                self._failure_count,
                self.failure_threshold,
            )

    async def call(self, func: Callable, *args: Any, **kwargs: Any) -> Any:
        """Run ``func`` through the breaker, raising :class:`CircuitBreakerError` when OPEN."""
        if self.state == CircuitState.OPEN:
            retry_after = self.recovery_timeout - (time.monotonic() - self._last_failure_time)
            raise CircuitBreakerError(self.name, max(retry_after, 0))

        try:
            result = await func(*args, **kwargs)
        except self.expected_exceptions:
            self._record_failure()
            raise
        self._record_success()
        return result

    def get_status(self) -> dict:
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self._failure_count,
            "failure_threshold": self.failure_threshold,
            "success_count": self._success_count,
            "recovery_timeout_s": self.recovery_timeout,
        }


db_circuit_breaker = CircuitBreaker(
    name="database",
    failure_threshold=settings.CB_FAILURE_THRESHOLD,
    recovery_timeout=settings.CB_RECOVERY_TIMEOUT,
    expected_exceptions=TRANSIENT_DB_ERRORS,
)


# ────────────────────────────────────────────────────────────────────────────
# Retry with Exponential Backoff
# ────────────────────────────────────────────────────────────────────────────


def retry_with_backoff(
    max_retries: Optional[int] = None,
    base_delay: Optional[float] = None,
    max_delay: float = 10.0,
    jitter: bool = True,
    retryable_exceptions: Tuple[Type[Exception], ...] = TRANSIENT_DB_ERRORS,
) -> Callable:
    """
    Retry a snapshot write with exponential backoff.

    Wraps :meth:`FundSnapshotRepository.save`, which rewrites the whole fund
    state in one transaction, so a repeated attempt writes the same rows.
    ``max_retries`` and ``base_delay`` default to ``PERSIST_MAX_RETRIES`` and
    ``PERSIST_BASE_DELAY``.  Only ``retryable_exceptions`` trigger a retry;
    an open circuit is never retried.

    Example::

        @retry_with_backoff()
        async def save(self, state, events=()):
            ...
    """
    retries = settings.PERSIST_MAX_RETRIES if max_retries is None else max_retries
    first_delay = settings.PERSIST_BASE_DELAY if base_delay is None else base_delay

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            delay = first_delay
            for attempt in range(retries + 1):
                try:
                    return await func(*args, **kwargs)
                except retryable_exceptions as exc:
                    if attempt >= retries:
                        logger.error(
                            "Gave up on %s after %d retries (%s: %s)",
                            func.__qualname__,
                            retries,
                            type(exc).__name__,
                            exc,
                        )
                        raise
                    actual_delay = min(delay, max_delay)
                    if jitter:
                        actual_delay += random.uniform(0, actual_delay * 0.5)
                    logger.warning(
                        "Database retry %d/%d for %s in %.2fs (%s: %s)",
                        attempt + 1,
                        retries,
                        func.__qualname__,
                        actual_delay,
                        type(exc).__name__,
                        exc,
                    )
                    await asyncio.sleep(actual_delay)
                    delay *= 2

        return wrapper

    return decorator
