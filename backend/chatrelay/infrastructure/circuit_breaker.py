"""Circuit Breaker — closed/open/half-open failure isolation per dependency.

Invariants:
    - closed → open when consecutive_failures >= failure_threshold
    - open → half-open once reset_timeout has elapsed since opened_at
    - half-open admits exactly one trial call; every other call fails fast
    - acquire() hands the trial call a ticket; only the ticket holder can
      settle half-open (success → closed, failure → open) or free the slot
    - Calls admitted while closed that finish after the breaker left closed
      carry no ticket: their outcome changes nothing
    - release() gives back a trial slot without a verdict (cancelled or
      non-counting call): state stays half-open, the next call may try
    - All transitions happen under one lock (breakers are process-wide)

Design Decisions:
    - acquire()/record_*() instead of only a wrapping call(): the resilience
      layer decides which failures count against the dependency
    - Tickets are increasing ints: a stale holder from an earlier half-open
      window never matches the current trial
    - Injectable clock: reset timeouts tested without sleeping
"""

import logging
import threading
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

from chatrelay.core.domain_types import CircuitState
from chatrelay.core.errors import ErrorContext, ServiceDegradedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

TrialTicket = int | None


class CircuitBreaker:
    """Failure isolation for a single upstream dependency."""

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        reset_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self.consecutive_failures = 0
        self.opened_at: float | None = None
        self._trial: TrialTicket = None
        self._issued = 0

    @property
    def state(self) -> CircuitState:
        with self._lock:
            self._maybe_half_open()
            return self._state

    def allows_request(self) -> bool:
        """Peek: would acquire() admit a call right now? Never mutates."""
        with self._lock:
            if self._state == CircuitState.CLOSED:
                return True
            if self._state == CircuitState.OPEN:
                return self._reset_elapsed()
            return self._trial is None

    def acquire(self, context: ErrorContext | None = None) -> TrialTicket:
        """Admit a call or raise ServiceDegradedError.

        Returns the trial ticket when this call is the half-open trial,
        None for an ordinary closed-state call.
        """
        with self._lock:
            self._maybe_half_open()
            if self._state == CircuitState.CLOSED:
                return None
            if self._state == CircuitState.HALF_OPEN and self._trial is None:
                self._issued += 1
                self._trial = self._issued
                logger.info("Circuit '%s' admitting trial call", self.name,
                    extra={"breaker": self.name})
                return self._trial
        raise ServiceDegradedError(self.name, context)

    def record_success(self, ticket: TrialTicket = None) -> None:
        with self._lock:
            if self._state == CircuitState.CLOSED:
                self.consecutive_failures = 0
                return
            if not self._holds_trial(ticket):
                return
            logger.info("Circuit '%s' closed after successful trial", self.name,
                extra={"breaker": self.name})
            self._state = CircuitState.CLOSED
            self.consecutive_failures = 0
            self.opened_at = None
            self._trial = None

    def record_failure(self, ticket: TrialTicket = None) -> None:
        with self._lock:
            if self._state == CircuitState.CLOSED:
                self.consecutive_failures += 1
                if self.consecutive_failures >= self.failure_threshold:
                    self._open(f"{self.consecutive_failures} consecutive failures")
            elif self._holds_trial(ticket):
                self.consecutive_failures += 1
                self._open("trial call failed")

    def release(self, ticket: TrialTicket = None) -> None:
        with self._lock:
            if self._holds_trial(ticket):
                self._trial = None

    def reset(self) -> None:
        with self._lock:
            self._state = CircuitState.CLOSED
            self.consecutive_failures = 0
            self.opened_at = None
            self._trial = None

    async def call(
        self,
        fn: Callable[[], Awaitable[T]],
        context: ErrorContext | None = None,
    ) -> T:
        """Run fn under the breaker; any exception counts as a failure."""
        ticket = self.acquire(context)
        try:
            result = await fn()
        except Exception:
            self.record_failure(ticket)
            raise
        except BaseException:
            self.release(ticket)
            raise
        self.record_success(ticket)
        return result

    def snapshot(self) -> dict:
        with self._lock:
            self._maybe_half_open()
            return {
                "name": self.name,
                "state": self._state.value,
                "consecutive_failures": self.consecutive_failures,
                "failure_threshold": self.failure_threshold,
                "reset_timeout": self.reset_timeout,
            }

    # -- lock held ----------------------------------------------------------

    def _reset_elapsed(self) -> bool:
        return (
            self.opened_at is not None
            and self._clock() - self.opened_at >= self.reset_timeout
        )

    def _holds_trial(self, ticket: TrialTicket) -> bool:
        return (
            ticket is not None
            and ticket == self._trial
            and self._state == CircuitState.HALF_OPEN
        )

    def _maybe_half_open(self) -> None:
        if self._state == CircuitState.OPEN and self._reset_elapsed():
            self._state = CircuitState.HALF_OPEN
            self._trial = None

    def _open(self, reason: str) -> None:
        self._state = CircuitState.OPEN
        self.opened_at = self._clock()
        self._trial = None
        logger.warning("Circuit '%s' opened: %s", self.name, reason,
            extra={"breaker": self.name})


class CircuitBreakerRegistry:
    """One breaker per dependency name, created on first use."""

    def __init__(
        self,
        failure_threshold: int = 5,
        reset_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._failure_threshold = failure_threshold
        self._reset_timeout = reset_timeout
        self._clock = clock
        self._breakers: dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    def get(self, name: str) -> CircuitBreaker:
        with self._lock:
            breaker = self._breakers.get(name)
            if breaker is None:
                breaker = CircuitBreaker(
                    name, self._failure_threshold, self._reset_timeout, self._clock,
                )
                self._breakers[name] = breaker
            return breaker

    def snapshot(self) -> dict[str, dict]:
        with self._lock:
            breakers = list(self._breakers.values())
        return {b.name: b.snapshot() for b in breakers}
