"""Async executor for collaborator calls with timeouts, breaker and session tokens.

Every weather, route, geocode and alternatives request goes through here:
- Hard timeout per attempt
- Bounded retries (0 by default; the next polling cycle is the retry)
- Circuit breaker per collaborator and target, registry owned by one monitoring context
- Session token checked before each attempt so stopped sessions stop calling out
- Metrics and structured logging
"""

import asyncio
import random
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import TypeVar

from pydantic import BaseModel

from backend.tripwatch.config import Settings

T = TypeVar("T")
P = TypeVar("P", bound=BaseModel)


class CallTimeoutError(Exception):
    """Collaborator call exceeded timeout."""


class CircuitOpenError(Exception):
    """Circuit breaker is open for this collaborator."""


class CallExecutionError(Exception):
    """Collaborator call failed."""


class SessionCancelledError(Exception):
    """The monitoring session that issued the call has been stopped."""


@dataclass(frozen=True)
class CallContext:
    """Context for one collaborator call with tracing."""

    trace_id: str
    session_id: int
    collaborator: str
    target: str | None = None

    @property
    def breaker_key(self) -> str:
        """Breakers are kept per collaborator and target location or route."""
        if self.target is None:
            return self.collaborator
        return f"{self.collaborator}:{self.target}"


@dataclass
class SessionToken:
    """Identifies one monitoring session and signals its cancellation."""

    session_id: int
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True

    def throw_if_cancelled(self) -> None:
        """Raise SessionCancelledError if the session was stopped."""
        if self.cancelled:
            raise SessionCancelledError(f"session {self.session_id} cancelled")


@dataclass
class CallConfig:
    """Configuration for collaborator calls."""

    hard_timeout_ms: int
    retry_count: int
    retry_jitter_min_ms: int
    retry_jitter_max_ms: int
    breaker_failure_threshold: int = 5
    breaker_window_seconds: int = 60
    breaker_half_open_seconds: int = 30

    @classmethod
    def from_settings(cls, settings: Settings) -> "CallConfig":
        return cls(
            hard_timeout_ms=settings.collaborator_hard_timeout_ms,
            retry_count=settings.collaborator_retry_count,
            retry_jitter_min_ms=settings.retry_jitter_min_ms,
            retry_jitter_max_ms=settings.retry_jitter_max_ms,
            breaker_failure_threshold=settings.circuit_breaker_failures,
            breaker_window_seconds=settings.circuit_breaker_window_sec,
            breaker_half_open_seconds=settings.circuit_breaker_half_open_sec,
        )


class BreakerState(str, Enum):
    """Circuit breaker state."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreaker:
    """Per-collaborator circuit breaker.

    Tracks failures within a time window and opens after threshold.
    """

    collaborator: str
    failure_threshold: int
    window_seconds: int
    half_open_seconds: int
    state: BreakerState = BreakerState.CLOSED
    failure_times: list[datetime] = field(default_factory=list)
    opened_at: datetime | None = None

    def record_success(self) -> None:
        """Record successful execution."""
        if self.state == BreakerState.HALF_OPEN:
            self.state = BreakerState.CLOSED
            self.failure_times.clear()
            self.opened_at = None

    def record_failure(self, now: datetime) -> None:
        """Record failed execution."""
        cutoff = now - timedelta(seconds=self.window_seconds)
        self.failure_times = [t for t in self.failure_times if t > cutoff]
        self.failure_times.append(now)

        if len(self.failure_times) >= self.failure_threshold:
            self.state = BreakerState.OPEN
            self.opened_at = now

    def check_and_update_state(self, now: datetime) -> BreakerState:
        """Check if breaker should transition states."""
        if self.state == BreakerState.OPEN:
            if self.opened_at and (now - self.opened_at).total_seconds() >= self.half_open_seconds:
                self.state = BreakerState.HALF_OPEN

        return self.state

    def is_open(self, now: datetime) -> bool:
        """Check if breaker is currently open (rejecting calls)."""
        return self.check_and_update_state(now) == BreakerState.OPEN


class BreakerRegistry:
    """Registry of circuit breakers keyed by collaborator and target."""

    def __init__(self) -> None:
        self._by_key: dict[str, CircuitBreaker] = {}

    def get_or_create(self, key: str, config: CallConfig) -> CircuitBreaker:
        """Get existing breaker for a breaker key or create one from config."""
        if key not in self._by_key:
            self._by_key[key] = CircuitBreaker(
                collaborator=key,
                failure_threshold=config.breaker_failure_threshold,
                window_seconds=config.breaker_window_seconds,
                half_open_seconds=config.breaker_half_open_seconds,
            )
        return self._by_key[key]

    def clear(self) -> None:
        self._by_key.clear()


class CallMetrics:
    """Interface for collaborator call metrics."""

    def record_latency(self, collaborator: str, outcome: str, latency_ms: float) -> None:
        pass

    def inc_error(self, collaborator: str, reason: str) -> None:
        pass


class CallLogger:
    """Interface for structured logging."""

    def log_attempt(
        self,
        ctx: CallContext,
        attempt: int,
        outcome: str,
        latency_ms: float,
        error_reason: str | None = None,
    ) -> None:
        pass


class CollaboratorExecutor:
    """Runs collaborator calls with the full error handling pipeline."""

    def __init__(
        self,
        config: CallConfig,
        breakers: BreakerRegistry | None = None,
        metrics: CallMetrics | None = None,
        logger: CallLogger | None = None,
        sleep_fn: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        """Initialize executor.

        Args:
            config: Timeout, retry and breaker configuration
            breakers: Breaker registry (defaults to a private one)
            metrics: Metrics recorder (optional, defaults to no-op)
            logger: Structured logger (optional, defaults to no-op)
            sleep_fn: Injectable sleep function (default: asyncio.sleep)
        """
        self.config = config
        self.breakers = breakers or BreakerRegistry()
        self._metrics = metrics or CallMetrics()
        self._logger = logger or CallLogger()
        self._sleep = sleep_fn or asyncio.sleep

    async def execute(
        self,
        ctx: CallContext,
        fn: Callable[[P], Awaitable[T]],
        payload: P,
        token: SessionToken,
    ) -> T:
        """Execute one collaborator call.

        Args:
            ctx: Call context with trace_id/session_id
            fn: Async adapter function taking the request payload
            payload: Request model
            token: Session token of the issuing monitoring session

        Returns:
            Whatever the adapter returns

        Raises:
            CallTimeoutError: Execution exceeded hard timeout on every attempt
            CircuitOpenError: Circuit breaker is open
            SessionCancelledError: Session was stopped
            CallExecutionError: Other execution failures
        """
        breaker = self.breakers.get_or_create(ctx.breaker_key, self.config)

        token.throw_if_cancelled()

        now = datetime.now()
        if breaker.is_open(now):
            self._metrics.record_latency(ctx.collaborator, "breaker_open", 0.0)
            self._metrics.inc_error(ctx.collaborator, "breaker_open")
            self._logger.log_attempt(ctx, 0, "breaker_open", 0.0, error_reason="breaker_open")
            raise CircuitOpenError(f"Circuit breaker open for {ctx.breaker_key}")

        last_error: Exception | None = None
        for attempt in range(self.config.retry_count + 1):
            token.throw_if_cancelled()

            attempt_start = time.monotonic()

            try:
                hard_timeout_sec = self.config.hard_timeout_ms / 1000
                result = await asyncio.wait_for(fn(payload), timeout=hard_timeout_sec)

                elapsed_ms = (time.monotonic() - attempt_start) * 1000
                breaker.record_success()
                self._metrics.record_latency(ctx.collaborator, "success", elapsed_ms)
                self._logger.log_attempt(ctx, attempt + 1, "success", elapsed_ms)
                return result

            except TimeoutError as e:
                elapsed_ms = (time.monotonic() - attempt_start) * 1000
                last_error = e

                self._metrics.inc_error(ctx.collaborator, "timeout")
                self._logger.log_attempt(
                    ctx, attempt + 1, "timeout", elapsed_ms, error_reason="timeout"
                )
                breaker.record_failure(datetime.now())

            except Exception as e:
                elapsed_ms = (time.monotonic() - attempt_start) * 1000
                last_error = e

                self._metrics.inc_error(ctx.collaborator, "execution_error")
                self._logger.log_attempt(
                    ctx, attempt + 1, "error", elapsed_ms, error_reason=type(e).__name__
                )
                breaker.record_failure(datetime.now())

            if attempt < self.config.retry_count:
                token.throw_if_cancelled()
                jitter_ms = random.uniform(
                    self.config.retry_jitter_min_ms, self.config.retry_jitter_max_ms
                )
                await self._sleep(jitter_ms / 1000)

        if isinstance(last_error, TimeoutError):
            raise CallTimeoutError(f"{ctx.collaborator} timed out after all retries")
        raise CallExecutionError(f"{ctx.collaborator} failed after all retries") from last_error
