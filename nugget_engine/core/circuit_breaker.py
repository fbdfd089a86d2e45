"""
Circuit breaker guarding the link preview service.

A preview host that keeps failing should stop costing every submission its
full enrichment timeout. After `failure_threshold` consecutive failures the
circuit opens and lookups are skipped until `recovery_timeout` has passed;
one trial request is then let through (half-open) and its outcome decides.

States:
- CLOSED: lookups pass through
- OPEN: lookups rejected immediately
- HALF_OPEN: probing recovery

Usage:
    breaker = get_circuit_breaker("link_preview", failure_threshold=5)

    if breaker.can_execute():
        try:
            result = await fetch()
            await breaker.record_success()
        except Exception:
            await breaker.record_failure()
            raise
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import structlog

from nugget_engine.monitoring import metrics

logger = structlog.get_logger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreaker:
    """
    Failure counter with a time-based recovery window.

    Args:
        name: Identifier for this circuit (e.g., "link_preview")
        failure_threshold: Consecutive failures before opening
        recovery_timeout: Seconds to stay open before probing
    """

    name: str
    failure_threshold: int = 5
    recovery_timeout: float = 60.0

    _state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    _failure_count: int = field(default=0, init=False)
    _opened_at: Optional[float] = field(default=None, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    @property
    def state(self) -> CircuitState:
        """Current state; an expired OPEN circuit reports HALF_OPEN."""
        if self._state == CircuitState.OPEN and self._opened_at is not None:
            if time.monotonic() - self._opened_at >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
                metrics.update_circuit_breaker_state(self.name, "half_open")
                logger.info("circuit_breaker_half_open", name=self.name)
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    def can_execute(self) -> bool:
        """Check if a lookup may be attempted."""
        return self.state != CircuitState.OPEN

    def time_until_recovery(self) -> float:
        """Seconds until an open circuit will allow a trial request."""
        if self._state != CircuitState.OPEN or self._opened_at is None:
            return 0.0
        elapsed = time.monotonic() - self._opened_at
        return max(0.0, self.recovery_timeout - elapsed)

    async def record_success(self) -> None:
        """Record a successful lookup."""
        async with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                logger.info("circuit_breaker_closed", name=self.name)
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._opened_at = None
            metrics.update_circuit_breaker_state(self.name, "closed")

    async def record_failure(self) -> None:
        """Record a failed lookup."""
        async with self._lock:
            self._failure_count += 1
            metrics.record_circuit_breaker_failure(self.name)

            if self.state == CircuitState.HALF_OPEN:
                self._open()
                logger.warning("circuit_breaker_reopened", name=self.name)
            elif self._failure_count >= self.failure_threshold:
                if self._state != CircuitState.OPEN:
                    logger.warning(
                        "circuit_breaker_opened",
                        name=self.name,
                        failure_count=self._failure_count,
                        recovery_timeout=self.recovery_timeout,
                    )
                self._open()

    def _open(self) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = time.monotonic()
        metrics.update_circuit_breaker_state(self.name, "open")

    def reset(self) -> None:
        """Reset circuit breaker to closed state."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at = None
        metrics.update_circuit_breaker_state(self.name, "closed")
        logger.info("circuit_breaker_reset", name=self.name)


# =============================================================================
# Global Circuit Breaker Registry
# =============================================================================


_circuit_breakers: dict[str, CircuitBreaker] = {}


def get_circuit_breaker(
    name: str,
    failure_threshold: int = 5,
    recovery_timeout: float = 60.0,
) -> CircuitBreaker:
    """
    Get or create a circuit breaker by name.

    Thresholds only apply when the breaker is first created.
    """
    if name not in _circuit_breakers:
        _circuit_breakers[name] = CircuitBreaker(
            name=name,
            failure_threshold=failure_threshold,
            recovery_timeout=recovery_timeout,
        )
    return _circuit_breakers[name]


def reset_all_circuit_breakers() -> None:
    """Reset all circuit breakers to closed state."""
    for breaker in _circuit_breakers.values():
        breaker.reset()
