"""Unit tests for the circuit breaker."""

from unittest.mock import patch

import pytest
from prometheus_client import REGISTRY

from nugget_engine.core.circuit_breaker import (
    CircuitBreaker,
    CircuitState,
    get_circuit_breaker,
    reset_all_circuit_breakers,
)


class TestCircuitBreaker:
    """Tests for state transitions."""

    @pytest.fixture
    def breaker(self):
        """Breaker that opens after two failures and recovers after 30s."""
        return CircuitBreaker(name="test_service", failure_threshold=2, recovery_timeout=30.0)

    @pytest.mark.asyncio
    async def test_starts_closed(self, breaker):
        """A new breaker lets lookups through."""
        assert breaker.state == CircuitState.CLOSED
        assert breaker.can_execute() is True

    @pytest.mark.asyncio
    async def test_opens_at_threshold(self, breaker):
        """Consecutive failures up to the threshold open the circuit."""
        await breaker.record_failure()
        assert breaker.state == CircuitState.CLOSED

        await breaker.record_failure()
        assert breaker.state == CircuitState.OPEN
        assert breaker.can_execute() is False
        assert breaker.time_until_recovery() > 0

    @pytest.mark.asyncio
    async def test_success_resets_count(self, breaker):
        """A success between failures starts the count over."""
        await breaker.record_failure()
        await breaker.record_success()
        await breaker.record_failure()

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 1

    @pytest.mark.asyncio
    async def test_half_open_after_recovery_timeout(self, breaker):
        """An open circuit admits a trial request once the recovery window passes."""
        with patch("nugget_engine.core.circuit_breaker.time.monotonic", return_value=1000.0):
            await breaker.record_failure()
            await breaker.record_failure()

        with patch("nugget_engine.core.circuit_breaker.time.monotonic", return_value=1031.0):
            assert breaker.state == CircuitState.HALF_OPEN
            assert breaker.can_execute() is True

    @pytest.mark.asyncio
    async def test_failed_trial_reopens(self, breaker):
        """A failure while half-open opens the circuit again."""
        with patch("nugget_engine.core.circuit_breaker.time.monotonic", return_value=1000.0):
            await breaker.record_failure()
            await breaker.record_failure()

        with patch("nugget_engine.core.circuit_breaker.time.monotonic", return_value=1031.0):
            await breaker.record_failure()
            assert breaker.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_state_exported_as_gauge(self, breaker):
        """Opening the circuit sets the state gauge to 2."""
        await breaker.record_failure()
        await breaker.record_failure()

        assert REGISTRY.get_sample_value(
            "nugget_engine_circuit_breaker_state", {"service": "test_service"}
        ) == 2.0

        breaker.reset()

        assert REGISTRY.get_sample_value(
            "nugget_engine_circuit_breaker_state", {"service": "test_service"}
        ) == 0.0


class TestRegistry:
    """Tests for the process-wide registry."""

    def test_same_name_same_breaker(self):
        """Breakers are shared by name."""
        assert get_circuit_breaker("registry_test") is get_circuit_breaker("registry_test")

    def test_thresholds_fixed_at_creation(self):
        """Later calls do not change an existing breaker's thresholds."""
        first = get_circuit_breaker("threshold_test", failure_threshold=3)
        second = get_circuit_breaker("threshold_test", failure_threshold=9)

        assert second.failure_threshold == first.failure_threshold == 3

    @pytest.mark.asyncio
    async def test_reset_all(self):
        """reset_all_circuit_breakers closes every breaker."""
        breaker = get_circuit_breaker("reset_test", failure_threshold=1)
        await breaker.record_failure()
        assert breaker.state == CircuitState.OPEN

        reset_all_circuit_breakers()

        assert breaker.state == CircuitState.CLOSED
