"""
Core infrastructure modules for nugget-engine.

Provides common utilities used across the package:
- exceptions: Standardized exception hierarchy
- circuit_breaker: Resilience pattern for the link preview service
- logging: structlog configuration
"""

from nugget_engine.core.exceptions import (
    NuggetEngineError,
    RetryableError,
    PermanentError,
    ValidationError,
    EmptyTagSetError,
    StaleReadError,
    EnrichmentError,
    EnrichmentTimeoutError,
    EnrichmentUnavailableError,
    EnrichmentResponseError,
    ContentStoreError,
    ConfigurationError,
    CircuitBreakerOpenError,
)

from nugget_engine.core.circuit_breaker import (
    CircuitBreaker,
    CircuitState,
    get_circuit_breaker,
    reset_all_circuit_breakers,
)

__all__ = [
    # Exceptions
    "NuggetEngineError",
    "RetryableError",
    "PermanentError",
    "ValidationError",
    "EmptyTagSetError",
    "StaleReadError",
    "EnrichmentError",
    "EnrichmentTimeoutError",
    "EnrichmentUnavailableError",
    "EnrichmentResponseError",
    "ContentStoreError",
    "ConfigurationError",
    "CircuitBreakerOpenError",
    # Circuit breaker
    "CircuitBreaker",
    "CircuitState",
    "get_circuit_breaker",
    "reset_all_circuit_breakers",
]
