"""
Prometheus metrics for nugget-engine.

Usage:
    from nugget_engine.monitoring.metrics import track_normalization

    with track_normalization("create"):
        result = await normalizer.normalize_for_create(submission)

    # Or manually
    DIAGNOSTICS_TOTAL.labels(code="duplicate_image_removed").inc()
"""

import time
from contextlib import contextmanager
from typing import Generator

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from nugget_engine.core.exceptions import StaleReadError, ValidationError


# =============================================================================
# Metric Definitions
# =============================================================================

# Normalization metrics
NORMALIZATION_DURATION = Histogram(
    "nugget_engine_normalization_duration_seconds",
    "Duration of a create or edit normalization in seconds",
    ["mode"],
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)

NORMALIZATION_TOTAL = Counter(
    "nugget_engine_normalization_total",
    "Total normalizations by outcome",
    ["mode", "status"],
)

DIAGNOSTICS_TOTAL = Counter(
    "nugget_engine_diagnostics_total",
    "Diagnostics emitted alongside successful results",
    ["code"],
)

# Enrichment metrics
ENRICHMENT_REQUESTS = Counter(
    "nugget_engine_enrichment_requests_total",
    "Link preview lookups by provider and outcome",
    ["provider", "status"],
)

ENRICHMENT_LATENCY = Histogram(
    "nugget_engine_enrichment_latency_seconds",
    "Latency of link preview lookups",
    ["provider"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 3.0, 5.0, 10.0],
)

# Circuit breaker metrics
CIRCUIT_BREAKER_STATE = Gauge(
    "nugget_engine_circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=half_open, 2=open)",
    ["service"],
)

CIRCUIT_BREAKER_FAILURES = Counter(
    "nugget_engine_circuit_breaker_failures_total",
    "Total failures recorded by circuit breakers",
    ["service"],
)


# =============================================================================
# Tracking Context Managers
# =============================================================================


@contextmanager
def track_normalization(mode: str) -> Generator[None, None, None]:
    """
    Track duration and outcome of one normalization.

    A raised ValidationError or StaleReadError counts as "rejected"; any
    other exception as "error".
    """
    start_time = time.perf_counter()
    status = "success"
    try:
        yield
    except (ValidationError, StaleReadError):
        status = "rejected"
        raise
    except Exception:
        status = "error"
        raise
    finally:
        NORMALIZATION_DURATION.labels(mode=mode).observe(time.perf_counter() - start_time)
        NORMALIZATION_TOTAL.labels(mode=mode, status=status).inc()


@contextmanager
def track_enrichment(provider: str) -> Generator[dict, None, None]:
    """
    Track one preview lookup.

    Usage:
        with track_enrichment("open-graph") as ctx:
            metadata = await fetch()
            ctx["status"] = "hit" if metadata else "miss"
    """
    start_time = time.perf_counter()
    context = {"status": "error"}
    try:
        yield context
    finally:
        ENRICHMENT_LATENCY.labels(provider=provider).observe(time.perf_counter() - start_time)
        ENRICHMENT_REQUESTS.labels(provider=provider, status=context["status"]).inc()


def record_diagnostic(code: str) -> None:
    DIAGNOSTICS_TOTAL.labels(code=code).inc()


def update_circuit_breaker_state(service: str, state: str) -> None:
    """
    Update circuit breaker state gauge.

    Args:
        service: Service name
        state: Circuit state ("closed", "half_open", "open")
    """
    state_map = {"closed": 0, "half_open": 1, "open": 2}
    CIRCUIT_BREAKER_STATE.labels(service=service).set(state_map.get(state, 0))


def record_circuit_breaker_failure(service: str) -> None:
    """Record a circuit breaker failure."""
    CIRCUIT_BREAKER_FAILURES.labels(service=service).inc()


def render_metrics() -> tuple[bytes, str]:
    """Current metrics in the Prometheus text format, with its content type."""
    return generate_latest(), CONTENT_TYPE_LATEST
