"""Prometheus metrics for normalization, enrichment and circuit breakers."""

from nugget_engine.monitoring.metrics import (
    record_circuit_breaker_failure,
    record_diagnostic,
    render_metrics,
    track_enrichment,
    track_normalization,
    update_circuit_breaker_state,
)

__all__ = [
    "record_circuit_breaker_failure",
    "record_diagnostic",
    "render_metrics",
    "track_enrichment",
    "track_normalization",
    "update_circuit_breaker_state",
]
