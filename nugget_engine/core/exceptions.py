"""
Core exception hierarchy for nugget-engine.

Provides standardized exception types with categorization for retry logic.
Only ValidationError and StaleReadError are allowed to escape the
normalization pipeline; every other failure degrades into a diagnostic.
"""

from typing import Any, Optional


# =============================================================================
# Base Exceptions
# =============================================================================


class NuggetEngineError(Exception):
    """Base exception for all nugget-engine errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class RetryableError(NuggetEngineError):
    """
    Transient errors that may succeed on a later attempt.

    Examples: enrichment timeouts, preview service unavailable.
    """

    pass


class PermanentError(NuggetEngineError):
    """
    Errors that won't be fixed by retrying.

    Examples: empty tag set, unreadable stored document, bad configuration.
    """

    pass


# =============================================================================
# Submission Errors (abort the pipeline)
# =============================================================================


class ValidationError(PermanentError):
    """Raised when a submission cannot be normalized into a valid record."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.field = field
        merged = dict(details or {})
        if field:
            merged.setdefault("field", field)
        super().__init__(message, merged)


class EmptyTagSetError(ValidationError):
    """Raised when tag normalization leaves nothing behind."""

    def __init__(self, raw_tags: Optional[list[Any]] = None):
        self.raw_tags = list(raw_tags or [])
        super().__init__(
            "At least one tag is required",
            field="tags",
            details={"raw_count": len(self.raw_tags)},
        )


class StaleReadError(PermanentError):
    """Raised when edit mode cannot load a usable copy of the stored document."""

    def __init__(
        self,
        content_id: str,
        reason: str,
        details: Optional[dict[str, Any]] = None,
    ):
        self.content_id = content_id
        self.reason = reason
        merged = {"content_id": content_id, **(details or {})}
        super().__init__(f"Cannot read existing content {content_id}: {reason}", merged)


# =============================================================================
# Enrichment Errors (always degrade, never abort)
# =============================================================================


class EnrichmentError(NuggetEngineError):
    """Base exception for preview metadata lookups."""

    def __init__(
        self,
        url: str,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ):
        self.url = url
        super().__init__(f"[enrichment] {message}", {"url": url, **(details or {})})


class EnrichmentTimeoutError(EnrichmentError, RetryableError):
    """Raised when a preview lookup exceeds its timeout."""

    pass


class EnrichmentUnavailableError(EnrichmentError, RetryableError):
    """Raised when the preview service is unreachable or its circuit is open."""

    pass


class EnrichmentResponseError(EnrichmentError, PermanentError):
    """Raised when the preview service answers with something unusable."""

    pass


# =============================================================================
# Storage Errors
# =============================================================================


class ContentStoreError(NuggetEngineError):
    """Raised when the persistence collaborator fails."""

    pass


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(PermanentError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        self.config_key = config_key
        details = {"config_key": config_key} if config_key else None
        super().__init__(message, details)


# =============================================================================
# Circuit Breaker
# =============================================================================


class CircuitBreakerOpenError(RetryableError):
    """Raised when circuit breaker is open and blocking requests."""

    def __init__(self, service: str, recovery_time: float):
        self.service = service
        self.recovery_time = recovery_time
        super().__init__(
            f"Circuit breaker open for {service}. Recovery in {recovery_time:.1f}s",
            {"service": service, "recovery_time": recovery_time},
        )
