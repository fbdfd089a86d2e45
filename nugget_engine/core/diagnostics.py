"""
Structured diagnostics for a single normalization call.

Every non-fatal condition (a removed duplicate, degraded enrichment, a
blocked metadata overwrite) is recorded here and returned to the caller
with the result. Each record is also logged and counted in DIAGNOSTICS_TOTAL.
"""

from typing import Any, Iterable

import structlog

from nugget_engine.models.schemas import Diagnostic, DiagnosticCode
from nugget_engine.monitoring.metrics import record_diagnostic

logger = structlog.get_logger(__name__)

# Conditions that mean something the user sent was changed or dropped.
_WARNING_CODES = frozenset(
    {
        DiagnosticCode.ENRICHMENT_DEGRADED,
        DiagnosticCode.METADATA_PRESERVED_OVERRIDE,
        DiagnosticCode.TAGS_SENTINEL_SUBSTITUTED,
        DiagnosticCode.IMAGES_REDUCED,
        DiagnosticCode.PRIMARY_MEDIA_CLEARED,
    }
)


class DiagnosticsCollector:
    """Accumulates diagnostics and mirrors them to the log."""

    def __init__(self, **context: Any):
        self._items: list[Diagnostic] = []
        self._log = logger.bind(**context) if context else logger

    def record(self, code: DiagnosticCode, **detail: Any) -> Diagnostic:
        diagnostic = Diagnostic(code=code, detail=detail)
        self._items.append(diagnostic)
        record_diagnostic(code.value)

        if code in _WARNING_CODES:
            self._log.warning(code.value, **detail)
        else:
            self._log.info(code.value, **detail)
        return diagnostic

    def extend(self, diagnostics: Iterable[Diagnostic]) -> None:
        """Adopt diagnostics produced by a helper that returns its own list."""
        for diagnostic in diagnostics:
            self.record(diagnostic.code, **diagnostic.detail)

    def has(self, code: DiagnosticCode) -> bool:
        return any(d.code == code for d in self._items)

    @property
    def items(self) -> list[Diagnostic]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)
