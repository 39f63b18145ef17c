"""
Pipeline Models - Document units and their lifecycle state machines.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from filinggate.config.errors import InvalidTransitionError
from filinggate.domains.analysis.models import AnalysisRecord
from filinggate.domains.extraction.models import ProviderAttempt, QualitySignal
from filinggate.domains.parsing.models import ReadinessLevel, StructuredRecord


class ExtractionStatus(str, Enum):
    """Extraction lifecycle."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class AnalysisStatus(str, Enum):
    """Analysis lifecycle, gated by extraction."""

    NONE = "none"
    BLOCKED = "blocked"
    READY = "ready"
    READY_WITH_WARNINGS = "ready_with_warnings"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


_READINESS_STATES = {
    AnalysisStatus.BLOCKED,
    AnalysisStatus.READY,
    AnalysisStatus.READY_WITH_WARNINGS,
}

# Only pending or failed may re-enter processing
EXTRACTION_TRANSITIONS: dict[ExtractionStatus, frozenset[ExtractionStatus]] = {
    ExtractionStatus.PENDING: frozenset({ExtractionStatus.PROCESSING}),
    ExtractionStatus.PROCESSING: frozenset({ExtractionStatus.COMPLETED, ExtractionStatus.FAILED}),
    ExtractionStatus.COMPLETED: frozenset({ExtractionStatus.PENDING}),
    ExtractionStatus.FAILED: frozenset({ExtractionStatus.PROCESSING, ExtractionStatus.PENDING}),
}

ANALYSIS_TRANSITIONS: dict[AnalysisStatus, frozenset[AnalysisStatus]] = {
    AnalysisStatus.NONE: frozenset(_READINESS_STATES),
    AnalysisStatus.BLOCKED: frozenset({AnalysisStatus.PROCESSING, *_READINESS_STATES}),
    AnalysisStatus.READY: frozenset({AnalysisStatus.PROCESSING, *_READINESS_STATES}),
    AnalysisStatus.READY_WITH_WARNINGS: frozenset({AnalysisStatus.PROCESSING, *_READINESS_STATES}),
    AnalysisStatus.PROCESSING: frozenset(
        {AnalysisStatus.COMPLETED, AnalysisStatus.FAILED, AnalysisStatus.BLOCKED}
    ),
    AnalysisStatus.COMPLETED: frozenset({AnalysisStatus.PROCESSING, *_READINESS_STATES}),
    AnalysisStatus.FAILED: frozenset({AnalysisStatus.PROCESSING, *_READINESS_STATES}),
}

READINESS_TO_STATUS = {
    ReadinessLevel.BLOCKED: AnalysisStatus.BLOCKED,
    ReadinessLevel.READY_LIMITED: AnalysisStatus.READY_WITH_WARNINGS,
    ReadinessLevel.READY: AnalysisStatus.READY,
}


def sources_for(
    table: dict[Any, frozenset[Any]],
    target: Any,
) -> list[Any]:
    """States from which a transition into target is legal."""
    return [state for state, targets in table.items() if target in targets]


def ensure_extraction_transition(current: ExtractionStatus, new: ExtractionStatus) -> None:
    """Raise InvalidTransitionError unless current -> new is legal."""
    if new not in EXTRACTION_TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Extraction cannot move from {current.value} to {new.value}",
            {"current": current.value, "requested": new.value},
        )


def ensure_analysis_transition(current: AnalysisStatus, new: AnalysisStatus) -> None:
    """Raise InvalidTransitionError unless current -> new is legal."""
    if new not in ANALYSIS_TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Analysis cannot move from {current.value} to {new.value}",
            {"current": current.value, "requested": new.value},
        )


class DocumentUnit(BaseModel):
    """One financial period of one legal entity."""

    id: str
    entity_id: str
    entity_name: str
    period_end: date | None = None
    file_handle: str | None = None
    extraction_status: ExtractionStatus = ExtractionStatus.PENDING
    analysis_status: AnalysisStatus = AnalysisStatus.NONE
    # Raw persisted payload; read through structured_record()
    record_data: dict[str, Any] | None = None
    schema_version: str | None = None
    record_fingerprint: str | None = None
    analysis_input_fingerprint: str | None = None
    extraction_warnings: list[str] = Field(default_factory=list)
    extraction_error: str | None = None
    analysis_error: str | None = None
    provider_used: str | None = None
    quality: QualitySignal | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def structured_record(self) -> StructuredRecord | None:
        """
        Typed structured record.

        Raises:
            SchemaVersionError: Persisted record uses another schema version
        """
        if self.record_data is None:
            return None
        return StructuredRecord.from_stored(self.record_data)


class PipelineStep(BaseModel):
    """Single step in a pipeline execution."""

    name: str
    status: str  # completed, failed, skipped
    duration_ms: float = 0.0
    output: Any = None
    error: str | None = None


class ExtractionReport(BaseModel):
    """Outcome of one extraction run."""

    document_id: str
    status: ExtractionStatus
    analysis_status: AnalysisStatus
    readiness_level: ReadinessLevel | None = None
    blocking_issues: list[str] = Field(default_factory=list)
    warning_issues: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    quality: QualitySignal | None = None
    provider_used: str | None = None
    used_fallback: bool = False
    attempts: list[ProviderAttempt] = Field(default_factory=list)
    can_proceed_to_analysis: bool = False
    requires_human_review: bool = False
    review_reason: str | None = None
    fingerprint: str | None = None
    steps: list[PipelineStep] = Field(default_factory=list)
    total_duration_ms: float = 0.0


class AnalysisReport(BaseModel):
    """Outcome of one analysis run."""

    document_id: str
    status: AnalysisStatus
    analysis: AnalysisRecord
    drift_detected: bool = False
    warnings: list[str] = Field(default_factory=list)
    steps: list[PipelineStep] = Field(default_factory=list)
    total_duration_ms: float = 0.0
