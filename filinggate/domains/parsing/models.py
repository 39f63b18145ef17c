"""
Parsing Models - Versioned structured record and its readiness gate.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

from filinggate.config.errors import SchemaVersionError

SCHEMA_VERSION = "1.0.0"


class ReadinessLevel(str, Enum):
    """How far automated analysis may trust the record."""

    READY = "READY"
    READY_LIMITED = "READY_LIMITED"
    BLOCKED = "BLOCKED"


class UnitScale(str, Enum):
    """Presentation scale of reported amounts."""

    UNITS = "UNITS"
    THOUSANDS = "THOUSANDS"
    MILLIONS = "MILLIONS"

    @property
    def multiplier(self) -> int:
        return {"UNITS": 1, "THOUSANDS": 1_000, "MILLIONS": 1_000_000}[self.value]


class CompanySize(str, Enum):
    """Entity size class."""

    SMALL = "SMALL"
    MEDIUM = "MEDIUM"
    LARGE = "LARGE"
    UNKNOWN = "UNKNOWN"


class AccountType(str, Enum):
    """Account filing type."""

    FULL = "FULL"
    ABRIDGED = "ABRIDGED"
    UNKNOWN = "UNKNOWN"


class UnitScaleDetection(BaseModel):
    """Detected unit scale with supporting evidence."""

    scale: UnitScale = UnitScale.UNITS
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    source: Literal["explicit_text", "magnitude_analysis", "default"] = "default"
    evidence: list[str] = Field(default_factory=list)

    @property
    def uncertain(self) -> bool:
        return self.confidence < 0.8


class LineItem(BaseModel):
    """One reference-coded statement line."""

    code: str
    caption: str = ""
    current_year: float | None = None
    prior_year: float | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    source_page: int | None = None
    section: Literal["balance_sheet", "profit_loss", "other"] = "other"


class MetricNotCalculable(BaseModel):
    """Metric the record could not compute, with missing inputs."""

    metric_name: str
    reason: str
    missing_inputs: list[str] = Field(default_factory=list)


class ICTransaction(BaseModel):
    """Intercompany balance or flow."""

    transaction_type: str
    counterparty: str | None = None
    amount: float | None = None
    currency: str = "EUR"
    interest_rate: float | None = None
    code: str | None = None
    source_page: int | None = None
    confidence: float = 0.0


class RelatedPartyTransaction(BaseModel):
    """Related-party disclosure."""

    nature: str
    counterparty: str | None = None
    relationship: str | None = None
    amount: float | None = None
    is_arms_length: bool | None = None
    source_page: int | None = None


class EntityProfile(BaseModel):
    """Profile of the reporting entity."""

    name: str
    legal_form: str | None = None
    average_employees: int | None = None
    is_consolidated: bool = False
    consolidation_source: str | None = None
    likely_holding: bool = False


class ReviewAction(BaseModel):
    """Manual review step required before relying on the record."""

    action_type: Literal["confirm_unit_scale", "confirm_mapping", "confirm_consolidation", "fix_arithmetic", "provide_data"]
    description: str
    priority: Literal["high", "medium", "low"] = "medium"
    code: str | None = None
    current_value: str | None = None


class MappingGate(BaseModel):
    """Confidence distribution of mapped reference codes."""

    high_confidence_pct: float = 0.0
    medium_confidence_pct: float = 0.0
    low_confidence_pct: float = 100.0
    overall_mapping_confidence: float = 0.0
    affected_critical_codes: list[str] = Field(default_factory=list)

    @property
    def critical_codes_affected(self) -> bool:
        return bool(self.affected_critical_codes)


class DataQualityGate(BaseModel):
    """Presence of statement sections."""

    has_balance_sheet: bool = False
    has_profit_loss: bool = False
    has_notes: bool = False
    has_management_report: bool = False
    completeness_score: int = 0
    missing_critical_data: list[str] = Field(default_factory=list)


class ModuleTrustLevels(BaseModel):
    """Trust per analysis module, 0..1."""

    financial_statements: float = 0.0
    related_parties: float = 0.0
    management_report: float = 0.0


class PreAnalysisGate(BaseModel):
    """Readiness classification embedded in the structured record."""

    readiness_level: ReadinessLevel
    blocking_issues: list[str] = Field(default_factory=list)
    warning_issues: list[str] = Field(default_factory=list)
    review_actions: list[ReviewAction] = Field(default_factory=list)
    can_proceed_to_analysis: bool
    override_applied: bool = False
    unit_scale_validated: bool = False
    balance_sheet_balances: bool = True
    is_consolidated: bool = False
    mapping_gate: MappingGate = Field(default_factory=MappingGate)
    data_quality_gate: DataQualityGate = Field(default_factory=DataQualityGate)
    module_trust_levels: ModuleTrustLevels = Field(default_factory=ModuleTrustLevels)

    @model_validator(mode="after")
    def check_contract(self) -> PreAnalysisGate:
        """BLOCKED carries a reason and refuses analysis unless overridden."""
        if self.readiness_level == ReadinessLevel.BLOCKED:
            if not self.blocking_issues:
                raise ValueError("BLOCKED gate must carry at least one blocking issue")
            if self.can_proceed_to_analysis and not self.override_applied:
                raise ValueError("BLOCKED gate cannot proceed without an override")
        return self


class RecordMetadata(BaseModel):
    """Metadata block of the structured record."""

    entity_id: str
    entity_name: str
    period_end: date | None = None
    company_size: CompanySize = CompanySize.UNKNOWN
    account_type: AccountType = AccountType.UNKNOWN
    reporting_standard: str = "LUX_GAAP"
    overall_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    unit_scale: UnitScale = UnitScale.UNITS
    unit_scale_validated: bool = False
    document_language: Literal["en", "fr", "de", "unknown"] = "unknown"
    page_count: int = 0
    provider: str = ""


class StructuredRecord(BaseModel):
    """Durable, versioned output of parsing."""

    schema_version: str = SCHEMA_VERSION
    metadata: RecordMetadata
    profile: EntityProfile
    line_items: list[LineItem] = Field(default_factory=list)
    deterministic_metrics: dict[str, float | None] = Field(default_factory=dict)
    metrics_not_calculable: list[MetricNotCalculable] = Field(default_factory=list)
    pre_analysis_gate: PreAnalysisGate
    ic_transactions: list[ICTransaction] = Field(default_factory=list)
    related_party_transactions: list[RelatedPartyTransaction] = Field(default_factory=list)
    extraction_warnings: list[str] = Field(default_factory=list)

    @classmethod
    def from_stored(cls, data: dict[str, Any]) -> StructuredRecord:
        """Load a persisted record, checking schema version before field access."""
        version = data.get("schema_version")
        if version != SCHEMA_VERSION:
            raise SchemaVersionError(version, SCHEMA_VERSION)
        return cls.model_validate(data)

    def value_of(self, code: str) -> float | None:
        """Current-year value for a reference code."""
        for item in self.line_items:
            if item.code == code:
                return item.current_year
        return None


class ParseOutcome(BaseModel):
    """Parser result: record plus non-fatal warnings."""

    record: StructuredRecord
    warnings: list[str] = Field(default_factory=list)
