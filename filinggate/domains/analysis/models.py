"""
Analysis Models - Data types for the analysis domain.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from filinggate.domains.parsing.models import ReadinessLevel


class Severity(str, Enum):
    """Severity of a transfer-pricing opportunity."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class OpportunityType(str, Enum):
    """Opportunity types the readiness gate knows requirements for."""

    ZERO_SPREAD = "zero_spread"
    THIN_CAP = "thin_cap"
    UNREMUNERATED_GUARANTEE = "unremunerated_guarantee"
    UNDOCUMENTED_SERVICES = "undocumented_services"
    PRICING_ANOMALY = "pricing_anomaly"
    MISSING_DOCUMENTATION = "missing_documentation"
    RELATED_PARTY_FLAG = "related_party_flag"
    SUBSTANCE_CONCERN = "substance_concern"
    MATURITY_MISMATCH = "maturity_mismatch"
    SOPARFI_SUBSTANCE_RISK = "soparfi_substance_risk"
    CIRCULAR_56_1_CONCERN = "circular_56_1_concern"


class Opportunity(BaseModel):
    """One opportunity reported by the analysis collaborator."""

    # Kept as str so unknown types reach the gate instead of failing parsing
    type: str
    severity: Severity
    title: str
    description: str
    recommendation: str
    affected_amount: float | None = None
    potential_adjustment: float | None = None
    data_references: list[str] = Field(default_factory=list)
    regulatory_reference: str | None = None

    # Set by the opportunity gate
    scope: Literal["full", "limited"] | None = None
    generated_at_readiness_level: ReadinessLevel | None = None
    required_data_present: bool = False


class RiskFlags(BaseModel):
    """Boolean risk flags."""

    has_zero_spread: bool = False
    has_thin_cap_risk: bool = False
    has_unremunerated_guarantee: bool = False
    has_undocumented_services: bool = False
    has_substance_concerns: bool = False
    has_related_party_issues: bool = False

    @property
    def raised(self) -> int:
        return sum(1 for value in self.model_dump().values() if value)


class ModelAnalysis(BaseModel):
    """Typed form of the analysis collaborator's JSON response."""

    account_type: str | None = None
    company_size: str | None = None
    company_classification: str
    classification_reasoning: str
    opportunities: list[Opportunity]
    flags: RiskFlags
    risk_score: float
    priority_ranking: Literal["high", "medium", "low"]
    executive_summary: str
    recommended_actions: list[str]
    analysis_limitations: list[str] = Field(default_factory=list)
    documentation_gaps: list[str] = Field(default_factory=list)


class AnalysisResult(BaseModel):
    """Gated analysis output, ready to persist."""

    readiness_level: ReadinessLevel
    opportunities: list[Opportunity] = Field(default_factory=list)
    flags: RiskFlags = Field(default_factory=RiskFlags)
    risk_score: int = Field(default=0, ge=0, le=100)
    model_risk_score: float | None = None
    priority_ranking: Literal["high", "medium", "low"] = "low"
    company_classification: str | None = None
    executive_summary: str = ""
    recommended_actions: list[str] = Field(default_factory=list)
    limitations: list[str] = Field(default_factory=list)
    validation_warnings: list[str] = Field(default_factory=list)
    blocked: bool = False
    raw_response: str | None = None
    prompt_tokens: int = 0
    completion_tokens: int = 0


class AnalysisRecord(BaseModel):
    """Persisted analysis attempt for one document."""

    id: str
    document_id: str
    status: Literal["completed", "blocked", "failed"]
    readiness_level: ReadinessLevel
    input_fingerprint: str
    result: AnalysisResult | None = None
    limitations: list[str] = Field(default_factory=list)
    raw_response: str | None = None
    error: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def opportunity_count(self) -> int:
        return len(self.result.opportunities) if self.result else 0

    @property
    def risk_score(self) -> int:
        return self.result.risk_score if self.result else 0
