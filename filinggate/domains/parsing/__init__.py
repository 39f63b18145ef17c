"""
Parsing Domain - Versioned structured records and readiness gating.

This domain handles:
- Reference-code mapping from provider tables
- Unit scale detection
- Deterministic financial metrics
- Pre-analysis readiness gates
"""

from .contracts import StructuralParser
from .gates import GateInputs, apply_override, evaluate_gates
from .metrics import METRIC_NAMES, compute_metrics
from .models import (
    SCHEMA_VERSION,
    AccountType,
    CompanySize,
    EntityProfile,
    ICTransaction,
    LineItem,
    ParseOutcome,
    PreAnalysisGate,
    ReadinessLevel,
    RecordMetadata,
    RelatedPartyTransaction,
    ReviewAction,
    StructuredRecord,
    UnitScale,
)
from .parser import FinancialStatementParser

__all__ = [
    # Contracts
    "StructuralParser",
    # Models
    "SCHEMA_VERSION",
    "StructuredRecord",
    "RecordMetadata",
    "EntityProfile",
    "LineItem",
    "ICTransaction",
    "RelatedPartyTransaction",
    "PreAnalysisGate",
    "ReviewAction",
    "ReadinessLevel",
    "UnitScale",
    "CompanySize",
    "AccountType",
    "ParseOutcome",
    # Implementations
    "FinancialStatementParser",
    "GateInputs",
    "evaluate_gates",
    "apply_override",
    "compute_metrics",
    "METRIC_NAMES",
]
