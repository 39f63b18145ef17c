"""
Analysis Domain - Model analysis constrained by readiness.

This domain handles:
- Prompt building from structured records
- Typed parsing of model responses
- Mechanical opportunity filtering and risk flag constraints
- Deterministic risk scoring
"""

from .contracts import Analyzer, TextGenerator
from .engine import AnalysisEngine, compute_risk_score
from .models import (
    AnalysisRecord,
    AnalysisResult,
    ModelAnalysis,
    Opportunity,
    OpportunityType,
    RiskFlags,
    Severity,
)
from .opportunity_gate import (
    constrain_flags,
    filter_opportunities,
    get_allowed_opportunity_types,
    validate_opportunity,
)
from .response_parser import parse_analysis_response

__all__ = [
    # Contracts
    "TextGenerator",
    "Analyzer",
    # Models
    "AnalysisRecord",
    "AnalysisResult",
    "ModelAnalysis",
    "Opportunity",
    "OpportunityType",
    "RiskFlags",
    "Severity",
    # Implementations
    "AnalysisEngine",
    "compute_risk_score",
    "filter_opportunities",
    "validate_opportunity",
    "get_allowed_opportunity_types",
    "constrain_flags",
    "parse_analysis_response",
]
