"""
Extraction Domain - Provider orchestration and output quality.

This domain handles:
- Uniform provider contract
- Structural quality signals
- Fallback and acceptance decisions
- Primary/fallback orchestration with timeouts
"""

from .contracts import ExtractionProvider
from .fallback import FallbackPolicy
from .models import (
    AcceptanceDecision,
    CodeFrequency,
    ExtractionOutcome,
    FallbackDecision,
    Page,
    ProviderAttempt,
    QualitySignal,
    QualityThresholds,
    RawExtraction,
    Table,
    TableCell,
    TableRow,
    TextBlock,
)
from .orchestrator import ExtractionOrchestrator
from .quality import evaluate

__all__ = [
    # Contracts
    "ExtractionProvider",
    # Models
    "RawExtraction",
    "Page",
    "Table",
    "TableRow",
    "TableCell",
    "TextBlock",
    "QualitySignal",
    "QualityThresholds",
    "CodeFrequency",
    "FallbackDecision",
    "AcceptanceDecision",
    "ProviderAttempt",
    "ExtractionOutcome",
    # Implementations
    "evaluate",
    "FallbackPolicy",
    "ExtractionOrchestrator",
]
