"""
Pipeline Domain - Document lifecycle and integrity.

This domain handles:
- Extraction and analysis state machines
- Record fingerprints and drift detection
- The controller that is the single writer of status fields
"""

from .contracts import DocumentRepository, DocumentSource
from .controller import PipelineController
from .integrity import DriftCheck, canonical_json, detect_drift, fingerprint
from .models import (
    ANALYSIS_TRANSITIONS,
    EXTRACTION_TRANSITIONS,
    AnalysisReport,
    AnalysisStatus,
    DocumentUnit,
    ExtractionReport,
    ExtractionStatus,
    PipelineStep,
    ensure_analysis_transition,
    ensure_extraction_transition,
)

__all__ = [
    # Contracts
    "DocumentRepository",
    "DocumentSource",
    # Models
    "DocumentUnit",
    "ExtractionStatus",
    "AnalysisStatus",
    "ExtractionReport",
    "AnalysisReport",
    "PipelineStep",
    "EXTRACTION_TRANSITIONS",
    "ANALYSIS_TRANSITIONS",
    # Implementations
    "PipelineController",
    "DriftCheck",
    "fingerprint",
    "canonical_json",
    "detect_drift",
    "ensure_extraction_transition",
    "ensure_analysis_transition",
]
