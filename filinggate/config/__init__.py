"""
Configuration - Application settings and error taxonomy.
"""

from .errors import (
    AnalysisError,
    DocumentIntakeError,
    ErrorCode,
    ExtractionError,
    FilingGateError,
    GateBlockedError,
    InvalidTransitionError,
    LLMError,
    NotFoundError,
    ParseError,
    ProviderError,
    SchemaVersionError,
    StorageError,
)
from .settings import Settings, get_settings

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    # Errors
    "ErrorCode",
    "FilingGateError",
    "ProviderError",
    "ExtractionError",
    "ParseError",
    "SchemaVersionError",
    "DocumentIntakeError",
    "GateBlockedError",
    "AnalysisError",
    "LLMError",
    "InvalidTransitionError",
    "NotFoundError",
    "StorageError",
]
