"""
Error Taxonomy - Consistent error codes across the application.

Usage:
    from filinggate.config.errors import ErrorCode, FilingGateError

    raise FilingGateError(ErrorCode.PARSE_FAILED, "0 pages detected")
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standardized error codes for machine-readable error responses."""

    # Provider errors
    PROVIDER_FAILED = "PROVIDER_FAILED"
    PROVIDER_TIMEOUT = "PROVIDER_TIMEOUT"
    PROVIDER_AUTH_FAILED = "PROVIDER_AUTH_FAILED"

    # Extraction / parsing errors
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    PARSE_FAILED = "PARSE_FAILED"
    SCHEMA_VERSION_UNSUPPORTED = "SCHEMA_VERSION_UNSUPPORTED"

    # Document intake errors
    INTAKE_PERMISSION_DENIED = "INTAKE_PERMISSION_DENIED"
    INTAKE_AUTH_FAILED = "INTAKE_AUTH_FAILED"
    INTAKE_NOT_FOUND = "INTAKE_NOT_FOUND"
    INTAKE_TRANSIENT = "INTAKE_TRANSIENT"

    # Analysis errors
    ANALYSIS_BLOCKED = "ANALYSIS_BLOCKED"
    ANALYSIS_FAILED = "ANALYSIS_FAILED"
    INTEGRITY_DRIFT = "INTEGRITY_DRIFT"

    # LLM/Model errors
    LLM_UNAVAILABLE = "LLM_UNAVAILABLE"
    LLM_RATE_LIMITED = "LLM_RATE_LIMITED"

    # Pipeline state errors
    INVALID_TRANSITION = "INVALID_TRANSITION"

    # Storage errors
    STORAGE_CONNECTION_FAILED = "STORAGE_CONNECTION_FAILED"
    STORAGE_WRITE_FAILED = "STORAGE_WRITE_FAILED"

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"


class FilingGateError(Exception):
    """Base exception with error code support."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(f"[{code.value}] {message}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to API-friendly dictionary."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


# Domain-specific exceptions for cleaner imports
class ProviderError(FilingGateError):
    """A single extraction provider invocation failed."""

    def __init__(
        self,
        message: str,
        provider: str,
        is_transient: bool = False,
        code: ErrorCode = ErrorCode.PROVIDER_FAILED,
    ) -> None:
        self.provider = provider
        self.is_transient = is_transient
        super().__init__(
            code,
            message,
            {"provider": provider, "is_transient": is_transient},
        )


class ExtractionError(FilingGateError):
    """Extraction could not produce any provider output."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.EXTRACTION_FAILED, message, details)


class ParseError(FilingGateError):
    """Structural parser could not produce a structured record."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.PARSE_FAILED, message, details)


class SchemaVersionError(FilingGateError):
    """Stored structured record has an unsupported schema version."""

    def __init__(self, found: str | None, expected: str) -> None:
        super().__init__(
            ErrorCode.SCHEMA_VERSION_UNSUPPORTED,
            f"Structured record schema version {found!r} is not supported (expected {expected!r})",
            {"found": found, "expected": expected},
        )


class DocumentIntakeError(FilingGateError):
    """Document bytes could not be fetched from the intake collaborator."""

    _CODES = {
        "permission-denied": ErrorCode.INTAKE_PERMISSION_DENIED,
        "auth-failed": ErrorCode.INTAKE_AUTH_FAILED,
        "not-found": ErrorCode.INTAKE_NOT_FOUND,
        "transient": ErrorCode.INTAKE_TRANSIENT,
    }

    def __init__(self, message: str, kind: str) -> None:
        if kind not in self._CODES:
            raise ValueError(f"Unknown intake error kind: {kind}")
        self.kind = kind
        super().__init__(self._CODES[kind], message, {"kind": kind})

    @property
    def is_transient(self) -> bool:
        return self.kind == "transient"


class GateBlockedError(FilingGateError):
    """Analysis refused because the readiness gate is BLOCKED."""

    def __init__(self, blocking_issues: list[str]) -> None:
        self.blocking_issues = list(blocking_issues)
        super().__init__(
            ErrorCode.ANALYSIS_BLOCKED,
            "Analysis blocked by pre-analysis gate",
            {"blocking_issues": self.blocking_issues},
        )


class AnalysisError(FilingGateError):
    """Analysis collaborator failed or returned an unusable response."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.ANALYSIS_FAILED, message, details)


class LLMError(FilingGateError):
    """LLM/model errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        code: ErrorCode = ErrorCode.LLM_UNAVAILABLE,
    ) -> None:
        super().__init__(code, message, details)


class InvalidTransitionError(FilingGateError):
    """Requested status change is not allowed from the current state."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.INVALID_TRANSITION, message, details)


class NotFoundError(FilingGateError):
    """Requested document does not exist."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.NOT_FOUND, message, details)


class StorageError(FilingGateError):
    """Storage/database errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.STORAGE_WRITE_FAILED, message, details)
