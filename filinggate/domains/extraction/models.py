"""
Extraction Models - Data types for extraction domain.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class TableCell(BaseModel):
    """Single recognized table cell."""

    text: str = ""
    row_span: int = 1
    col_span: int = 1
    confidence: float = 0.0


class TableRow(BaseModel):
    """Row of table cells."""

    cells: list[TableCell] = Field(default_factory=list)

    @property
    def texts(self) -> list[str]:
        return [cell.text.strip() for cell in self.cells]


class Table(BaseModel):
    """Detected table, header rows split from body rows."""

    header_rows: list[TableRow] = Field(default_factory=list)
    body_rows: list[TableRow] = Field(default_factory=list)

    @property
    def rows(self) -> list[TableRow]:
        return [*self.header_rows, *self.body_rows]


class TextBlock(BaseModel):
    """Block, line or paragraph of recognized text."""

    text: str
    confidence: float = 1.0


class Page(BaseModel):
    """One recognized page."""

    page_number: int
    width: float = 0.0
    height: float = 0.0
    blocks: list[TextBlock] = Field(default_factory=list)
    paragraphs: list[TextBlock] = Field(default_factory=list)
    tables: list[Table] = Field(default_factory=list)


class RawExtraction(BaseModel):
    """Ephemeral output of one provider invocation."""

    provider: str
    text: str = ""
    pages: list[Page] = Field(default_factory=list)
    mime_type: str = "application/pdf"

    @property
    def page_count(self) -> int:
        return len(self.pages)


class CodeFrequency(BaseModel):
    """Frequency of one numeric code token."""

    code: str
    count: int

    model_config = {"frozen": True}


class QualitySignal(BaseModel):
    """Structural quality metrics derived from one RawExtraction."""

    provider: str
    page_count: int = Field(ge=0)
    text_length: int = Field(ge=0)
    table_count: int = Field(ge=0)
    block_count: int = Field(ge=0)
    paragraph_count: int = Field(ge=0)
    distinct_code_count: int = Field(ge=0)
    top_codes: list[CodeFrequency] = Field(default_factory=list)
    score: float = Field(ge=0.0, le=1.0, description="Informational quality score")

    model_config = {"frozen": True}

    @property
    def chars_per_page(self) -> float | None:
        """Text density, None when there are no pages."""
        if self.page_count == 0:
            return None
        return self.text_length / self.page_count


class QualityThresholds(BaseModel):
    """Tuning constants for the fallback decisions."""

    min_chars_per_page: int = Field(default=200, ge=0)
    page_coverage_ratio: float = Field(default=0.8, gt=0.0, le=1.0)
    text_coverage_ratio: float = Field(default=0.6, gt=0.0, le=1.0)

    model_config = {"frozen": True}


class FallbackDecision(BaseModel):
    """Outcome of the should-fallback test."""

    should_fallback: bool
    reasons: list[str] = Field(default_factory=list)


class AcceptanceDecision(BaseModel):
    """Outcome of the should-accept-fallback test."""

    accepted: bool
    min_page_coverage: int
    min_text_coverage: int
    reasons: list[str] = Field(default_factory=list)


class ProviderAttempt(BaseModel):
    """Audit entry for one provider invocation."""

    provider: str
    succeeded: bool
    duration_ms: float = 0.0
    error: str | None = None
    is_transient: bool | None = None
    quality: QualitySignal | None = None


class ExtractionOutcome(BaseModel):
    """Result of orchestrating primary and fallback providers."""

    raw: RawExtraction
    quality: QualitySignal
    provider_used: str
    used_fallback: bool = False
    warnings: list[str] = Field(default_factory=list)
    attempts: list[ProviderAttempt] = Field(default_factory=list)
