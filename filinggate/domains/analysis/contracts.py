"""
Analysis Contracts - Interfaces for the analysis domain.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from filinggate.domains.parsing.models import StructuredRecord

from .models import AnalysisResult

if TYPE_CHECKING:
    from filinggate.adapters.gemini import GeminiResponse


@runtime_checkable
class TextGenerator(Protocol):
    """Contract for the language model collaborator."""

    async def generate(
        self,
        prompt: str,
        system_instruction: str | None = None,
        temperature: float | None = None,
        max_output_tokens: int | None = None,
    ) -> GeminiResponse:
        """
        Generate free-form text.

        Args:
            prompt: User prompt
            system_instruction: System prompt
            temperature: Sampling temperature override
            max_output_tokens: Output token limit override

        Returns:
            Response text plus token usage

        Raises:
            LLMError: On any model failure. Never retried internally.
        """
        ...


@runtime_checkable
class Analyzer(Protocol):
    """Contract for the gated analysis engine."""

    async def analyze(self, record: StructuredRecord) -> AnalysisResult:
        """
        Analyze a record whose gate allows analysis.

        Raises:
            AnalysisError: Collaborator failure or unparseable response
        """
        ...

    def blocked_result(self, record: StructuredRecord) -> AnalysisResult:
        """Result for a BLOCKED record, built without any model call."""
        ...
