"""
Extraction Orchestrator - Runs primary and fallback providers.

Flow:
1. Primary provider with timeout
2. Primary failure -> fallback provider unconditionally
3. Low primary quality -> fallback provider + acceptance test
4. Every non-fatal decision is recorded as a warning string
"""

from __future__ import annotations

import asyncio
import logging
import time

from filinggate.config.errors import ErrorCode, ExtractionError, ProviderError

from .contracts import ExtractionProvider
from .fallback import FallbackPolicy
from .models import ExtractionOutcome, ProviderAttempt, QualitySignal, RawExtraction
from .quality import evaluate

logger = logging.getLogger(__name__)

__all__ = ["ExtractionOrchestrator"]


class ExtractionOrchestrator:
    """
    Provider selection with quality-driven fallback.

    Example:
        >>> orchestrator = ExtractionOrchestrator(DocumentAIProvider(...), AzureLayoutProvider(...))
        >>> outcome = await orchestrator.run(pdf_bytes)
        >>> outcome.provider_used
        'document_ai'
    """

    def __init__(
        self,
        primary: ExtractionProvider,
        secondary: ExtractionProvider | None = None,
        policy: FallbackPolicy | None = None,
        timeout_seconds: float = 300.0,
        top_code_count: int = 10,
    ) -> None:
        """
        Initialize orchestrator.

        Args:
            primary: Primary provider
            secondary: Fallback provider, if configured
            policy: Fallback policy. Built from `secondary` if None.
            timeout_seconds: Deadline for each provider call
            top_code_count: Code tokens kept in quality signals
        """
        self._primary = primary
        self._secondary = secondary
        self._policy = policy or FallbackPolicy(fallback_configured=secondary is not None)
        self._timeout = timeout_seconds
        self._top_n = top_code_count

    @property
    def policy(self) -> FallbackPolicy:
        return self._policy

    async def run(self, content: bytes) -> ExtractionOutcome:
        """
        Extract a document, falling back when the primary fails or is weak.

        Raises:
            ProviderError: Primary failed and no fallback is configured
            ExtractionError: Both providers failed
        """
        attempts: list[ProviderAttempt] = []
        warnings: list[str] = []

        try:
            raw, quality = await self._invoke(self._primary, content, attempts)
        except ProviderError as primary_error:
            return await self._after_primary_failure(content, primary_error, attempts)

        decision = self._policy.should_fallback(quality)
        if not decision.should_fallback:
            return self._outcome(raw, quality, False, warnings, attempts)

        reasons = "; ".join(decision.reasons)
        logger.info("Primary %s quality low: %s", self._primary.name, reasons)

        if self._secondary is None or not self._policy.fallback_configured:
            warnings.append(f"Fallback skipped (no fallback provider configured): {reasons}")
            return self._outcome(raw, quality, False, warnings, attempts)

        try:
            fallback_raw, fallback_quality = await self._invoke(self._secondary, content, attempts)
        except ProviderError as e:
            warnings.append(f"{self._secondary.name} fallback failed: {e.message}")
            warnings.append(f"Kept {self._primary.name} output despite: {reasons}")
            return self._outcome(raw, quality, False, warnings, attempts)

        acceptance = self._policy.should_accept(quality, fallback_quality)
        if acceptance.accepted:
            logger.info("Accepted %s fallback output", self._secondary.name)
            warnings.append(f"Used {self._secondary.name} fallback due to: {reasons}")
            return self._outcome(fallback_raw, fallback_quality, True, warnings, attempts)

        logger.warning(
            "Rejected %s fallback output: %s",
            self._secondary.name,
            "; ".join(acceptance.reasons),
        )
        warnings.append(f"{self._secondary.name} fallback rejected: {'; '.join(acceptance.reasons)}")
        warnings.append(f"Kept {self._primary.name} output despite: {reasons}")
        return self._outcome(raw, quality, False, warnings, attempts)

    async def _after_primary_failure(
        self,
        content: bytes,
        primary_error: ProviderError,
        attempts: list[ProviderAttempt],
    ) -> ExtractionOutcome:
        """Try the secondary unconditionally; any success is used."""
        if self._secondary is None:
            logger.error("Primary %s failed, no fallback: %s", self._primary.name, primary_error.message)
            raise primary_error

        logger.warning(
            "Primary %s failed, trying %s: %s",
            self._primary.name,
            self._secondary.name,
            primary_error.message,
        )
        try:
            raw, quality = await self._invoke(self._secondary, content, attempts)
        except ProviderError as secondary_error:
            raise ExtractionError(
                f"{self._primary.name} failed: {primary_error.message}. "
                f"{self._secondary.name} fallback failed: {secondary_error.message}",
                {"attempts": [a.model_dump(mode="json") for a in attempts]},
            ) from secondary_error

        warnings = [
            f"{self._primary.name} failed; used {self._secondary.name} fallback. "
            f"Reason: {primary_error.message}"
        ]
        return self._outcome(raw, quality, True, warnings, attempts)

    async def _invoke(
        self,
        provider: ExtractionProvider,
        content: bytes,
        attempts: list[ProviderAttempt],
    ) -> tuple[RawExtraction, QualitySignal]:
        """Call one provider under the deadline and score its output."""
        start = time.time()
        try:
            raw = await asyncio.wait_for(
                provider.extract(content, timeout=self._timeout),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            error = ProviderError(
                f"{provider.name} timed out after {self._timeout:g}s",
                provider=provider.name,
                is_transient=True,
                code=ErrorCode.PROVIDER_TIMEOUT,
            )
            attempts.append(self._failed_attempt(provider, start, error))
            raise error from e
        except ProviderError as e:
            attempts.append(self._failed_attempt(provider, start, e))
            raise

        quality = evaluate(raw, self._top_n, self._policy.thresholds.min_chars_per_page)
        attempts.append(
            ProviderAttempt(
                provider=provider.name,
                succeeded=True,
                duration_ms=(time.time() - start) * 1000,
                quality=quality,
            )
        )
        logger.info(
            "%s returned pages=%d tables=%d chars=%d",
            provider.name,
            quality.page_count,
            quality.table_count,
            quality.text_length,
        )
        return raw, quality

    @staticmethod
    def _failed_attempt(
        provider: ExtractionProvider, start: float, error: ProviderError
    ) -> ProviderAttempt:
        return ProviderAttempt(
            provider=provider.name,
            succeeded=False,
            duration_ms=(time.time() - start) * 1000,
            error=error.message,
            is_transient=error.is_transient,
        )

    @staticmethod
    def _outcome(
        raw: RawExtraction,
        quality: QualitySignal,
        used_fallback: bool,
        warnings: list[str],
        attempts: list[ProviderAttempt],
    ) -> ExtractionOutcome:
        return ExtractionOutcome(
            raw=raw,
            quality=quality,
            provider_used=raw.provider,
            used_fallback=used_fallback,
            warnings=warnings,
            attempts=attempts,
        )
