"""
Tests for primary/fallback provider orchestration.
"""

from __future__ import annotations

import asyncio

import httpx
import pytest

from filinggate.adapters.google import DocumentAIProvider, GoogleTokenProvider
from filinggate.config.errors import ErrorCode, ExtractionError, ProviderError

from .contracts import ExtractionProvider
from .fallback import FallbackPolicy
from .models import Page, RawExtraction, Table
from .orchestrator import ExtractionOrchestrator


class FakeProvider:
    """Provider returning a canned extraction or raising."""

    def __init__(
        self,
        name: str,
        pages: int = 0,
        tables: int = 0,
        text: str = "",
        error: ProviderError | None = None,
        delay: float = 0.0,
    ) -> None:
        self.name = name
        self.calls = 0
        self._pages = pages
        self._tables = tables
        self._text = text
        self._error = error
        self._delay = delay

    async def extract(self, content: bytes, timeout: float) -> RawExtraction:
        self.calls += 1
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        return RawExtraction(
            provider=self.name,
            text=self._text,
            pages=[
                Page(page_number=i + 1, tables=[Table()] * (self._tables if i == 0 else 0))
                for i in range(self._pages)
            ],
        )


def test_fake_provider_satisfies_contract() -> None:
    """Test the fake matches the provider protocol."""
    assert isinstance(FakeProvider("x"), ExtractionProvider)


async def test_good_primary_skips_fallback() -> None:
    """Test healthy primary output is used directly."""
    primary = FakeProvider("document_ai", pages=2, tables=1, text="x" * 1000)
    secondary = FakeProvider("azure", pages=2, tables=1, text="y" * 1000)

    outcome = await ExtractionOrchestrator(primary, secondary).run(b"%PDF")

    assert outcome.provider_used == "document_ai"
    assert not outcome.used_fallback
    assert outcome.warnings == []
    assert secondary.calls == 0


async def test_low_quality_without_fallback_records_warning() -> None:
    """Test reasons become warnings when no fallback exists."""
    primary = FakeProvider("document_ai", pages=0)

    outcome = await ExtractionOrchestrator(primary).run(b"%PDF")

    assert outcome.provider_used == "document_ai"
    assert len(outcome.warnings) == 1
    assert "0 pages detected" in outcome.warnings[0]
    assert "no fallback provider configured" in outcome.warnings[0]


async def test_low_quality_accepted_fallback_replaces_primary() -> None:
    """Test the tables==0 scenario accepts the fallback result."""
    primary = FakeProvider("document_ai", pages=10, tables=0, text="a" * 50)
    secondary = FakeProvider("azure", pages=9, tables=3, text="b" * 40)

    outcome = await ExtractionOrchestrator(primary, secondary).run(b"%PDF")

    assert outcome.provider_used == "azure"
    assert outcome.used_fallback
    assert outcome.raw.text == "b" * 40
    assert outcome.warnings[0].startswith("Used azure fallback due to: 0 tables detected")
    assert [a.provider for a in outcome.attempts] == ["document_ai", "azure"]


async def test_low_quality_rejected_fallback_keeps_primary() -> None:
    """Test rejection reasons are recorded verbatim and primary is kept."""
    primary = FakeProvider("document_ai", pages=10, tables=0, text="a" * 5000)
    secondary = FakeProvider("azure", pages=3, tables=0, text="b" * 5000)

    outcome = await ExtractionOrchestrator(primary, secondary).run(b"%PDF")

    assert outcome.provider_used == "document_ai"
    assert not outcome.used_fallback
    assert outcome.warnings[0] == "azure fallback rejected: azure pages 3 < 8 (80% of document_ai)"


async def test_low_quality_fallback_error_keeps_primary() -> None:
    """Test a failing fallback is non-fatal when primary produced output."""
    primary = FakeProvider("document_ai", pages=2, tables=0, text="a" * 1000)
    secondary = FakeProvider("azure", error=ProviderError("quota exceeded", "azure", True))

    outcome = await ExtractionOrchestrator(primary, secondary).run(b"%PDF")

    assert outcome.provider_used == "document_ai"
    assert outcome.warnings[0] == "azure fallback failed: quota exceeded"


async def test_primary_failure_uses_fallback_unconditionally() -> None:
    """Test fallback output is used even if weak when primary fails."""
    primary = FakeProvider("document_ai", error=ProviderError("403 forbidden", "document_ai"))
    secondary = FakeProvider("azure", pages=1, tables=0, text="tiny")

    outcome = await ExtractionOrchestrator(primary, secondary).run(b"%PDF")

    assert outcome.provider_used == "azure"
    assert outcome.used_fallback
    assert "Reason: 403 forbidden" in outcome.warnings[0]
    assert outcome.attempts[0].succeeded is False


async def test_wrongly_shaped_primary_document_uses_fallback() -> None:
    """Test a primary response that cannot be mapped still falls back."""
    primary = DocumentAIProvider(
        "proj",
        "eu",
        "proc",
        GoogleTokenProvider(access_token="test-token"),
        transport=httpx.MockTransport(
            lambda request: httpx.Response(200, json={"document": {"text": None, "pages": []}})
        ),
    )
    secondary = FakeProvider("azure", pages=2, tables=1, text="y" * 1000)

    outcome = await ExtractionOrchestrator(primary, secondary).run(b"%PDF")

    assert outcome.provider_used == "azure"
    assert outcome.used_fallback
    assert secondary.calls == 1
    assert outcome.attempts[0].provider == "document_ai"
    assert outcome.attempts[0].succeeded is False
    assert "malformed document" in outcome.warnings[0]


async def test_both_providers_fail() -> None:
    """Test the combined failure preserves both messages verbatim."""
    primary = FakeProvider("document_ai", error=ProviderError("auth failed", "document_ai"))
    secondary = FakeProvider("azure", error=ProviderError("malformed response", "azure"))

    with pytest.raises(ExtractionError) as exc_info:
        await ExtractionOrchestrator(primary, secondary).run(b"%PDF")

    assert "auth failed" in exc_info.value.message
    assert "malformed response" in exc_info.value.message
    assert len(exc_info.value.details["attempts"]) == 2


async def test_primary_failure_without_fallback_raises_provider_error() -> None:
    """Test primary failure propagates when no fallback is configured."""
    primary = FakeProvider("document_ai", error=ProviderError("boom", "document_ai"))

    with pytest.raises(ProviderError, match="boom"):
        await ExtractionOrchestrator(primary).run(b"%PDF")


async def test_timeout_is_transient_and_triggers_fallback() -> None:
    """Test a timeout feeds the fallback path as a transient provider error."""
    primary = FakeProvider("document_ai", pages=1, tables=1, text="x" * 500, delay=1.0)
    secondary = FakeProvider("azure", pages=1, tables=1, text="y" * 500)

    outcome = await ExtractionOrchestrator(primary, secondary, timeout_seconds=0.01).run(b"%PDF")

    assert outcome.provider_used == "azure"
    assert outcome.attempts[0].is_transient is True
    assert "timed out" in outcome.attempts[0].error


async def test_timeout_without_fallback_raises_timeout_code() -> None:
    """Test a lone timeout surfaces as PROVIDER_TIMEOUT."""
    primary = FakeProvider("document_ai", delay=1.0)

    with pytest.raises(ProviderError) as exc_info:
        await ExtractionOrchestrator(primary, timeout_seconds=0.01).run(b"%PDF")

    assert exc_info.value.code == ErrorCode.PROVIDER_TIMEOUT
    assert exc_info.value.is_transient


async def test_explicit_policy_without_fallback_flag() -> None:
    """Test an explicit unconfigured policy never calls the secondary for low quality."""
    primary = FakeProvider("document_ai", pages=1, tables=0, text="x")
    secondary = FakeProvider("azure", pages=1, tables=1, text="y" * 500)
    policy = FallbackPolicy(fallback_configured=False)

    outcome = await ExtractionOrchestrator(primary, secondary, policy=policy).run(b"%PDF")

    assert outcome.provider_used == "document_ai"
    assert secondary.calls == 0
