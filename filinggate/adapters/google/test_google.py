"""
Tests for Document AI provider, Drive source and token provider.
"""

from __future__ import annotations

import base64
import json
from unittest.mock import MagicMock, patch

import httpx
import pytest
from google.auth.exceptions import DefaultCredentialsError

from filinggate.config.errors import DocumentIntakeError, ErrorCode, ProviderError

from .auth import GoogleTokenProvider
from .documentai import DocumentAIProvider, parse_document
from .drive import DriveDocumentSource

FULL_TEXT = "Ref Caption 2024\n1151 Shares 2.000.000,00\nBalance sheet\n"


def anchor(start: int, end: int) -> dict:
    return {"textAnchor": {"textSegments": [{"startIndex": str(start), "endIndex": str(end)}]}}


def cell(start: int, end: int) -> dict:
    return {"layout": {**anchor(start, end), "confidence": 0.9}, "rowSpan": 1, "colSpan": 1}


DOCUMENT = {
    "text": FULL_TEXT,
    "pages": [
        {
            "dimension": {"width": 595.0, "height": 842.0},
            "blocks": [{"layout": {**anchor(42, 55), "confidence": 0.98}}],
            "paragraphs": [{"layout": {**anchor(0, 16), "confidence": 0.97}}],
            "tables": [
                {
                    "headerRows": [{"cells": [cell(0, 3), cell(4, 11), cell(12, 16)]}],
                    "bodyRows": [{"cells": [cell(17, 21), cell(22, 28), cell(29, 41)]}],
                }
            ],
        },
        {"dimension": {"width": 595.0, "height": 842.0}},
    ],
}


@pytest.fixture
def tokens() -> GoogleTokenProvider:
    return GoogleTokenProvider(access_token="test-token")


def documentai(tokens: GoogleTokenProvider, handler) -> DocumentAIProvider:
    return DocumentAIProvider(
        "proj",
        "eu",
        "proc",
        tokens,
        transport=httpx.MockTransport(handler),
    )


# --- Token Tests ---


async def test_static_token(tokens: GoogleTokenProvider) -> None:
    """Configured tokens are used verbatim."""
    assert await tokens.token() == "test-token"


@patch("google.auth.default")
async def test_adc_token_refreshes(mock_default: MagicMock) -> None:
    """ADC credentials are refreshed when invalid."""
    credentials = MagicMock(valid=False, token="adc-token")
    mock_default.return_value = (credentials, "proj")

    token = await GoogleTokenProvider().token()

    assert token == "adc-token"
    credentials.refresh.assert_called_once()


# --- Document AI Mapping Tests ---


def test_parse_document_resolves_anchors() -> None:
    """Text anchors resolve against the full text."""
    raw = parse_document(DOCUMENT)

    assert raw.provider == "document_ai"
    assert raw.page_count == 2
    page = raw.pages[0]
    assert page.width == 595.0
    assert page.blocks[0].text == "Balance sheet"
    assert page.paragraphs[0].text == "Ref Caption 2024"
    table = page.tables[0]
    assert table.header_rows[0].texts == ["Ref", "Caption", "2024"]
    assert table.body_rows[0].texts == ["1151", "Shares", "2.000.000,00"]
    assert table.body_rows[0].cells[0].confidence == 0.9
    assert raw.pages[1].tables == []


def test_parse_empty_document() -> None:
    """Missing pages produce an empty extraction."""
    raw = parse_document({})

    assert raw.page_count == 0
    assert raw.text == ""


# --- Document AI Provider Tests ---


async def test_extract_posts_base64(tokens: GoogleTokenProvider) -> None:
    """Request carries base64 content and bearer token."""
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"document": DOCUMENT})

    raw = await documentai(tokens, handler).extract(b"%PDF-1.7", timeout=30)

    assert seen["url"] == (
        "https://eu-documentai.googleapis.com/v1/projects/proj/locations/eu/processors/proc:process"
    )
    assert seen["auth"] == "Bearer test-token"
    assert base64.b64decode(seen["body"]["rawDocument"]["content"]) == b"%PDF-1.7"
    assert seen["body"]["rawDocument"]["mimeType"] == "application/pdf"
    assert raw.page_count == 2


@pytest.mark.parametrize("status", [401, 403])
async def test_auth_failure_is_permanent(tokens: GoogleTokenProvider, status: int) -> None:
    """Auth failures are not transient."""
    provider = documentai(tokens, lambda request: httpx.Response(status, text="denied"))

    with pytest.raises(ProviderError) as exc_info:
        await provider.extract(b"%PDF", timeout=30)

    assert exc_info.value.is_transient is False
    assert exc_info.value.code == ErrorCode.PROVIDER_AUTH_FAILED


@pytest.mark.parametrize("status", [429, 500, 503])
async def test_server_errors_are_transient(tokens: GoogleTokenProvider, status: int) -> None:
    """Rate limits and 5xx are transient."""
    provider = documentai(tokens, lambda request: httpx.Response(status, text="busy"))

    with pytest.raises(ProviderError) as exc_info:
        await provider.extract(b"%PDF", timeout=30)

    assert exc_info.value.is_transient is True
    assert exc_info.value.provider == "document_ai"


async def test_timeout_is_transient(tokens: GoogleTokenProvider) -> None:
    """httpx timeouts map to PROVIDER_TIMEOUT."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(ProviderError) as exc_info:
        await documentai(tokens, handler).extract(b"%PDF", timeout=5)

    assert exc_info.value.is_transient is True
    assert exc_info.value.code == ErrorCode.PROVIDER_TIMEOUT
    assert "timed out after 5s" in exc_info.value.message


async def test_malformed_response_is_permanent(tokens: GoogleTokenProvider) -> None:
    """Non-JSON bodies and missing documents are permanent failures."""
    not_json = documentai(tokens, lambda request: httpx.Response(200, text="<html>"))
    no_document = documentai(tokens, lambda request: httpx.Response(200, json={"error": "x"}))

    with pytest.raises(ProviderError, match="malformed JSON") as first:
        await not_json.extract(b"%PDF", timeout=30)
    with pytest.raises(ProviderError, match="no document") as second:
        await no_document.extract(b"%PDF", timeout=30)

    assert first.value.is_transient is False
    assert second.value.is_transient is False


async def test_wrongly_shaped_document_is_permanent(tokens: GoogleTokenProvider) -> None:
    """A document that does not map to RawExtraction is a provider failure."""
    provider = documentai(
        tokens,
        lambda request: httpx.Response(200, json={"document": {"text": None, "pages": []}}),
    )

    with pytest.raises(ProviderError, match="malformed document") as exc_info:
        await provider.extract(b"%PDF", timeout=30)

    assert exc_info.value.is_transient is False
    assert exc_info.value.provider == "document_ai"


async def test_credentials_missing() -> None:
    """Missing ADC surfaces as a permanent auth failure."""
    tokens = MagicMock()
    tokens.token.side_effect = DefaultCredentialsError("no ADC")
    provider = DocumentAIProvider("proj", "eu", "proc", tokens)

    with pytest.raises(ProviderError) as exc_info:
        await provider.extract(b"%PDF", timeout=30)

    assert exc_info.value.code == ErrorCode.PROVIDER_AUTH_FAILED


def test_requires_processor() -> None:
    """Construction fails without project or processor."""
    with pytest.raises(ValueError):
        DocumentAIProvider("", "eu", "", GoogleTokenProvider(access_token="t"))


# --- Drive Tests ---


def drive(tokens: GoogleTokenProvider, handler, retries: int = 3) -> DriveDocumentSource:
    return DriveDocumentSource(
        tokens,
        retries=retries,
        backoff_seconds=0,
        transport=httpx.MockTransport(handler),
    )


async def test_drive_download(tokens: GoogleTokenProvider) -> None:
    """Media download returns raw bytes."""
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        return httpx.Response(200, content=b"%PDF-1.7")

    content = await drive(tokens, handler).fetch("file-123")

    assert content == b"%PDF-1.7"
    assert seen["url"].path == "/drive/v3/files/file-123"
    assert seen["url"].params["alt"] == "media"


@pytest.mark.parametrize(
    ("status", "kind"),
    [(401, "auth-failed"), (403, "permission-denied"), (404, "not-found")],
)
async def test_drive_permanent_failures_not_retried(
    tokens: GoogleTokenProvider, status: int, kind: str
) -> None:
    """Permanent failures are classified and raised at once."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(status)

    with pytest.raises(DocumentIntakeError) as exc_info:
        await drive(tokens, handler).fetch("file-123")

    assert exc_info.value.kind == kind
    assert len(calls) == 1


async def test_drive_retries_transient(tokens: GoogleTokenProvider) -> None:
    """Transient failures are retried until success."""
    responses = iter([httpx.Response(503), httpx.Response(429), httpx.Response(200, content=b"%PDF")])

    content = await drive(tokens, lambda request: next(responses)).fetch("file-123")

    assert content == b"%PDF"


async def test_drive_gives_up_after_retries(tokens: GoogleTokenProvider) -> None:
    """Exhausted retries re-raise the transient error."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("reset", request=request)

    with pytest.raises(DocumentIntakeError) as exc_info:
        await drive(tokens, handler, retries=2).fetch("file-123")

    assert exc_info.value.kind == "transient"
    assert exc_info.value.code == ErrorCode.INTAKE_TRANSIENT
    assert len(calls) == 2
