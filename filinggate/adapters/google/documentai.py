"""
Document AI Provider - Primary OCR/layout provider.

Calls the synchronous `:process` REST endpoint and maps the returned
document (text anchors resolved against the full text) to RawExtraction.
Never retries; the orchestrator decides about fallback.
"""

from __future__ import annotations

import base64
import logging
from typing import Any

import httpx
from google.auth.exceptions import GoogleAuthError
from pydantic import ValidationError

from filinggate.config.errors import ErrorCode, ProviderError
from filinggate.domains.extraction.models import (
    Page,
    RawExtraction,
    Table,
    TableCell,
    TableRow,
    TextBlock,
)

from .auth import GoogleTokenProvider

logger = logging.getLogger(__name__)

MALFORMED_ERRORS = (ValidationError, AttributeError, TypeError, KeyError, ValueError)

__all__ = ["DocumentAIProvider", "parse_document"]


class DocumentAIProvider:
    """
    Google Document AI layout provider.

    Example:
        >>> provider = DocumentAIProvider("my-project", "eu", "abc123", GoogleTokenProvider())
        >>> raw = await provider.extract(pdf_bytes, timeout=300)
        >>> raw.page_count
        12
    """

    name = "document_ai"

    def __init__(
        self,
        project_id: str,
        location: str,
        processor_id: str,
        tokens: GoogleTokenProvider,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize provider.

        Args:
            project_id: Google Cloud project
            location: Processor location, e.g. "eu" or "us"
            processor_id: Layout/OCR processor id
            tokens: Bearer token source
            transport: Optional httpx transport (tests)
        """
        if not (project_id and processor_id):
            raise ValueError("Document AI requires project_id and processor_id")
        self.project_id = project_id
        self.location = location
        self.processor_id = processor_id
        self._tokens = tokens
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def url(self) -> str:
        return (
            f"https://{self.location}-documentai.googleapis.com/v1/projects/{self.project_id}"
            f"/locations/{self.location}/processors/{self.processor_id}:process"
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(transport=self._transport)
        return self._client

    async def extract(self, content: bytes, timeout: float) -> RawExtraction:
        """
        Process a PDF.

        Raises:
            ProviderError: Auth failure (permanent), HTTP 429/5xx or
                transport failure (transient), malformed response (permanent)
        """
        try:
            token = await self._tokens.token()
        except GoogleAuthError as e:
            raise ProviderError(
                f"Document AI authentication failed: {e}",
                provider=self.name,
                code=ErrorCode.PROVIDER_AUTH_FAILED,
            ) from e

        payload = {
            "rawDocument": {
                "content": base64.b64encode(content).decode("ascii"),
                "mimeType": "application/pdf",
            },
            "skipHumanReview": True,
            "processOptions": {"ocrConfig": {"enableNativePdfParsing": True}},
        }
        logger.info("Document AI request: %d bytes to %s", len(content), self.processor_id)

        client = await self._get_client()
        try:
            response = await client.post(
                self.url,
                json=payload,
                headers={"Authorization": f"Bearer {token}"},
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            raise ProviderError(
                f"Document AI timed out after {timeout:g}s",
                provider=self.name,
                is_transient=True,
                code=ErrorCode.PROVIDER_TIMEOUT,
            ) from e
        except httpx.TransportError as e:
            raise ProviderError(
                f"Document AI connection failed: {e}",
                provider=self.name,
                is_transient=True,
            ) from e

        self._raise_for_status(response)

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError("Document AI returned malformed JSON", provider=self.name) from e

        document = data.get("document") if isinstance(data, dict) else None
        if not isinstance(document, dict):
            raise ProviderError("Document AI returned no document", provider=self.name)

        try:
            return parse_document(document, provider=self.name)
        except MALFORMED_ERRORS as e:
            raise ProviderError(
                f"Document AI returned malformed document: {e}", provider=self.name
            ) from e

    def _raise_for_status(self, response: httpx.Response) -> None:
        status = response.status_code
        if status < 400:
            return

        detail = response.text[:300]
        if status in (401, 403):
            raise ProviderError(
                f"Document AI authentication failed (HTTP {status}): {detail}",
                provider=self.name,
                code=ErrorCode.PROVIDER_AUTH_FAILED,
            )
        if status == 429 or status >= 500:
            raise ProviderError(
                f"Document AI unavailable (HTTP {status}): {detail}",
                provider=self.name,
                is_transient=True,
            )
        raise ProviderError(f"Document AI rejected request (HTTP {status}): {detail}", provider=self.name)

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None


# --- Response mapping ---


def _anchor_text(anchor: dict[str, Any] | None, full_text: str) -> str:
    """Resolve a text anchor's segments against the document text."""
    if not anchor:
        return ""
    return "".join(
        full_text[int(segment.get("startIndex", 0)) : int(segment.get("endIndex", 0))]
        for segment in anchor.get("textSegments", [])
    )


def _text_blocks(elements: list[dict[str, Any]] | None, full_text: str) -> list[TextBlock]:
    blocks = []
    for element in elements or []:
        layout = element.get("layout", {})
        blocks.append(
            TextBlock(
                text=_anchor_text(layout.get("textAnchor"), full_text),
                confidence=layout.get("confidence", 0.0),
            )
        )
    return blocks


def _table_rows(rows: list[dict[str, Any]] | None, full_text: str) -> list[TableRow]:
    result = []
    for row in rows or []:
        cells = []
        for cell in row.get("cells", []):
            layout = cell.get("layout", {})
            cells.append(
                TableCell(
                    text=_anchor_text(layout.get("textAnchor"), full_text),
                    row_span=cell.get("rowSpan", 1),
                    col_span=cell.get("colSpan", 1),
                    confidence=layout.get("confidence", 0.0),
                )
            )
        result.append(TableRow(cells=cells))
    return result


def parse_document(document: dict[str, Any], provider: str = DocumentAIProvider.name) -> RawExtraction:
    """Map a Document AI `document` object to RawExtraction."""
    text = document.get("text", "")
    pages = []

    for index, page in enumerate(document.get("pages", [])):
        dimension = page.get("dimension", {})
        pages.append(
            Page(
                page_number=index + 1,
                width=dimension.get("width", 0.0),
                height=dimension.get("height", 0.0),
                blocks=_text_blocks(page.get("blocks"), text),
                paragraphs=_text_blocks(page.get("paragraphs"), text),
                tables=[
                    Table(
                        header_rows=_table_rows(table.get("headerRows"), text),
                        body_rows=_table_rows(table.get("bodyRows"), text),
                    )
                    for table in page.get("tables", [])
                ],
            )
        )

    return RawExtraction(
        provider=provider,
        text=text,
        pages=pages,
        mime_type=document.get("mimeType", "application/pdf"),
    )
