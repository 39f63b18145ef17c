"""
Azure Layout Provider - Fallback OCR/layout provider.

Azure Document Intelligence `prebuilt-layout`:
1. POST the PDF to the analyze endpoint (documentintelligence path,
   formrecognizer path on 404)
2. On 202, poll `operation-location` until succeeded/failed or deadline
3. Map lines -> blocks, paragraphs and tables per page
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import httpx
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

logger = logging.getLogger(__name__)

MALFORMED_ERRORS = (ValidationError, AttributeError, TypeError, KeyError, ValueError)

__all__ = ["AzureLayoutProvider", "map_analyze_result"]


class AzureLayoutProvider:
    """
    Azure Document Intelligence layout provider.

    Example:
        >>> provider = AzureLayoutProvider("https://myres.cognitiveservices.azure.com", key)
        >>> raw = await provider.extract(pdf_bytes, timeout=300)
    """

    name = "azure_layout"

    def __init__(
        self,
        endpoint: str,
        key: str,
        model: str = "prebuilt-layout",
        api_version: str = "2023-07-31",
        poll_interval: float = 2.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize provider.

        Args:
            endpoint: Resource endpoint
            key: Subscription key
            model: Analyze model id
            api_version: REST API version
            poll_interval: Seconds between operation polls
            transport: Optional httpx transport (tests)
        """
        if not (endpoint and key):
            raise ValueError("Azure Document Intelligence requires endpoint and key")
        self.endpoint = endpoint.rstrip("/")
        self.model = model
        self.api_version = api_version
        self.poll_interval = poll_interval
        self._key = key
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def analyze_urls(self) -> list[str]:
        query = f"{self.model}:analyze?api-version={self.api_version}"
        return [
            f"{self.endpoint}/documentintelligence/documentModels/{query}",
            f"{self.endpoint}/formrecognizer/documentModels/{query}",
        ]

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"Ocp-Apim-Subscription-Key": self._key},
                transport=self._transport,
            )
        return self._client

    async def extract(self, content: bytes, timeout: float) -> RawExtraction:
        """
        Analyze a PDF.

        Raises:
            ProviderError: Auth failure (permanent), HTTP 429/5xx, transport
                failure or deadline (transient), failed analysis (permanent)
        """
        deadline = time.monotonic() + timeout
        client = await self._get_client()

        for url in self.analyze_urls:
            response = await self._request(
                client.post(
                    url,
                    content=content,
                    headers={"Content-Type": "application/pdf"},
                    timeout=timeout,
                ),
                timeout,
            )
            if response.status_code == 404:
                logger.info("Azure analyze endpoint not found: %s", url)
                continue

            self._raise_for_status(response, "analyze")
            if response.status_code == 202:
                operation = response.headers.get("operation-location")
                if not operation:
                    raise ProviderError(
                        "Azure analysis accepted but missing operation-location header",
                        provider=self.name,
                    )
                result = await self._poll(client, operation, deadline, timeout)
            else:
                data = self._json(response)
                result = data.get("analyzeResult") or data
            try:
                return map_analyze_result(result, provider=self.name)
            except MALFORMED_ERRORS as e:
                raise ProviderError(
                    f"Azure returned malformed document: {e}", provider=self.name
                ) from e

        raise ProviderError("Azure analyze endpoint not found", provider=self.name)

    async def _poll(
        self,
        client: httpx.AsyncClient,
        operation: str,
        deadline: float,
        timeout: float,
    ) -> dict[str, Any]:
        """Poll an analyze operation until it finishes or the deadline passes."""
        while time.monotonic() < deadline:
            remaining = max(deadline - time.monotonic(), 0.1)
            response = await self._request(client.get(operation, timeout=remaining), timeout)
            self._raise_for_status(response, "operation poll")

            data = self._json(response)
            status = str(data.get("status", "")).lower()
            if status == "succeeded":
                return data.get("analyzeResult") or {}
            if status == "failed":
                raise ProviderError(
                    f"Azure analysis failed: {data.get('error') or data}",
                    provider=self.name,
                )
            await asyncio.sleep(self.poll_interval)

        raise ProviderError(
            f"Azure analysis timed out after {timeout:g}s",
            provider=self.name,
            is_transient=True,
            code=ErrorCode.PROVIDER_TIMEOUT,
        )

    async def _request(self, call: Any, timeout: float) -> httpx.Response:
        try:
            return await call
        except httpx.TimeoutException as e:
            raise ProviderError(
                f"Azure analysis timed out after {timeout:g}s",
                provider=self.name,
                is_transient=True,
                code=ErrorCode.PROVIDER_TIMEOUT,
            ) from e
        except httpx.TransportError as e:
            raise ProviderError(
                f"Azure connection failed: {e}",
                provider=self.name,
                is_transient=True,
            ) from e

    def _raise_for_status(self, response: httpx.Response, stage: str) -> None:
        status = response.status_code
        if status < 400:
            return

        detail = response.text[:300]
        if status in (401, 403):
            raise ProviderError(
                f"Azure {stage} authentication failed (HTTP {status}): {detail}",
                provider=self.name,
                code=ErrorCode.PROVIDER_AUTH_FAILED,
            )
        raise ProviderError(
            f"Azure {stage} failed (HTTP {status}): {detail}",
            provider=self.name,
            is_transient=status == 429 or status >= 500,
        )

    def _json(self, response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError("Azure returned malformed JSON", provider=self.name) from e
        if not isinstance(data, dict):
            raise ProviderError("Azure returned malformed JSON", provider=self.name)
        return data

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None


# --- Response mapping ---


def _on_page(regions: list[dict[str, Any]] | None, page_number: int) -> bool:
    return any(region.get("pageNumber") == page_number for region in regions or [])


def _table_page(table: dict[str, Any]) -> int:
    """Page a table belongs to: its first bounding region, else page 1."""
    regions = table.get("boundingRegions") or []
    if regions and regions[0].get("pageNumber"):
        return regions[0]["pageNumber"]
    return 1


def _map_table(table: dict[str, Any]) -> Table:
    """Place cells by row/column index; rows with column headers become header rows."""
    cells = table.get("cells", [])
    row_count = table.get("rowCount") or max((c.get("rowIndex", 0) + 1 for c in cells), default=0)
    column_count = table.get("columnCount") or max(
        (c.get("columnIndex", 0) + 1 for c in cells), default=0
    )

    grid = [[TableCell() for _ in range(column_count)] for _ in range(row_count)]
    header_rows: set[int] = set()

    for cell in cells:
        row_index = cell.get("rowIndex", 0)
        column_index = cell.get("columnIndex", 0)
        if cell.get("kind") == "columnHeader":
            header_rows.add(row_index)
        if row_index >= row_count or column_index >= column_count:
            continue
        grid[row_index][column_index] = TableCell(
            text=cell.get("content", ""),
            row_span=cell.get("rowSpan", 1),
            col_span=cell.get("columnSpan", 1),
            confidence=cell.get("confidence", 0.0),
        )

    rows = [TableRow(cells=row) for row in grid]
    return Table(
        header_rows=[row for i, row in enumerate(rows) if i in header_rows],
        body_rows=[row for i, row in enumerate(rows) if i not in header_rows],
    )


def map_analyze_result(result: dict[str, Any], provider: str = AzureLayoutProvider.name) -> RawExtraction:
    """Map an Azure `analyzeResult` to RawExtraction."""
    paragraphs = result.get("paragraphs", [])
    tables = result.get("tables", [])
    pages = []

    for index, page in enumerate(result.get("pages", [])):
        page_number = page.get("pageNumber") or index + 1
        pages.append(
            Page(
                page_number=page_number,
                width=page.get("width", 0.0),
                height=page.get("height", 0.0),
                blocks=[TextBlock(text=line.get("content", "")) for line in page.get("lines", [])],
                paragraphs=[
                    TextBlock(text=paragraph.get("content", ""))
                    for paragraph in paragraphs
                    if _on_page(paragraph.get("boundingRegions"), page_number)
                ],
                tables=[_map_table(table) for table in tables if _table_page(table) == page_number],
            )
        )

    return RawExtraction(provider=provider, text=result.get("content", ""), pages=pages)
