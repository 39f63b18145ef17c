"""
Drive Document Source - Downloads statement PDFs from Google Drive.

Failures are classified as permission-denied, auth-failed, not-found
or transient. Only transient failures are retried (tenacity).
"""

from __future__ import annotations

import logging

import httpx
from google.auth.exceptions import GoogleAuthError
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from filinggate.config.errors import DocumentIntakeError

from .auth import GoogleTokenProvider

logger = logging.getLogger(__name__)

__all__ = ["DriveDocumentSource"]

DRIVE_API = "https://www.googleapis.com/drive/v3"


def _is_transient(error: BaseException) -> bool:
    return isinstance(error, DocumentIntakeError) and error.is_transient


class DriveDocumentSource:
    """
    Google Drive intake.

    Example:
        >>> source = DriveDocumentSource(GoogleTokenProvider(scopes=[DRIVE_READONLY_SCOPE]))
        >>> pdf = await source.fetch("1AbCdEf...")
    """

    def __init__(
        self,
        tokens: GoogleTokenProvider,
        retries: int = 3,
        backoff_seconds: float = 1.0,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize Drive source.

        Args:
            tokens: Bearer token source with a Drive scope
            retries: Total attempts for transient failures
            backoff_seconds: Exponential backoff multiplier
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        self._tokens = tokens
        self._retries = max(1, retries)
        self._backoff = backoff_seconds
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=DRIVE_API,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def fetch(self, handle: str) -> bytes:
        """
        Download file bytes by Drive file id.

        Raises:
            DocumentIntakeError: Classified failure after retries
        """
        async for attempt in AsyncRetrying(
            retry=retry_if_exception(_is_transient),
            stop=stop_after_attempt(self._retries),
            wait=wait_exponential(multiplier=self._backoff, max=30),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(
                        "Retrying Drive download %s (attempt %d)",
                        handle,
                        attempt.retry_state.attempt_number,
                    )
                return await self._download(handle)

    async def _download(self, handle: str) -> bytes:
        try:
            token = await self._tokens.token()
        except GoogleAuthError as e:
            raise DocumentIntakeError(f"Drive authentication failed: {e}", "auth-failed") from e

        client = await self._get_client()
        try:
            response = await client.get(
                f"/files/{handle}",
                params={"alt": "media", "supportsAllDrives": "true"},
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.TransportError as e:
            raise DocumentIntakeError(f"Drive download failed: {e}", "transient") from e

        status = response.status_code
        if status == 200:
            logger.info("Downloaded %s from Drive (%d bytes)", handle, len(response.content))
            return response.content
        if status == 401:
            raise DocumentIntakeError(f"Drive authentication failed for {handle}", "auth-failed")
        if status == 403:
            raise DocumentIntakeError(f"No permission to read Drive file {handle}", "permission-denied")
        if status == 429 or status >= 500:
            raise DocumentIntakeError(f"Drive unavailable (HTTP {status})", "transient")
        # 404 and any other client error: the handle does not resolve to a file
        raise DocumentIntakeError(f"Drive file not found: {handle} (HTTP {status})", "not-found")

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
