"""
Google Auth - Bearer tokens for Google REST APIs.

Uses a configured access token when one is set, otherwise
Application Default Credentials (`gcloud auth application-default login`).
"""

from __future__ import annotations

import asyncio
import logging

import google.auth
from google.auth.credentials import Credentials
from google.auth.transport.requests import Request

logger = logging.getLogger(__name__)

__all__ = ["GoogleTokenProvider", "CLOUD_PLATFORM_SCOPE", "DRIVE_READONLY_SCOPE"]

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
DRIVE_READONLY_SCOPE = "https://www.googleapis.com/auth/drive.readonly"


class GoogleTokenProvider:
    """
    Access token source.

    Raises google.auth.exceptions.GoogleAuthError when no credentials
    are available or refreshing fails; callers map that to their own
    error taxonomy.

    Example:
        >>> tokens = GoogleTokenProvider(scopes=[CLOUD_PLATFORM_SCOPE])
        >>> headers = {"Authorization": f"Bearer {await tokens.token()}"}
    """

    def __init__(
        self,
        access_token: str = "",
        scopes: list[str] | None = None,
    ) -> None:
        self._access_token = access_token
        self._scopes = scopes or [CLOUD_PLATFORM_SCOPE]
        self._credentials: Credentials | None = None

    async def token(self) -> str:
        """Current bearer token, refreshing ADC credentials when expired."""
        if self._access_token:
            return self._access_token
        return await asyncio.to_thread(self._refresh)

    def _refresh(self) -> str:
        if self._credentials is None:
            self._credentials, project = google.auth.default(scopes=self._scopes)
            logger.info("Using Application Default Credentials (project=%s)", project)
        if not self._credentials.valid:
            self._credentials.refresh(Request())
        return self._credentials.token
