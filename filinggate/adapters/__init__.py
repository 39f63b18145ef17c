"""
Adapters - External service integrations.

All external API calls are wrapped here to isolate domains from third-party changes.
"""

from .azure import AzureLayoutProvider
from .gemini import GeminiClient
from .google import DocumentAIProvider, DriveDocumentSource, GoogleTokenProvider
from .local import LocalDocumentSource
from .sqlite import SQLiteRepository

__all__ = [
    # Extraction providers
    "DocumentAIProvider",
    "AzureLayoutProvider",
    # Document intake
    "DriveDocumentSource",
    "LocalDocumentSource",
    "GoogleTokenProvider",
    # Analysis model
    "GeminiClient",
    # Persistence
    "SQLiteRepository",
]
