"""
Google Adapter - Document AI (primary provider) and Drive intake.
"""

from .auth import CLOUD_PLATFORM_SCOPE, DRIVE_READONLY_SCOPE, GoogleTokenProvider
from .documentai import DocumentAIProvider, parse_document
from .drive import DriveDocumentSource

__all__ = [
    "GoogleTokenProvider",
    "CLOUD_PLATFORM_SCOPE",
    "DRIVE_READONLY_SCOPE",
    "DocumentAIProvider",
    "parse_document",
    "DriveDocumentSource",
]
