"""
Extraction Contracts - Interfaces for extraction domain.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from .models import RawExtraction


@runtime_checkable
class ExtractionProvider(Protocol):
    """
    Contract for OCR/layout provider adapters.

    Implementations raise ProviderError on timeout, authentication failure
    or malformed response, and never retry internally.

    Example:
        >>> class MyProvider:
        ...     name = "my-ocr"
        ...     async def extract(self, content: bytes, timeout: float) -> RawExtraction:
        ...         ...
        >>> assert isinstance(MyProvider(), ExtractionProvider)
    """

    name: str

    async def extract(self, content: bytes, timeout: float) -> RawExtraction:
        """
        Recognize a document.

        Args:
            content: Raw document bytes (PDF)
            timeout: Seconds the remote call may take

        Returns:
            Pages, tables, blocks and full text tagged with the provider name
        """
        ...
