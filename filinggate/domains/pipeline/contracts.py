"""
Pipeline Contracts - Interfaces for persistence and document intake.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Protocol, runtime_checkable

from filinggate.domains.analysis.models import AnalysisRecord
from filinggate.domains.parsing.models import ICTransaction, RelatedPartyTransaction

from .models import DocumentUnit


@runtime_checkable
class DocumentRepository(Protocol):
    """Contract for the persistence collaborator."""

    async def insert_document(self, document: DocumentUnit) -> DocumentUnit:
        """Insert a new document unit."""
        ...

    async def get_document(self, document_id: str) -> DocumentUnit | None:
        """Get a document unit by id."""
        ...

    async def list_documents(self, limit: int = 100, offset: int = 0) -> list[DocumentUnit]:
        """List document units, newest first."""
        ...

    async def update_document(self, document_id: str, **fields: Any) -> None:
        """
        Atomically update one document row.

        Raises:
            NotFoundError: No such document
            StorageError: Write failed
        """
        ...

    async def compare_and_set_status(
        self,
        document_id: str,
        column: str,
        expected: Iterable[str],
        new: str,
    ) -> bool:
        """
        Conditionally set a status column.

        Returns:
            True if exactly one row moved from an expected state to new
        """
        ...

    async def insert_analysis(self, analysis: AnalysisRecord) -> None:
        """Append an analysis record."""
        ...

    async def list_analyses(self, document_id: str) -> list[AnalysisRecord]:
        """All analyses for a document, latest first."""
        ...

    async def replace_ic_transactions(
        self, document_id: str, transactions: list[ICTransaction]
    ) -> None:
        """Replace the intercompany transaction rows of a document."""
        ...

    async def replace_related_party_transactions(
        self, document_id: str, transactions: list[RelatedPartyTransaction]
    ) -> None:
        """Replace the related-party transaction rows of a document."""
        ...


@runtime_checkable
class DocumentSource(Protocol):
    """Contract for the document intake collaborator."""

    async def fetch(self, handle: str) -> bytes:
        """
        Fetch raw document bytes.

        Raises:
            DocumentIntakeError: kind is permission-denied, auth-failed,
                not-found or transient
        """
        ...
