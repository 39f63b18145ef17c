"""
Parsing Contracts - Interfaces for parsing domain.
"""

from __future__ import annotations

from datetime import date
from typing import Protocol, runtime_checkable

from filinggate.domains.extraction.models import RawExtraction

from .models import ParseOutcome


@runtime_checkable
class StructuralParser(Protocol):
    """
    Contract for converting provider output into a structured record.

    Example:
        >>> class MyParser:
        ...     def parse(self, raw, entity_id, entity_name, period_end) -> ParseOutcome:
        ...         ...
        >>> assert isinstance(MyParser(), StructuralParser)
    """

    def parse(
        self,
        raw: RawExtraction,
        entity_id: str,
        entity_name: str,
        period_end: date | None,
    ) -> ParseOutcome:
        """
        Parse a RawExtraction.

        Args:
            raw: Accepted provider output
            entity_id: Owning entity identifier
            entity_name: Entity display name
            period_end: Financial period end date

        Returns:
            Structured record plus warnings

        Raises:
            ParseError: No structured record can be produced
        """
        ...
