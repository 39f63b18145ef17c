"""
Tests for the local document source.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from filinggate.config.errors import DocumentIntakeError, ErrorCode
from filinggate.domains.pipeline.contracts import DocumentSource

from .source import LocalDocumentSource


async def test_fetch_relative_path(tmp_path: Path) -> None:
    """Handles resolve against the root."""
    (tmp_path / "accounts.pdf").write_bytes(b"%PDF-1.7")

    assert await LocalDocumentSource(tmp_path).fetch("accounts.pdf") == b"%PDF-1.7"


async def test_fetch_absolute_path(tmp_path: Path) -> None:
    """Absolute handles ignore the root."""
    pdf = tmp_path / "accounts.pdf"
    pdf.write_bytes(b"%PDF")

    assert await LocalDocumentSource("/nonexistent").fetch(str(pdf)) == b"%PDF"


async def test_missing_file(tmp_path: Path) -> None:
    """Missing files are classified not-found."""
    with pytest.raises(DocumentIntakeError) as exc_info:
        await LocalDocumentSource(tmp_path).fetch("missing.pdf")

    assert exc_info.value.kind == "not-found"
    assert exc_info.value.code == ErrorCode.INTAKE_NOT_FOUND


def test_satisfies_contract(tmp_path: Path) -> None:
    """LocalDocumentSource is a DocumentSource."""
    assert isinstance(LocalDocumentSource(tmp_path), DocumentSource)
