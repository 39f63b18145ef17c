"""Tests for the CLI."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from filinggate.config import Settings

from .main import app

runner = CliRunner()


@pytest.fixture
def settings(tmp_path: Path) -> Generator[Settings, None, None]:
    """Settings pointing at a temporary database."""
    settings = Settings(data_dir=tmp_path, db_path=tmp_path / "cli.db")
    with patch("filinggate.interfaces.cli.main.get_settings", return_value=settings):
        yield settings


def test_version() -> None:
    """Test version output."""
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert "FilingGate v1.0.0" in result.output


def test_init_creates_database(settings: Settings, tmp_path: Path) -> None:
    """Test init creates the data directory and database."""
    data_dir = tmp_path / "fresh"

    result = runner.invoke(app, ["init", "--data", str(data_dir)])

    assert result.exit_code == 0
    assert (data_dir / "cli.db").exists()


def test_register_then_status(settings: Settings) -> None:
    """Test a registered document shows its initial states."""
    registered = runner.invoke(
        app, ["register", "B123456", "Acme Holding SARL", "--period-end", "2024-12-31"]
    )
    assert registered.exit_code == 0
    document_id = registered.output.split("Registered:")[1].split()[0]

    result = runner.invoke(app, ["status", document_id])

    assert result.exit_code == 0
    assert "Acme Holding SARL" in result.output
    assert "pending" in result.output
    assert "2024-12-31" in result.output


def test_status_unknown_document(settings: Settings) -> None:
    """Test unknown documents exit with the error code."""
    result = runner.invoke(app, ["status", "missing"])

    assert result.exit_code == 1
    assert "NOT_FOUND" in result.output


def test_analyze_before_extraction(settings: Settings) -> None:
    """Test analysis of a pending document is refused."""
    registered = runner.invoke(app, ["register", "B123456", "Acme Holding SARL"])
    document_id = registered.output.split("Registered:")[1].split()[0]

    result = runner.invoke(app, ["analyze", document_id])

    assert result.exit_code == 1
    assert "INVALID_TRANSITION" in result.output


def test_extract_missing_file(settings: Settings, tmp_path: Path) -> None:
    """Test extraction of a missing PDF fails before touching the pipeline."""
    result = runner.invoke(app, ["extract", "doc-1", str(tmp_path / "missing.pdf")])

    assert result.exit_code == 1
    assert "File not found" in result.output
