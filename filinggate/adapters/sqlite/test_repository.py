"""Tests for SQLite Repository."""

import asyncio
from datetime import date
from pathlib import Path

import pytest

from filinggate.config.errors import NotFoundError, SchemaVersionError, StorageError
from filinggate.domains.analysis.models import AnalysisRecord, AnalysisResult
from filinggate.domains.extraction.models import CodeFrequency, QualitySignal
from filinggate.domains.parsing.models import (
    EntityProfile,
    ICTransaction,
    PreAnalysisGate,
    ReadinessLevel,
    RecordMetadata,
    RelatedPartyTransaction,
    StructuredRecord,
)
from filinggate.domains.pipeline.models import AnalysisStatus, DocumentUnit, ExtractionStatus

from .repository import SQLiteRepository


@pytest.fixture
async def repo(tmp_path: Path):
    """Create a test repository with temporary database."""
    db_path = tmp_path / "test.db"
    repo = SQLiteRepository(db_path)
    await repo.initialize()
    yield repo
    await repo.close()


def make_document(doc_id: str = "doc-1") -> DocumentUnit:
    return DocumentUnit(
        id=doc_id,
        entity_id="B123456",
        entity_name="Acme Holding SARL",
        period_end=date(2024, 12, 31),
        file_handle="drive-file-1",
    )


def make_record() -> StructuredRecord:
    return StructuredRecord(
        metadata=RecordMetadata(entity_id="B123456", entity_name="Acme Holding SARL"),
        profile=EntityProfile(name="Acme Holding SARL"),
        deterministic_metrics={
            "debt_to_equity_ratio": 6.0,
            "operating_margin_pct": None,
            "implied_ic_lending_rate_pct": 3.0,
        },
        pre_analysis_gate=PreAnalysisGate(readiness_level=ReadinessLevel.READY, can_proceed_to_analysis=True),
    )


async def test_initialize_creates_tables(repo: SQLiteRepository):
    """Test that initialize creates all required tables."""
    conn = await repo._get_connection()
    cursor = await conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table'"
    )
    tables = {row[0] for row in await cursor.fetchall()}

    assert "documents" in tables
    assert "analyses" in tables
    assert "ic_transactions" in tables
    assert "related_party_transactions" in tables


async def test_insert_and_get_document(repo: SQLiteRepository):
    """Test inserting and retrieving a document unit."""
    await repo.insert_document(make_document())

    doc = await repo.get_document("doc-1")
    assert doc is not None
    assert doc.entity_name == "Acme Holding SARL"
    assert doc.period_end == date(2024, 12, 31)
    assert doc.extraction_status == ExtractionStatus.PENDING
    assert doc.analysis_status == AnalysisStatus.NONE
    assert doc.extraction_warnings == []


async def test_get_missing_document(repo: SQLiteRepository):
    """Test that unknown ids return None."""
    assert await repo.get_document("nope") is None


async def test_list_documents(repo: SQLiteRepository):
    """Test listing with limit."""
    for i in range(3):
        await repo.insert_document(make_document(f"doc-{i}"))

    docs = await repo.list_documents(limit=2)
    assert len(docs) == 2
    assert docs[0].id == "doc-2"


async def test_record_round_trip(repo: SQLiteRepository):
    """Test that schema version and every metric key survive storage."""
    await repo.insert_document(make_document())
    record = make_record()
    quality = QualitySignal(
        provider="document_ai",
        page_count=2,
        text_length=900,
        table_count=1,
        block_count=4,
        paragraph_count=3,
        distinct_code_count=2,
        top_codes=[CodeFrequency(code="1151", count=3)],
        score=0.7,
    )

    await repo.update_document(
        "doc-1",
        extraction_status=ExtractionStatus.COMPLETED,
        record_data=record.model_dump(mode="json"),
        schema_version=record.schema_version,
        extraction_warnings=["Kept document_ai output despite: 0 tables detected"],
        quality=quality,
    )

    doc = await repo.get_document("doc-1")
    restored = doc.structured_record()
    assert doc.schema_version == record.schema_version
    assert restored.schema_version == record.schema_version
    assert set(restored.deterministic_metrics) == set(record.deterministic_metrics)
    assert restored.deterministic_metrics["operating_margin_pct"] is None
    assert doc.quality == quality
    assert doc.extraction_warnings == ["Kept document_ai output despite: 0 tables detected"]


async def test_stored_record_with_unknown_schema(repo: SQLiteRepository):
    """Test that readers check schema version before trusting fields."""
    await repo.insert_document(make_document())
    data = make_record().model_dump(mode="json")
    data["schema_version"] = "0.9.0"
    await repo.update_document("doc-1", record_data=data)

    doc = await repo.get_document("doc-1")
    with pytest.raises(SchemaVersionError):
        doc.structured_record()


async def test_update_missing_document(repo: SQLiteRepository):
    """Test that updating an unknown row raises."""
    with pytest.raises(NotFoundError):
        await repo.update_document("nope", extraction_error="x")


async def test_update_rejects_unknown_column(repo: SQLiteRepository):
    """Test that only document columns can be updated."""
    await repo.insert_document(make_document())

    with pytest.raises(ValueError):
        await repo.update_document("doc-1", id="other")


async def test_compare_and_set_status(repo: SQLiteRepository):
    """Test conditional status updates."""
    await repo.insert_document(make_document())

    assert await repo.compare_and_set_status("doc-1", "extraction_status", ["pending", "failed"], "processing")
    # Second claim loses: row is no longer pending/failed
    assert not await repo.compare_and_set_status("doc-1", "extraction_status", ["pending", "failed"], "processing")

    doc = await repo.get_document("doc-1")
    assert doc.extraction_status == ExtractionStatus.PROCESSING


async def test_compare_and_set_rejects_other_columns(repo: SQLiteRepository):
    """Test that only status columns are conditional targets."""
    with pytest.raises(ValueError):
        await repo.compare_and_set_status("doc-1", "entity_name", ["Acme"], "Other")


async def test_analyses_latest_first(repo: SQLiteRepository):
    """Test appending and listing analyses."""
    await repo.insert_document(make_document())
    for i, status in enumerate(["failed", "completed"]):
        await repo.insert_analysis(
            AnalysisRecord(
                id=f"a-{i}",
                document_id="doc-1",
                status=status,
                readiness_level=ReadinessLevel.READY,
                input_fingerprint="f" * 64,
                result=AnalysisResult(readiness_level=ReadinessLevel.READY, risk_score=40)
                if status == "completed"
                else None,
                limitations=["Notes not reviewed"],
                error="timeout" if status == "failed" else None,
            )
        )

    analyses = await repo.list_analyses("doc-1")
    assert [a.id for a in analyses] == ["a-1", "a-0"]
    assert analyses[0].risk_score == 40
    assert analyses[1].result is None
    assert analyses[1].error == "timeout"

    latest = await repo.latest_analysis("doc-1")
    assert latest.id == "a-1"
    assert await repo.latest_analysis("other") is None


async def test_replace_transactions(repo: SQLiteRepository):
    """Test that transaction rows are replaced, not appended."""
    await repo.insert_document(make_document())

    await repo.replace_ic_transactions(
        "doc-1",
        [
            ICTransaction(transaction_type="loan_receivable", amount=1_000_000, code="1171"),
            ICTransaction(transaction_type="loan_payable", amount=3_000_000, code="1379"),
        ],
    )
    await repo.replace_ic_transactions(
        "doc-1",
        [ICTransaction(transaction_type="interest_income", amount=30_000, code="7610", interest_rate=3.0)],
    )
    await repo.replace_related_party_transactions(
        "doc-1",
        [RelatedPartyTransaction(nature="guarantee", counterparty="Parent SA", is_arms_length=False)],
    )

    ic_rows = await repo.list_ic_transactions("doc-1")
    assert len(ic_rows) == 1
    assert ic_rows[0].code == "7610"
    assert ic_rows[0].interest_rate == 3.0

    rp_rows = await repo.list_related_party_transactions("doc-1")
    assert rp_rows[0].counterparty == "Parent SA"
    assert rp_rows[0].is_arms_length is False


async def test_concurrent_replace_transactions(repo: SQLiteRepository):
    """Test that interleaved replacements leave each document with one full row set."""
    await repo.insert_document(make_document("doc-1"))
    await repo.insert_document(make_document("doc-2"))

    def rows(code: str, count: int) -> list[ICTransaction]:
        return [
            ICTransaction(transaction_type="loan_receivable", amount=float(i + 1), code=code)
            for i in range(count)
        ]

    await asyncio.gather(
        repo.replace_ic_transactions("doc-1", rows("1171", 3)),
        repo.replace_ic_transactions("doc-2", rows("1379", 2)),
        repo.replace_ic_transactions("doc-1", rows("4011", 4)),
        repo.replace_ic_transactions("doc-2", rows("4511", 5)),
    )

    doc1 = await repo.list_ic_transactions("doc-1")
    doc2 = await repo.list_ic_transactions("doc-2")
    assert [row.code for row in doc1] == ["4011"] * 4
    assert [row.code for row in doc2] == ["4511"] * 5


async def test_failed_write_keeps_concurrent_rows(repo: SQLiteRepository):
    """Test that a rolled-back write does not undo another document's rows."""
    await repo.insert_document(make_document("doc-1"))
    await repo.insert_document(make_document("doc-2"))

    results = await asyncio.gather(
        repo.replace_ic_transactions(
            "doc-2",
            [ICTransaction(transaction_type="loan_payable", amount=3_000_000, code="1379")],
        ),
        repo.insert_document(make_document("doc-1")),
        return_exceptions=True,
    )

    assert results[0] is None
    assert isinstance(results[1], StorageError)
    doc2 = await repo.list_ic_transactions("doc-2")
    assert len(doc2) == 1
    assert doc2[0].code == "1379"
