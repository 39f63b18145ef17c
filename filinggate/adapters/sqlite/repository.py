"""
SQLite Repository - Document unit and analysis storage.

Features:
- Async operations via aiosqlite
- Single-row atomic updates
- Conditional status updates (test-and-set)
- Denormalized transaction rows per document
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Iterable
from datetime import date, datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

import aiosqlite
from pydantic import BaseModel

from filinggate.config.errors import ErrorCode, NotFoundError, StorageError
from filinggate.domains.analysis.models import AnalysisRecord, AnalysisResult
from filinggate.domains.extraction.models import QualitySignal
from filinggate.domains.parsing.models import ICTransaction, RelatedPartyTransaction
from filinggate.domains.pipeline.models import DocumentUnit

logger = logging.getLogger(__name__)

__all__ = ["SQLiteRepository"]

DOCUMENT_COLUMNS = (
    "entity_id",
    "entity_name",
    "period_end",
    "file_handle",
    "extraction_status",
    "analysis_status",
    "record_data",
    "schema_version",
    "record_fingerprint",
    "analysis_input_fingerprint",
    "extraction_warnings",
    "extraction_error",
    "analysis_error",
    "provider_used",
    "quality",
)
STATUS_COLUMNS = ("extraction_status", "analysis_status")


def _encode(value: Any) -> Any:
    """Convert a field value to its column representation."""
    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, BaseModel):
        return value.model_dump_json()
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteRepository:
    """
    SQLite repository for document units and analyses.

    Example:
        >>> repo = SQLiteRepository("data/filinggate.db")
        >>> await repo.initialize()
        >>> await repo.insert_document(DocumentUnit(id="d1", entity_id="B1", entity_name="Acme"))
        >>> claimed = await repo.compare_and_set_status("d1", "extraction_status", ["pending"], "processing")
    """

    def __init__(self, db_path: str | Path) -> None:
        """
        Initialize repository.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get or create database connection."""
        if self._connection is None:
            try:
                self._connection = await aiosqlite.connect(str(self.db_path))
            except aiosqlite.Error as e:
                raise StorageError(
                    f"Cannot open database {self.db_path}: {e}",
                    {"code": ErrorCode.STORAGE_CONNECTION_FAILED.value},
                ) from e
            self._connection.row_factory = aiosqlite.Row
        return self._connection

    async def initialize(self) -> None:
        """Initialize database schema."""
        conn = await self._get_connection()

        await conn.executescript("""
            -- Document units
            CREATE TABLE IF NOT EXISTS documents (
                id TEXT PRIMARY KEY,
                entity_id TEXT NOT NULL,
                entity_name TEXT NOT NULL,
                period_end TEXT,
                file_handle TEXT,
                extraction_status TEXT NOT NULL DEFAULT 'pending',
                analysis_status TEXT NOT NULL DEFAULT 'none',
                record_data TEXT,
                schema_version TEXT,
                record_fingerprint TEXT,
                analysis_input_fingerprint TEXT,
                extraction_warnings TEXT,
                extraction_error TEXT,
                analysis_error TEXT,
                provider_used TEXT,
                quality TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            -- Analysis attempts, append-only
            CREATE TABLE IF NOT EXISTS analyses (
                id TEXT PRIMARY KEY,
                document_id TEXT NOT NULL,
                status TEXT NOT NULL,
                readiness_level TEXT NOT NULL,
                input_fingerprint TEXT NOT NULL,
                result TEXT,
                limitations TEXT,
                raw_response TEXT,
                error TEXT,
                created_at TEXT NOT NULL,
                FOREIGN KEY (document_id) REFERENCES documents(id)
            );

            -- Intercompany rows (denormalized from the structured record)
            CREATE TABLE IF NOT EXISTS ic_transactions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                document_id TEXT NOT NULL,
                transaction_type TEXT NOT NULL,
                counterparty TEXT,
                amount REAL,
                currency TEXT,
                interest_rate REAL,
                code TEXT,
                source_page INTEGER,
                confidence REAL,
                FOREIGN KEY (document_id) REFERENCES documents(id)
            );

            -- Related-party rows (denormalized from the structured record)
            CREATE TABLE IF NOT EXISTS related_party_transactions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                document_id TEXT NOT NULL,
                nature TEXT NOT NULL,
                counterparty TEXT,
                relationship TEXT,
                amount REAL,
                is_arms_length INTEGER,
                source_page INTEGER,
                FOREIGN KEY (document_id) REFERENCES documents(id)
            );

            -- Indexes
            CREATE INDEX IF NOT EXISTS idx_documents_entity ON documents(entity_id);
            CREATE INDEX IF NOT EXISTS idx_analyses_document ON analyses(document_id, created_at);
            CREATE INDEX IF NOT EXISTS idx_ic_document ON ic_transactions(document_id);
            CREATE INDEX IF NOT EXISTS idx_rpt_document ON related_party_transactions(document_id);
        """)

        await conn.commit()
        logger.info("Database initialized: %s", self.db_path)

    async def _write(self, sql: str, params: tuple[Any, ...]) -> int:
        """Execute one statement and commit; returns the changed row count."""
        conn = await self._get_connection()
        async with self._write_lock:
            try:
                cursor = await conn.execute(sql, params)
                await conn.commit()
            except aiosqlite.Error as e:
                await conn.rollback()
                raise StorageError(f"Database write failed: {e}") from e
        return cursor.rowcount

    # --- Documents ---

    async def insert_document(self, document: DocumentUnit) -> DocumentUnit:
        """Insert a new document unit."""
        columns = ("id", *DOCUMENT_COLUMNS, "created_at", "updated_at")
        values = tuple(_encode(getattr(document, column)) for column in columns)
        placeholders = ", ".join("?" for _ in columns)

        await self._write(
            f"INSERT INTO documents ({', '.join(columns)}) VALUES ({placeholders})",
            values,
        )
        return document

    async def get_document(self, document_id: str) -> DocumentUnit | None:
        """Get document unit by ID."""
        conn = await self._get_connection()

        cursor = await conn.execute(
            "SELECT * FROM documents WHERE id = ?", (document_id,)
        )
        row = await cursor.fetchone()

        if row:
            return self._row_to_document(dict(row))
        return None

    async def list_documents(self, limit: int = 100, offset: int = 0) -> list[DocumentUnit]:
        """List document units, newest first."""
        conn = await self._get_connection()

        cursor = await conn.execute(
            "SELECT * FROM documents ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
            (limit, offset),
        )
        rows = await cursor.fetchall()

        return [self._row_to_document(dict(row)) for row in rows]

    async def update_document(self, document_id: str, **fields: Any) -> None:
        """
        Update columns of one document row in a single statement.

        Raises:
            ValueError: Unknown column
            NotFoundError: No such document
            StorageError: Write failed
        """
        unknown = set(fields) - set(DOCUMENT_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown document columns: {sorted(unknown)}")

        assignments = ", ".join(f"{column} = ?" for column in fields)
        params = (*(_encode(value) for value in fields.values()), _now(), document_id)

        changed = await self._write(
            f"UPDATE documents SET {assignments}, updated_at = ? WHERE id = ?",
            params,
        )
        if changed == 0:
            raise NotFoundError(f"Document not found: {document_id}", {"document_id": document_id})

    async def compare_and_set_status(
        self,
        document_id: str,
        column: str,
        expected: Iterable[str],
        new: str,
    ) -> bool:
        """
        Set a status column only if it currently holds an expected value.

        Returns:
            True if the row moved to the new state
        """
        if column not in STATUS_COLUMNS:
            raise ValueError(f"Not a status column: {column}")
        expected = list(expected)
        if not expected:
            return False

        placeholders = ", ".join("?" for _ in expected)
        changed = await self._write(
            f"UPDATE documents SET {column} = ?, updated_at = ? "
            f"WHERE id = ? AND {column} IN ({placeholders})",
            (new, _now(), document_id, *expected),
        )
        return changed == 1

    # --- Analyses ---

    async def insert_analysis(self, analysis: AnalysisRecord) -> None:
        """Append an analysis record."""
        await self._write(
            """
            INSERT INTO analyses
            (id, document_id, status, readiness_level, input_fingerprint,
             result, limitations, raw_response, error, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                analysis.id,
                analysis.document_id,
                analysis.status,
                analysis.readiness_level.value,
                analysis.input_fingerprint,
                analysis.result.model_dump_json() if analysis.result else None,
                json.dumps(analysis.limitations),
                analysis.raw_response,
                analysis.error,
                analysis.created_at.isoformat(),
            ),
        )

    async def list_analyses(self, document_id: str) -> list[AnalysisRecord]:
        """All analyses for a document, latest first."""
        conn = await self._get_connection()

        cursor = await conn.execute(
            "SELECT * FROM analyses WHERE document_id = ? ORDER BY created_at DESC, rowid DESC",
            (document_id,),
        )
        rows = await cursor.fetchall()

        return [self._row_to_analysis(dict(row)) for row in rows]

    async def latest_analysis(self, document_id: str) -> AnalysisRecord | None:
        """Most recent analysis, authoritative for display."""
        analyses = await self.list_analyses(document_id)
        return analyses[0] if analyses else None

    # --- Transaction rows ---

    async def replace_ic_transactions(
        self, document_id: str, transactions: list[ICTransaction]
    ) -> None:
        """Replace all intercompany rows of a document."""
        await self._replace_rows(
            "ic_transactions",
            document_id,
            (
                "transaction_type",
                "counterparty",
                "amount",
                "currency",
                "interest_rate",
                "code",
                "source_page",
                "confidence",
            ),
            transactions,
        )

    async def replace_related_party_transactions(
        self, document_id: str, transactions: list[RelatedPartyTransaction]
    ) -> None:
        """Replace all related-party rows of a document."""
        await self._replace_rows(
            "related_party_transactions",
            document_id,
            (
                "nature",
                "counterparty",
                "relationship",
                "amount",
                "is_arms_length",
                "source_page",
            ),
            transactions,
        )

    async def list_ic_transactions(self, document_id: str) -> list[ICTransaction]:
        rows = await self._select_rows("ic_transactions", document_id)
        return [ICTransaction.model_validate(row) for row in rows]

    async def list_related_party_transactions(
        self, document_id: str
    ) -> list[RelatedPartyTransaction]:
        rows = await self._select_rows("related_party_transactions", document_id)
        for row in rows:
            if row["is_arms_length"] is not None:
                row["is_arms_length"] = bool(row["is_arms_length"])
        return [RelatedPartyTransaction.model_validate(row) for row in rows]

    async def _replace_rows(
        self,
        table: str,
        document_id: str,
        columns: tuple[str, ...],
        items: list[BaseModel],
    ) -> None:
        conn = await self._get_connection()
        placeholders = ", ".join("?" for _ in range(len(columns) + 1))

        rows = [(document_id, *(getattr(item, column) for column in columns)) for item in items]

        # DELETE, INSERT and COMMIT form one transaction on the shared connection
        async with self._write_lock:
            try:
                await conn.execute(f"DELETE FROM {table} WHERE document_id = ?", (document_id,))
                await conn.executemany(
                    f"INSERT INTO {table} (document_id, {', '.join(columns)}) VALUES ({placeholders})",
                    rows,
                )
                await conn.commit()
            except aiosqlite.Error as e:
                await conn.rollback()
                raise StorageError(f"Failed to write {table}: {e}", {"table": table}) from e

    async def _select_rows(self, table: str, document_id: str) -> list[dict[str, Any]]:
        conn = await self._get_connection()

        cursor = await conn.execute(
            f"SELECT * FROM {table} WHERE document_id = ? ORDER BY id",
            (document_id,),
        )
        rows = await cursor.fetchall()

        result = []
        for row in rows:
            data = dict(row)
            data.pop("id")
            data.pop("document_id")
            result.append(data)
        return result

    # --- Row conversion ---

    @staticmethod
    def _row_to_document(row: dict[str, Any]) -> DocumentUnit:
        """Typed conversion of a documents row."""
        for column in ("record_data", "extraction_warnings"):
            if row[column] is not None:
                row[column] = json.loads(row[column])
        if row["extraction_warnings"] is None:
            row["extraction_warnings"] = []
        if row["quality"] is not None:
            row["quality"] = QualitySignal.model_validate_json(row["quality"])
        return DocumentUnit.model_validate(row)

    @staticmethod
    def _row_to_analysis(row: dict[str, Any]) -> AnalysisRecord:
        """Typed conversion of an analyses row."""
        if row["result"] is not None:
            row["result"] = AnalysisResult.model_validate_json(row["result"])
        row["limitations"] = json.loads(row["limitations"]) if row["limitations"] else []
        return AnalysisRecord.model_validate(row)

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None
