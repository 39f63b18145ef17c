"""
Pipeline Controller - Single writer of document status fields.

Flow for extraction:
1. Test-and-set extraction status to processing
2. Fetch bytes, run providers with fallback, parse, fingerprint
3. Primary write (record + statuses) in one atomic update
4. Best-effort secondary writes (IC and related-party rows)

Flow for analysis:
1. Refuse unless extraction is completed; refuse BLOCKED without force
2. Check the fingerprint for drift (warning only)
3. Test-and-set analysis status to processing
4. Run the analyzer, append an analysis record, move to completed/failed
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import date
from typing import TYPE_CHECKING

from filinggate.config.errors import (
    ErrorCode,
    FilingGateError,
    GateBlockedError,
    InvalidTransitionError,
    NotFoundError,
    ProviderError,
    StorageError,
)
from filinggate.domains.analysis.models import AnalysisRecord
from filinggate.domains.parsing.models import ReadinessLevel, StructuredRecord

from .integrity import detect_drift, fingerprint
from .models import (
    ANALYSIS_TRANSITIONS,
    EXTRACTION_TRANSITIONS,
    READINESS_TO_STATUS,
    AnalysisReport,
    AnalysisStatus,
    DocumentUnit,
    ExtractionReport,
    ExtractionStatus,
    PipelineStep,
    ensure_analysis_transition,
    ensure_extraction_transition,
    sources_for,
)

if TYPE_CHECKING:
    from filinggate.domains.analysis.contracts import Analyzer
    from filinggate.domains.extraction.orchestrator import ExtractionOrchestrator
    from filinggate.domains.parsing.contracts import StructuralParser

    from .contracts import DocumentRepository, DocumentSource

logger = logging.getLogger(__name__)

__all__ = ["PipelineController"]


def _reason(error: Exception) -> str:
    """Human-readable failure text, verbatim for known errors."""
    if isinstance(error, FilingGateError):
        return error.message
    return str(error) or type(error).__name__


class PipelineController:
    """
    Per-document extraction and analysis lifecycle.

    Example:
        >>> controller = PipelineController(repo, orchestrator, parser, engine, source)
        >>> doc = await controller.register_document("B123456", "Acme Holding SARL")
        >>> report = await controller.run_extraction(doc.id)
        >>> report.readiness_level
        <ReadinessLevel.READY: 'READY'>
    """

    def __init__(
        self,
        repository: DocumentRepository,
        orchestrator: ExtractionOrchestrator | None,
        parser: StructuralParser,
        analyzer: Analyzer,
        source: DocumentSource | None = None,
    ) -> None:
        """
        Initialize controller.

        Args:
            repository: Persistence collaborator
            orchestrator: Provider orchestration with fallback; None when no
                extraction provider is configured
            parser: Structural parser
            analyzer: Analysis engine
            source: Document intake, required for extraction by file handle
        """
        self._repo = repository
        self._orchestrator = orchestrator
        self._parser = parser
        self._analyzer = analyzer
        self._source = source

    # --- Documents ---

    async def register_document(
        self,
        entity_id: str,
        entity_name: str,
        period_end: date | None = None,
        file_handle: str | None = None,
    ) -> DocumentUnit:
        """Create a document unit in its initial states."""
        document = DocumentUnit(
            id=str(uuid.uuid4()),
            entity_id=entity_id,
            entity_name=entity_name,
            period_end=period_end,
            file_handle=file_handle,
        )
        await self._repo.insert_document(document)
        logger.info("Registered document %s for %s", document.id, entity_id)
        return document

    async def get_document(self, document_id: str) -> DocumentUnit:
        """
        Get a document unit.

        Raises:
            NotFoundError: Unknown document
        """
        document = await self._repo.get_document(document_id)
        if document is None:
            raise NotFoundError(f"Document not found: {document_id}", {"document_id": document_id})
        return document

    async def list_documents(self, limit: int = 100, offset: int = 0) -> list[DocumentUnit]:
        return await self._repo.list_documents(limit=limit, offset=offset)

    async def list_analyses(self, document_id: str) -> list[AnalysisRecord]:
        """All analyses of a document, latest first."""
        await self.get_document(document_id)
        return await self._repo.list_analyses(document_id)

    # --- Extraction ---

    async def run_extraction(
        self,
        document_id: str,
        content: bytes | None = None,
    ) -> ExtractionReport:
        """
        Extract, parse and gate one document.

        Args:
            document_id: Document unit id
            content: PDF bytes; fetched through the document source when None

        Returns:
            ExtractionReport. A BLOCKED gate is a normal outcome.

        Raises:
            InvalidTransitionError: Extraction cannot start from the current state
            ProviderError, ExtractionError, ParseError, DocumentIntakeError:
                Extraction failed; the document is marked failed first
        """
        start_time = time.time()
        document = await self.get_document(document_id)

        if document.analysis_status == AnalysisStatus.PROCESSING:
            raise InvalidTransitionError(
                "Cannot extract while analysis is in progress",
                {"document_id": document_id},
            )
        if content is None and (self._source is None or not document.file_handle):
            raise FilingGateError(
                ErrorCode.VALIDATION_ERROR,
                "No document content supplied and no file handle to fetch",
                {"document_id": document_id},
            )
        if self._orchestrator is None:
            raise ProviderError(
                "No extraction provider configured",
                provider="none",
            )

        ensure_extraction_transition(document.extraction_status, ExtractionStatus.PROCESSING)
        await self._claim(
            document_id,
            "extraction_status",
            sources_for(EXTRACTION_TRANSITIONS, ExtractionStatus.PROCESSING),
            ExtractionStatus.PROCESSING,
        )
        logger.info("Extraction started for %s", document_id)

        steps: list[PipelineStep] = []
        try:
            if content is None:
                step_start = time.time()
                content = await self._source.fetch(document.file_handle)
                steps.append(
                    PipelineStep(
                        name="fetch",
                        status="completed",
                        duration_ms=(time.time() - step_start) * 1000,
                        output={"bytes": len(content)},
                    )
                )

            step_start = time.time()
            outcome = await self._orchestrator.run(content)
            steps.append(
                PipelineStep(
                    name="extract",
                    status="completed",
                    duration_ms=(time.time() - step_start) * 1000,
                    output={"provider": outcome.provider_used, "used_fallback": outcome.used_fallback},
                )
            )

            step_start = time.time()
            parsed = self._parser.parse(
                outcome.raw,
                document.entity_id,
                document.entity_name,
                document.period_end,
            )
            warnings = [*outcome.warnings, *parsed.warnings]
            record = parsed.record.model_copy(update={"extraction_warnings": warnings})
            digest = fingerprint(record)
            steps.append(
                PipelineStep(
                    name="parse",
                    status="completed",
                    duration_ms=(time.time() - step_start) * 1000,
                    output={"readiness": record.pre_analysis_gate.readiness_level.value},
                )
            )

            gate = record.pre_analysis_gate
            analysis_status = READINESS_TO_STATUS[gate.readiness_level]
            ensure_analysis_transition(document.analysis_status, analysis_status)

            step_start = time.time()
            await self._repo.update_document(
                document_id,
                extraction_status=ExtractionStatus.COMPLETED,
                analysis_status=analysis_status,
                record_data=record.model_dump(mode="json"),
                schema_version=record.schema_version,
                record_fingerprint=digest,
                extraction_warnings=warnings,
                extraction_error=None,
                provider_used=outcome.provider_used,
                quality=outcome.quality,
            )
            steps.append(
                PipelineStep(
                    name="persist",
                    status="completed",
                    duration_ms=(time.time() - step_start) * 1000,
                )
            )
        except Exception as e:
            await self._fail_extraction(document_id, e, steps)
            raise

        secondary_warnings = await self._write_secondary(document_id, record, steps)

        logger.info(
            "Extraction completed for %s: provider=%s readiness=%s",
            document_id,
            outcome.provider_used,
            gate.readiness_level.value,
        )
        requires_review = gate.readiness_level == ReadinessLevel.BLOCKED or bool(gate.review_actions)
        return ExtractionReport(
            document_id=document_id,
            status=ExtractionStatus.COMPLETED,
            analysis_status=analysis_status,
            readiness_level=gate.readiness_level,
            blocking_issues=gate.blocking_issues,
            warning_issues=gate.warning_issues,
            warnings=[*warnings, *secondary_warnings],
            quality=outcome.quality,
            provider_used=outcome.provider_used,
            used_fallback=outcome.used_fallback,
            attempts=outcome.attempts,
            can_proceed_to_analysis=gate.can_proceed_to_analysis,
            requires_human_review=requires_review,
            review_reason=self._review_reason(record) if requires_review else None,
            fingerprint=digest,
            steps=steps,
            total_duration_ms=(time.time() - start_time) * 1000,
        )

    async def reset_extraction(self, document_id: str) -> DocumentUnit:
        """
        Return a completed or failed extraction to pending.

        The structured record and prior analyses are kept.
        """
        document = await self.get_document(document_id)
        if document.analysis_status == AnalysisStatus.PROCESSING:
            raise InvalidTransitionError(
                "Cannot reset extraction while analysis is in progress",
                {"document_id": document_id},
            )
        ensure_extraction_transition(document.extraction_status, ExtractionStatus.PENDING)
        await self._claim(
            document_id,
            "extraction_status",
            sources_for(EXTRACTION_TRANSITIONS, ExtractionStatus.PENDING),
            ExtractionStatus.PENDING,
        )
        logger.info("Extraction reset to pending for %s", document_id)
        return await self.get_document(document_id)

    async def _fail_extraction(
        self,
        document_id: str,
        error: Exception,
        steps: list[PipelineStep],
    ) -> None:
        """Record a failed extraction; the stored record is left untouched."""
        reason = _reason(error)
        logger.error("Extraction failed for %s: %s", document_id, reason)
        steps.append(PipelineStep(name="failure", status="failed", error=reason))
        try:
            await self._repo.update_document(
                document_id,
                extraction_status=ExtractionStatus.FAILED,
                extraction_error=reason,
            )
        except StorageError as e:
            logger.error("Could not record extraction failure for %s: %s", document_id, e.message)

    async def _write_secondary(
        self,
        document_id: str,
        record: StructuredRecord,
        steps: list[PipelineStep],
    ) -> list[str]:
        """Denormalized transaction rows; failures become warnings."""
        warnings: list[str] = []
        step_start = time.time()

        try:
            await self._repo.replace_ic_transactions(document_id, record.ic_transactions)
        except StorageError as e:
            logger.warning("IC transaction write failed for %s: %s", document_id, e.message)
            warnings.append(f"Failed to store intercompany transactions: {e.message}")

        try:
            await self._repo.replace_related_party_transactions(
                document_id, record.related_party_transactions
            )
        except StorageError as e:
            logger.warning("Related-party write failed for %s: %s", document_id, e.message)
            warnings.append(f"Failed to store related-party transactions: {e.message}")

        steps.append(
            PipelineStep(
                name="secondary_rows",
                status="failed" if warnings else "completed",
                duration_ms=(time.time() - step_start) * 1000,
                error="; ".join(warnings) or None,
            )
        )
        return warnings

    @staticmethod
    def _review_reason(record: StructuredRecord) -> str:
        gate = record.pre_analysis_gate
        if gate.blocking_issues:
            return gate.blocking_issues[0]
        return f"{len(gate.review_actions)} items require review"

    # --- Analysis ---

    async def run_analysis(self, document_id: str, force: bool = False) -> AnalysisReport:
        """
        Analyze the stored structured record.

        Args:
            document_id: Document unit id
            force: Bypass a BLOCKED gate's refusal; a blocked analysis record
                is stored without calling the model

        Raises:
            InvalidTransitionError: Extraction not completed or analysis in progress
            GateBlockedError: Gate is BLOCKED and force is False
            AnalysisError: Analyzer failed; the document is marked failed first
        """
        start_time = time.time()
        document = await self.get_document(document_id)

        if document.extraction_status != ExtractionStatus.COMPLETED:
            raise InvalidTransitionError(
                f"Extraction must be completed before analysis (is {document.extraction_status.value})",
                {"document_id": document_id},
            )
        record = document.structured_record()
        if record is None:
            raise InvalidTransitionError(
                "Document has no structured record",
                {"document_id": document_id},
            )

        gate = record.pre_analysis_gate
        blocked = gate.readiness_level == ReadinessLevel.BLOCKED
        if blocked and not force:
            logger.info("Analysis refused for %s: gate blocked", document_id)
            raise GateBlockedError(gate.blocking_issues)

        steps: list[PipelineStep] = []
        drift = detect_drift(
            record, document.analysis_input_fingerprint or document.record_fingerprint
        )
        warnings = [drift.warning] if drift.warning else []
        steps.append(
            PipelineStep(
                name="integrity",
                status="completed",
                output={"fingerprint": drift.current, "drifted": drift.drifted},
            )
        )

        if blocked:
            return await self._store_blocked(document, record, drift.current, warnings, steps, start_time)

        ensure_analysis_transition(document.analysis_status, AnalysisStatus.PROCESSING)
        await self._claim(
            document_id,
            "analysis_status",
            sources_for(ANALYSIS_TRANSITIONS, AnalysisStatus.PROCESSING),
            AnalysisStatus.PROCESSING,
        )
        logger.info("Analysis started for %s at %s", document_id, gate.readiness_level.value)

        step_start = time.time()
        try:
            result = await self._analyzer.analyze(record)
        except Exception as e:
            reason = _reason(e)
            logger.error("Analysis failed for %s: %s", document_id, reason)
            raw_response = e.details.get("raw_response") if isinstance(e, FilingGateError) else None
            await self._fail_analysis(
                AnalysisRecord(
                    id=str(uuid.uuid4()),
                    document_id=document_id,
                    status="failed",
                    readiness_level=gate.readiness_level,
                    input_fingerprint=drift.current,
                    limitations=warnings,
                    raw_response=raw_response,
                    error=reason,
                )
            )
            raise
        steps.append(
            PipelineStep(
                name="analyze",
                status="completed",
                duration_ms=(time.time() - step_start) * 1000,
                output={"opportunities": len(result.opportunities), "risk_score": result.risk_score},
            )
        )

        analysis = AnalysisRecord(
            id=str(uuid.uuid4()),
            document_id=document_id,
            status="completed",
            readiness_level=gate.readiness_level,
            input_fingerprint=drift.current,
            result=result,
            limitations=[*warnings, *result.limitations],
            raw_response=result.raw_response,
        )
        try:
            await self._repo.insert_analysis(analysis)
            await self._repo.update_document(
                document_id,
                analysis_status=AnalysisStatus.COMPLETED,
                analysis_error=None,
                analysis_input_fingerprint=drift.current,
            )
        except StorageError as e:
            await self._mark_analysis_failed(document_id, e.message, drift.current)
            raise
        logger.info(
            "Analysis completed for %s: %d opportunities, risk score %d",
            document_id,
            len(result.opportunities),
            result.risk_score,
        )
        return AnalysisReport(
            document_id=document_id,
            status=AnalysisStatus.COMPLETED,
            analysis=analysis,
            drift_detected=drift.drifted,
            warnings=[*warnings, *result.validation_warnings],
            steps=steps,
            total_duration_ms=(time.time() - start_time) * 1000,
        )

    async def _fail_analysis(self, analysis: AnalysisRecord) -> None:
        """Move analysis to FAILED first; the failed row itself is best-effort."""
        await self._mark_analysis_failed(
            analysis.document_id, analysis.error or "Analysis failed", analysis.input_fingerprint
        )
        try:
            await self._repo.insert_analysis(analysis)
        except StorageError as e:
            logger.warning(
                "Failed analysis row not stored for %s: %s", analysis.document_id, e.message
            )

    async def _mark_analysis_failed(self, document_id: str, reason: str, digest: str) -> None:
        try:
            await self._repo.update_document(
                document_id,
                analysis_status=AnalysisStatus.FAILED,
                analysis_error=reason,
                analysis_input_fingerprint=digest,
            )
        except StorageError as e:
            logger.error("Could not record analysis failure for %s: %s", document_id, e.message)

    async def _store_blocked(
        self,
        document: DocumentUnit,
        record: StructuredRecord,
        digest: str,
        warnings: list[str],
        steps: list[PipelineStep],
        start_time: float,
    ) -> AnalysisReport:
        """Forced analysis of a BLOCKED record: stored, never sent to the model."""
        ensure_analysis_transition(document.analysis_status, AnalysisStatus.BLOCKED)
        result = self._analyzer.blocked_result(record)
        analysis = AnalysisRecord(
            id=str(uuid.uuid4()),
            document_id=document.id,
            status="blocked",
            readiness_level=ReadinessLevel.BLOCKED,
            input_fingerprint=digest,
            result=result,
            limitations=[*warnings, *result.limitations],
        )
        await self._repo.insert_analysis(analysis)
        await self._repo.update_document(
            document.id,
            analysis_status=AnalysisStatus.BLOCKED,
            analysis_input_fingerprint=digest,
        )
        steps.append(PipelineStep(name="analyze", status="skipped", output={"blocked": True}))
        logger.info("Stored blocked analysis for %s", document.id)
        return AnalysisReport(
            document_id=document.id,
            status=AnalysisStatus.BLOCKED,
            analysis=analysis,
            drift_detected=bool(warnings),
            warnings=warnings,
            steps=steps,
            total_duration_ms=(time.time() - start_time) * 1000,
        )

    async def _claim(
        self,
        document_id: str,
        column: str,
        expected: list[ExtractionStatus] | list[AnalysisStatus],
        new: ExtractionStatus | AnalysisStatus,
    ) -> None:
        """Test-and-set a status column or raise InvalidTransitionError."""
        claimed = await self._repo.compare_and_set_status(
            document_id,
            column,
            [state.value for state in expected],
            new.value,
        )
        if not claimed:
            raise InvalidTransitionError(
                f"Concurrent update prevented moving {column} to {new.value}",
                {"document_id": document_id, "column": column},
            )
