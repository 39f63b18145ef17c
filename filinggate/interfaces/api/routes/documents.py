"""
Document Routes - Register and inspect document units.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from filinggate.domains.pipeline import (
    AnalysisStatus,
    DocumentUnit,
    ExtractionStatus,
    PipelineController,
)
from filinggate.interfaces.api.deps import get_controller

router = APIRouter()


class RegisterRequest(BaseModel):
    """Register request body."""

    entity_id: str = Field(..., min_length=1, description="Registry number of the entity")
    entity_name: str = Field(..., min_length=1)
    period_end: date | None = None
    file_handle: str | None = Field(default=None, description="Drive file id of the statement PDF")


class DocumentResponse(BaseModel):
    """Document unit without its structured record (unless requested)."""

    id: str
    entity_id: str
    entity_name: str
    period_end: date | None
    file_handle: str | None
    extraction_status: ExtractionStatus
    analysis_status: AnalysisStatus
    readiness_level: str | None
    schema_version: str | None
    record_fingerprint: str | None
    provider_used: str | None
    extraction_warnings: list[str]
    extraction_error: str | None
    analysis_error: str | None
    created_at: datetime
    updated_at: datetime
    record: dict[str, Any] | None = None

    @classmethod
    def from_unit(cls, unit: DocumentUnit, include_record: bool = False) -> DocumentResponse:
        gate = (unit.record_data or {}).get("pre_analysis_gate") or {}
        return cls(
            id=unit.id,
            entity_id=unit.entity_id,
            entity_name=unit.entity_name,
            period_end=unit.period_end,
            file_handle=unit.file_handle,
            extraction_status=unit.extraction_status,
            analysis_status=unit.analysis_status,
            readiness_level=gate.get("readiness_level"),
            schema_version=unit.schema_version,
            record_fingerprint=unit.record_fingerprint,
            provider_used=unit.provider_used,
            extraction_warnings=unit.extraction_warnings,
            extraction_error=unit.extraction_error,
            analysis_error=unit.analysis_error,
            created_at=unit.created_at,
            updated_at=unit.updated_at,
            record=unit.record_data if include_record else None,
        )


@router.post("", response_model=DocumentResponse, status_code=201)
async def register_document(
    request: RegisterRequest,
    controller: PipelineController = Depends(get_controller),
):
    """Register a document unit in its initial states."""
    unit = await controller.register_document(
        request.entity_id,
        request.entity_name,
        period_end=request.period_end,
        file_handle=request.file_handle,
    )
    return DocumentResponse.from_unit(unit)


@router.get("", response_model=list[DocumentResponse])
async def list_documents(
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    controller: PipelineController = Depends(get_controller),
):
    """List document units, newest first."""
    units = await controller.list_documents(limit=limit, offset=offset)
    return [DocumentResponse.from_unit(unit) for unit in units]


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(
    document_id: str,
    include_record: bool = Query(default=False, description="Include the structured record"),
    controller: PipelineController = Depends(get_controller),
):
    """Get one document unit."""
    unit = await controller.get_document(document_id)
    return DocumentResponse.from_unit(unit, include_record=include_record)
