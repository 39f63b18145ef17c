"""
Extraction Routes - Run, upload and reset extraction.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from filinggate.domains.pipeline import ExtractionReport, PipelineController
from filinggate.interfaces.api.deps import get_controller

from .documents import DocumentResponse

router = APIRouter()


@router.post("/{document_id}", response_model=ExtractionReport)
async def run_extraction(
    document_id: str,
    controller: PipelineController = Depends(get_controller),
):
    """
    Extract the document's stored file handle.

    Returns the readiness level, blocking and warning issues, quality
    signal, provider used and whether analysis may proceed.
    """
    return await controller.run_extraction(document_id)


@router.post("/{document_id}/upload", response_model=ExtractionReport)
async def upload_and_extract(
    document_id: str,
    file: UploadFile = File(...),
    controller: PipelineController = Depends(get_controller),
):
    """Extract an uploaded statement PDF."""
    if not file.filename or not file.filename.lower().endswith(".pdf"):
        raise HTTPException(status_code=400, detail="File must be a PDF")

    content = await file.read()
    return await controller.run_extraction(document_id, content=content)


@router.post("/{document_id}/reset", response_model=DocumentResponse)
async def reset_extraction(
    document_id: str,
    controller: PipelineController = Depends(get_controller),
):
    """Reset a completed or failed extraction to pending."""
    unit = await controller.reset_extraction(document_id)
    return DocumentResponse.from_unit(unit)
