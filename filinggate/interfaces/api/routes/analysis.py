"""
Analysis Routes - Run analysis and list stored analyses.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from filinggate.domains.analysis import AnalysisRecord
from filinggate.domains.pipeline import AnalysisReport, PipelineController
from filinggate.interfaces.api.deps import get_controller

router = APIRouter()


@router.post("/{document_id}", response_model=AnalysisReport)
async def run_analysis(
    document_id: str,
    force: bool = Query(default=False, description="Analyze even when the gate is BLOCKED"),
    controller: PipelineController = Depends(get_controller),
):
    """
    Analyze an extracted document.

    A BLOCKED gate answers 409 unless `force` is set; forced runs store
    the blocked result without calling the model.
    """
    return await controller.run_analysis(document_id, force=force)


@router.get("/{document_id}", response_model=list[AnalysisRecord])
async def list_analyses(
    document_id: str,
    controller: PipelineController = Depends(get_controller),
):
    """All analyses of a document, latest first."""
    return await controller.list_analyses(document_id)
