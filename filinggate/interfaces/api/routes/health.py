"""
Health Routes - System health and status endpoints.
"""

from typing import Any

from fastapi import APIRouter

from filinggate import __version__

router = APIRouter()


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": "filinggate"}


@router.get("/api")
async def api_info() -> dict[str, Any]:
    """API info endpoint."""
    return {
        "name": "FilingGate API",
        "version": __version__,
        "description": "Quality-gated extraction and analysis of financial statements",
        "docs": "/docs",
    }
