"""
API Dependencies - Dependency injection for FastAPI routes.

Provides singleton instances of the repository, providers and the
pipeline controller. Tests override `get_controller`.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from filinggate.adapters.azure import AzureLayoutProvider
from filinggate.adapters.gemini import GeminiClient, GeminiConfig
from filinggate.adapters.google import (
    DRIVE_READONLY_SCOPE,
    DocumentAIProvider,
    DriveDocumentSource,
    GoogleTokenProvider,
)
from filinggate.adapters.sqlite import SQLiteRepository
from filinggate.config import get_settings
from filinggate.domains.analysis import AnalysisEngine
from filinggate.domains.extraction import (
    ExtractionOrchestrator,
    FallbackPolicy,
    QualityThresholds,
)
from filinggate.domains.parsing import FinancialStatementParser
from filinggate.domains.pipeline import PipelineController

logger = logging.getLogger(__name__)


@lru_cache
def get_sqlite_repository() -> SQLiteRepository:
    """Get SQLite repository singleton."""
    settings = get_settings()
    return SQLiteRepository(settings.db_path)


@lru_cache
def get_orchestrator() -> ExtractionOrchestrator | None:
    """Get extraction orchestrator singleton, None without Document AI settings."""
    settings = get_settings()
    if not (settings.documentai_project_id and settings.documentai_processor_id):
        logger.warning("Document AI is not configured; extraction is disabled")
        return None

    primary = DocumentAIProvider(
        settings.documentai_project_id,
        settings.documentai_location,
        settings.documentai_processor_id,
        GoogleTokenProvider(access_token=settings.google_access_token),
    )
    secondary = None
    if settings.azure_configured:
        secondary = AzureLayoutProvider(
            settings.azure_di_endpoint,
            settings.azure_di_key,
            model=settings.azure_di_model,
            api_version=settings.azure_di_api_version,
            poll_interval=settings.azure_di_poll_interval_seconds,
        )

    policy = FallbackPolicy(
        QualityThresholds(
            min_chars_per_page=settings.min_chars_per_page,
            page_coverage_ratio=settings.fallback_page_coverage,
            text_coverage_ratio=settings.fallback_text_coverage,
        ),
        fallback_configured=settings.azure_configured,
    )
    return ExtractionOrchestrator(
        primary,
        secondary,
        policy=policy,
        timeout_seconds=settings.provider_timeout_seconds,
        top_code_count=settings.top_code_count,
    )


@lru_cache
def get_analysis_engine() -> AnalysisEngine:
    """Get analysis engine singleton."""
    settings = get_settings()
    client = GeminiClient(
        GeminiConfig(
            model=settings.gemini_model,
            temperature=settings.analysis_temperature,
            max_output_tokens=settings.analysis_max_tokens,
            rate_limit_rpm=settings.gemini_rate_limit_rpm,
        )
    )
    return AnalysisEngine(
        client,
        max_tokens=settings.analysis_max_tokens,
        temperature=settings.analysis_temperature,
    )


@lru_cache
def get_document_source() -> DriveDocumentSource:
    """Get Drive intake singleton."""
    settings = get_settings()
    return DriveDocumentSource(
        GoogleTokenProvider(
            access_token=settings.google_access_token,
            scopes=[DRIVE_READONLY_SCOPE],
        ),
        retries=settings.drive_download_retries,
    )


@lru_cache
def get_controller() -> PipelineController:
    """Get pipeline controller singleton."""
    return PipelineController(
        get_sqlite_repository(),
        get_orchestrator(),
        FinancialStatementParser(),
        get_analysis_engine(),
        get_document_source(),
    )


async def init_services() -> None:
    """
    Initialize services on startup.

    This should be called from the FastAPI lifespan handler.
    """
    repo = get_sqlite_repository()
    await repo.initialize()


async def cleanup_services() -> None:
    """Cleanup services on shutdown."""
    repo = get_sqlite_repository()
    await repo.close()
    if get_document_source.cache_info().currsize:
        await get_document_source().close()
