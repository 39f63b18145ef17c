"""
API Routes.
"""

from . import analysis, documents, extraction, health

__all__ = ["health", "documents", "extraction", "analysis"]
