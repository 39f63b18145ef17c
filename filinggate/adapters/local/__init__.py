"""
Local Adapter - Filesystem document intake.
"""

from .source import LocalDocumentSource

__all__ = ["LocalDocumentSource"]
