"""
CLI Interface - Command-line tools for FilingGate.

Provides commands for:
- Database setup and document registration
- Extraction of statement PDFs
- Analysis and status inspection
"""

from .main import app, main

__all__ = ["app", "main"]
