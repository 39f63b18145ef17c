"""
API Interface - FastAPI REST API.

Registers document units and drives their extraction and analysis.
"""

from .main import app, create_app

__all__ = ["app", "create_app"]
