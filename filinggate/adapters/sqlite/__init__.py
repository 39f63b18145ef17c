"""
SQLite Adapter - Persistence for document units and analyses.
"""

from .repository import SQLiteRepository

__all__ = ["SQLiteRepository"]
