"""
Local Document Source - Reads statement PDFs from disk.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from filinggate.config.errors import DocumentIntakeError

logger = logging.getLogger(__name__)

__all__ = ["LocalDocumentSource"]


class LocalDocumentSource:
    """
    Filesystem intake used by the CLI.

    Handles are paths relative to `root`; absolute paths are used as is.
    """

    def __init__(self, root: str | Path = ".") -> None:
        self.root = Path(root)

    async def fetch(self, handle: str) -> bytes:
        """
        Read file bytes.

        Raises:
            DocumentIntakeError: not-found or permission-denied
        """
        path = self.root / handle
        if not path.is_file():
            raise DocumentIntakeError(f"File not found: {path}", "not-found")
        try:
            content = await asyncio.to_thread(path.read_bytes)
        except PermissionError as e:
            raise DocumentIntakeError(f"No permission to read {path}", "permission-denied") from e
        logger.info("Read %s (%d bytes)", path, len(content))
        return content
