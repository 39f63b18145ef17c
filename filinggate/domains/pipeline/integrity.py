"""
Integrity Linker - Content fingerprints of structured records.

The fingerprint is a SHA-256 digest over the canonical JSON serialization
(sorted keys, compact separators). Drift is reported, never raised.
"""

from __future__ import annotations

import hashlib
import json
import logging

from pydantic import BaseModel

from filinggate.config.errors import ErrorCode
from filinggate.domains.parsing.models import StructuredRecord

logger = logging.getLogger(__name__)

__all__ = ["DriftCheck", "canonical_json", "fingerprint", "detect_drift"]


class DriftCheck(BaseModel):
    """Comparison of the current record digest with a stored one."""

    current: str
    stored: str | None = None
    drifted: bool = False
    warning: str | None = None
    code: ErrorCode | None = None


def canonical_json(record: StructuredRecord) -> str:
    """Canonical serialization used for fingerprinting."""
    return json.dumps(
        record.model_dump(mode="json"),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def fingerprint(record: StructuredRecord) -> str:
    """SHA-256 hex digest of the record's canonical serialization."""
    return hashlib.sha256(canonical_json(record).encode("utf-8")).hexdigest()


def detect_drift(record: StructuredRecord, stored: str | None) -> DriftCheck:
    """
    Compare a record against its stored digest.

    Args:
        record: Structured record about to be analyzed
        stored: Digest of the last analysis input, or of the record as
            extraction saved it when nothing has been analyzed yet

    Returns:
        DriftCheck; drifted is False when nothing was stored
    """
    current = fingerprint(record)
    if stored is None or stored == current:
        return DriftCheck(current=current, stored=stored)

    warning = (
        f"Structured record changed since it was fingerprinted "
        f"(was {stored[:12]}, now {current[:12]})"
    )
    logger.warning("Integrity drift: %s", warning)
    return DriftCheck(
        current=current,
        stored=stored,
        drifted=True,
        warning=warning,
        code=ErrorCode.INTEGRITY_DRIFT,
    )
