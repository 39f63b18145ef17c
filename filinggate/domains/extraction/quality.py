"""
Quality Evaluator - Structural quality metrics for provider output.

Pure and deterministic so fallback decisions can be replayed without
live provider calls.
"""

from __future__ import annotations

import re
from collections import Counter

from .models import CodeFrequency, QualitySignal, RawExtraction

__all__ = ["CODE_TOKEN_PATTERN", "evaluate", "rank_codes"]

# Exactly four digits, word-bounded. ASCII only so other scripts' digits do not count.
CODE_TOKEN_PATTERN = re.compile(r"\b\d{4}\b", re.ASCII)


def rank_codes(text: str, top_n: int = 10) -> tuple[int, list[CodeFrequency]]:
    """
    Count code tokens and rank them.

    Ties keep first-seen order: Counter preserves insertion order and
    sorted() is stable.

    Returns:
        (distinct code count, top-N codes by descending frequency)
    """
    counts = Counter(CODE_TOKEN_PATTERN.findall(text))
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    top = [CodeFrequency(code=code, count=count) for code, count in ranked[:top_n]]
    return len(counts), top


def evaluate(
    raw: RawExtraction,
    top_n: int = 10,
    min_chars_per_page: int = 200,
) -> QualitySignal:
    """
    Compute the quality signal for one RawExtraction.

    The score is informational only; fallback decisions use the raw counts.

    Args:
        raw: Provider output
        top_n: How many frequent code tokens to keep
        min_chars_per_page: Density at which the density component saturates

    Returns:
        QualitySignal
    """
    page_count = raw.page_count
    text_length = len(raw.text)
    table_count = sum(len(page.tables) for page in raw.pages)
    block_count = sum(len(page.blocks) for page in raw.pages)
    paragraph_count = sum(len(page.paragraphs) for page in raw.pages)
    distinct, top_codes = rank_codes(raw.text, top_n)

    return QualitySignal(
        provider=raw.provider,
        page_count=page_count,
        text_length=text_length,
        table_count=table_count,
        block_count=block_count,
        paragraph_count=paragraph_count,
        distinct_code_count=distinct,
        top_codes=top_codes,
        score=_score(page_count, text_length, table_count, distinct, min_chars_per_page),
    )


def _score(
    page_count: int,
    text_length: int,
    table_count: int,
    distinct_codes: int,
    min_chars_per_page: int,
) -> float:
    """Weighted structure/density/code score in [0, 1]."""
    if page_count == 0:
        return 0.0
    structure = min(1.0, table_count / page_count)
    density = min(1.0, (text_length / page_count) / max(min_chars_per_page, 1))
    codes = min(1.0, distinct_codes / 10)
    return round(structure * 0.4 + density * 0.4 + codes * 0.2, 4)
