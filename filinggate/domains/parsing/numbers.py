"""
Amount parsing for European and US number formats.

European: 1.234.567,89    US: 1,234,567.89
Negatives: (1 234), -1234, 1234-
"""

from __future__ import annotations

import re

__all__ = ["parse_amount"]

_CURRENCY = re.compile(r"[€$£]|EUR", re.IGNORECASE)
_NUMERIC = re.compile(r"[\d\s.,']+")


def parse_amount(text: str | None) -> float | None:
    """
    Parse a reported amount.

    Returns None for empty cells, dashes and non-numeric text.
    """
    if text is None:
        return None
    value = _CURRENCY.sub("", text).replace("\u00a0", " ").strip()
    if not value or value in {"-", "–", "—"}:
        return None

    negative = False
    if value.startswith("(") and value.endswith(")"):
        negative = True
        value = value[1:-1].strip()
    if value.startswith(("-", "−")):
        negative = True
        value = value[1:].strip()
    elif value.endswith(("-", "−")):
        negative = True
        value = value[:-1].strip()

    if not value or not _NUMERIC.fullmatch(value) or not any(c.isdigit() for c in value):
        return None

    number = _to_float(value)
    if number is None:
        return None
    return -number if negative else number


def _to_float(value: str) -> float | None:
    compact = re.sub(r"[\s']", "", value)
    dots = compact.count(".")
    commas = compact.count(",")

    if dots and commas:
        # The right-most separator is the decimal mark
        if compact.rfind(",") > compact.rfind("."):
            compact = compact.replace(".", "").replace(",", ".")
        else:
            compact = compact.replace(",", "")
    elif commas:
        head, _, tail = compact.rpartition(",")
        if commas == 1 and len(tail) != 3:
            compact = f"{head}.{tail}"
        else:
            compact = compact.replace(",", "")
    elif dots > 1:
        compact = compact.replace(".", "")
    elif dots == 1:
        head, _, tail = compact.partition(".")
        if len(tail) == 3 and head not in ("", "0"):
            # 1.234 is a European thousands group
            compact = head + tail

    try:
        return float(compact)
    except ValueError:
        return None
