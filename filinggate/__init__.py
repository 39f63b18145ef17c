"""
FilingGate - OCR extraction orchestration and readiness gating for financial statements.

Example:
    >>> from filinggate.domains.extraction import FallbackPolicy, evaluate
    >>> signal = evaluate(raw_extraction)
    >>> FallbackPolicy(fallback_configured=True).should_fallback(signal)
"""

__version__ = "1.0.0"
__all__ = ["__version__"]
