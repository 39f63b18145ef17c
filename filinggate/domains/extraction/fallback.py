"""
Fallback Decision Engine - Rule-based provider fallback and acceptance.
"""

from __future__ import annotations

import logging
import math

from .models import AcceptanceDecision, FallbackDecision, QualitySignal, QualityThresholds

logger = logging.getLogger(__name__)

__all__ = ["FallbackPolicy"]


def _coverage(value: int, ratio: float) -> int:
    """Minimum count covering `ratio` of `value`; 1 when value is 0."""
    if value == 0:
        return 1
    # round() first so 5 * 0.6 == 3.0000000000000004 does not become 4
    return math.ceil(round(value * ratio, 6))


class FallbackPolicy:
    """
    Decides whether to try the fallback provider and whether to keep its output.

    Example:
        >>> policy = FallbackPolicy(fallback_configured=True)
        >>> policy.should_fallback(primary_signal).should_fallback
        True
    """

    def __init__(
        self,
        thresholds: QualityThresholds | None = None,
        fallback_configured: bool = False,
    ) -> None:
        """
        Initialize policy.

        Args:
            thresholds: Tuning constants. Uses defaults if None.
            fallback_configured: Whether a secondary provider exists
        """
        self.thresholds = thresholds or QualityThresholds()
        self.fallback_configured = fallback_configured

    def should_fallback(self, primary: QualitySignal) -> FallbackDecision:
        """Test primary output quality and list the reasons it is too low."""
        reasons: list[str] = []

        if primary.page_count == 0:
            reasons.append("0 pages detected")

        if primary.table_count == 0:
            reasons.append("0 tables detected")

        if primary.page_count > 0:
            per_page = primary.text_length / primary.page_count
            if per_page < self.thresholds.min_chars_per_page:
                reasons.append(f"Low text density ({round(per_page)} chars/page)")

        return FallbackDecision(should_fallback=bool(reasons), reasons=reasons)

    def should_accept(
        self,
        primary: QualitySignal,
        secondary: QualitySignal,
    ) -> AcceptanceDecision:
        """Accept the secondary output only if it covers enough of the primary."""
        min_pages = _coverage(primary.page_count, self.thresholds.page_coverage_ratio)
        min_text = _coverage(primary.text_length, self.thresholds.text_coverage_ratio)
        reasons: list[str] = []

        if secondary.page_count < min_pages:
            reasons.append(
                f"{secondary.provider} pages {secondary.page_count} < {min_pages} "
                f"({self.thresholds.page_coverage_ratio:.0%} of {primary.provider})"
            )

        text_ok = secondary.text_length >= min_text
        more_tables = secondary.table_count > primary.table_count
        if not (text_ok or more_tables):
            reasons.append(
                f"{secondary.provider} content coverage too low "
                f"({secondary.text_length} chars < {min_text})"
            )

        decision = AcceptanceDecision(
            accepted=not reasons,
            min_page_coverage=min_pages,
            min_text_coverage=min_text,
            reasons=reasons,
        )
        logger.debug(
            "Fallback acceptance: accepted=%s min_pages=%d min_text=%d",
            decision.accepted,
            min_pages,
            min_text,
        )
        return decision
