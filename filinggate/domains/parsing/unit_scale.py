"""
Unit Scale Detection - Presentation scale of reported amounts.

Explicit text indicators win; magnitude analysis is a weak fallback.
Confidence below 0.8 marks the scale as uncertain.
"""

from __future__ import annotations

import re

from .models import UnitScale, UnitScaleDetection

__all__ = ["detect_unit_scale", "apply_scale"]

SCALE_INDICATORS: dict[UnitScale, tuple[str, ...]] = {
    UnitScale.THOUSANDS: (
        "in thousands", "in '000", "in 000", "(thousands)", "('000)", "k€", "keur", "teur",
        "in thousand", "en milliers", "en keur", "en mille", "(milliers)", "en '000",
        "in tausend", "in teur", "tausend euro", "(tausend)",
    ),
    UnitScale.MILLIONS: (
        "in millions", "(millions)", "m€", "meur", "in million", "en millions",
        "in millionen", "(millionen)",
    ),
}

EXPLICIT_UNITS = (
    re.compile(r"amounts?\s+(?:are\s+)?(?:expressed\s+)?in\s+euro", re.IGNORECASE),
    re.compile(r"montants?\s+(?:sont\s+)?(?:exprim[ée]s?\s+)?en\s+euro", re.IGNORECASE),
    re.compile(r"betr[äa]ge?\s+in\s+euro", re.IGNORECASE),
)

_THOUSAND_WORDS = ("thousand", "millier", "tausend")
_NUMBER = re.compile(r"\d{1,3}(?:[.,' ]\d{3})+|\d+")


def detect_unit_scale(text: str) -> UnitScaleDetection:
    """Detect the unit scale of a document's amounts."""
    lowered = text.lower()
    detection = UnitScaleDetection()

    # Millions are checked last so they win when both appear
    for scale in (UnitScale.THOUSANDS, UnitScale.MILLIONS):
        for indicator in SCALE_INDICATORS[scale]:
            if indicator in lowered:
                detection = UnitScaleDetection(
                    scale=scale,
                    confidence=0.9,
                    source="explicit_text",
                    evidence=[*detection.evidence, f'Found "{indicator}" in document text'],
                )

    for pattern in EXPLICIT_UNITS:
        match = pattern.search(lowered)
        if match is None:
            continue
        nearby = lowered[max(0, match.start() - 100) : match.end() + 100]
        if not any(word in nearby for word in _THOUSAND_WORDS):
            detection = UnitScaleDetection(
                scale=UnitScale.UNITS,
                confidence=0.85,
                source="explicit_text",
                evidence=[*detection.evidence, 'Found explicit "amounts in euro" without thousands qualifier'],
            )

    magnitude = _magnitude_analysis(text)
    if magnitude.confidence > detection.confidence:
        detection = magnitude

    if detection.uncertain:
        detection.evidence.append(
            f"Confidence {detection.confidence:.0%} is below 80% threshold"
        )
    return detection


def _magnitude_analysis(text: str) -> UnitScaleDetection:
    numbers = [
        float(re.sub(r"[.,' ]", "", raw))
        for raw in _NUMBER.findall(text)
    ]
    numbers = [n for n in numbers if n > 0]
    if not numbers:
        return UnitScaleDetection(
            confidence=0.3,
            source="magnitude_analysis",
            evidence=["No numbers found for magnitude analysis"],
        )

    largest = max(numbers)
    average = sum(numbers) / len(numbers)
    evidence = [f"Analyzed {len(numbers)} numbers, max: {largest:,.0f}, avg: {average:,.0f}"]

    if largest > 1_000_000_000:
        return UnitScaleDetection(
            confidence=0.75,
            source="magnitude_analysis",
            evidence=[*evidence, "Maximum value > 1 billion suggests UNITS"],
        )
    if largest > 100_000_000:
        return UnitScaleDetection(
            confidence=0.65,
            source="magnitude_analysis",
            evidence=[*evidence, "Maximum value in hundreds of millions suggests UNITS"],
        )
    if largest < 10_000 and average < 1000:
        return UnitScaleDetection(
            scale=UnitScale.THOUSANDS,
            confidence=0.55,
            source="magnitude_analysis",
            evidence=[*evidence, "Small number magnitudes - possibly THOUSANDS or MILLIONS"],
        )
    return UnitScaleDetection(
        confidence=0.5,
        source="magnitude_analysis",
        evidence=[*evidence, "Magnitude inconclusive, defaulting to UNITS"],
    )


def apply_scale(value: float | None, scale: UnitScale) -> float | None:
    """Convert a reported amount to units."""
    if value is None:
        return None
    return value * scale.multiplier
