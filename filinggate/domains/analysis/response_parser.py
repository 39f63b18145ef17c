"""
Response Parser - Typed conversion of the model's JSON response.

Fails fast with AnalysisError instead of passing loosely-shaped data inward.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from filinggate.config.errors import AnalysisError

from .models import ModelAnalysis

logger = logging.getLogger(__name__)

__all__ = ["ParsedResponse", "parse_analysis_response", "REQUIRED_FIELDS"]

REQUIRED_FIELDS = (
    "company_classification",
    "classification_reasoning",
    "opportunities",
    "flags",
    "risk_score",
    "priority_ranking",
    "executive_summary",
    "recommended_actions",
)

PCN_CITATION = re.compile(r"PCN\s*\d{4}", re.IGNORECASE)
_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


class ParsedResponse(BaseModel):
    """Parsed analysis plus non-fatal validation warnings."""

    analysis: ModelAnalysis
    warnings: list[str] = Field(default_factory=list)


def parse_analysis_response(
    response: str,
    account_type: str | None = None,
    company_size: str | None = None,
) -> ParsedResponse:
    """
    Parse the model's response text.

    Args:
        response: Raw response text
        account_type: Record metadata value used when the response omits it
        company_size: Record metadata value used when the response omits it

    Returns:
        ParsedResponse

    Raises:
        AnalysisError: No JSON object found or required fields missing/invalid
    """
    data = _load_json(response)
    warnings: list[str] = []

    if not data.get("account_type") and account_type:
        data["account_type"] = account_type.lower()
        warnings.append("account_type filled from extraction metadata")
    if not data.get("company_size") and company_size:
        data["company_size"] = company_size.lower()
        warnings.append("company_size filled from extraction metadata")

    missing = [name for name in REQUIRED_FIELDS if name not in data]
    if missing:
        raise AnalysisError(
            f"Response missing required fields: {', '.join(missing)}",
            {"missing_fields": missing},
        )

    try:
        analysis = ModelAnalysis.model_validate(data)
    except ValidationError as e:
        raise AnalysisError(
            "Response does not match the analysis schema",
            {"errors": e.errors(include_url=False, include_context=False)},
        ) from e

    uncited = [
        opportunity
        for opportunity in analysis.opportunities
        if not PCN_CITATION.search(opportunity.description) and not opportunity.data_references
    ]
    if uncited:
        warnings.append(f"{len(uncited)} opportunities lack PCN code citations")
    for opportunity in analysis.opportunities:
        if not opportunity.data_references:
            warnings.append(f'Opportunity "{opportunity.title}" has no data references')
    if not PCN_CITATION.search(analysis.executive_summary):
        warnings.append("Executive summary does not cite PCN codes")

    return ParsedResponse(analysis=analysis, warnings=warnings)


def _load_json(response: str) -> dict[str, Any]:
    text = response.strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    text = text.strip()

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        match = _OBJECT.search(response)
        if match is None:
            raise AnalysisError("No valid JSON found in model response") from None
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise AnalysisError("Failed to parse JSON from model response") from e

    if not isinstance(data, dict):
        raise AnalysisError("Model response is not a JSON object")
    return data
