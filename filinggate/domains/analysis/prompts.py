"""
Analysis Prompts - System and user prompts built from a structured record.

The model only ever sees the structured JSON projection, never document text.
"""

from __future__ import annotations

import json
from typing import Any

from filinggate.domains.parsing.gates import CRITICAL_CODES
from filinggate.domains.parsing.models import StructuredRecord

from .opportunity_gate import get_allowed_opportunity_types

__all__ = ["build_system_prompt", "build_user_prompt", "build_analysis_input"]

SYSTEM_PROMPT = """You are an expert Luxembourg transfer pricing analyst. You analyze financial statements to identify transfer pricing opportunities, risks and compliance issues.

OPERATING RULES:

1. DATA USAGE
   - USE the deterministic_metrics provided. DO NOT recalculate any arithmetic.
   - If a metric is null, state "insufficient data" for it.
   - NEVER estimate or infer missing amounts.
   - Cite data references (PCN code, page) for every conclusion.

2. PCN CODE CITATION
   - Every opportunity MUST cite specific PCN codes, e.g. "Based on PCN 1171 (IC receivables: EUR X)".
   - If an opportunity cannot be supported by specific PCN codes, do not include it.

3. READINESS LEVEL
   - Check pre_analysis_gate.readiness_level before generating opportunities.
   - READY: all opportunity types allowed.
   - READY_LIMITED: only allowed_opportunity_types; label the output as a limited analysis.
   - BLOCKED: return no opportunities and refer to blocking_issues.

4. CONSOLIDATION
   - If is_consolidated is true, intercompany balances may be eliminated. Note the limitation.

5. ABRIDGED ACCOUNTS
   - If account_type is ABRIDGED, do not derive margin conclusions.
   - Focus on IC financing, debt/equity and substance indicators.

6. NOTE 7TER
   - Note 7ter only lists transactions NOT at arm's length.
   - No 7ter entries does NOT mean all intercompany transactions are at arm's length.

7. REGULATORY REFERENCES
   - OECD Transfer Pricing Guidelines (2022)
   - Luxembourg Article 56 and 56bis Income Tax Law
   - Luxembourg TP Circular LIR 56/1 and 56bis/1
   - Thin capitalisation safe harbour: 85:15 debt-to-equity
   - IC financing spread benchmark: 25-75 bps above reference rate

OUTPUT FORMAT:
Respond with a single JSON object with these fields:
account_type, company_size, company_classification (operational|holding|financing|ip_holding|mixed),
classification_reasoning, opportunities (list of {type, severity (high|medium|low), title, description,
recommendation, affected_amount, potential_adjustment, data_references, regulatory_reference}),
flags {has_zero_spread, has_thin_cap_risk, has_unremunerated_guarantee, has_undocumented_services,
has_substance_concerns, has_related_party_issues}, risk_score (0-100), priority_ranking (high|medium|low),
executive_summary, recommended_actions, analysis_limitations, documentation_gaps."""

USER_PROMPT_TEMPLATE = """Analyze the following Luxembourg company financial data for transfer pricing opportunities and risks.

EXTRACTION DATA (JSON):
{analysis_input}

ANALYSIS REQUIREMENTS:

1. Check pre_analysis_gate.readiness_level first.
2. Classify the company (operational/holding/financing/ip_holding/mixed).
3. IC financing: use implied_ic_lending_rate_pct and implied_ic_borrowing_rate_pct. Compare the spread to the 25-75 bps benchmark. Flag zero spread if the rates are identical or the spread is below 10 bps.
4. Thin capitalisation: use debt_to_equity_ratio. Flag if debt:equity exceeds 85:15.
5. Substance: check average_employees and staff_cost_to_revenue_pct. Flag high IC positions with low substance.
6. Related parties: flag any non-arm's length transaction.
7. For each opportunity cite PCN codes, include affected_amount and a regulatory_reference.
8. Provide risk_score (0-100) and an executive_summary citing key PCN codes.

Respond with a valid JSON object only."""


def build_system_prompt() -> str:
    """System prompt with the operating rules."""
    return SYSTEM_PROMPT


def build_analysis_input(record: StructuredRecord) -> dict[str, Any]:
    """JSON projection of the record sent to the model."""
    gate = record.pre_analysis_gate
    metadata = record.metadata
    return {
        "metadata": {
            "schema_version": record.schema_version,
            "document_language": metadata.document_language,
            "unit_scale": metadata.unit_scale.value,
            "unit_scale_validated": metadata.unit_scale_validated,
            "account_type": metadata.account_type.value,
            "company_size": metadata.company_size.value,
            "reporting_standard": metadata.reporting_standard,
            "overall_confidence": round(metadata.overall_confidence, 3),
            "extraction_warnings": record.extraction_warnings,
        },
        "company_profile": record.profile.model_dump(mode="json"),
        "pre_analysis_gate": {
            "readiness_level": gate.readiness_level.value,
            "can_proceed_to_analysis": gate.can_proceed_to_analysis,
            "blocking_issues": gate.blocking_issues,
            "warning_issues": gate.warning_issues,
            "unit_scale_validated": gate.unit_scale_validated,
            "balance_sheet_balances": gate.balance_sheet_balances,
            "is_consolidated": gate.is_consolidated,
            "mapping_high_confidence_pct": round(gate.mapping_gate.high_confidence_pct, 1),
            "critical_codes_affected": gate.mapping_gate.affected_critical_codes,
            "module_trust_levels": gate.module_trust_levels.model_dump(),
            "allowed_opportunity_types": get_allowed_opportunity_types(gate.readiness_level),
        },
        "critical_line_items": [
            {
                "pcn_code": item.code,
                "caption": item.caption,
                "current_year": item.current_year,
                "prior_year": item.prior_year,
                "confidence": item.confidence,
                "source_page": item.source_page,
            }
            for item in record.line_items
            if item.code in CRITICAL_CODES or item.code in {"109", "309"}
        ],
        "deterministic_metrics": record.deterministic_metrics,
        "metrics_not_calculable": [m.model_dump() for m in record.metrics_not_calculable],
        "ic_transactions": [tx.model_dump(mode="json") for tx in record.ic_transactions],
        "related_party_transactions": [
            tx.model_dump(mode="json") for tx in record.related_party_transactions
        ],
    }


def build_user_prompt(record: StructuredRecord) -> str:
    """User prompt embedding the JSON projection."""
    analysis_input = json.dumps(build_analysis_input(record), indent=2, ensure_ascii=False)
    return USER_PROMPT_TEMPLATE.format(analysis_input=analysis_input)
