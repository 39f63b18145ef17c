"""
Tests for response parsing, the opportunity gate and the analysis engine.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest

from filinggate.adapters.gemini.models import GeminiResponse
from filinggate.config.errors import AnalysisError, ErrorCode, LLMError
from filinggate.domains.parsing.metrics import METRIC_NAMES
from filinggate.domains.parsing.models import (
    AccountType,
    EntityProfile,
    ModuleTrustLevels,
    PreAnalysisGate,
    ReadinessLevel,
    RecordMetadata,
    StructuredRecord,
)

from .contracts import TextGenerator
from .engine import BLOCKED_NOTE, AnalysisEngine, compute_risk_score
from .models import Opportunity, RiskFlags, Severity
from .opportunity_gate import (
    LIMITED_MODE_NOTE,
    constrain_flags,
    filter_opportunities,
    get_allowed_opportunity_types,
    validate_opportunity,
)
from .prompts import build_analysis_input, build_system_prompt, build_user_prompt
from .response_parser import parse_analysis_response

FULL_TRUST = ModuleTrustLevels(financial_statements=0.9, related_parties=0.9, management_report=0.7)


def make_gate(level: ReadinessLevel, trust: ModuleTrustLevels = FULL_TRUST) -> PreAnalysisGate:
    blocked = level == ReadinessLevel.BLOCKED
    return PreAnalysisGate(
        readiness_level=level,
        blocking_issues=["No reference codes could be mapped from the document"] if blocked else [],
        warning_issues=["Unit scale uncertain (UNITS) - verify before relying on values"]
        if level == ReadinessLevel.READY_LIMITED
        else [],
        can_proceed_to_analysis=not blocked,
        module_trust_levels=trust,
    )


def make_record(
    level: ReadinessLevel = ReadinessLevel.READY,
    account_type: AccountType = AccountType.FULL,
    **metrics: float | None,
) -> StructuredRecord:
    values: dict[str, float | None] = dict.fromkeys(METRIC_NAMES)
    values.update(
        implied_ic_lending_rate_pct=2.0,
        implied_ic_borrowing_rate_pct=2.0,
        debt_to_equity_ratio=9.0,
        operating_margin_pct=4.0,
        staff_cost_to_revenue_pct=0.5,
    )
    values.update(metrics)
    return StructuredRecord(
        metadata=RecordMetadata(entity_id="e1", entity_name="Acme", account_type=account_type),
        profile=EntityProfile(name="Acme"),
        deterministic_metrics=values,
        pre_analysis_gate=make_gate(level),
    )


def opportunity(type_: str, severity: str = "high", **extra) -> dict:
    return {
        "type": type_,
        "severity": severity,
        "title": f"{type_} finding",
        "description": "Based on PCN 1171 and PCN 7610 the spread is zero.",
        "recommendation": "Benchmark the IC loan.",
        "data_references": ["PCN 1171"],
        **extra,
    }


def model_response(opportunities: list[dict], **overrides) -> dict:
    data = {
        "account_type": "full",
        "company_size": "small",
        "company_classification": "financing",
        "classification_reasoning": "IC loans dominate the balance sheet (PCN 1171).",
        "opportunities": opportunities,
        "flags": {
            "has_zero_spread": True,
            "has_thin_cap_risk": True,
            "has_unremunerated_guarantee": False,
            "has_undocumented_services": True,
            "has_substance_concerns": False,
            "has_related_party_issues": False,
        },
        "risk_score": 88,
        "priority_ranking": "high",
        "executive_summary": "Zero spread on PCN 1171 financing.",
        "recommended_actions": ["Prepare a TP study"],
    }
    data.update(overrides)
    return data


def fake_llm(payload: dict | str) -> AsyncMock:
    text = payload if isinstance(payload, str) else json.dumps(payload)
    llm = AsyncMock()
    llm.generate.return_value = GeminiResponse(
        text=text,
        model="gemini-test",
        prompt_tokens=1200,
        completion_tokens=300,
        total_tokens=1500,
    )
    return llm


# --- Response Parser Tests ---


def test_parse_fenced_json() -> None:
    """Test ```json fences are stripped."""
    text = "```json\n" + json.dumps(model_response([opportunity("zero_spread")])) + "\n```"
    parsed = parse_analysis_response(text)

    assert parsed.analysis.company_classification == "financing"
    assert parsed.analysis.opportunities[0].severity == Severity.HIGH


def test_parse_embedded_object() -> None:
    """Test the outermost object is taken from surrounding prose."""
    text = "Here is the analysis:\n" + json.dumps(model_response([])) + "\nThanks."
    assert parse_analysis_response(text).analysis.risk_score == 88


def test_parse_fills_metadata_with_warning() -> None:
    """Test missing account type and size come from record metadata."""
    data = model_response([])
    del data["account_type"]
    del data["company_size"]

    parsed = parse_analysis_response(json.dumps(data), account_type="ABRIDGED", company_size="SMALL")

    assert parsed.analysis.account_type == "abridged"
    assert parsed.analysis.company_size == "small"
    assert "account_type filled from extraction metadata" in parsed.warnings


def test_parse_missing_required_field() -> None:
    """Test missing required fields raise AnalysisError."""
    data = model_response([])
    del data["flags"]

    with pytest.raises(AnalysisError, match="flags") as exc_info:
        parse_analysis_response(json.dumps(data))
    assert exc_info.value.code == ErrorCode.ANALYSIS_FAILED


def test_parse_invalid_severity() -> None:
    """Test opportunity severity is validated."""
    data = model_response([opportunity("zero_spread", severity="critical")])
    with pytest.raises(AnalysisError, match="schema"):
        parse_analysis_response(json.dumps(data))


def test_parse_no_json() -> None:
    """Test prose without JSON fails."""
    with pytest.raises(AnalysisError, match="No valid JSON"):
        parse_analysis_response("I cannot analyze this document.")


def test_parse_citation_warnings() -> None:
    """Test uncited opportunities and summary produce warnings."""
    uncited = opportunity("thin_cap", description="High leverage.", data_references=[])
    data = model_response([uncited], executive_summary="High leverage overall.")

    warnings = parse_analysis_response(json.dumps(data)).warnings

    assert "1 opportunities lack PCN code citations" in warnings
    assert 'Opportunity "thin_cap finding" has no data references' in warnings
    assert "Executive summary does not cite PCN codes" in warnings


# --- Opportunity Gate Tests ---


def test_blocked_allows_nothing() -> None:
    """Test BLOCKED keeps zero opportunities."""
    record = make_record(ReadinessLevel.BLOCKED)
    opportunities = [Opportunity.model_validate(opportunity("zero_spread"))]

    result = filter_opportunities(
        opportunities, record.pre_analysis_gate, record.deterministic_metrics, False
    )

    assert result.kept == []
    assert "Analysis is blocked" in result.limitations[0]
    assert get_allowed_opportunity_types(ReadinessLevel.BLOCKED) == []


def test_limited_mode_excludes_disabled_types() -> None:
    """Test LIMITED mode removes types not enabled there."""
    record = make_record(ReadinessLevel.READY_LIMITED)
    opportunities = [
        Opportunity.model_validate(opportunity("zero_spread")),
        Opportunity.model_validate(opportunity("pricing_anomaly")),
    ]

    result = filter_opportunities(
        opportunities, record.pre_analysis_gate, record.deterministic_metrics, False
    )

    assert [o.type for o in result.kept] == ["zero_spread"]
    assert result.kept[0].scope == "limited"
    assert result.kept[0].generated_at_readiness_level == ReadinessLevel.READY_LIMITED
    assert result.kept[0].required_data_present
    assert any("Not allowed in LIMITED mode" in note for note in result.limitations)
    assert result.limitations[-1] == LIMITED_MODE_NOTE


def test_missing_metric_rejects_opportunity() -> None:
    """Test a required metric that is None rejects the opportunity."""
    record = make_record(implied_ic_lending_rate_pct=None)
    valid, reason = validate_opportunity(
        Opportunity.model_validate(opportunity("zero_spread")),
        record.pre_analysis_gate,
        record.deterministic_metrics,
        False,
    )
    assert not valid
    assert reason == "Required metric implied_ic_lending_rate_pct not calculable"


def test_abridged_blocks_pricing_anomaly() -> None:
    """Test abridged accounts block margin-based opportunities."""
    record = make_record()
    valid, reason = validate_opportunity(
        Opportunity.model_validate(opportunity("pricing_anomaly")),
        record.pre_analysis_gate,
        record.deterministic_metrics,
        True,
    )
    assert not valid
    assert reason == "Blocked for abridged accounts"


def test_low_module_trust_rejects() -> None:
    """Test module trust below minimum rejects the opportunity."""
    gate = make_gate(ReadinessLevel.READY, ModuleTrustLevels(financial_statements=0.4))
    valid, reason = validate_opportunity(
        Opportunity.model_validate(opportunity("thin_cap")),
        gate,
        make_record().deterministic_metrics,
        False,
    )
    assert not valid
    assert "financial_statements trust level" in reason


def test_unknown_type_only_at_ready() -> None:
    """Test unknown opportunity types survive only at READY."""
    unknown = Opportunity.model_validate(opportunity("exotic_structure"))
    metrics = make_record().deterministic_metrics

    assert validate_opportunity(unknown, make_gate(ReadinessLevel.READY), metrics, False)[0]
    assert not validate_opportunity(unknown, make_gate(ReadinessLevel.READY_LIMITED), metrics, False)[0]


def test_flags_constrained_by_readiness() -> None:
    """Test flags need an allowed type and are forced on by kept opportunities."""
    kept = [Opportunity.model_validate(opportunity("related_party_flag"))]
    flags = RiskFlags(has_zero_spread=True, has_undocumented_services=True)

    constrained = constrain_flags(flags, kept, ReadinessLevel.READY_LIMITED)

    assert constrained.has_zero_spread
    assert not constrained.has_undocumented_services
    assert constrained.has_related_party_issues


def test_risk_score_is_capped() -> None:
    """Test score weights and the 100 cap."""
    opportunities = [Opportunity.model_validate(opportunity("zero_spread")) for _ in range(3)]
    assert compute_risk_score(opportunities[:1], RiskFlags(has_zero_spread=True)) == 30
    assert compute_risk_score(opportunities * 2, RiskFlags(has_zero_spread=True)) == 100


# --- Prompt Tests ---


def test_prompt_embeds_metrics_and_allowed_types() -> None:
    """Test the user prompt carries the JSON projection."""
    record = make_record(ReadinessLevel.READY_LIMITED)
    projection = build_analysis_input(record)

    assert projection["deterministic_metrics"]["debt_to_equity_ratio"] == 9.0
    assert "pricing_anomaly" not in projection["pre_analysis_gate"]["allowed_opportunity_types"]
    assert '"readiness_level": "READY_LIMITED"' in build_user_prompt(record)
    assert "85:15" in build_system_prompt()


# --- Engine Tests ---


def test_llm_mock_satisfies_contract() -> None:
    """Test the generator protocol accepts an object with generate."""
    assert isinstance(fake_llm({}), TextGenerator)


async def test_engine_filters_and_scores() -> None:
    """Test the engine gates model output in LIMITED mode."""
    payload = model_response([opportunity("zero_spread"), opportunity("pricing_anomaly", "medium")])
    llm = fake_llm(payload)
    engine = AnalysisEngine(llm)

    result = await engine.analyze(make_record(ReadinessLevel.READY_LIMITED))

    assert [o.type for o in result.opportunities] == ["zero_spread"]
    assert result.flags.has_zero_spread
    assert result.flags.has_thin_cap_risk
    assert not result.flags.has_undocumented_services
    assert result.risk_score == 25 + 2 * 5
    assert result.model_risk_score == 88
    assert LIMITED_MODE_NOTE in result.limitations
    assert result.prompt_tokens == 1200

    kwargs = llm.generate.await_args.kwargs
    assert kwargs["temperature"] == 0.2
    assert kwargs["max_output_tokens"] == 8192
    assert "OPERATING RULES" in kwargs["system_instruction"]


async def test_engine_blocked_never_calls_model() -> None:
    """Test BLOCKED records return the blocked result without a model call."""
    llm = fake_llm(model_response([opportunity("zero_spread")]))
    engine = AnalysisEngine(llm)

    result = await engine.analyze(make_record(ReadinessLevel.BLOCKED))

    llm.generate.assert_not_awaited()
    assert result.blocked
    assert result.opportunities == []
    assert result.risk_score == 0
    assert result.flags == RiskFlags()
    assert result.limitations[0] == BLOCKED_NOTE
    assert "No reference codes could be mapped from the document" in result.limitations


async def test_engine_model_failure() -> None:
    """Test model failures surface as AnalysisError."""
    llm = AsyncMock()
    llm.generate.side_effect = LLMError("quota exhausted", code=ErrorCode.LLM_RATE_LIMITED)

    with pytest.raises(AnalysisError, match="quota exhausted") as exc_info:
        await AnalysisEngine(llm).analyze(make_record())
    assert exc_info.value.details["cause"] == "LLM_RATE_LIMITED"


async def test_engine_parse_failure_keeps_raw_response() -> None:
    """Test unparseable responses keep the raw text for diagnosis."""
    llm = fake_llm("not json at all")

    with pytest.raises(AnalysisError) as exc_info:
        await AnalysisEngine(llm).analyze(make_record())
    assert exc_info.value.details["raw_response"] == "not json at all"
