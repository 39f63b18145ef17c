"""
Tests for pre-analysis readiness gates.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from .gates import NO_DATA_ISSUE, GateInputs, apply_override, evaluate_gates
from .models import (
    CompanySize,
    EntityProfile,
    LineItem,
    PreAnalysisGate,
    ReadinessLevel,
    UnitScale,
    UnitScaleDetection,
)

CONFIDENT_SCALE = UnitScaleDetection(scale=UnitScale.UNITS, confidence=0.9, source="explicit_text")
UNCERTAIN_SCALE = UnitScaleDetection(scale=UnitScale.UNITS, confidence=0.5)


def items(*confidences: float, code: str = "7010") -> list[LineItem]:
    return [
        LineItem(code=f"{code[:3]}{i}", caption=f"Item {i}", current_year=100.0, confidence=c)
        for i, c in enumerate(confidences)
    ]


def inputs(**overrides) -> GateInputs:
    defaults = {
        "unit_scale": CONFIDENT_SCALE,
        "line_items": items(0.9, 0.9, 0.9),
        "profile": EntityProfile(name="Acme"),
        "has_balance_sheet": True,
        "has_profit_loss": True,
    }
    defaults.update(overrides)
    return GateInputs(**defaults)


# --- Readiness Level Tests ---


def test_high_confidence_is_ready() -> None:
    """Test high mapping confidence yields READY."""
    gate = evaluate_gates(inputs())

    assert gate.readiness_level == ReadinessLevel.READY
    assert gate.can_proceed_to_analysis
    assert gate.blocking_issues == []


def test_validated_scale_with_combined_confidence_is_ready() -> None:
    """Test READY via validated scale and medium confidence."""
    gate = evaluate_gates(inputs(line_items=items(0.6, 0.6, 0.9)))
    assert gate.readiness_level == ReadinessLevel.READY


def test_uncertain_scale_gives_limited_with_warning() -> None:
    """Test READY_LIMITED keeps the unit scale warning."""
    gate = evaluate_gates(inputs(unit_scale=UNCERTAIN_SCALE, line_items=items(0.6, 0.6, 0.9)))

    assert gate.readiness_level == ReadinessLevel.READY_LIMITED
    assert gate.can_proceed_to_analysis
    assert not gate.unit_scale_validated
    assert any("Unit scale uncertain" in w for w in gate.warning_issues)
    assert gate.review_actions[0].action_type == "confirm_unit_scale"


def test_low_confidence_still_limited() -> None:
    """Test any mapping confidence avoids BLOCKED."""
    gate = evaluate_gates(inputs(line_items=items(0.3, 0.2)))
    assert gate.readiness_level == ReadinessLevel.READY_LIMITED


def test_no_line_items_is_blocked() -> None:
    """Test no mapped codes yields BLOCKED with a blocking issue."""
    gate = evaluate_gates(inputs(line_items=[], has_balance_sheet=False, has_profit_loss=False))

    assert gate.readiness_level == ReadinessLevel.BLOCKED
    assert gate.blocking_issues == [NO_DATA_ISSUE]
    assert not gate.can_proceed_to_analysis
    assert gate.review_actions[0].action_type == "provide_data"
    assert "Balance sheet not found" in gate.warning_issues


# --- Warning Tests ---


def test_balance_delta_warns() -> None:
    """Test an unbalanced balance sheet adds a warning and an action."""
    gate = evaluate_gates(inputs(balance_sheet_delta=5000.0))

    assert not gate.balance_sheet_balances
    assert any("Balance sheet delta: 5000" in w for w in gate.warning_issues)
    assert any(a.action_type == "fix_arithmetic" for a in gate.review_actions)


def test_consolidated_warns_but_proceeds() -> None:
    """Test consolidation is a warning only."""
    profile = EntityProfile(
        name="Acme",
        is_consolidated=True,
        consolidation_source="consolidated financial statements",
    )
    gate = evaluate_gates(inputs(profile=profile))

    assert gate.is_consolidated
    assert gate.can_proceed_to_analysis
    assert any("Consolidated accounts" in w for w in gate.warning_issues)


def test_large_entity_requires_notes() -> None:
    """Test large entities report missing notes and management report."""
    gate = evaluate_gates(inputs(company_size=CompanySize.LARGE))

    missing = gate.data_quality_gate.missing_critical_data
    assert "Notes not found (required for large entity)" in missing
    assert "Management report not found (required for large entity)" in missing


def test_low_confidence_critical_codes_request_review() -> None:
    """Test low-confidence TP-critical codes produce mapping actions."""
    line_items = [
        LineItem(code="1171", caption="IC loans", current_year=1.0, confidence=0.4),
        LineItem(code="7610", caption="IC interest", current_year=1.0, confidence=0.9),
    ]
    gate = evaluate_gates(inputs(line_items=line_items))

    assert gate.mapping_gate.affected_critical_codes == ["1171"]
    assert [a.code for a in gate.review_actions if a.action_type == "confirm_mapping"] == ["1171"]


def test_review_actions_are_capped() -> None:
    """Test review actions never exceed ten."""
    line_items = [
        LineItem(code=code, caption=code, current_year=1.0, confidence=0.1)
        for code in ("1151", "1171", "1379", "4051", "4111", "4279", "6010")
    ]
    gate = evaluate_gates(inputs(unit_scale=UNCERTAIN_SCALE, line_items=line_items, balance_sheet_delta=1e6))

    assert len([a for a in gate.review_actions if a.action_type == "confirm_mapping"]) == 5
    assert len(gate.review_actions) <= 10


# --- Override Tests ---


def test_override_allows_blocked_analysis() -> None:
    """Test override keeps issues but allows analysis."""
    gate = evaluate_gates(inputs(line_items=[]), override=True)

    assert gate.readiness_level == ReadinessLevel.BLOCKED
    assert gate.override_applied
    assert gate.can_proceed_to_analysis
    assert gate.blocking_issues


def test_override_is_noop_when_ready() -> None:
    """Test override does nothing for non-blocked gates."""
    gate = evaluate_gates(inputs())
    assert apply_override(gate) is gate


def test_blocked_gate_requires_blocking_issue() -> None:
    """Test a BLOCKED gate without issues is rejected."""
    with pytest.raises(ValidationError):
        PreAnalysisGate(readiness_level=ReadinessLevel.BLOCKED, can_proceed_to_analysis=False)


def test_blocked_gate_cannot_proceed_without_override() -> None:
    """Test a BLOCKED gate claiming it can proceed is rejected."""
    with pytest.raises(ValidationError):
        PreAnalysisGate(
            readiness_level=ReadinessLevel.BLOCKED,
            blocking_issues=["missing data"],
            can_proceed_to_analysis=True,
        )
