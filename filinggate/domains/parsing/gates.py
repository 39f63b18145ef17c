"""
Readiness Gate Evaluator - Classifies whether a record may feed analysis.

Contract:
- BLOCKED always carries at least one blocking issue
- can_proceed_to_analysis is False for BLOCKED unless the caller overrides
- READY_LIMITED never suppresses warning issues
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from .models import (
    CompanySize,
    DataQualityGate,
    EntityProfile,
    LineItem,
    MappingGate,
    ModuleTrustLevels,
    PreAnalysisGate,
    ReadinessLevel,
    ReviewAction,
    UnitScaleDetection,
)

logger = logging.getLogger(__name__)

__all__ = ["CRITICAL_CODES", "GateInputs", "apply_override", "evaluate_gates"]

# Reference codes transfer-pricing analysis relies on
CRITICAL_CODES = frozenset({
    "1151", "1171", "1379", "4051", "4111", "4279", "6010", "6040",
    "6410", "6420", "7010", "7510", "7520", "7610", "7710",
})

BALANCE_TOLERANCE = 1000.0
MAX_REVIEW_ACTIONS = 10
MAX_MAPPING_ACTIONS = 5
NO_DATA_ISSUE = "No reference codes could be mapped from the document"


class GateInputs(BaseModel):
    """Everything the gate evaluator reads."""

    unit_scale: UnitScaleDetection
    line_items: list[LineItem] = Field(default_factory=list)
    profile: EntityProfile
    company_size: CompanySize = CompanySize.UNKNOWN
    balance_sheet_delta: float = 0.0
    has_balance_sheet: bool = False
    has_profit_loss: bool = False
    has_notes: bool = False
    has_management_report: bool = False


def evaluate_gates(inputs: GateInputs, override: bool = False) -> PreAnalysisGate:
    """
    Evaluate pre-analysis gates.

    Args:
        inputs: Unit scale, mapped line items and section presence
        override: Caller explicitly allows analysis of a BLOCKED record

    Returns:
        PreAnalysisGate
    """
    blocking: list[str] = []
    warnings: list[str] = []
    actions: list[ReviewAction] = []

    # Unit scale (warning only)
    unit_scale_validated = not inputs.unit_scale.uncertain
    if not unit_scale_validated:
        scale = inputs.unit_scale.scale.value
        warnings.append(f"Unit scale uncertain ({scale}) - verify before relying on values")
        actions.append(
            ReviewAction(
                action_type="confirm_unit_scale",
                description=f"Confirm presentation scale: {scale}",
                current_value=scale,
                priority="high",
            )
        )

    # Balance sheet arithmetic (warning only)
    delta = inputs.balance_sheet_delta
    balances = abs(delta) < BALANCE_TOLERANCE
    if not balances and inputs.has_balance_sheet:
        warnings.append(f"Balance sheet delta: {delta:.0f} (may be rounding or extraction issue)")
        actions.append(
            ReviewAction(
                action_type="fix_arithmetic",
                description="Balance sheet totals do not match - verify extraction",
                current_value=f"{delta:.2f}",
                priority="medium",
            )
        )

    # Consolidation proceeds with a note
    if inputs.profile.is_consolidated:
        source = inputs.profile.consolidation_source or "document text"
        warnings.append(
            f"Consolidated accounts (detected from {source}) - intercompany balances may be eliminated"
        )

    # Mapping confidence
    mapping = _mapping_gate(inputs.line_items)
    if mapping.critical_codes_affected and mapping.low_confidence_pct > 20:
        warnings.append(
            f"Low confidence on {len(mapping.affected_critical_codes)} TP-critical codes"
        )
        low_critical = [
            item for item in inputs.line_items
            if item.code in CRITICAL_CODES and item.confidence < 0.7
        ]
        for item in low_critical[:MAX_MAPPING_ACTIONS]:
            actions.append(
                ReviewAction(
                    action_type="confirm_mapping",
                    description=f'Confirm code {item.code}: "{item.caption}"',
                    code=item.code,
                    current_value=item.caption,
                    priority="medium",
                )
            )

    # Section presence
    data_quality = _data_quality_gate(inputs)
    warnings.extend(data_quality.missing_critical_data)

    level = _readiness_level(unit_scale_validated, mapping)
    if level == ReadinessLevel.BLOCKED:
        blocking.append(NO_DATA_ISSUE)
        actions.insert(
            0,
            ReviewAction(
                action_type="provide_data",
                description="Verify the document contains statutory balance sheet and P&L tables",
                priority="high",
            ),
        )

    gate = PreAnalysisGate(
        readiness_level=level,
        blocking_issues=blocking,
        warning_issues=warnings,
        review_actions=actions[:MAX_REVIEW_ACTIONS],
        can_proceed_to_analysis=level != ReadinessLevel.BLOCKED,
        unit_scale_validated=unit_scale_validated,
        balance_sheet_balances=balances,
        is_consolidated=inputs.profile.is_consolidated,
        mapping_gate=mapping,
        data_quality_gate=data_quality,
        module_trust_levels=_module_trust(inputs, mapping),
    )
    logger.info(
        "Readiness %s: %d blocking, %d warnings",
        gate.readiness_level.value,
        len(gate.blocking_issues),
        len(gate.warning_issues),
    )
    return apply_override(gate) if override else gate


def apply_override(gate: PreAnalysisGate) -> PreAnalysisGate:
    """Allow analysis of a BLOCKED gate; issues are kept."""
    if gate.readiness_level != ReadinessLevel.BLOCKED:
        return gate
    logger.warning("Override applied to BLOCKED gate")
    return gate.model_copy(update={"can_proceed_to_analysis": True, "override_applied": True})


def _mapping_gate(items: list[LineItem]) -> MappingGate:
    if not items:
        return MappingGate(affected_critical_codes=sorted(CRITICAL_CODES))

    total = len(items)
    high = sum(1 for item in items if item.confidence >= 0.8)
    medium = sum(1 for item in items if 0.5 <= item.confidence < 0.8)
    low = total - high - medium
    affected = [item.code for item in items if item.code in CRITICAL_CODES and item.confidence < 0.7]

    return MappingGate(
        high_confidence_pct=high / total * 100,
        medium_confidence_pct=medium / total * 100,
        low_confidence_pct=low / total * 100,
        overall_mapping_confidence=sum(item.confidence for item in items) / total,
        affected_critical_codes=affected,
    )


def _data_quality_gate(inputs: GateInputs) -> DataQualityGate:
    missing: list[str] = []
    if not inputs.has_balance_sheet:
        missing.append("Balance sheet not found")
    if not inputs.has_profit_loss:
        missing.append("Profit & Loss not found")
    if inputs.company_size == CompanySize.LARGE:
        if not inputs.has_notes:
            missing.append("Notes not found (required for large entity)")
        if not inputs.has_management_report:
            missing.append("Management report not found (required for large entity)")

    score = (
        30 * inputs.has_balance_sheet
        + 30 * inputs.has_profit_loss
        + 25 * inputs.has_notes
        + 15 * inputs.has_management_report
    )
    return DataQualityGate(
        has_balance_sheet=inputs.has_balance_sheet,
        has_profit_loss=inputs.has_profit_loss,
        has_notes=inputs.has_notes,
        has_management_report=inputs.has_management_report,
        completeness_score=score,
        missing_critical_data=missing,
    )


def _module_trust(inputs: GateInputs, mapping: MappingGate) -> ModuleTrustLevels:
    statement_items = [item for item in inputs.line_items if item.code[:1] in {"1", "4", "6", "7"}]
    financial = (
        sum(item.confidence for item in statement_items) / len(statement_items)
        if statement_items
        else 0.0
    )
    return ModuleTrustLevels(
        financial_statements=financial,
        related_parties=mapping.overall_mapping_confidence * 0.8 if inputs.has_notes else 0.3,
        management_report=0.7 if inputs.has_management_report else 0.2,
    )


def _readiness_level(unit_scale_validated: bool, mapping: MappingGate) -> ReadinessLevel:
    high = mapping.high_confidence_pct
    combined = high + mapping.medium_confidence_pct

    if high >= 80:
        return ReadinessLevel.READY
    if unit_scale_validated and combined >= 70:
        return ReadinessLevel.READY
    if combined >= 40:
        return ReadinessLevel.READY_LIMITED
    if mapping.overall_mapping_confidence > 0:
        return ReadinessLevel.READY_LIMITED
    return ReadinessLevel.BLOCKED
