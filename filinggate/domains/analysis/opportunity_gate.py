"""
Opportunity Gate - Mechanical enforcement of readiness levels on analysis output.

Runs on the parsed model response before anything is persisted; the model
cannot bypass it through its own output.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from pydantic import BaseModel, Field

from filinggate.domains.parsing.models import ModuleTrustLevels, PreAnalysisGate, ReadinessLevel

from .models import Opportunity, OpportunityType, RiskFlags

logger = logging.getLogger(__name__)

__all__ = [
    "OpportunityRequirement",
    "REQUIREMENTS",
    "FLAG_TYPES",
    "LIMITED_MODE_NOTE",
    "GateFilterResult",
    "validate_opportunity",
    "filter_opportunities",
    "get_allowed_opportunity_types",
    "constrain_flags",
]

LIMITED_MODE_NOTE = "Analysis performed in LIMITED mode - some opportunity types excluded"


class OpportunityRequirement(BaseModel):
    """What an opportunity type needs before it may be reported."""

    type: OpportunityType
    enabled_in_limited: bool
    required_metrics: tuple[str, ...] = ()
    blocked_if_abridged: bool = False
    # (module, minimum trust); module is a ModuleTrustLevels field name
    min_trust: tuple[tuple[str, float], ...] = ()

    model_config = {"frozen": True}


_REQUIREMENT_LIST = (
    OpportunityRequirement(
        type=OpportunityType.ZERO_SPREAD,
        enabled_in_limited=True,
        required_metrics=("implied_ic_lending_rate_pct", "implied_ic_borrowing_rate_pct"),
        min_trust=(("financial_statements", 0.6),),
    ),
    OpportunityRequirement(
        type=OpportunityType.THIN_CAP,
        enabled_in_limited=True,
        required_metrics=("debt_to_equity_ratio",),
        min_trust=(("financial_statements", 0.6),),
    ),
    OpportunityRequirement(
        type=OpportunityType.SUBSTANCE_CONCERN,
        enabled_in_limited=True,
        required_metrics=("staff_cost_to_revenue_pct",),
        min_trust=(("financial_statements", 0.5),),
    ),
    OpportunityRequirement(
        type=OpportunityType.SOPARFI_SUBSTANCE_RISK,
        enabled_in_limited=True,
        required_metrics=("financial_assets_to_total_assets_pct",),
        min_trust=(("financial_statements", 0.5),),
    ),
    OpportunityRequirement(
        type=OpportunityType.PRICING_ANOMALY,
        enabled_in_limited=False,
        required_metrics=("operating_margin_pct",),
        blocked_if_abridged=True,
        min_trust=(("financial_statements", 0.8),),
    ),
    OpportunityRequirement(
        type=OpportunityType.UNDOCUMENTED_SERVICES,
        enabled_in_limited=False,
        blocked_if_abridged=True,
        min_trust=(("related_parties", 0.7),),
    ),
    OpportunityRequirement(
        type=OpportunityType.UNREMUNERATED_GUARANTEE,
        enabled_in_limited=True,
        min_trust=(("related_parties", 0.5),),
    ),
    OpportunityRequirement(
        type=OpportunityType.RELATED_PARTY_FLAG,
        enabled_in_limited=True,
        min_trust=(("related_parties", 0.5),),
    ),
    OpportunityRequirement(
        type=OpportunityType.MISSING_DOCUMENTATION,
        enabled_in_limited=True,
    ),
    OpportunityRequirement(
        type=OpportunityType.MATURITY_MISMATCH,
        enabled_in_limited=False,
        min_trust=(("related_parties", 0.7),),
    ),
    OpportunityRequirement(
        type=OpportunityType.CIRCULAR_56_1_CONCERN,
        enabled_in_limited=True,
        min_trust=(("financial_statements", 0.5),),
    ),
)

REQUIREMENTS: dict[str, OpportunityRequirement] = {r.type.value: r for r in _REQUIREMENT_LIST}

# Risk flag -> opportunity types that substantiate it
FLAG_TYPES: dict[str, tuple[OpportunityType, ...]] = {
    "has_zero_spread": (OpportunityType.ZERO_SPREAD,),
    "has_thin_cap_risk": (OpportunityType.THIN_CAP,),
    "has_unremunerated_guarantee": (OpportunityType.UNREMUNERATED_GUARANTEE,),
    "has_undocumented_services": (OpportunityType.UNDOCUMENTED_SERVICES,),
    "has_substance_concerns": (
        OpportunityType.SUBSTANCE_CONCERN,
        OpportunityType.SOPARFI_SUBSTANCE_RISK,
        OpportunityType.CIRCULAR_56_1_CONCERN,
    ),
    "has_related_party_issues": (OpportunityType.RELATED_PARTY_FLAG,),
}


class GateFilterResult(BaseModel):
    """Surviving opportunities plus a limitation per removal."""

    kept: list[Opportunity] = Field(default_factory=list)
    limitations: list[str] = Field(default_factory=list)


def get_allowed_opportunity_types(level: ReadinessLevel) -> list[str]:
    """Opportunity types allowed at a readiness level."""
    if level == ReadinessLevel.BLOCKED:
        return []
    if level == ReadinessLevel.READY:
        return [r.type.value for r in _REQUIREMENT_LIST]
    return [r.type.value for r in _REQUIREMENT_LIST if r.enabled_in_limited]


def validate_opportunity(
    opportunity: Opportunity,
    gate: PreAnalysisGate,
    metrics: Mapping[str, float | None],
    is_abridged: bool,
) -> tuple[bool, str | None]:
    """
    Check one opportunity against its type's requirements.

    Returns:
        (valid, reason) where reason explains a rejection
    """
    level = gate.readiness_level
    if level == ReadinessLevel.BLOCKED:
        return False, "Analysis is blocked"

    requirement = REQUIREMENTS.get(opportunity.type)
    if requirement is None:
        if level == ReadinessLevel.READY:
            return True, None
        return False, "Unknown opportunity type"

    if level == ReadinessLevel.READY_LIMITED and not requirement.enabled_in_limited:
        return False, "Not allowed in LIMITED mode"

    if requirement.blocked_if_abridged and is_abridged:
        return False, "Blocked for abridged accounts"

    for metric in requirement.required_metrics:
        if metrics.get(metric) is None:
            return False, f"Required metric {metric} not calculable"

    for module, minimum in requirement.min_trust:
        trust = _trust(gate.module_trust_levels, module)
        if trust < minimum:
            return False, f"{module} trust level ({trust:.2f}) below required ({minimum:.2f})"

    return True, None


def filter_opportunities(
    opportunities: list[Opportunity],
    gate: PreAnalysisGate,
    metrics: Mapping[str, float | None],
    is_abridged: bool,
) -> GateFilterResult:
    """
    Keep only opportunities the record's readiness supports.

    Kept opportunities are tagged with scope, readiness level and
    required_data_present. BLOCKED keeps nothing.
    """
    result = GateFilterResult()
    level = gate.readiness_level
    scope = "full" if level == ReadinessLevel.READY else "limited"

    for opportunity in opportunities:
        valid, reason = validate_opportunity(opportunity, gate, metrics, is_abridged)
        if not valid:
            result.limitations.append(
                f'Opportunity "{opportunity.title}" ({opportunity.type}) removed: {reason}'
            )
            continue
        result.kept.append(
            opportunity.model_copy(
                update={
                    "scope": scope,
                    "generated_at_readiness_level": level,
                    "required_data_present": True,
                }
            )
        )

    if level == ReadinessLevel.READY_LIMITED:
        result.limitations.append(LIMITED_MODE_NOTE)

    removed = len(opportunities) - len(result.kept)
    if removed:
        logger.info("Opportunity gate removed %d of %d (%s)", removed, len(opportunities), level.value)
    return result


def constrain_flags(flags: RiskFlags, kept: list[Opportunity], level: ReadinessLevel) -> RiskFlags:
    """
    Constrain model-reported flags to what the readiness level allows.

    A flag survives only if one of its opportunity types is allowed, and
    is raised whenever a surviving opportunity of its type exists.
    """
    allowed = set(get_allowed_opportunity_types(level))
    kept_types = {opportunity.type for opportunity in kept}
    values: dict[str, bool] = {}
    for flag, types in FLAG_TYPES.items():
        names = {t.value for t in types}
        values[flag] = bool(names & kept_types) or (getattr(flags, flag) and bool(names & allowed))
    return RiskFlags(**values)


def _trust(levels: ModuleTrustLevels, module: str) -> float:
    return getattr(levels, module, 0.0)
