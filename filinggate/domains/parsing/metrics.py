"""
Deterministic Metrics - Financial ratios computed without any model involvement.

Every key in METRIC_NAMES is always present in the output; metrics that
cannot be computed are None and listed in metrics_not_calculable.
"""

from __future__ import annotations

from collections.abc import Mapping

from .models import MetricNotCalculable

__all__ = ["METRIC_NAMES", "compute_metrics"]

METRIC_NAMES = (
    # Profitability
    "gross_margin_pct",
    "operating_margin_pct",
    "net_margin_pct",
    "ebitda",
    "ebitda_margin_pct",
    # Leverage
    "debt_to_equity_ratio",
    "ic_debt_to_total_debt_ratio",
    "ic_debt_to_equity_ratio",
    "interest_coverage_ratio",
    # Activity
    "asset_turnover_ratio",
    "ic_receivables_to_total_assets_pct",
    "ic_payables_to_total_liabilities_pct",
    # Transfer-pricing specific
    "staff_cost_to_revenue_pct",
    "external_charges_to_revenue_pct",
    "financial_assets_to_total_assets_pct",
    "ic_interest_income",
    "ic_interest_expense",
    "implied_ic_lending_rate_pct",
    "implied_ic_borrowing_rate_pct",
    # Totals
    "total_assets",
    "total_equity",
    "total_debt",
    "net_turnover",
)

EQUITY_CODES = ("1011L", "1061", "1069", "1071", "1073")


def compute_metrics(
    values: Mapping[str, float | None],
) -> tuple[dict[str, float | None], list[MetricNotCalculable]]:
    """
    Compute deterministic metrics from scaled reference-code values.

    Args:
        values: Current-year amount per reference code, in units

    Returns:
        (metrics keyed by METRIC_NAMES, metrics not calculable)
    """
    def get(code: str) -> float | None:
        return values.get(code)

    def amount(*codes: str) -> float:
        return sum(values.get(code) or 0.0 for code in codes)

    metrics: dict[str, float | None] = dict.fromkeys(METRIC_NAMES)
    missing: list[MetricNotCalculable] = []

    net_turnover = get("7010")
    other_operating_income = amount("7410")
    raw_materials = amount("6010")
    external_charges = get("6020") or get("6040") or 0.0
    staff_costs = amount("6410", "6420", "6430")
    depreciation = amount("6510", "6520")
    other_operating_expenses = amount("6610")
    net_profit = get("9910")
    total_assets = get("109")
    total_equity = amount(*EQUITY_CODES)

    ic_receivables = amount("1171", "4111")
    ic_payables = amount("1379", "4279")
    participations = amount("1151")
    ic_interest_income = get("7610")
    ic_interest_expense = get("7710")
    other_interest_expense = amount("7720")
    total_debt = ic_payables + amount("1391", "4291")

    metrics.update(
        total_assets=total_assets,
        total_equity=total_equity,
        total_debt=total_debt,
        net_turnover=net_turnover,
        ic_interest_income=ic_interest_income,
        ic_interest_expense=ic_interest_expense,
    )

    ebitda: float | None = None
    if net_turnover is not None and net_turnover > 0:
        gross_profit = net_turnover - raw_materials - external_charges
        operating_profit = (
            gross_profit - staff_costs - depreciation - other_operating_expenses + other_operating_income
        )
        ebitda = operating_profit + depreciation
        metrics.update(
            gross_margin_pct=gross_profit / net_turnover * 100,
            operating_margin_pct=operating_profit / net_turnover * 100,
            net_margin_pct=None if net_profit is None else net_profit / net_turnover * 100,
            ebitda=ebitda,
            ebitda_margin_pct=ebitda / net_turnover * 100,
            staff_cost_to_revenue_pct=staff_costs / net_turnover * 100,
            external_charges_to_revenue_pct=external_charges / net_turnover * 100,
        )
    else:
        missing.append(
            MetricNotCalculable(
                metric_name="profitability_ratios",
                reason="Net turnover is zero or not available",
                missing_inputs=["7010"],
            )
        )

    if total_equity > 0:
        metrics["debt_to_equity_ratio"] = total_debt / total_equity
        metrics["ic_debt_to_equity_ratio"] = ic_payables / total_equity
    else:
        missing.append(
            MetricNotCalculable(
                metric_name="equity_ratios",
                reason="Total equity is zero or negative",
                missing_inputs=list(EQUITY_CODES),
            )
        )

    if total_debt > 0:
        metrics["ic_debt_to_total_debt_ratio"] = ic_payables / total_debt
        metrics["ic_payables_to_total_liabilities_pct"] = ic_payables / total_debt * 100

    total_interest = (ic_interest_expense or 0.0) + other_interest_expense
    if total_interest > 0 and ebitda is not None:
        metrics["interest_coverage_ratio"] = ebitda / total_interest

    if total_assets is not None and total_assets > 0:
        if net_turnover is not None:
            metrics["asset_turnover_ratio"] = net_turnover / total_assets
        metrics["ic_receivables_to_total_assets_pct"] = ic_receivables / total_assets * 100
        metrics["financial_assets_to_total_assets_pct"] = participations / total_assets * 100
    else:
        missing.append(
            MetricNotCalculable(
                metric_name="asset_ratios",
                reason="Total assets not available",
                missing_inputs=["109"],
            )
        )

    if ic_interest_income is not None and ic_receivables > 0:
        metrics["implied_ic_lending_rate_pct"] = ic_interest_income / ic_receivables * 100
    elif ic_receivables > 0:
        missing.append(
            MetricNotCalculable(
                metric_name="implied_ic_lending_rate_pct",
                reason="IC interest income not disclosed",
                missing_inputs=["7610"],
            )
        )

    if ic_interest_expense is not None and ic_payables > 0:
        metrics["implied_ic_borrowing_rate_pct"] = ic_interest_expense / ic_payables * 100
    elif ic_payables > 0:
        missing.append(
            MetricNotCalculable(
                metric_name="implied_ic_borrowing_rate_pct",
                reason="IC interest expense not disclosed",
                missing_inputs=["7710"],
            )
        )

    return metrics, missing
