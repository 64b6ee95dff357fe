"""Finance-sector ratios for deposit-taking institutions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from finnorm.config import DEFAULT_ASSUMPTIONS, EstimationAssumptions
from finnorm.ratios.common import pick, safe_float, safe_ratio


@dataclass(frozen=True)
class FinanceRatios:
    """Finance ratio set. All values are fractions."""

    net_interest_margin: float = 0.0
    cost_to_income_ratio: float = 0.0
    loan_growth_rate: float = 0.0
    deposit_growth_rate: float = 0.0
    non_interest_income_ratio: float = 0.0
    capital_adequacy_ratio: float = 0.0


def calculate_net_interest_margin(net_interest_income: float, total_assets: float) -> float:
    return safe_ratio(net_interest_income, total_assets)


def calculate_cost_to_income_ratio(operating_expenses: float, total_income: float) -> float:
    return safe_ratio(operating_expenses, total_income)


def _period_growth(current: float, previous: float) -> float:
    current = safe_float(current)
    previous = safe_float(previous)
    if previous == 0.0:
        return 0.0
    if current == 0.0:
        return -1.0
    return (current - previous) / previous


def calculate_loan_growth_rate(current_loans: float, previous_loans: float) -> float:
    """Period-over-period loan growth; -1.0 when the loan book has vanished."""
    return _period_growth(current_loans, previous_loans)


def calculate_deposit_growth_rate(current_deposits: float, previous_deposits: float) -> float:
    """Period-over-period deposit growth; -1.0 when deposits have vanished."""
    return _period_growth(current_deposits, previous_deposits)


def calculate_non_interest_income_ratio(non_interest_income: float, total_income: float) -> float:
    return safe_ratio(non_interest_income, total_income)


def calculate_capital_adequacy_ratio(shareholders_equity: float, total_assets: float) -> float:
    """Equity over total assets, a simple proxy for regulatory capital."""
    return safe_ratio(shareholders_equity, total_assets)


def _net_interest_income(record: Mapping[str, Any], assumptions: EstimationAssumptions) -> float:
    direct = pick(record, "net_interest_income", "financing_profit")
    if direct:
        return direct
    return safe_float(record.get("revenue")) * assumptions.net_interest_share


def _non_interest_income(record: Mapping[str, Any], assumptions: EstimationAssumptions) -> float:
    direct = pick(record, "non_interest_income", "other_income")
    if direct:
        return direct
    return safe_float(record.get("revenue")) * assumptions.non_interest_share


def _operating_expenses(record: Mapping[str, Any], assumptions: EstimationAssumptions) -> float:
    direct = pick(record, "operating_expenses")
    if direct:
        return direct
    revenue = safe_float(record.get("revenue"))
    net_income = safe_float(record.get("net_income"))
    return revenue - net_income - net_income * assumptions.assumed_tax_rate


def _loans(record: Mapping[str, Any]) -> float:
    return pick(record, "loans", "loans_and_advances", "current_assets")


def _deposits(record: Mapping[str, Any], assumptions: EstimationAssumptions) -> float:
    direct = pick(record, "deposits")
    if direct:
        return direct
    return safe_float(record.get("debt")) * assumptions.deposit_share_of_debt


def calculate_finance_ratios(
    financial_data: Sequence[Mapping[str, Any]],
    assumptions: EstimationAssumptions = DEFAULT_ASSUMPTIONS,
) -> FinanceRatios:
    """Compute the six finance ratios from the latest and prior snapshot.

    Inputs a source does not report are estimated from revenue, net
    income and debt using ``assumptions``:

    - net interest income = revenue x net_interest_share
    - non-interest income = revenue x non_interest_share
    - operating expenses = revenue - net income - net income x assumed_tax_rate
    - deposits = debt x deposit_share_of_debt
    - loans fall back to current assets

    Args:
        financial_data: Snapshots, most recent first, with revenue,
            net_income, total_assets, shareholders_equity, debt and any of
            the direct fields above.
        assumptions: Estimation constants.

    Returns:
        FinanceRatios; all zeros when no snapshot is available. Growth
        rates are 0.0 when there is no prior snapshot.
    """
    if not financial_data:
        return FinanceRatios()

    latest = financial_data[0]
    previous = financial_data[1] if len(financial_data) > 1 else None
    revenue = safe_float(latest.get("revenue"))
    total_assets = safe_float(latest.get("total_assets"))

    if previous is not None:
        loan_growth = calculate_loan_growth_rate(_loans(latest), _loans(previous))
        deposit_growth = calculate_deposit_growth_rate(
            _deposits(latest, assumptions), _deposits(previous, assumptions)
        )
    else:
        loan_growth = 0.0
        deposit_growth = 0.0

    return FinanceRatios(
        net_interest_margin=calculate_net_interest_margin(
            _net_interest_income(latest, assumptions), total_assets
        ),
        cost_to_income_ratio=calculate_cost_to_income_ratio(
            _operating_expenses(latest, assumptions), revenue
        ),
        loan_growth_rate=loan_growth,
        deposit_growth_rate=deposit_growth,
        non_interest_income_ratio=calculate_non_interest_income_ratio(
            _non_interest_income(latest, assumptions), revenue
        ),
        capital_adequacy_ratio=calculate_capital_adequacy_ratio(
            safe_float(latest.get("shareholders_equity")), total_assets
        ),
    )
