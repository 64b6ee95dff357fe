"""Build ratio inputs from normalized data and compute every ratio set."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Mapping

from finnorm.config import DEFAULT_ASSUMPTIONS, EstimationAssumptions
from finnorm.data.models import FINANCE, NON_FINANCE, NormalizedFinancialData
from finnorm.ratios.finance import FinanceRatios, calculate_finance_ratios
from finnorm.ratios.non_finance import (
    NonFinanceRatios,
    NonFinanceRatiosInput,
    calculate_non_finance_ratios,
)
from finnorm.ratios.universal import (
    UniversalRatios,
    UniversalRatiosInput,
    calculate_universal_ratios,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RatioSets:
    """Universal ratios plus the sector-specific set for the company type.

    The sector set that does not apply to the company is left zeroed.
    """

    universal: UniversalRatios = field(default_factory=UniversalRatios)
    non_finance: NonFinanceRatios = field(default_factory=NonFinanceRatios)
    finance: FinanceRatios = field(default_factory=FinanceRatios)

    def flat(self, company_type: str) -> dict[str, float]:
        """Universal ratios merged with the company type's sector ratios."""
        values = asdict(self.universal)
        if company_type == NON_FINANCE:
            values.update(asdict(self.non_finance))
        elif company_type == FINANCE:
            values.update(asdict(self.finance))
        return values


def universal_snapshots(data: NormalizedFinancialData) -> list[dict[str, float]]:
    """Annual (or quarterly) snapshots joined with balance sheets by position.

    Returns:
        Snapshots most recent first, with revenue, net_income,
        total_assets, shareholders_equity and debt.
    """
    periods = data.annual_data or data.quarterly_data
    sheets = data.balance_sheet_data
    snapshots = []
    for i, period in enumerate(periods):
        snapshot = {"revenue": period.primary_income, "net_income": period.net_profit}
        if i < len(sheets):
            sheet = sheets[i]
            snapshot.update(
                total_assets=sheet.total_assets,
                shareholders_equity=sheet.total_equity,
                debt=sheet.total_debt,
            )
        snapshots.append(snapshot)
    return snapshots


def _first(records: Any) -> dict[str, Any]:
    return asdict(records[0]) if records else {}


def _latest_value(values: tuple[float, ...]) -> float:
    return values[0] if values else 0.0


def non_finance_input(data: NormalizedFinancialData) -> NonFinanceRatiosInput:
    """Latest quarter, balance sheet, cash flow and provider day counts.

    Sales, operating profit and other income come from the latest
    normalized quarter, so a derived core profit reaches the ratios.
    """
    extras = data.sector_specific_data
    quarter = _first(extras.get("non_finance_quarterly_data"))
    if data.quarterly_data:
        latest = data.quarterly_data[0]
        quarter.update(
            sales=latest.primary_income,
            operating_profit=latest.core_profit,
            other_income=latest.other_income,
        )
    wc = extras.get("working_capital_ratios")
    working_capital = (
        {
            "debtor_days": _latest_value(wc.debtor_days),
            "inventory_days": _latest_value(wc.inventory_days),
        }
        if wc is not None
        else {}
    )
    return NonFinanceRatiosInput(
        quarter=quarter,
        balance_sheet=_first(extras.get("non_finance_balance_sheet")),
        cash_flow=_first(data.cash_flow_data),
        working_capital=working_capital,
    )


def finance_snapshots(data: NormalizedFinancialData) -> list[dict[str, float]]:
    """Bank snapshots (annual, else quarterly) joined with balance sheets.

    Direct fields (financing profit, other income, expenses, deposits,
    loans) are carried so the finance ratios only estimate what is missing.
    """
    extras = data.sector_specific_data
    periods = extras.get("finance_annual_data") or extras.get("finance_quarterly_data") or ()
    sheets = extras.get("finance_balance_sheet") or ()
    snapshots = []
    for i, period in enumerate(periods):
        snapshot: dict[str, float] = {
            "revenue": period.revenue,
            "net_income": period.net_profit,
            "net_interest_income": period.financing_profit,
            "non_interest_income": period.other_income,
            "operating_expenses": period.expenses,
        }
        if i < len(sheets):
            sheet = sheets[i]
            snapshot.update(
                total_assets=sheet.total_assets,
                shareholders_equity=sheet.equity_capital + sheet.reserves,
                debt=sheet.borrowings + sheet.deposits,
                deposits=sheet.deposits,
                loans=sheet.loans_and_advances,
            )
        snapshots.append(snapshot)
    return snapshots


def calculate_ratio_sets(
    data: NormalizedFinancialData,
    market_data: Mapping[str, Any] | None = None,
    assumptions: EstimationAssumptions = DEFAULT_ASSUMPTIONS,
    derive_multiples: bool = False,
) -> RatioSets:
    """Compute universal ratios and the sector set chosen by company type.

    Args:
        data: Normalized company data.
        market_data: Price and market multiples.
        assumptions: Estimation constants for the sector ratios.
        derive_multiples: Derive P/E and P/B from per-share figures.

    Returns:
        RatioSets with the non-applicable sector set zeroed.
    """
    universal = calculate_universal_ratios(
        UniversalRatiosInput(
            financial_data=universal_snapshots(data),
            market_data=market_data or {},
            derive_multiples=derive_multiples,
        )
    )
    if data.company_type == NON_FINANCE:
        return RatioSets(
            universal=universal,
            non_finance=calculate_non_finance_ratios(non_finance_input(data), assumptions),
        )
    if data.company_type == FINANCE:
        return RatioSets(
            universal=universal,
            finance=calculate_finance_ratios(finance_snapshots(data), assumptions),
        )
    logger.warning("Unknown company type %r, sector ratios left at zero", data.company_type)
    return RatioSets(universal=universal)
