"""Operating-company ratios: margins, capital returns and working capital."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from finnorm.config import DEFAULT_ASSUMPTIONS, EstimationAssumptions
from finnorm.ratios.common import pick, safe_float, safe_ratio

# Source field aliases, in priority order.
_SALES = ("sales", "revenue")
_OPERATING_PROFIT = ("operating_profit", "core_profit")
_OTHER_INCOME = ("other_income",)
_INTEREST = ("interest", "interest_expense")
_EXPENSES = ("expenses",)
_TOTAL_ASSETS = ("total_assets",)
_CURRENT_ASSETS = ("current_assets",)
_CURRENT_LIABILITIES = ("current_liabilities",)
_DEBTORS = ("debtors", "receivables")
_INVENTORY = ("inventory",)
_PAYABLES = ("payables", "other_liabilities")
_FIXED_ASSETS = ("fixed_assets",)
_OPERATING_CASH_FLOW = ("operating_cash_flow", "operating_activity")


@dataclass(frozen=True)
class NonFinanceRatios:
    """Non-finance ratio set. Margins and ROCE are percentages, days are days."""

    operating_profit_margin: float = 0.0
    return_on_capital_employed: float = 0.0
    cash_conversion_cycle: float = 0.0
    debtor_days: float = 0.0
    inventory_days: float = 0.0
    payable_days: float = 0.0
    working_capital_days: float = 0.0
    interest_coverage_ratio: float = 0.0
    current_ratio: float = 0.0
    quick_ratio: float = 0.0
    free_cash_flow_margin: float = 0.0
    asset_quality_ratio: float = 0.0


@dataclass(frozen=True)
class NonFinanceRatiosInput:
    """Latest quarter, balance sheet, cash flow and provider working-capital figures.

    Attributes:
        quarter: P&L fields (sales, expenses, operating_profit,
            other_income, interest).
        balance_sheet: Balance-sheet fields (total_assets, current_assets,
            current_liabilities, inventory, debtors, payables or
            other_liabilities, fixed_assets).
        cash_flow: Cash-flow fields (operating_cash_flow).
        working_capital: Provider debtor_days / inventory_days for the
            latest period; these take precedence over computed values in
            the cash conversion cycle.
    """

    quarter: Mapping[str, Any] | None
    balance_sheet: Mapping[str, Any] | None
    cash_flow: Mapping[str, Any] = field(default_factory=dict)
    working_capital: Mapping[str, Any] = field(default_factory=dict)


def calculate_operating_profit_margin(operating_profit: float, sales: float) -> float:
    return safe_ratio(operating_profit, sales) * 100


def calculate_roce(ebit: float, capital_employed: float) -> float:
    return safe_ratio(ebit, capital_employed) * 100


def calculate_cash_conversion_cycle(
    debtor_days: float, inventory_days: float, payable_days: float
) -> float:
    return safe_float(debtor_days) + safe_float(inventory_days) - safe_float(payable_days)


def calculate_debtor_days(debtors: float, daily_sales: float) -> float:
    return safe_ratio(debtors, daily_sales)


def calculate_inventory_days(inventory: float, daily_cogs: float) -> float:
    return safe_ratio(inventory, daily_cogs)


def calculate_payable_days(payables: float, daily_cogs: float) -> float:
    return safe_ratio(payables, daily_cogs)


def calculate_working_capital_days(working_capital: float, daily_sales: float) -> float:
    return safe_ratio(working_capital, daily_sales)


def calculate_interest_coverage_ratio(ebit: float, interest_expense: float) -> float:
    return safe_ratio(ebit, interest_expense)


def calculate_current_ratio(current_assets: float, current_liabilities: float) -> float:
    return safe_ratio(current_assets, current_liabilities)


def calculate_quick_ratio(
    current_assets: float, inventory: float, current_liabilities: float
) -> float:
    if safe_float(current_assets) == 0.0:
        return 0.0
    return safe_ratio(
        safe_float(current_assets) - safe_float(inventory), current_liabilities
    )


def calculate_free_cash_flow_margin(operating_cash_flow: float, revenue: float) -> float:
    return safe_ratio(operating_cash_flow, revenue) * 100


def calculate_asset_quality_ratio(fixed_assets: float, total_assets: float) -> float:
    return safe_ratio(fixed_assets, total_assets)


def calculate_non_finance_ratios(
    ratio_input: NonFinanceRatiosInput,
    assumptions: EstimationAssumptions = DEFAULT_ASSUMPTIONS,
) -> NonFinanceRatios:
    """Compute the twelve non-finance ratios for the latest period.

    Daily rates divide quarterly sales and expenses (expenses stand in for
    cost of goods sold) by ``assumptions.days_per_quarter``. The cash
    conversion cycle uses provider day counts where given and the
    estimated payable days from ``assumptions``.

    Args:
        ratio_input: Latest-period records.
        assumptions: Estimation constants.

    Returns:
        NonFinanceRatios; all zeros when the quarter or balance sheet is
        missing.
    """
    if not ratio_input.quarter or not ratio_input.balance_sheet:
        return NonFinanceRatios()

    quarter = ratio_input.quarter
    sheet = ratio_input.balance_sheet
    wc = ratio_input.working_capital

    sales = pick(quarter, *_SALES)
    operating_profit = pick(quarter, *_OPERATING_PROFIT)
    ebit = operating_profit + pick(quarter, *_OTHER_INCOME)

    total_assets = pick(sheet, *_TOTAL_ASSETS)
    current_assets = pick(sheet, *_CURRENT_ASSETS)
    current_liabilities = pick(sheet, *_CURRENT_LIABILITIES)
    inventory = pick(sheet, *_INVENTORY)

    daily_sales = sales / assumptions.days_per_quarter
    daily_cogs = pick(quarter, *_EXPENSES) / assumptions.days_per_quarter

    debtor_days = calculate_debtor_days(pick(sheet, *_DEBTORS), daily_sales)
    inventory_days = calculate_inventory_days(inventory, daily_cogs)
    payable_days = calculate_payable_days(pick(sheet, *_PAYABLES), daily_cogs)

    ccc = calculate_cash_conversion_cycle(
        pick(wc, "debtor_days") or debtor_days,
        pick(wc, "inventory_days") or inventory_days,
        assumptions.estimated_payable_days,
    )

    return NonFinanceRatios(
        operating_profit_margin=calculate_operating_profit_margin(operating_profit, sales),
        return_on_capital_employed=calculate_roce(
            ebit, total_assets - current_liabilities
        ),
        cash_conversion_cycle=ccc,
        debtor_days=debtor_days,
        inventory_days=inventory_days,
        payable_days=payable_days,
        working_capital_days=calculate_working_capital_days(
            current_assets - current_liabilities, daily_sales
        ),
        interest_coverage_ratio=calculate_interest_coverage_ratio(
            ebit, pick(quarter, *_INTEREST)
        ),
        current_ratio=calculate_current_ratio(current_assets, current_liabilities),
        quick_ratio=calculate_quick_ratio(current_assets, inventory, current_liabilities),
        free_cash_flow_margin=calculate_free_cash_flow_margin(
            pick(ratio_input.cash_flow, *_OPERATING_CASH_FLOW), sales
        ),
        asset_quality_ratio=calculate_asset_quality_ratio(
            pick(sheet, *_FIXED_ASSETS), total_assets
        ),
    )
