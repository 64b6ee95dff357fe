"""Map sector-specific parsed data onto one sector-neutral schema.

Non-finance: primary income = sales, core profit = operating profit
(sales - expenses when absent), total debt = borrowings + other
liabilities + current liabilities, interest is an expense.

Finance: primary income = revenue, core profit = financing profit,
total debt = borrowings + deposits, interest is a core component.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any

from finnorm.data.models import (
    COMPANY_TYPES,
    FINANCE,
    INTEREST_AS_CORE,
    INTEREST_AS_EXPENSE,
    NON_FINANCE,
    FinanceData,
    FinancePeriod,
    NonFinanceData,
    NonFinancePeriod,
    NormalizationResult,
    NormalizedBalanceSheet,
    NormalizedFinancialData,
    NormalizedPeriod,
)

logger = logging.getLogger(__name__)

NORMALIZATION_VERSION = "1.0.0"
DATA_SOURCE = "screener_in"

NON_FINANCE_NORMALIZATION_QUALITY = 98.0
FINANCE_NORMALIZATION_QUALITY = 97.0

# Section counts that earn full completeness credit, and section weights.
IDEAL_SECTION_COUNT = 2
QUARTERLY_WEIGHT = 40.0
ANNUAL_WEIGHT = 30.0
BALANCE_SHEET_WEIGHT = 20.0
CASH_FLOW_WEIGHT = 10.0
CASH_FLOW_PARTIAL_CREDIT = 5.0

MIN_NORMALIZED_QUALITY = 60


def _non_finance_period(q: NonFinancePeriod) -> tuple[NormalizedPeriod, bool]:
    """Normalize one period; the flag is True when core profit was derived."""
    derived = q.operating_profit == 0.0
    core_profit = q.sales - q.expenses if derived else q.operating_profit
    return (
        NormalizedPeriod(
            period=q.period,
            primary_income=q.sales,
            core_profit=core_profit,
            other_income=q.other_income,
            depreciation=q.depreciation,
            profit_before_tax=q.profit_before_tax,
            net_profit=q.net_profit,
            eps=q.eps,
        ),
        derived,
    )


def _finance_period(q: FinancePeriod) -> NormalizedPeriod:
    return NormalizedPeriod(
        period=q.period,
        primary_income=q.revenue,
        core_profit=q.financing_profit,
        other_income=q.other_income,
        depreciation=q.depreciation,
        profit_before_tax=q.profit_before_tax,
        net_profit=q.net_profit,
        eps=q.eps,
    )


def _section_score(count: int, weight: float) -> float:
    return min(weight, count / IDEAL_SECTION_COUNT * weight)


def section_completeness(
    n_quarterly: int,
    n_annual: int,
    n_balance_sheet: int,
    n_cash_flow: int,
    penalize_short_quarters: bool,
) -> float:
    """Completeness from actual vs. ideal section counts.

    Quarterly, annual and balance-sheet sections weigh 40/30/20 and reach
    full credit at two periods each; cash flow earns 10 when present and
    5 otherwise. With ``penalize_short_quarters`` the total is scaled by
    the quarterly shortfall.

    Returns:
        Rounded completeness in [0, 100].
    """
    total = (
        _section_score(n_quarterly, QUARTERLY_WEIGHT)
        + _section_score(n_annual, ANNUAL_WEIGHT)
        + _section_score(n_balance_sheet, BALANCE_SHEET_WEIGHT)
        + (CASH_FLOW_WEIGHT if n_cash_flow > 0 else CASH_FLOW_PARTIAL_CREDIT)
    )
    if penalize_short_quarters and n_quarterly < IDEAL_SECTION_COUNT:
        total *= n_quarterly / IDEAL_SECTION_COUNT
    return float(round(total))


def _metadata(source_type: str, name: str, sector: str, rules: list[str]) -> MappingProxyType:
    return MappingProxyType({
        "normalization_timestamp": datetime.now(UTC).isoformat(),
        "source_data_type": source_type,
        "normalization_version": NORMALIZATION_VERSION,
        "original_company_name": name,
        "original_sector": sector,
        "data_source": DATA_SOURCE,
        "normalization_rules_applied": tuple(rules),
    })


def _normalize_non_finance(data: NonFinanceData) -> NormalizationResult:
    if any(q.sales < 0 for q in data.quarterly_data):
        logger.warning("%s: negative sales, normalization refused", data.company_name)
        return NormalizationResult(success=False, errors=("negative_primary_income",))

    quarterly_pairs = [_non_finance_period(q) for q in data.quarterly_data]
    annual_pairs = [_non_finance_period(a) for a in data.annual_data]
    derived_any = any(derived for _, derived in quarterly_pairs + annual_pairs)
    reported_any = any(not derived for _, derived in quarterly_pairs + annual_pairs)

    balance_sheets = tuple(
        NormalizedBalanceSheet(
            period=bs.period,
            equity_capital=bs.equity_capital,
            reserves=bs.reserves,
            total_debt=bs.borrowings + bs.other_liabilities + bs.current_liabilities,
            fixed_assets=bs.fixed_assets,
            investments=bs.investments,
            total_assets=bs.total_assets,
        )
        for bs in data.balance_sheet_data
    )

    rules = ["primary_income_from_sales"]
    if reported_any:
        rules.append("core_profit_from_operating_profit")
    if derived_any:
        rules.append("core_profit_from_sales_minus_expenses")
    rules += ["total_debt_from_borrowings", "interest_as_expense"]

    sector_specific = MappingProxyType({
        "working_capital_ratios": data.working_capital_ratios,
        "non_finance_balance_sheet": data.balance_sheet_data,
        "non_finance_quarterly_data": data.quarterly_data,
        "non_finance_ratios": MappingProxyType({
            "current_assets": tuple(bs.current_assets for bs in data.balance_sheet_data),
            "current_liabilities": tuple(
                bs.current_liabilities for bs in data.balance_sheet_data
            ),
        }),
        "sector_classification": data.sector_classification,
        "industry_type": data.industry_type,
    })

    normalized = NormalizedFinancialData(
        company_type=NON_FINANCE,
        quarterly_data=tuple(p for p, _ in quarterly_pairs),
        annual_data=tuple(p for p, _ in annual_pairs),
        balance_sheet_data=balance_sheets,
        cash_flow_data=data.cash_flow_data,
        sector_specific_data=sector_specific,
        interest_treatment=INTEREST_AS_EXPENSE,
        data_quality_score=data.data_quality_score,
        completeness_score=section_completeness(
            len(data.quarterly_data),
            len(data.annual_data),
            len(data.balance_sheet_data),
            len(data.cash_flow_data),
            penalize_short_quarters=True,
        ),
        normalization_quality=NON_FINANCE_NORMALIZATION_QUALITY,
        metadata=_metadata(NON_FINANCE, data.company_name, data.sector, rules),
    )
    return NormalizationResult(success=True, normalized_data=normalized)


def _normalize_finance(data: FinanceData) -> NormalizationResult:
    if any(q.revenue < 0 for q in data.quarterly_data):
        logger.warning("%s: negative revenue, normalization refused", data.company_name)
        return NormalizationResult(success=False, errors=("negative_primary_income",))

    balance_sheets = tuple(
        NormalizedBalanceSheet(
            period=bs.period,
            equity_capital=bs.equity_capital,
            reserves=bs.reserves,
            total_debt=bs.borrowings + bs.deposits,
            fixed_assets=bs.fixed_assets,
            investments=bs.investments,
            total_assets=bs.total_assets,
        )
        for bs in data.balance_sheet_data
    )

    sector_specific = MappingProxyType({
        "banking_ratios": data.banking_ratios,
        "finance_balance_sheet": data.balance_sheet_data,
        "finance_quarterly_data": data.quarterly_data,
        "finance_annual_data": data.annual_data,
        "finance_specific_metrics": MappingProxyType({
            "deposits": tuple(bs.deposits for bs in data.balance_sheet_data),
            "loans_and_advances": tuple(
                bs.loans_and_advances for bs in data.balance_sheet_data
            ),
        }),
        "sector_classification": data.sector_classification,
        "industry_type": data.industry_type,
    })

    rules = [
        "primary_income_from_revenue",
        "core_profit_from_financing_profit",
        "total_debt_from_borrowings_plus_deposits",
        "interest_as_core_component",
    ]
    normalized = NormalizedFinancialData(
        company_type=FINANCE,
        quarterly_data=tuple(_finance_period(q) for q in data.quarterly_data),
        annual_data=tuple(_finance_period(a) for a in data.annual_data),
        balance_sheet_data=balance_sheets,
        cash_flow_data=data.cash_flow_data,
        sector_specific_data=sector_specific,
        interest_treatment=INTEREST_AS_CORE,
        data_quality_score=data.data_quality_score,
        completeness_score=section_completeness(
            len(data.quarterly_data),
            len(data.annual_data),
            len(data.balance_sheet_data),
            len(data.cash_flow_data),
            penalize_short_quarters=False,
        ),
        normalization_quality=FINANCE_NORMALIZATION_QUALITY,
        metadata=_metadata(FINANCE, data.company_name, data.sector, rules),
    )
    return NormalizationResult(success=True, normalized_data=normalized)


def normalize_financial_data(
    parsed_data: NonFinanceData | FinanceData | None, company_type: str
) -> NormalizationResult:
    """Normalize parsed sector data into the sector-neutral schema.

    Negative quarterly primary income is rejected before any mapping.

    Args:
        parsed_data: Output of the matching sector parser.
        company_type: Declared sector, "non_finance" or "finance".

    Returns:
        NormalizationResult with NormalizedFinancialData on success, or
        null_input_data, unsupported_company_type, sector_type_mismatch,
        negative_primary_income.
    """
    if parsed_data is None:
        return NormalizationResult(success=False, errors=("null_input_data",))
    if company_type not in COMPANY_TYPES:
        return NormalizationResult(success=False, errors=("unsupported_company_type",))
    if parsed_data.company_type != company_type:
        logger.warning(
            "Sector mismatch: parsed %s data, requested %s",
            parsed_data.company_type, company_type,
        )
        return NormalizationResult(success=False, errors=("sector_type_mismatch",))

    try:
        if isinstance(parsed_data, NonFinanceData):
            return _normalize_non_finance(parsed_data)
        return _normalize_finance(parsed_data)
    except (TypeError, ValueError, KeyError, AttributeError) as exc:
        logger.warning("Normalization failed: %s", exc)
        return NormalizationResult(success=False, errors=("normalization_error", str(exc)))


def validate_normalized_data(data: NormalizedFinancialData | None) -> list[str]:
    """Structural check of normalized data.

    Returns:
        Error codes (null_normalized_data, missing_normalized_data,
        missing_company_type, missing_sector_specific_data,
        low_data_quality). Empty when valid.
    """
    if data is None:
        return ["null_normalized_data"]
    errors: list[str] = []
    if not (data.quarterly_data or data.annual_data or data.balance_sheet_data):
        errors.append("missing_normalized_data")
    if not data.company_type:
        errors.append("missing_company_type")
    if not data.sector_specific_data:
        errors.append("missing_sector_specific_data")
    if data.data_quality_score < MIN_NORMALIZED_QUALITY:
        errors.append("low_data_quality")
    return errors


def metadata_summary(data: NormalizedFinancialData) -> dict[str, Any]:
    """Flat provenance view used by exports."""
    meta = data.metadata
    return {
        "company_type": data.company_type,
        "company_name": meta.get("original_company_name", ""),
        "sector": meta.get("original_sector", ""),
        "normalized_at": meta.get("normalization_timestamp", ""),
        "rules": ",".join(meta.get("normalization_rules_applied", ())),
    }
