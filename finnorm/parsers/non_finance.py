"""Parser for operating companies (manufacturing, FMCG, services)."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Mapping

from finnorm.config import TARGET_QUARTERS, TARGET_YEARS
from finnorm.data.models import (
    NonFinanceBalanceSheet,
    NonFinanceData,
    NonFinancePeriod,
    ParseResult,
    WorkingCapitalRatios,
)
from finnorm.parsers.common import (
    build_cash_flows,
    build_record,
    check_structure,
    completeness_score,
    data_quality_score,
    ratio_series,
    resolve_total_assets,
    section,
)

logger = logging.getLogger(__name__)

# Column mappings: provider aliases -> record field
PERIOD_FIELDS: dict[str, tuple[str, ...]] = {
    "sales": ("sales",),
    "expenses": ("expenses",),
    "operating_profit": ("operating_profit",),
    "opm_percent": ("opm_percent", "omp_percent"),
    "other_income": ("other_income",),
    "interest": ("interest",),
    "depreciation": ("depreciation",),
    "profit_before_tax": ("profit_before_tax",),
    "tax_percent": ("tax_percent",),
    "net_profit": ("net_profit",),
    "eps": ("eps",),
}

BALANCE_SHEET_FIELDS: dict[str, tuple[str, ...]] = {
    "equity_capital": ("equity_capital",),
    "reserves": ("reserves",),
    "borrowings": ("borrowings",),
    "other_liabilities": ("other_liabilities",),
    "current_assets": ("current_assets",),
    "current_liabilities": ("current_liabilities",),
    "fixed_assets": ("fixed_assets",),
    "cwip": ("cwip",),
    "investments": ("investments",),
    "other_assets": ("other_assets",),
    "inventory": ("inventory",),
    "debtors": ("debtors", "trade_receivables", "accounts_receivable"),
    "payables": ("payables", "trade_payables"),
}

# Balance sheets and cash flows keep as many periods as quarters.
MAX_QUARTERS = TARGET_QUARTERS
MAX_YEARS = TARGET_YEARS


def _balance_sheet(raw: Mapping[str, Any]) -> NonFinanceBalanceSheet:
    record = build_record(NonFinanceBalanceSheet, raw, BALANCE_SHEET_FIELDS)
    return replace(record, total_assets=resolve_total_assets(raw))


def _classify(sector: str) -> tuple[str, str]:
    """Return (sector_classification, industry_type) from the sector text."""
    text = sector.lower()
    classification = "fmcg" if ("consumer" in text or "fmcg" in text) else "manufacturing"
    if "personal" in text or "care" in text:
        industry = "personal_care"
    elif "consumer" in text:
        industry = "consumer_goods"
    else:
        industry = "manufacturing"
    return classification, industry


def parse_non_finance_data(raw_data: Mapping[str, Any] | None) -> ParseResult:
    """Parse a provider payload for an operating company.

    Keeps the latest 13 quarters, 12 years, 13 balance sheets and 13 cash
    flows. Missing optional fields default to 0.

    Args:
        raw_data: Provider JSON (company_info, quarterly_data, annual_data,
            balance_sheet, cash_flow, ratios).

    Returns:
        ParseResult with NonFinanceData, or a structural error code
        (null_input_data, missing_quarterly_data,
        missing_balance_sheet_data, invalid_quarterly_data_format).
    """
    errors = check_structure(raw_data, "sales")
    if errors:
        logger.warning("Non-finance payload rejected: %s", errors[0])
        return ParseResult(success=False, errors=errors)
    try:
        info = raw_data.get("company_info") or {}
        sector = str(info.get("sector") or "")
        ratios = raw_data.get("ratios") or {}

        quarterly = tuple(
            build_record(NonFinancePeriod, q, PERIOD_FIELDS)
            for q in section(raw_data, "quarterly_data")[:MAX_QUARTERS]
        )
        annual = tuple(
            build_record(NonFinancePeriod, a, PERIOD_FIELDS)
            for a in section(raw_data, "annual_data")[:MAX_YEARS]
        )
        balance_sheets = tuple(
            _balance_sheet(bs) for bs in section(raw_data, "balance_sheet")[:MAX_QUARTERS]
        )
        cash_flows = build_cash_flows(section(raw_data, "cash_flow")[:MAX_QUARTERS])
        working_capital = WorkingCapitalRatios(
            cash_conversion_cycle=ratio_series(ratios, "cash_conversion_cycle"),
            debtor_days=ratio_series(ratios, "debtor_days"),
            inventory_days=ratio_series(ratios, "inventory_days"),
            working_capital_days=ratio_series(ratios, "working_capital_days"),
        )
        classification, industry = _classify(sector)

        data = NonFinanceData(
            company_name=str(info.get("name") or ""),
            sector=sector,
            quarterly_data=quarterly,
            annual_data=annual,
            balance_sheet_data=balance_sheets,
            cash_flow_data=cash_flows,
            working_capital_ratios=working_capital,
            sector_classification=classification,
            industry_type=industry,
            data_quality_score=data_quality_score(raw_data),
            completeness_score=completeness_score(
                len(quarterly),
                len(annual),
                len(balance_sheets),
                len(working_capital.cash_conversion_cycle),
                len(cash_flows),
            ),
        )
    except (TypeError, ValueError, KeyError, AttributeError) as exc:
        logger.warning("Non-finance parsing failed: %s", exc)
        return ParseResult(success=False, errors=("parsing_error", str(exc)))

    logger.debug(
        "Parsed non-finance %s: %d quarters, %d years, %d balance sheets",
        data.company_name or "<unnamed>", len(quarterly), len(annual), len(balance_sheets),
    )
    return ParseResult(success=True, data=data)


def validate_non_finance_data(data: NonFinanceData) -> list[str]:
    """Check parsed non-finance data is usable for analysis.

    Returns:
        Error codes: insufficient_quarterly_data (fewer than 4 quarters),
        negative_sales_values (any quarter with sales <= 0),
        low_data_completeness (completeness below 80). Empty when valid.
    """
    errors: list[str] = []
    if len(data.quarterly_data) < 4:
        errors.append("insufficient_quarterly_data")
    if any(q.sales <= 0 for q in data.quarterly_data):
        errors.append("negative_sales_values")
    if data.completeness_score < 80:
        errors.append("low_data_completeness")
    return errors
