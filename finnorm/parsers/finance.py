"""Parser for deposit-taking institutions (banks)."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Mapping

from finnorm.data.models import (
    BankingRatios,
    FinanceBalanceSheet,
    FinanceData,
    FinancePeriod,
    ParseResult,
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
from finnorm.ratios.common import pick

logger = logging.getLogger(__name__)

# Column mappings: provider aliases -> record field
PERIOD_FIELDS: dict[str, tuple[str, ...]] = {
    "revenue": ("revenue",),
    "interest": ("interest",),
    "expenses": ("expenses",),
    "financing_profit": ("financing_profit",),
    "financing_margin_percent": ("financing_margin_percent",),
    "other_income": ("other_income",),
    "depreciation": ("depreciation",),
    "profit_before_tax": ("profit_before_tax",),
    "tax_percent": ("tax_percent",),
    "net_profit": ("net_profit",),
    "eps": ("eps",),
}

BALANCE_SHEET_FIELDS: dict[str, tuple[str, ...]] = {
    "equity_capital": ("equity_capital",),
    "reserves": ("reserves",),
    "deposits": ("deposits",),
    "borrowings": ("borrowings",),
    "other_liabilities": ("other_liabilities",),
    "fixed_assets": ("fixed_assets",),
    "cwip": ("cwip",),
    "investments": ("investments",),
    "other_assets": ("other_assets",),
}

MIN_QUARTERS_FOR_ANALYSIS = 8
MIN_DATA_QUALITY = 60


def _balance_sheet(raw: Mapping[str, Any]) -> FinanceBalanceSheet:
    record = build_record(FinanceBalanceSheet, raw, BALANCE_SHEET_FIELDS)
    # Banks report their loan book under other assets.
    return replace(
        record,
        loans_and_advances=pick(raw, "loans_and_advances", "advances", "other_assets"),
        total_assets=resolve_total_assets(raw),
    )


def parse_finance_data(raw_data: Mapping[str, Any] | None) -> ParseResult:
    """Parse a provider payload for a bank.

    Every period is kept. ``loans_and_advances`` falls back to the
    provider's other assets, where banks carry their loan book.

    Args:
        raw_data: Provider JSON (company_info, quarterly_data, annual_data,
            balance_sheet, cash_flow, ratios).

    Returns:
        ParseResult with FinanceData, or a structural error code.
    """
    errors = check_structure(raw_data, "revenue")
    if errors:
        logger.warning("Finance payload rejected: %s", errors[0])
        return ParseResult(success=False, errors=errors)
    try:
        info = raw_data.get("company_info") or {}
        sector = str(info.get("sector") or "")
        ratios = raw_data.get("ratios") or {}

        quarterly = tuple(
            build_record(FinancePeriod, q, PERIOD_FIELDS)
            for q in section(raw_data, "quarterly_data")
        )
        annual = tuple(
            build_record(FinancePeriod, a, PERIOD_FIELDS)
            for a in section(raw_data, "annual_data")
        )
        balance_sheets = tuple(_balance_sheet(bs) for bs in section(raw_data, "balance_sheet"))
        cash_flows = build_cash_flows(section(raw_data, "cash_flow"))
        banking_ratios = BankingRatios(
            roe_percent=ratio_series(ratios, "roe_percent"),
            cost_to_income=ratio_series(ratios, "cost_to_income"),
            net_interest_margin=ratio_series(ratios, "net_interest_margin"),
        )

        data = FinanceData(
            company_name=str(info.get("name") or ""),
            sector=sector,
            quarterly_data=quarterly,
            annual_data=annual,
            balance_sheet_data=balance_sheets,
            cash_flow_data=cash_flows,
            banking_ratios=banking_ratios,
            sector_classification="banking",
            industry_type=(
                "private_sector_bank" if "private" in sector.lower() else "public_sector_bank"
            ),
            data_quality_score=data_quality_score(raw_data),
            completeness_score=completeness_score(
                len(quarterly),
                len(annual),
                len(balance_sheets),
                len(banking_ratios.roe_percent),
                len(cash_flows),
                penalize_short_quarters=False,
            ),
        )
    except (TypeError, ValueError, KeyError, AttributeError) as exc:
        logger.warning("Finance parsing failed: %s", exc)
        return ParseResult(success=False, errors=("parsing_error", str(exc)))

    logger.debug(
        "Parsed finance %s: %d quarters, %d balance sheets",
        data.company_name or "<unnamed>", len(quarterly), len(balance_sheets),
    )
    return ParseResult(success=True, data=data)


def validate_finance_data(data: FinanceData) -> list[str]:
    """Check parsed bank data is usable for analysis.

    Returns:
        Error codes: insufficient_quarterly_data (fewer than 8 quarters),
        invalid_company_type, missing_sector_classification,
        low_data_quality (quality below 60). Empty when valid.
    """
    errors: list[str] = []
    if len(data.quarterly_data) < MIN_QUARTERS_FOR_ANALYSIS:
        errors.append("insufficient_quarterly_data")
    if data.company_type != "finance":
        errors.append("invalid_company_type")
    if not data.sector_classification:
        errors.append("missing_sector_classification")
    if data.data_quality_score < MIN_DATA_QUALITY:
        errors.append("low_data_quality")
    return errors
