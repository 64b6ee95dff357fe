"""Per-company pipeline: parse, normalize, ratios, TTM and validation.

Also carries ``import_company``, which runs the pipeline for one payload
and writes company, annual metrics and ratios to a ``CompanyStore``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from finnorm.config import DEFAULT_ASSUMPTIONS, EstimationAssumptions, ValidationThresholds
from finnorm.data.models import (
    COMPANY_TYPES,
    FINANCE,
    NON_FINANCE,
    NormalizedFinancialData,
    ParseResult,
    RawCompanyPayload,
)
from finnorm.data.store import CompanyStore
from finnorm.parsers.finance import parse_finance_data, validate_finance_data
from finnorm.parsers.non_finance import parse_non_finance_data, validate_non_finance_data
from finnorm.parsers.normalizer import normalize_financial_data, validate_normalized_data
from finnorm.ratios.common import safe_ratio
from finnorm.ratios.sets import RatioSets, calculate_ratio_sets
from finnorm.ratios.ttm import TTMMetrics, compute_ttm
from finnorm.validation import DEFAULT_THRESHOLDS, ValidationResult, validate_financial_data

logger = logging.getLogger(__name__)

_PARSERS: dict[str, Callable[[Any], ParseResult]] = {
    NON_FINANCE: parse_non_finance_data,
    FINANCE: parse_finance_data,
}

_PARSED_CHECKS: dict[str, Callable[[Any], list[str]]] = {
    NON_FINANCE: validate_non_finance_data,
    FINANCE: validate_finance_data,
}


@dataclass(frozen=True)
class CompanyAnalysis:
    """Everything the pipeline produced for one company.

    Attributes:
        company_id: Payload identifier.
        company_type: Declared sector of the payload.
        success: False when parsing or normalization failed.
        normalized: Normalized data (None on failure).
        ratios: Ratio sets; zeroed on failure.
        ttm: TTM metrics, or None without quarters.
        validation: Validator result, or None when skipped or failed.
        errors: Stage error codes on failure.
        data_warnings: Non-fatal codes from the parsed and normalized
            data checks (e.g. insufficient_quarterly_data).
    """

    company_id: str
    company_type: str
    success: bool
    normalized: NormalizedFinancialData | None = None
    ratios: RatioSets = field(default_factory=RatioSets)
    ttm: TTMMetrics | None = None
    validation: ValidationResult | None = None
    errors: tuple[str, ...] = ()
    data_warnings: tuple[str, ...] = ()


def _failed(payload: RawCompanyPayload, errors: tuple[str, ...]) -> CompanyAnalysis:
    logger.warning("%s: pipeline failed (%s)", payload.company_id, ", ".join(errors))
    return CompanyAnalysis(
        company_id=payload.company_id,
        company_type=payload.company_type,
        success=False,
        errors=errors,
    )


def analyze_payload(
    payload: RawCompanyPayload,
    assumptions: EstimationAssumptions = DEFAULT_ASSUMPTIONS,
    thresholds: ValidationThresholds = DEFAULT_THRESHOLDS,
    validate: bool = True,
    derive_multiples: bool = False,
) -> CompanyAnalysis:
    """Run the pipeline for one sector-tagged payload.

    Args:
        payload: NonFinanceRawPayload or FinanceRawPayload.
        assumptions: Estimation constants for the sector ratios.
        thresholds: Validation limits.
        validate: Run the validator on the normalized data.
        derive_multiples: Derive P/E and P/B from per-share figures.

    Returns:
        CompanyAnalysis. Stage failures are reported through ``success``
        and ``errors``, never raised.
    """
    company_type = payload.company_type
    if company_type not in COMPANY_TYPES:
        return _failed(payload, ("unsupported_company_type",))

    parsed = _PARSERS[company_type](payload.data)
    if not parsed.success:
        return _failed(payload, parsed.errors)
    warnings = list(_PARSED_CHECKS[company_type](parsed.data))

    normalized = normalize_financial_data(parsed.data, company_type)
    if not normalized.success:
        return _failed(payload, normalized.errors)
    data = normalized.normalized_data
    warnings += validate_normalized_data(data)

    ratios = calculate_ratio_sets(
        data,
        market_data=payload.market_data,
        assumptions=assumptions,
        derive_multiples=derive_multiples,
    )
    validation = validate_financial_data(data, thresholds) if validate else None

    logger.debug(
        "%s: %s analysed, %d data warnings", payload.company_id, company_type, len(warnings)
    )
    return CompanyAnalysis(
        company_id=payload.company_id,
        company_type=company_type,
        success=True,
        normalized=data,
        ratios=ratios,
        ttm=compute_ttm(data),
        validation=validation,
        data_warnings=tuple(dict.fromkeys(warnings)),
    )


# --- Import into a store ---


@dataclass
class ImportResult:
    """Outcome of importing one company into a store."""

    success: bool = False
    company_id: int | None = None
    metrics_created: bool = False
    ratios_calculated: bool = False
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _yoy_growth(current: float, previous: float) -> float | None:
    if not current or not previous:
        return None
    return (current - previous) / previous * 100


def _annual_metrics_record(company_id: int, data: NormalizedFinancialData) -> dict[str, Any]:
    latest = data.annual_data[0]
    previous = data.annual_data[1] if len(data.annual_data) > 1 else None
    record: dict[str, Any] = {
        "company_id": company_id,
        "fiscal_year": latest.period,
        "revenue": latest.primary_income,
        "operating_profit": latest.core_profit,
        "net_profit": latest.net_profit,
        "opm_percent": safe_ratio(latest.core_profit, latest.primary_income) * 100,
        "npm_percent": safe_ratio(latest.net_profit, latest.primary_income) * 100,
        "eps": latest.eps,
        "revenue_growth_yoy": (
            _yoy_growth(latest.primary_income, previous.primary_income) if previous else None
        ),
        "profit_growth_yoy": (
            _yoy_growth(latest.net_profit, previous.net_profit) if previous else None
        ),
        "eps_growth_yoy": _yoy_growth(latest.eps, previous.eps) if previous else None,
    }
    if data.balance_sheet_data:
        sheet = data.balance_sheet_data[0]
        record.update(
            total_assets=sheet.total_assets,
            total_equity=sheet.total_equity,
            total_debt=sheet.total_debt,
        )
    if data.cash_flow_data:
        flow = data.cash_flow_data[0]
        record.update(
            operating_cash_flow=flow.operating_cash_flow,
            investing_cash_flow=flow.investing_cash_flow,
            financing_cash_flow=flow.financing_cash_flow,
            free_cash_flow=flow.operating_cash_flow + flow.investing_cash_flow,
        )
    return record


def _ratios_record(company_id: int, analysis: CompanyAnalysis) -> dict[str, Any]:
    data = analysis.normalized
    periods = data.annual_data or data.quarterly_data
    universal = analysis.ratios.universal
    record: dict[str, Any] = {
        "company_id": company_id,
        "period_date": periods[0].period,
        "period_type": "annual" if data.annual_data else "quarterly",
        "pe_ratio": universal.price_to_earnings,
        "price_to_book": universal.price_to_book,
        "roe_percent": universal.roe * 100,
        "asset_turnover": universal.asset_turnover,
        "debt_to_equity": universal.debt_to_equity,
        "revenue_cagr_3y": universal.revenue_growth_3y,
        "revenue_cagr_5y": universal.revenue_growth_5y,
        "profit_cagr_3y": universal.profit_growth_3y,
        "profit_cagr_5y": universal.profit_growth_5y,
    }
    if analysis.validation is not None:
        record["quality_score"] = analysis.validation.quality_score
    if analysis.company_type == NON_FINANCE:
        ratios = analysis.ratios.non_finance
        record.update(
            roce_percent=ratios.return_on_capital_employed,
            working_capital_days=ratios.working_capital_days,
            cash_conversion_cycle=ratios.cash_conversion_cycle,
            interest_coverage=ratios.interest_coverage_ratio,
            current_ratio=ratios.current_ratio,
            quick_ratio=ratios.quick_ratio,
            free_cash_flow_margin=ratios.free_cash_flow_margin,
        )
    else:
        ratios = analysis.ratios.finance
        record.update(
            net_interest_margin=ratios.net_interest_margin,
            cost_to_income=ratios.cost_to_income_ratio,
            loan_book_growth=ratios.loan_growth_rate,
            capital_adequacy=ratios.capital_adequacy_ratio,
        )
    return record


def _get_or_create_company(
    payload: RawCompanyPayload, analysis: CompanyAnalysis, store: CompanyStore
) -> tuple[int | None, str | None]:
    existing = store.get_company(payload.company_id)
    if existing.ok:
        return existing.record["id"], None

    extras = analysis.normalized.sector_specific_data
    created = store.create_company({
        "symbol": payload.company_id,
        "name": payload.name,
        "sector": payload.sector or None,
        "industry": extras.get("industry_type"),
        "company_type": analysis.company_type,
        "market_cap": payload.company_info.get("market_cap"),
    })
    if not created.ok:
        return None, created.error
    return created.record["id"], None


def import_company(
    payload: RawCompanyPayload,
    store: CompanyStore,
    assumptions: EstimationAssumptions = DEFAULT_ASSUMPTIONS,
    analysis: CompanyAnalysis | None = None,
) -> ImportResult:
    """Analyse one payload and persist company, annual metrics and ratios.

    Failing to create the company aborts the import. Failing to write
    annual metrics or ratios is recorded as a warning. Validation
    findings are carried over as warnings.

    Args:
        payload: Sector-tagged company payload.
        store: Target store.
        assumptions: Estimation constants for the sector ratios.
        analysis: An existing analysis of ``payload``; the pipeline only
            runs when this is None.

    Returns:
        ImportResult.
    """
    result = ImportResult()
    if analysis is None:
        analysis = analyze_payload(payload, assumptions)
    if not analysis.success:
        result.errors.extend(analysis.errors)
        return result

    if analysis.validation is not None:
        result.warnings.extend(
            f"{f.severity}: {f.message}"
            for f in analysis.validation.errors + analysis.validation.warnings
        )
    result.warnings.extend(analysis.data_warnings)

    company_id, error = _get_or_create_company(payload, analysis, store)
    if company_id is None:
        result.errors.append(error or "Failed to create or retrieve company")
        return result
    result.company_id = company_id

    data = analysis.normalized
    if data.annual_data:
        metrics = store.create_annual_metrics(_annual_metrics_record(company_id, data))
        result.metrics_created = metrics.ok
        if not metrics.ok:
            result.warnings.append(f"Failed to create annual metrics: {metrics.error}")
    else:
        result.warnings.append("No annual data, annual metrics skipped")

    stored = store.upsert_calculated_ratios(_ratios_record(company_id, analysis))
    result.ratios_calculated = stored.ok
    if not stored.ok:
        result.warnings.append(f"Failed to store ratios: {stored.error}")

    result.success = True
    logger.info(
        "%s: imported (metrics=%s, ratios=%s, %d warnings)",
        payload.company_id, result.metrics_created, result.ratios_calculated,
        len(result.warnings),
    )
    return result
