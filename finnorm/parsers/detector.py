"""Sector detection: finance vs. non-finance classification.

Three independent analyses feed a weighted score:

1. Field analysis over every period record: deposits, financing profit,
   sales, operating profit and so on, either reported directly or
   inferred from ratios (debt to liabilities, revenue to assets, ...).
2. Balance-sheet structure of the latest record: banking structure
   (debt-heavy liabilities or advance-heavy assets) vs. manufacturing
   structure (fixed-asset heavy, moderate leverage, working capital).
3. Keyword analysis over the company name and sector text.

The finance score is ``2*deposits + 2*financing_profit + 2*bank_structure
+ 1*banking_keywords``; the non-finance score mirrors it. The higher score
wins when it reaches the decision minimum, otherwise fallbacks apply.
All thresholds and weights live in ``SectorScoringConfig``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Mapping

from finnorm.config import SectorScoringConfig
from finnorm.data.models import (
    FINANCE,
    NON_FINANCE,
    UNKNOWN,
    RawCompanyPayload,
    SectorClassification,
    as_records,
)

logger = logging.getLogger(__name__)

BANKING_KEYWORDS = ("bank", "banking", "financial", "sector bank")
FMCG_KEYWORDS = ("consumer", "fmcg", "goods", "personal care", "moving consumer")
MANUFACTURING_KEYWORDS = ("manufacturing", "industrial", "ltd")
INSURANCE_FIELDS = ("premium_income", "claims_paid", "underwriting_profit")

DEFAULT_SCORING = SectorScoringConfig()


@dataclass(frozen=True)
class FieldAnalysis:
    has_deposits: bool = False
    has_financing_profit: bool = False
    has_net_interest_margin: bool = False
    has_borrowings: bool = False
    has_advances: bool = False
    has_sales: bool = False
    has_operating_profit: bool = False
    has_inventory: bool = False
    has_debtors: bool = False
    has_working_capital: bool = False


@dataclass(frozen=True)
class BalanceSheetAnalysis:
    has_bank_structure: bool = False
    debt_to_liabilities: float = 0.0
    has_advances_assets: bool = False
    has_manufacturing_structure: bool = False
    has_working_capital_components: bool = False
    has_fixed_assets: bool = False


@dataclass(frozen=True)
class KeywordAnalysis:
    banking: tuple[str, ...] = ()
    fmcg: tuple[str, ...] = ()
    manufacturing: tuple[str, ...] = ()
    score: float = 0.0


@dataclass(frozen=True)
class SectorDetection:
    """Full detection output: the classification plus each analysis."""

    classification: SectorClassification
    fields: FieldAnalysis
    balance_sheet: BalanceSheetAnalysis
    keywords: KeywordAnalysis


def _num(record: Mapping[str, Any], name: str) -> float | None:
    """Numeric field value, or None when absent or not a finite number."""
    value = record.get(name)
    if value is None or isinstance(value, bool):
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def _scaled(record: Mapping[str, Any], numerator: str, denominator: str) -> float | None:
    """numerator / max(denominator, 1), or None when either field is absent."""
    num = _num(record, numerator)
    den = _num(record, denominator)
    if num is None or den is None:
        return None
    return num / max(den, 1.0)


def _positive(record: Mapping[str, Any], name: str) -> bool:
    value = _num(record, name)
    return value is not None and value > 0


def _above(value: float | None, threshold: float) -> bool:
    return value is not None and value > threshold


def _within(value: float | None, low: float, high: float) -> bool:
    return value is not None and low < value < high


def _view(payload: RawCompanyPayload | Mapping[str, Any]) -> Mapping[str, Any]:
    return payload.data if isinstance(payload, RawCompanyPayload) else payload


def _periods(data: Mapping[str, Any]) -> list[Mapping[str, Any]]:
    quarterly = data.get("quarterly") or data.get("quarterly_data")
    annual = data.get("annual") or data.get("annual_data")
    return as_records(quarterly) + as_records(annual)


def _text_fields(data: Mapping[str, Any]) -> tuple[str, str]:
    info = data.get("company_info")
    info = info if isinstance(info, Mapping) else {}
    name = data.get("name") or info.get("name") or ""
    sector = data.get("sector") or info.get("sector") or ""
    return str(name), str(sector)


def analyze_fields(
    records: list[Mapping[str, Any]], scoring: SectorScoringConfig = DEFAULT_SCORING
) -> FieldAnalysis:
    """Scan every record for finance and non-finance field signals.

    Ratio-based inferences need both fields present; a missing field
    never counts as a signal.
    """
    has_deposits = any(
        _positive(d, "deposits")
        or _above(_scaled(d, "debt", "total_liabilities"), scoring.deposit_debt_ratio_min)
        for d in records
    )
    has_financing_profit = any(
        _positive(d, "financing_profit")
        or _within(
            _scaled(d, "revenue", "total_assets"),
            scoring.banking_revenue_ratio_min,
            scoring.banking_revenue_ratio_max,
        )
        for d in records
    )
    has_borrowings = any(_positive(d, "borrowings") or _positive(d, "debt") for d in records)
    has_advances = any(
        _positive(d, "advances")
        or _above(_scaled(d, "current_assets", "total_assets"), scoring.advances_asset_ratio_min)
        for d in records
    )
    has_sales = any(
        _positive(d, "sales") or (d.get("revenue") is not None and not has_deposits)
        for d in records
    )
    has_operating_profit = any(
        _positive(d, "operating_profit")
        or _above(_scaled(d, "revenue", "total_assets"), scoring.operating_turnover_min)
        for d in records
    )
    has_inventory = any(
        _positive(d, "inventory")
        or (
            _within(
                _scaled(d, "current_assets", "current_liabilities"),
                scoring.inventory_current_ratio_min,
                scoring.inventory_current_ratio_max,
            )
            and _above(_scaled(d, "revenue", "total_assets"), scoring.operating_turnover_min)
        )
        for d in records
    )
    has_debtors = any(
        _positive(d, "accounts_receivable")
        or (
            _above(_scaled(d, "revenue", "total_assets"), scoring.operating_turnover_min)
            and not has_deposits
        )
        for d in records
    )
    has_working_capital = False
    for d in records:
        ca = _num(d, "current_assets")
        cl = _num(d, "current_liabilities")
        ta = _num(d, "total_assets")
        if ca is None or cl is None or ta is None:
            continue
        if abs(ca - cl) / max(ta, 1.0) < scoring.working_capital_gap_max:
            has_working_capital = True
            break

    return FieldAnalysis(
        has_deposits=has_deposits,
        has_financing_profit=has_financing_profit,
        has_net_interest_margin=has_financing_profit,
        has_borrowings=has_borrowings,
        has_advances=has_advances,
        has_sales=has_sales,
        has_operating_profit=has_operating_profit,
        has_inventory=has_inventory,
        has_debtors=has_debtors,
        has_working_capital=has_working_capital,
    )


def analyze_balance_sheet(
    latest: Mapping[str, Any], scoring: SectorScoringConfig = DEFAULT_SCORING
) -> BalanceSheetAnalysis:
    """Classify the structure of the latest balance-sheet-bearing record."""
    debt = _num(latest, "debt") or 0.0
    liabilities = _num(latest, "total_liabilities") or 1.0
    debt_to_liabilities = debt / liabilities

    total_assets = _num(latest, "total_assets")
    current_assets = _num(latest, "current_assets")
    current_liabilities = _num(latest, "current_liabilities")

    if total_assets is None:
        # Ratios over an unknown asset base carry no signal.
        current_asset_ratio = None
        leverage = None
    else:
        current_asset_ratio = (current_assets or 0.0) / max(total_assets, 1.0)
        leverage = debt / max(total_assets, 1.0)

    has_advances_assets = _above(current_asset_ratio, scoring.advances_asset_ratio_min)
    has_fixed_assets = (
        current_asset_ratio is not None
        and current_asset_ratio < scoring.manufacturing_current_ratio_max
    )
    has_wc_components = (current_assets or 0.0) > 0 and (current_liabilities or 0.0) > 0
    has_manufacturing = (
        has_fixed_assets
        and has_wc_components
        and leverage is not None
        and leverage < scoring.manufacturing_leverage_max
    )

    return BalanceSheetAnalysis(
        has_bank_structure=(
            debt_to_liabilities > scoring.bank_debt_ratio_min or has_advances_assets
        ),
        debt_to_liabilities=debt_to_liabilities,
        has_advances_assets=has_advances_assets,
        has_manufacturing_structure=has_manufacturing,
        has_working_capital_components=has_wc_components,
        has_fixed_assets=has_fixed_assets,
    )


def analyze_keywords(
    name: str,
    sector: str,
    records: list[Mapping[str, Any]],
    scoring: SectorScoringConfig = DEFAULT_SCORING,
) -> KeywordAnalysis:
    """Match keyword sets against the lower-cased name and sector text.

    Insurance-specific fields (premium income, claims paid, underwriting
    profit) or the word "insurance" add a banking-adjacent keyword.
    """
    text = f"{name} {sector}".lower()
    banking = [k for k in BANKING_KEYWORDS if k in text]
    fmcg = [k for k in FMCG_KEYWORDS if k in text]
    manufacturing = [k for k in MANUFACTURING_KEYWORDS if k in text]

    has_insurance_fields = any(
        field in record for record in records for field in INSURANCE_FIELDS
    )
    if has_insurance_fields or "insurance" in text:
        banking.append("insurance")

    score = max(
        min(len(banking) / scoring.banking_keyword_threshold, 1.0),
        min(len(fmcg) / scoring.fmcg_keyword_threshold, 1.0),
        min(len(manufacturing) / scoring.manufacturing_keyword_threshold, 1.0),
    )
    return KeywordAnalysis(
        banking=tuple(banking),
        fmcg=tuple(fmcg),
        manufacturing=tuple(manufacturing),
        score=score,
    )


def sector_scores(
    fields: FieldAnalysis,
    sheet: BalanceSheetAnalysis,
    keywords: KeywordAnalysis,
    scoring: SectorScoringConfig = DEFAULT_SCORING,
) -> tuple[int, int]:
    """Return (finance_score, non_finance_score)."""
    w = scoring.signal_weight
    finance = (
        w * fields.has_deposits
        + w * fields.has_financing_profit
        + w * sheet.has_bank_structure
        + scoring.keyword_weight * bool(keywords.banking)
    )
    non_finance = (
        w * (fields.has_sales and not fields.has_deposits)
        + w * fields.has_operating_profit
        + w * sheet.has_manufacturing_structure
        + scoring.keyword_weight * bool(keywords.fmcg)
    )
    return finance, non_finance


def determine_sector(
    fields: FieldAnalysis,
    sheet: BalanceSheetAnalysis,
    keywords: KeywordAnalysis,
    scoring: SectorScoringConfig = DEFAULT_SCORING,
) -> tuple[str, str]:
    """Pick (sector, sub_sector) from the combined scores and fallbacks."""
    finance, non_finance = sector_scores(fields, sheet, keywords, scoring)

    if finance > non_finance and finance >= scoring.decision_min_score:
        if "bank" in keywords.banking:
            return FINANCE, "banking"
        if "insurance" in keywords.banking:
            return FINANCE, "insurance"
        return FINANCE, "nbfc"
    if non_finance > finance and non_finance >= scoring.decision_min_score:
        return NON_FINANCE, "fmcg" if keywords.fmcg else "manufacturing"

    # Fallbacks for weak or tied evidence
    if fields.has_financing_profit and fields.has_borrowings and not fields.has_deposits:
        return FINANCE, "nbfc"
    if "insurance" in keywords.banking:
        return FINANCE, "insurance"
    if finance >= 1 or fields.has_financing_profit or fields.has_borrowings:
        return FINANCE, "nbfc"
    return UNKNOWN, UNKNOWN


def _confidence(
    sector: str,
    fields: FieldAnalysis,
    sheet: BalanceSheetAnalysis,
    keywords: KeywordAnalysis,
    warnings: set[str],
    scoring: SectorScoringConfig,
) -> float:
    if sector == UNKNOWN:
        return scoring.unknown_confidence

    confidence = scoring.base_confidence
    if sector == FINANCE:
        signals = (
            (fields.has_deposits, scoring.primary_signal_increment),
            (fields.has_financing_profit, scoring.primary_signal_increment),
            (sheet.has_bank_structure, scoring.structure_increment),
            (bool(keywords.banking), scoring.keyword_increment),
        )
    else:
        signals = (
            (fields.has_sales and not fields.has_deposits, scoring.primary_signal_increment),
            (fields.has_operating_profit, scoring.primary_signal_increment),
            (sheet.has_manufacturing_structure, scoring.structure_increment),
            (bool(keywords.fmcg), scoring.keyword_increment),
        )
    confidence += sum(increment for present, increment in signals if present)

    if "mixed_sector_signals" in warnings:
        confidence *= scoring.conflict_multiplier
    if "missing_balance_sheet" in warnings:
        confidence *= scoring.missing_balance_sheet_multiplier
    return min(confidence, scoring.max_confidence)


def _indicators(
    sector: str, fields: FieldAnalysis, sheet: BalanceSheetAnalysis, keywords: KeywordAnalysis
) -> frozenset[str]:
    if sector == FINANCE:
        candidates = {
            "deposits_field_present": fields.has_deposits,
            "financing_profit_structure": fields.has_financing_profit,
            "banking_balance_sheet": sheet.has_bank_structure,
            "sector_keyword_bank": "bank" in keywords.banking,
        }
    elif sector == NON_FINANCE:
        candidates = {
            "sales_field_present": fields.has_sales,
            "operating_profit_structure": fields.has_operating_profit,
            "manufacturing_balance_sheet": sheet.has_manufacturing_structure,
            "sector_keyword_fmcg": bool(keywords.fmcg),
        }
    else:
        candidates = {}
    return frozenset(name for name, present in candidates.items() if present)


def analyze_sector(
    payload: RawCompanyPayload | Mapping[str, Any] | None,
    scoring: SectorScoringConfig = DEFAULT_SCORING,
) -> SectorDetection:
    """Run all three analyses and return the classification with evidence.

    Accepts detector-shaped input (``quarterly``/``annual`` as arrays or
    keyed objects, ``name``, ``sector``) or a provider payload
    (``quarterly_data``/``annual_data``, ``company_info``). Balance-sheet
    records, when present, join the field analysis and override the
    latest period's fields in the structure analysis.

    Args:
        payload: Raw company payload.
        scoring: Thresholds and weights.

    Returns:
        SectorDetection. Input with no quarterly and no annual records is
        classified unknown with confidence 0 and an insufficient_data error.
    """
    data = _view(payload) if payload is not None else None
    if not isinstance(data, Mapping):
        return _insufficient()

    periods = _periods(data)
    if not periods:
        return _insufficient()

    sheets = as_records(data.get("balance_sheet"))
    records = periods + sheets
    latest = {**periods[0], **sheets[0]} if sheets else periods[0]
    name, sector_text = _text_fields(data)

    fields = analyze_fields(records, scoring)
    sheet = analyze_balance_sheet(latest, scoring)
    keywords = analyze_keywords(name, sector_text, records, scoring)
    sector, sub_sector = determine_sector(fields, sheet, keywords, scoring)

    warnings: set[str] = set()
    if "balance_sheet" in data and data["balance_sheet"] is None:
        warnings.add("missing_balance_sheet")
    if (fields.has_sales and fields.has_deposits) or (
        fields.has_operating_profit and fields.has_financing_profit
    ):
        warnings.add("mixed_sector_signals")

    confidence = _confidence(sector, fields, sheet, keywords, warnings, scoring)
    classification = SectorClassification(
        sector=sector,
        sub_sector=sub_sector,
        confidence=confidence,
        indicators=_indicators(sector, fields, sheet, keywords),
        warnings=frozenset(warnings),
    )
    logger.debug(
        "%s: detected %s/%s (confidence %.2f)", name or "<unnamed>",
        sector, sub_sector, confidence,
    )
    return SectorDetection(
        classification=classification, fields=fields, balance_sheet=sheet, keywords=keywords
    )


def detect_sector(
    payload: RawCompanyPayload | Mapping[str, Any] | None,
    scoring: SectorScoringConfig = DEFAULT_SCORING,
) -> SectorClassification:
    """Classify a company payload as finance, non_finance or unknown.

    Args:
        payload: Raw company payload.
        scoring: Thresholds and weights.

    Returns:
        SectorClassification.
    """
    return analyze_sector(payload, scoring).classification


def _insufficient() -> SectorDetection:
    return SectorDetection(
        classification=SectorClassification(
            sector=UNKNOWN,
            sub_sector=UNKNOWN,
            confidence=0.0,
            errors=("insufficient_data",),
        ),
        fields=FieldAnalysis(),
        balance_sheet=BalanceSheetAnalysis(),
        keywords=KeywordAnalysis(),
    )
