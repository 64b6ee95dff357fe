"""Helpers shared by the sector parsers: field tables, structure checks, scoring."""

from __future__ import annotations

import math
from typing import Any, Mapping, Sequence, TypeVar

from finnorm.config import TARGET_QUARTERS, TARGET_YEARS
from finnorm.data.models import CashFlowRecord
from finnorm.ratios.common import pick, safe_float

T = TypeVar("T")

# Ratio arrays with at least this many entries count as full coverage.
TARGET_RATIO_ENTRIES = 10

# Column mappings: provider field aliases -> cash-flow record field
CASH_FLOW_FIELDS: dict[str, tuple[str, ...]] = {
    "operating_cash_flow": ("operating_activity", "operating_cash_flow"),
    "investing_cash_flow": ("investing_activity", "investing_cash_flow"),
    "financing_cash_flow": ("financing_activity", "financing_cash_flow"),
    "net_cash_flow": ("net_cash_flow",),
}

ASSET_COMPONENTS = ("fixed_assets", "cwip", "investments", "other_assets")


def is_finite_number(value: object) -> bool:
    """True for int/float values that are finite (booleans excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def period_label(raw: Mapping[str, Any]) -> str:
    """Period identifier of a raw record (``period``, ``year`` or ``date``)."""
    for key in ("period", "year", "date"):
        value = raw.get(key)
        if value not in (None, ""):
            return str(value)
    return ""


def build_record(
    record_cls: type[T],
    raw: Mapping[str, Any],
    fields: Mapping[str, tuple[str, ...]],
) -> T:
    """Copy ``raw`` into ``record_cls`` through a field alias table.

    Args:
        record_cls: Dataclass with a ``period`` field plus the table's fields.
        raw: Provider record.
        fields: Target field -> source aliases in priority order.

    Returns:
        Populated record; fields absent from ``raw`` are 0.0.
    """
    values = {name: pick(raw, *aliases) for name, aliases in fields.items()}
    return record_cls(period=period_label(raw), **values)  # type: ignore[call-arg]


def build_cash_flows(raw_cash_flow: Sequence[Mapping[str, Any]]) -> tuple[CashFlowRecord, ...]:
    return tuple(build_record(CashFlowRecord, cf, CASH_FLOW_FIELDS) for cf in raw_cash_flow)


def resolve_total_assets(raw: Mapping[str, Any]) -> float:
    """Total assets as reported, else the sum of asset components.

    The fallback is fixed assets + capital work in progress + investments
    + other assets, plus current assets when the provider reports them
    separately.

    Args:
        raw: Provider balance-sheet record.

    Returns:
        Total assets.
    """
    reported = safe_float(raw.get("total_assets"))
    if reported > 0:
        return reported
    total = sum(safe_float(raw.get(name)) for name in ASSET_COMPONENTS)
    return total + safe_float(raw.get("current_assets"))


def ratio_series(ratios: Mapping[str, Any] | None, name: str) -> tuple[float, ...]:
    """Provider ratio array as a tuple of floats (non-numeric entries become 0.0)."""
    if not ratios:
        return ()
    values = ratios.get(name)
    if not isinstance(values, (list, tuple)):
        return ()
    return tuple(safe_float(v) for v in values)


def section(raw_data: Mapping[str, Any], name: str) -> list[Mapping[str, Any]]:
    """Records of a provider section, or an empty list when absent or malformed."""
    value = raw_data.get(name)
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, Mapping)]


def check_structure(raw_data: object, primary_field: str) -> tuple[str, ...]:
    """Structural checks shared by both parsers.

    Args:
        raw_data: Provider payload.
        primary_field: Field every quarter must carry as a finite number.

    Returns:
        Empty tuple when the payload is parseable, else a single error code.
    """
    if raw_data is None or not isinstance(raw_data, Mapping):
        return ("null_input_data",)
    quarterly = raw_data.get("quarterly_data")
    if not isinstance(quarterly, (list, tuple)) or not quarterly:
        return ("missing_quarterly_data",)
    if not isinstance(raw_data.get("balance_sheet"), (list, tuple)):
        return ("missing_balance_sheet_data",)
    for quarter in quarterly:
        if not isinstance(quarter, Mapping):
            return ("invalid_quarterly_data_format",)
        if not isinstance(quarter.get("period"), str):
            return ("invalid_quarterly_data_format",)
        if not is_finite_number(quarter.get(primary_field)):
            return ("invalid_quarterly_data_format",)
    return ()


def data_quality_score(raw_data: Mapping[str, Any]) -> float:
    """Section-presence quality score.

    Starts at 100, deducts 20/10/15/10/5 for missing quarterly, annual,
    balance-sheet, cash-flow and ratio sections, and awards 5 for each
    section at full coverage. Clamped to [0, 100].
    """
    quarterly = section(raw_data, "quarterly_data")
    annual = section(raw_data, "annual_data")
    balance = section(raw_data, "balance_sheet")
    cash_flow = section(raw_data, "cash_flow")

    score = 100.0
    if not quarterly:
        score -= 20
    if not annual:
        score -= 10
    if not balance:
        score -= 15
    if not cash_flow:
        score -= 10
    if not raw_data.get("ratios"):
        score -= 5

    if len(quarterly) >= TARGET_QUARTERS:
        score += 5
    if len(annual) >= TARGET_YEARS:
        score += 5
    if len(balance) >= TARGET_QUARTERS:
        score += 5
    if len(cash_flow) >= TARGET_QUARTERS:
        score += 5
    return min(max(score, 0.0), 100.0)


def _coverage(count: int, target: int) -> float:
    return min(count / target, 1.0) * 100


def completeness_score(
    n_quarterly: int,
    n_annual: int,
    n_balance_sheet: int,
    n_ratio_entries: int,
    n_cash_flow: int,
    penalize_short_quarters: bool = True,
) -> float:
    """Weighted section coverage against target counts.

    Quarterly, annual and balance-sheet coverage weigh 40/30/20; the last
    10 is shared between ratio-array and cash-flow coverage. Each section
    is capped at 100% coverage. With ``penalize_short_quarters`` the blend
    is scaled by quarterly coverage when fewer than the target quarters
    are present.

    Returns:
        Completeness in [0, 100], rounded to one decimal.
    """
    score = (
        _coverage(n_quarterly, TARGET_QUARTERS) * 0.40
        + _coverage(n_annual, TARGET_YEARS) * 0.30
        + _coverage(n_balance_sheet, TARGET_QUARTERS) * 0.20
        + (
            _coverage(n_ratio_entries, TARGET_RATIO_ENTRIES)
            + _coverage(n_cash_flow, TARGET_QUARTERS)
        ) / 2 * 0.10
    )
    if penalize_short_quarters and n_quarterly < TARGET_QUARTERS:
        score *= n_quarterly / TARGET_QUARTERS
    return round(min(max(score, 0.0), 100.0), 1)
