"""Trailing-twelve-month (TTM) sums, margins and growth from normalized quarters."""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass

import pandas as pd

from finnorm.data.models import NormalizedFinancialData
from finnorm.ratios.common import safe_ratio

logger = logging.getLogger(__name__)

TTM_QUARTERS = 4

_FLOW_COLUMNS = (
    "primary_income",
    "core_profit",
    "net_profit",
    "other_income",
    "depreciation",
)


@dataclass(frozen=True)
class TTMMetrics:
    """TTM outputs for one company.

    Attributes:
        quarters: Periods included in the current TTM window, latest first.
        ttm_primary_income: Sum of primary income over the window.
        ttm_core_profit: Sum of core profit.
        ttm_net_profit: Sum of net profit.
        ttm_other_income: Sum of other income.
        ttm_depreciation: Sum of depreciation.
        core_margin: TTM core profit / TTM primary income (percent).
        net_margin: TTM net profit / TTM primary income (percent).
        primary_income_growth: Growth vs. the prior four quarters, or None
            when fewer than eight quarters exist.
        net_profit_growth: Same, for net profit.
    """

    quarters: tuple[str, ...]
    ttm_primary_income: float
    ttm_core_profit: float
    ttm_net_profit: float
    ttm_other_income: float
    ttm_depreciation: float
    core_margin: float
    net_margin: float
    primary_income_growth: float | None
    net_profit_growth: float | None


def _safe_sum(series: pd.Series) -> float:
    """Sum a pandas Series, treating NaN values as zero."""
    result = series.sum(skipna=True)
    if pd.isna(result) or not math.isfinite(result):
        return 0.0
    return float(result)


def _ttm_sum(quarters: pd.DataFrame, column: str, start: int, count: int) -> float:
    """Sum a flow column over ``count`` rows beginning at row ``start`` (0 = latest)."""
    return _safe_sum(quarters[column].iloc[start:start + count])


def _growth(current: float, previous: float) -> float | None:
    if previous == 0.0:
        return None
    return (current - previous) / abs(previous)


def compute_ttm(data: NormalizedFinancialData) -> TTMMetrics | None:
    """Compute TTM metrics from the latest normalized quarters.

    Uses whatever quarters exist when fewer than four are available.

    Args:
        data: Normalized company data (quarters most recent first).

    Returns:
        TTMMetrics, or None when there are no quarters.
    """
    if not data.quarterly_data:
        return None

    quarters = pd.DataFrame([asdict(q) for q in data.quarterly_data])
    sums = {col: _ttm_sum(quarters, col, 0, TTM_QUARTERS) for col in _FLOW_COLUMNS}

    income_growth = None
    profit_growth = None
    if len(quarters) >= 2 * TTM_QUARTERS:
        income_growth = _growth(
            sums["primary_income"],
            _ttm_sum(quarters, "primary_income", TTM_QUARTERS, TTM_QUARTERS),
        )
        profit_growth = _growth(
            sums["net_profit"],
            _ttm_sum(quarters, "net_profit", TTM_QUARTERS, TTM_QUARTERS),
        )
    else:
        logger.debug("Fewer than %d quarters, TTM growth unavailable", 2 * TTM_QUARTERS)

    return TTMMetrics(
        quarters=tuple(quarters["period"].head(TTM_QUARTERS)),
        ttm_primary_income=sums["primary_income"],
        ttm_core_profit=sums["core_profit"],
        ttm_net_profit=sums["net_profit"],
        ttm_other_income=sums["other_income"],
        ttm_depreciation=sums["depreciation"],
        core_margin=safe_ratio(sums["core_profit"], sums["primary_income"]) * 100,
        net_margin=safe_ratio(sums["net_profit"], sums["primary_income"]) * 100,
        primary_income_growth=income_growth,
        net_profit_growth=profit_growth,
    )
