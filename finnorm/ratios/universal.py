"""Universal ratios shared by every company type.

Twelve ratios: return on equity, net profit margin, revenue and profit
growth at 1/3/5-year horizons, asset turnover, debt to equity, and the
price-to-earnings / price-to-book market multiples.

Every function returns 0.0 when its denominator is zero or missing, so a
``UniversalRatios`` is always fully populated with finite values.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from finnorm.ratios.common import safe_float, safe_ratio

logger = logging.getLogger(__name__)

GROWTH_HORIZONS = (1, 3, 5)


@dataclass(frozen=True)
class UniversalRatios:
    """Universal ratio set. Growth rates and margins are fractions."""

    roe: float = 0.0
    net_profit_margin: float = 0.0
    revenue_growth_1y: float = 0.0
    revenue_growth_3y: float = 0.0
    revenue_growth_5y: float = 0.0
    profit_growth_1y: float = 0.0
    profit_growth_3y: float = 0.0
    profit_growth_5y: float = 0.0
    asset_turnover: float = 0.0
    debt_to_equity: float = 0.0
    price_to_earnings: float = 0.0
    price_to_book: float = 0.0


@dataclass(frozen=True)
class UniversalRatiosInput:
    """Inputs for the universal ratio set.

    Attributes:
        financial_data: Annual (or quarterly) snapshots, most recent first,
            each with revenue, net_income, total_assets,
            shareholders_equity and debt. Index ``n`` is ``n`` periods
            before the latest.
        market_data: Optional stock_price, pe_ratio, pb_ratio, eps and
            book_value_per_share.
        derive_multiples: Compute P/E and P/B from price and per-share
            figures instead of passing provided multiples through.
    """

    financial_data: Sequence[Mapping[str, Any]]
    market_data: Mapping[str, Any] = field(default_factory=dict)
    derive_multiples: bool = False


def calculate_roe(net_income: float, shareholders_equity: float) -> float:
    return safe_ratio(net_income, shareholders_equity)


def calculate_net_profit_margin(net_income: float, revenue: float) -> float:
    return safe_ratio(net_income, revenue)


def calculate_revenue_growth(current: float, previous: float, years: int) -> float:
    """Revenue growth as a simple delta (1 year) or CAGR (several years).

    Args:
        current: Latest revenue.
        previous: Revenue ``years`` periods earlier.
        years: Horizon in years.

    Returns:
        Growth as a fraction. 0.0 when the base is missing or the horizon
        is not positive, -1.0 when current revenue has vanished.
    """
    current = safe_float(current)
    previous = safe_float(previous)
    if previous == 0.0:
        return 0.0
    if current == 0.0:
        return -1.0
    if years <= 0:
        return 0.0
    if years == 1:
        return (current - previous) / previous
    ratio = current / previous
    if ratio <= 0.0:
        return 0.0
    return ratio ** (1.0 / years) - 1.0


def calculate_profit_growth(current: float, previous: float, years: int) -> float:
    """Sign-aware profit growth.

    A move from loss to profit reports +100% and from profit to loss
    -100% on multi-year horizons; two losses compare by magnitude.

    Args:
        current: Latest net income.
        previous: Net income ``years`` periods earlier.
        years: Horizon in years.

    Returns:
        Growth as a fraction.
    """
    current = safe_float(current)
    previous = safe_float(previous)
    if previous == 0.0:
        return 1.0 if current > 0 else 0.0
    if years <= 0:
        return 0.0
    if years == 1:
        return (current - previous) / abs(previous)
    if previous < 0 < current:
        return 1.0
    if previous > 0 > current:
        return -1.0
    return (abs(current) / abs(previous)) ** (1.0 / years) - 1.0


def calculate_asset_turnover(revenue: float, total_assets: float) -> float:
    return safe_ratio(revenue, total_assets)


def calculate_debt_to_equity(total_debt: float, shareholders_equity: float) -> float:
    return safe_ratio(total_debt, shareholders_equity)


def calculate_price_to_earnings(
    stock_price: float, pe_or_eps: float, is_eps: bool = False
) -> float:
    """Pass a provided P/E through, or derive it from EPS when ``is_eps``."""
    if is_eps:
        return safe_ratio(stock_price, pe_or_eps)
    return safe_float(pe_or_eps)


def calculate_price_to_book(
    stock_price: float, pb_or_book_value: float, is_book_value: bool = False
) -> float:
    """Pass a provided P/B through, or derive it from book value per share."""
    if is_book_value:
        return safe_ratio(stock_price, pb_or_book_value)
    return safe_float(pb_or_book_value)


def _growth_pair(
    data: Sequence[Mapping[str, Any]], name: str, years: int
) -> tuple[float, float] | None:
    if len(data) <= years:
        return None
    return safe_float(data[0].get(name)), safe_float(data[years].get(name))


def calculate_universal_ratios(ratio_input: UniversalRatiosInput) -> UniversalRatios:
    """Compute the universal ratio set.

    Growth at an ``n``-year horizon compares index 0 with index ``n``;
    horizons the history does not reach are reported as 0.0.

    Args:
        ratio_input: Snapshots (most recent first) and market data.

    Returns:
        UniversalRatios. All zeros when no snapshot is available.
    """
    data = ratio_input.financial_data
    if not data:
        logger.debug("No financial snapshots, returning zeroed universal ratios")
        return UniversalRatios()

    latest = data[0]
    revenue = safe_float(latest.get("revenue"))
    net_income = safe_float(latest.get("net_income"))
    equity = safe_float(latest.get("shareholders_equity"))

    growth: dict[str, float] = {}
    for years in GROWTH_HORIZONS:
        revenue_pair = _growth_pair(data, "revenue", years)
        profit_pair = _growth_pair(data, "net_income", years)
        growth[f"revenue_growth_{years}y"] = (
            calculate_revenue_growth(*revenue_pair, years) if revenue_pair else 0.0
        )
        growth[f"profit_growth_{years}y"] = (
            calculate_profit_growth(*profit_pair, years) if profit_pair else 0.0
        )

    market = ratio_input.market_data
    price = safe_float(market.get("stock_price"))
    if ratio_input.derive_multiples:
        pe = calculate_price_to_earnings(price, safe_float(market.get("eps")), is_eps=True)
        pb = calculate_price_to_book(
            price, safe_float(market.get("book_value_per_share")), is_book_value=True
        )
    else:
        pe = calculate_price_to_earnings(price, safe_float(market.get("pe_ratio")))
        pb = calculate_price_to_book(price, safe_float(market.get("pb_ratio")))

    return UniversalRatios(
        roe=calculate_roe(net_income, equity),
        net_profit_margin=calculate_net_profit_margin(net_income, revenue),
        asset_turnover=calculate_asset_turnover(
            revenue, safe_float(latest.get("total_assets"))
        ),
        debt_to_equity=calculate_debt_to_equity(safe_float(latest.get("debt")), equity),
        price_to_earnings=pe,
        price_to_book=pb,
        **growth,
    )
