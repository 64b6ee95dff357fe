"""Tests for universal ratios."""

from __future__ import annotations

import math

import pytest

from finnorm.ratios.common import pick, safe_float, safe_ratio
from finnorm.ratios.universal import (
    UniversalRatios,
    UniversalRatiosInput,
    calculate_price_to_book,
    calculate_price_to_earnings,
    calculate_profit_growth,
    calculate_revenue_growth,
    calculate_universal_ratios,
)


# --- Test fixtures ---


def _make_snapshots(revenues: list[float], profits: list[float] | None = None) -> list[dict]:
    profits = profits or [r * 0.1 for r in revenues]
    return [
        {
            "revenue": revenue,
            "net_income": profit,
            "total_assets": 2000.0,
            "shareholders_equity": 500.0,
            "debt": 250.0,
        }
        for revenue, profit in zip(revenues, profits)
    ]


class TestSafeHelpers:
    """Tests for the shared numeric helpers."""

    @pytest.mark.parametrize("value", [None, "abc", float("nan"), float("inf"), True])
    def test_safe_float_rejects(self, value) -> None:
        """Non-numeric, non-finite and boolean values become 0."""
        assert safe_float(value) == 0.0

    def test_safe_float_numeric_string(self) -> None:
        """Numeric strings convert."""
        assert safe_float("12.5") == 12.5

    @pytest.mark.parametrize(
        ("num", "den"), [(10.0, 0.0), (0.0, 5.0), (None, 5.0), (10.0, None), (1.0, float("nan"))]
    )
    def test_safe_ratio_zero_cases(self, num, den) -> None:
        """Undefined divisions yield 0."""
        assert safe_ratio(num, den) == 0.0

    def test_safe_ratio(self) -> None:
        """Defined divisions divide."""
        assert safe_ratio(3.0, 4.0) == 0.75

    def test_pick_first_non_zero(self) -> None:
        """pick skips zero and missing aliases."""
        assert pick({"a": 0.0, "b": None, "c": 7.0}, "a", "b", "c") == 7.0
        assert pick({}, "a") == 0.0


class TestGrowth:
    """Tests for revenue and profit growth."""

    def test_revenue_one_year(self) -> None:
        """One-year growth is a simple delta."""
        assert calculate_revenue_growth(110.0, 100.0, 1) == pytest.approx(0.1)

    def test_revenue_cagr(self) -> None:
        """Multi-year growth is a CAGR."""
        assert calculate_revenue_growth(133.1, 100.0, 3) == pytest.approx(0.1)

    def test_revenue_zero_previous(self) -> None:
        """A zero base gives 0."""
        assert calculate_revenue_growth(100.0, 0.0, 3) == 0.0

    def test_revenue_vanished(self) -> None:
        """Zero current revenue is a total loss."""
        assert calculate_revenue_growth(0.0, 100.0, 3) == -1.0

    def test_revenue_non_positive_horizon(self) -> None:
        """Horizons below one year give 0."""
        assert calculate_revenue_growth(110.0, 100.0, 0) == 0.0

    def test_revenue_sign_change(self) -> None:
        """A negative ratio has no real CAGR and gives 0."""
        assert calculate_revenue_growth(-50.0, 100.0, 3) == 0.0

    def test_profit_loss_to_profit(self) -> None:
        """Turning a loss into profit reports +100%."""
        assert calculate_profit_growth(50.0, -20.0, 3) == 1.0

    def test_profit_to_loss(self) -> None:
        """Turning profit into a loss reports -100%."""
        assert calculate_profit_growth(-20.0, 50.0, 3) == -1.0

    def test_profit_two_losses(self) -> None:
        """Two losses compare by magnitude."""
        assert calculate_profit_growth(-10.0, -40.0, 2) == pytest.approx(-0.5)

    def test_profit_one_year_uses_magnitude(self) -> None:
        """One-year growth divides by the absolute base."""
        assert calculate_profit_growth(50.0, -20.0, 1) == pytest.approx(3.5)

    def test_profit_zero_base(self) -> None:
        """A zero base reports +100% only for a profit."""
        assert calculate_profit_growth(10.0, 0.0, 3) == 1.0
        assert calculate_profit_growth(-10.0, 0.0, 3) == 0.0


class TestMultiples:
    """Tests for P/E and P/B."""

    def test_pass_through(self) -> None:
        """Provided multiples are returned unchanged."""
        assert calculate_price_to_earnings(250.0, 20.0) == 20.0
        assert calculate_price_to_book(250.0, 4.0) == 4.0

    def test_derived(self) -> None:
        """Derived multiples divide price by per-share figures."""
        assert calculate_price_to_earnings(250.0, 12.5, is_eps=True) == 20.0
        assert calculate_price_to_book(250.0, 50.0, is_book_value=True) == 5.0

    def test_derived_zero_eps(self) -> None:
        """Zero EPS gives 0, never infinity."""
        assert calculate_price_to_earnings(250.0, 0.0, is_eps=True) == 0.0


class TestCalculateUniversalRatios:
    """Tests for the full universal set."""

    def test_empty(self) -> None:
        """No snapshots returns zeros."""
        assert calculate_universal_ratios(UniversalRatiosInput([])) == UniversalRatios()

    def test_levels(self) -> None:
        """ROE, margin, turnover and leverage from the latest snapshot."""
        ratios = calculate_universal_ratios(UniversalRatiosInput(_make_snapshots([1000.0])))
        assert ratios.roe == pytest.approx(0.2)
        assert ratios.net_profit_margin == pytest.approx(0.1)
        assert ratios.asset_turnover == pytest.approx(0.5)
        assert ratios.debt_to_equity == pytest.approx(0.5)

    def test_growth_horizons(self) -> None:
        """Index n is n years back."""
        revenues = [1000.0 * 1.1 ** (5 - i) for i in range(6)]
        ratios = calculate_universal_ratios(UniversalRatiosInput(_make_snapshots(revenues)))
        assert ratios.revenue_growth_1y == pytest.approx(0.1)
        assert ratios.revenue_growth_3y == pytest.approx(0.1)
        assert ratios.revenue_growth_5y == pytest.approx(0.1)
        assert ratios.profit_growth_5y == pytest.approx(0.1)

    def test_short_history(self) -> None:
        """Horizons beyond the history are 0."""
        ratios = calculate_universal_ratios(
            UniversalRatiosInput(_make_snapshots([1100.0, 1000.0]))
        )
        assert ratios.revenue_growth_1y == pytest.approx(0.1)
        assert ratios.revenue_growth_3y == 0.0
        assert ratios.revenue_growth_5y == 0.0

    def test_zero_equity(self) -> None:
        """Zero equity zeroes ROE and leverage without raising."""
        snapshots = _make_snapshots([1000.0])
        snapshots[0]["shareholders_equity"] = 0.0
        ratios = calculate_universal_ratios(UniversalRatiosInput(snapshots))
        assert ratios.roe == 0.0
        assert ratios.debt_to_equity == 0.0

    def test_market_multiples(self) -> None:
        """Provided multiples pass through; derivation is opt-in."""
        market = {"stock_price": 100.0, "pe_ratio": 15.0, "eps": 4.0}
        passed = calculate_universal_ratios(UniversalRatiosInput(_make_snapshots([1.0]), market))
        derived = calculate_universal_ratios(
            UniversalRatiosInput(_make_snapshots([1.0]), market, derive_multiples=True)
        )
        assert passed.price_to_earnings == 15.0
        assert derived.price_to_earnings == 25.0
        assert derived.price_to_book == 0.0

    def test_all_finite(self) -> None:
        """Garbage inputs still produce finite ratios."""
        snapshots = [{"revenue": "x", "net_income": float("nan"), "total_assets": None}]
        ratios = calculate_universal_ratios(UniversalRatiosInput(snapshots))
        assert all(math.isfinite(v) for v in vars(ratios).values())
