"""Tests for ratio sets and trailing-twelve-month metrics built from normalized data."""

from __future__ import annotations

from dataclasses import asdict, replace

import pytest

from finnorm.data.models import FINANCE, NON_FINANCE
from finnorm.parsers.finance import parse_finance_data
from finnorm.parsers.non_finance import parse_non_finance_data
from finnorm.parsers.normalizer import normalize_financial_data
from finnorm.ratios.finance import FinanceRatios
from finnorm.ratios.non_finance import NonFinanceRatios
from finnorm.ratios.sets import (
    RatioSets,
    calculate_ratio_sets,
    finance_snapshots,
    universal_snapshots,
)
from finnorm.ratios.ttm import compute_ttm


# --- Test fixtures ---


def _normalize(raw: dict, company_type: str):
    parser = parse_non_finance_data if company_type == NON_FINANCE else parse_finance_data
    return normalize_financial_data(parser(raw).data, company_type).normalized_data


class TestSnapshots:
    """Tests for ratio inputs derived from normalized data."""

    def test_universal_snapshots_prefer_annual(self, make_non_finance_raw) -> None:
        """Annual periods are used when present, joined to balance sheets."""
        data = _normalize(make_non_finance_raw(), NON_FINANCE)
        snapshots = universal_snapshots(data)
        assert len(snapshots) == 6
        assert snapshots[0]["revenue"] == 4000.0
        assert snapshots[0]["shareholders_equity"] == 500.0
        assert snapshots[0]["debt"] == 500.0

    def test_universal_snapshots_fall_back_to_quarters(self, make_non_finance_raw) -> None:
        """Without annual data the quarters are used."""
        data = _normalize(make_non_finance_raw(n_years=0), NON_FINANCE)
        assert universal_snapshots(data)[0]["revenue"] == 1000.0

    def test_finance_snapshots_carry_direct_fields(self, make_finance_raw) -> None:
        """Bank snapshots carry financing profit, deposits and loans."""
        data = _normalize(make_finance_raw(), FINANCE)
        snapshot = finance_snapshots(data)[0]
        assert snapshot["net_interest_income"] == 100.0
        assert snapshot["deposits"] == 8000.0
        assert snapshot["loans"] == 6000.0
        assert snapshot["shareholders_equity"] == 1000.0


class TestCalculateRatioSets:
    """Tests for sector dispatch."""

    def test_non_finance(self, make_non_finance_raw) -> None:
        """Operating companies get non-finance ratios and zeroed bank ratios."""
        data = _normalize(make_non_finance_raw(), NON_FINANCE)
        sets = calculate_ratio_sets(data, {"stock_price": 250.0, "pe_ratio": 20.0})
        assert sets.finance == FinanceRatios()
        assert sets.non_finance.operating_profit_margin == pytest.approx(20.0)
        assert sets.non_finance.cash_conversion_cycle == pytest.approx(42.0)
        assert sets.universal.roe == pytest.approx(480.0 / 500.0)
        assert sets.universal.revenue_growth_1y == pytest.approx(200.0 / 3800.0)
        assert sets.universal.price_to_earnings == 20.0

    def test_non_finance_uses_derived_core_profit(self, make_non_finance_raw) -> None:
        """Without operating_profit, sales minus expenses drives margins and coverage."""
        raw = make_non_finance_raw()
        for quarter in raw["quarterly_data"]:
            del quarter["operating_profit"]
        data = _normalize(raw, NON_FINANCE)
        assert data.quarterly_data[0].core_profit == 200.0

        ratios = calculate_ratio_sets(data).non_finance
        reported = calculate_ratio_sets(_normalize(make_non_finance_raw(), NON_FINANCE)).non_finance
        assert ratios.operating_profit_margin == pytest.approx(20.0)
        assert ratios.interest_coverage_ratio == pytest.approx(22.0)
        assert ratios == reported

    def test_finance(self, make_finance_raw) -> None:
        """Banks get finance ratios from reported fields."""
        data = _normalize(make_finance_raw(), FINANCE)
        sets = calculate_ratio_sets(data)
        assert sets.non_finance == NonFinanceRatios()
        assert sets.finance.net_interest_margin == pytest.approx(0.01)
        assert sets.finance.cost_to_income_ratio == pytest.approx(0.2)
        assert sets.finance.loan_growth_rate == 0.0
        assert sets.finance.capital_adequacy_ratio == pytest.approx(0.1)

    def test_flat_merges_sector_set(self) -> None:
        """flat() merges universal ratios with the matching sector set only."""
        sets = RatioSets()
        non_finance = sets.flat(NON_FINANCE)
        finance = sets.flat(FINANCE)
        assert "operating_profit_margin" in non_finance
        assert "net_interest_margin" not in non_finance
        assert "net_interest_margin" in finance
        assert "roe" in finance
        assert set(sets.flat("unknown")) == set(asdict(sets.universal))


class TestComputeTTM:
    """Tests for trailing-twelve-month metrics."""

    def test_sums_and_growth(self, make_non_finance_raw) -> None:
        """The latest four quarters are summed and compared with the prior four."""
        data = _normalize(make_non_finance_raw(n_quarters=8), NON_FINANCE)
        ttm = compute_ttm(data)
        assert ttm.quarters == ("Mar 2024", "Dec 2023", "Sep 2023", "Jun 2023")
        assert ttm.ttm_primary_income == pytest.approx(3940.0)
        assert ttm.ttm_net_profit == pytest.approx(480.0)
        assert ttm.net_margin == pytest.approx(480.0 / 3940.0 * 100)
        assert ttm.primary_income_growth == pytest.approx(160.0 / 3780.0)
        assert ttm.net_profit_growth == pytest.approx(0.0)

    def test_growth_needs_eight_quarters(self, make_non_finance_raw) -> None:
        """Growth is unavailable with fewer than eight quarters."""
        data = _normalize(make_non_finance_raw(n_quarters=6), NON_FINANCE)
        ttm = compute_ttm(data)
        assert ttm.primary_income_growth is None
        assert ttm.net_profit_growth is None

    def test_partial_window(self, make_non_finance_raw) -> None:
        """Fewer than four quarters sum what exists."""
        data = _normalize(make_non_finance_raw(n_quarters=2), NON_FINANCE)
        assert compute_ttm(data).ttm_primary_income == pytest.approx(1990.0)

    def test_no_quarters(self, make_non_finance_raw) -> None:
        """No quarters gives None."""
        data = _normalize(make_non_finance_raw(), NON_FINANCE)
        assert compute_ttm(replace(data, quarterly_data=())) is None
