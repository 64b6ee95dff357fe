"""Tests for the sector parsers and shared parsing helpers."""

from __future__ import annotations

import pytest

from finnorm.data.models import FinanceData, NonFinanceData
from finnorm.parsers.common import (
    check_structure,
    completeness_score,
    data_quality_score,
    resolve_total_assets,
)
from finnorm.parsers.finance import parse_finance_data, validate_finance_data
from finnorm.parsers.non_finance import parse_non_finance_data, validate_non_finance_data


class TestCheckStructure:
    """Tests for the structural gate shared by both parsers."""

    def test_none(self) -> None:
        """None input is rejected first."""
        assert check_structure(None, "sales") == ("null_input_data",)

    def test_empty_quarters(self) -> None:
        """An empty quarterly list is missing data."""
        raw = {"quarterly_data": [], "balance_sheet": []}
        assert check_structure(raw, "sales") == ("missing_quarterly_data",)

    def test_balance_sheet_must_be_list(self) -> None:
        """A non-list balance sheet is rejected."""
        raw = {"quarterly_data": [{"period": "Q1", "sales": 1.0}], "balance_sheet": None}
        assert check_structure(raw, "sales") == ("missing_balance_sheet_data",)

    def test_non_string_period(self) -> None:
        """Quarter periods must be strings."""
        raw = {"quarterly_data": [{"period": 2024, "sales": 1.0}], "balance_sheet": []}
        assert check_structure(raw, "sales") == ("invalid_quarterly_data_format",)

    def test_non_numeric_primary_field(self) -> None:
        """The primary field must be a finite number."""
        raw = {"quarterly_data": [{"period": "Q1", "sales": "abc"}], "balance_sheet": []}
        assert check_structure(raw, "sales") == ("invalid_quarterly_data_format",)

    def test_valid(self) -> None:
        """A well-formed payload passes."""
        raw = {"quarterly_data": [{"period": "Q1", "sales": 1.0}], "balance_sheet": []}
        assert check_structure(raw, "sales") == ()


class TestScores:
    """Tests for quality and completeness scoring."""

    def test_full_payload_quality(self, make_non_finance_raw) -> None:
        """Every section present at coverage clamps to 100."""
        assert data_quality_score(make_non_finance_raw()) == 100.0

    def test_missing_sections_quality(self, make_non_finance_raw) -> None:
        """Missing cash flow and ratios deduct 10 and 5."""
        raw = make_non_finance_raw()
        del raw["cash_flow"]
        del raw["ratios"]
        # 100 - 10 - 5 + 5 (13 quarters) + 5 (13 balance sheets)
        assert data_quality_score(raw) == 95.0

    def test_completeness_weights(self) -> None:
        """Half the target years costs 15 of the 30 annual points."""
        assert completeness_score(13, 6, 13, 10, 13) == 85.0

    def test_completeness_short_quarters(self) -> None:
        """Without the penalty, four quarters earn 4/13 of 40."""
        assert completeness_score(4, 0, 0, 0, 0, penalize_short_quarters=False) == 12.3

    def test_completeness_short_quarters_penalized(self) -> None:
        """The penalty scales the blend by quarterly coverage."""
        unpenalized = completeness_score(4, 12, 13, 10, 13, penalize_short_quarters=False)
        penalized = completeness_score(4, 12, 13, 10, 13)
        assert penalized < unpenalized

    def test_total_assets_from_components(self) -> None:
        """Missing total assets is the sum of asset components."""
        raw = {"fixed_assets": 100.0, "cwip": 10.0, "investments": 50.0, "other_assets": 40.0}
        assert resolve_total_assets(raw) == 200.0

    def test_total_assets_reported(self) -> None:
        """Reported total assets win."""
        assert resolve_total_assets({"total_assets": 999.0, "fixed_assets": 1.0}) == 999.0


class TestParseNonFinance:
    """Tests for the operating-company parser."""

    def test_success(self, make_non_finance_raw) -> None:
        """A complete payload parses into typed records."""
        result = parse_non_finance_data(make_non_finance_raw())
        assert result.success
        data = result.data
        assert isinstance(data, NonFinanceData)
        assert data.company_name == "Acme Consumer Products Ltd"
        assert len(data.quarterly_data) == 13
        assert data.quarterly_data[0].sales == 1000.0
        assert data.quarterly_data[0].period == "Mar 2024"
        assert data.annual_data[0].period == "2024"
        assert data.cash_flow_data[0].operating_cash_flow == 150.0
        assert data.working_capital_ratios.debtor_days[0] == 40.0

    def test_classification(self, make_non_finance_raw) -> None:
        """FMCG personal-care sector text is classified."""
        data = parse_non_finance_data(make_non_finance_raw()).data
        assert data.sector_classification == "fmcg"
        assert data.industry_type == "personal_care"

    def test_manufacturing_classification(self, make_non_finance_raw) -> None:
        """Other sector text falls back to manufacturing."""
        raw = make_non_finance_raw(name="Steel Ltd", sector="Iron & Steel")
        data = parse_non_finance_data(raw).data
        assert data.sector_classification == "manufacturing"
        assert data.industry_type == "manufacturing"

    def test_truncates_to_thirteen_quarters(self, make_non_finance_raw) -> None:
        """Only the latest 13 quarters are kept."""
        data = parse_non_finance_data(make_non_finance_raw(n_quarters=16)).data
        assert len(data.quarterly_data) == 13
        assert len(data.cash_flow_data) == 13

    def test_field_aliases(self, make_non_finance_raw) -> None:
        """omp_percent and trade_receivables map to canonical fields."""
        raw = make_non_finance_raw()
        quarter = raw["quarterly_data"][0]
        quarter["omp_percent"] = quarter.pop("opm_percent")
        sheet = raw["balance_sheet"][0]
        sheet["trade_receivables"] = sheet.pop("debtors")
        data = parse_non_finance_data(raw).data
        assert data.quarterly_data[0].opm_percent == 20.0
        assert data.balance_sheet_data[0].debtors == 120.0

    def test_missing_fields_default_to_zero(self, make_non_finance_raw) -> None:
        """Absent optional fields become 0."""
        raw = make_non_finance_raw()
        del raw["quarterly_data"][0]["eps"]
        data = parse_non_finance_data(raw).data
        assert data.quarterly_data[0].eps == 0.0

    def test_total_assets_resolved(self, make_non_finance_raw) -> None:
        """Balance sheets without total assets sum their components."""
        raw = make_non_finance_raw()
        del raw["balance_sheet"][0]["total_assets"]
        data = parse_non_finance_data(raw).data
        # fixed 500 + investments 100 + current assets 400
        assert data.balance_sheet_data[0].total_assets == 1000.0

    @pytest.mark.parametrize(
        ("mutate", "code"),
        [
            (lambda raw: raw.update(quarterly_data=[]), "missing_quarterly_data"),
            (lambda raw: raw.update(balance_sheet=None), "missing_balance_sheet_data"),
            (
                lambda raw: raw["quarterly_data"][0].update(sales="1000"),
                "invalid_quarterly_data_format",
            ),
        ],
    )
    def test_structural_errors(self, make_non_finance_raw, mutate, code) -> None:
        """Structural problems fail with a single error code."""
        raw = make_non_finance_raw()
        mutate(raw)
        result = parse_non_finance_data(raw)
        assert not result.success
        assert result.errors == (code,)
        assert result.data is None

    def test_null_input(self) -> None:
        """None fails with null_input_data."""
        assert parse_non_finance_data(None).errors == ("null_input_data",)


class TestValidateNonFinance:
    """Tests for the parsed-data usability checks."""

    def test_complete_data_passes(self, make_non_finance_raw) -> None:
        """A full payload has no usability errors."""
        data = parse_non_finance_data(make_non_finance_raw()).data
        assert validate_non_finance_data(data) == []

    def test_short_history(self, make_non_finance_raw) -> None:
        """Three quarters is insufficient and incomplete."""
        data = parse_non_finance_data(make_non_finance_raw(n_quarters=3)).data
        errors = validate_non_finance_data(data)
        assert "insufficient_quarterly_data" in errors
        assert "low_data_completeness" in errors

    def test_zero_sales(self, make_non_finance_raw) -> None:
        """Any non-positive sales quarter is flagged."""
        raw = make_non_finance_raw()
        raw["quarterly_data"][2]["sales"] = 0.0
        data = parse_non_finance_data(raw).data
        assert "negative_sales_values" in validate_non_finance_data(data)


class TestParseFinance:
    """Tests for the bank parser."""

    def test_success(self, make_finance_raw) -> None:
        """A bank payload parses with loans from advances."""
        result = parse_finance_data(make_finance_raw())
        assert result.success
        data = result.data
        assert isinstance(data, FinanceData)
        assert data.sector_classification == "banking"
        assert data.industry_type == "private_sector_bank"
        assert data.balance_sheet_data[0].deposits == 8000.0
        assert data.balance_sheet_data[0].loans_and_advances == 6000.0
        assert data.banking_ratios.roe_percent[0] == 15.0

    def test_loans_fall_back_to_other_assets(self, make_finance_raw) -> None:
        """Without advances the loan book is read from other assets."""
        raw = make_finance_raw()
        for sheet in raw["balance_sheet"]:
            del sheet["advances"]
            sheet["other_assets"] = 5500.0
        data = parse_finance_data(raw).data
        assert data.balance_sheet_data[0].loans_and_advances == 5500.0

    def test_public_sector(self, make_finance_raw) -> None:
        """Non-private sector text is a public sector bank."""
        data = parse_finance_data(make_finance_raw(sector="Banks - Public Sector")).data
        assert data.industry_type == "public_sector_bank"

    def test_keeps_every_quarter(self, make_finance_raw) -> None:
        """Bank history is not truncated."""
        data = parse_finance_data(make_finance_raw(n_quarters=20)).data
        assert len(data.quarterly_data) == 20

    def test_revenue_required(self, make_finance_raw) -> None:
        """Quarters without numeric revenue are malformed."""
        raw = make_finance_raw()
        del raw["quarterly_data"][0]["revenue"]
        assert parse_finance_data(raw).errors == ("invalid_quarterly_data_format",)

    def test_validate_passes(self, make_finance_raw) -> None:
        """Eight quarters with good quality pass."""
        data = parse_finance_data(make_finance_raw()).data
        assert validate_finance_data(data) == []

    def test_validate_short_history(self, make_finance_raw) -> None:
        """Fewer than eight quarters is insufficient."""
        data = parse_finance_data(make_finance_raw(n_quarters=4)).data
        assert validate_finance_data(data) == ["insufficient_quarterly_data"]
