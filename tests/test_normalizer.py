"""Tests for sector-neutral normalization."""

from __future__ import annotations

import pytest

from finnorm.data.models import (
    FINANCE,
    INTEREST_AS_CORE,
    INTEREST_AS_EXPENSE,
    NON_FINANCE,
)
from finnorm.parsers.finance import parse_finance_data
from finnorm.parsers.non_finance import parse_non_finance_data
from finnorm.parsers.normalizer import (
    metadata_summary,
    normalize_financial_data,
    section_completeness,
    validate_normalized_data,
)


class TestNormalizeNonFinance:
    """Tests for operating-company normalization."""

    def test_field_mapping(self, make_non_finance_raw) -> None:
        """Sales and operating profit become primary income and core profit."""
        parsed = parse_non_finance_data(make_non_finance_raw()).data
        result = normalize_financial_data(parsed, NON_FINANCE)
        assert result.success
        data = result.normalized_data
        assert data.company_type == NON_FINANCE
        assert data.interest_treatment == INTEREST_AS_EXPENSE
        assert data.quarterly_data[0].primary_income == 1000.0
        assert data.quarterly_data[0].core_profit == 200.0
        assert data.normalization_quality == 98.0
        assert data.completeness_score == 100.0

    @pytest.mark.parametrize(
        ("borrowings", "other_liabilities", "current_liabilities"),
        [(200.0, 150.0, 150.0), (0.0, 0.0, 0.0), (1234.5, 0.0, 10.25)],
    )
    def test_total_debt_round_trip(
        self, make_non_finance_raw, borrowings, other_liabilities, current_liabilities
    ) -> None:
        """Total debt is borrowings + other liabilities + current liabilities."""
        raw = make_non_finance_raw()
        for sheet in raw["balance_sheet"]:
            sheet.update(
                borrowings=borrowings,
                other_liabilities=other_liabilities,
                current_liabilities=current_liabilities,
            )
        parsed = parse_non_finance_data(raw).data
        data = normalize_financial_data(parsed, NON_FINANCE).normalized_data
        expected = borrowings + other_liabilities + current_liabilities
        assert all(sheet.total_debt == expected for sheet in data.balance_sheet_data)

    def test_core_profit_derived(self, make_non_finance_raw) -> None:
        """Missing operating profit is sales minus expenses."""
        raw = make_non_finance_raw()
        raw["quarterly_data"][0]["operating_profit"] = 0.0
        parsed = parse_non_finance_data(raw).data
        data = normalize_financial_data(parsed, NON_FINANCE).normalized_data
        assert data.quarterly_data[0].core_profit == 200.0
        rules = data.metadata["normalization_rules_applied"]
        assert "core_profit_from_sales_minus_expenses" in rules
        assert "core_profit_from_operating_profit" in rules

    def test_negative_sales_rejected(self, make_non_finance_raw) -> None:
        """Negative primary income refuses normalization."""
        raw = make_non_finance_raw()
        raw["quarterly_data"][1]["sales"] = -5.0
        parsed = parse_non_finance_data(raw).data
        result = normalize_financial_data(parsed, NON_FINANCE)
        assert not result.success
        assert result.errors == ("negative_primary_income",)

    def test_sector_extras(self, make_non_finance_raw) -> None:
        """Working-capital ratios and raw balance sheets are carried."""
        parsed = parse_non_finance_data(make_non_finance_raw()).data
        extras = normalize_financial_data(parsed, NON_FINANCE).normalized_data.sector_specific_data
        assert extras["working_capital_ratios"].cash_conversion_cycle[0] == 60.0
        assert extras["non_finance_balance_sheet"][0].inventory == 150.0
        assert extras["non_finance_ratios"]["current_assets"][0] == 400.0


class TestNormalizeFinance:
    """Tests for bank normalization."""

    def test_field_mapping(self, make_finance_raw) -> None:
        """Revenue and financing profit map; deposits count as debt."""
        parsed = parse_finance_data(make_finance_raw()).data
        data = normalize_financial_data(parsed, FINANCE).normalized_data
        assert data.interest_treatment == INTEREST_AS_CORE
        assert data.quarterly_data[0].primary_income == 500.0
        assert data.quarterly_data[0].core_profit == 100.0
        assert data.balance_sheet_data[0].total_debt == 8500.0
        assert data.normalization_quality == 97.0
        extras = data.sector_specific_data
        assert extras["finance_specific_metrics"]["deposits"][0] == 8000.0

    def test_metadata(self, make_finance_raw) -> None:
        """Provenance records the source and the rules applied."""
        parsed = parse_finance_data(make_finance_raw()).data
        data = normalize_financial_data(parsed, FINANCE).normalized_data
        meta = data.metadata
        assert meta["source_data_type"] == FINANCE
        assert meta["original_company_name"] == "Example Private Bank"
        assert meta["normalization_version"] == "1.0.0"
        assert "interest_as_core_component" in meta["normalization_rules_applied"]


class TestNormalizeErrors:
    """Tests for rejected inputs."""

    def test_none(self) -> None:
        """None parsed data is null input."""
        assert normalize_financial_data(None, NON_FINANCE).errors == ("null_input_data",)

    def test_unsupported_type(self, make_non_finance_raw) -> None:
        """Types other than finance and non_finance are unsupported."""
        parsed = parse_non_finance_data(make_non_finance_raw()).data
        result = normalize_financial_data(parsed, "insurance")
        assert result.errors == ("unsupported_company_type",)

    def test_type_mismatch(self, make_finance_raw) -> None:
        """Bank data cannot be normalized as non-finance."""
        parsed = parse_finance_data(make_finance_raw()).data
        result = normalize_financial_data(parsed, NON_FINANCE)
        assert result.errors == ("sector_type_mismatch",)


class TestHelpers:
    """Tests for completeness, structural validation and summaries."""

    def test_section_completeness_full(self) -> None:
        """Two periods per section earn full credit."""
        assert section_completeness(2, 2, 2, 1, penalize_short_quarters=True) == 100.0

    def test_section_completeness_short(self) -> None:
        """One quarter halves the total when penalized."""
        # (20 + 30 + 20 + 10) * 0.5
        assert section_completeness(1, 2, 2, 1, penalize_short_quarters=True) == 40.0

    def test_section_completeness_no_cash_flow(self) -> None:
        """Missing cash flow still earns partial credit."""
        assert section_completeness(2, 2, 2, 0, penalize_short_quarters=False) == 95.0

    def test_validate_normalized_none(self) -> None:
        """None is reported as null normalized data."""
        assert validate_normalized_data(None) == ["null_normalized_data"]

    def test_validate_normalized_ok(self, make_non_finance_raw) -> None:
        """Good normalized data has no structural errors."""
        parsed = parse_non_finance_data(make_non_finance_raw()).data
        data = normalize_financial_data(parsed, NON_FINANCE).normalized_data
        assert validate_normalized_data(data) == []

    def test_metadata_summary(self, make_non_finance_raw) -> None:
        """Summary flattens provenance for export."""
        parsed = parse_non_finance_data(make_non_finance_raw()).data
        data = normalize_financial_data(parsed, NON_FINANCE).normalized_data
        summary = metadata_summary(data)
        assert summary["company_type"] == NON_FINANCE
        assert summary["company_name"] == "Acme Consumer Products Ltd"
        assert summary["sector"] == "FMCG - Personal Care"
        assert summary["rules"].startswith("primary_income_from_sales")
