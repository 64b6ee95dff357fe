"""Shared payload builders for the test suite."""

from __future__ import annotations

from typing import Any, Callable

import pytest

_MONTHS = ("Mar", "Dec", "Sep", "Jun")


def _quarter_label(i: int) -> str:
    """Quarter label i quarters before Mar 2024."""
    return f"{_MONTHS[i % 4]} {2024 - (i + 3) // 4}"


def _make_non_finance_raw(
    n_quarters: int = 13,
    n_years: int = 6,
    n_balance_sheets: int = 13,
    name: str = "Acme Consumer Products Ltd",
    sector: str = "FMCG - Personal Care",
) -> dict[str, Any]:
    """Balanced operating-company payload with gently rising sales."""
    quarters = []
    for i in range(n_quarters):
        sales = 1000.0 - 10.0 * i
        expenses = 800.0 - 8.0 * i
        quarters.append({
            "period": _quarter_label(i),
            "sales": sales,
            "expenses": expenses,
            "operating_profit": sales - expenses,
            "opm_percent": round((sales - expenses) / sales * 100, 2),
            "other_income": 20.0,
            "interest": 10.0,
            "depreciation": 30.0,
            "profit_before_tax": 160.0,
            "tax_percent": 25.0,
            "net_profit": 120.0,
            "eps": 12.0,
        })
    annual = [
        {
            "year": str(2024 - i),
            "sales": 4000.0 - 200.0 * i,
            "expenses": 3200.0 - 160.0 * i,
            "operating_profit": 800.0 - 40.0 * i,
            "other_income": 80.0,
            "interest": 40.0,
            "depreciation": 120.0,
            "profit_before_tax": 640.0,
            "tax_percent": 25.0,
            "net_profit": 480.0 - 20.0 * i,
            "eps": 48.0,
        }
        for i in range(n_years)
    ]
    balance_sheet = [
        {
            "period": _quarter_label(i),
            "equity_capital": 100.0,
            "reserves": 400.0,
            "borrowings": 200.0,
            "other_liabilities": 150.0,
            "current_liabilities": 150.0,
            "total_assets": 1000.0,
            "current_assets": 400.0,
            "fixed_assets": 500.0,
            "investments": 100.0,
            "inventory": 150.0,
            "debtors": 120.0,
            "payables": 90.0,
        }
        for i in range(n_balance_sheets)
    ]
    cash_flow = [
        {
            "period": _quarter_label(i),
            "operating_activity": 150.0,
            "investing_activity": -60.0,
            "financing_activity": -40.0,
            "net_cash_flow": 50.0,
        }
        for i in range(n_quarters)
    ]
    return {
        "company_info": {
            "name": name,
            "sector": sector,
            "current_price": 250.0,
            "pe_ratio": 20.0,
            "pb_ratio": 4.0,
            "market_cap": 25000.0,
        },
        "quarterly_data": quarters,
        "annual_data": annual,
        "balance_sheet": balance_sheet,
        "cash_flow": cash_flow,
        "ratios": {
            "cash_conversion_cycle": [60.0] * 10,
            "debtor_days": [40.0] * 10,
            "inventory_days": [50.0] * 10,
            "working_capital_days": [30.0] * 10,
        },
    }


def _make_finance_raw(
    n_quarters: int = 8,
    name: str = "Example Private Bank",
    sector: str = "Banks - Private Sector",
) -> dict[str, Any]:
    """Bank payload with a stable loan book and deposit base."""
    quarters = [
        {
            "period": _quarter_label(i),
            "revenue": 500.0,
            "interest": 300.0,
            "expenses": 100.0,
            "financing_profit": 100.0,
            "financing_margin_percent": 3.5,
            "other_income": 40.0,
            "depreciation": 5.0,
            "profit_before_tax": 135.0,
            "tax_percent": 25.0,
            "net_profit": 100.0,
            "eps": 5.0,
        }
        for i in range(n_quarters)
    ]
    balance_sheet = [
        {
            "period": _quarter_label(i),
            "equity_capital": 50.0,
            "reserves": 950.0,
            "deposits": 8000.0,
            "borrowings": 500.0,
            "other_liabilities": 500.0,
            "fixed_assets": 100.0,
            "investments": 2500.0,
            "other_assets": 6000.0,
            "advances": 6000.0,
            "total_assets": 10000.0,
        }
        for i in range(n_quarters)
    ]
    return {
        "company_info": {"name": name, "sector": sector, "current_price": 800.0},
        "quarterly_data": quarters,
        "annual_data": [],
        "balance_sheet": balance_sheet,
        "cash_flow": [],
        "ratios": {"roe_percent": [15.0] * 10},
    }


@pytest.fixture
def make_non_finance_raw() -> Callable[..., dict[str, Any]]:
    """Factory for operating-company payloads."""
    return _make_non_finance_raw


@pytest.fixture
def make_finance_raw() -> Callable[..., dict[str, Any]]:
    """Factory for bank payloads."""
    return _make_finance_raw
