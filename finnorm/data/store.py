"""SQLite persistence for companies, annual metrics and calculated ratios.

Four record kinds only: company (create/read), annual-metrics snapshot
(create), calculated-ratios snapshot (upsert keyed by company, period
date and period type) and the ``company_overview`` read view. Every
operation returns a ``StoreResult``; sqlite errors become error strings.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Mapping

import pandas as pd

logger = logging.getLogger(__name__)

PERIOD_TYPES = ("annual", "quarterly", "ttm")

_COMPANY_COLUMNS = (
    "symbol",
    "name",
    "sector",
    "industry",
    "company_type",
    "market_cap",
    "is_active",
)

_ANNUAL_METRIC_COLUMNS = (
    "company_id",
    "fiscal_year",
    "revenue",
    "operating_profit",
    "net_profit",
    "opm_percent",
    "npm_percent",
    "total_assets",
    "total_equity",
    "total_debt",
    "operating_cash_flow",
    "investing_cash_flow",
    "financing_cash_flow",
    "free_cash_flow",
    "eps",
    "revenue_growth_yoy",
    "profit_growth_yoy",
    "eps_growth_yoy",
)

_RATIO_COLUMNS = (
    "company_id",
    "period_date",
    "period_type",
    "pe_ratio",
    "price_to_book",
    "roe_percent",
    "roce_percent",
    "asset_turnover",
    "working_capital_days",
    "cash_conversion_cycle",
    "debt_to_equity",
    "interest_coverage",
    "current_ratio",
    "quick_ratio",
    "free_cash_flow_margin",
    "revenue_cagr_3y",
    "revenue_cagr_5y",
    "profit_cagr_3y",
    "profit_cagr_5y",
    "net_interest_margin",
    "cost_to_income",
    "loan_book_growth",
    "capital_adequacy",
    "quality_score",
)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS companies (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    symbol TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL,
    sector TEXT,
    industry TEXT,
    company_type TEXT NOT NULL,
    market_cap REAL,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS annual_metrics (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    company_id INTEGER NOT NULL REFERENCES companies(id),
    fiscal_year TEXT NOT NULL,
    revenue REAL,
    operating_profit REAL,
    net_profit REAL,
    opm_percent REAL,
    npm_percent REAL,
    total_assets REAL,
    total_equity REAL,
    total_debt REAL,
    operating_cash_flow REAL,
    investing_cash_flow REAL,
    financing_cash_flow REAL,
    free_cash_flow REAL,
    eps REAL,
    revenue_growth_yoy REAL,
    profit_growth_yoy REAL,
    eps_growth_yoy REAL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS calculated_ratios (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    company_id INTEGER NOT NULL REFERENCES companies(id),
    period_date TEXT NOT NULL,
    period_type TEXT NOT NULL CHECK (period_type IN ('annual', 'quarterly', 'ttm')),
    pe_ratio REAL,
    price_to_book REAL,
    roe_percent REAL,
    roce_percent REAL,
    asset_turnover REAL,
    working_capital_days REAL,
    cash_conversion_cycle REAL,
    debt_to_equity REAL,
    interest_coverage REAL,
    current_ratio REAL,
    quick_ratio REAL,
    free_cash_flow_margin REAL,
    revenue_cagr_3y REAL,
    revenue_cagr_5y REAL,
    profit_cagr_3y REAL,
    profit_cagr_5y REAL,
    net_interest_margin REAL,
    cost_to_income REAL,
    loan_book_growth REAL,
    capital_adequacy REAL,
    quality_score REAL,
    calculated_at TEXT NOT NULL,
    UNIQUE (company_id, period_date, period_type)
);

CREATE VIEW IF NOT EXISTS company_overview AS
SELECT c.id, c.symbol, c.name, c.sector, c.industry, c.company_type,
       c.market_cap, c.is_active,
       m.fiscal_year, m.revenue, m.net_profit, m.revenue_growth_yoy,
       m.opm_percent, m.npm_percent,
       r.pe_ratio, r.price_to_book, r.roe_percent, r.debt_to_equity,
       r.quality_score
FROM companies c
LEFT JOIN annual_metrics m ON m.id = (
    SELECT id FROM annual_metrics WHERE company_id = c.id
    ORDER BY fiscal_year DESC, id DESC LIMIT 1
)
LEFT JOIN calculated_ratios r ON r.id = (
    SELECT id FROM calculated_ratios WHERE company_id = c.id
    ORDER BY period_date DESC, id DESC LIMIT 1
);
"""


@dataclass(frozen=True)
class StoreResult:
    """Outcome of a store operation: the record, or an error string."""

    record: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _unknown_columns(record: Mapping[str, Any], allowed: tuple[str, ...]) -> list[str]:
    return sorted(set(record) - set(allowed))


class CompanyStore:
    """Company database on a single sqlite file.

    A connection is opened per operation. The schema is created on
    construction when absent.

    Args:
        db_path: Path to the sqlite database file.
    """

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)
        conn = self._connect()
        try:
            conn.executescript(_SCHEMA)
            conn.commit()
        finally:
            conn.close()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _insert(
        self, table: str, record: Mapping[str, Any], allowed: tuple[str, ...]
    ) -> StoreResult:
        unknown = _unknown_columns(record, allowed)
        if unknown:
            return StoreResult(error=f"Unknown {table} columns: {', '.join(unknown)}")

        stamp_columns = ("created_at", "updated_at") if table == "companies" else ("created_at",)
        values = {**record, **{col: _now() for col in stamp_columns}}
        columns = ", ".join(values)
        placeholders = ", ".join("?" for _ in values)

        conn = self._connect()
        try:
            cursor = conn.execute(
                f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
                tuple(values.values()),
            )
            conn.commit()
            row = conn.execute(
                f"SELECT * FROM {table} WHERE id = ?", (cursor.lastrowid,)
            ).fetchone()
            return StoreResult(record=dict(row))
        except sqlite3.Error as exc:
            logger.warning("Insert into %s failed: %s", table, exc)
            return StoreResult(error=f"Failed to create {table} record: {exc}")
        finally:
            conn.close()

    # --- Companies ---

    def create_company(self, company: Mapping[str, Any]) -> StoreResult:
        """Insert a company.

        Args:
            company: symbol, name, company_type and optional sector,
                industry, market_cap, is_active.

        Returns:
            StoreResult with the stored row (including ``id``).
        """
        return self._insert("companies", company, _COMPANY_COLUMNS)

    def get_company(self, symbol: str) -> StoreResult:
        """Read a company by symbol; a missing symbol is an error."""
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT * FROM companies WHERE symbol = ?", (symbol,)
            ).fetchone()
        except sqlite3.Error as exc:
            return StoreResult(error=f"Failed to fetch company: {exc}")
        finally:
            conn.close()
        if row is None:
            return StoreResult(error=f"Company not found: {symbol}")
        return StoreResult(record=dict(row))

    # --- Metrics and ratios ---

    def create_annual_metrics(self, metrics: Mapping[str, Any]) -> StoreResult:
        """Insert an annual-metrics snapshot for a company."""
        return self._insert("annual_metrics", metrics, _ANNUAL_METRIC_COLUMNS)

    def upsert_calculated_ratios(self, ratios: Mapping[str, Any]) -> StoreResult:
        """Insert or replace the ratios for (company_id, period_date, period_type).

        Returns:
            StoreResult with the stored row.
        """
        unknown = _unknown_columns(ratios, _RATIO_COLUMNS)
        if unknown:
            return StoreResult(error=f"Unknown calculated_ratios columns: {', '.join(unknown)}")
        if ratios.get("period_type") not in PERIOD_TYPES:
            return StoreResult(error=f"Invalid period_type: {ratios.get('period_type')!r}")

        values = {**ratios, "calculated_at": _now()}
        columns = ", ".join(values)
        placeholders = ", ".join("?" for _ in values)
        updates = ", ".join(
            f"{col} = excluded.{col}"
            for col in values
            if col not in ("company_id", "period_date", "period_type")
        )
        query = (
            f"INSERT INTO calculated_ratios ({columns}) VALUES ({placeholders}) "
            f"ON CONFLICT (company_id, period_date, period_type) DO UPDATE SET {updates}"
        )

        conn = self._connect()
        try:
            conn.execute(query, tuple(values.values()))
            conn.commit()
            row = conn.execute(
                "SELECT * FROM calculated_ratios "
                "WHERE company_id = ? AND period_date = ? AND period_type = ?",
                (ratios["company_id"], ratios["period_date"], ratios["period_type"]),
            ).fetchone()
            return StoreResult(record=dict(row))
        except sqlite3.Error as exc:
            logger.warning("Ratio upsert failed: %s", exc)
            return StoreResult(error=f"Failed to upsert calculated ratios: {exc}")
        finally:
            conn.close()

    def get_calculated_ratios(self, company_id: int) -> StoreResult:
        """All ratio snapshots for a company, latest period first."""
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT * FROM calculated_ratios WHERE company_id = ? "
                "ORDER BY period_date DESC",
                (company_id,),
            ).fetchall()
            return StoreResult(record=[dict(row) for row in rows])
        except sqlite3.Error as exc:
            return StoreResult(error=f"Failed to fetch calculated ratios: {exc}")
        finally:
            conn.close()

    # --- Views ---

    def company_overview(self, company_type: str | None = None) -> StoreResult:
        """Read the company overview view as a DataFrame ordered by name.

        Args:
            company_type: Optional filter on company type.

        Returns:
            StoreResult whose record is a pandas DataFrame.
        """
        query = "SELECT * FROM company_overview"
        params: tuple[Any, ...] = ()
        if company_type is not None:
            query += " WHERE company_type = ?"
            params = (company_type,)
        query += " ORDER BY name"

        conn = self._connect()
        conn.row_factory = None
        try:
            return StoreResult(record=pd.read_sql_query(query, conn, params=params))
        except (sqlite3.Error, pd.errors.DatabaseError) as exc:
            return StoreResult(error=f"Failed to fetch company overview: {exc}")
        finally:
            conn.close()
