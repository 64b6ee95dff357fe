"""Data models for the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, ClassVar, Mapping

NON_FINANCE = "non_finance"
FINANCE = "finance"
UNKNOWN = "unknown"

COMPANY_TYPES = (NON_FINANCE, FINANCE)

INTEREST_AS_EXPENSE = "expense"
INTEREST_AS_CORE = "core_component"


# --- Raw input ---


def as_records(value: object) -> list[Mapping[str, Any]]:
    """Coerce an array or keyed-object section into a list of records."""
    if isinstance(value, Mapping):
        value = list(value.values())
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, Mapping)]


@dataclass(frozen=True)
class RawCompanyPayload:
    """Provider-shaped payload for one company.

    The payload is read-only once received: ``data`` is wrapped in a
    mapping proxy so stages can only read it.

    Attributes:
        company_id: Caller-assigned identifier (ticker, file stem).
        data: Provider JSON with company_info, quarterly_data, annual_data,
            balance_sheet, cash_flow, ratios and optional market_data.
    """

    company_type: ClassVar[str] = UNKNOWN

    company_id: str
    data: Mapping[str, Any]

    def __post_init__(self) -> None:
        if not isinstance(self.data, MappingProxyType):
            object.__setattr__(self, "data", MappingProxyType(dict(self.data)))

    @property
    def company_info(self) -> Mapping[str, Any]:
        info = self.data.get("company_info")
        return info if isinstance(info, Mapping) else {}

    @property
    def name(self) -> str:
        return str(self.company_info.get("name") or self.company_id)

    @property
    def sector(self) -> str:
        return str(self.company_info.get("sector") or "")

    @property
    def quarterly_data(self) -> list[Mapping[str, Any]]:
        return as_records(self.data.get("quarterly_data"))

    @property
    def market_data(self) -> Mapping[str, Any]:
        market = self.data.get("market_data")
        if isinstance(market, Mapping):
            return market
        info = self.company_info
        return {
            "stock_price": info.get("current_price"),
            "pe_ratio": info.get("pe_ratio"),
            "pb_ratio": info.get("pb_ratio"),
        }


@dataclass(frozen=True)
class NonFinanceRawPayload(RawCompanyPayload):
    """Payload for an operating company (sales / operating_profit fields)."""

    company_type: ClassVar[str] = NON_FINANCE


@dataclass(frozen=True)
class FinanceRawPayload(RawCompanyPayload):
    """Payload for a deposit-taking institution (revenue / financing_profit)."""

    company_type: ClassVar[str] = FINANCE


_PAYLOAD_TYPES: dict[str, type[RawCompanyPayload]] = {
    NON_FINANCE: NonFinanceRawPayload,
    FINANCE: FinanceRawPayload,
}


def make_payload(
    company_id: str, company_type: str, data: Mapping[str, Any]
) -> RawCompanyPayload:
    """Build the tagged payload variant for a declared company type.

    Args:
        company_id: Identifier for the company.
        company_type: "non_finance" or "finance".
        data: Provider JSON.

    Returns:
        NonFinanceRawPayload or FinanceRawPayload.

    Raises:
        ValueError: If company_type is not a supported type.
    """
    try:
        payload_cls = _PAYLOAD_TYPES[company_type]
    except KeyError:
        raise ValueError(f"Unsupported company type: {company_type!r}") from None
    return payload_cls(company_id=company_id, data=data)


# --- Sector classification ---


@dataclass(frozen=True)
class SectorClassification:
    """Outcome of sector detection.

    Attributes:
        sector: "finance", "non_finance" or "unknown".
        sub_sector: banking, nbfc, insurance, fmcg, manufacturing or unknown.
        confidence: Detection confidence in [0, 1].
        indicators: Names of the signals that supported the decision.
        warnings: Data caveats (missing_balance_sheet, mixed_sector_signals).
        errors: Hard failures (insufficient_data).
    """

    sector: str
    sub_sector: str
    confidence: float
    indicators: frozenset[str] = frozenset()
    warnings: frozenset[str] = frozenset()
    errors: tuple[str, ...] = ()


# --- Parsed sector data ---


@dataclass(frozen=True)
class NonFinancePeriod:
    period: str
    sales: float = 0.0
    expenses: float = 0.0
    operating_profit: float = 0.0
    opm_percent: float = 0.0
    other_income: float = 0.0
    interest: float = 0.0
    depreciation: float = 0.0
    profit_before_tax: float = 0.0
    tax_percent: float = 0.0
    net_profit: float = 0.0
    eps: float = 0.0


@dataclass(frozen=True)
class FinancePeriod:
    period: str
    revenue: float = 0.0
    interest: float = 0.0
    expenses: float = 0.0
    financing_profit: float = 0.0
    financing_margin_percent: float = 0.0
    other_income: float = 0.0
    depreciation: float = 0.0
    profit_before_tax: float = 0.0
    tax_percent: float = 0.0
    net_profit: float = 0.0
    eps: float = 0.0


@dataclass(frozen=True)
class NonFinanceBalanceSheet:
    period: str
    equity_capital: float = 0.0
    reserves: float = 0.0
    borrowings: float = 0.0
    other_liabilities: float = 0.0
    total_assets: float = 0.0
    current_assets: float = 0.0
    current_liabilities: float = 0.0
    fixed_assets: float = 0.0
    cwip: float = 0.0
    investments: float = 0.0
    other_assets: float = 0.0
    inventory: float = 0.0
    debtors: float = 0.0
    payables: float = 0.0


@dataclass(frozen=True)
class FinanceBalanceSheet:
    period: str
    equity_capital: float = 0.0
    reserves: float = 0.0
    deposits: float = 0.0
    borrowings: float = 0.0
    other_liabilities: float = 0.0
    fixed_assets: float = 0.0
    cwip: float = 0.0
    investments: float = 0.0
    other_assets: float = 0.0
    loans_and_advances: float = 0.0
    total_assets: float = 0.0


@dataclass(frozen=True)
class CashFlowRecord:
    period: str
    operating_cash_flow: float = 0.0
    investing_cash_flow: float = 0.0
    financing_cash_flow: float = 0.0
    net_cash_flow: float = 0.0


@dataclass(frozen=True)
class WorkingCapitalRatios:
    """Provider working-capital ratio arrays, most recent first."""

    cash_conversion_cycle: tuple[float, ...] = ()
    debtor_days: tuple[float, ...] = ()
    inventory_days: tuple[float, ...] = ()
    working_capital_days: tuple[float, ...] = ()


@dataclass(frozen=True)
class BankingRatios:
    """Provider banking ratio arrays, most recent first."""

    roe_percent: tuple[float, ...] = ()
    cost_to_income: tuple[float, ...] = ()
    net_interest_margin: tuple[float, ...] = ()


@dataclass(frozen=True)
class NonFinanceData:
    """Typed output of the non-finance parser.

    All sequences are ordered most recent first.
    """

    company_name: str
    sector: str
    quarterly_data: tuple[NonFinancePeriod, ...]
    annual_data: tuple[NonFinancePeriod, ...]
    balance_sheet_data: tuple[NonFinanceBalanceSheet, ...]
    cash_flow_data: tuple[CashFlowRecord, ...]
    working_capital_ratios: WorkingCapitalRatios
    sector_classification: str
    industry_type: str
    data_quality_score: float
    completeness_score: float
    company_type: ClassVar[str] = NON_FINANCE


@dataclass(frozen=True)
class FinanceData:
    """Typed output of the finance parser.

    All sequences are ordered most recent first.
    """

    company_name: str
    sector: str
    quarterly_data: tuple[FinancePeriod, ...]
    annual_data: tuple[FinancePeriod, ...]
    balance_sheet_data: tuple[FinanceBalanceSheet, ...]
    cash_flow_data: tuple[CashFlowRecord, ...]
    banking_ratios: BankingRatios
    sector_classification: str
    industry_type: str
    data_quality_score: float
    completeness_score: float
    company_type: ClassVar[str] = FINANCE


@dataclass(frozen=True)
class ParseResult:
    """Discriminated parser outcome: data on success, error codes otherwise."""

    success: bool
    data: NonFinanceData | FinanceData | None = None
    errors: tuple[str, ...] = ()


# --- Normalized data ---


@dataclass(frozen=True)
class NormalizedPeriod:
    """One P&L period in the sector-neutral schema."""

    period: str
    primary_income: float
    core_profit: float
    other_income: float
    depreciation: float
    profit_before_tax: float
    net_profit: float
    eps: float


@dataclass(frozen=True)
class NormalizedBalanceSheet:
    period: str
    equity_capital: float
    reserves: float
    total_debt: float
    fixed_assets: float
    investments: float
    total_assets: float

    @property
    def total_equity(self) -> float:
        return self.equity_capital + self.reserves


@dataclass(frozen=True)
class NormalizedFinancialData:
    """Sector-neutral view of one company's statements.

    Attributes:
        company_type: "non_finance" or "finance".
        quarterly_data: Normalized quarters, most recent first.
        annual_data: Normalized years, most recent first.
        balance_sheet_data: Normalized balance sheets, most recent first.
        cash_flow_data: Cash-flow records carried through unchanged.
        sector_specific_data: Sector extras kept for rule checks and
            sector ratios (working-capital arrays, raw balance sheets, ...).
        interest_treatment: "expense" or "core_component".
        data_quality_score: Parser quality score, 0-100.
        completeness_score: Section completeness, 0-100.
        normalization_quality: Confidence in the mapping, 0-100.
        metadata: Timestamp, source type, version, provenance and the
            list of mapping rules applied.
    """

    company_type: str
    quarterly_data: tuple[NormalizedPeriod, ...]
    annual_data: tuple[NormalizedPeriod, ...]
    balance_sheet_data: tuple[NormalizedBalanceSheet, ...]
    cash_flow_data: tuple[CashFlowRecord, ...]
    sector_specific_data: Mapping[str, Any]
    interest_treatment: str
    data_quality_score: float
    completeness_score: float
    normalization_quality: float
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class NormalizationResult:
    success: bool
    normalized_data: NormalizedFinancialData | None = None
    errors: tuple[str, ...] = ()
