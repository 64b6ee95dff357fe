"""Pipeline configuration dataclasses."""

from __future__ import annotations

from dataclasses import dataclass

# Coverage targets used by completeness scoring.
TARGET_QUARTERS: int = 13
TARGET_YEARS: int = 12

# Quarterly P&L lines are turned into daily rates over this many days.
DAYS_PER_QUARTER: float = 90.0


@dataclass(frozen=True)
class SectorScoringConfig:
    """Thresholds, weights and confidence increments for sector detection."""

    # Field analysis
    deposit_debt_ratio_min: float = 0.8
    banking_revenue_ratio_min: float = 0.05
    banking_revenue_ratio_max: float = 0.15
    advances_asset_ratio_min: float = 0.6
    operating_turnover_min: float = 0.5
    inventory_current_ratio_min: float = 1.5
    inventory_current_ratio_max: float = 4.0
    working_capital_gap_max: float = 0.5

    # Balance-sheet structure
    bank_debt_ratio_min: float = 0.7
    manufacturing_current_ratio_max: float = 0.7
    manufacturing_leverage_max: float = 0.5

    # Keyword matches needed for a full keyword score
    banking_keyword_threshold: int = 2
    fmcg_keyword_threshold: int = 3
    manufacturing_keyword_threshold: int = 2

    # Decision scoring
    signal_weight: int = 2
    keyword_weight: int = 1
    decision_min_score: int = 3

    # Confidence
    base_confidence: float = 0.5
    unknown_confidence: float = 0.3
    primary_signal_increment: float = 0.2
    structure_increment: float = 0.15
    keyword_increment: float = 0.1
    conflict_multiplier: float = 0.7
    missing_balance_sheet_multiplier: float = 0.75
    max_confidence: float = 0.99


@dataclass(frozen=True)
class EstimationAssumptions:
    """Proportionality constants used to estimate inputs a source does not carry.

    Attributes:
        net_interest_share: Share of finance revenue treated as net interest
            income when financing profit is absent.
        non_interest_share: Share of finance revenue treated as fee and other
            non-interest income when other income is absent.
        assumed_tax_rate: Tax rate used to back out operating expenses from
            revenue and net income.
        deposit_share_of_debt: Share of total debt treated as deposits when
            deposits are not reported.
        estimated_payable_days: Payable days used in the cash conversion cycle.
        days_per_quarter: Days used to turn quarterly flows into daily rates.
    """

    net_interest_share: float = 0.7
    non_interest_share: float = 0.3
    assumed_tax_rate: float = 0.3
    deposit_share_of_debt: float = 0.85
    estimated_payable_days: float = 48.0
    days_per_quarter: float = DAYS_PER_QUARTER


DEFAULT_ASSUMPTIONS = EstimationAssumptions()


@dataclass(frozen=True)
class ValidationThresholds:
    """Plausibility limits and scoring weights for validation."""

    # Universal
    distress_net_profit: float = -100.0
    large_loss_net_profit: float = -1000.0
    extreme_primary_income: float = 1_000_000.0
    extreme_abs_eps: float = 500.0
    balance_sheet_tolerance: float = 0.60
    balance_sheet_error_variance: float = 0.10

    # Non-finance
    ccc_min_days: float = -100.0
    ccc_max_days: float = 1000.0
    max_debtor_days: float = 365.0
    max_abs_income_growth_pct: float = 1000.0
    inventory_drop_pct: float = -80.0
    inventory_jump_pct: float = 300.0

    # Finance
    nim_min_pct: float = 0.0
    nim_max_pct: float = 20.0
    max_loan_to_deposit_pct: float = 90.0

    # Quality score
    critical_penalty: float = 50.0
    error_penalty: float = 30.0
    warning_penalty: float = 8.0
    completeness_weight: float = 0.2
    consistency_weight: float = 0.2
    penalty_weight: float = 0.6


@dataclass
class CacheConfig:
    """Batch result cache bounds."""

    max_size: int = 1000
    ttl_seconds: float = 300.0


@dataclass
class BatchConfig:
    """Batch engine chunking parameters."""

    companies_per_worker: int = 50
    max_workers: int = 4
    # Estimated footprint of one cached company result.
    bytes_per_cache_entry: int = 1024
