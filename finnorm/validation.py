"""Plausibility validation and quality scoring for normalized financial data.

Three rule groups run against ``NormalizedFinancialData``:

- Universal: primary income sign, business distress, numeric field types,
  extreme values, the balance-sheet identity, negative equity and zero
  total assets.
- Non-finance: cash conversion cycle and debtor-day ranges, primary income
  swings between quarters, inventory swings between balance sheets.
- Finance: deposits present, net interest margin range, loan-to-deposit
  ratio.

Findings carry a severity. ``critical`` and ``error`` findings make the
data invalid; ``warning`` findings only reduce the quality score.

Quality score = 20% completeness + 20% consistency + 60% error penalty,
where the error penalty starts at 100 and loses 50 per critical, 30 per
error and 8 per warning finding.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Mapping

import numpy as np

from finnorm.config import ValidationThresholds
from finnorm.data.models import FINANCE, NON_FINANCE, NormalizedFinancialData

logger = logging.getLogger(__name__)

CRITICAL = "critical"
ERROR = "error"
WARNING = "warning"

NUMERIC_PERIOD_FIELDS = ("primary_income", "core_profit", "net_profit", "eps")

DEFAULT_THRESHOLDS = ValidationThresholds()


@dataclass(frozen=True)
class ValidationFinding:
    """One rule violation.

    Attributes:
        type: Stable finding code (e.g. "balance_sheet_imbalance").
        severity: "critical", "error" or "warning".
        message: Human-readable description.
        field: Offending field, where one applies.
        value: Offending value, where one applies.
        suggestion: Remediation hint, where one exists.
    """

    type: str
    severity: str
    message: str
    field: str | None = None
    value: Any = None
    suggestion: str | None = None


@dataclass(frozen=True)
class RuleResult:
    errors: tuple[ValidationFinding, ...] = ()
    warnings: tuple[ValidationFinding, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class BalanceSheetCheck:
    is_valid: bool
    variance: float
    finding: ValidationFinding | None = None


@dataclass(frozen=True)
class ValidationResult:
    """Validator outcome.

    Attributes:
        is_valid: True when no critical or error finding exists.
        errors: Critical and error findings.
        warnings: Warning findings.
        quality_score: Blended quality score in [0, 100].
        completeness_score: Section completeness component.
        consistency_score: Inter-period consistency component.
        penalty_score: Error-penalty component.
    """

    is_valid: bool
    errors: tuple[ValidationFinding, ...]
    warnings: tuple[ValidationFinding, ...]
    quality_score: float
    completeness_score: float = 0.0
    consistency_score: float = 0.0
    penalty_score: float = 0.0


class _Findings:
    """Collects findings and routes them by severity."""

    def __init__(self) -> None:
        self.errors: list[ValidationFinding] = []
        self.warnings: list[ValidationFinding] = []

    def add(self, finding: ValidationFinding) -> None:
        if finding.severity == WARNING:
            self.warnings.append(finding)
        else:
            self.errors.append(finding)

    def result(self) -> RuleResult:
        return RuleResult(errors=tuple(self.errors), warnings=tuple(self.warnings))


def _field(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def _number(record: Any, name: str) -> float:
    value = _field(record, name)
    if _is_valid_number(value):
        return float(value)
    return 0.0


def _is_valid_number(value: object) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _pct_change(value: float, base: float) -> float | None:
    """Percent change from ``base`` to ``value``; None when base is not positive."""
    if base <= 0:
        return None
    return (value - base) / base * 100


# --- Universal rules ---


def validate_balance_sheet_equation(
    balance_sheet: Any, thresholds: ValidationThresholds = DEFAULT_THRESHOLDS
) -> BalanceSheetCheck:
    """Check assets against equity capital + reserves + total debt.

    Variance is |assets - (equity + reserves + debt)| / assets, or 1.0 when
    assets are not positive. The sheet is invalid beyond the tolerance;
    the finding is an error above 10% variance and a warning otherwise.

    Args:
        balance_sheet: NormalizedBalanceSheet or a mapping with the same
            fields.
        thresholds: Validation limits.

    Returns:
        BalanceSheetCheck with the variance and, when invalid, the finding.
    """
    if balance_sheet is None:
        return BalanceSheetCheck(
            is_valid=False,
            variance=1.0,
            finding=ValidationFinding(
                type="missing_balance_sheet",
                severity=CRITICAL,
                message="Balance sheet data is missing",
            ),
        )

    assets = _number(balance_sheet, "total_assets")
    funding = (
        _number(balance_sheet, "equity_capital")
        + _number(balance_sheet, "reserves")
        + _number(balance_sheet, "total_debt")
    )
    variance = abs(assets - funding) / assets if assets > 0 else 1.0
    if variance <= thresholds.balance_sheet_tolerance:
        return BalanceSheetCheck(is_valid=True, variance=variance)

    severity = ERROR if variance > thresholds.balance_sheet_error_variance else WARNING
    return BalanceSheetCheck(
        is_valid=False,
        variance=variance,
        finding=ValidationFinding(
            type="balance_sheet_imbalance",
            severity=severity,
            message=(
                f"Balance sheet imbalance: assets {assets:g} vs. equity plus debt "
                f"{funding:g} ({variance * 100:.2f}% variance)"
            ),
            field="balance_sheet",
            value=variance,
        ),
    )


def validate_universal_rules(
    data: NormalizedFinancialData | None, thresholds: ValidationThresholds = DEFAULT_THRESHOLDS
) -> RuleResult:
    """Rules that apply to every company type."""
    findings = _Findings()
    if data is None:
        findings.add(ValidationFinding(
            type="missing_normalized_data",
            severity=CRITICAL,
            message="Normalized data structure is missing",
        ))
        return findings.result()

    if not data.quarterly_data:
        findings.add(ValidationFinding(
            type="missing_quarterly_data",
            severity=ERROR,
            message="Quarterly data is required for validation",
        ))

    for quarter in data.quarterly_data:
        income = quarter.primary_income
        if _is_valid_number(income) and income < 0:
            findings.add(ValidationFinding(
                type="negative_primary_income",
                severity=CRITICAL,
                message=f"{quarter.period}: primary income cannot be negative",
                field="primary_income",
                value=income,
                suggestion="Check the data source for entry errors",
            ))
        elif _is_valid_number(income) and income == 0:
            findings.add(ValidationFinding(
                type="zero_primary_income",
                severity=ERROR,
                message=f"{quarter.period}: primary income is zero",
                field="primary_income",
                value=income,
                suggestion="Check if revenue data is missing or incorrectly parsed",
            ))

        profit = quarter.net_profit
        if _is_valid_number(profit) and profit < thresholds.distress_net_profit:
            findings.add(ValidationFinding(
                type="business_distress",
                severity=CRITICAL,
                message=f"{quarter.period}: net loss of {profit:g} indicates distress",
                field="net_profit",
                value=profit,
            ))
        if _is_valid_number(profit) and profit < thresholds.large_loss_net_profit:
            findings.add(ValidationFinding(
                type="large_negative_profit",
                severity=WARNING,
                message=f"{quarter.period}: large negative profit {profit:g}",
                field="net_profit",
                value=profit,
            ))

        for name in NUMERIC_PERIOD_FIELDS:
            value = getattr(quarter, name)
            if not _is_valid_number(value):
                findings.add(ValidationFinding(
                    type="invalid_data_type",
                    severity=ERROR,
                    message=f"{quarter.period}: field {name} must be a valid number",
                    field=name,
                    value=value,
                    suggestion="Ensure numeric fields contain numbers, not strings or nulls",
                ))

        eps = quarter.eps
        if (_is_valid_number(income) and income > thresholds.extreme_primary_income) or (
            _is_valid_number(eps) and abs(eps) > thresholds.extreme_abs_eps
        ):
            findings.add(ValidationFinding(
                type="extreme_values",
                severity=WARNING,
                message=f"{quarter.period}: extremely large values",
                field="primary_income" if income > thresholds.extreme_primary_income else "eps",
                value=income if income > thresholds.extreme_primary_income else eps,
            ))

    for sheet in data.balance_sheet_data:
        check = validate_balance_sheet_equation(sheet, thresholds)
        if check.finding is not None:
            findings.add(check.finding)
        if sheet.total_equity < 0:
            findings.add(ValidationFinding(
                type="negative_equity",
                severity=CRITICAL,
                message=f"{sheet.period}: total equity cannot be negative",
                field="equity",
                value=sheet.total_equity,
                suggestion="Check balance sheet data for accuracy",
            ))
        if sheet.total_assets == 0:
            findings.add(ValidationFinding(
                type="zero_total_assets",
                severity=ERROR,
                message=f"{sheet.period}: total assets cannot be zero",
                field="total_assets",
                value=sheet.total_assets,
            ))

    return findings.result()


# --- Sector rules ---


def validate_non_finance_rules(
    data: NormalizedFinancialData, thresholds: ValidationThresholds = DEFAULT_THRESHOLDS
) -> RuleResult:
    """Working-capital and growth plausibility for operating companies."""
    findings = _Findings()
    if data.company_type != NON_FINANCE:
        findings.add(ValidationFinding(
            type="invalid_company_type",
            severity=ERROR,
            message="Data is not for a non-finance company",
        ))
        return findings.result()

    extras = data.sector_specific_data
    wc = extras.get("working_capital_ratios")
    if wc is not None:
        if any(
            ccc < thresholds.ccc_min_days or ccc > thresholds.ccc_max_days
            for ccc in wc.cash_conversion_cycle
        ):
            findings.add(ValidationFinding(
                type="invalid_working_capital_cycle",
                severity=ERROR,
                message="Unrealistic cash conversion cycle values",
                field="cash_conversion_cycle",
                suggestion="Review working capital figures",
            ))
        if any(days > thresholds.max_debtor_days for days in wc.debtor_days):
            findings.add(ValidationFinding(
                type="invalid_working_capital_cycle",
                severity=ERROR,
                message=f"Debtor days above {thresholds.max_debtor_days:g}",
                field="debtor_days",
                suggestion="Check the debtor days calculation",
            ))

    # Base is the more recent period of each pair.
    quarters = data.quarterly_data
    for base, current in zip(quarters, quarters[1:]):
        growth = _pct_change(current.primary_income, base.primary_income)
        if growth is not None and abs(growth) > thresholds.max_abs_income_growth_pct:
            findings.add(ValidationFinding(
                type="unrealistic_sales_growth",
                severity=WARNING,
                message=f"{current.period}: extreme sales growth {growth:.1f}%",
                field="primary_income",
                value=growth,
            ))

    sheets = extras.get("non_finance_balance_sheet") or ()
    for base, current in zip(sheets, sheets[1:]):
        change = _pct_change(current.inventory, base.inventory)
        if change is not None and (
            change < thresholds.inventory_drop_pct or change > thresholds.inventory_jump_pct
        ):
            findings.add(ValidationFinding(
                type="inconsistent_inventory_pattern",
                severity=WARNING,
                message=f"{current.period}: inventory changed {change:.1f}%",
                field="inventory",
                value=change,
            ))

    return findings.result()


def validate_finance_rules(
    data: NormalizedFinancialData, thresholds: ValidationThresholds = DEFAULT_THRESHOLDS
) -> RuleResult:
    """Deposit, margin and loan-book plausibility for banks."""
    findings = _Findings()
    if data.company_type != FINANCE:
        findings.add(ValidationFinding(
            type="invalid_company_type",
            severity=ERROR,
            message="Data is not for a finance company",
        ))
        return findings.result()

    extras = data.sector_specific_data
    sheets = extras.get("finance_balance_sheet") or ()
    if any(sheet.deposits <= 0 for sheet in sheets):
        findings.add(ValidationFinding(
            type="missing_bank_deposits",
            severity=CRITICAL,
            message="Banking companies must have customer deposits",
            field="deposits",
            suggestion="Verify deposits are parsed from the source",
        ))
    for sheet in sheets:
        if sheet.deposits <= 0:
            continue
        ratio = sheet.loans_and_advances / sheet.deposits * 100
        if ratio > thresholds.max_loan_to_deposit_pct:
            findings.add(ValidationFinding(
                type="high_loan_to_deposit_ratio",
                severity=WARNING,
                message=f"{sheet.period}: loan-to-deposit ratio {ratio:.1f}%",
                field="loan_to_deposit_ratio",
                value=ratio,
            ))

    for quarter in extras.get("finance_quarterly_data") or ():
        nim = quarter.financing_margin_percent
        if nim < thresholds.nim_min_pct or nim > thresholds.nim_max_pct:
            findings.add(ValidationFinding(
                type="unrealistic_nim_values",
                severity=ERROR,
                message=f"{quarter.period}: net interest margin {nim:g}%",
                field="financing_margin_percent",
                value=nim,
                suggestion=(
                    f"NIM should be between {thresholds.nim_min_pct:g}"
                    f" and {thresholds.nim_max_pct:g}% for banks"
                ),
            ))

    return findings.result()


# --- Quality score ---


def completeness_score(data: NormalizedFinancialData) -> float:
    """Section completeness: 100 less penalties for missing or short sections."""
    score = 100.0
    if not data.quarterly_data:
        score -= 40
    elif len(data.quarterly_data) < 4:
        score -= 10
    if not data.annual_data:
        score -= 15
    if not data.balance_sheet_data:
        score -= 20
    for quarter in data.quarterly_data:
        if quarter.primary_income is None:
            score -= 5
        if quarter.net_profit is None:
            score -= 3
    return max(0.0, score)


def consistency_score(data: NormalizedFinancialData) -> float:
    """Inter-quarter consistency of primary income.

    Fewer than two quarters score 70. Otherwise each swing of at most 50%
    earns 2 (up to 20) and each swing above 200% costs 10 (up to 30),
    starting from 100. Each swing is measured against the more recent
    quarter of the pair. The score is floored at 0 but not capped.
    """
    quarters = data.quarterly_data
    if len(quarters) < 2:
        return 70.0
    income = np.asarray([q.primary_income for q in quarters], dtype=float)
    base, current = income[:-1], income[1:]
    comparable = base > 0
    swings = np.abs((current[comparable] - base[comparable]) / base[comparable])
    bonus = 2.0 * int(np.count_nonzero(swings <= 0.5))
    penalty = 10.0 * int(np.count_nonzero(swings > 2.0))
    score = 100.0 + min(bonus, 20.0) - min(penalty, 30.0)
    return max(score, 0.0)


def error_penalty_score(
    findings: tuple[ValidationFinding, ...] | list[ValidationFinding],
    thresholds: ValidationThresholds = DEFAULT_THRESHOLDS,
) -> float:
    """100 less 50 per critical, 30 per error and 8 per warning, floored at 0."""
    penalties = {
        CRITICAL: thresholds.critical_penalty,
        ERROR: thresholds.error_penalty,
        WARNING: thresholds.warning_penalty,
    }
    score = 100.0 - sum(penalties.get(f.severity, 0.0) for f in findings)
    return max(0.0, score)


def quality_score(
    completeness: float,
    consistency: float,
    penalty: float,
    thresholds: ValidationThresholds = DEFAULT_THRESHOLDS,
) -> float:
    score = (
        thresholds.completeness_weight * completeness
        + thresholds.consistency_weight * consistency
        + thresholds.penalty_weight * penalty
    )
    return min(max(score, 0.0), 100.0)


def validate_financial_data(
    data: NormalizedFinancialData | None,
    thresholds: ValidationThresholds = DEFAULT_THRESHOLDS,
) -> ValidationResult:
    """Run universal and sector rules and score the data.

    Args:
        data: Normalized company data.
        thresholds: Validation limits and scoring weights.

    Returns:
        ValidationResult. Missing data yields a single critical finding
        and a quality score of 0.
    """
    if data is None:
        return ValidationResult(
            is_valid=False,
            errors=(ValidationFinding(
                type="missing_normalized_data",
                severity=CRITICAL,
                message="Normalized data structure is missing",
            ),),
            warnings=(),
            quality_score=0.0,
        )

    results = [validate_universal_rules(data, thresholds)]
    if data.company_type == NON_FINANCE:
        results.append(validate_non_finance_rules(data, thresholds))
    elif data.company_type == FINANCE:
        results.append(validate_finance_rules(data, thresholds))

    errors = tuple(f for r in results for f in r.errors)
    warnings = tuple(f for r in results for f in r.warnings)

    completeness = completeness_score(data)
    consistency = consistency_score(data)
    penalty = error_penalty_score(errors + warnings, thresholds)
    score = quality_score(completeness, consistency, penalty, thresholds)

    logger.debug(
        "Validation: %d errors, %d warnings, quality %.1f",
        len(errors), len(warnings), score,
    )
    return ValidationResult(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        quality_score=score,
        completeness_score=completeness,
        consistency_score=consistency,
        penalty_score=penalty,
    )
