"""Tests for configuration dataclasses."""

from __future__ import annotations

import dataclasses

import pytest

from finnorm.config import (
    DEFAULT_ASSUMPTIONS,
    TARGET_QUARTERS,
    TARGET_YEARS,
    BatchConfig,
    CacheConfig,
    EstimationAssumptions,
    SectorScoringConfig,
    ValidationThresholds,
)


class TestEstimationAssumptions:
    """Tests for the ratio estimation constants."""

    def test_defaults(self) -> None:
        """Default proportions match the documented business assumptions."""
        a = EstimationAssumptions()
        assert a.net_interest_share == 0.7
        assert a.non_interest_share == 0.3
        assert a.assumed_tax_rate == 0.3
        assert a.deposit_share_of_debt == 0.85
        assert a.estimated_payable_days == 48.0
        assert a.days_per_quarter == 90.0

    def test_frozen(self) -> None:
        """Assumptions cannot be mutated in place."""
        with pytest.raises(dataclasses.FrozenInstanceError):
            DEFAULT_ASSUMPTIONS.net_interest_share = 0.5  # type: ignore[misc]

    def test_override(self) -> None:
        """Individual assumptions can be overridden at construction."""
        a = EstimationAssumptions(net_interest_share=0.6)
        assert a.net_interest_share == 0.6
        assert a.non_interest_share == 0.3


class TestSectorScoringConfig:
    """Tests for detector scoring constants."""

    def test_confidence_constants(self) -> None:
        """Confidence base, cap and multipliers."""
        s = SectorScoringConfig()
        assert s.base_confidence == 0.5
        assert s.max_confidence == 0.99
        assert s.conflict_multiplier == 0.7
        assert s.missing_balance_sheet_multiplier == 0.75
        assert s.unknown_confidence == 0.3

    def test_decision_threshold(self) -> None:
        """A sector needs a score of at least 3 to win outright."""
        assert SectorScoringConfig().decision_min_score == 3


class TestValidationThresholds:
    """Tests for validator limits and weights."""

    def test_penalties(self) -> None:
        """Severity penalties are 50/30/8."""
        t = ValidationThresholds()
        assert (t.critical_penalty, t.error_penalty, t.warning_penalty) == (50.0, 30.0, 8.0)

    def test_weights_sum_to_one(self) -> None:
        """Quality weights blend to a 0-100 score."""
        t = ValidationThresholds()
        total = t.completeness_weight + t.consistency_weight + t.penalty_weight
        assert total == pytest.approx(1.0)


class TestOtherConfig:
    """Tests for cache, batch and coverage settings."""

    def test_cache_defaults(self) -> None:
        """Cache holds 1000 entries for five minutes."""
        c = CacheConfig()
        assert c.max_size == 1000
        assert c.ttl_seconds == 300.0

    def test_batch_defaults(self) -> None:
        """50 companies per worker, at most 4 workers."""
        b = BatchConfig()
        assert b.companies_per_worker == 50
        assert b.max_workers == 4

    def test_coverage_targets(self) -> None:
        """13 quarters and 12 years count as full coverage."""
        assert TARGET_QUARTERS == 13
        assert TARGET_YEARS == 12
