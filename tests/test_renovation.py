"""
Tests for the Renovation Cost Estimator.

Verifies:
- Tier resolution scans from the highest threshold down
- User tables are parsed leniently with a default fallback
- Minimum-area floor for poor properties on a covered-area basis
"""

import math

import pytest
from pathlib import Path
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.renovation import (
    AREA_BASIS_COVERED,
    AREA_BASIS_TOTAL,
    RenovationCostEstimator,
    RenovationCostTable,
    condition_ratio,
    effective_area,
)


@pytest.fixture
def table():
    return RenovationCostTable.default()


# =============================================================================
# Test: Tier Resolution
# =============================================================================

class TestCostTiers:
    """Tests for the default tier table."""

    @pytest.mark.parametrize("ratio,expected", [
        (1.2, 0.0),
        (1.0, 0.0),
        (0.95, 100.0),
        (0.9, 100.0),
        (0.85, 200.0),
        (0.7, 350.0),
        (0.69, 500.0),
        (0.55, 500.0),
        (0.5, 700.0),
        (0.0, 700.0),
    ])
    def test_default_tiers(self, table, ratio, expected):
        assert table.cost_per_m2(ratio) == expected

    def test_below_every_threshold_uses_lowest_tier(self):
        table = RenovationCostTable([(1.0, 0.0), (0.8, 250.0)])
        assert table.cost_per_m2(0.3) == 250.0

    def test_empty_table_rejected(self):
        with pytest.raises(ValueError):
            RenovationCostTable([])


class TestFromMapping:
    """Tests for parsing user-supplied tables."""

    def test_string_keys_and_values(self):
        table = RenovationCostTable.from_mapping({"1.0": 0, "0.9": "120"})
        assert table.cost_per_m2(0.95) == 120.0

    def test_unusable_entries_dropped(self):
        table = RenovationCostTable.from_mapping({
            "1.0": 0,
            "0.9": 120,
            "bad": 5,
            "0": math.inf,
            "0.5": None,
        })
        assert table.tiers == [(1.0, 0.0), (0.9, 120.0)]
        assert table.cost_per_m2(0.5) == 120.0

    def test_empty_mapping_uses_defaults(self, table):
        assert RenovationCostTable.from_mapping({}) == table
        assert RenovationCostTable.from_mapping(None) == table

    def test_nothing_usable_uses_defaults(self, table):
        assert RenovationCostTable.from_mapping({"x": "y"}) == table

    def test_mapping_round_trip_keeps_order(self, table):
        mapping = table.to_mapping()
        assert list(mapping) == ["1.0", "0.9", "0.8", "0.7", "0.55", "0.0"]


# =============================================================================
# Test: Area Selection
# =============================================================================

class TestEffectiveArea:
    """Tests for the area the cost applies to."""

    def test_total_basis_uses_total(self):
        assert effective_area(100, 30, AREA_BASIS_TOTAL, True, 0.5) == 100

    def test_covered_basis_uses_covered(self):
        assert effective_area(100, 80, AREA_BASIS_COVERED, True, 0.5) == 80

    def test_floor_applies_to_poor_small_footprint(self):
        assert effective_area(100, 30, AREA_BASIS_COVERED, True, 0.6) == 50

    def test_floor_disabled(self):
        assert effective_area(100, 30, AREA_BASIS_COVERED, False, 0.6) == 30

    def test_floor_needs_poor_condition(self):
        assert effective_area(100, 30, AREA_BASIS_COVERED, True, 0.7) == 30

    def test_covered_missing_falls_back_to_total(self):
        assert effective_area(100, None, AREA_BASIS_COVERED, True, 0.5) == 100

    def test_no_areas_is_zero(self):
        assert effective_area(None, None, AREA_BASIS_TOTAL) == 0.0


# =============================================================================
# Test: Estimator
# =============================================================================

class TestRenovationCostEstimator:

    def test_estimate_total(self):
        estimator = RenovationCostEstimator()
        estimate = estimator.estimate(0.85, 80)

        assert estimate.cost_per_m2 == 200.0
        assert estimate.area == 80
        assert estimate.total == 16000.0

    def test_estimate_from_price_uses_price_ratio(self):
        estimator = RenovationCostEstimator()
        estimate = estimator.estimate_from_price(600, 1000, 80)

        assert estimate.ratio == pytest.approx(0.6)
        assert estimate.total == 40000.0

    def test_missing_median_assumes_best_tier(self):
        assert condition_ratio(800, None) == 1.0
        assert condition_ratio(800, 0) == 1.0
        assert RenovationCostEstimator().estimate_from_price(800, None, 80).total == 0.0

    def test_unknown_basis_rejected(self):
        with pytest.raises(ValueError):
            RenovationCostEstimator(area_basis="lot")

    def test_covered_basis_with_floor(self):
        estimator = RenovationCostEstimator(area_basis=AREA_BASIS_COVERED, min_area_floor=True)
        estimate = estimator.estimate(0.6, 100, 30)

        assert estimate.area == 50
        assert estimate.total == 25000.0
