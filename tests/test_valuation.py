"""
Tests for the Valuation Calculator.

Verifies:
- Comparable selection by type, size band and location, with city fallback
- Potential value from median and Q3 proxy
- Adjusted opportunity, 0-10 index and labels
- Net opportunity uses the renovation tier of the actual multiplier
- Narrative text boundaries
"""

import pytest
from pathlib import Path
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.models import ConditionAssessment, RenovationSettings
from core.renovation import RenovationCostTable
from core.statistics import stats_from_values
from core.valuation import (
    SCOPE_CITY,
    SCOPE_NEIGHBORHOOD,
    ValuationCalculator,
    adjusted_opportunity,
    describe,
    net_opportunity,
    opportunity_index,
    opportunity_label,
    potential_value,
    select_comparables,
    value_range,
)


@pytest.fixture
def subject(make_listing):
    return make_listing("subject", 800, surface_total=100)


@pytest.fixture
def calculator():
    return ValuationCalculator()


# =============================================================================
# Test: Comparable Selection
# =============================================================================

class TestSelectComparables:
    """Tests for comparable selection."""

    def test_same_neighborhood_within_size_band(self, subject, make_listing):
        listings = [
            subject,
            make_listing("a", 1000, surface_total=60),
            make_listing("b", 1000, surface_total=100),
            make_listing("c", 1000, surface_total=140),
            make_listing("too-small", 1000, surface_total=59),
            make_listing("too-big", 1000, surface_total=141),
            make_listing("house", 1000, property_type="Casa"),
        ]

        comparables, scope = select_comparables(subject, listings)

        assert scope == SCOPE_NEIGHBORHOOD
        assert [c.id for c in comparables] == ["a", "b", "c"]

    def test_falls_back_to_city(self, subject, make_listing):
        listings = [
            make_listing("a", 1000),
            make_listing("b", 1000),
            make_listing("c", 1000, neighborhood="Belgrano"),
            make_listing("d", 1000, neighborhood="Belgrano"),
            make_listing("e", 1000, neighborhood="Centro", city="Rosario"),
        ]

        comparables, scope = select_comparables(subject, listings)

        assert scope == SCOPE_CITY
        assert {c.id for c in comparables} == {"a", "b", "c", "d"}

    def test_insufficient_comparables(self, subject, make_listing):
        listings = [make_listing("a", 1000), make_listing("b", 1000)]

        assert select_comparables(subject, listings) == ([], None)

    def test_subject_without_surface(self, make_listing):
        subject = make_listing("s", 800, surface_total=None, price=80000)
        listings = [make_listing(str(i), 1000) for i in range(5)]

        assert select_comparables(subject, listings) == ([], None)

    def test_unscorable_candidates_ignored(self, subject, make_listing):
        listings = [
            make_listing("a", 1000),
            make_listing("b", 1000),
            make_listing("c", None, price=100000),
        ]

        assert select_comparables(subject, listings) == ([], None)


# =============================================================================
# Test: Pure Calculations
# =============================================================================

class TestPotentialValue:

    def test_midpoint_of_median_and_q3(self):
        stats = stats_from_values("k", [80, 100, 180])

        per_m2, total = potential_value(stats, 50)

        assert per_m2 == 120
        assert total == 6000

    def test_without_surface_no_total(self):
        stats = stats_from_values("k", [80, 100, 180])

        assert potential_value(stats, None) == (120, None)

    def test_value_range(self):
        stats = stats_from_values("k", [80, 100, 180])

        assert value_range(stats, 10) == {
            "median_per_m2": 100,
            "q3_per_m2": 140,
            "median_total": 1000,
            "q3_total": 1400,
        }


class TestAdjustedOpportunity:

    def test_scaled_by_multiplier(self):
        assert adjusted_opportunity(800, 1000, 0.8) == 16.0

    def test_rounded_to_two_decimals(self):
        assert adjusted_opportunity(700, 1000, 0.333) == 9.99

    def test_missing_inputs(self):
        assert adjusted_opportunity(None, 1000, 1.0) is None
        assert adjusted_opportunity(800, 0, 1.0) is None


class TestOpportunityIndex:

    @pytest.mark.parametrize("adjusted,expected", [
        (40, 10.0),
        (100, 10.0),
        (-40, 0.0),
        (-75, 0.0),
        (0, 5.0),
        (16, 7.0),
    ])
    def test_index(self, adjusted, expected):
        assert opportunity_index(adjusted) == expected

    @pytest.mark.parametrize("index,label", [
        (10.0, "Excellent"),
        (8.0, "Excellent"),
        (7.9, "Good"),
        (6.0, "Good"),
        (4.0, "Fair"),
        (3.9, "Low"),
    ])
    def test_labels(self, index, label):
        assert opportunity_label(index) == label


class TestNetOpportunity:

    def test_subtracts_price_and_renovation(self):
        assert net_opportunity(200000, 150000, 20000) == 30000.0

    def test_rounded_to_whole_units(self):
        assert net_opportunity(200000.6, 150000, 0) == 50001.0

    def test_missing_potential(self):
        assert net_opportunity(None, 150000, 0) is None


class TestDescribe:

    def test_direct_opportunity(self):
        assert describe(35, 0.95) == (
            "Price far below market, in good condition. Direct opportunity, ready to buy."
        )

    def test_cheap_needs_works(self):
        assert describe(20, 0.6) == (
            "Competitive price, below market, needs full renovation. "
            "Cheap, but needs investment in works."
        )

    def test_thirty_percent_is_not_far_below(self):
        assert describe(30, 1.2).startswith("Competitive price, below market, in excellent condition.")

    def test_fair_price(self):
        assert describe(5, 1.05) == "Price close to market, in good condition. Good condition, fair price."

    def test_competitive_after_renovation(self):
        assert describe(5, 0.8) == (
            "Price close to market, needs minor improvements. Competitive value after renovation."
        )

    def test_above_market(self):
        assert describe(-5, 1.0).endswith("High price for the area.")


# =============================================================================
# Test: Full Valuation
# =============================================================================

class TestValuationCalculator:
    """Tests for the complete valuation."""

    @pytest.fixture
    def market(self, subject, make_listing):
        return [
            subject,
            make_listing("a", 900),
            make_listing("b", 1000),
            make_listing("c", 1400),
        ]

    def test_full_valuation(self, calculator, subject, market):
        assessment = ConditionAssessment(score_multiplier=0.85)

        valuation = calculator.valuate(subject, assessment, market)

        assert valuation.comparables_count == 3
        assert valuation.comparables_scope == SCOPE_NEIGHBORHOOD
        assert valuation.median_per_m2 == 1000
        assert valuation.q3_per_m2 == 1200
        assert valuation.potential_value_per_m2 == 1100
        assert valuation.potential_value_total == 110000
        assert valuation.adjusted_opportunity == 17.0
        assert valuation.opportunity_label == "Good"
        assert valuation.renovation_cost == 20000.0
        assert valuation.net_opportunity == 10000.0

    def test_renovation_uses_actual_multiplier(self, calculator, subject, market):
        """A multiplier of 1.0 or more means no renovation cost."""
        valuation = calculator.valuate(subject, ConditionAssessment(score_multiplier=1.1), market)

        assert valuation.renovation_cost == 0.0
        assert valuation.net_opportunity == 30000.0

    def test_user_cost_table(self, calculator, subject, market):
        settings = RenovationSettings(
            cost_tiers=RenovationCostTable([(1.0, 0.0), (0.0, 50.0)]),
        )

        valuation = calculator.valuate(
            subject, ConditionAssessment(score_multiplier=0.85), market, settings
        )

        assert valuation.renovation_cost == 5000.0
        assert valuation.net_opportunity == 25000.0

    def test_insufficient_comparables(self, calculator, subject, make_listing):
        valuation = calculator.valuate(
            subject, ConditionAssessment(), [subject, make_listing("a", 1000)]
        )

        assert valuation.comparables_count == 0
        assert valuation.net_opportunity is None
        assert valuation.potential_value_total is None
        assert valuation.notes

    def test_to_dict(self, calculator, subject, market):
        data = calculator.valuate(subject, ConditionAssessment(), market).to_dict()

        assert data["comparables_scope"] == "neighborhood"
        assert data["renovation_cost"] == 0.0
        assert data["notes"]
