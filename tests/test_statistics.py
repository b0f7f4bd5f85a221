"""
Tests for the Statistics Engine.

Verifies:
- Median for odd, even and empty inputs
- Q3 proxy mirrored about the mean, floored at the median
- Group statistics skip listings without a usable price per m²
- Neighborhood and (neighborhood, type) grouping
"""

import pytest
from pathlib import Path
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.statistics import (
    GroupStats,
    by_neighborhood,
    by_neighborhood_and_type,
    compute_group_stats,
    median,
    q3_proxy,
    stats_from_values,
)


# =============================================================================
# Test: Median
# =============================================================================

class TestMedian:
    """Tests for the median helper."""

    def test_odd_count_returns_middle(self):
        assert median([3, 1, 2]) == 2.0

    def test_even_count_averages_middle_pair(self):
        assert median([4, 1, 3, 2]) == 2.5

    def test_empty_returns_zero(self):
        assert median([]) == 0.0

    def test_single_value(self):
        assert median([1234.5]) == 1234.5


# =============================================================================
# Test: Q3 Proxy
# =============================================================================

class TestQ3Proxy:
    """Tests for the upper-quartile estimate."""

    def test_mirrors_median_about_mean(self):
        assert q3_proxy(100, 120) == 140

    def test_never_below_median(self):
        """Left-skewed groups would otherwise invert the range."""
        assert q3_proxy(100, 90) == 100

    def test_group_stats_property(self):
        stats = stats_from_values("Palermo", [80, 100, 180])
        assert stats.median == 100
        assert stats.mean == 120
        assert stats.q3_proxy == 140


# =============================================================================
# Test: Group Statistics
# =============================================================================

class TestComputeGroupStats:
    """Tests for per-group statistics."""

    def test_groups_by_neighborhood(self, make_listing):
        listings = [
            make_listing("a", 1000),
            make_listing("b", 2000),
            make_listing("c", 3000),
            make_listing("d", 1500, neighborhood="Belgrano"),
        ]

        stats = compute_group_stats(listings, by_neighborhood)

        assert set(stats) == {"Palermo", "Belgrano"}
        palermo = stats["Palermo"]
        assert palermo.count == 3
        assert palermo.median == 2000
        assert palermo.mean == 2000
        assert palermo.min == 1000
        assert palermo.max == 3000
        assert palermo.city == "Buenos Aires"

    def test_unscorable_listings_are_skipped(self, make_listing):
        listings = [
            make_listing("a", 1000),
            make_listing("b", None, neighborhood="Nunez", price=90000),
            make_listing("c", 0, neighborhood="Nunez", price=90000),
        ]

        stats = compute_group_stats(listings)

        assert "Nunez" not in stats
        assert stats["Palermo"].count == 1

    def test_groups_by_neighborhood_and_type(self, make_listing):
        listings = [
            make_listing("a", 1000, property_type="Departamento"),
            make_listing("b", 3000, property_type="Casa"),
            make_listing("c", 2000, property_type=None),
        ]

        stats = compute_group_stats(listings, by_neighborhood_and_type)

        assert stats[("Palermo", "Departamento")].median == 1000
        assert stats[("Palermo", "Casa")].median == 3000
        assert stats[("Palermo", "")].median == 2000

    def test_no_listings_no_groups(self):
        assert compute_group_stats([]) == {}

    def test_empty_values_rejected(self):
        with pytest.raises(ValueError):
            stats_from_values("x", [])

    def test_to_dict_lists_tuple_keys(self):
        stats = GroupStats(key=("Palermo", "PH"), count=1, median=1.0, mean=1.0, min=1.0, max=1.0)
        assert stats.to_dict()["key"] == ["Palermo", "PH"]
