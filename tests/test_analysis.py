"""
Tests for the Property Analyzer.

Verifies:
- Shared assessments are reused unless a re-analysis is forced
- Valuation figures are recomputed and stored per user
- Missing ids, unknown listings and listings without URL are rejected
- Preselection toggling and change notifications
"""

import asyncio

import pytest
from pathlib import Path
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.analysis import PropertyAnalyzer
from core.exceptions import AnalysisError, ListingNotFoundError
from core.repository import (
    InMemoryAnalysisRepository,
    InMemoryListingStore,
    PreselectionStore,
)
from scraper.mock import MockScraper, MockValuationService


@pytest.fixture
def store(make_listing):
    store = InMemoryListingStore()
    store.add_many([
        make_listing("subject", 800),
        make_listing("a", 900),
        make_listing("b", 1000),
        make_listing("c", 1400),
        make_listing("no-url", 700, neighborhood="Lugano", url=""),
    ])
    return store


@pytest.fixture
def analyses():
    return InMemoryAnalysisRepository()


@pytest.fixture
def valuation():
    return MockValuationService(multipliers={"subject": 0.85})


@pytest.fixture
def analyzer(store, analyses, valuation):
    return PropertyAnalyzer(store, analyses, valuation, MockScraper())


# =============================================================================
# Test: Analysis
# =============================================================================

class TestPropertyAnalyzer:

    def test_analysis_figures(self, analyzer, analyses):
        analysis = asyncio.run(analyzer.analyze("user-1", "subject"))

        assert analysis.assessment.score_multiplier == 0.85
        assert analysis.comparables_count == 3
        assert analysis.median_per_m2 == 1000
        assert analysis.potential_value_total == 110000
        assert analysis.adjusted_opportunity == 17.0
        assert analysis.renovation_cost == 20000.0
        assert analysis.net_opportunity == 10000.0
        assert analyses.get("user-1", "subject") == analysis

    def test_shared_assessment_saved(self, analyzer, analyses):
        asyncio.run(analyzer.analyze("user-1", "subject"))

        shared = analyses.get_shared("subject")
        assert shared is not None
        assert shared.score_multiplier == 0.85

    def test_assessment_reused_across_users(self, analyzer, analyses, valuation):
        asyncio.run(analyzer.analyze("user-1", "subject"))
        analysis = asyncio.run(analyzer.analyze("user-2", "subject"))

        assert valuation.calls == ["subject"]
        assert analysis.user_id == "user-2"
        assert analyses.get("user-2", "subject").net_opportunity == 10000.0

    def test_force_runs_again(self, analyzer, valuation):
        asyncio.run(analyzer.analyze("user-1", "subject"))
        asyncio.run(analyzer.analyze("user-1", "subject", force=True))

        assert valuation.calls == ["subject", "subject"]

    def test_valuation_for_stored_analysis(self, analyzer):
        analysis = asyncio.run(analyzer.analyze("user-1", "subject"))

        valuation = analyzer.valuation_for(analysis)

        assert valuation.potential_value_per_m2 == 1100
        assert valuation.net_opportunity == analysis.net_opportunity


# =============================================================================
# Test: Failures
# =============================================================================

class TestAnalyzerFailures:

    def test_missing_ids_rejected(self, analyzer):
        with pytest.raises(ValueError):
            asyncio.run(analyzer.analyze("user-1", ""))
        with pytest.raises(ValueError):
            asyncio.run(analyzer.analyze("", "subject"))

    def test_unknown_listing(self, analyzer):
        with pytest.raises(ListingNotFoundError):
            asyncio.run(analyzer.analyze("user-1", "missing"))

    def test_listing_without_url(self, analyzer, valuation):
        with pytest.raises(AnalysisError):
            asyncio.run(analyzer.analyze("user-1", "no-url"))
        assert valuation.calls == []

    def test_ai_failure_stores_nothing(self, store, analyses):
        analyzer = PropertyAnalyzer(
            store, analyses, MockValuationService(failing_ids={"subject"}), MockScraper()
        )

        with pytest.raises(AnalysisError):
            asyncio.run(analyzer.analyze("user-1", "subject"))

        assert analyses.get("user-1", "subject") is None
        assert analyses.get_shared("subject") is None


# =============================================================================
# Test: Preselection
# =============================================================================

class TestPreselectionStore:

    def test_toggle_on_and_off(self):
        store = PreselectionStore()

        assert store.toggle("user-1", "a") is True
        assert store.is_selected("user-1", "a")
        assert store.toggle("user-1", "a") is False
        assert store.selected("user-1") == set()

    def test_selections_are_per_user(self):
        store = PreselectionStore()
        store.toggle("user-1", "a")

        assert not store.is_selected("user-2", "a")

    def test_subscribers_notified(self):
        store = PreselectionStore()
        events = []
        unsubscribe = store.subscribe(lambda user, ids: events.append((user, ids)))

        store.toggle("user-1", "a")
        store.clear("user-1")
        unsubscribe()
        store.toggle("user-1", "b")

        assert events == [("user-1", {"a"}), ("user-1", set())]
