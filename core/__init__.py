"""
Flip Radar - Core Business Logic

This module provides the opportunity pipeline:
1. Ingestion (CSV listings with rejection records)
2. Group statistics (median price per m² per neighborhood)
3. Opportunity scoring (% below the group median)
4. AI-adjusted valuation (comparables, renovation cost, net opportunity)
5. Guided search funnel (filter, score, budget, top-K, analyze, rank)
"""

from .models import (
    Listing,
    SearchFilters,
    RenovationSettings,
    ConditionAssessment,
    PropertyAnalysis,
    RunStatus,
    SearchRun,
    condition_label,
)
from .exceptions import (
    FlipRadarError,
    ListingNotFoundError,
    SearchRunNotFoundError,
    AnalysisError,
    RateLimitError,
    CreditsExhaustedError,
    InvalidTransitionError,
)
from .renovation import (
    RenovationCostTable,
    RenovationCostEstimator,
    RenovationEstimate,
    condition_ratio,
    effective_area,
)
from .statistics import (
    GroupStats,
    median,
    q3_proxy,
    compute_group_stats,
    by_neighborhood,
    by_neighborhood_and_type,
)
from .scoring import OpportunityScorer, OpportunityScore, ScoredListing, opportunity_score
from .valuation import (
    Valuation,
    ValuationCalculator,
    select_comparables,
    adjusted_opportunity,
    opportunity_index,
    opportunity_label,
    net_opportunity,
    describe,
)
from .repository import (
    ListingStore,
    InMemoryListingStore,
    AnalysisRepository,
    InMemoryAnalysisRepository,
    SearchRunRepository,
    InMemorySearchRunRepository,
    PreselectionStore,
)
from .analysis import PropertyAnalyzer

# Ingestion Layer
from .ingestion import IngestionResult, RejectionRecord, REJECTION_CODES, parse_listings_csv

# Guided search
from .search import SearchFunnel, FunnelConfig, RunStateMachine

__all__ = [
    # Models
    "Listing",
    "SearchFilters",
    "RenovationSettings",
    "ConditionAssessment",
    "PropertyAnalysis",
    "RunStatus",
    "SearchRun",
    "condition_label",
    # Errors
    "FlipRadarError",
    "ListingNotFoundError",
    "SearchRunNotFoundError",
    "AnalysisError",
    "RateLimitError",
    "CreditsExhaustedError",
    "InvalidTransitionError",
    # Renovation
    "RenovationCostTable",
    "RenovationCostEstimator",
    "RenovationEstimate",
    "condition_ratio",
    "effective_area",
    # Statistics
    "GroupStats",
    "median",
    "q3_proxy",
    "compute_group_stats",
    "by_neighborhood",
    "by_neighborhood_and_type",
    # Scoring
    "OpportunityScorer",
    "OpportunityScore",
    "ScoredListing",
    "opportunity_score",
    # Valuation
    "Valuation",
    "ValuationCalculator",
    "select_comparables",
    "adjusted_opportunity",
    "opportunity_index",
    "opportunity_label",
    "net_opportunity",
    "describe",
    # Stores
    "ListingStore",
    "InMemoryListingStore",
    "AnalysisRepository",
    "InMemoryAnalysisRepository",
    "SearchRunRepository",
    "InMemorySearchRunRepository",
    "PreselectionStore",
    "PropertyAnalyzer",
    # Ingestion
    "IngestionResult",
    "RejectionRecord",
    "REJECTION_CODES",
    "parse_listings_csv",
    # Search
    "SearchFunnel",
    "FunnelConfig",
    "RunStateMachine",
]
