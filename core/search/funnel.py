"""
Search Funnel - guided search from all listings to a top-10 shortlist.

Pipeline order:
1. FILTER - conjunctive hard filters, paginated retrieval
2. SCORE - % below the (neighborhood, type) group median
3. BUDGET - optional cap on price + estimated renovation
4. SELECT - top 5% of the pool, at least 10 and at most 20
5. REUSE - skip candidates the user already has an analysis for
6. ANALYZE - AI analysis in bounded-concurrency batches
7. RANK - by net opportunity, failures last, first 10 persisted

Each stage is recorded on the SearchRun through the RunStateMachine so
clients can poll progress.
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional

from core.analysis import PropertyAnalyzer
from core.models import Listing, RenovationSettings, RunStatus, SearchFilters, SearchRun
from core.renovation import AREA_BASIS_TOTAL, RenovationCostEstimator
from core.scoring import opportunity_score
from core.repository import AnalysisRepository, ListingStore, SearchRunRepository
from core.statistics import by_neighborhood_and_type, compute_group_stats

from .state import RunStateMachine


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Constants
# =============================================================================

PAGE_SIZE = 1000
ANALYSIS_BATCH_SIZE = 5
TOP_K_FRACTION = 0.05
TOP_K_MIN = 10
TOP_K_MAX = 20
RESULT_LIMIT = 10


@dataclass
class FunnelConfig:
    """Tunable limits of the search funnel."""
    page_size: int = PAGE_SIZE
    batch_size: int = ANALYSIS_BATCH_SIZE
    top_k_fraction: float = TOP_K_FRACTION
    top_k_min: int = TOP_K_MIN
    top_k_max: int = TOP_K_MAX
    result_limit: int = RESULT_LIMIT

    def __post_init__(self):
        if self.page_size < 1:
            raise ValueError("page_size must be >= 1")
        if self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if self.top_k_min > self.top_k_max:
            raise ValueError("top_k_min must be <= top_k_max")


@dataclass
class Candidate:
    """A filtered listing with its group-relative score."""
    listing: Listing
    score: float
    group_median: float


# =============================================================================
# Pure Steps
# =============================================================================

def top_k_count(
    pool_size: int,
    fraction: float = TOP_K_FRACTION,
    minimum: int = TOP_K_MIN,
    maximum: int = TOP_K_MAX,
) -> int:
    """
    Number of candidates to analyze from a pool.

    ceil(pool * fraction), clamped to [minimum, maximum], never more than
    the pool itself.
    """
    count = math.ceil(pool_size * fraction)
    count = max(minimum, min(maximum, count))
    return min(count, pool_size)


def score_candidates(listings: List[Listing]) -> List[Candidate]:
    """
    Score listings against their (neighborhood, type) group median.

    Returns candidates best opportunity first; equal scores are ordered
    by listing id.
    """
    stats = compute_group_stats(listings, by_neighborhood_and_type)
    candidates = []
    for listing in listings:
        group = stats.get(by_neighborhood_and_type(listing))
        median = group.median if group else 0.0
        candidates.append(Candidate(
            listing=listing,
            score=opportunity_score(listing.price_per_m2_total, median),
            group_median=median,
        ))
    return sorted(candidates, key=lambda c: (-c.score, c.listing.id))


def within_budget(
    candidate: Candidate,
    budget_max: float,
    estimator: RenovationCostEstimator,
) -> bool:
    """Whether price plus the price-ratio renovation estimate fits the budget."""
    listing = candidate.listing
    estimate = estimator.estimate_from_price(
        listing.price_per_m2_total,
        candidate.group_median,
        listing.surface_total,
    )
    return listing.price + estimate.total <= budget_max


def rank_by_net_opportunity(
    listing_ids: List[str],
    net_opportunities: Dict[str, Optional[float]],
    limit: int = RESULT_LIMIT,
) -> List[str]:
    """
    Order listing ids by net opportunity, highest first.

    Ids without a figure (failed or never analyzed) sort after every id
    that has one. Ties are broken by id.
    """
    def key(listing_id: str):
        net = net_opportunities.get(listing_id)
        if net is None:
            return (1, 0.0, listing_id)
        return (0, -net, listing_id)

    return sorted(listing_ids, key=key)[:limit]


# =============================================================================
# Funnel
# =============================================================================

class SearchFunnel:
    """
    Runs a guided search as a single asynchronous task.

    Partial AI failures are absorbed and logged. Anything else fails the
    run, records the message on it, and is re-raised to the caller.
    """

    def __init__(
        self,
        listings: ListingStore,
        analyses: AnalysisRepository,
        runs: SearchRunRepository,
        analyzer: PropertyAnalyzer,
        config: Optional[FunnelConfig] = None,
    ):
        self._listings = listings
        self._analyses = analyses
        self._runs = runs
        self._analyzer = analyzer
        self._config = config or FunnelConfig()

    @property
    def config(self) -> FunnelConfig:
        return self._config

    async def run(
        self,
        run_id: str,
        user_id: str,
        filters: Optional[SearchFilters] = None,
        settings: Optional[RenovationSettings] = None,
    ) -> SearchRun:
        """
        Execute the funnel for a search run.

        The run is created if it does not exist yet. Filters and settings
        default to those stored on the run.

        Raises:
            ValueError: If run_id or user_id is missing (before any processing)
        """
        if not run_id or not user_id:
            raise ValueError("run_id and user_id are required")

        run = self._runs.get(run_id)
        if run is None:
            run = self._runs.create(SearchRun(
                id=run_id,
                user_id=user_id,
                filters=filters or SearchFilters(),
                settings=settings or RenovationSettings(),
            ))
        filters = filters or run.filters
        settings = settings or run.settings

        machine = RunStateMachine(run, self._runs)
        try:
            return await self._execute(machine, user_id, filters, settings)
        except Exception as e:
            logger.exception("Search %s failed", run_id)
            if not machine.status.is_terminal:
                machine.fail(str(e) or type(e).__name__)
            raise

    async def _execute(
        self,
        machine: RunStateMachine,
        user_id: str,
        filters: SearchFilters,
        settings: RenovationSettings,
    ) -> SearchRun:
        run_id = machine.run.id
        machine.advance(RunStatus.FILTERING)

        matched = self._fetch_matching(filters)
        logger.info("Search %s: %d listings matched filters", run_id, len(matched))

        candidates = score_candidates(matched)
        if filters.budget_max is not None:
            estimator = RenovationCostEstimator(
                table=settings.cost_tiers,
                area_basis=AREA_BASIS_TOTAL,
            )
            candidates = [
                c for c in candidates
                if within_budget(c, filters.budget_max, estimator)
            ]
            logger.info("Search %s: %d within budget %.0f", run_id, len(candidates), filters.budget_max)

        k = top_k_count(
            len(candidates),
            self._config.top_k_fraction,
            self._config.top_k_min,
            self._config.top_k_max,
        )
        top = candidates[:k]
        top_ids = [c.listing.id for c in top]
        logger.info("Search %s: selected %d candidates from %d", run_id, len(top), len(candidates))

        existing = self._analyses.get_many(user_id, top_ids)
        pending = [lid for lid in top_ids if lid not in existing]
        logger.info(
            "Search %s: reusing %d analyses, %d to analyze",
            run_id, len(existing), len(pending),
        )

        machine.advance(
            RunStatus.ANALYZING,
            total_matched=len(matched),
            candidates_count=len(top),
            analyzed_count=len(existing),
        )

        analyzed_count = await self._analyze_in_batches(
            machine, user_id, pending, settings, len(existing)
        )

        analyses = self._analyses.get_many(user_id, top_ids)
        net_map = {lid: a.net_opportunity for lid, a in analyses.items()}
        ranked = rank_by_net_opportunity(top_ids, net_map, self._config.result_limit)

        return machine.complete(ranked, analyzed_count=analyzed_count)

    def _fetch_matching(self, filters: SearchFilters) -> List[Listing]:
        """Page through the listing store until a short page."""
        matched: List[Listing] = []
        offset = 0
        page_size = self._config.page_size
        while True:
            page = self._listings.query(filters, offset=offset, limit=page_size)
            matched.extend(page)
            if len(page) < page_size:
                return matched
            offset += page_size

    async def _analyze_in_batches(
        self,
        machine: RunStateMachine,
        user_id: str,
        listing_ids: List[str],
        settings: RenovationSettings,
        analyzed_count: int,
    ) -> int:
        """
        Analyze listings, at most batch_size at a time.

        Each batch runs to completion (success or failure) before the next
        starts. The analyzed counter is persisted after every batch.
        """
        batch_size = self._config.batch_size
        for start in range(0, len(listing_ids), batch_size):
            batch = listing_ids[start:start + batch_size]
            results = await asyncio.gather(
                *(self._analyzer.analyze(user_id, lid, settings) for lid in batch),
                return_exceptions=True,
            )
            for listing_id, result in zip(batch, results):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                if isinstance(result, Exception):
                    logger.warning("Analysis failed for %s: %s", listing_id, result)
                else:
                    analyzed_count += 1
            machine.update_progress(analyzed_count=analyzed_count)

        return analyzed_count
