"""
Opportunity scoring for listings.

Scores every listing against its neighborhood's median price per m² and
flags two kinds of opportunity:
- Top opportunity: in the cheapest 10% of all scorable listings, globally
- Neighborhood deal: at least 40% below the neighborhood median

The two flags are independent; a listing can carry either, both or none.
"""

import math
from dataclasses import dataclass
from typing import Dict, Hashable, Iterable, List, Optional, Set

from .models import Listing
from .statistics import GroupStats, KeyFn, by_neighborhood, compute_group_stats


# Thresholds
DEFAULT_DEAL_THRESHOLD = 40.0  # % below the group median
TOP_OPPORTUNITY_FRACTION = 0.10


def opportunity_score(price_per_m2: Optional[float], group_median: Optional[float]) -> float:
    """
    Percentage by which a price per m² sits below the group median.

    Positive = cheaper than the market. 0 when the median is missing or 0.
    """
    if not group_median or group_median <= 0 or price_per_m2 is None:
        return 0.0
    return (group_median - price_per_m2) / group_median * 100


@dataclass
class OpportunityScore:
    """Opportunity score of one listing against its group."""
    score: float
    is_top_opportunity: bool = False
    is_neighborhood_deal: bool = False


@dataclass
class ScoredListing:
    """A listing together with its opportunity score."""
    listing: Listing
    opportunity: OpportunityScore
    group_median: Optional[float] = None
    insufficient_data: bool = False

    def to_dict(self) -> dict:
        data = self.listing.to_dict()
        data.update({
            "opportunity_score": round(self.opportunity.score, 1),
            "is_top_opportunity": self.opportunity.is_top_opportunity,
            "is_neighborhood_deal": self.opportunity.is_neighborhood_deal,
            "group_median_price_per_m2": self.group_median,
            "insufficient_data": self.insufficient_data,
        })
        return data


class OpportunityScorer:
    """
    Derives opportunity scores and flags from group statistics.

    Never raises on missing data: a listing without a usable price per m²
    scores 0 and carries no flags.
    """

    def __init__(
        self,
        deal_threshold: float = DEFAULT_DEAL_THRESHOLD,
        top_fraction: float = TOP_OPPORTUNITY_FRACTION,
        key_fn: KeyFn = by_neighborhood,
    ):
        """
        Initialize scorer.

        Args:
            deal_threshold: Minimum % below median for a neighborhood deal (0-100)
            top_fraction: Share of cheapest listings flagged as top opportunities
            key_fn: Grouping key used for the comparable median
        """
        if not 0 <= deal_threshold <= 100:
            raise ValueError("deal_threshold must be between 0 and 100")
        if not 0 < top_fraction <= 1:
            raise ValueError("top_fraction must be in (0, 1]")
        self.deal_threshold = deal_threshold
        self.top_fraction = top_fraction
        self._key_fn = key_fn

    def score(
        self,
        listing: Listing,
        stats: Optional[GroupStats],
        is_top_opportunity: bool = False,
    ) -> OpportunityScore:
        """
        Score a single listing against its group statistics.

        Without group statistics the listing's own price per m² stands in
        as the median, which yields a score of 0.
        """
        if not listing.is_scorable:
            return OpportunityScore(score=0.0)

        ppm2 = listing.price_per_m2_total
        reference = stats.median if stats else ppm2
        value = opportunity_score(ppm2, reference)

        return OpportunityScore(
            score=value,
            is_top_opportunity=is_top_opportunity,
            is_neighborhood_deal=value >= self.deal_threshold,
        )

    def top_opportunity_ids(self, listings: Iterable[Listing]) -> Set[str]:
        """
        Ids of the globally cheapest listings by price per m².

        Exactly ceil(n * top_fraction) of the n scorable listings are
        returned. Equal prices are ordered by id.
        """
        scorable = [l for l in listings if l.is_scorable]
        ordered = sorted(scorable, key=lambda l: (l.price_per_m2_total, l.id))
        cut = math.ceil(len(ordered) * self.top_fraction)
        return {l.id for l in ordered[:cut]}

    def score_all(
        self,
        listings: List[Listing],
        stats: Optional[Dict[Hashable, GroupStats]] = None,
    ) -> List[ScoredListing]:
        """
        Score every listing, in input order.

        Args:
            listings: All listings to display
            stats: Precomputed group statistics (computed if not provided)

        Returns:
            One ScoredListing per input listing
        """
        if stats is None:
            stats = compute_group_stats(listings, self._key_fn)
        top_ids = self.top_opportunity_ids(listings)

        results = []
        for listing in listings:
            group = stats.get(self._key_fn(listing))
            results.append(ScoredListing(
                listing=listing,
                opportunity=self.score(listing, group, listing.id in top_ids),
                group_median=group.median if group else None,
                insufficient_data=not listing.is_scorable,
            ))
        return results

    def rank(self, scored: List[ScoredListing]) -> List[ScoredListing]:
        """Sort scored listings best opportunity first (ties by id)."""
        return sorted(scored, key=lambda s: (-s.opportunity.score, s.listing.id))
