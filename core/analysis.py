"""
Property Analyzer - on-demand AI analysis of a single listing.

Flow for analyze(user, listing):
1. Reuse the listing's shared condition assessment unless forced
2. Otherwise scrape the listing page and ask the AI valuation service
3. Recompute comparables and valuation (prices move; always fresh)
4. Store the shared assessment and the user's analysis
"""

import logging
from typing import TYPE_CHECKING, Optional

from .exceptions import AnalysisError, ListingNotFoundError
from .models import PropertyAnalysis, RenovationSettings
from .repository import AnalysisRepository, ListingStore
from .valuation import Valuation, ValuationCalculator

if TYPE_CHECKING:
    from scraper.base import PageScraper, ValuationService


logger = logging.getLogger(__name__)


class PropertyAnalyzer:
    """
    Runs or reuses the AI analysis of one listing for one user.

    The same instance is shared by the web layer (explicit "analyze" and
    "re-analyze" actions) and the search funnel.
    """

    def __init__(
        self,
        listings: ListingStore,
        analyses: AnalysisRepository,
        valuation_service: "ValuationService",
        scraper: "PageScraper",
        calculator: Optional[ValuationCalculator] = None,
    ):
        self._listings = listings
        self._analyses = analyses
        self._valuation_service = valuation_service
        self._scraper = scraper
        self._calculator = calculator or ValuationCalculator()

    async def analyze(
        self,
        user_id: str,
        listing_id: str,
        settings: Optional[RenovationSettings] = None,
        force: bool = False,
    ) -> PropertyAnalysis:
        """
        Analyze a listing and store the result for the user.

        Args:
            user_id: User requesting the analysis
            listing_id: Listing to analyze
            settings: User renovation settings (defaults if not provided)
            force: Re-run scraping and AI even if an assessment exists

        Returns:
            The stored PropertyAnalysis

        Raises:
            ValueError: If an id is missing
            ListingNotFoundError: If the listing does not exist
            AnalysisError: If the listing has no URL, or scraping/AI fail
        """
        if not listing_id:
            raise ValueError("listing_id is required")
        if not user_id:
            raise ValueError("user_id is required")

        listing = self._listings.get(listing_id)
        if listing is None:
            raise ListingNotFoundError(listing_id)
        if not listing.url:
            raise AnalysisError(f"Listing {listing_id} has no URL")

        assessment = None if force else self._analyses.get_shared(listing_id)
        reused = assessment is not None

        if reused:
            logger.info(
                "Reusing assessment for %s: score=%.2f",
                listing_id, assessment.score_multiplier,
            )
        else:
            logger.info("Running full analysis for %s", listing_id)
            page = await self._scraper.scrape(listing.url)
            assessment = await self._valuation_service.assess(listing, page)
            self._analyses.save_shared(listing_id, assessment)

        valuation = self._calculator.valuate(
            listing, assessment, self._listings.all(), settings
        )
        analysis = self._to_analysis(user_id, listing_id, assessment, valuation)
        self._analyses.save(analysis)

        logger.info(
            "Analysis saved for user %s, listing %s: score=%.2f, net=%s, reused=%s",
            user_id, listing_id, assessment.score_multiplier,
            analysis.net_opportunity, reused,
        )
        return analysis

    def valuation_for(
        self,
        analysis: PropertyAnalysis,
        settings: Optional[RenovationSettings] = None,
    ) -> Optional[Valuation]:
        """Full valuation breakdown for a stored analysis, for display."""
        listing = self._listings.get(analysis.listing_id)
        if listing is None:
            return None
        return self._calculator.valuate(
            listing, analysis.assessment, self._listings.all(), settings
        )

    @staticmethod
    def _to_analysis(user_id, listing_id, assessment, valuation: Valuation) -> PropertyAnalysis:
        return PropertyAnalysis(
            user_id=user_id,
            listing_id=listing_id,
            assessment=assessment,
            potential_value_per_m2=valuation.potential_value_per_m2,
            potential_value_total=valuation.potential_value_total,
            median_per_m2=valuation.median_per_m2,
            comparables_count=valuation.comparables_count,
            adjusted_opportunity=valuation.adjusted_opportunity,
            net_opportunity=valuation.net_opportunity,
            renovation_cost=valuation.renovation_cost,
        )
