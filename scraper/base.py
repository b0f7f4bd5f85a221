"""
Interfaces of the external collaborators used by the analysis pipeline.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from core.models import ConditionAssessment, Listing


@dataclass
class ScrapedPage:
    """Content of a listing's public page."""
    url: str
    markdown: str = ""
    screenshot: Optional[str] = None  # data URL or remote URL


class PageScraper(ABC):
    """Abstract base class for listing page scrapers."""

    @abstractmethod
    async def scrape(self, url: str) -> ScrapedPage:
        """
        Fetch the content of a listing page.

        Args:
            url: Public URL of the listing.

        Returns:
            ScrapedPage with text and, when available, a screenshot.

        Raises:
            AnalysisError: If the page could not be scraped.
        """
        pass


class ValuationService(ABC):
    """Abstract base class for AI condition assessment."""

    @abstractmethod
    async def assess(self, listing: Listing, page: ScrapedPage) -> ConditionAssessment:
        """
        Assess the physical condition of a listing.

        Args:
            listing: Structured listing data.
            page: Scraped content of the listing page.

        Returns:
            ConditionAssessment with a multiplier centred on 1.0.

        Raises:
            AnalysisError: On gateway errors or unusable responses.
            RateLimitError: When the gateway is rate limiting.
        """
        pass
