"""
External collaborators for listing analysis.

Available implementations:
- MockScraper / MockValuationService: Development/testing, no network
- FirecrawlScraper: Listing page content via Firecrawl
- GatewayValuationService: AI condition assessment via a chat-completions gateway
"""

from .base import PageScraper, ScrapedPage, ValuationService
from .gateway import FirecrawlScraper, GatewayValuationService, parse_model_reply
from .mock import MockListingGenerator, MockScraper, MockValuationService

__all__ = [
    "PageScraper",
    "ScrapedPage",
    "ValuationService",
    "FirecrawlScraper",
    "GatewayValuationService",
    "parse_model_reply",
    "MockListingGenerator",
    "MockScraper",
    "MockValuationService",
]
