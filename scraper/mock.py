"""
Mock collaborators for development and testing.
Generates deterministic listings, pages and condition assessments without
external requests.
"""

import asyncio
import hashlib
import random
from datetime import datetime
from typing import Iterable, List, Optional, Set

from core.exceptions import AnalysisError
from core.models import ConditionAssessment, Listing

from .base import PageScraper, ScrapedPage, ValuationService


class MockListingGenerator:
    """Generates placeholder listings for a city."""

    NEIGHBORHOODS = {
        "Buenos Aires": ["Palermo", "Belgrano", "Caballito", "Villa Crespo", "Almagro", "Nunez"],
        "Rosario": ["Centro", "Fisherton", "Echesortu", "Pichincha"],
    }

    PROPERTY_TYPES = ["Departamento", "Casa", "PH"]

    # Base USD per m² by property type
    BASE_PRICE_PER_M2 = {"Departamento": 2400, "Casa": 1600, "PH": 1900}

    def __init__(self, seed: Optional[int] = None):
        """
        Initialize mock generator.

        Args:
            seed: Optional random seed for reproducible results.
        """
        self._random = random.Random(seed)

    def generate(self, count: int, city: str = "Buenos Aires") -> List[Listing]:
        """Generate `count` listings spread over the city's neighborhoods."""
        neighborhoods = self.NEIGHBORHOODS.get(city, ["Centro"])
        return [
            self._generate_listing(f"mock-{i:05d}", self._random.choice(neighborhoods), city)
            for i in range(count)
        ]

    def _generate_listing(self, listing_id: str, neighborhood: str, city: str) -> Listing:
        property_type = self._random.choice(self.PROPERTY_TYPES)
        surface_total = float(self._random.randint(35, 400))
        surface_covered = round(surface_total * self._random.uniform(0.35, 1.0))

        price_per_m2 = self.BASE_PRICE_PER_M2[property_type] * self._random.uniform(0.45, 1.4)
        price = round(price_per_m2 * surface_total / 1000) * 1000
        rooms = self._random.randint(1, 6)

        return Listing(
            id=listing_id,
            external_id=f"EXT-{listing_id}",
            price=float(price),
            url=f"https://example.com/propiedad/{listing_id}",
            property_type=property_type,
            neighborhood=neighborhood,
            city=city,
            surface_total=surface_total,
            surface_covered=float(surface_covered),
            rooms=rooms,
            bedrooms=max(rooms - 1, 0),
            bathrooms=self._random.randint(1, 3),
            parking=self._random.randint(0, 2),
            price_per_m2_total=round(price / surface_total, 2),
            price_per_m2_covered=round(price / surface_covered, 2),
            scraped_at=datetime.utcnow().isoformat(),
        )


class MockScraper(PageScraper):
    """Returns the listing URL back as a minimal page."""

    async def scrape(self, url: str) -> ScrapedPage:
        return ScrapedPage(url=url, markdown=f"Listing at {url}")


class MockValuationService(ValuationService):
    """
    Deterministic condition assessments derived from the listing id.

    Listings in `failing_ids` raise AnalysisError. Tracks call count and the
    peak number of concurrent calls.
    """

    def __init__(
        self,
        failing_ids: Optional[Iterable[str]] = None,
        multipliers: Optional[dict] = None,
        delay: float = 0.0,
    ):
        self._failing_ids: Set[str] = set(failing_ids or [])
        self._multipliers = dict(multipliers or {})
        self._delay = delay
        self._in_flight = 0
        self.calls: List[str] = []
        self.max_in_flight = 0

    async def assess(self, listing: Listing, page: ScrapedPage) -> ConditionAssessment:
        self.calls.append(listing.id)
        self._in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self._in_flight)
        try:
            # Yield so that concurrent calls overlap
            await asyncio.sleep(self._delay)
            if listing.id in self._failing_ids:
                raise AnalysisError(f"Mock analysis failure for {listing.id}")
            return ConditionAssessment.from_payload({
                "score_multiplicador": self._multiplier_for(listing.id),
                "highlights": ["Mock highlight"],
                "lowlights": ["Mock lowlight"],
                "informe_breve": f"Mock assessment of {listing.id}.",
            })
        finally:
            self._in_flight -= 1

    def _multiplier_for(self, listing_id: str) -> float:
        if listing_id in self._multipliers:
            return self._multipliers[listing_id]
        digest = hashlib.sha256(listing_id.encode("utf-8")).hexdigest()
        # 0.55 - 1.30
        return round(0.55 + (int(digest[:8], 16) % 76) / 100, 2)
