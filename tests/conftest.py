"""
Shared fixtures for Flip Radar tests.
"""

import sys
from pathlib import Path
from typing import Optional

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.models import Listing


def build_listing(
    listing_id: str,
    price_per_m2: Optional[float] = 1000.0,
    surface_total: Optional[float] = 100.0,
    surface_covered: Optional[float] = None,
    neighborhood: str = "Palermo",
    city: str = "Buenos Aires",
    property_type: Optional[str] = "Departamento",
    price: Optional[float] = None,
    rooms: Optional[int] = 3,
    parking: Optional[int] = None,
    url: Optional[str] = None,
) -> Listing:
    """Listing whose price is price_per_m2 * surface_total unless given."""
    if price is None:
        price = (price_per_m2 or 1000.0) * (surface_total or 100.0)
    return Listing(
        id=listing_id,
        external_id=f"EXT-{listing_id}",
        price=price,
        url=f"https://example.com/propiedad/{listing_id}" if url is None else url,
        property_type=property_type,
        neighborhood=neighborhood,
        city=city,
        surface_total=surface_total,
        surface_covered=surface_covered if surface_covered is not None else surface_total,
        rooms=rooms,
        parking=parking,
        price_per_m2_total=price_per_m2,
    )


@pytest.fixture
def make_listing():
    """Factory fixture for creating listings."""
    return build_listing
