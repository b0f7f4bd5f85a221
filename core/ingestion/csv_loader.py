"""
CSV import of scraped listings.

The first row is a header. Columns are matched by name, so exports with
extra or reordered columns load unchanged. Empty cells become None.
"""

from __future__ import annotations

import csv
import io
import logging
import math
from datetime import datetime
from typing import Callable, Optional

from core.models import DEFAULT_CITY, DEFAULT_NEIGHBORHOOD, Listing

from .schema import MAX_PRICE_PER_M2, IngestionResult, RejectionRecord


logger = logging.getLogger(__name__)


# Alternative header names used by older scraper exports
COLUMN_ALIASES = {
    "price_per_sqm": "price_per_m2_total",
    "price_per_sqm_covered": "price_per_m2_covered",
    "total_area": "surface_total",
    "covered_area": "surface_covered",
    "province": "city",
    "type": "property_type",
}


def _text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _number(value: Optional[str], cast: Callable = float):
    text = _text(value)
    if text is None:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    # nan, inf and overflowing literals are treated as empty
    if not math.isfinite(number):
        return None
    return cast(number)


def _normalise_header(name: str) -> str:
    key = (name or "").strip().lower()
    return COLUMN_ALIASES.get(key, key)


def listing_id_for(external_id: str) -> str:
    """Stable listing id: re-importing the same external id replaces the listing."""
    return f"prop-{external_id}"


def parse_listings_csv(text: str, delimiter: str = ";") -> IngestionResult:
    """
    Parse a listings CSV export.

    Args:
        text: Full CSV content including the header row
        delimiter: Field delimiter (scraper exports use ';')

    Returns:
        IngestionResult with valid listings and one rejection per bad row
    """
    reader = csv.reader(io.StringIO(text), delimiter=delimiter)
    rows = [row for row in reader if any(cell.strip() for cell in row)]
    result = IngestionResult()
    if not rows:
        return result

    header = [_normalise_header(h) for h in rows[0]]
    result.total_rows = len(rows) - 1

    for line_number, cells in enumerate(rows[1:], start=2):
        if len(cells) < len(header):
            result.rejections.append(RejectionRecord.create(line_number, "", "MALFORMED_ROW"))
            continue

        row = dict(zip(header, cells))
        listing, code = _row_to_listing(row)
        if listing is None:
            result.rejections.append(RejectionRecord.create(
                line_number, _text(row.get("external_id")) or "", code, row,
            ))
            continue
        result.listings.append(listing)

    logger.info(
        "CSV import: %d processed, %d skipped of %d rows",
        result.processed, result.skipped, result.total_rows,
    )
    return result


def _row_to_listing(row: dict) -> tuple[Optional[Listing], Optional[str]]:
    external_id = _text(row.get("external_id"))
    if not external_id:
        return None, "MISSING_EXTERNAL_ID"

    if _text(row.get("price")) is None:
        return None, "MISSING_PRICE"
    price = _number(row.get("price"))
    if price is None or price <= 0:
        return None, "INVALID_PRICE"

    price_per_m2 = _number(row.get("price_per_m2_total"))
    if price_per_m2 is None or price_per_m2 <= 0:
        return None, "INVALID_PRICE_PER_M2"
    if price_per_m2 > MAX_PRICE_PER_M2:
        return None, "PRICE_PER_M2_ABOVE_THRESHOLD"

    return Listing(
        id=listing_id_for(external_id),
        external_id=external_id,
        price=price,
        url=_text(row.get("url")) or "",
        currency=_text(row.get("currency")) or "USD",
        property_type=_text(row.get("property_type")),
        neighborhood=_text(row.get("neighborhood")) or DEFAULT_NEIGHBORHOOD,
        city=_text(row.get("city")) or DEFAULT_CITY,
        surface_total=_number(row.get("surface_total")),
        surface_covered=_number(row.get("surface_covered")),
        rooms=_number(row.get("rooms"), int),
        bedrooms=_number(row.get("bedrooms"), int),
        bathrooms=_number(row.get("bathrooms"), int),
        parking=_number(row.get("parking"), int),
        price_per_m2_total=price_per_m2,
        price_per_m2_covered=_number(row.get("price_per_m2_covered")),
        title=_text(row.get("title")),
        address=_text(row.get("address")),
        description=_text(row.get("description")),
        age_years=_number(row.get("age_years"), int),
        scraped_at=_text(row.get("scraped_at")) or datetime.utcnow().isoformat(),
    ), None
