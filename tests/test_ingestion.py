"""
Tests for CSV ingestion.

Verifies:
- Columns matched by name, including legacy aliases
- Every rejected row carries a code and its line number
- Defaults for missing location and currency
"""

import pytest
from pathlib import Path
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.ingestion import (
    MAX_PRICE_PER_M2,
    REJECTION_CODES,
    listing_id_for,
    parse_listings_csv,
)
from core.models import DEFAULT_CITY, DEFAULT_NEIGHBORHOOD


HEADER = "external_id;price;currency;property_type;neighborhood;city;surface_total;surface_covered;rooms;price_per_m2_total;url"


def csv_text(*rows):
    return "\n".join([HEADER, *rows]) + "\n"


# =============================================================================
# Test: Valid Rows
# =============================================================================

class TestParseListings:

    def test_valid_row(self):
        result = parse_listings_csv(csv_text(
            "A1;120000;USD;Departamento;Palermo;Buenos Aires;60;55;3;2000;https://example.com/a1",
        ))

        assert result.processed == 1
        assert result.skipped == 0
        listing = result.listings[0]
        assert listing.id == "prop-A1"
        assert listing.price == 120000.0
        assert listing.surface_covered == 55.0
        assert listing.rooms == 3
        assert listing.price_per_m2_total == 2000.0
        assert listing.url == "https://example.com/a1"

    def test_defaults_for_missing_fields(self):
        result = parse_listings_csv(csv_text("A1;120000;;;;;;;;2000;"))

        listing = result.listings[0]
        assert listing.currency == "USD"
        assert listing.neighborhood == DEFAULT_NEIGHBORHOOD
        assert listing.city == DEFAULT_CITY
        assert listing.property_type is None
        assert listing.surface_total is None
        assert listing.url == ""

    def test_legacy_column_aliases(self):
        text = "external_id;price;Type;province;total_area;price_per_sqm\nB2;90000;Casa;Rosario;120;750\n"

        listing = parse_listings_csv(text).listings[0]

        assert listing.property_type == "Casa"
        assert listing.city == "Rosario"
        assert listing.surface_total == 120.0
        assert listing.price_per_m2_total == 750.0

    def test_comma_delimiter(self):
        text = "external_id,price,price_per_m2_total\nC3,50000,1000\n"

        assert parse_listings_csv(text, delimiter=",").processed == 1

    def test_blank_lines_ignored(self):
        result = parse_listings_csv(csv_text("A1;120000;;;;;;;;2000;", "", ";;;;;;;;;;"))

        assert result.total_rows == 1
        assert result.processed == 1

    def test_empty_input(self):
        result = parse_listings_csv("")

        assert result.total_rows == 0
        assert result.listings == []

    @pytest.mark.parametrize("rooms", ["inf", "-inf", "nan", "1e400"])
    def test_non_finite_optional_number_left_empty(self, rooms):
        result = parse_listings_csv(csv_text(
            f"A1;120000;USD;Departamento;Palermo;Buenos Aires;60;55;{rooms};2000;https://example.com/a1",
        ))

        assert result.processed == 1
        assert result.listings[0].rooms is None

    def test_listing_id_is_stable(self):
        assert listing_id_for("A1") == "prop-A1"


# =============================================================================
# Test: Rejections
# =============================================================================

class TestRejections:

    @pytest.mark.parametrize("row,code", [
        (";120000;;;;;;;;2000;", "MISSING_EXTERNAL_ID"),
        ("A1;;;;;;;;;2000;", "MISSING_PRICE"),
        ("A1;abc;;;;;;;;2000;", "INVALID_PRICE"),
        ("A1;-5;;;;;;;;2000;", "INVALID_PRICE"),
        ("A1;120000;;;;;;;;;", "INVALID_PRICE_PER_M2"),
        ("A1;120000;;;;;;;;0;", "INVALID_PRICE_PER_M2"),
        ("A1;120000;;;;;;;;15001;", "PRICE_PER_M2_ABOVE_THRESHOLD"),
        ("A1;120000", "MALFORMED_ROW"),
        ("A1;nan;;;;;;;;2000;", "INVALID_PRICE"),
        ("A1;inf;;;;;;;;2000;", "INVALID_PRICE"),
        ("A1;1e400;;;;;;;;2000;", "INVALID_PRICE"),
        ("A1;120000;;;;;;;;nan;", "INVALID_PRICE_PER_M2"),
        ("A1;120000;;;;;;;;Infinity;", "INVALID_PRICE_PER_M2"),
    ])
    def test_rejection_codes(self, row, code):
        result = parse_listings_csv(csv_text(row))

        assert result.processed == 0
        assert result.skipped == 1
        rejection = result.rejections[0]
        assert rejection.rejection_code == code
        assert rejection.rejection_reason == REJECTION_CODES[code]
        assert rejection.line_number == 2

    def test_threshold_itself_is_accepted(self):
        result = parse_listings_csv(csv_text(f"A1;120000;;;;;;;;{MAX_PRICE_PER_M2:.0f};"))

        assert result.processed == 1

    def test_rejection_keeps_external_id_and_hash(self):
        result = parse_listings_csv(csv_text("A1;120000;;;;;;;;99999;"))

        rejection = result.rejections[0]
        assert rejection.external_id == "A1"
        assert len(rejection.raw_data_hash) == 16

    def test_counts_and_summary(self):
        result = parse_listings_csv(csv_text(
            "A1;120000;;;;;;;;2000;",
            "A2;;;;;;;;;2000;",
            "A3;80000;;;;;;;;1600;",
        ))

        data = result.to_dict()
        assert data["total_rows"] == 3
        assert data["processed"] == 2
        assert data["skipped"] == 1
        assert data["rejections"][0]["line_number"] == 3
        assert data["rejections"][0]["rejection_code"] == "MISSING_PRICE"
