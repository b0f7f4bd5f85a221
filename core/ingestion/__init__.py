"""
Flip Radar - Ingestion Layer

Single entry point for listing data entering the system. Every import
reports the rows it rejected and why.
"""

from core.ingestion.schema import (
    IngestionResult,
    RejectionRecord,
    REJECTION_CODES,
    MAX_PRICE_PER_M2,
)
from core.ingestion.csv_loader import parse_listings_csv, listing_id_for

__all__ = [
    "IngestionResult",
    "RejectionRecord",
    "REJECTION_CODES",
    "MAX_PRICE_PER_M2",
    "parse_listings_csv",
    "listing_id_for",
]
