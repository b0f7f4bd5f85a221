"""
Ingestion schema: rejection codes and records for listing imports.

Rows that fail validation are never silently dropped; each one produces
a RejectionRecord for the upload log.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import datetime
from typing import Final, List, Optional

from core.models import Listing


# =============================================================================
# Thresholds
# =============================================================================

# Prices per m² above this are data-entry errors, not listings
MAX_PRICE_PER_M2: Final[float] = 15000.0


REJECTION_CODES: Final[dict[str, str]] = {
    "MISSING_EXTERNAL_ID": "Required field 'external_id' not provided",
    "MISSING_PRICE": "Required field 'price' not provided",
    "INVALID_PRICE": "Price is not a positive number",
    "INVALID_PRICE_PER_M2": "Price per m² missing or not a positive number",
    "PRICE_PER_M2_ABOVE_THRESHOLD": "Price per m² above maximum threshold (15,000)",
    "MALFORMED_ROW": "Row has fewer columns than the header",
}


@dataclass(frozen=True)
class RejectionRecord:
    """
    Record of a row that failed validation.

    Used for the upload log and data quality monitoring.
    """

    line_number: int
    external_id: str
    rejection_code: str
    rejection_reason: str
    raw_data_hash: str
    rejected_at: datetime

    @classmethod
    def create(
        cls,
        line_number: int,
        external_id: str,
        rejection_code: str,
        raw_data: Optional[dict] = None,
    ) -> "RejectionRecord":
        """Create a rejection record with automatic hash and timestamp."""
        reason = REJECTION_CODES.get(rejection_code, f"Unknown code: {rejection_code}")

        # Hash raw data for debugging without storing it
        if raw_data:
            data_str = str(sorted((k, v) for k, v in raw_data.items() if k is not None))
            raw_hash = hashlib.sha256(data_str.encode()).hexdigest()[:16]
        else:
            raw_hash = "no_data"

        return cls(
            line_number=line_number,
            external_id=external_id,
            rejection_code=rejection_code,
            rejection_reason=reason,
            raw_data_hash=raw_hash,
            rejected_at=datetime.utcnow(),
        )

    def to_dict(self) -> dict:
        return {
            "line_number": self.line_number,
            "external_id": self.external_id,
            "rejection_code": self.rejection_code,
            "rejection_reason": self.rejection_reason,
        }


@dataclass
class IngestionResult:
    """Outcome of one import."""
    listings: List[Listing] = field(default_factory=list)
    rejections: List[RejectionRecord] = field(default_factory=list)
    total_rows: int = 0

    @property
    def processed(self) -> int:
        return len(self.listings)

    @property
    def skipped(self) -> int:
        return len(self.rejections)

    def to_dict(self) -> dict:
        return {
            "total_rows": self.total_rows,
            "processed": self.processed,
            "skipped": self.skipped,
            "rejections": [r.to_dict() for r in self.rejections],
        }
