"""
Domain exceptions for Flip Radar.

Data insufficiency (missing price per m², zero medians) is never an error;
these are reserved for failures a caller has to act on.
"""


class FlipRadarError(Exception):
    """Base class for all domain errors."""


class ListingNotFoundError(FlipRadarError):
    """Raised when a listing id is not present in the listing store."""

    def __init__(self, listing_id: str):
        super().__init__(f"Listing {listing_id} not found")
        self.listing_id = listing_id


class SearchRunNotFoundError(FlipRadarError):
    """Raised when a search run id is not present in the run repository."""

    def __init__(self, run_id: str):
        super().__init__(f"Search run {run_id} not found")
        self.run_id = run_id


class AnalysisError(FlipRadarError):
    """A single listing could not be analyzed (scrape or AI failure)."""


class RateLimitError(AnalysisError):
    """The AI gateway rejected the call with HTTP 429."""


class CreditsExhaustedError(AnalysisError):
    """The AI gateway rejected the call with HTTP 402."""


class InvalidTransitionError(FlipRadarError):
    """Raised when a search run is moved to a state it cannot reach."""

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot transition search run from {current} to {target}")
        self.current = current
        self.target = target
