"""
Statistics Engine

Price-per-m² statistics per comparable group. Groups are recomputed from
the listing set whenever it changes; nothing here is cached or mutated.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Hashable, Iterable, List, Tuple

from .models import Listing


KeyFn = Callable[[Listing], Hashable]


def median(values: Iterable[float]) -> float:
    """
    Median of a set of numbers.

    Odd count: middle element. Even count: average of the two middle
    elements. Empty input returns 0.0.
    """
    ordered = sorted(values)
    n = len(ordered)
    if n == 0:
        return 0.0

    mid = n // 2
    if n % 2 == 1:
        return float(ordered[mid])
    return (ordered[mid - 1] + ordered[mid]) / 2


def q3_proxy(median_value: float, mean_value: float) -> float:
    """
    Upper-quartile estimate mirrored from the median about the mean.

    Only median and mean are kept per group, so Q3 is approximated as
    2*mean - median. A left-skewed group (mean < median) would put that
    below the median; the result is floored at the median so the
    median-to-Q3 range never inverts.
    """
    return max(2 * mean_value - median_value, median_value)


def by_neighborhood(listing: Listing) -> str:
    """Group key: neighborhood only (map and list views)."""
    return listing.neighborhood


def by_neighborhood_and_type(listing: Listing) -> Tuple[str, str]:
    """Group key: neighborhood and property type (guided search)."""
    return (listing.neighborhood, listing.property_type or "")


@dataclass(frozen=True)
class GroupStats:
    """Price-per-m² statistics for one comparable group."""
    key: Hashable
    count: int
    median: float
    mean: float
    min: float
    max: float
    city: str = ""

    @property
    def q3_proxy(self) -> float:
        """Upper-quartile estimate from median and mean."""
        return q3_proxy(self.median, self.mean)

    def to_dict(self) -> dict:
        key = self.key if isinstance(self.key, str) else list(self.key)
        return {
            "key": key,
            "city": self.city,
            "count": self.count,
            "median_price_per_m2": self.median,
            "mean_price_per_m2": self.mean,
            "min_price_per_m2": self.min,
            "max_price_per_m2": self.max,
        }


def stats_from_values(key: Hashable, values: List[float], city: str = "") -> GroupStats:
    """Compute GroupStats for a non-empty list of prices per m²."""
    if not values:
        raise ValueError("Cannot compute statistics for an empty group")
    return GroupStats(
        key=key,
        count=len(values),
        median=median(values),
        mean=sum(values) / len(values),
        min=min(values),
        max=max(values),
        city=city,
    )


def compute_group_stats(
    listings: Iterable[Listing],
    key_fn: KeyFn = by_neighborhood,
) -> Dict[Hashable, GroupStats]:
    """
    Partition scorable listings by key and compute per-group statistics.

    Listings without a positive price per m² are skipped. Groups with no
    qualifying listing are omitted rather than zero-filled.
    """
    values: Dict[Hashable, List[float]] = {}
    cities: Dict[Hashable, str] = {}

    for listing in listings:
        if not listing.is_scorable:
            continue
        key = key_fn(listing)
        values.setdefault(key, []).append(float(listing.price_per_m2_total))
        cities.setdefault(key, listing.city)

    return {
        key: stats_from_values(key, group_values, cities[key])
        for key, group_values in values.items()
    }
