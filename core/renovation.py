"""
Renovation Cost Estimator

Maps a condition ratio to a renovation cost per m² through a configurable
tier table, then multiplies by the area that needs work.

The condition ratio is either the AI condition multiplier or, before any
AI analysis exists, the listing's price per m² divided by its comparable
group median. Both are read against the same tiers.
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple


# =============================================================================
# Configuration Constants
# =============================================================================

# (minimum ratio, cost per m²), highest threshold first
DEFAULT_COST_TIERS: List[Tuple[float, float]] = [
    (1.0, 0.0),
    (0.9, 100.0),
    (0.8, 200.0),
    (0.7, 350.0),
    (0.55, 500.0),
    (0.0, 700.0),
]

# Below this ratio a property is in one of the two worst tiers
NEEDS_IMPROVEMENT_THRESHOLD = 0.7

AREA_BASIS_TOTAL = "total"
AREA_BASIS_COVERED = "covered"


class RenovationCostTable:
    """
    Ordered (threshold, cost per m²) tiers.

    Resolution scans from the highest threshold down and picks the first
    tier whose threshold is <= the ratio. A ratio below every threshold
    resolves to the lowest tier.
    """

    def __init__(self, tiers: List[Tuple[float, float]]):
        if not tiers:
            raise ValueError("A renovation cost table needs at least one tier")
        self._tiers = sorted(
            ((float(t), float(c)) for t, c in tiers),
            key=lambda tier: tier[0],
            reverse=True,
        )

    @classmethod
    def default(cls) -> "RenovationCostTable":
        return cls(DEFAULT_COST_TIERS)

    @classmethod
    def from_mapping(cls, mapping: Optional[Dict]) -> "RenovationCostTable":
        """
        Parse a user-supplied {threshold: cost} mapping.

        Keys may be strings ("0.9"). Entries that are not finite numbers
        are dropped; if nothing usable remains the default table is used.
        """
        if not mapping:
            return cls.default()

        tiers = []
        for key, value in mapping.items():
            try:
                threshold = float(key)
                cost = float(value)
            except (TypeError, ValueError):
                continue
            if not math.isfinite(threshold) or not math.isfinite(cost):
                continue
            tiers.append((threshold, cost))

        if not tiers:
            return cls.default()
        return cls(tiers)

    @property
    def tiers(self) -> List[Tuple[float, float]]:
        return list(self._tiers)

    def cost_per_m2(self, ratio: float) -> float:
        """Resolve the cost per m² for a condition ratio."""
        for threshold, cost in self._tiers:
            if ratio >= threshold:
                return cost
        return self._tiers[-1][1]

    def to_mapping(self) -> Dict[str, float]:
        return {str(threshold): cost for threshold, cost in self._tiers}

    def __eq__(self, other) -> bool:
        if not isinstance(other, RenovationCostTable):
            return NotImplemented
        return self._tiers == other._tiers

    def __repr__(self) -> str:
        return f"RenovationCostTable({self._tiers!r})"


# =============================================================================
# Helpers
# =============================================================================

def condition_ratio(price_per_m2: Optional[float], median: Optional[float]) -> float:
    """
    Price position relative to the comparable median, used as a condition proxy.

    A missing or zero median yields 1.0 (best tier) so that missing data
    never inflates the renovation estimate.
    """
    if not median or median <= 0 or not price_per_m2 or price_per_m2 <= 0:
        return 1.0
    return price_per_m2 / median


def effective_area(
    surface_total: Optional[float],
    surface_covered: Optional[float],
    area_basis: str = AREA_BASIS_TOTAL,
    min_area_floor: bool = True,
    ratio: float = 1.0,
) -> float:
    """
    Area the renovation cost applies to.

    With a covered-area basis, a poor condition (ratio < 0.7) and a covered
    footprint under half the lot, half the total area is used instead: such
    a property likely needs expanding, not just refurbishing.
    """
    total = surface_total if surface_total and surface_total > 0 else None
    covered = surface_covered if surface_covered and surface_covered > 0 else None

    if area_basis != AREA_BASIS_COVERED:
        return total or 0.0

    if (
        covered is not None
        and total is not None
        and min_area_floor
        and ratio < NEEDS_IMPROVEMENT_THRESHOLD
        and covered < total / 2
    ):
        return total / 2

    return covered or total or 0.0


# =============================================================================
# Estimator
# =============================================================================

@dataclass
class RenovationEstimate:
    """Breakdown of a renovation cost estimate."""
    ratio: float
    cost_per_m2: float
    area: float

    @property
    def total(self) -> float:
        return self.cost_per_m2 * self.area


class RenovationCostEstimator:
    """Estimates renovation cost from a condition ratio and listing areas."""

    def __init__(
        self,
        table: Optional[RenovationCostTable] = None,
        area_basis: str = AREA_BASIS_TOTAL,
        min_area_floor: bool = True,
    ):
        if area_basis not in (AREA_BASIS_TOTAL, AREA_BASIS_COVERED):
            raise ValueError(f"Unknown area basis: {area_basis}")
        self._table = table or RenovationCostTable.default()
        self._area_basis = area_basis
        self._min_area_floor = min_area_floor

    @property
    def table(self) -> RenovationCostTable:
        return self._table

    def estimate(
        self,
        ratio: float,
        surface_total: Optional[float],
        surface_covered: Optional[float] = None,
    ) -> RenovationEstimate:
        """
        Estimate the renovation cost for a listing.

        Args:
            ratio: Condition multiplier, or price/median proxy
            surface_total: Total (lot) area in m²
            surface_covered: Covered (built) area in m²

        Returns:
            RenovationEstimate with the resolved tier and area
        """
        area = effective_area(
            surface_total,
            surface_covered,
            area_basis=self._area_basis,
            min_area_floor=self._min_area_floor,
            ratio=ratio,
        )
        return RenovationEstimate(
            ratio=ratio,
            cost_per_m2=self._table.cost_per_m2(ratio),
            area=area,
        )

    def estimate_from_price(
        self,
        price_per_m2: Optional[float],
        median: Optional[float],
        surface_total: Optional[float],
        surface_covered: Optional[float] = None,
    ) -> RenovationEstimate:
        """Estimate using the price/median ratio as the condition proxy."""
        return self.estimate(
            condition_ratio(price_per_m2, median),
            surface_total,
            surface_covered,
        )
