"""
Valuation Calculator

Turns an AI condition multiplier plus comparable statistics into dollar
figures:
1. COMPARABLES - same type, similar size, same neighborhood (city fallback)
2. POTENTIAL VALUE - midpoint of median and Q3 price per m², times total area
3. ADJUSTED OPPORTUNITY - % below median scaled by condition, mapped to 0-10
4. NET OPPORTUNITY - potential value minus price minus renovation cost
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .models import ConditionAssessment, Listing, RenovationSettings
from .renovation import RenovationCostEstimator, RenovationEstimate
from .scoring import opportunity_score
from .statistics import GroupStats, q3_proxy, stats_from_values


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Constants
# =============================================================================

# Comparable selection
MIN_COMPARABLES = 3
SURFACE_TOLERANCE_LOW = 0.6
SURFACE_TOLERANCE_HIGH = 1.4

SCOPE_NEIGHBORHOOD = "neighborhood"
SCOPE_CITY = "city"

# Adjusted opportunity mapping
ADJUSTED_CLAMP = 40.0

# (minimum 0-10 index, label)
OPPORTUNITY_LABELS = [
    (8.0, "Excellent"),
    (6.0, "Good"),
    (4.0, "Fair"),
]
LOWEST_OPPORTUNITY_LABEL = "Low"


# =============================================================================
# Comparable Selection
# =============================================================================

def _is_comparable(subject: Listing, candidate: Listing) -> bool:
    if candidate.id == subject.id or not candidate.is_scorable:
        return False
    if candidate.property_type != subject.property_type:
        return False
    if not candidate.surface_total:
        return False
    low = subject.surface_total * SURFACE_TOLERANCE_LOW
    high = subject.surface_total * SURFACE_TOLERANCE_HIGH
    return low <= candidate.surface_total <= high


def select_comparables(
    subject: Listing,
    listings: List[Listing],
) -> Tuple[List[Listing], Optional[str]]:
    """
    Pick comparable listings for a subject.

    Same property type and a total surface within 60%-140% of the subject.
    The neighborhood is tried first; with fewer than 3 matches the whole
    city is used. If the city is also short, no comparables are returned.

    Returns:
        Tuple of (comparables, scope) where scope is "neighborhood",
        "city", or None when there are not enough comparables
    """
    if not subject.surface_total or subject.surface_total <= 0 or not subject.property_type:
        return [], None

    same_city = [l for l in listings if l.city == subject.city and _is_comparable(subject, l)]
    same_neighborhood = [l for l in same_city if l.neighborhood == subject.neighborhood]

    if len(same_neighborhood) >= MIN_COMPARABLES:
        return same_neighborhood, SCOPE_NEIGHBORHOOD

    logger.debug(
        "Only %d comparables in %s for %s, falling back to city",
        len(same_neighborhood), subject.neighborhood, subject.id,
    )
    if len(same_city) >= MIN_COMPARABLES:
        return same_city, SCOPE_CITY

    logger.info("Insufficient comparables for %s: %d", subject.id, len(same_city))
    return [], None


def comparable_stats(comparables: List[Listing]) -> Optional[GroupStats]:
    """Statistics over a comparable set, None when it is empty."""
    if not comparables:
        return None
    return stats_from_values(
        "comparables",
        [float(c.price_per_m2_total) for c in comparables],
    )


# =============================================================================
# Pure Calculations
# =============================================================================

def potential_value(
    stats: GroupStats,
    surface_total: Optional[float],
) -> Tuple[float, Optional[float]]:
    """
    Potential renovated value.

    Per m²: midpoint of the median and the Q3 proxy. Total: per m² times
    the total surface (None without a usable surface).
    """
    per_m2 = (stats.median + q3_proxy(stats.median, stats.mean)) / 2
    if not surface_total or surface_total <= 0:
        return per_m2, None
    return per_m2, per_m2 * surface_total


def value_range(
    stats: GroupStats,
    surface_total: Optional[float],
) -> dict:
    """Median-to-Q3 range, per m² and in total, for display."""
    q3 = q3_proxy(stats.median, stats.mean)
    has_surface = bool(surface_total and surface_total > 0)
    return {
        "median_per_m2": stats.median,
        "q3_per_m2": q3,
        "median_total": stats.median * surface_total if has_surface else None,
        "q3_total": q3 * surface_total if has_surface else None,
    }


def adjusted_opportunity(
    price_per_m2: Optional[float],
    median: Optional[float],
    multiplier: float,
) -> Optional[float]:
    """
    Percent below the comparable median, scaled by the condition multiplier.

    Rounded to two decimals. None when price per m² or median is unusable.
    """
    if not price_per_m2 or price_per_m2 <= 0 or not median or median <= 0:
        return None
    return round(opportunity_score(price_per_m2, median) * multiplier, 2)


def opportunity_index(adjusted: float) -> float:
    """Map an adjusted opportunity onto 0-10: clamp to ±40, scale linearly, one decimal."""
    clamped = max(-ADJUSTED_CLAMP, min(ADJUSTED_CLAMP, adjusted))
    return round((clamped + ADJUSTED_CLAMP) / (2 * ADJUSTED_CLAMP) * 10, 1)


def opportunity_label(index: float) -> str:
    """Qualitative bucket for a 0-10 opportunity index."""
    for threshold, label in OPPORTUNITY_LABELS:
        if index >= threshold:
            return label
    return LOWEST_OPPORTUNITY_LABEL


def net_opportunity(
    potential_total: Optional[float],
    price: float,
    renovation_cost: float,
) -> Optional[float]:
    """
    Estimated profit: potential value - price - renovation cost.

    None when the price or potential value is missing; rounded to whole
    currency units otherwise.
    """
    if price <= 0 or not potential_total or potential_total <= 0:
        return None
    return float(round(potential_total - price - renovation_cost))


def describe(pct_below: float, multiplier: float) -> str:
    """Short narrative combining price position and condition."""
    if pct_below > 30:
        price_desc = "Price far below market"
    elif pct_below > 15:
        price_desc = "Competitive price, below market"
    elif pct_below > 0:
        price_desc = "Price close to market"
    else:
        price_desc = "Price above market"

    if multiplier >= 1.1:
        state_desc = "in excellent condition"
    elif multiplier >= 0.9:
        state_desc = "in good condition"
    elif multiplier >= 0.8:
        state_desc = "needs minor improvements"
    elif multiplier >= 0.7:
        state_desc = "requires partial renovation"
    else:
        state_desc = "needs full renovation"

    if pct_below > 15 and multiplier >= 0.9:
        conclusion = "Direct opportunity, ready to buy."
    elif pct_below > 15:
        conclusion = "Cheap, but needs investment in works."
    elif pct_below > 0 and multiplier >= 1.0:
        conclusion = "Good condition, fair price."
    elif pct_below <= 0:
        conclusion = "High price for the area."
    else:
        conclusion = "Competitive value after renovation."

    return f"{price_desc}, {state_desc}. {conclusion}"


# =============================================================================
# Valuation
# =============================================================================

@dataclass
class Valuation:
    """Valuation of one analyzed listing."""
    comparables_count: int
    comparables_scope: Optional[str] = None

    median_per_m2: Optional[float] = None
    q3_per_m2: Optional[float] = None
    potential_value_per_m2: Optional[float] = None
    potential_value_total: Optional[float] = None

    pct_below_median: Optional[float] = None
    adjusted_opportunity: Optional[float] = None
    opportunity_index: Optional[float] = None
    opportunity_label: Optional[str] = None

    renovation: Optional[RenovationEstimate] = None
    net_opportunity: Optional[float] = None
    notes: List[str] = field(default_factory=list)

    @property
    def renovation_cost(self) -> Optional[float]:
        return self.renovation.total if self.renovation else None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "comparables_count": self.comparables_count,
            "comparables_scope": self.comparables_scope,
            "median_per_m2": self.median_per_m2,
            "q3_per_m2": self.q3_per_m2,
            "potential_value_per_m2": self.potential_value_per_m2,
            "potential_value_total": self.potential_value_total,
            "pct_below_median": self.pct_below_median,
            "adjusted_opportunity": self.adjusted_opportunity,
            "opportunity_index": self.opportunity_index,
            "opportunity_label": self.opportunity_label,
            "renovation_cost_per_m2": self.renovation.cost_per_m2 if self.renovation else None,
            "renovation_area": self.renovation.area if self.renovation else None,
            "renovation_cost": self.renovation_cost,
            "net_opportunity": self.net_opportunity,
            "notes": list(self.notes),
        }


class ValuationCalculator:
    """
    Values an analyzed listing against its comparables.

    Pipeline order:
    1. SELECT - comparables by type, size and location
    2. VALUE - potential value from median and Q3 proxy
    3. ADJUST - condition-scaled opportunity and 0-10 index
    4. NET - subtract price and renovation at the actual multiplier
    """

    def valuate(
        self,
        listing: Listing,
        assessment: ConditionAssessment,
        listings: List[Listing],
        settings: Optional[RenovationSettings] = None,
    ) -> Valuation:
        """
        Value a listing.

        Args:
            listing: The analyzed listing
            assessment: Its AI condition assessment
            listings: Candidate comparables (the listing itself is ignored)
            settings: User renovation settings (defaults if not provided)

        Returns:
            Valuation; figures stay None when comparables are insufficient
        """
        settings = settings or RenovationSettings()
        comparables, scope = select_comparables(listing, listings)
        stats = comparable_stats(comparables)

        if stats is None:
            return Valuation(
                comparables_count=0,
                notes=["Insufficient comparables for a valuation"],
            )

        multiplier = assessment.score_multiplier
        per_m2, total = potential_value(stats, listing.surface_total)

        estimator = RenovationCostEstimator(
            table=settings.cost_tiers,
            area_basis=settings.surface_type,
            min_area_floor=settings.min_surface_enabled,
        )
        renovation = estimator.estimate(
            multiplier, listing.surface_total, listing.surface_covered
        )

        adjusted = adjusted_opportunity(listing.price_per_m2_total, stats.median, multiplier)
        pct_below = None
        index = None
        label = None
        notes = []
        if adjusted is not None:
            pct_below = opportunity_score(listing.price_per_m2_total, stats.median)
            index = opportunity_index(adjusted)
            label = opportunity_label(index)
            notes.append(describe(pct_below, multiplier))

        net = net_opportunity(total, listing.price, renovation.total)
        if scope == SCOPE_CITY:
            notes.append(f"Comparables drawn from all of {listing.city}")

        logger.info(
            "Valued %s: %d comparables, median %.0f, potential %s, net %s",
            listing.id, stats.count, stats.median, total, net,
        )

        return Valuation(
            comparables_count=stats.count,
            comparables_scope=scope,
            median_per_m2=stats.median,
            q3_per_m2=q3_proxy(stats.median, stats.mean),
            potential_value_per_m2=per_m2,
            potential_value_total=total,
            pct_below_median=pct_below,
            adjusted_opportunity=adjusted,
            opportunity_index=index,
            opportunity_label=label,
            renovation=renovation,
            net_opportunity=net,
            notes=notes,
        )
