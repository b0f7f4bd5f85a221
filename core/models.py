"""
Data models for Flip Radar.

Listings are immutable observations. Everything derived from them
(group statistics, scores, valuations) is recomputed on demand; only
AI condition assessments, per-user analyses and search runs are stored.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from .renovation import RenovationCostTable


DEFAULT_NEIGHBORHOOD = "Sin barrio"
DEFAULT_CITY = "Sin ciudad"

SURFACE_TOTAL = "total"
SURFACE_COVERED = "covered"


# =============================================================================
# Condition Labels
# =============================================================================

# (minimum multiplier, label), scanned from the top
CONDITION_LABELS = [
    (1.0, "Excelente"),
    (0.9, "Buen estado"),
    (0.8, "Aceptable"),
    (0.7, "Necesita mejoras"),
    (0.55, "Refaccion parcial"),
]
WORST_CONDITION_LABEL = "Refaccion completa"


def condition_label(multiplier: float) -> str:
    """Label that matches a condition multiplier."""
    for threshold, label in CONDITION_LABELS:
        if multiplier >= threshold:
            return label
    return WORST_CONDITION_LABEL


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# =============================================================================
# Listing
# =============================================================================

@dataclass(frozen=True)
class Listing:
    """A single property observation from a listing portal."""

    id: str
    external_id: str
    price: float
    url: str

    currency: str = "USD"
    property_type: Optional[str] = None
    neighborhood: str = DEFAULT_NEIGHBORHOOD
    city: str = DEFAULT_CITY

    # Areas in m²
    surface_total: Optional[float] = None
    surface_covered: Optional[float] = None

    rooms: Optional[int] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    parking: Optional[int] = None

    price_per_m2_total: Optional[float] = None
    price_per_m2_covered: Optional[float] = None

    # Descriptive fields, used only by the AI prompt and display
    title: Optional[str] = None
    address: Optional[str] = None
    description: Optional[str] = None
    age_years: Optional[int] = None
    scraped_at: str = ""

    @property
    def is_scorable(self) -> bool:
        """Whether the listing carries enough data for statistics and scoring."""
        return (
            self.price > 0
            and self.price_per_m2_total is not None
            and self.price_per_m2_total > 0
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "id": self.id,
            "external_id": self.external_id,
            "price": self.price,
            "currency": self.currency,
            "url": self.url,
            "property_type": self.property_type,
            "neighborhood": self.neighborhood,
            "city": self.city,
            "surface_total": self.surface_total,
            "surface_covered": self.surface_covered,
            "rooms": self.rooms,
            "bedrooms": self.bedrooms,
            "bathrooms": self.bathrooms,
            "parking": self.parking,
            "price_per_m2_total": self.price_per_m2_total,
            "price_per_m2_covered": self.price_per_m2_covered,
            "title": self.title,
            "address": self.address,
            "description": self.description,
            "age_years": self.age_years,
            "scraped_at": self.scraped_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Listing":
        """Build a listing from a dictionary produced by to_dict."""
        known = set(cls.__dataclass_fields__)
        return cls(**{k: v for k, v in data.items() if k in known})


# =============================================================================
# Search Filters
# =============================================================================

@dataclass
class SearchFilters:
    """
    Hard filters for a guided search.

    Every filter is conjunctive. Empty lists and None bounds disable the
    corresponding filter.
    """

    property_types: List[str] = field(default_factory=list)
    neighborhoods: List[str] = field(default_factory=list)
    cities: List[str] = field(default_factory=list)
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    surface_min: Optional[float] = None
    rooms_min: Optional[int] = None
    rooms_max: Optional[int] = None
    parking_min: Optional[int] = None
    budget_max: Optional[float] = None

    def __post_init__(self):
        """Validate filters after initialization."""
        for name in ("price_min", "price_max", "surface_min", "rooms_min",
                     "rooms_max", "parking_min", "budget_max"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValueError(f"{name} must be non-negative")
        if (
            self.price_min is not None
            and self.price_max is not None
            and self.price_max < self.price_min
        ):
            raise ValueError("price_max must be >= price_min")
        if (
            self.rooms_min is not None
            and self.rooms_max is not None
            and self.rooms_max < self.rooms_min
        ):
            raise ValueError("rooms_max must be >= rooms_min")

    def matches(self, listing: Listing) -> bool:
        """Whether a listing passes every hard filter."""
        if self.property_types and listing.property_type not in self.property_types:
            return False
        if self.neighborhoods and listing.neighborhood not in self.neighborhoods:
            return False
        if self.cities and listing.city not in self.cities:
            return False
        if self.price_min is not None and listing.price < self.price_min:
            return False
        if self.price_max is not None and listing.price > self.price_max:
            return False
        if self.surface_min is not None:
            if listing.surface_total is None or listing.surface_total < self.surface_min:
                return False
        if self.rooms_min is not None:
            if listing.rooms is None or listing.rooms < self.rooms_min:
                return False
        if self.rooms_max is not None:
            if listing.rooms is None or listing.rooms > self.rooms_max:
                return False
        # parking_min of 0 means "don't care"
        if self.parking_min:
            if listing.parking is None or listing.parking < self.parking_min:
                return False
        return True

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "property_types": list(self.property_types),
            "neighborhoods": list(self.neighborhoods),
            "cities": list(self.cities),
            "price_min": self.price_min,
            "price_max": self.price_max,
            "surface_min": self.surface_min,
            "rooms_min": self.rooms_min,
            "rooms_max": self.rooms_max,
            "parking_min": self.parking_min,
            "budget_max": self.budget_max,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "SearchFilters":
        """Parse filters from a JSON payload, ignoring unknown keys."""
        data = data or {}
        return cls(
            property_types=list(data.get("property_types") or []),
            neighborhoods=list(data.get("neighborhoods") or []),
            cities=list(data.get("cities") or []),
            price_min=data.get("price_min"),
            price_max=data.get("price_max"),
            surface_min=data.get("surface_min"),
            rooms_min=data.get("rooms_min"),
            rooms_max=data.get("rooms_max"),
            parking_min=data.get("parking_min"),
            budget_max=data.get("budget_max"),
        )


@dataclass
class RenovationSettings:
    """User-configurable renovation cost assumptions."""

    surface_type: str = SURFACE_TOTAL
    min_surface_enabled: bool = True
    cost_tiers: RenovationCostTable = field(default_factory=RenovationCostTable.default)

    def __post_init__(self):
        if self.surface_type not in (SURFACE_TOTAL, SURFACE_COVERED):
            raise ValueError(
                f"surface_type must be '{SURFACE_TOTAL}' or '{SURFACE_COVERED}'"
            )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "surface_type": self.surface_type,
            "min_surface_enabled": self.min_surface_enabled,
            "renovation_costs": self.cost_tiers.to_mapping(),
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "RenovationSettings":
        data = data or {}
        return cls(
            surface_type=data.get("surface_type") or SURFACE_TOTAL,
            min_surface_enabled=bool(data.get("min_surface_enabled", True)),
            cost_tiers=RenovationCostTable.from_mapping(data.get("renovation_costs")),
        )


# =============================================================================
# AI Condition Assessment
# =============================================================================

def _finite_multiplier(raw) -> float:
    """Numeric multiplier rounded to 2 decimals, 1.0 for anything else."""
    if not isinstance(raw, (int, float)) or isinstance(raw, bool):
        return 1.0
    try:
        value = float(raw)
    except OverflowError:
        return 1.0
    # json accepts NaN and Infinity literals
    if not math.isfinite(value):
        return 1.0
    return round(value, 2)


@dataclass
class ConditionAssessment:
    """
    Physical condition of a listing as judged by the AI valuation service.

    The multiplier is centred on 1.0 (an average property). It is not
    clamped; in practice the service keeps it within roughly 0.55-1.3.
    """

    score_multiplier: float = 1.0
    condition_label: str = ""
    report: str = ""
    highlights: List[str] = field(default_factory=list)
    lowlights: List[str] = field(default_factory=list)
    analyzed_at: Optional[datetime] = None

    def __post_init__(self):
        # The label must never contradict the multiplier
        self.condition_label = condition_label(self.score_multiplier)

    @classmethod
    def from_payload(cls, payload: dict) -> "ConditionAssessment":
        """
        Validate and coerce an AI JSON payload.

        Missing or malformed fields fall back to neutral defaults: a
        multiplier of 1.0, empty observation lists and empty report text.
        """
        score = _finite_multiplier(payload.get("score_multiplicador"))

        highlights = payload.get("highlights")
        lowlights = payload.get("lowlights")
        report = payload.get("informe_breve")

        return cls(
            score_multiplier=score,
            report=report if isinstance(report, str) else "",
            highlights=[str(h) for h in highlights] if isinstance(highlights, list) else [],
            lowlights=[str(l) for l in lowlights] if isinstance(lowlights, list) else [],
            analyzed_at=datetime.utcnow(),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary using the AI payload field names."""
        return {
            "score_multiplicador": self.score_multiplier,
            "estado_general": self.condition_label,
            "informe_breve": self.report,
            "highlights": list(self.highlights),
            "lowlights": list(self.lowlights),
            "analyzed_at": _format_datetime(self.analyzed_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ConditionAssessment":
        assessment = cls.from_payload(data)
        assessment.analyzed_at = _parse_datetime(data.get("analyzed_at"))
        return assessment


@dataclass
class PropertyAnalysis:
    """
    Per-user cached analysis of one listing.

    Holds the shared condition assessment plus the valuation figures, which
    depend on the user's renovation settings.
    """

    user_id: str
    listing_id: str
    assessment: ConditionAssessment

    potential_value_per_m2: Optional[float] = None
    potential_value_total: Optional[float] = None
    median_per_m2: Optional[float] = None
    comparables_count: int = 0
    adjusted_opportunity: Optional[float] = None
    net_opportunity: Optional[float] = None
    renovation_cost: Optional[float] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        data = {
            "user_id": self.user_id,
            "listing_id": self.listing_id,
            "valor_potencial_m2": self.potential_value_per_m2,
            "valor_potencial_total": self.potential_value_total,
            "valor_potencial_median_m2": self.median_per_m2,
            "comparables_count": self.comparables_count,
            "oportunidad_ajustada": self.adjusted_opportunity,
            "oportunidad_neta": self.net_opportunity,
            "renovation_cost": self.renovation_cost,
        }
        data.update(self.assessment.to_dict())
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "PropertyAnalysis":
        return cls(
            user_id=data["user_id"],
            listing_id=data["listing_id"],
            assessment=ConditionAssessment.from_dict(data),
            potential_value_per_m2=data.get("valor_potencial_m2"),
            potential_value_total=data.get("valor_potencial_total"),
            median_per_m2=data.get("valor_potencial_median_m2"),
            comparables_count=data.get("comparables_count") or 0,
            adjusted_opportunity=data.get("oportunidad_ajustada"),
            net_opportunity=data.get("oportunidad_neta"),
            renovation_cost=data.get("renovation_cost"),
        )


# =============================================================================
# Search Run
# =============================================================================

class RunStatus(Enum):
    """
    Lifecycle of a guided search.

    pending -> filtering -> analyzing -> completed, or failed from any
    non-terminal state.
    """
    PENDING = "pending"
    FILTERING = "filtering"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED)


@dataclass
class SearchRun:
    """One execution of the guided-search funnel, polled by clients."""

    id: str
    user_id: str
    filters: SearchFilters = field(default_factory=SearchFilters)
    settings: RenovationSettings = field(default_factory=RenovationSettings)
    status: RunStatus = RunStatus.PENDING

    total_matched: int = 0
    candidates_count: int = 0
    analyzed_count: int = 0
    result_listing_ids: List[str] = field(default_factory=list)
    error_message: Optional[str] = None

    created_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "filters": self.filters.to_dict(),
            "settings": self.settings.to_dict(),
            "status": self.status.value,
            "total_matched": self.total_matched,
            "candidates_count": self.candidates_count,
            "analyzed_count": self.analyzed_count,
            "result_property_ids": list(self.result_listing_ids),
            "error_message": self.error_message,
            "created_at": _format_datetime(self.created_at),
            "completed_at": _format_datetime(self.completed_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SearchRun":
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            filters=SearchFilters.from_dict(data.get("filters")),
            settings=RenovationSettings.from_dict(data.get("settings")),
            status=RunStatus(data.get("status", RunStatus.PENDING.value)),
            total_matched=data.get("total_matched", 0),
            candidates_count=data.get("candidates_count", 0),
            analyzed_count=data.get("analyzed_count", 0),
            result_listing_ids=list(data.get("result_property_ids") or []),
            error_message=data.get("error_message"),
            created_at=_parse_datetime(data.get("created_at")) or datetime.utcnow(),
            completed_at=_parse_datetime(data.get("completed_at")),
        )
