"""
FastAPI application for Flip Radar.

JSON API over the opportunity pipeline: listing upload, scored listings,
neighborhood statistics, on-demand AI analysis, guided search runs and
per-user preselection.

Production deployment configuration via environment variables.
"""

import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from core import (
    AnalysisError,
    CreditsExhaustedError,
    InMemoryAnalysisRepository,
    InMemoryListingStore,
    InMemorySearchRunRepository,
    ListingNotFoundError,
    OpportunityScorer,
    PreselectionStore,
    PropertyAnalyzer,
    RateLimitError,
    RenovationSettings,
    SearchFilters,
    SearchFunnel,
    SearchRun,
    by_neighborhood,
    compute_group_stats,
    parse_listings_csv,
)
from core.repository import AnalysisRepository, ListingStore, SearchRunRepository
from scraper import (
    FirecrawlScraper,
    GatewayValuationService,
    MockScraper,
    MockValuationService,
)
from scraper.gateway import DEFAULT_GATEWAY_URL, DEFAULT_MODEL
from utils.config import Config


logger = logging.getLogger(__name__)

VERSION = "0.1.0"


# =============================================================================
# Service Wiring
# =============================================================================

@dataclass
class Services:
    """Stores and services shared by every request."""
    listings: ListingStore
    analyses: AnalysisRepository
    runs: SearchRunRepository
    preselection: PreselectionStore
    analyzer: PropertyAnalyzer
    funnel: SearchFunnel


def build_services(config: Config) -> Services:
    """
    Wire stores and collaborators from configuration.

    VALUATION_BACKEND=gateway uses Firecrawl and the AI gateway; anything
    else falls back to the offline mock collaborators.
    """
    data_dir = Path(config.data_dir) if config.persist else None

    def persist_path(name: str) -> Optional[str]:
        return str(data_dir / name) if data_dir else None

    listings = InMemoryListingStore(persist_path("listings.json"))
    analyses = InMemoryAnalysisRepository(persist_path("analyses.json"))
    runs = InMemorySearchRunRepository(persist_path("search_runs.json"))

    if config.valuation_backend == "gateway":
        scraper = FirecrawlScraper(config.firecrawl_api_key)
        valuation_service = GatewayValuationService(
            config.ai_gateway_key,
            url=config.ai_gateway_url or DEFAULT_GATEWAY_URL,
            model=config.ai_model or DEFAULT_MODEL,
        )
    else:
        logger.info("Using mock valuation backend")
        scraper = MockScraper()
        valuation_service = MockValuationService()

    analyzer = PropertyAnalyzer(listings, analyses, valuation_service, scraper)
    funnel = SearchFunnel(listings, analyses, runs, analyzer, config.funnel_config())
    return Services(
        listings=listings,
        analyses=analyses,
        runs=runs,
        preselection=PreselectionStore(),
        analyzer=analyzer,
        funnel=funnel,
    )


# =============================================================================
# API Request/Response Models
# =============================================================================

class FiltersInput(BaseModel):
    """Hard filters of a guided search."""
    property_types: List[str] = []
    neighborhoods: List[str] = []
    cities: List[str] = []
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    surface_min: Optional[float] = None
    rooms_min: Optional[int] = None
    rooms_max: Optional[int] = None
    parking_min: Optional[int] = None
    budget_max: Optional[float] = None


class SettingsInput(BaseModel):
    """User renovation cost settings."""
    surface_type: str = "total"
    min_surface_enabled: bool = True
    renovation_costs: Optional[Dict[str, float]] = None


class AnalyzeRequest(BaseModel):
    """Request body for a single-listing analysis."""
    user_id: Optional[str] = None
    listing_id: Optional[str] = None
    force: bool = False
    settings: Optional[SettingsInput] = None


class SearchRequest(BaseModel):
    """Request body to start a guided search."""
    user_id: Optional[str] = None
    filters: FiltersInput = Field(default_factory=FiltersInput)
    settings: SettingsInput = Field(default_factory=SettingsInput)


class PreselectionToggle(BaseModel):
    listing_id: str


def _parse_settings(settings: Optional[SettingsInput]) -> Optional[RenovationSettings]:
    if settings is None:
        return None
    try:
        return RenovationSettings.from_dict(settings.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _analysis_error(e: AnalysisError) -> HTTPException:
    """Map an analysis failure onto an HTTP error."""
    if isinstance(e, RateLimitError):
        return HTTPException(status_code=429, detail=str(e))
    if isinstance(e, CreditsExhaustedError):
        return HTTPException(status_code=402, detail=str(e))
    return HTTPException(status_code=502, detail=str(e))


def create_app(config: Optional[Config] = None, services: Optional[Services] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    config = config or Config.load()
    services = services or build_services(config)

    app = FastAPI(
        title="Flip Radar",
        description="Real-estate opportunity scoring and guided search",
        version=VERSION,
        debug=config.debug,
    )
    app.state.services = services

    # ==========================================================================
    # Healthcheck endpoints: synchronous, no IO
    # ==========================================================================
    @app.get("/", include_in_schema=False)
    def root():
        """Root healthcheck. No dependencies, no IO."""
        return {"status": "ok"}

    @app.get("/health", include_in_schema=False)
    def health():
        """Secondary health endpoint. No dependencies, no IO."""
        return {"status": "healthy", "version": VERSION}

    if config.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.allowed_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "DELETE"],
            allow_headers=["*"],
        )

    # ==========================================================================
    # Listings
    # ==========================================================================
    @app.post("/api/listings/upload")
    async def upload_listings(request: Request, delimiter: str = ";"):
        """
        Import a CSV export of scraped listings.

        The request body is the raw CSV text. Rows that fail validation are
        skipped and reported with their rejection code.
        """
        body = await request.body()
        if not body.strip():
            raise HTTPException(status_code=400, detail="No CSV data provided")
        try:
            text = body.decode("utf-8-sig")
        except UnicodeDecodeError:
            raise HTTPException(status_code=400, detail="CSV must be UTF-8 encoded")

        result = parse_listings_csv(text, delimiter=delimiter)
        stored = services.listings.add_many(result.listings)
        logger.info("Upload stored %d listings (%d skipped)", stored, result.skipped)

        response = result.to_dict()
        response["success"] = True
        response["stored"] = stored
        return response

    @app.get("/api/listings")
    def list_listings(
        deal_threshold: float = config.deal_threshold,
        neighborhood: Optional[str] = None,
        deals_only: bool = False,
    ):
        """Every listing scored against its neighborhood median, best first."""
        try:
            scorer = OpportunityScorer(
                deal_threshold=deal_threshold,
                top_fraction=config.top_opportunity_fraction,
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        scored = scorer.rank(scorer.score_all(services.listings.all()))
        if neighborhood:
            scored = [s for s in scored if s.listing.neighborhood == neighborhood]
        if deals_only:
            scored = [s for s in scored if s.opportunity.is_neighborhood_deal]

        return {
            "count": len(scored),
            "deal_threshold": deal_threshold,
            "top_opportunities": sum(1 for s in scored if s.opportunity.is_top_opportunity),
            "neighborhood_deals": sum(1 for s in scored if s.opportunity.is_neighborhood_deal),
            "listings": [s.to_dict() for s in scored],
        }

    @app.get("/api/neighborhoods")
    def list_neighborhoods():
        """Price-per-m² statistics per neighborhood."""
        stats = compute_group_stats(services.listings.all(), by_neighborhood)
        neighborhoods = []
        for key in sorted(stats):
            group = stats[key]
            data = group.to_dict()
            data["q3_proxy_price_per_m2"] = group.q3_proxy
            neighborhoods.append(data)
        return {"count": len(neighborhoods), "neighborhoods": neighborhoods}

    # ==========================================================================
    # Analysis
    # ==========================================================================
    @app.post("/api/analyze")
    async def analyze(request_data: AnalyzeRequest):
        """
        Run or reuse the AI analysis of one listing for one user.

        Returns the stored analysis plus the full valuation breakdown.
        """
        settings = _parse_settings(request_data.settings)
        try:
            analysis = await services.analyzer.analyze(
                request_data.user_id,
                request_data.listing_id,
                settings=settings,
                force=request_data.force,
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except ListingNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except AnalysisError as e:
            raise _analysis_error(e)

        valuation = services.analyzer.valuation_for(analysis, settings)
        return {
            "success": True,
            "analysis": analysis.to_dict(),
            "valuation": valuation.to_dict() if valuation else None,
        }

    # ==========================================================================
    # Guided Search
    # ==========================================================================
    async def run_search(run_id: str, user_id: str) -> None:
        """Background task: failures are recorded on the run by the funnel."""
        try:
            await services.funnel.run(run_id, user_id)
        except Exception as e:
            logger.warning("Background search %s ended with error: %s", run_id, e)

    @app.post("/api/search", status_code=202)
    def start_search(request_data: SearchRequest, background_tasks: BackgroundTasks):
        """
        Start a guided search.

        The run is created as pending and processed in the background;
        clients poll GET /api/search/{run_id}.
        """
        if not request_data.user_id:
            raise HTTPException(status_code=400, detail="user_id is required")
        try:
            filters = SearchFilters.from_dict(request_data.filters.model_dump())
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        settings = _parse_settings(request_data.settings)

        run = services.runs.create(SearchRun(
            id=uuid.uuid4().hex,
            user_id=request_data.user_id,
            filters=filters,
            settings=settings or RenovationSettings(),
        ))
        logger.info("Search %s queued for user %s", run.id, run.user_id)
        background_tasks.add_task(run_search, run.id, run.user_id)

        response = run.to_dict()
        response["poll_interval_seconds"] = config.poll_interval_seconds
        return response

    @app.get("/api/search/{run_id}")
    def get_search(run_id: str):
        """Current state of a search run, with results once completed."""
        run = services.runs.get(run_id)
        if run is None:
            raise HTTPException(status_code=404, detail=f"Search run not found: {run_id}")

        response = run.to_dict()
        response["poll_interval_seconds"] = config.poll_interval_seconds
        analyses = services.analyses.get_many(run.user_id, run.result_listing_ids)
        results = []
        for rank, listing_id in enumerate(run.result_listing_ids, start=1):
            listing = services.listings.get(listing_id)
            analysis = analyses.get(listing_id)
            results.append({
                "rank": rank,
                "listing": listing.to_dict() if listing else None,
                "analysis": analysis.to_dict() if analysis else None,
            })
        response["results"] = results
        return response

    @app.get("/api/users/{user_id}/searches")
    def list_searches(user_id: str):
        """A user's search runs, newest first."""
        runs = services.runs.list_for_user(user_id)
        return {"count": len(runs), "runs": [r.to_dict() for r in runs]}

    # ==========================================================================
    # Preselection
    # ==========================================================================
    @app.get("/api/preselection/{user_id}")
    def get_preselection(user_id: str):
        return {"user_id": user_id, "listing_ids": sorted(services.preselection.selected(user_id))}

    @app.post("/api/preselection/{user_id}")
    def toggle_preselection(user_id: str, request_data: PreselectionToggle):
        """Flip a listing in or out of the user's preselection."""
        if services.listings.get(request_data.listing_id) is None:
            raise HTTPException(
                status_code=404,
                detail=f"Listing not found: {request_data.listing_id}",
            )
        selected = services.preselection.toggle(user_id, request_data.listing_id)
        return {
            "user_id": user_id,
            "listing_id": request_data.listing_id,
            "selected": selected,
            "listing_ids": sorted(services.preselection.selected(user_id)),
        }

    @app.delete("/api/preselection/{user_id}")
    def clear_preselection(user_id: str):
        services.preselection.clear(user_id)
        return {"user_id": user_id, "listing_ids": []}

    logger.info("Flip Radar app created (backend: %s)", config.valuation_backend)
    return app


# Create app instance for uvicorn
app = create_app()
