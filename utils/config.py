"""
Configuration management.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from core.search import FunnelConfig


LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

DEV_ORIGINS = ["http://localhost:5173", "http://localhost:8000", "http://127.0.0.1:8000"]


def _origins_from_env() -> List[str]:
    raw = os.getenv("ALLOWED_ORIGINS", "")
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    return origins or list(DEV_ORIGINS)


@dataclass
class Config:
    """
    Application configuration.

    Loads from environment variables with sensible defaults.
    """

    # Server
    host: str = field(default_factory=lambda: os.getenv("HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "8000")))
    debug: bool = field(default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true")
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    # Data
    data_dir: str = field(default_factory=lambda: os.getenv("DATA_DIR", "./data"))
    persist: bool = field(default_factory=lambda: os.getenv("PERSIST", "false").lower() == "true")

    # CORS (comma-separated; empty falls back to localhost for development)
    allowed_origins: List[str] = field(default_factory=_origins_from_env)

    # Search funnel
    batch_size: int = field(default_factory=lambda: int(os.getenv("SEARCH_BATCH_SIZE", "5")))
    page_size: int = field(default_factory=lambda: int(os.getenv("SEARCH_PAGE_SIZE", "1000")))
    result_limit: int = field(default_factory=lambda: int(os.getenv("SEARCH_RESULT_LIMIT", "10")))
    top_k_min: int = field(default_factory=lambda: int(os.getenv("SEARCH_TOP_K_MIN", "10")))
    top_k_max: int = field(default_factory=lambda: int(os.getenv("SEARCH_TOP_K_MAX", "20")))
    top_k_fraction: float = field(
        default_factory=lambda: float(os.getenv("SEARCH_TOP_K_FRACTION", "0.05"))
    )
    poll_interval_seconds: float = field(
        default_factory=lambda: float(os.getenv("SEARCH_POLL_INTERVAL", "3"))
    )

    # Scoring
    deal_threshold: float = field(
        default_factory=lambda: float(os.getenv("DEAL_THRESHOLD", "40"))
    )
    top_opportunity_fraction: float = field(
        default_factory=lambda: float(os.getenv("TOP_OPPORTUNITY_FRACTION", "0.10"))
    )

    # External services ("mock" uses the offline collaborators)
    valuation_backend: str = field(default_factory=lambda: os.getenv("VALUATION_BACKEND", "mock"))
    ai_gateway_url: Optional[str] = field(default_factory=lambda: os.getenv("AI_GATEWAY_URL"))
    ai_gateway_key: Optional[str] = field(default_factory=lambda: os.getenv("AI_GATEWAY_API_KEY"))
    ai_model: Optional[str] = field(default_factory=lambda: os.getenv("AI_MODEL"))
    firecrawl_api_key: Optional[str] = field(default_factory=lambda: os.getenv("FIRECRAWL_API_KEY"))

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment."""
        return cls()

    def funnel_config(self) -> FunnelConfig:
        """Search funnel limits from this configuration."""
        return FunnelConfig(
            page_size=self.page_size,
            batch_size=self.batch_size,
            top_k_fraction=self.top_k_fraction,
            top_k_min=self.top_k_min,
            top_k_max=self.top_k_max,
            result_limit=self.result_limit,
        )

    def to_dict(self) -> dict:
        """Convert config to dictionary. API keys are reported as set/unset only."""
        return {
            "host": self.host,
            "port": self.port,
            "debug": self.debug,
            "log_level": self.log_level,
            "data_dir": self.data_dir,
            "persist": self.persist,
            "allowed_origins": list(self.allowed_origins),
            "batch_size": self.batch_size,
            "page_size": self.page_size,
            "result_limit": self.result_limit,
            "top_k_min": self.top_k_min,
            "top_k_max": self.top_k_max,
            "top_k_fraction": self.top_k_fraction,
            "poll_interval_seconds": self.poll_interval_seconds,
            "deal_threshold": self.deal_threshold,
            "top_opportunity_fraction": self.top_opportunity_fraction,
            "valuation_backend": self.valuation_backend,
            "ai_gateway_url": self.ai_gateway_url,
            "ai_model": self.ai_model,
            "ai_gateway_key_set": bool(self.ai_gateway_key),
            "firecrawl_api_key_set": bool(self.firecrawl_api_key),
        }


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the entrypoints."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
