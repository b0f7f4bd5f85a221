"""
HTTP collaborators: Firecrawl page scraping and the AI chat-completions gateway.

Both use a blocking requests.Session, run in a worker thread so the
search funnel's event loop is never blocked.
"""

import asyncio
import json
import logging
import re
from typing import List, Optional

import requests

from core.exceptions import AnalysisError, CreditsExhaustedError, RateLimitError
from core.models import ConditionAssessment, Listing

from .base import PageScraper, ScrapedPage, ValuationService


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

FIRECRAWL_SCRAPE_URL = "https://api.firecrawl.dev/v1/scrape"
DEFAULT_GATEWAY_URL = "https://ai.gateway.lovable.dev/v1/chat/completions"
DEFAULT_MODEL = "google/gemini-2.5-flash"

# Page render waits (ms), retried on timeout with the next, longer value
SCRAPE_WAIT_TIMES_MS = [5000, 10000]
REQUEST_TIMEOUT_SECONDS = 90

MAX_MARKDOWN_CHARS = 4000
MAX_DESCRIPTION_CHARS = 500

SYSTEM_PROMPT = (
    "You are an expert real-estate appraiser. "
    "Reply ONLY with valid JSON, no markdown and no explanations."
)

SCORING_GUIDE = """SCORING (VALUE MULTIPLIER):
Base = 1.0 (average property: acceptable condition, normal light, no luxuries or problems)

1. PHYSICAL CONDITION: brand new/just renovated +0.20 to +0.25; very good +0.10 to +0.15;
   acceptable 0; needs improvements -0.10 to -0.15; partial renovation -0.20 to -0.25;
   full renovation -0.30 to -0.40
2. LIGHT: exceptional +0.15; very good +0.08 to +0.12; normal 0; little light -0.08 to -0.12;
   very dark -0.15 to -0.20
3. FINISHES: premium +0.15; very good +0.08 to +0.12; standard 0; basic -0.03 to -0.07;
   worn -0.10 to -0.15
4. LAYOUT: outstanding design +0.10 to +0.15; standard 0; obsolete -0.05 to -0.10
5. EXTRAS: premium view + terrace + amenities +0.15; open view or large terrace +0.08 to +0.12;
   none 0; facing a party wall -0.05 to -0.08
6. CRITICAL PROBLEMS: visible damp -0.15 to -0.25; structural -0.20 to -0.30;
   precarious installations -0.10 to -0.15

Be critical and realistic. Most properties fall between 0.85 and 1.15. Only exceptional
cases deserve >1.25 or <0.70. A deteriorated, abandoned or uninhabitable property, or one
advertised "to recycle", "to renovate" or "to demolish", must score <= 0.55."""

RESPONSE_SHAPE = """Reply ONLY with this JSON:
{
    "estado_general": "condition label",
    "highlights": ["positive point", "..."],
    "lowlights": ["negative point", "..."],
    "score_multiplicador": 0.85,
    "informe_breve": "2-3 sentence summary of the property, its condition and relative value."
}"""

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def build_prompt(listing: Listing, markdown: str) -> str:
    """Prompt combining stored listing data with the scraped page text."""
    def show(value) -> str:
        return "N/A" if value in (None, "") else str(value)

    description = (listing.description or "N/A")[:MAX_DESCRIPTION_CHARS]
    lines = [
        "PROPERTY DATA (from our database):",
        f"- Type: {show(listing.property_type)}",
        f"- Price: {listing.currency} {listing.price:,.0f}",
        f"- Surface: {show(listing.surface_total)} m² total, {show(listing.surface_covered)} m² covered",
        f"- Rooms: {show(listing.rooms)}",
        f"- Bedrooms: {show(listing.bedrooms)}",
        f"- Bathrooms: {show(listing.bathrooms)}",
        f"- Location: {show(listing.neighborhood)}, {show(listing.city)}",
        f"- Description: {description}",
        "",
        "SCRAPED LISTING CONTENT:",
        markdown[:MAX_MARKDOWN_CHARS],
        "",
        "Analyse the information and the screenshot of the listing.",
        "",
        SCORING_GUIDE,
        "",
        RESPONSE_SHAPE,
    ]
    return "\n".join(lines)


def parse_model_reply(text: str) -> ConditionAssessment:
    """
    Extract the JSON object from a model reply and coerce it.

    Raises:
        AnalysisError: If the reply holds no parseable JSON object
    """
    match = _JSON_OBJECT.search(text or "")
    if not match:
        raise AnalysisError("AI did not return valid JSON")
    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise AnalysisError("AI returned malformed JSON") from e
    if not isinstance(payload, dict):
        raise AnalysisError("AI returned malformed JSON")
    return ConditionAssessment.from_payload(payload)


# =============================================================================
# Firecrawl
# =============================================================================

class FirecrawlScraper(PageScraper):
    """Scrapes listing pages to markdown plus a screenshot via Firecrawl."""

    def __init__(self, api_key: str, session: Optional[requests.Session] = None):
        if not api_key:
            raise ValueError("FIRECRAWL_API_KEY not configured")
        self._session = session or requests.Session()
        self._session.headers.update({
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        })

    async def scrape(self, url: str) -> ScrapedPage:
        return await asyncio.to_thread(self._scrape_blocking, url)

    def _scrape_blocking(self, url: str) -> ScrapedPage:
        for attempt, wait_ms in enumerate(SCRAPE_WAIT_TIMES_MS):
            try:
                response = self._session.post(
                    FIRECRAWL_SCRAPE_URL,
                    json={
                        "url": url,
                        "formats": ["markdown", "screenshot", "links"],
                        "onlyMainContent": True,
                        "waitFor": wait_ms,
                    },
                    timeout=REQUEST_TIMEOUT_SECONDS,
                )
                data = response.json()
            except (requests.RequestException, ValueError) as e:
                raise AnalysisError(f"Scraping failed: {e}") from e

            if response.ok and data.get("success"):
                content = data.get("data") or data
                markdown = content.get("markdown") or ""
                screenshot = content.get("screenshot")
                logger.info(
                    "Scraped %s: %d chars markdown, screenshot: %s",
                    url, len(markdown), bool(screenshot),
                )
                return ScrapedPage(url=url, markdown=markdown, screenshot=screenshot)

            if data.get("code") == "SCRAPE_TIMEOUT" and attempt < len(SCRAPE_WAIT_TIMES_MS) - 1:
                logger.info("Scrape timeout (attempt %d), retrying with longer wait", attempt + 1)
                continue

            logger.error("Firecrawl error for %s: %s", url, data)
            raise AnalysisError(f"Scraping failed: {data.get('error') or 'Unknown error'}")

        raise AnalysisError("All scrape attempts failed")

    def close(self) -> None:
        """Close the session."""
        self._session.close()


# =============================================================================
# AI Gateway
# =============================================================================

class GatewayValuationService(ValuationService):
    """Condition assessment through an OpenAI-compatible chat-completions gateway."""

    def __init__(
        self,
        api_key: str,
        url: str = DEFAULT_GATEWAY_URL,
        model: str = DEFAULT_MODEL,
        session: Optional[requests.Session] = None,
    ):
        if not api_key:
            raise ValueError("AI gateway API key not configured")
        self._url = url
        self._model = model
        self._session = session or requests.Session()
        self._session.headers.update({
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        })

    async def assess(self, listing: Listing, page: ScrapedPage) -> ConditionAssessment:
        return await asyncio.to_thread(self._assess_blocking, listing, page)

    def build_messages(self, listing: Listing, page: ScrapedPage) -> List[dict]:
        prompt = build_prompt(listing, page.markdown)
        if page.screenshot:
            user_content = [
                {"type": "image_url", "image_url": {"url": page.screenshot}},
                {"type": "text", "text": prompt},
            ]
        else:
            user_content = prompt
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": user_content},
        ]

    def _assess_blocking(self, listing: Listing, page: ScrapedPage) -> ConditionAssessment:
        try:
            response = self._session.post(
                self._url,
                json={
                    "model": self._model,
                    "messages": self.build_messages(listing, page),
                    "temperature": 0.3,
                },
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            raise AnalysisError(f"AI analysis failed: {e}") from e

        if response.status_code == 429:
            raise RateLimitError("Rate limit exceeded, try again in a few minutes")
        if response.status_code == 402:
            raise CreditsExhaustedError("AI credits exhausted")
        if not response.ok:
            logger.error("AI gateway error %s: %s", response.status_code, response.text[:500])
            raise AnalysisError(f"AI analysis failed with status {response.status_code}")

        try:
            data = response.json()
            text = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise AnalysisError("AI gateway returned an unexpected payload") from e

        assessment = parse_model_reply(text)
        logger.info(
            "AI assessment for %s: %.2f (%s)",
            listing.id, assessment.score_multiplier, assessment.condition_label,
        )
        return assessment

    def close(self) -> None:
        """Close the session."""
        self._session.close()
