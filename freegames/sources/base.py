# ===== IMPORTS & DEPENDENCIES =====
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from freegames.config import ENRICHMENT_CONCURRENCY
from freegames.core.browser import BrowserSession
from freegames.core.errors import PlatformScrapeFailure, RenderTimeoutError
from freegames.enrichment.category_enricher import CategoryEnricher
from freegames.models.game import GameListing, Platform

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)

SubScrape = Callable[[Any], Awaitable[List[GameListing]]]


class SubScrapeState(str, Enum):
    NOT_STARTED = "NotStarted"
    PAGE_LOADING = "PageLoading"
    WAITING_FOR_CONTENT = "WaitingForContent"
    EXTRACTING = "Extracting"
    PAGINATING = "Paginating"
    DONE = "Done"
    FAILED = "Failed"


@dataclass
class ScrapeReport:
    """Outcome of one platform scrape: per-sub-scrape listings, states and errors."""
    platform: Platform
    results: Dict[str, List[GameListing]] = field(default_factory=dict)
    states: Dict[str, SubScrapeState] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def failed(self) -> List[str]:
        return [name for name, state in self.states.items() if state == SubScrapeState.FAILED]

    @property
    def succeeded(self) -> List[str]:
        return [name for name, state in self.states.items() if state == SubScrapeState.DONE]

    def batches(self) -> List[List[GameListing]]:
        """Successful sub-scrape outputs in execution order."""
        return [self.results[name] for name in self.succeeded]


# ===== CORE BUSINESS LOGIC =====
class BasePlatformScraper:
    """
    Runs a fixed, ordered list of campaign sub-scrapes for one storefront
    inside a single browser session. A failing sub-scrape is logged and
    skipped; the platform only fails when every sub-scrape failed.

    Subclasses set `platform` and the rotation policy flags and implement
    `sub_scrapes`.
    """

    platform: Platform
    # Policy applied by the pipeline before writing fresh results
    clear_top_picks: bool = False
    full_catalog_refresh: bool = True

    def __init__(
        self,
        enricher: CategoryEnricher,
        session_factory: Callable[[], BrowserSession] = BrowserSession,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.enricher = enricher
        self._session_factory = session_factory
        self._clock = clock
        self._states: Dict[str, SubScrapeState] = {}
        self._current: Optional[str] = None

    @property
    def name(self) -> str:
        return self.__class__.__name__

    def sub_scrapes(self) -> List[Tuple[str, SubScrape]]:
        raise NotImplementedError

    def _set_state(self, state: SubScrapeState) -> None:
        """Records the state of the sub-scrape currently running."""
        if self._current is not None:
            self._states[self._current] = state
            logger.debug(f"[{self.name}] {self._current} -> {state.value}")

    async def scrape(self) -> ScrapeReport:
        """Runs every sub-scrape in order and returns what succeeded."""
        logger.info("=" * 60)
        logger.info(f"🚀 [{self.name}] Starting {self.platform.value} scrape")
        report = ScrapeReport(platform=self.platform)
        self._states = report.states
        plan = self.sub_scrapes()
        for name, _ in plan:
            report.states[name] = SubScrapeState.NOT_STARTED

        async with self._session_factory() as browser:
            for name, sub_scrape in plan:
                self._current = name
                logger.info(f"=== [{self.name}] Sub-scrape '{name}' ===")
                try:
                    listings = await sub_scrape(browser.page)
                except RenderTimeoutError as e:
                    self._set_state(SubScrapeState.FAILED)
                    report.errors[name] = str(e)
                    logger.warning(f"⚠️ [{self.name}] Sub-scrape '{name}' timed out waiting for content: {e}")
                    continue
                except Exception as e:
                    self._set_state(SubScrapeState.FAILED)
                    report.errors[name] = f"{type(e).__name__}: {e}"
                    logger.error(f"❌ [{self.name}] Sub-scrape '{name}' failed: {e}", exc_info=True)
                    continue
                report.results[name] = listings
                self._states[name] = SubScrapeState.DONE
                logger.info(f"✅ [{self.name}] Sub-scrape '{name}' produced {len(listings)} listings.")
            self._current = None

        if plan and len(report.failed) == len(plan):
            raise PlatformScrapeFailure(self.platform.value, "every sub-scrape failed", report.failed)
        return report

    async def enrich_all(self, listings: List[GameListing]) -> List[GameListing]:
        """Fills categories and features for each listing, one lookup per unique title."""
        by_title: Dict[str, List[GameListing]] = {}
        for listing in listings:
            by_title.setdefault(listing['title'], []).append(listing)
        if not by_title:
            return listings

        semaphore = asyncio.Semaphore(ENRICHMENT_CONCURRENCY)

        async def enrich(title: str, group: List[GameListing]) -> None:
            async with semaphore:
                try:
                    result = await self.enricher.infer(title, self.platform)
                except Exception as e:
                    logger.warning(f"⚠️ [{self.name}] Enrichment failed for '{title}': {e}")
                    return
            for listing in group:
                listing['categories'] |= result.categories
                listing['features'] |= result.features
            logger.debug(f"[{self.name}] ✓ {title} - Categories: {len(result.categories)}, Features: {len(result.features)}")

        logger.info(f"[{self.name}] Fetching categories for {len(by_title)} titles...")
        await asyncio.gather(*(enrich(title, group) for title, group in by_title.items()))
        return listings
