# ===== IMPORTS & DEPENDENCIES =====
import asyncio
import logging
import os
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

import aiohttp

# --- Configuration ---
from freegames.config import (
    DATABASE_PATH, LOG_LEVEL, TELEGRAM_BOT_TOKEN, TELEGRAM_CHAT_IDS, WEB_DATA_DIR, WEB_DATA_FILE
)

# --- Core Components ---
from freegames.core.database import Database
from freegames.core.errors import PlatformScrapeFailure
from freegames.core.reconcile import log_summary, reconcile
from freegames.core.telegram_bot import TelegramNotifier

# --- Data Models ---
from freegames.models.game import GameListing, Platform, TAG_TOP_PICK

# --- Data Sources ---
from freegames.enrichment.category_enricher import CategoryEnricher
from freegames.sources.base import BasePlatformScraper
from freegames.sources.epic_games import EpicGamesSource
from freegames.sources.gog import GOGSource
from freegames.sources.prime_gaming import PrimeGamingSource
from freegames.sources.steam import SteamSource

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATEFMT = '%Y-%m-%d %H:%M:%S'


def configure_logging() -> None:
    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, datefmt=LOG_DATEFMT)


@dataclass
class PlatformOutcome:
    platform: Platform
    ok: bool
    listings: List[GameListing] = field(default_factory=list)
    failed_sub_scrapes: List[str] = field(default_factory=list)
    upsert: Optional[Dict[str, int]] = None
    error: Optional[str] = None


@dataclass
class RunSummary:
    """What one full run did, platform by platform."""
    started_at: datetime
    finished_at: Optional[datetime] = None
    expired_swept: int = 0
    announced: int = 0
    outcomes: List[PlatformOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.ok)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.ok)


# ===== CORE BUSINESS LOGIC / PIPELINE =====
class GamePipeline:
    """Orchestrates scraping every platform, reconciling, persisting and announcing."""

    def __init__(self, db: Database, session: aiohttp.ClientSession,
                 scrapers: Optional[List[BasePlatformScraper]] = None,
                 notifier: Optional[TelegramNotifier] = None,
                 clock: Callable[[], datetime] = datetime.now,
                 export_path: Optional[str] = None):
        self.db = db
        self.session = session
        self.notifier = notifier
        self._clock = clock
        self.export_path = export_path or os.path.join(WEB_DATA_DIR, WEB_DATA_FILE)
        self._lock = asyncio.Lock()

        if scrapers is None:
            # One enricher for the whole run so titles repeated across campaigns are looked up once
            enricher = CategoryEnricher(session)
            scrapers = [
                EpicGamesSource(enricher),
                PrimeGamingSource(enricher),
                SteamSource(enricher),
                GOGSource(enricher),
            ]
        self.scrapers = scrapers
        # Distinct enrichers behind the scrapers; their memo only lives for one run
        self.enrichers = list({
            id(scraper.enricher): scraper.enricher
            for scraper in scrapers
            if getattr(scraper, 'enricher', None) is not None
        }.values())

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def _run_platform(self, scraper: BasePlatformScraper) -> PlatformOutcome:
        platform = scraper.platform
        try:
            report = await scraper.scrape()
        except PlatformScrapeFailure as e:
            logger.error(f"❌ Platform {platform.value} failed: {e}")
            return PlatformOutcome(platform, ok=False, failed_sub_scrapes=e.failed_sub_scrapes, error=str(e))
        except Exception as e:
            logger.error(f"❌ Platform {platform.value} failed unexpectedly: {e}", exc_info=True)
            return PlatformOutcome(platform, ok=False, error=f"{type(e).__name__}: {e}")

        result = reconcile(report.batches())
        log_summary(platform.value, result, {name: len(report.results[name]) for name in report.succeeded})

        outcome = PlatformOutcome(platform, ok=True, listings=result.listings, failed_sub_scrapes=report.failed)
        if not result.listings:
            logger.warning(f"⚠️ No {platform.value} listings this run. Keeping the previous catalog.")
            return outcome

        try:
            outcome.upsert = self.db.replace_platform(
                platform, result.listings,
                clear_top_picks=scraper.clear_top_picks,
                full_refresh=scraper.full_catalog_refresh,
                now=self._clock(),
            )
        except sqlite3.Error as e:
            logger.error(f"❌ Saving {platform.value} listings failed. Keeping the previous catalog: {e}", exc_info=True)
            outcome.ok = False
            outcome.error = f"{type(e).__name__}: {e}"
        except Exception as e:
            logger.error(f"❌ Saving {platform.value} listings failed unexpectedly: {e}", exc_info=True)
            outcome.ok = False
            outcome.error = f"{type(e).__name__}: {e}"
        return outcome

    async def _announce(self, summary: RunSummary) -> None:
        if not self.notifier:
            logger.info("Telegram notifier not configured. Skipping notifications.")
            return
        top_picks = [
            listing
            for outcome in summary.outcomes if outcome.ok
            for listing in outcome.listings
            if TAG_TOP_PICK in listing['tags']
        ]
        summary.announced = await self.notifier.announce(top_picks)

    def _save_for_web(self) -> None:
        try:
            self.db.export_json(self.export_path)
        except (OSError, sqlite3.Error) as e:
            logger.error(f"❌ Failed to save web data to {self.export_path}: {e}", exc_info=True)

    async def _run(self) -> RunSummary:
        logger.info("🚀🚀🚀 Starting free games pipeline 🚀🚀🚀")
        summary = RunSummary(started_at=self._clock())
        for enricher in self.enrichers:
            enricher.reset()
        try:
            summary.expired_swept = self.db.delete_expired(summary.started_at)
        except sqlite3.Error as e:
            logger.error(f"❌ Sweeping expired games failed: {e}", exc_info=True)

        for scraper in self.scrapers:
            summary.outcomes.append(await self._run_platform(scraper))

        self._save_for_web()
        await self._announce(summary)
        summary.finished_at = self._clock()

        logger.info("=" * 60)
        for outcome in summary.outcomes:
            status = "✅" if outcome.ok else "❌"
            failed = f" (failed: {', '.join(outcome.failed_sub_scrapes)})" if outcome.failed_sub_scrapes else ""
            logger.info(f"{status} {outcome.platform.value}: {len(outcome.listings)} listings{failed}")
        logger.info(f"🏁🏁🏁 Pipeline finished: {summary.succeeded} platforms succeeded, {summary.failed} failed 🏁🏁🏁")
        return summary

    async def run_all_scrapers(self) -> Optional[RunSummary]:
        """Runs every platform once. Returns None without doing anything if a run is already in flight."""
        if self._lock.locked():
            logger.warning("⚠️ A scrape run is already in progress. Ignoring this request.")
            return None
        async with self._lock:
            return await self._run()


def build_notifier(db: Database) -> Optional[TelegramNotifier]:
    if TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_IDS:
        return TelegramNotifier(TELEGRAM_BOT_TOKEN, TELEGRAM_CHAT_IDS, db)
    return None


# ===== INITIALIZATION & STARTUP =====
async def main():
    """Runs the pipeline once."""
    configure_logging()
    db = Database(DATABASE_PATH)

    async with aiohttp.ClientSession() as session:
        pipeline = GamePipeline(db, session, notifier=build_notifier(db))
        try:
            await pipeline.run_all_scrapers()
        except Exception as e:
            logger.critical(f"🔥🔥🔥 A critical error occurred in the main pipeline: {e}", exc_info=True)


def cli() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    cli()
