# ===== IMPORTS & DEPENDENCIES =====
import asyncio
import logging
from typing import Optional

import aiohttp
from aiohttp import web
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from freegames.config import (
    DATABASE_PATH, SCHEDULE_HOUR, SCHEDULE_MINUTE, SCHEDULE_TIMEZONE, SERVER_HOST, SERVER_PORT
)
from freegames.core.database import Database
from freegames.main import GamePipeline, build_notifier, configure_logging
from freegames.models.game import Platform, listing_to_dict, TAG_TOP_PICK

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)

PIPELINE_KEY = web.AppKey("pipeline", GamePipeline)
DB_KEY = web.AppKey("db", Database)
SCHEDULER_KEY = web.AppKey("scheduler", AsyncIOScheduler)
BACKGROUND_KEY = web.AppKey("background", dict)

SCHEDULED_JOB_ID = "daily-scrape"


# ===== REQUEST HANDLERS =====

def _games_response(listings) -> web.Response:
    return web.json_response([listing_to_dict(listing) for listing in listings])


def _parse_limit(request: web.Request) -> Optional[int]:
    raw = request.query.get('limit')
    if raw is None:
        return None
    try:
        limit = int(raw)
    except ValueError:
        raise web.HTTPBadRequest(text=f"Invalid limit: {raw}")
    if limit < 0:
        raise web.HTTPBadRequest(text=f"Invalid limit: {raw}")
    return limit


async def trigger_scrape(request: web.Request) -> web.Response:
    """Starts a run in the background; 409 while one is in flight."""
    pipeline = request.app[PIPELINE_KEY]
    background = request.app[BACKGROUND_KEY]
    running = background.get("run")
    if pipeline.is_running or (running is not None and not running.done()):
        return web.json_response({"message": "A scrape run is already in progress."}, status=409)

    background["run"] = asyncio.create_task(pipeline.run_all_scrapers())
    logger.info("🚀 Scrape run triggered over HTTP.")
    return web.json_response({"message": "Scraping triggered."}, status=202)


async def health(request: web.Request) -> web.Response:
    if request.app[DB_KEY].ping():
        return web.json_response({"status": "ok"})
    return web.json_response({"status": "unavailable"}, status=503)


async def get_games(request: web.Request) -> web.Response:
    platform = None
    if 'platform' in request.query:
        try:
            platform = Platform.from_slug(request.query['platform'])
        except ValueError as e:
            raise web.HTTPBadRequest(text=str(e))
    listings = request.app[DB_KEY].query_all(
        platform=platform,
        tags=request.query.getall('tag', []),
        title_search=request.query.get('search'),
        limit=_parse_limit(request),
    )
    return _games_response(listings)


async def get_top_picks(request: web.Request) -> web.Response:
    return _games_response(request.app[DB_KEY].query_all(tags=[TAG_TOP_PICK], limit=_parse_limit(request)))


async def search_games(request: web.Request) -> web.Response:
    search = request.query.get('search', '').strip()
    if not search:
        return _games_response([])
    return _games_response(request.app[DB_KEY].query_all(title_search=search, limit=_parse_limit(request)))


async def get_platform_games(request: web.Request) -> web.Response:
    try:
        platform = Platform.from_slug(request.match_info['platform'])
    except ValueError:
        raise web.HTTPNotFound(text=f"Unknown platform: {request.match_info['platform']}")
    return _games_response(request.app[DB_KEY].query_all(platform=platform, limit=_parse_limit(request)))


# ===== LIFECYCLE =====

async def start_scheduler(app: web.Application) -> None:
    scheduler = app.get(SCHEDULER_KEY)
    if scheduler is None:
        return
    trigger = CronTrigger(hour=SCHEDULE_HOUR, minute=SCHEDULE_MINUTE, timezone=SCHEDULE_TIMEZONE)
    scheduler.add_job(
        app[PIPELINE_KEY].run_all_scrapers,
        trigger,
        id=SCHEDULED_JOB_ID,
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    scheduler.start()
    logger.info(f"✅ Daily scrape scheduled at {SCHEDULE_HOUR:02d}:{SCHEDULE_MINUTE:02d} {SCHEDULE_TIMEZONE}.")


async def stop_background_work(app: web.Application) -> None:
    scheduler = app.get(SCHEDULER_KEY)
    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
    task = app[BACKGROUND_KEY].get("run")
    if task is not None and not task.done():
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            logger.info("In-flight scrape run cancelled on shutdown.")


def create_app(pipeline: GamePipeline, db: Database, scheduler: Optional[AsyncIOScheduler] = None) -> web.Application:
    """Builds the HTTP application. Without a scheduler only manual triggers run scrapes."""
    app = web.Application()
    app[PIPELINE_KEY] = pipeline
    app[DB_KEY] = db
    app[BACKGROUND_KEY] = {}
    if scheduler is not None:
        app[SCHEDULER_KEY] = scheduler

    app.router.add_post('/trigger-scrape', trigger_scrape)
    app.router.add_get('/health', health)
    app.router.add_get('/api/games', get_games)
    app.router.add_get('/api/games/top-picks', get_top_picks)
    app.router.add_get('/api/games/search', search_games)
    app.router.add_get('/api/games/{platform}', get_platform_games)

    app.on_startup.append(start_scheduler)
    app.on_cleanup.append(stop_background_work)
    return app


# ===== INITIALIZATION & STARTUP =====
async def build_app() -> web.Application:
    db = Database(DATABASE_PATH)
    session = aiohttp.ClientSession()
    pipeline = GamePipeline(db, session, notifier=build_notifier(db))
    app = create_app(pipeline, db, scheduler=AsyncIOScheduler(timezone=SCHEDULE_TIMEZONE))

    async def close_session(app: web.Application) -> None:
        await session.close()

    app.on_cleanup.append(close_session)
    return app


def main() -> None:
    configure_logging()
    logger.info(f"🚀 Server starting on {SERVER_HOST}:{SERVER_PORT}")
    web.run_app(build_app(), host=SERVER_HOST, port=SERVER_PORT)


if __name__ == "__main__":
    main()
