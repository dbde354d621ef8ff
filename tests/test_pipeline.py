"""
Tests for the pipeline: clear policies, failure isolation and single-flight runs.
"""

import asyncio
import json
import sqlite3
from datetime import datetime

import pytest

from freegames.core.database import Database
from freegames.core.errors import PlatformScrapeFailure
from freegames.enrichment.category_enricher import CategoryEnricher
from freegames.main import GamePipeline
from freegames.models.game import Platform
from freegames.sources.base import ScrapeReport, SubScrapeState


class StubScraper:
    """Stands in for a platform scraper; returns canned batches or raises."""

    def __init__(self, platform, batches=None, clear_top_picks=False, full_catalog_refresh=True, error=None):
        self.platform = platform
        self.batches = batches or {}
        self.clear_top_picks = clear_top_picks
        self.full_catalog_refresh = full_catalog_refresh
        self.error = error
        self.calls = 0

    async def scrape(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        report = ScrapeReport(platform=self.platform)
        for name, listings in self.batches.items():
            report.results[name] = listings
            report.states[name] = SubScrapeState.DONE
        return report


class StubNotifier:
    def __init__(self):
        self.announced = []

    async def announce(self, listings):
        self.announced.extend(listings)
        return len(listings)


@pytest.fixture
def db(tmp_path):
    return Database(str(tmp_path / "games.db"))


def make_pipeline(db, tmp_path, scrapers, notifier=None, now=None):
    return GamePipeline(
        db, session=None, scrapers=scrapers, notifier=notifier,
        clock=(lambda: now) if now else datetime.now,
        export_path=str(tmp_path / "web" / "free_games.json"),
    )


def stored_titles(db, platform=None):
    return sorted(listing['title'] for listing in db.query_all(platform=platform))


class TestClearPolicy:

    @pytest.mark.asyncio
    async def test_full_refresh_replaces_previous_catalog(self, db, tmp_path, sample_listing, fixed_now):
        db.upsert_many([sample_listing("Gone", platform=Platform.STEAM),
                        sample_listing("Untouched", platform=Platform.GOG)], now=fixed_now)
        scraper = StubScraper(Platform.STEAM, {"budget": [sample_listing("Fresh", platform=Platform.STEAM)]})

        summary = await make_pipeline(db, tmp_path, [scraper], now=fixed_now).run_all_scrapers()

        assert summary.succeeded == 1
        assert stored_titles(db, Platform.STEAM) == ["Fresh"]
        assert stored_titles(db, Platform.GOG) == ["Untouched"]

    @pytest.mark.asyncio
    async def test_top_pick_only_clear_keeps_rest_of_catalog(self, db, tmp_path, sample_listing, fixed_now):
        db.upsert_many([
            sample_listing("Last Week", tags={"top-pick"}),
            sample_listing("Still Free", tags={"always-free"}),
        ], now=fixed_now)
        scraper = StubScraper(Platform.EPIC, {"top-picks": [sample_listing("This Week", tags={"top-pick"})]},
                              clear_top_picks=True, full_catalog_refresh=False)

        await make_pipeline(db, tmp_path, [scraper], now=fixed_now).run_all_scrapers()

        assert stored_titles(db) == ["Still Free", "This Week"]

    @pytest.mark.asyncio
    async def test_empty_batch_keeps_previous_catalog(self, db, tmp_path, sample_listing, fixed_now):
        db.upsert_many([sample_listing("Keep Me", platform=Platform.PRIME)], now=fixed_now)
        scraper = StubScraper(Platform.PRIME, {"free-games": []})

        summary = await make_pipeline(db, tmp_path, [scraper], now=fixed_now).run_all_scrapers()

        assert summary.outcomes[0].ok
        assert summary.outcomes[0].upsert is None
        assert stored_titles(db) == ["Keep Me"]

    @pytest.mark.asyncio
    async def test_sub_scrape_batches_are_merged_before_writing(self, db, tmp_path, sample_listing, fixed_now):
        scraper = StubScraper(Platform.STEAM, {
            "highly-discounted": [sample_listing("Deal", platform=Platform.STEAM, tags={"highly-discounted"})],
            "budget": [sample_listing("Deal", platform=Platform.STEAM, tags={"budget"})],
        })

        summary = await make_pipeline(db, tmp_path, [scraper], now=fixed_now).run_all_scrapers()

        assert summary.outcomes[0].upsert == {"matched": 0, "modified": 0, "inserted": 1}
        assert db.query_all()[0]['tags'] == {"highly-discounted", "budget"}


class TestFailures:

    @pytest.mark.asyncio
    async def test_failed_platform_does_not_stop_the_others(self, db, tmp_path, sample_listing, fixed_now):
        db.upsert_many([sample_listing("Old Epic")], now=fixed_now)
        broken = StubScraper(Platform.EPIC, error=PlatformScrapeFailure("Epic", "every sub-scrape failed", ["top-picks"]))
        crashing = StubScraper(Platform.PRIME, error=RuntimeError("browser died"))
        working = StubScraper(Platform.GOG, {"always-free": [sample_listing("Free", platform=Platform.GOG)]})

        summary = await make_pipeline(db, tmp_path, [broken, crashing, working], now=fixed_now).run_all_scrapers()

        assert [outcome.ok for outcome in summary.outcomes] == [False, False, True]
        assert summary.outcomes[0].failed_sub_scrapes == ["top-picks"]
        assert "RuntimeError" in summary.outcomes[1].error
        assert summary.failed == 2
        assert stored_titles(db) == ["Free", "Old Epic"]

    @pytest.mark.asyncio
    async def test_failed_write_keeps_catalog_and_later_platforms_run(self, db, tmp_path, sample_listing,
                                                                     fixed_now, monkeypatch):
        db.upsert_many([sample_listing("Old Pick", tags={"top-pick"}), sample_listing("Old Free")], now=fixed_now)
        payload = db._payload

        def locked_payload(listing):
            if listing['platform'] is Platform.EPIC:
                raise sqlite3.OperationalError("database is locked")
            return payload(listing)
        monkeypatch.setattr(db, "_payload", locked_payload)

        notifier = StubNotifier()
        epic = StubScraper(Platform.EPIC, {"top-picks": [sample_listing("New Pick", tags={"top-pick"})]},
                           clear_top_picks=True)
        gog = StubScraper(Platform.GOG, {"always-free": [sample_listing("Free", platform=Platform.GOG)]})

        summary = await make_pipeline(db, tmp_path, [epic, gog], notifier=notifier, now=fixed_now).run_all_scrapers()

        assert [outcome.ok for outcome in summary.outcomes] == [False, True]
        assert "OperationalError" in summary.outcomes[0].error
        assert gog.calls == 1
        assert stored_titles(db, Platform.EPIC) == ["Old Free", "Old Pick"]
        assert stored_titles(db, Platform.GOG) == ["Free"]
        assert notifier.announced == []

    @pytest.mark.asyncio
    async def test_failed_sweep_does_not_abort_the_run(self, db, tmp_path, sample_listing, fixed_now, monkeypatch):
        def locked_sweep(now=None):
            raise sqlite3.OperationalError("database is locked")
        monkeypatch.setattr(db, "delete_expired", locked_sweep)
        gog = StubScraper(Platform.GOG, {"always-free": [sample_listing("Free", platform=Platform.GOG)]})

        summary = await make_pipeline(db, tmp_path, [gog], now=fixed_now).run_all_scrapers()

        assert summary.expired_swept == 0
        assert summary.succeeded == 1
        assert stored_titles(db) == ["Free"]


class TestRun:

    @pytest.mark.asyncio
    async def test_expired_rows_are_swept_first(self, db, tmp_path, sample_listing, fixed_now):
        db.upsert_many([sample_listing("Ended", platform=Platform.GOG, available_until="Oct 18, 3:00 PM")], now=fixed_now)

        summary = await make_pipeline(db, tmp_path, [], now=fixed_now).run_all_scrapers()

        assert summary.expired_swept == 1
        assert db.count() == 0

    @pytest.mark.asyncio
    async def test_exports_and_announces_top_picks(self, db, tmp_path, sample_listing, fixed_now):
        notifier = StubNotifier()
        scraper = StubScraper(Platform.EPIC, {
            "top-picks": [sample_listing("Pick", tags={"top-pick", "weekly-free"})],
            "always-free": [sample_listing("Plain", tags={"always-free"})],
        })

        summary = await make_pipeline(db, tmp_path, [scraper], notifier=notifier, now=fixed_now).run_all_scrapers()

        assert [listing['title'] for listing in notifier.announced] == ["Pick"]
        assert summary.announced == 1
        exported = json.loads((tmp_path / "web" / "free_games.json").read_text(encoding="utf-8"))
        assert exported["count"] == 2

    @pytest.mark.asyncio
    async def test_concurrent_trigger_is_ignored(self, db, tmp_path, sample_listing, fixed_now):
        started = asyncio.Event()
        release = asyncio.Event()

        class SlowScraper(StubScraper):
            async def scrape(self):
                started.set()
                await release.wait()
                return await super().scrape()

        scraper = SlowScraper(Platform.GOG, {"always-free": [sample_listing("Free", platform=Platform.GOG)]})
        pipeline = make_pipeline(db, tmp_path, [scraper], now=fixed_now)

        first = asyncio.ensure_future(pipeline.run_all_scrapers())
        await started.wait()
        assert pipeline.is_running
        assert await pipeline.run_all_scrapers() is None

        release.set()
        summary = await first
        assert summary is not None
        assert scraper.calls == 1
        assert not pipeline.is_running

    @pytest.mark.asyncio
    async def test_enricher_memo_lasts_one_run(self, db, tmp_path, sample_listing, fixed_now, monkeypatch):
        enricher = CategoryEnricher(session=None, cache_dir=str(tmp_path / "search"))
        responses = [None, '<div class="result__snippet">Hollow Knight supports Controller Support.</div>']
        calls = []

        async def flaky_fetch(url, params=None, **kwargs):
            calls.append(params['q'])
            return responses[len(calls) - 1]
        monkeypatch.setattr(enricher, "_fetch", flaky_fetch)

        class EnrichingScraper(StubScraper):
            async def scrape(self):
                result = await self.enricher.infer("Hollow Knight", self.platform)
                self.batches = {"always-free": [sample_listing("Hollow Knight", platform=self.platform,
                                                               features=result.features)]}
                return await super().scrape()

        scraper = EnrichingScraper(Platform.GOG)
        scraper.enricher = enricher
        pipeline = make_pipeline(db, tmp_path, [scraper], now=fixed_now)
        assert pipeline.enrichers == [enricher]

        await pipeline.run_all_scrapers()
        assert "Controller Support" not in db.query_all()[0]['features']

        await pipeline.run_all_scrapers()
        assert len(calls) == 2
        assert "Controller Support" in db.query_all()[0]['features']
