"""
Shared fixtures: an in-memory stand-in for the browser page, a browser
session wrapping it, and an enricher that never touches the network.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Dict, List, Optional, Union

import pytest
from bs4 import BeautifulSoup

from freegames.core.errors import RenderTimeoutError
from freegames.enrichment.category_enricher import CategoryResult
from freegames.models.game import Platform, new_listing


class FakePage:
    """
    Serves canned HTML per URL. A URL may map to a list of snapshots; each
    successful click moves to the next snapshot. `wait_for` fails
    like the real page when the selector is absent from the current snapshot.
    """

    def __init__(self, pages: Dict[str, Union[str, List[str]]], child_pages: Optional[Dict[str, str]] = None,
                 failing_urls: Optional[Dict[str, Exception]] = None):
        self.pages = {url: html if isinstance(html, list) else [html] for url, html in pages.items()}
        self.child_pages = child_pages or {}
        self.failing_urls = failing_urls or {}
        self.url: Optional[str] = None
        self.index = 0
        self.visited: List[str] = []
        self.clicks = 0
        self.scrolls = 0
        self.children_opened: List[str] = []
        self.children_closed: List[str] = []

    def _snapshots(self) -> List[str]:
        return self.pages.get(self.url, ["<html><body></body></html>"])

    async def goto(self, url: str) -> None:
        self.visited.append(url)
        if url in self.failing_urls:
            raise self.failing_urls[url]
        self.url = url
        self.index = 0

    async def wait_for(self, selector: str, timeout: float = 30) -> None:
        soup = BeautifulSoup(await self.content(), 'lxml')
        if soup.select_one(selector) is None:
            raise RenderTimeoutError(selector, timeout, self.url)

    async def content(self) -> str:
        snapshots = self._snapshots()
        return snapshots[min(self.index, len(snapshots) - 1)]

    async def scroll_to_bottom(self) -> int:
        self.scrolls += 1
        return 1000 * (self.index + 1)

    async def click(self, selector: str) -> bool:
        self.clicks += 1
        if self.index < len(self._snapshots()) - 1:
            self.index += 1
            return True
        return False

    async def pause(self, seconds: float) -> None:
        return None

    @asynccontextmanager
    async def child_page(self, url: str, settle: float = 0):
        self.children_opened.append(url)
        try:
            if url not in self.child_pages:
                raise RenderTimeoutError('document', 60, url)
            child = FakePage({url: self.child_pages[url]})
            child.url = url
            yield child
        finally:
            self.children_closed.append(url)


class FakeBrowserSession:
    """Async context manager handing out a FakePage; records whether it was closed."""

    def __init__(self, page: FakePage):
        self.page = page
        self.closed = False
        self.entered = False

    async def __aenter__(self):
        self.entered = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.closed = True


class FakeEnricher:
    """Returns fixed categories and counts lookups."""

    def __init__(self, categories=("Action",), features=("Single Player",), fail_for=()):
        self.categories = set(categories)
        self.features = set(features)
        self.fail_for = set(fail_for)
        self.calls: List[tuple] = []
        self.resets = 0

    async def infer(self, title: str, platform: Platform) -> CategoryResult:
        self.calls.append((title, platform))
        if title in self.fail_for:
            raise RuntimeError(f"lookup exploded for {title}")
        return CategoryResult(set(self.categories), set(self.features))

    def reset(self) -> None:
        self.resets += 1


def make_scraper(cls, pages, child_pages=None, failing_urls=None, now=None, **kwargs):
    """Builds a platform scraper wired to a FakePage. Returns (scraper, page, sessions)."""
    page = FakePage(pages, child_pages=child_pages, failing_urls=failing_urls)
    sessions: List[FakeBrowserSession] = []

    def session_factory():
        session = FakeBrowserSession(page)
        sessions.append(session)
        return session

    clock = (lambda: now) if now is not None else datetime.now
    scraper = cls(FakeEnricher(), session_factory=session_factory, clock=clock, **kwargs)
    return scraper, page, sessions


@pytest.fixture
def fake_enricher():
    return FakeEnricher()


@pytest.fixture
def fixed_now():
    return datetime(2026, 10, 19, 9, 0, 0)


@pytest.fixture
def sample_listing():
    def factory(title="Cool Game", platform=Platform.EPIC, link=None, **fields):
        return new_listing(
            title=title,
            link=link or f"https://example.com/{title.lower().replace(' ', '-')}",
            platform=platform,
            **fields
        )
    return factory
