"""Tests for bounded pagination."""

import pytest

from freegames.core.pagination import click_next, paginate, scroll_down


def page_of(*titles):
    return ",".join(titles)


def parse_titles(html):
    return [title for title in html.split(",") if title]


class StubPage:
    """Serves a fixed sequence of snapshots; advancing past the end repeats the last one."""

    def __init__(self, snapshots, next_button=True):
        self.snapshots = snapshots
        self.index = 0
        self.next_button = next_button
        self.advances = 0

    async def content(self):
        return self.snapshots[min(self.index, len(self.snapshots) - 1)]

    async def scroll_to_bottom(self):
        self.index += 1
        return self.index

    async def click(self, selector):
        self.advances += 1
        if not self.next_button:
            return False
        self.index += 1
        return True

    async def pause(self, seconds):
        return None


class TestPaginate:

    @pytest.mark.asyncio
    async def test_next_button_that_never_disables_stops_after_idle_rounds(self):
        # New items only on the first three pages; afterwards the same page keeps coming back
        page = StubPage([page_of("a"), page_of("a", "b"), page_of("a", "b", "c")])
        items = await paginate(page, parse_titles, key=lambda item: item, advance=click_next(".next"),
                               max_idle=3, max_pages=50)

        assert items == ["a", "b", "c"]
        # Three productive rounds plus three idle ones
        assert page.advances == 5

    @pytest.mark.asyncio
    async def test_stops_when_no_next_page(self):
        page = StubPage([page_of("a", "b")], next_button=False)
        items = await paginate(page, parse_titles, key=lambda item: item, advance=click_next(".next"))
        assert items == ["a", "b"]
        assert page.advances == 1

    @pytest.mark.asyncio
    async def test_infinite_scroll_ends_on_idle_counter(self):
        page = StubPage([page_of("a"), page_of("a", "b")])
        items = await paginate(page, parse_titles, key=lambda item: item, advance=scroll_down(settle=0), max_idle=2)
        assert items == ["a", "b"]

    @pytest.mark.asyncio
    async def test_page_limit(self):
        snapshots = [page_of(*[str(n) for n in range(i + 1)]) for i in range(100)]
        page = StubPage(snapshots)
        items = await paginate(page, parse_titles, key=lambda item: item, advance=click_next(".next"), max_pages=4)
        assert items == ["0", "1", "2", "3"]

    @pytest.mark.asyncio
    async def test_item_limit_truncates(self):
        page = StubPage([page_of("a", "b", "c"), page_of("a", "b", "c", "d", "e")])
        items = await paginate(page, parse_titles, key=lambda item: item, advance=click_next(".next"), max_items=4)
        assert items == ["a", "b", "c", "d"]

    @pytest.mark.asyncio
    async def test_deduplicates_by_key_keeping_first(self):
        page = StubPage([page_of("a1", "b1"), page_of("a2", "c1")])
        items = await paginate(page, parse_titles, key=lambda item: item[0], advance=click_next(".next"), max_idle=1)
        assert items == ["a1", "b1", "c1"]
