# ===== IMPORTS & DEPENDENCIES =====
import logging
from typing import Any, Awaitable, Callable, Dict, Hashable, List, Optional, TypeVar

from freegames.config import PAGE_SETTLE_S, PAGINATION_MAX_IDLE, PAGINATION_MAX_PAGES

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)

T = TypeVar("T")
Advance = Callable[[Any], Awaitable[bool]]


# ===== CORE BUSINESS LOGIC =====

def click_next(selector: str, settle: float = PAGE_SETTLE_S) -> Advance:
    """Advance strategy for paged listings: click the 'next' control until it is gone or disabled."""
    async def advance(page) -> bool:
        await page.scroll_to_bottom()
        clicked = await page.click(selector)
        if clicked:
            await page.pause(settle)
        return clicked
    return advance


def scroll_down(settle: float = PAGE_SETTLE_S) -> Advance:
    """Advance strategy for infinite scroll. Always reports a next page; the idle counter ends the loop."""
    async def advance(page) -> bool:
        await page.scroll_to_bottom()
        await page.pause(settle)
        return True
    return advance


async def paginate(
    page,
    parse: Callable[[str], List[T]],
    key: Callable[[T], Hashable],
    advance: Advance,
    max_idle: int = PAGINATION_MAX_IDLE,
    max_pages: int = PAGINATION_MAX_PAGES,
    max_items: Optional[int] = None,
) -> List[T]:
    """
    Collects items across pages. Each round parses the current snapshot and
    keeps unseen items (by `key`). Stops when `advance` reports no next page,
    after `max_idle` consecutive rounds without new items, after `max_pages`
    rounds, or once `max_items` items are collected.
    """
    seen: Dict[Hashable, T] = {}
    idle_rounds = 0

    for page_number in range(1, max_pages + 1):
        items = parse(await page.content())
        new_count = 0
        for item in items:
            item_key = key(item)
            if item_key not in seen:
                seen[item_key] = item
                new_count += 1
        logger.info(f"[paginate] Page {page_number}: {len(items)} items, {new_count} new, {len(seen)} total.")

        if max_items is not None and len(seen) >= max_items:
            logger.info(f"[paginate] Reached item limit of {max_items}.")
            break

        idle_rounds = idle_rounds + 1 if new_count == 0 else 0
        if idle_rounds >= max_idle:
            logger.info(f"[paginate] No new content after {idle_rounds} consecutive attempts. Stopping.")
            break

        if not await advance(page):
            logger.info(f"[paginate] No further pages after page {page_number}.")
            break
    else:
        logger.warning(f"⚠️ [paginate] Stopped at page limit of {max_pages}.")

    results = list(seen.values())
    return results[:max_items] if max_items is not None else results
