# ===== IMPORTS & DEPENDENCIES =====
import logging
from typing import List, Optional

from bs4 import BeautifulSoup

from freegames.config import (
    HIGHLY_DISCOUNTED_THRESHOLD, MAX_ITEMS_PER_SUB_SCRAPE, RENDER_TIMEOUT_S,
    STEAM_BASE_URL, STEAM_BUDGET_MAX_PRICE, STEAM_BUDGET_URL, STEAM_DISCOUNTED_URL, STEAM_FREE_TO_KEEP_URL,
    STEAM_RESULTS_CONTAINER
)
from freegames.core.errors import SelectorMismatchError
from freegames.core.extraction import (
    attr_of, extract, first_of, map_result, own_attr, require, srcset_of, text_of, value_or
)
from freegames.core.pagination import paginate, scroll_down
from freegames.models.game import (
    GameListing, Platform, new_listing, discount_tag,
    TAG_BUDGET, TAG_FREE_TO_KEEP, TAG_HIGHLY_DISCOUNTED, TAG_TOP_PICK
)
from freegames.sources.base import BasePlatformScraper, SubScrapeState
from freegames.utils.price_utils import find_prices, is_free_price, parse_discount_percent, parse_price_amount
from freegames.utils.url_utils import absolute_link, clean_link

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)

ROW_SELECTOR = "a.search_result_row"
# Capsule art: plain src on the first screen, srcset only on lazily rendered rows
CAPSULE_IMAGE = first_of(attr_of('.search_capsule img', 'src'), srcset_of('.search_capsule img'))
IMAGE_NOT_FOUND = ""


# ===== CORE BUSINESS LOGIC =====
class SteamSource(BasePlatformScraper):
    """
    Scrapes Steam search results: free-to-keep promotions, deep discounts
    and budget specials. Search pages use infinite scroll.
    """

    platform = Platform.STEAM
    clear_top_picks = False
    full_catalog_refresh = True

    def sub_scrapes(self):
        return [
            ("free-to-keep", self.scrape_free_to_keep),
            ("highly-discounted", self.scrape_highly_discounted),
            ("budget", self.scrape_budget),
        ]

    # --- Parsing ---

    def parse_search_results(self, html: str) -> List[GameListing]:
        """Parses every search result row currently rendered on the page."""
        soup = BeautifulSoup(html, 'lxml')
        listings: List[GameListing] = []

        for index, row in enumerate(soup.select(ROW_SELECTOR)):
            try:
                title = require(extract(row, text_of('span.title'), text_of('.title')), 'title')
                link = require(map_result(
                    extract(row, own_attr('href'), attr_of('a', 'href')),
                    lambda href: clean_link(absolute_link(STEAM_BASE_URL, href)),
                ), 'link')
            except SelectorMismatchError as e:
                logger.debug(f"[{self.name}] Skipping search row {index}: {e}")
                continue

            price_block_text = value_or(extract(row, text_of('.search_price_discount_combined'), text_of('.search_price')))
            final_price = value_or(extract(row, text_of('.discount_final_price')))
            original_price = value_or(extract(row, text_of('.discount_original_price')))
            if not final_price:
                prices = find_prices(price_block_text)
                final_price = prices[-1] if prices else ""
                if not original_price and len(prices) > 1:
                    original_price = prices[0]

            discount = parse_discount_percent(value_or(extract(
                row,
                text_of('.discount_pct'),
                attr_of('.search_price_discount_combined', 'data-discount'),
                attr_of('.search_discount_block', 'data-discount'),
            )))
            if discount is None and '%' in price_block_text:
                discount = parse_discount_percent(price_block_text)

            listings.append(new_listing(
                title=title,
                link=link,
                platform=self.platform,
                price=final_price or "Free",
                original_price=original_price,
                discount_percent=discount,
                release_date=value_or(extract(row, text_of('.search_released'))),
                image=value_or(extract(row, CAPSULE_IMAGE), IMAGE_NOT_FOUND),
            ))
        return listings

    def parse_store_page_image(self, html: str) -> str:
        """Reads the header image of an app's store page."""
        soup = BeautifulSoup(html, 'lxml')
        return value_or(extract(
            soup,
            attr_of('img.game_header_image_full', 'src'),
            attr_of('.img_ctn img', 'src'),
            attr_of("meta[property='og:image']", 'content'),
        ), IMAGE_NOT_FOUND)

    # --- Sub-scrapes ---

    async def _scrape_search(self, page, url: str) -> List[GameListing]:
        self._set_state(SubScrapeState.PAGE_LOADING)
        await page.goto(url)
        self._set_state(SubScrapeState.WAITING_FOR_CONTENT)
        await page.wait_for(STEAM_RESULTS_CONTAINER, timeout=RENDER_TIMEOUT_S)
        self._set_state(SubScrapeState.PAGINATING)
        return await paginate(
            page,
            parse=self.parse_search_results,
            key=lambda listing: listing['link'],
            advance=scroll_down(),
            max_items=MAX_ITEMS_PER_SUB_SCRAPE,
        )

    async def _fill_missing_images(self, page, listings: List[GameListing]) -> None:
        """Visits the store page of each listing without an image; failures keep the placeholder."""
        for listing in listings:
            if listing['image']:
                continue
            try:
                async with page.child_page(listing['link']) as detail:
                    listing['image'] = self.parse_store_page_image(await detail.content())
            except Exception as e:
                logger.warning(f"⚠️ [{self.name}] Image not found for {listing['title']}: {e}")

    async def scrape_free_to_keep(self, page) -> List[GameListing]:
        listings = await self._scrape_search(page, STEAM_FREE_TO_KEEP_URL)
        free_games = []
        for listing in listings:
            if listing['discount_percent'] != 100 and not (listing['original_price'] and is_free_price(listing['price'])):
                continue
            listing['price'] = "Free"
            listing['tags'] = {TAG_TOP_PICK, TAG_FREE_TO_KEEP}
            free_games.append(listing)
            logger.info(f"Found a top-pick steam game: {listing['title']}")
        await self._fill_missing_images(page, free_games)
        return await self.enrich_all(free_games)

    async def scrape_highly_discounted(self, page, threshold: Optional[int] = None) -> List[GameListing]:
        threshold = HIGHLY_DISCOUNTED_THRESHOLD if threshold is None else threshold
        listings = await self._scrape_search(page, STEAM_DISCOUNTED_URL)
        discounted = []
        for listing in listings:
            percent = listing['discount_percent']
            if percent is None or percent < threshold or percent >= 100:
                continue
            listing['tags'] = {TAG_HIGHLY_DISCOUNTED, discount_tag(percent)}
            discounted.append(listing)
        logger.info(f"[{self.name}] Found {len(discounted)} games with {threshold}%+ discount.")
        await self._fill_missing_images(page, discounted)
        return await self.enrich_all(discounted)

    async def scrape_budget(self, page) -> List[GameListing]:
        listings = await self._scrape_search(page, STEAM_BUDGET_URL)
        budget = []
        for listing in listings:
            amount = parse_price_amount(listing['price'])
            if amount is None or amount <= 0 or amount > STEAM_BUDGET_MAX_PRICE:
                continue
            listing['tags'] = {TAG_BUDGET}
            if listing['discount_percent']:
                listing['tags'].add(discount_tag(listing['discount_percent']))
            budget.append(listing)
        logger.info(f"[{self.name}] Found {len(budget)} budget games under ${STEAM_BUDGET_MAX_PRICE:.0f}.")
        await self._fill_missing_images(page, budget)
        return await self.enrich_all(budget)
