# ===== IMPORTS & DEPENDENCIES =====
import logging
import re
from typing import List, Optional

from bs4 import BeautifulSoup

from freegames.config import (
    GOG_ALWAYS_FREE_URL, GOG_BASE_URL, GOG_DISCOUNT_SCROLLS, GOG_DISCOUNTED_URL,
    GOG_GIVEAWAY_HEADER, GOG_GIVEAWAY_URL, GOG_HOME_URL, GOG_MAX_DISCOUNT_CARDS,
    GOG_NEXT_PAGE, GOG_PRODUCT_TILE, HIGHLY_DISCOUNTED_THRESHOLD, MAX_ITEMS_PER_SUB_SCRAPE,
    PAGE_SETTLE_S, RENDER_TIMEOUT_S, SHORT_RENDER_TIMEOUT_S
)
from freegames.core.errors import ParseError, RenderTimeoutError, SelectorMismatchError
from freegames.core.extraction import attr_of, extract, own_attr, require, srcset_of, text_of, value_or
from freegames.core.pagination import click_next, paginate
from freegames.models.game import (
    GameListing, Platform, new_listing, discount_tag,
    TAG_ALWAYS_FREE, TAG_DRM_FREE, TAG_GIVEAWAY, TAG_HIGHLY_DISCOUNTED, TAG_LIMITED_TIME, TAG_TOP_PICK
)
from freegames.sources.base import BasePlatformScraper, SubScrapeState
from freegames.utils.date_utils import format_display_date, normalize_countdown
from freegames.utils.price_utils import parse_discount_percent
from freegames.utils.url_utils import absolute_link, clean_link

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)

GIVEAWAY_TAGS = (TAG_TOP_PICK, TAG_GIVEAWAY, TAG_LIMITED_TIME)
DEMO_PATTERN = re.compile(r'\bdemo\b', re.IGNORECASE)


# ===== CORE BUSINESS LOGIC =====
class GOGSource(BasePlatformScraper):
    """Scrapes GOG: the home-page giveaway, always-free catalog and deep discounts."""

    platform = Platform.GOG
    clear_top_picks = True
    full_catalog_refresh = True

    def sub_scrapes(self):
        return [
            ("giveaway", self.scrape_giveaway),
            ("always-free", self.scrape_always_free),
            ("highly-discounted", self.scrape_highly_discounted),
        ]

    # --- Parsing ---

    def parse_giveaway(self, html: str) -> Optional[GameListing]:
        """
        Reads the giveaway banner of the home page. The header reads like
        'Claim Game: <title>'; the countdown becomes the display date it ends.
        Returns None when the page has no giveaway banner.
        """
        soup = BeautifulSoup(html, 'lxml')
        header = value_or(extract(soup, text_of(GOG_GIVEAWAY_HEADER)))
        if not header:
            return None
        title = header.split(":", 1)[1].strip() if ":" in header else header.strip()
        if not title:
            return None

        now = self._clock()
        available_until = ""
        countdown = value_or(extract(soup, text_of('.giveaway__countdown')))
        try:
            available_until = normalize_countdown(countdown, now)
        except ParseError as e:
            logger.warning(f"⚠️ [{self.name}] Could not read giveaway countdown: {e}")

        link = value_or(extract(soup, attr_of('a.giveaway__overlay-link', 'href')), GOG_GIVEAWAY_URL)
        return new_listing(
            title=title,
            link=clean_link(absolute_link(GOG_BASE_URL, link)),
            platform=self.platform,
            price="Free",
            release_date=format_display_date(now),
            available_until=available_until,
            image=value_or(extract(soup, srcset_of('picture.giveaway__image source'), attr_of('picture.giveaway__image img', 'src'))),
            tags=GIVEAWAY_TAGS,
        )

    def parse_giveaway_page(self, html: str) -> Optional[GameListing]:
        """Fallback for the dedicated /giveaway page, which only names the game."""
        soup = BeautifulSoup(html, 'lxml')
        title = value_or(extract(soup, text_of('.giveaway-banner__title'), text_of('h1'), text_of('.header__title')))
        if not title or 'no giveaway' in title.lower():
            return None
        return new_listing(
            title=title,
            link=GOG_GIVEAWAY_URL,
            platform=self.platform,
            price="Free",
            release_date=format_display_date(self._clock()),
            tags=GIVEAWAY_TAGS,
        )

    def parse_product_tiles(self, html: str) -> List[GameListing]:
        """Parses the catalog product tiles on the current page."""
        soup = BeautifulSoup(html, 'lxml')
        listings: List[GameListing] = []

        for index, tile in enumerate(soup.select(GOG_PRODUCT_TILE)):
            try:
                title = require(extract(tile, text_of('[selenium-id="productTileGameTitle"]'), text_of('.product-tile__title')), 'title')
                link = require(extract(tile, own_attr('href')), 'link')
            except SelectorMismatchError as e:
                logger.debug(f"[{self.name}] Skipping product tile {index}: {e}")
                continue

            listings.append(new_listing(
                title=title,
                link=clean_link(absolute_link(GOG_BASE_URL, link)),
                platform=self.platform,
                price=value_or(extract(tile, text_of('.product-tile__price-discounted'), text_of('.final-value')), "Free"),
                original_price=value_or(extract(tile, text_of('.product-tile__price-base'), text_of('.base-value'))),
                discount_percent=parse_discount_percent(value_or(extract(tile, text_of('.product-tile__discount')))),
                image=value_or(extract(tile, srcset_of('source[type="image/webp"]'), srcset_of('source'), attr_of('img', 'src'))),
            ))
        return listings

    # --- Sub-scrapes ---

    async def scrape_giveaway(self, page) -> List[GameListing]:
        """GOG does not always run a giveaway, so an empty result is a normal outcome."""
        self._set_state(SubScrapeState.PAGE_LOADING)
        await page.goto(GOG_HOME_URL)
        self._set_state(SubScrapeState.WAITING_FOR_CONTENT)
        try:
            await page.wait_for(GOG_GIVEAWAY_HEADER, timeout=SHORT_RENDER_TIMEOUT_S)
            self._set_state(SubScrapeState.EXTRACTING)
            listing = self.parse_giveaway(await page.content())
        except RenderTimeoutError:
            logger.info(f"[{self.name}] No active giveaway on the home page, checking {GOG_GIVEAWAY_URL}")
            await page.goto(GOG_GIVEAWAY_URL)
            await page.pause(PAGE_SETTLE_S)
            self._set_state(SubScrapeState.EXTRACTING)
            listing = self.parse_giveaway_page(await page.content())

        if listing is None:
            logger.info(f"[{self.name}] No giveaway found.")
            return []
        logger.info(f"✅ [{self.name}] Found giveaway: {listing['title']}")
        return await self.enrich_all([listing])

    async def scrape_always_free(self, page) -> List[GameListing]:
        self._set_state(SubScrapeState.PAGE_LOADING)
        await page.goto(GOG_ALWAYS_FREE_URL)
        self._set_state(SubScrapeState.WAITING_FOR_CONTENT)
        await page.wait_for(GOG_PRODUCT_TILE, timeout=RENDER_TIMEOUT_S)
        self._set_state(SubScrapeState.PAGINATING)
        listings = await paginate(
            page,
            parse=self.parse_product_tiles,
            key=lambda listing: listing['link'],
            advance=click_next(GOG_NEXT_PAGE),
            max_items=MAX_ITEMS_PER_SUB_SCRAPE,
        )

        free_games = []
        for listing in listings:
            if DEMO_PATTERN.search(listing['title']):
                continue
            listing['price'] = "Free"
            listing['original_price'] = ""
            listing['discount_percent'] = None
            listing['tags'] = {TAG_ALWAYS_FREE, TAG_DRM_FREE}
            free_games.append(listing)
        logger.info(f"[{self.name}] Found {len(free_games)} always-free games (demos skipped).")
        return await self.enrich_all(free_games)

    async def scrape_highly_discounted(self, page, threshold: Optional[int] = None) -> List[GameListing]:
        threshold = HIGHLY_DISCOUNTED_THRESHOLD if threshold is None else threshold
        self._set_state(SubScrapeState.PAGE_LOADING)
        await page.goto(GOG_DISCOUNTED_URL)
        self._set_state(SubScrapeState.WAITING_FOR_CONTENT)
        await page.wait_for(GOG_PRODUCT_TILE, timeout=RENDER_TIMEOUT_S)
        self._set_state(SubScrapeState.PAGINATING)
        for _ in range(GOG_DISCOUNT_SCROLLS):
            await page.scroll_to_bottom()
            await page.pause(PAGE_SETTLE_S)

        self._set_state(SubScrapeState.EXTRACTING)
        tiles = self.parse_product_tiles(await page.content())[:GOG_MAX_DISCOUNT_CARDS]
        logger.info(f"[{self.name}] Found {len(tiles)} discounted games, filtering for {threshold}%+ off...")

        discounted = []
        for listing in tiles:
            percent = listing['discount_percent']
            if percent is None or percent < threshold:
                continue
            listing['tags'] = {TAG_HIGHLY_DISCOUNTED, discount_tag(percent), TAG_DRM_FREE}
            discounted.append(listing)
            logger.info(f"    Found: {listing['title']} (-{percent}%)")
        return await self.enrich_all(discounted)
