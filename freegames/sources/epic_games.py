# ===== IMPORTS & DEPENDENCIES =====
import logging
from typing import List, Optional, Tuple

from bs4 import BeautifulSoup, Tag

from freegames.config import (
    EPIC_ALWAYS_FREE_URL, EPIC_BASE_URL, EPIC_BROWSE_CONTAINER, EPIC_DISCOUNTED_URL,
    EPIC_FREE_GAMES_CONTAINER, EPIC_FREE_GAMES_URL, EPIC_NEXT_PAGE,
    HIGHLY_DISCOUNTED_THRESHOLD, MAX_ITEMS_PER_SUB_SCRAPE, RENDER_TIMEOUT_S
)
from freegames.core.errors import ParseError, SelectorMismatchError
from freegames.core.extraction import attr_of, extract, own_attr, own_text, require, text_of, value_or
from freegames.core.pagination import click_next, paginate
from freegames.models.game import (
    GameListing, Platform, new_listing, discount_tag,
    TAG_ALWAYS_FREE, TAG_COMING_SOON, TAG_HIGHLY_DISCOUNTED, TAG_TOP_PICK, TAG_WEEKLY_FREE
)
from freegames.sources.base import BasePlatformScraper, SubScrapeState
from freegames.utils.date_utils import normalize_iso_date
from freegames.utils.price_utils import find_prices, parse_discount_percent
from freegames.utils.url_utils import absolute_link, clean_link

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)

FREE_CARD_SELECTORS = ["[data-component='FreeOfferCard']", ".css-1p5cyzj-ROOT", "a[href*='/p/'][aria-label]"]
BROWSE_CARD_SELECTORS = ["section[data-testid='offers-grid'] li", "ul.css-cnqlhg li", "li[data-component='BrowseOfferCard']"]


# ===== CORE BUSINESS LOGIC =====
class EpicGamesSource(BasePlatformScraper):
    """Scrapes the Epic Games Store: weekly free games, always-free games and deep discounts."""

    platform = Platform.EPIC
    clear_top_picks = True
    full_catalog_refresh = True

    def sub_scrapes(self):
        return [
            ("top-picks", self.scrape_top_picks),
            ("always-free", self.scrape_always_free),
            ("highly-discounted", self.scrape_highly_discounted),
        ]

    # --- Parsing (pure, HTML in, listings out) ---

    def _select_cards(self, soup: BeautifulSoup, selectors: List[str]) -> List[Tag]:
        for selector in selectors:
            cards = soup.select(selector)
            if cards:
                return cards
        return []

    def _offer_dates(self, card: Tag) -> Tuple[str, str]:
        """Reads the (start, end) dates of a free-games card from its <time> elements."""
        values = []
        for time_tag in card.select('time'):
            stamp = time_tag.get('datetime')
            if stamp:
                try:
                    values.append(normalize_iso_date(stamp))
                    continue
                except ParseError:
                    logger.debug(f"[{self.name}] Bad datetime attribute '{stamp}', using text.")
            values.append(time_tag.get_text(" ", strip=True))
        if len(values) >= 2:
            return values[0], values[1]
        if len(values) == 1:
            return "", values[0]
        return "", ""

    def parse_free_games(self, html: str) -> List[GameListing]:
        """Parses the free-games page into weekly free ('Free Now') and upcoming offers."""
        soup = BeautifulSoup(html, 'lxml')
        listings: List[GameListing] = []

        for index, card in enumerate(self._select_cards(soup, FREE_CARD_SELECTORS)):
            try:
                title = require(extract(card, text_of('h6'), text_of("[data-testid='offer-title-info-title']"), own_attr('aria-label')), 'title')
                href = require(extract(card, own_attr('href'), attr_of('a', 'href')), 'link')
            except SelectorMismatchError as e:
                logger.warning(f"⚠️ [{self.name}] Skipping free-games card {index}: {e}")
                continue

            image = value_or(extract(card, attr_of('img', 'src'), attr_of('img', 'data-image')))
            status = value_or(extract(card, text_of("[data-testid='offer-status']"), text_of('span'), own_text())).lower()
            release_date, available_until = self._offer_dates(card)

            tags = [TAG_TOP_PICK, TAG_WEEKLY_FREE]
            if 'coming soon' in status or 'mystery' in status:
                tags = [TAG_COMING_SOON]

            listings.append(new_listing(
                title=title,
                link=clean_link(absolute_link(EPIC_BASE_URL, href)),
                platform=self.platform,
                price="Free",
                release_date=release_date,
                available_until=available_until,
                image=image,
                tags=tags,
            ))
        return listings

    def parse_browse(self, html: str) -> List[GameListing]:
        """Parses a browse grid page. Prices and discounts are read from the card text."""
        soup = BeautifulSoup(html, 'lxml')
        listings: List[GameListing] = []

        for index, card in enumerate(self._select_cards(soup, BROWSE_CARD_SELECTORS)):
            try:
                href = require(extract(card, attr_of("a[href*='/p/']", 'href'), attr_of('a', 'href')), 'link')
                title = require(extract(
                    card,
                    text_of("[data-testid='offer-title-info-title']"),
                    text_of('.css-rgqwpc'),
                    attr_of('img', 'alt'),
                ), 'title')
            except SelectorMismatchError as e:
                logger.debug(f"[{self.name}] Skipping browse card {index}: {e}")
                continue

            card_text = card.get_text(" ", strip=True)
            prices = find_prices(card_text)
            discount = parse_discount_percent(value_or(extract(card, text_of("[data-testid='offer-discount']"), text_of('.css-b0xoos')), card_text))
            image = value_or(extract(card, attr_of('img', 'src'), attr_of('img', 'data-image')))

            listings.append(new_listing(
                title=title,
                link=clean_link(absolute_link(EPIC_BASE_URL, href)),
                platform=self.platform,
                price=prices[-1] if prices else "Free",
                original_price=prices[0] if len(prices) > 1 else "",
                discount_percent=discount,
                image=image,
            ))
        return listings

    # --- Sub-scrapes ---

    async def scrape_top_picks(self, page) -> List[GameListing]:
        self._set_state(SubScrapeState.PAGE_LOADING)
        await page.goto(EPIC_FREE_GAMES_URL)
        self._set_state(SubScrapeState.WAITING_FOR_CONTENT)
        await page.wait_for(EPIC_FREE_GAMES_CONTAINER, timeout=RENDER_TIMEOUT_S)
        self._set_state(SubScrapeState.EXTRACTING)
        listings = self.parse_free_games(await page.content())
        for listing in listings:
            logger.info(f"    Found: {listing['title']} ({', '.join(sorted(listing['tags']))})")
        return await self.enrich_all(listings)

    async def _scrape_browse(self, page, url: str) -> List[GameListing]:
        self._set_state(SubScrapeState.PAGE_LOADING)
        await page.goto(url)
        self._set_state(SubScrapeState.WAITING_FOR_CONTENT)
        await page.wait_for(EPIC_BROWSE_CONTAINER, timeout=RENDER_TIMEOUT_S)
        self._set_state(SubScrapeState.PAGINATING)
        return await paginate(
            page,
            parse=self.parse_browse,
            key=lambda listing: listing['link'],
            advance=click_next(EPIC_NEXT_PAGE),
            max_items=MAX_ITEMS_PER_SUB_SCRAPE,
        )

    async def scrape_always_free(self, page) -> List[GameListing]:
        listings = await self._scrape_browse(page, EPIC_ALWAYS_FREE_URL)
        free_listings = []
        for listing in listings:
            if listing['discount_percent'] is not None and listing['discount_percent'] < 100:
                continue
            listing['price'] = "Free"
            listing['original_price'] = ""
            listing['tags'] = {TAG_ALWAYS_FREE}
            free_listings.append(listing)
        logger.info(f"[{self.name}] Found {len(free_listings)} always-free games.")
        return await self.enrich_all(free_listings)

    async def scrape_highly_discounted(self, page, threshold: Optional[int] = None) -> List[GameListing]:
        threshold = HIGHLY_DISCOUNTED_THRESHOLD if threshold is None else threshold
        listings = await self._scrape_browse(page, EPIC_DISCOUNTED_URL)
        discounted = []
        for listing in listings:
            percent = listing['discount_percent']
            if percent is None or percent < threshold:
                continue
            listing['tags'] = {TAG_HIGHLY_DISCOUNTED, discount_tag(percent)}
            discounted.append(listing)
            logger.info(f"    Found: {listing['title']} (-{percent}%)")
        logger.info(f"[{self.name}] Found {len(discounted)} games with {threshold}%+ discount.")
        return await self.enrich_all(discounted)
