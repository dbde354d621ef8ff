# ===== IMPORTS & DEPENDENCIES =====
import logging
from typing import List, Optional

from bs4 import BeautifulSoup, Tag

from freegames.config import (
    PRIME_BASE_URL, PRIME_CARD_SELECTOR, PRIME_HOME_URL, PRIME_INCLUDE_IN_GAME_CONTENT,
    PRIME_INCLUDE_LUNA, PRIME_INITIAL_SETTLE_S, PRIME_LUNA_URL, PAGE_SETTLE_S, RENDER_TIMEOUT_S
)
from freegames.core.errors import SelectorMismatchError
from freegames.core.extraction import attr_of, extract, own_attr, require, text_of, value_or
from freegames.models.game import (
    GameListing, Platform, new_listing,
    TAG_CLOUD_GAMING, TAG_IN_GAME_CONTENT, TAG_LIMITED_TIME, TAG_LUNA, TAG_PRIME_EXCLUSIVE,
    TAG_PRIME_LOOT, TAG_STREAMING
)
from freegames.sources.base import BasePlatformScraper, SubScrapeState
from freegames.utils.url_utils import absolute_link, clean_link, slugify

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)

FREE_GAME = "free-game"
IN_GAME_CONTENT = "in-game-content"

FREE_LABEL_MARKERS = ('free game', 'free with prime', 'included with prime')
CONTENT_LABEL_MARKERS = ('in-game', 'loot', 'content')
FREE_TEXT_MARKERS = ('get game', 'play with prime', 'claim game')
CONTENT_TEXT_MARKERS = ('get in-game content', 'claim loot')
TIMER_SELECTOR = "[class*='countdown'], [class*='timer'], [class*='expire'], [class*='ends']"
LUNA_CARD_SELECTOR = "[class*='game-card'], [class*='GameCard']"
IN_GAME_SUFFIX = " - In-Game Content"


def classify_card(card: Tag) -> str:
    """
    Decides whether a Prime Gaming card offers a full game or in-game content.
    Labels are checked first, then the card text, then the claim button. The
    home page only lists claimable items, so an undecided card counts as a game.
    """
    kind = None
    for label in card.select("p, span, [class*='label'], [class*='tag']"):
        combined = f"{label.get_text(' ', strip=True)} {label.get('title') or ''}".lower()
        if not combined.strip():
            continue
        if any(marker in combined for marker in FREE_LABEL_MARKERS):
            return FREE_GAME
        if any(marker in combined for marker in CONTENT_LABEL_MARKERS):
            kind = IN_GAME_CONTENT
    if kind:
        return kind

    card_text = card.get_text(" ", strip=True).lower()
    if any(marker in card_text for marker in FREE_TEXT_MARKERS):
        return FREE_GAME
    if any(marker in card_text for marker in CONTENT_TEXT_MARKERS):
        return IN_GAME_CONTENT

    button = card.select_one("[class*='claim'], button")
    if button is not None:
        button_text = button.get_text(" ", strip=True).lower()
        if 'claim' in button_text or 'get' in button_text:
            return FREE_GAME

    return FREE_GAME


def card_image(card: Tag) -> str:
    """First real image of a card, skipping lazy-load placeholders."""
    for img in card.select("img"):
        src = img.get("src") or ""
        if src and 'placeholder' not in src and 'blank' not in src:
            return src
    return ""


# ===== CORE BUSINESS LOGIC =====
class PrimeGamingSource(BasePlatformScraper):
    """
    Scrapes Prime Gaming. Free games are always collected; in-game content
    and Luna cloud titles are opt-in because they are not full games or need
    another subscription.
    """

    platform = Platform.PRIME
    clear_top_picks = False
    full_catalog_refresh = True

    def __init__(self, *args, include_in_game_content: Optional[bool] = None,
                 include_luna: Optional[bool] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.include_in_game_content = PRIME_INCLUDE_IN_GAME_CONTENT if include_in_game_content is None else include_in_game_content
        self.include_luna = PRIME_INCLUDE_LUNA if include_luna is None else include_luna

    def sub_scrapes(self):
        plan = [("free-games", self.scrape_free_games)]
        if self.include_in_game_content:
            plan.append(("in-game-content", self.scrape_in_game_content))
        if self.include_luna:
            plan.append(("luna", self.scrape_luna))
        return plan

    # --- Parsing ---

    def _card_title_and_link(self, card: Tag):
        title = require(extract(card, text_of('h3'), text_of('.item-card__title'), text_of("[class*='title']")), 'title')
        href = value_or(extract(card, own_attr('href'), attr_of('a', 'href')))
        if not href and card.parent is not None and card.parent.name == 'a':
            href = card.parent.get('href') or ""
        link = clean_link(absolute_link(PRIME_BASE_URL, href)) if href else f"{PRIME_HOME_URL}#{slugify(title)}"
        return title, link

    def parse_home_cards(self, html: str, kind: str) -> List[GameListing]:
        """Parses the home page cards of the given kind (free games or in-game content)."""
        soup = BeautifulSoup(html, 'lxml')
        listings: List[GameListing] = []

        cards = soup.select(PRIME_CARD_SELECTOR)
        for index, card in enumerate(cards):
            try:
                title, link = self._card_title_and_link(card)
            except SelectorMismatchError as e:
                logger.debug(f"[{self.name}] Card {index}: {e}")
                continue
            if classify_card(card) != kind:
                continue

            if kind == FREE_GAME:
                tags = [TAG_PRIME_EXCLUSIVE]
                if card.select_one(TIMER_SELECTOR) is not None:
                    tags.append(TAG_LIMITED_TIME)
                listings.append(new_listing(
                    title=title,
                    link=link,
                    platform=self.platform,
                    price="Free with Prime",
                    image=card_image(card),
                    tags=tags,
                ))
            else:
                listings.append(new_listing(
                    title=f"{title}{IN_GAME_SUFFIX}",
                    link=link,
                    platform=self.platform,
                    price="Free",
                    image=card_image(card),
                    tags=[TAG_IN_GAME_CONTENT, TAG_PRIME_LOOT],
                    categories=["DLC"],
                    features=["Prime Exclusive"],
                ))
        logger.info(f"[{self.name}] Found {len(listings)} {kind} items out of {len(cards)} cards")
        return listings

    def parse_luna(self, html: str) -> List[GameListing]:
        soup = BeautifulSoup(html, 'lxml')
        listings: List[GameListing] = []
        for card in soup.select(LUNA_CARD_SELECTOR):
            title = value_or(extract(card, text_of('h2'), text_of('h3'), text_of("[class*='title']")))
            if not title:
                continue
            href = value_or(extract(card, own_attr('href'), attr_of('a', 'href')))
            link = clean_link(absolute_link(PRIME_LUNA_URL, href)) if href else f"{PRIME_LUNA_URL}#{slugify(title)}"
            listings.append(new_listing(
                title=title,
                link=link,
                platform=self.platform,
                price="Free with Luna+",
                image=card_image(card),
                tags=[TAG_LUNA, TAG_CLOUD_GAMING, TAG_STREAMING],
            ))
        return listings

    # --- Sub-scrapes ---

    async def _load_home(self, page) -> str:
        self._set_state(SubScrapeState.PAGE_LOADING)
        await page.goto(PRIME_HOME_URL)
        await page.pause(PRIME_INITIAL_SETTLE_S)
        self._set_state(SubScrapeState.WAITING_FOR_CONTENT)
        await page.wait_for(PRIME_CARD_SELECTOR, timeout=RENDER_TIMEOUT_S)
        self._set_state(SubScrapeState.EXTRACTING)
        return await page.content()

    async def scrape_free_games(self, page) -> List[GameListing]:
        listings = self.parse_home_cards(await self._load_home(page), FREE_GAME)
        for listing in listings:
            suffix = ' (Limited Time)' if TAG_LIMITED_TIME in listing['tags'] else ''
            logger.info(f"    Found: {listing['title']}{suffix}")
        return await self.enrich_all(listings)

    async def scrape_in_game_content(self, page) -> List[GameListing]:
        # Loot carries fixed categories; search enrichment would only describe the base game
        return self.parse_home_cards(await self._load_home(page), IN_GAME_CONTENT)

    async def scrape_luna(self, page) -> List[GameListing]:
        self._set_state(SubScrapeState.PAGE_LOADING)
        await page.goto(PRIME_LUNA_URL)
        await page.pause(PAGE_SETTLE_S)
        self._set_state(SubScrapeState.EXTRACTING)
        listings = self.parse_luna(await page.content())
        if not listings:
            logger.info(f"[{self.name}] No Luna games found or Luna not available in region.")
            return []
        listings = await self.enrich_all(listings)
        for listing in listings:
            listing['features'] |= {"Cloud Gaming", "Instant Play"}
        return listings
