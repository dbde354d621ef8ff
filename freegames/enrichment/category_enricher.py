# ===== IMPORTS & DEPENDENCIES =====
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Dict, List, Set, Tuple

import aiohttp
from bs4 import BeautifulSoup

from freegames.core.base_client import BaseWebClient
from freegames.core.errors import EnrichmentFailure
from freegames.config import (
    CACHE_DIR, DEFAULT_FEATURES, FEATURE_KEYWORDS, GENRE_KEYWORDS, MULTIPLAYER_GENRES,
    SEARCH_CACHE_TTL, SEARCH_ENGINE_URL, SEARCH_PANEL_SELECTORS, SEARCH_QUERY_TEMPLATE,
    SEARCH_RESULT_LIMIT, SEARCH_SNIPPET_SELECTORS, SINGLE_PLAYER_GENRES, TITLE_GENRE_GAZETTEER
)
from freegames.models.game import Platform
from freegames.utils.title_utils import clean_title_for_search

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)


@dataclass
class CategoryResult:
    categories: Set[str] = field(default_factory=set)
    features: Set[str] = field(default_factory=set)


# ===== CORE BUSINESS LOGIC =====

def genre_patterns(title: str, genre: str) -> List[re.Pattern]:
    """Patterns that tie `genre` to `title` (or to 'the game') within search text."""
    t, g = re.escape(title), re.escape(genre)
    return [
        re.compile(rf"{t}.*?{g}", re.IGNORECASE),
        re.compile(rf"{g}.*?{t}", re.IGNORECASE),
        re.compile(rf"is an?\s+{g}", re.IGNORECASE),
        re.compile(rf"{g}\s+(video\s+)?game", re.IGNORECASE),
        re.compile(rf"Genres?:\s*.*?{g}", re.IGNORECASE),
        re.compile(rf"Types?:\s*.*?{g}", re.IGNORECASE),
    ]


def match_genres(title: str, text: str) -> Set[str]:
    """Finds known genre keywords mentioned in qualifying proximity to the title."""
    found = set()
    if not text:
        return found
    for genre in GENRE_KEYWORDS:
        if any(pattern.search(text) for pattern in genre_patterns(title, genre)):
            found.add(genre)
    return found


def match_features(text: str) -> Set[str]:
    """Finds feature keywords in search text, normalizing dashes to spaces."""
    return {
        re.sub(r'[-\s]+', ' ', feature).strip()
        for feature in FEATURE_KEYWORDS
        if feature in text
    }


def lookup_gazetteer(title: str) -> List[str]:
    """Static fallback: first gazetteer entry whose key and the title contain one another."""
    lowered = title.lower().strip()
    if not lowered:
        return []
    for fragment, genres in TITLE_GENRE_GAZETTEER.items():
        if fragment in lowered or lowered in fragment:
            return list(genres)
    return []


def default_features(platform: Platform, categories: Set[str]) -> Set[str]:
    """Baseline features for a platform, plus play modes implied by the categories."""
    features = set(DEFAULT_FEATURES.get(platform.value, ['Cloud Saves']))
    if categories & SINGLE_PLAYER_GENRES:
        features.add('Single Player')
    if categories & MULTIPLAYER_GENRES.get(platform.value, set()):
        features.add('Multiplayer')
    return features


class CategoryEnricher(BaseWebClient):
    """
    Infers genre and feature tags for a title. Tries a web search first, then
    the static gazetteer, then platform defaults. Results are advisory and the
    lookup never raises; each title is looked up at most once between calls
    to `reset`, which the pipeline makes at the start of every run.
    """

    def __init__(self, session: aiohttp.ClientSession, cache_ttl: int = SEARCH_CACHE_TTL,
                 search_url: str = SEARCH_ENGINE_URL, cache_dir: str = os.path.join(CACHE_DIR, "search")):
        super().__init__(
            cache_dir=cache_dir,
            cache_ttl=cache_ttl,
            session=session
        )
        self.search_url = search_url
        self._memo: Dict[Tuple[str, Platform], CategoryResult] = {}

    def reset(self) -> None:
        """Forgets every memoized lookup. The on-disk search cache is left alone."""
        if self._memo:
            logger.debug(f"[{self.__class__.__name__}] Clearing {len(self._memo)} memoized lookups.")
        self._memo.clear()

    def _extract_search_text(self, html: str) -> str:
        """Joins the text of the top result snippets and any knowledge panel."""
        soup = BeautifulSoup(html, 'lxml')
        snippets = []
        for selector in SEARCH_SNIPPET_SELECTORS:
            snippets = soup.select(selector)
            if snippets:
                break
        parts = [snippet.get_text(" ", strip=True) for snippet in snippets[:SEARCH_RESULT_LIMIT]]

        for selector in SEARCH_PANEL_SELECTORS:
            panel = soup.select_one(selector)
            if panel:
                parts.append(panel.get_text(" ", strip=True))
                break
        return " ".join(parts)

    async def _search(self, title: str, platform: Platform) -> str:
        query = SEARCH_QUERY_TEMPLATE.format(title=clean_title_for_search(title), platform=platform.value.lower())
        html = await self._fetch(self.search_url, params={'q': query})
        if html is None:
            raise EnrichmentFailure(f"Search request failed for '{title}'")
        return self._extract_search_text(html)

    async def infer(self, title: str, platform: Platform) -> CategoryResult:
        """Returns inferred categories and features for `title`."""
        memo_key = (title, platform)
        if memo_key in self._memo:
            cached = self._memo[memo_key]
            return CategoryResult(set(cached.categories), set(cached.features))

        result = CategoryResult()
        try:
            text = await self._search(title, platform)
            result.categories = match_genres(clean_title_for_search(title), text)
            result.features = match_features(text)
            if result.categories:
                logger.info(f"✅ [{self.__class__.__name__}] Found genres for '{title}' via search: {sorted(result.categories)}")
        except EnrichmentFailure as e:
            logger.warning(f"⚠️ [{self.__class__.__name__}] {e}. Falling back to static data.")
        except aiohttp.ClientError as e:
            logger.warning(f"⚠️ [{self.__class__.__name__}] Search error for '{title}': {e}. Falling back to static data.")

        if not result.categories:
            gazetteer_genres = lookup_gazetteer(title)
            if gazetteer_genres:
                result.categories = set(gazetteer_genres)
                logger.info(f"[{self.__class__.__name__}] Using gazetteer genres for '{title}': {gazetteer_genres}")
            else:
                logger.debug(f"[{self.__class__.__name__}] No genres found for '{title}'.")

        if not result.features:
            result.features = default_features(platform, result.categories)

        self._memo[memo_key] = result
        return CategoryResult(set(result.categories), set(result.features))
