# ===== IMPORTS & DEPENDENCIES =====
import logging
import re

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)

EDITION_PATTERNS = [
    r'game of the year edition', r'goty edition', r'deluxe edition', r'definitive edition',
    r'complete edition', r'ultimate edition', r'gold edition', r'standard edition',
    r"director's cut", r'enhanced edition', r'remastered'
]


# ===== UTILITY FUNCTIONS =====

def clean_title_for_search(raw_title: str) -> str:
    """
    Cleans a storefront title for use in a search query: trademark symbols,
    bracketed platform tags, edition suffixes and our own content suffixes
    are removed. Falls back to the raw title if cleaning empties it.
    """
    if not raw_title:
        return ""

    cleaned = re.sub(r'[™®©]', '', raw_title)
    cleaned = re.sub(r'\s*-\s*In-Game Content$', '', cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r'\[\s*(steam|epic\s*games?|gog|prime(\s*gaming)?|pc|windows|mac|linux|drm-?free)\s*\]', '', cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r'\(\s*(pc|windows|mac|linux|free)\s*\)', '', cleaned, flags=re.IGNORECASE)
    for pattern in EDITION_PATTERNS:
        cleaned = re.sub(r'[\s:–-]*\b' + pattern + r'\b', '', cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r'\s+', ' ', cleaned).strip(' -:–')

    if not cleaned:
        return raw_title.strip()
    if cleaned != raw_title:
        logger.debug(f"[clean_title_for_search] '{raw_title}' -> '{cleaned}'")
    return cleaned
