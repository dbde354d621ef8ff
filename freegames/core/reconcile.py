# ===== IMPORTS & DEPENDENCIES =====
import logging
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterable, List

from freegames.models.game import GameListing

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)

MERGED_SET_FIELDS = ('tags', 'categories', 'features')


# ===== CORE BUSINESS LOGIC =====
@dataclass
class ReconcileResult:
    listings: List[GameListing]
    tag_counts: Dict[str, int]
    input_count: int = 0

    @property
    def duplicates_merged(self) -> int:
        return self.input_count - len(self.listings)


class MergeAccumulator:
    """
    Deduplicates one platform's listings for a single run. Listings are keyed
    by exact title; on collision the set fields are unioned and every other
    field keeps its first-seen value.
    """

    def __init__(self):
        self._by_title: Dict[str, GameListing] = {}
        self._input_count = 0

    def add(self, listing: GameListing) -> None:
        self._input_count += 1
        title = listing['title']
        existing = self._by_title.get(title)
        if existing is None:
            stored = GameListing(**listing)
            for key in MERGED_SET_FIELDS:
                stored[key] = set(listing.get(key) or ())
            self._by_title[title] = stored
            return

        for key in MERGED_SET_FIELDS:
            existing[key] = existing[key] | set(listing.get(key) or ())
        logger.debug(f"[{self.__class__.__name__}] Merged duplicate '{title}' (tags now: {sorted(existing['tags'])}).")

    def extend(self, listings: Iterable[GameListing]) -> None:
        for listing in listings:
            self.add(listing)

    def listings(self) -> List[GameListing]:
        """Returns the merged listings in first-seen order."""
        return list(self._by_title.values())

    def tag_counts(self) -> Dict[str, int]:
        counts = Counter()
        for listing in self._by_title.values():
            counts.update(listing['tags'])
        return dict(counts)

    def result(self) -> ReconcileResult:
        return ReconcileResult(listings=self.listings(), tag_counts=self.tag_counts(), input_count=self._input_count)


def reconcile(batches: Iterable[Iterable[GameListing]]) -> ReconcileResult:
    """Merges sub-scrape outputs, in the order given, into one deduplicated batch."""
    accumulator = MergeAccumulator()
    for batch in batches:
        accumulator.extend(batch)
    return accumulator.result()


def log_summary(platform: str, result: ReconcileResult, sub_scrape_counts: Dict[str, int]) -> None:
    """Logs the per-platform reconciliation summary."""
    logger.info("=" * 60)
    logger.info(f"{platform.upper()} SCRAPING COMPLETE - SUMMARY")
    for name, count in sub_scrape_counts.items():
        logger.info(f"  {name}: {count} listings")
    logger.info(f"  Total unique listings: {len(result.listings)} ({result.duplicates_merged} merged)")
    for tag, count in sorted(result.tag_counts.items()):
        logger.info(f"  tag '{tag}': {count}")

    all_categories = set()
    all_features = set()
    for listing in result.listings:
        all_categories.update(listing['categories'])
        all_features.update(listing['features'])
    if all_categories:
        preview = ", ".join(sorted(all_categories)[:15])
        logger.info(f"  Categories ({len(all_categories)}): {preview}{'...' if len(all_categories) > 15 else ''}")
    if all_features:
        logger.info(f"  Features ({len(all_features)}): {', '.join(sorted(all_features))}")
    logger.info("=" * 60)
