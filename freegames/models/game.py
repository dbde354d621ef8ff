# ===== TYPES & INTERFACES =====

from enum import Enum
from typing import TypedDict, Iterable, Optional, Set


class Platform(str, Enum):
    """Storefronts tracked by the scrapers. Values are the stored platform names."""
    EPIC = "Epic"
    STEAM = "Steam"
    GOG = "GOG"
    PRIME = "Prime Gaming"

    @classmethod
    def from_slug(cls, slug: str) -> "Platform":
        """Resolves URL-friendly names such as 'epic' or 'prime' to a platform."""
        lowered = slug.strip().lower()
        for platform in cls:
            if lowered in (platform.value.lower(), platform.name.lower()):
                return platform
        raise ValueError(f"Unknown platform: {slug}")


# --- Campaign tags ---
TAG_TOP_PICK = "top-pick"
TAG_WEEKLY_FREE = "weekly-free"
TAG_COMING_SOON = "coming-soon"
TAG_ALWAYS_FREE = "always-free"
TAG_FREE_TO_KEEP = "free-to-keep"
TAG_HIGHLY_DISCOUNTED = "highly-discounted"
TAG_BUDGET = "budget"
TAG_GIVEAWAY = "giveaway"
TAG_LIMITED_TIME = "limited-time"
TAG_DRM_FREE = "drm-free"
TAG_PRIME_EXCLUSIVE = "prime-exclusive"
TAG_IN_GAME_CONTENT = "in-game-content"
TAG_PRIME_LOOT = "prime-loot"
TAG_LUNA = "luna"
TAG_CLOUD_GAMING = "cloud-gaming"
TAG_STREAMING = "streaming"


def discount_tag(percent: int) -> str:
    """Builds the 'N%-off' tag used for discount campaigns."""
    return f"{percent}%-off"


class GameListing(TypedDict, total=False):
    """
    One game entry as observed on a storefront at scrape time.
    `total=False` keeps the shape friendly to progressive enrichment, but
    `new_listing` always fills every key.

    Attributes:
        title (str): Display title; listings with the same title merge within a run.
        link (str): Store URL. Together with `platform` it forms the natural key.
        platform (Platform): The storefront the listing was scraped from.
        price (str): Price as displayed by the store (e.g. 'Free', '$4.99').
        original_price (str): Pre-discount price, only for discount campaigns.
        discount_percent (Optional[int]): Discount size, only for discount campaigns.
        release_date (str): Display-formatted release date.
        available_until (str): Display-formatted end of the offer; empty means no expiry.
        image (str): Cover image URL, empty when it could not be resolved.
        tags (Set[str]): Campaign labels such as 'top-pick' or '90%-off'.
        categories (Set[str]): Inferred genres, advisory only.
        features (Set[str]): Inferred features, advisory only.
    """
    title: str
    link: str
    platform: Platform
    price: str
    original_price: str
    discount_percent: Optional[int]
    release_date: str
    available_until: str
    image: str
    tags: Set[str]
    categories: Set[str]
    features: Set[str]


def new_listing(
    title: str,
    link: str,
    platform: Platform,
    price: str = "Free",
    tags: Iterable[str] = (),
    original_price: str = "",
    discount_percent: Optional[int] = None,
    release_date: str = "",
    available_until: str = "",
    image: str = "",
    categories: Iterable[str] = (),
    features: Iterable[str] = (),
) -> GameListing:
    """Creates a GameListing with every field populated."""
    return GameListing(
        title=title,
        link=link,
        platform=platform,
        price=price,
        original_price=original_price,
        discount_percent=discount_percent,
        release_date=release_date,
        available_until=available_until,
        image=image or "",
        tags=set(tags),
        categories=set(categories),
        features=set(features),
    )


def listing_to_dict(listing: GameListing) -> dict:
    """JSON-friendly copy of a listing: platform as its name, set fields as sorted lists."""
    data = dict(listing)
    data['platform'] = listing['platform'].value
    for key in ('tags', 'categories', 'features'):
        data[key] = sorted(listing.get(key) or ())
    return data
