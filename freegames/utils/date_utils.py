# ===== IMPORTS & DEPENDENCIES =====
import logging
import re
from datetime import datetime, timedelta
from typing import Optional

from freegames.core.errors import ParseError

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)

COUNTDOWN_PATTERN = re.compile(r'(\d+)\s*:\s*(\d+)\s*:\s*(\d+)')
COUNTDOWN_DAYS_PATTERN = re.compile(r'(\d+)\s*(?:days?|d)\b', re.IGNORECASE)

# Year-less dates further back than this are assumed to belong to next year
YEAR_ROLLOVER_DAYS = 180

# Formats tried by parse_display_date, most specific first
_DISPLAY_FORMATS_WITH_YEAR = [
    "%b %d, %Y, %I:%M %p",
    "%b %d, %Y %I:%M %p",
    "%b %d, %Y",
    "%B %d, %Y",
    "%d %b, %Y",
    "%d %B, %Y",
    "%d %b %Y",
    "%m/%d/%Y",
    "%Y-%m-%d",
]
_DISPLAY_FORMATS_NO_YEAR = [
    "%b %d, %I:%M %p",
    "%b %d at %I:%M %p",
    "%B %d at %I:%M %p",
    "%b %d %I:%M %p",
    "%b %d",
    "%B %d",
]


# ===== UTILITY FUNCTIONS =====

def format_display_date(dt: datetime) -> str:
    """Formats a datetime as abbreviated month, day and 12-hour time, without a year (e.g. 'Jan 1, 2:30 AM')."""
    hour = dt.hour % 12 or 12
    return f"{dt.strftime('%b')} {dt.day}, {hour}:{dt.minute:02d} {'AM' if dt.hour < 12 else 'PM'}"


def normalize_countdown(countdown_text: str, now: datetime) -> str:
    """
    Converts a storefront countdown such as 'Ends in 02:30:00' into the display
    string of the moment it runs out. Hours may exceed 24, and an optional
    'N days' prefix is honoured.
    """
    if not countdown_text:
        raise ParseError("Empty countdown text")

    match = COUNTDOWN_PATTERN.search(countdown_text)
    if not match:
        raise ParseError(f"Countdown text has no HH:MM:SS component: '{countdown_text}'")

    hours, minutes, seconds = (int(part) for part in match.groups())
    days = 0
    days_match = COUNTDOWN_DAYS_PATTERN.search(countdown_text[:match.start()])
    if days_match:
        days = int(days_match.group(1))

    target = now + timedelta(days=days, hours=hours, minutes=minutes, seconds=seconds)
    return format_display_date(target)


def _local_naive(parsed: datetime) -> datetime:
    """Converts an offset-aware datetime to naive local time, the frame `datetime.now()` uses."""
    return parsed.astimezone().replace(tzinfo=None) if parsed.tzinfo else parsed


def normalize_iso_date(iso_string: str) -> str:
    """Parses an ISO-8601 timestamp ('Z' suffix allowed) and formats it for display in local time."""
    if not iso_string or not iso_string.strip():
        raise ParseError("Empty ISO date")
    try:
        parsed = datetime.fromisoformat(iso_string.strip().replace('Z', '+00:00'))
    except ValueError as e:
        raise ParseError(f"Malformed ISO date '{iso_string}': {e}") from e
    return format_display_date(_local_naive(parsed))


def parse_display_date(text: Optional[str], now: datetime) -> Optional[datetime]:
    """
    Best-effort inverse of format_display_date that also understands the raw
    formats storefronts print. Returns None when nothing matches, which callers
    treat as 'no date'. The result is naive, in the same frame as `now`.
    """
    if not text:
        return None

    cleaned = re.sub(r'\s+', ' ', text).strip()
    cleaned = re.sub(r'^(free now|free|ends|until|available until|release date)\s*[-:]?\s*', '', cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r'(\d)(st|nd|rd|th)\b', r'\1', cleaned)
    if not cleaned:
        return None

    try:
        parsed = datetime.fromisoformat(cleaned.replace('Z', '+00:00'))
        return _local_naive(parsed)
    except ValueError:
        pass

    for fmt in _DISPLAY_FORMATS_WITH_YEAR:
        try:
            return datetime.strptime(cleaned, fmt)
        except ValueError:
            continue

    reference = now.replace(tzinfo=None)
    for fmt in _DISPLAY_FORMATS_NO_YEAR:
        try:
            # Feb 29 needs a leap year to parse at all
            parsed = datetime.strptime(f"{reference.year} {cleaned}", f"%Y {fmt}")
        except ValueError:
            continue
        if parsed < reference - timedelta(days=YEAR_ROLLOVER_DAYS):
            try:
                parsed = parsed.replace(year=parsed.year + 1)
            except ValueError:
                return None
        return parsed

    logger.debug(f"[parse_display_date] Unrecognised date text: '{text}'")
    return None
