"""
Field extraction over rendered HTML snapshots.

Each field is read with an ordered cascade of independent strategies. A
strategy returns the value or None; exceptions count as a miss. The cascade
yields ``Found(value)`` or ``MISSING`` so callers apply one placeholder policy
instead of nesting try/except blocks per field.
"""
# ===== IMPORTS & DEPENDENCIES =====
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

from bs4 import Tag

from freegames.core.errors import SelectorMismatchError

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)


# ===== TYPES & INTERFACES =====
class _Missing:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()


@dataclass(frozen=True)
class Found:
    value: str


FieldResult = Union[Found, _Missing]
Strategy = Callable[[Tag], Optional[str]]


# ===== STRATEGIES =====

def text_of(selector: str) -> Strategy:
    """Reads the stripped text of the first element matching `selector`."""
    def strategy(root: Tag) -> Optional[str]:
        element = root.select_one(selector)
        return element.get_text(" ", strip=True) if element else None
    return strategy


def attr_of(selector: str, attribute: str) -> Strategy:
    """Reads an attribute of the first element matching `selector`."""
    def strategy(root: Tag) -> Optional[str]:
        element = root.select_one(selector)
        return element.get(attribute) if element else None
    return strategy


def own_attr(attribute: str) -> Strategy:
    """Reads an attribute of the root element itself."""
    def strategy(root: Tag) -> Optional[str]:
        return root.get(attribute)
    return strategy


def own_text() -> Strategy:
    def strategy(root: Tag) -> Optional[str]:
        return root.get_text(" ", strip=True)
    return strategy


def first_srcset_url(srcset: Optional[str]) -> Optional[str]:
    """Returns the first URL of a srcset attribute, dropping its size descriptor."""
    if not srcset:
        return None
    first = srcset.split(",")[0].strip()
    return first.split(" ")[0] if first else None


def srcset_of(selector: str) -> Strategy:
    """Reads the first candidate URL from the srcset of the first matching element."""
    def strategy(root: Tag) -> Optional[str]:
        for element in root.select(selector):
            url = first_srcset_url(element.get("srcset"))
            if url:
                return url
        return None
    return strategy


# ===== COMBINATORS =====

def first_of(*strategies: Strategy) -> Strategy:
    """Combines strategies into one that returns the first non-empty value."""
    def strategy(root: Tag) -> Optional[str]:
        result = extract(root, *strategies)
        return result.value if isinstance(result, Found) else None
    return strategy


def extract(root: Optional[Tag], *strategies: Strategy) -> FieldResult:
    """Runs the cascade against `root` and wraps the first non-empty value."""
    if root is None:
        return MISSING
    for strategy in strategies:
        try:
            value = strategy(root)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.debug(f"[extract] Strategy failed with {type(e).__name__}: {e}")
            continue
        if isinstance(value, list):
            value = " ".join(value)
        if value is not None and str(value).strip():
            return Found(str(value).strip())
    return MISSING


def value_or(result: FieldResult, placeholder: str = "") -> str:
    """Unwraps a result, substituting `placeholder` for a missing field."""
    return result.value if isinstance(result, Found) else placeholder


def require(result: FieldResult, field: str) -> str:
    """Unwraps a required field, raising SelectorMismatchError when it is missing."""
    if isinstance(result, Found):
        return result.value
    raise SelectorMismatchError(field)


def map_result(result: FieldResult, func: Callable[[str], Optional[str]]) -> FieldResult:
    """Applies `func` to a found value; a None or empty output becomes MISSING."""
    if not isinstance(result, Found):
        return MISSING
    mapped = func(result.value)
    return Found(mapped) if mapped else MISSING
