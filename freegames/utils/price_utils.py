# ===== IMPORTS & DEPENDENCIES =====
import re
from typing import List, Optional

# ===== CONFIGURATION & CONSTANTS =====
PRICE_TOKEN = re.compile(r'(?:[$€£]\s?\d[\d.,]*|\d[\d.,]*\s?(?:€|zł|USD|EUR|GBP)|\bFree\b)', re.IGNORECASE)
DISCOUNT_TOKEN = re.compile(r'-?\s?(\d{1,3})\s?%')


# ===== UTILITY FUNCTIONS =====

def parse_discount_percent(text: Optional[str]) -> Optional[int]:
    """Extracts the integer from strings like '-75%' or '75% off'. None when absent."""
    if not text:
        return None
    match = DISCOUNT_TOKEN.search(text)
    if not match:
        return None
    value = int(match.group(1))
    return value if 0 < value <= 100 else None


def find_prices(text: Optional[str]) -> List[str]:
    """Returns the price tokens of a text in reading order (e.g. ['$19.99', '$4.99'])."""
    if not text:
        return []
    return [re.sub(r'\s+', '', token) if token.lower() != 'free' else 'Free' for token in PRICE_TOKEN.findall(text)]


def parse_price_amount(text: Optional[str]) -> Optional[float]:
    """Numeric value of a display price; 'Free' is 0.0, unparseable is None."""
    if not text:
        return None
    if re.search(r'\bfree\b', text, re.IGNORECASE):
        return 0.0
    match = re.search(r'\d+(?:[.,]\d+)*', text)
    if not match:
        return None
    number = match.group(0)
    if ',' in number and '.' in number:
        number = number.replace(',', '')
    elif ',' in number:
        # '4,99' is a decimal comma; '1,299' a thousands separator
        head, _, tail = number.rpartition(',')
        number = f"{head.replace(',', '')}.{tail}" if len(tail) == 2 else number.replace(',', '')
    try:
        return float(number)
    except ValueError:
        return None


def is_free_price(text: Optional[str]) -> bool:
    return parse_price_amount(text) == 0.0
