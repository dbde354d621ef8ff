# ===== IMPORTS & DEPENDENCIES =====
import logging
import re
from urllib.parse import urljoin, urlparse, urlunparse, parse_qs, urlencode

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)

TRACKING_PARAMS = [
    'utm_source', 'utm_medium', 'utm_campaign', 'utm_term', 'utm_content',
    'ref', 'source', 'mc_cid', 'mc_eid', 'snr', 'curator_clanid'
]


# ===== UTILITY FUNCTIONS =====

def absolute_link(base_url: str, href: str) -> str:
    """Resolves a possibly relative store link against the store's origin."""
    if not href:
        return ""
    return urljoin(base_url, href.strip())


def clean_link(url: str) -> str:
    """
    Normalizes a store URL so re-scrapes produce the same natural key:
    drops tracking parameters and fragments and trims the trailing slash.
    Steam app links are reduced to their canonical /app/<id>/<slug> form.
    """
    if not url:
        return ""
    try:
        parsed = urlparse(url)
        path = parsed.path.rstrip('/') or '/'

        if 'steampowered.com' in parsed.netloc:
            match = re.search(r'/(app|sub|bundle)/(\d+)(/[^/?#]+)?', path)
            if match:
                return urlunparse((parsed.scheme or 'https', parsed.netloc, match.group(0), '', '', ''))

        query_params = parse_qs(parsed.query)
        for param in TRACKING_PARAMS:
            query_params.pop(param, None)
        cleaned_query = urlencode(query_params, doseq=True)
        return urlunparse((parsed.scheme, parsed.netloc, path, '', cleaned_query, ''))
    except ValueError:
        logger.warning(f"⚠️ [clean_link] Could not normalize URL: {url}. Using it unchanged.")
        return url


def slugify(text: str) -> str:
    """Lower-case, dash-separated slug used to build stable fallback links."""
    return re.sub(r'[^a-z0-9]+', '-', text.lower()).strip('-')
