# ===== IMPORTS & DEPENDENCIES =====
import asyncio
import hashlib
import logging
import os
import random
import time
from typing import Dict, Optional
from urllib.parse import urlencode

import aiohttp

from freegames.config import COMMON_HEADERS

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = frozenset({403, 429, 502, 503, 504})
REQUEST_TIMEOUT_S = 25
MAX_ATTEMPTS = 3
BACKOFF_BASE_S = 2.0


# ===== CORE BUSINESS LOGIC =====
class BaseWebClient:
    """
    Plain-HTTP page fetcher for the collaborators that do not need a browser.
    Pages are cached on disk per full URL for `cache_ttl` seconds; transient
    failures are retried with exponential backoff and jitter.
    """

    def __init__(self, cache_dir: str, cache_ttl: int, session: aiohttp.ClientSession):
        self._session = session
        self._cache_dir = cache_dir
        self._cache_ttl = cache_ttl
        os.makedirs(cache_dir, exist_ok=True)

    def _cache_file(self, full_url: str) -> str:
        digest = hashlib.sha256(full_url.encode('utf-8')).hexdigest()
        return os.path.join(self._cache_dir, f"{digest}.html")

    def _read_cache(self, full_url: str) -> Optional[str]:
        path = self._cache_file(full_url)
        try:
            age = time.time() - os.path.getmtime(path)
        except OSError:
            return None
        if age > self._cache_ttl:
            logger.debug(f"[{self.__class__.__name__}] Stale cache entry for {full_url} ({age:.0f}s old)")
            return None
        with open(path, 'r', encoding='utf-8') as f:
            return f.read()

    def _write_cache(self, full_url: str, html: str) -> None:
        path = self._cache_file(full_url)
        try:
            with open(path, 'w', encoding='utf-8') as f:
                f.write(html)
        except OSError as e:
            logger.warning(f"⚠️ [{self.__class__.__name__}] Could not write cache file {path}: {e}")

    async def _fetch(self, url: str, params: Optional[Dict[str, str]] = None,
                     headers: Optional[Dict[str, str]] = None) -> Optional[str]:
        """Returns the page HTML, from cache when fresh. None when every attempt failed."""
        full_url = f"{url}?{urlencode(params)}" if params else url
        cached = self._read_cache(full_url)
        if cached is not None:
            logger.debug(f"✅ [{self.__class__.__name__}] Cache hit: {full_url}")
            return cached

        logger.info(f"➡️ [{self.__class__.__name__}] GET {full_url}")
        timeout = aiohttp.ClientTimeout(total=REQUEST_TIMEOUT_S)
        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                async with self._session.get(full_url, headers=headers or COMMON_HEADERS, timeout=timeout) as response:
                    response.raise_for_status()
                    html = await response.text()
                self._write_cache(full_url, html)
                return html
            except aiohttp.ClientResponseError as e:
                if e.status not in RETRYABLE_STATUSES or attempt == MAX_ATTEMPTS:
                    logger.error(f"❌ [{self.__class__.__name__}] HTTP {e.status} from {full_url}, giving up.")
                    return None
                logger.warning(f"⚠️ [{self.__class__.__name__}] HTTP {e.status} from {full_url} (attempt {attempt}/{MAX_ATTEMPTS})")
            except (asyncio.TimeoutError, aiohttp.ClientConnectionError) as e:
                if attempt == MAX_ATTEMPTS:
                    logger.error(f"❌ [{self.__class__.__name__}] {full_url} unreachable after {MAX_ATTEMPTS} attempts: {type(e).__name__}")
                    return None
                logger.warning(f"⚠️ [{self.__class__.__name__}] {type(e).__name__} on {full_url} (attempt {attempt}/{MAX_ATTEMPTS})")

            delay = BACKOFF_BASE_S * (2 ** (attempt - 1)) + random.uniform(0, 1)
            logger.info(f"Retrying {full_url} in {delay:.2f} seconds...")
            await asyncio.sleep(delay)
        return None
