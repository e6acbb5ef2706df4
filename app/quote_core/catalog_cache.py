"""
Time-limited cache for the product catalog.
The cache is an ordinary object owned by whoever builds it; the clock is
injectable so expiry can be tested without sleeping.
"""

import json
import time
from pathlib import Path
from typing import Callable, Dict, Generic, Optional, TypeVar

import requests

from quote_core.logging_config import get_logger


logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 5 * 60


class CatalogCache(Generic[T]):
    """
    Cache the result of a fetcher for ttl_seconds.

    When a refresh fails the last good value is served; with nothing cached
    the error propagates.
    """

    def __init__(self, fetcher: Callable[[], T], ttl_seconds: float = DEFAULT_TTL_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        self.fetcher = fetcher
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._data: Optional[T] = None
        self._fetched_at: Optional[float] = None

    @property
    def has_data(self) -> bool:
        return self._fetched_at is not None

    def is_fresh(self) -> bool:
        return self.has_data and self.clock() - self._fetched_at < self.ttl_seconds

    def get(self) -> T:
        if self.is_fresh():
            return self._data

        try:
            data = self.fetcher()
        except Exception as e:
            if not self.has_data:
                raise
            logger.error(f"Catalog refresh failed, serving cached data: {e}")
            return self._data

        self._data = data
        self._fetched_at = self.clock()
        return data

    def clear(self):
        self._data = None
        self._fetched_at = None


def catalog_fetcher(source: str, timeout: int = 30) -> Callable[[], Dict[str, dict]]:
    """
    Build a fetcher returning catalog entries keyed by SKU.

    The source is an http(s) URL or a local path to a JSON list of objects
    with at least a "sku" field.
    """
    def fetch() -> Dict[str, dict]:
        if source.startswith(("http://", "https://")):
            resp = requests.get(source, timeout=timeout)
            resp.raise_for_status()
            entries = resp.json()
        else:
            entries = json.loads(Path(source).read_text(encoding="utf-8"))

        catalog = {}
        for entry in entries:
            sku = str(entry.get("sku") or "").strip()
            if sku:
                catalog[sku.upper()] = entry
        logger.info(f"Loaded {len(catalog)} catalog entries from {source}")
        return catalog

    return fetch
