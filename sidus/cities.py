"""City autocomplete for the birth-place field."""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Callable, List, Optional

import requests

from sidus import config

logger = logging.getLogger(__name__)

NOMINATIM_URL = "https://nominatim.openstreetmap.org/search"
MIN_QUERY_LENGTH = 2
MAX_RESULTS = 10
DEFAULT_CACHE_CAPACITY = 1000

CityFetcher = Callable[[str], List[str]]


class FifoCache:
    """Fixed-capacity map; the oldest inserted key goes first once full."""

    def __init__(self, capacity: int = DEFAULT_CACHE_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._items: "OrderedDict[str, List[str]]" = OrderedDict()

    def __contains__(self, key: str) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)

    def get(self, key: str) -> Optional[List[str]]:
        return self._items.get(key)

    def put(self, key: str, value: List[str]) -> None:
        # Re-inserting keeps the original position: eviction is by first insertion, not use.
        self._items[key] = value
        while len(self._items) > self.capacity:
            self._items.popitem(last=False)

    def clear(self) -> None:
        self._items.clear()


def format_place(item: dict) -> Optional[str]:
    """Render a Nominatim result as "City, State, Country"."""
    address = item.get("address") or {}
    name = (
        address.get("city")
        or address.get("town")
        or address.get("village")
        or address.get("municipality")
        or item.get("name")
    )
    if not name:
        return None
    parts = [name]
    state = address.get("state")
    if state and state != name:
        parts.append(state)
    country = address.get("country")
    if country:
        parts.append(country)
    return ", ".join(parts)


def fetch_nominatim(query: str) -> List[str]:
    headers = {"User-Agent": config.get_user_agent()}
    params = {
        "q": query,
        "format": "json",
        "addressdetails": 1,
        "featureType": "city",
        "limit": MAX_RESULTS,
    }
    resp = requests.get(NOMINATIM_URL, params=params, headers=headers, timeout=8)
    resp.raise_for_status()
    results = []
    for item in resp.json():
        label = format_place(item)
        if label and label not in results:
            results.append(label)
    return results[:MAX_RESULTS]


class CitySearch:
    def __init__(self, fetcher: Optional[CityFetcher] = None, cache: Optional[FifoCache] = None):
        self.fetcher = fetcher or fetch_nominatim
        self.cache = cache if cache is not None else FifoCache()

    def search(self, query: Optional[str]) -> List[str]:
        key = (query or "").lower().strip()
        if len(key) < MIN_QUERY_LENGTH:
            return []
        cached = self.cache.get(key)
        if cached is not None:
            return list(cached)

        try:
            cities = self.fetcher(query.strip())
        except requests.RequestException:
            logger.exception("City search failed for query=%s", query)
            return []

        self.cache.put(key, list(cities))
        return cities
