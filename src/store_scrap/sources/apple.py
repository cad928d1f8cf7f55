from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from store_scrap.config.models import AppleSettings, RefreshSettings
from store_scrap.core.errors import TransportError
from store_scrap.core.models import ErrorRecord, Listing, StoreResult
from store_scrap.core.utils import format_rfc3339, safe_parse_datetime, utc_now
from store_scrap.refresh.freshness import Clock, FreshnessCache
from store_scrap.refresh.limiter import ConcurrencyLimiter
from store_scrap.refresh.retry import with_retry
from store_scrap.sources.http import HttpClient
from store_scrap.sources.interfaces import DataSource
from store_scrap.storage.io import atomic_write_json, load_json

logger = logging.getLogger(__name__)

GAMES_GENRE = "Games"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def format_item(entry: Dict[str, Any], lookup: Optional[Dict[str, Any]], country: str) -> Listing:
    lookup = lookup or {}
    release = safe_parse_datetime(lookup.get("releaseDate") or entry.get("releaseDate"))
    price = lookup.get("price")
    return {
        "id": entry.get("id"),
        "name": entry.get("name"),
        "developer": entry.get("artistName"),
        "url": entry.get("url"),
        "artwork": entry.get("artworkUrl100"),
        "price": lookup.get("formattedPrice") or "Free",
        "isFree": price is None or price == 0,
        "releaseDate": format_rfc3339(release) if release else None,
        "genres": list(lookup.get("genres") or []),
        "country": country,
    }


def _release_sort_key(item: Listing) -> datetime:
    return safe_parse_datetime(item.get("releaseDate")) or _EPOCH


class AppleSource(DataSource):
    """
    App Store listings built from the marketing RSS feeds.

    Feed entries are enriched with an iTunes lookup, which is cached on disk for a
    long TTL, and only entries whose genres include "Games" are kept.
    """

    def __init__(
        self,
        *,
        config: AppleSettings,
        refresh: RefreshSettings,
        http: HttpClient,
        lookup_cache_path: str,
        clock: Optional[Clock] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        self._config = config
        self._retry_delays = tuple(refresh.retry_delays_seconds)
        self._http = http
        self._lookup_cache_path = Path(lookup_cache_path)
        cache_kwargs = {"clock": clock} if clock is not None else {}
        self._lookup_cache: FreshnessCache[Optional[Dict[str, Any]]] = FreshnessCache(
            config.lookup_ttl_seconds, **cache_kwargs
        )
        self._lookup_cache_loaded = False
        self._lookup_limiter = ConcurrencyLimiter(config.lookup_concurrency)
        self._load_lock = asyncio.Lock()
        self._persist_lock = asyncio.Lock()
        self._sleep = sleep or asyncio.sleep

    @property
    def name(self) -> str:
        return "apple"

    async def fetch(self, country: str, previous: Optional[StoreResult] = None) -> StoreResult:
        await self._ensure_lookup_cache()

        groups = (("new", self._config.new_feeds), ("updated", self._config.updated_feeds))
        feed_results = await asyncio.gather(
            *(self._fetch_feed_group(country, feed_names) for _, feed_names in groups)
        )

        failures = [error for _, error in feed_results if error is not None]
        if len(failures) == len(feed_results):
            raise failures[-1]

        lists: Dict[str, List[Listing]] = {}
        errors: List[ErrorRecord] = []
        for (list_name, _), (entries, error) in zip(groups, feed_results):
            if error is not None:
                errors.append(ErrorRecord(message=f"{list_name} feed unavailable: {error}"))
            lists[list_name] = await self._enrich(entries, country)

        lists["new"].sort(key=_release_sort_key, reverse=True)

        await self._persist_lookup_cache()

        return StoreResult(
            country=country,
            store=self.name,
            updated_at=format_rfc3339(utc_now()),
            new=lists["new"][: self._config.target_size],
            updated=lists["updated"][: self._config.target_size],
            errors=errors,
        )

    def _feed_url(self, country: str, feed_name: str) -> str:
        base = self._config.rss_base_url.rstrip("/")
        return f"{base}/{country.lower()}/apps/{feed_name}/{self._config.rss_limit}/apps.json"

    async def _fetch_feed_group(
        self,
        country: str,
        feed_names: Sequence[str],
    ) -> Tuple[List[Dict[str, Any]], Optional[TransportError]]:
        """Try each feed in order until one answers."""
        last_error: Optional[TransportError] = None
        for feed_name in feed_names:
            url = self._feed_url(country, feed_name)
            try:
                data = await with_retry(lambda: self._http.get_json(url), self._retry_delays, sleep=self._sleep)
            except TransportError as e:
                last_error = e
                logger.debug("Apple feed failed, trying next. country=%s feed=%s error=%s", country, feed_name, e)
                continue
            results = (data.get("feed") or {}).get("results") if isinstance(data, dict) else None
            return list(results or []), None

        if last_error is None:
            last_error = TransportError(f"No feeds configured for country={country}")
        logger.warning("Apple RSS fetch failed. country=%s error=%s", country, last_error)
        return [], last_error

    async def _enrich(self, entries: Sequence[Dict[str, Any]], country: str) -> List[Listing]:
        async def enrich_one(entry: Dict[str, Any]) -> Optional[Listing]:
            try:
                lookup = await self._lookup(str(entry.get("id")), country)
            except TransportError as e:
                logger.debug("iTunes lookup failed. id=%s country=%s error=%s", entry.get("id"), country, e)
                return None
            except Exception as e:
                logger.debug("iTunes lookup unusable. id=%s country=%s error=%r", entry.get("id"), country, e)
                return None
            if not lookup or GAMES_GENRE not in (lookup.get("genres") or []):
                return None
            return format_item(entry, lookup, country)

        items = await asyncio.gather(
            *(self._lookup_limiter.submit(lambda entry=entry: enrich_one(entry)) for entry in entries)
        )
        return [item for item in items if item is not None]

    async def _lookup(self, app_id: str, country: str) -> Optional[Dict[str, Any]]:
        if self._lookup_cache.is_fresh(app_id):
            return self._lookup_cache.get(app_id)

        data = await self._http.get_json(self._config.lookup_url, params={"id": app_id, "country": country})
        results = data.get("results") if isinstance(data, dict) else None
        result = results[0] if isinstance(results, list) and results else None
        if not isinstance(result, dict):
            result = None
        self._lookup_cache.put(app_id, result)
        return result

    async def _ensure_lookup_cache(self) -> None:
        async with self._load_lock:
            if self._lookup_cache_loaded:
                return
            try:
                payload = await asyncio.to_thread(load_json, self._lookup_cache_path, {})
            except ValueError:
                logger.warning("Lookup cache unreadable, starting empty. path=%s", self._lookup_cache_path)
                payload = {}
            self._lookup_cache.load_payload(payload if isinstance(payload, dict) else {})
            self._lookup_cache_loaded = True
            logger.debug("Lookup cache loaded. path=%s entries=%d", self._lookup_cache_path, len(self._lookup_cache))

    async def _persist_lookup_cache(self) -> None:
        async with self._persist_lock:
            payload = self._lookup_cache.to_payload()
            await asyncio.to_thread(atomic_write_json, self._lookup_cache_path, payload)
