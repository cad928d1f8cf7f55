from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Mapping, Optional, Tuple

from store_scrap.core.catalog import CountryCatalog
from store_scrap.core.models import StoreResult
from store_scrap.refresh.aggregator import build_summary
from store_scrap.refresh.fallback import fetch_with_fallback, resolve_outcome
from store_scrap.refresh.freshness import Clock, FreshnessCache
from store_scrap.sources.interfaces import DataSource

logger = logging.getLogger(__name__)


class RefreshOrchestrator:
    """
    On-demand access to per-country listings.

    Results are cached per store for ``cache_ttl_seconds``. At most one upstream fetch
    per (store, country) runs at a time; concurrent callers share it.
    """

    def __init__(
        self,
        *,
        catalog: CountryCatalog,
        sources: Mapping[str, DataSource],
        cache_ttl_seconds: float,
        clock: Clock = time.time,
    ) -> None:
        self._catalog = catalog
        self._sources = dict(sources)
        self._cache_ttl_seconds = cache_ttl_seconds
        self._caches: Dict[str, FreshnessCache[StoreResult]] = {
            name: FreshnessCache(cache_ttl_seconds, clock=clock) for name in self._sources
        }
        self._in_flight: Dict[Tuple[str, str], asyncio.Task[StoreResult]] = {}

    @property
    def catalog(self) -> CountryCatalog:
        return self._catalog

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    def cache_for(self, store: str) -> FreshnessCache[StoreResult]:
        try:
            return self._caches[store]
        except KeyError:
            raise ValueError(f"Unknown store: {store}") from None

    async def get_data(self, store: str, country: str, *, force: bool = False) -> StoreResult:
        code = self._catalog.normalize(country)
        cache = self.cache_for(store)

        if force:
            cache.invalidate(code)
        elif cache.is_fresh(code):
            cached = cache.get(code)
            if cached is not None:
                return cached

        key = (store, code)
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.create_task(self._refresh(store, code), name=f"refresh:{store}:{code}")
            self._in_flight[key] = task
            task.add_done_callback(lambda done, key=key: self._release(key, done))
        else:
            logger.debug("Joining in-flight refresh. store=%s country=%s", store, code)

        # A cancelled caller must not cancel the fetch other callers are waiting on.
        return await asyncio.shield(task)

    async def get_country(self, country: str, *, force: bool = False) -> Dict[str, Any]:
        code = self._catalog.normalize(country)
        results = await asyncio.gather(*(self.get_data(store, code, force=force) for store in self._sources))
        payload: Dict[str, Any] = {"country": code}
        payload.update(zip(self._sources, results))
        return payload

    def get_summary(self) -> Dict[str, Any]:
        snapshots = {store: cache.snapshot() for store, cache in self._caches.items()}

        def lookup(store: str, code: str) -> Optional[StoreResult]:
            return snapshots.get(store, {}).get(code)

        return build_summary(
            self._catalog.countries,
            lookup,
            meta={
                "cacheTtlMs": int(self._cache_ttl_seconds * 1000),
                "countries": len(self._catalog),
            },
        )

    async def _refresh(self, store: str, code: str) -> StoreResult:
        cache = self._caches[store]
        previous = cache.get(code)
        logger.info("Refreshing listings. store=%s country=%s has_previous=%s", store, code, previous is not None)
        outcome = await fetch_with_fallback(self._sources[store], code, previous)
        value = resolve_outcome(outcome)
        cache.put(code, value)
        return value

    def _release(self, key: Tuple[str, str], task: asyncio.Task) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
