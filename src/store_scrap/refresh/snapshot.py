from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from store_scrap.core.catalog import CountryCatalog
from store_scrap.core.models import BatchReport, RunType, SchedulerState, StoreResult
from store_scrap.core.utils import format_rfc3339, utc_now
from store_scrap.refresh.aggregator import build_summary
from store_scrap.refresh.fallback import fetch_with_fallback, resolve_outcome
from store_scrap.refresh.limiter import ConcurrencyLimiter
from store_scrap.refresh.scheduler import select_targets
from store_scrap.sources.interfaces import DataSource
from store_scrap.storage.codec import (
    decode_result,
    decode_scheduler_state,
    encode_result,
    encode_scheduler_state,
)
from store_scrap.storage.store import JsonFileStore

logger = logging.getLogger(__name__)

META_KEY = "meta"
SUMMARY_KEY = "global_summary"


def result_key(store: str, country: str) -> str:
    return f"{store}/{country}"


class SnapshotBuilder:
    """
    Batch refresh that writes static JSON snapshots.

    Each run refreshes a set of countries (a round-robin slice, the whole catalog, or
    an explicit list), writes one record per (store, country), rebuilds the summary
    from everything persisted, and stores the scheduler state for the next run.
    """

    def __init__(
        self,
        *,
        catalog: CountryCatalog,
        sources: Mapping[str, DataSource],
        store: JsonFileStore,
        concurrency: int = 4,
        incremental_size: int = 20,
    ) -> None:
        self._catalog = catalog
        self._sources = dict(sources)
        self._store = store
        self._concurrency = concurrency
        self._incremental_size = incremental_size

    async def run(
        self,
        *,
        run_type: RunType = "incremental",
        limit: Optional[int] = None,
        countries: Optional[Sequence[str]] = None,
    ) -> BatchReport:
        state = await self.load_state()
        batch_size = limit if limit is not None else self._incremental_size
        targets, next_cursor = select_targets(
            self._catalog.codes,
            run_type=run_type,
            cursor=state.incremental_cursor,
            batch_size=batch_size,
            explicit_keys=countries,
        )
        logger.info(
            "Snapshot run started. run_type=%s targets=%d cursor=%d",
            run_type,
            len(targets),
            state.incremental_cursor,
        )

        limiter = ConcurrencyLimiter(self._concurrency)
        outcomes = await asyncio.gather(
            *(limiter.submit(lambda code=code: self._process_country(code)) for code in targets),
            return_exceptions=True,
        )
        for code, outcome in zip(targets, outcomes):
            if isinstance(outcome, Exception):
                logger.error("Snapshot failed for country. country=%s", code, exc_info=outcome)

        await self._write_summary(run_type=run_type, processed=targets)

        await self._store.write(
            META_KEY,
            encode_scheduler_state(
                SchedulerState(
                    last_run_at=format_rfc3339(utc_now()),
                    run_type=run_type,
                    incremental_cursor=next_cursor,
                    incremental_size=batch_size if batch_size > 0 else self._incremental_size,
                    countries_processed=list(targets),
                )
            ),
        )
        logger.info("Snapshot run finished. processed=%d next_cursor=%d", len(targets), next_cursor)
        return BatchReport(processed=list(targets), next_cursor=next_cursor)

    async def load_state(self) -> SchedulerState:
        return decode_scheduler_state(await self._store.read(META_KEY))

    async def read_result(self, store: str, country: str) -> Optional[StoreResult]:
        payload = await self._store.read(result_key(store, country))
        if not payload:
            return None
        try:
            return decode_result(payload)
        except (KeyError, TypeError, ValueError):
            logger.warning("Ignoring malformed snapshot record. store=%s country=%s", store, country)
            return None

    async def _process_country(self, code: str) -> None:
        stores = list(self._sources)
        outcomes = await asyncio.gather(
            *(self._process_source(store, code) for store in stores),
            return_exceptions=True,
        )
        for store, outcome in zip(stores, outcomes):
            if isinstance(outcome, Exception):
                logger.error("Snapshot failed for source. store=%s country=%s", store, code, exc_info=outcome)

    async def _process_source(self, store: str, code: str) -> None:
        previous = await self.read_result(store, code)
        outcome = await fetch_with_fallback(self._sources[store], code, previous)
        await self._store.write(result_key(store, code), encode_result(resolve_outcome(outcome)))

    async def _write_summary(self, *, run_type: RunType, processed: List[str]) -> None:
        pairs: List[Tuple[str, str]] = [
            (store, country.code) for country in self._catalog.countries for store in self._sources
        ]
        results = await asyncio.gather(*(self.read_result(store, code) for store, code in pairs))
        persisted: Dict[Tuple[str, str], Optional[StoreResult]] = dict(zip(pairs, results))

        summary = build_summary(
            self._catalog.countries,
            lambda store, code: persisted.get((store, code)),
            meta={
                "runType": run_type,
                "countriesProcessed": processed,
                "totalCountries": len(self._catalog),
            },
        )
        await self._store.write(SUMMARY_KEY, summary)
