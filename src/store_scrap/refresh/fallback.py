from __future__ import annotations

import dataclasses
import logging
from typing import Optional

from store_scrap.core.errors import EmptyResultError, StoreScrapError
from store_scrap.core.models import Empty, ErrorRecord, FetchOutcome, Fresh, Stale, StoreResult
from store_scrap.core.utils import format_rfc3339, utc_now
from store_scrap.sources.interfaces import DataSource

logger = logging.getLogger(__name__)


def _error_message(error: BaseException) -> str:
    message = str(error).strip()
    return message or type(error).__name__


def empty_result(*, store: str, country: str, message: str, now: str) -> StoreResult:
    return StoreResult(
        country=country,
        store=store,
        updated_at=now,
        new=[],
        updated=[],
        errors=[ErrorRecord(message=message)],
    )


def preserve_result(previous: StoreResult, *, message: str, now: str) -> StoreResult:
    """Shallow copy of the previous result, stamped as preserved."""
    return dataclasses.replace(
        previous,
        preserved_at=now,
        errors=[*previous.errors, ErrorRecord(message=message, preserved=True)],
        preserved_count=previous.preserved_count + 1,
    )


def apply_fallback(
    *,
    store: str,
    country: str,
    error: BaseException,
    previous: Optional[StoreResult],
    now: Optional[str] = None,
) -> FetchOutcome:
    """
    Decide what to keep after a failed or empty refresh.

    With a previous result the old listings are reused and the failure is recorded as
    a preserved error; otherwise an empty result carrying the error is produced.
    """
    stamp = now or format_rfc3339(utc_now())
    message = _error_message(error)
    if previous is not None:
        preserved = preserve_result(previous, message=message, now=stamp)
        logger.warning(
            "Preserving previous listings after failed refresh. store=%s country=%s consecutive=%d error=%s",
            store,
            country,
            preserved.preserved_count,
            message,
        )
        return Stale(value=preserved, reason=message)

    logger.warning(
        "Refresh failed with no previous listings. store=%s country=%s error=%s",
        store,
        country,
        message,
    )
    return Empty(error=message, value=empty_result(store=store, country=country, message=message, now=stamp))


def resolve_outcome(outcome: FetchOutcome) -> StoreResult:
    return outcome.value


async def fetch_with_fallback(
    source: DataSource,
    country: str,
    previous: Optional[StoreResult],
) -> FetchOutcome:
    """Run one source fetch; failures and empty results go through apply_fallback."""
    try:
        result = await source.fetch(country, previous)
    except Exception as e:
        if not isinstance(e, StoreScrapError):
            logger.exception("Unexpected error while fetching listings. store=%s country=%s", source.name, country)
        return apply_fallback(store=source.name, country=country, error=e, previous=previous)

    if result.is_empty():
        error = EmptyResultError(f"No listings returned for store={source.name} country={country}")
        return apply_fallback(store=source.name, country=country, error=error, previous=previous)

    if result.preserved_count or result.preserved_at:
        result = dataclasses.replace(result, preserved_at=None, preserved_count=0)
    return Fresh(value=result)
