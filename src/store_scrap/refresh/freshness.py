from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Generic, Mapping, Optional, TypeVar

from store_scrap.core.utils import format_rfc3339, parse_rfc3339

logger = logging.getLogger(__name__)

V = TypeVar("V")

Clock = Callable[[], float]


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    value: V
    # Epoch seconds; None means the entry must be treated as expired.
    fetched_at: Optional[float]


class FreshnessCache(Generic[V]):
    """
    Key/value store where every entry carries the time it was fetched.

    The TTL is fixed per cache instance. Entries are replaced wholesale by put() and
    are never mutated in place.
    """

    def __init__(self, ttl_seconds: float, *, clock: Clock = time.time) -> None:
        self._ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._entries: Dict[str, CacheEntry[V]] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl_seconds

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def is_fresh(self, key: str, ttl_seconds: Optional[float] = None) -> bool:
        entry = self._entries.get(key)
        if entry is None or entry.fetched_at is None:
            return False
        ttl = self._ttl_seconds if ttl_seconds is None else ttl_seconds
        return self._clock() - entry.fetched_at <= ttl

    def get(self, key: str) -> Optional[V]:
        entry = self._entries.get(key)
        return entry.value if entry is not None else None

    def entry(self, key: str) -> Optional[CacheEntry[V]]:
        return self._entries.get(key)

    def put(self, key: str, value: V) -> None:
        self._entries[key] = CacheEntry(value=value, fetched_at=self._clock())

    def invalidate(self, key: str) -> None:
        """Expire an entry but keep its value available for fallback."""
        entry = self._entries.get(key)
        if entry is None:
            return
        self._entries[key] = CacheEntry(value=entry.value, fetched_at=None)

    def snapshot(self) -> Dict[str, V]:
        return {key: entry.value for key, entry in self._entries.items()}

    def load_payload(self, payload: Mapping[str, object]) -> None:
        """
        Replace the cache contents from a persisted mapping.

        Each item is ``{"data": value, "updatedAt": "<rfc3339>"}``. Items whose
        timestamp is missing or unparsable are kept but never fresh.
        """
        entries: Dict[str, CacheEntry[V]] = {}
        skipped = 0
        for key, item in payload.items():
            if not isinstance(item, dict):
                skipped += 1
                continue
            entries[str(key)] = CacheEntry(
                value=item.get("data"),
                fetched_at=_parse_timestamp(item.get("updatedAt")),
            )
        if skipped:
            logger.warning("Skipped malformed cache items. count=%d", skipped)
        self._entries = entries

    def to_payload(self) -> Dict[str, dict]:
        payload: Dict[str, dict] = {}
        for key, entry in self._entries.items():
            item: dict = {"data": entry.value}
            if entry.fetched_at is not None:
                item["updatedAt"] = format_rfc3339(datetime.fromtimestamp(entry.fetched_at, tz=timezone.utc))
            payload[key] = item
        return payload


def _parse_timestamp(value: object) -> Optional[float]:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return parse_rfc3339(value).timestamp()
    except ValueError:
        return None
