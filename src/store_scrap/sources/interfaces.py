from __future__ import annotations

from typing import Optional

from store_scrap.core.models import StoreResult


class DataSource:
    @property
    def name(self) -> str:
        """Store identifier used in cache keys and storage paths."""
        raise NotImplementedError

    async def fetch(self, country: str, previous: Optional[StoreResult] = None) -> StoreResult:
        """
        Fetch the current "new" and "updated" listings for one country.

        ``previous`` is the last known result, offered to sources that can reuse part
        of it. Network failures are raised as TransportError; deciding what to keep
        after a failure is left to the caller.
        """
        raise NotImplementedError
