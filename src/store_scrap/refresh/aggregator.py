from __future__ import annotations

from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from store_scrap.core.models import STORES, Country, StoreResult
from store_scrap.core.utils import format_rfc3339, utc_now

SummaryLookup = Callable[[str, str], Optional[StoreResult]]


def to_summary_entry(result: Optional[StoreResult]) -> Optional[Dict[str, Any]]:
    if result is None:
        return None
    return {
        "updatedAt": result.updated_at or result.preserved_at,
        "newCount": len(result.new),
        "updatedCount": len(result.updated),
        "errorCount": len(result.errors),
        "preservedCount": result.preserved_count,
    }


def build_summary(
    catalog: Sequence[Country],
    lookup: SummaryLookup,
    *,
    meta: Mapping[str, Any],
    generated_at: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Project the latest result per store and country into one bootstrap document.

    ``lookup(store, code)`` returns whatever is currently cached or persisted; the
    function itself has no side effects.
    """
    countries = []
    for country in catalog:
        entry: Dict[str, Any] = {"code": country.code, "name": country.name}
        for store in STORES:
            entry[store] = to_summary_entry(lookup(store, country.code))
        countries.append(entry)

    return {
        "generatedAt": generated_at or format_rfc3339(utc_now()),
        "meta": dict(meta),
        "countries": countries,
    }
