from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Generic, List, Optional, Sequence, Tuple, TypeVar

from store_scrap.core.models import RunType

logger = logging.getLogger(__name__)

K = TypeVar("K")


@dataclass(frozen=True)
class Batch(Generic[K]):
    keys: List[K]
    next_cursor: int


def normalize_cursor(cursor: int, length: int) -> int:
    if length <= 0:
        return 0
    return max(0, int(cursor)) % length


def next_batch(catalog: Sequence[K], cursor: int, batch_size: int) -> Batch[K]:
    """
    Take the next round-robin slice of the catalog.

    Starting at the normalized cursor, up to ``batch_size`` keys are taken, wrapping
    past the end of the catalog. Feeding ``next_cursor`` back in covers every key once
    per cycle in catalog order.
    """
    length = len(catalog)
    if length == 0:
        return Batch(keys=[], next_cursor=0)

    start = normalize_cursor(cursor, length)
    size = min(max(0, int(batch_size)), length)
    keys = [catalog[(start + i) % length] for i in range(size)]
    return Batch(keys=keys, next_cursor=(start + len(keys)) % length)


def select_targets(
    catalog: Sequence[str],
    *,
    run_type: RunType,
    cursor: int,
    batch_size: int,
    explicit_keys: Optional[Sequence[str]] = None,
) -> Tuple[List[str], int]:
    """
    Pick the keys for one snapshot run and the cursor to persist afterwards.

    An explicit key list bypasses the round robin and leaves the cursor untouched, as
    does a full run.
    """
    if explicit_keys:
        wanted = {key.strip().upper() for key in explicit_keys if key.strip()}
        targets = [key for key in catalog if key in wanted]
        unknown = sorted(wanted.difference(catalog))
        if unknown:
            logger.warning("Ignoring countries missing from the catalog. countries=%s", ",".join(unknown))
        return targets, cursor

    if run_type == "full":
        return list(catalog), cursor

    batch = next_batch(catalog, cursor, batch_size)
    return batch.keys, batch.next_cursor
