from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Optional

from store_scrap.storage.io import atomic_write_json, load_json

logger = logging.getLogger(__name__)


class JsonFileStore:
    """
    Key/value storage backed by one JSON file per key.

    Keys are slash separated, e.g. ``apple/US`` maps to ``<root>/apple/US.json``.
    File I/O runs in a worker thread so callers on the event loop are not blocked.
    """

    def __init__(self, root: str | Path):
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, key: str) -> Path:
        parts = [part for part in key.split("/") if part and part not in {".", ".."}]
        if not parts:
            raise ValueError(f"Invalid storage key: {key!r}")
        return self._root.joinpath(*parts).with_suffix(".json")

    def read_sync(self, key: str) -> Optional[Any]:
        path = self.path_for(key)
        try:
            return load_json(path, None)
        except ValueError:
            logger.warning("Ignoring unreadable storage record. path=%s", path)
            return None

    def write_sync(self, key: str, value: Any) -> None:
        atomic_write_json(self.path_for(key), value)

    async def read(self, key: str) -> Optional[Any]:
        return await asyncio.to_thread(self.read_sync, key)

    async def write(self, key: str, value: Any) -> None:
        await asyncio.to_thread(self.write_sync, key, value)
