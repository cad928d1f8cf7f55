from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence

from store_scrap.core.errors import UnknownKeyError
from store_scrap.core.models import Country
from store_scrap.storage.io import load_json

logger = logging.getLogger(__name__)


class CountryCatalog:
    """Ordered, immutable list of countries; the order is the file order."""

    def __init__(self, countries: Iterable[Country]):
        self._countries: tuple[Country, ...] = tuple(countries)
        self._codes: tuple[str, ...] = tuple(country.code for country in self._countries)
        self._index = frozenset(self._codes)

    @classmethod
    def from_payload(cls, payload: Any) -> CountryCatalog:
        if not isinstance(payload, list):
            raise ValueError(f"Country list must be a JSON array, got: {type(payload).__name__}")
        countries: List[Country] = []
        seen = set()
        for entry in payload:
            if not isinstance(entry, dict):
                continue
            code = str(entry.get("code") or "").strip().upper()
            if not code or code in seen:
                continue
            name = str(entry.get("name") or "").strip() or None
            countries.append(Country(code=code, name=name))
            seen.add(code)
        return cls(countries)

    @classmethod
    def load(cls, path: str | Path) -> CountryCatalog:
        catalog = cls.from_payload(load_json(Path(path), []))
        if not catalog.codes:
            logger.warning("Country catalog is empty. path=%s", path)
        return catalog

    @property
    def countries(self) -> Sequence[Country]:
        return self._countries

    @property
    def codes(self) -> Sequence[str]:
        return self._codes

    def __len__(self) -> int:
        return len(self._codes)

    def __contains__(self, code: object) -> bool:
        return code in self._index

    def normalize(self, code: Optional[str]) -> str:
        """Return the canonical code or raise UnknownKeyError."""
        normalized = (code or "").strip().upper()
        if normalized not in self._index:
            raise UnknownKeyError(normalized or str(code))
        return normalized
