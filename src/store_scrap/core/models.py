from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Union

StoreName = Literal["apple", "google"]
RunType = Literal["full", "incremental"]

STORES: tuple[StoreName, ...] = ("apple", "google")

# Listings are produced by the data sources and passed through untouched.
Listing = Dict[str, Any]


@dataclass(frozen=True, slots=True)
class Country:
    code: str
    name: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ErrorRecord:
    message: str
    preserved: bool = False


@dataclass(slots=True)
class StoreResult:
    """Listings for one (store, country) pair as persisted and served."""

    country: str
    store: str
    updated_at: str
    new: List[Listing] = field(default_factory=list)
    updated: List[Listing] = field(default_factory=list)
    errors: List[ErrorRecord] = field(default_factory=list)
    preserved_at: Optional[str] = None
    preserved_count: int = 0

    def is_empty(self) -> bool:
        return not self.new and not self.updated


@dataclass(frozen=True, slots=True)
class Fresh:
    value: StoreResult


@dataclass(frozen=True, slots=True)
class Stale:
    value: StoreResult
    reason: str


@dataclass(frozen=True, slots=True)
class Empty:
    error: str
    value: StoreResult


FetchOutcome = Union[Fresh, Stale, Empty]


@dataclass(slots=True)
class SchedulerState:
    last_run_at: Optional[str] = None
    run_type: Optional[RunType] = None
    incremental_cursor: int = 0
    incremental_size: int = 20
    countries_processed: List[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class BatchReport:
    processed: List[str]
    next_cursor: int
