from __future__ import annotations

from typing import Optional


class StoreScrapError(Exception):
    """Base class for errors raised by the refresh layer and its data sources."""


class TransportError(StoreScrapError):
    """Network or HTTP failure while talking to an upstream store."""

    def __init__(self, message: str, *, url: Optional[str] = None, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.url = url
        self.status = status


class EmptyResultError(StoreScrapError):
    """The upstream answered but produced no qualifying listings."""


class UnknownKeyError(StoreScrapError, KeyError):
    """The requested country is not part of the catalog."""

    def __init__(self, key: str) -> None:
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"Unknown country code: {self.key}"
