"""
Rate Limit Storage

The rate limiter keeps its state behind ``RateLimitStore`` so the in-memory
map can be swapped for a shared cache without touching the admission logic.
The store is a plain container; atomicity is provided by the limiter's lock.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Tuple


@dataclass
class RateLimitEntry:
    """
    Per-identifier window counters.

    Attributes:
        count: Requests admitted in the current request window.
        reset_time: Unix time (seconds) the request window ends.
        gas_used: Cumulative gas in the current gas window.
        last_reset: Unix time (seconds) the gas window started.
    """

    count: int
    reset_time: float
    gas_used: int
    last_reset: float


class RateLimitStore(ABC):
    """Storage interface for rate-limit entries and bans."""

    @abstractmethod
    def get_entry(self, identifier: str) -> Optional[RateLimitEntry]:
        ...

    @abstractmethod
    def put_entry(self, identifier: str, entry: RateLimitEntry) -> None:
        ...

    @abstractmethod
    def delete_entry(self, identifier: str) -> None:
        ...

    @abstractmethod
    def entries(self) -> Iterator[Tuple[str, RateLimitEntry]]:
        """Snapshot iterator; safe to delete while iterating."""

    @abstractmethod
    def get_ban(self, identifier: str) -> Optional[float]:
        """Unban timestamp for ``identifier``, if any."""

    @abstractmethod
    def put_ban(self, identifier: str, unban_at: float) -> None:
        ...

    @abstractmethod
    def delete_ban(self, identifier: str) -> None:
        ...

    @abstractmethod
    def bans(self) -> Iterator[Tuple[str, float]]:
        """Snapshot iterator; safe to delete while iterating."""


class InMemoryRateLimitStore(RateLimitStore):
    """Process-local store backed by two dicts."""

    def __init__(self) -> None:
        self._entries: Dict[str, RateLimitEntry] = {}
        self._bans: Dict[str, float] = {}

    def get_entry(self, identifier: str) -> Optional[RateLimitEntry]:
        return self._entries.get(identifier)

    def put_entry(self, identifier: str, entry: RateLimitEntry) -> None:
        self._entries[identifier] = entry

    def delete_entry(self, identifier: str) -> None:
        self._entries.pop(identifier, None)

    def entries(self) -> Iterator[Tuple[str, RateLimitEntry]]:
        return iter(list(self._entries.items()))

    def get_ban(self, identifier: str) -> Optional[float]:
        return self._bans.get(identifier)

    def put_ban(self, identifier: str, unban_at: float) -> None:
        self._bans[identifier] = unban_at

    def delete_ban(self, identifier: str) -> None:
        self._bans.pop(identifier, None)

    def bans(self) -> Iterator[Tuple[str, float]]:
        return iter(list(self._bans.items()))

    def __len__(self) -> int:
        return len(self._entries)
