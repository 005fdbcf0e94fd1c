"""
Per-Identifier Rate Limiter

Two independent fixed windows per identifier (normally the owner address):

    - request window: at most ``max_requests_per_minute`` admissions per
      ``window_seconds``
    - gas window: at most ``max_gas_per_hour`` cumulative gas per
      ``gas_window_seconds``; exceeding it bans the identifier for one gas
      window

Windows reset lazily when an identifier is touched, so correctness never
depends on the background sweep. The sweep only reclaims memory.

All store access happens under one lock. ``acquire`` performs the admission
check and the increment as a single step so concurrent requests for the same
identifier cannot both slip under the cap.
"""

import asyncio
import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from ..logs import get_logger, log_event
from .store import InMemoryRateLimitStore, RateLimitEntry, RateLimitStore

LOGGER = get_logger(__name__)

Clock = Callable[[], float]


@dataclass(frozen=True)
class RateLimitDecision:
    """
    Result of a limit check.

    ``retry_after`` is whole seconds when rejected. ``window_end`` is the
    reset time of the request window an ``acquire`` was charged to.
    """

    allowed: bool
    retry_after: Optional[int] = None
    window_end: Optional[float] = None


@dataclass(frozen=True)
class UsageStats:
    request_count: int
    gas_used: int
    reset_time: float
    gas_reset_time: float


class RateLimiter:
    """
    In-process rate limiter with temporary bans.

    Example:
        limiter = RateLimiter(max_requests_per_minute=10)
        decision = limiter.acquire(owner)
        if not decision.allowed:
            raise RateLimitedError(retry_after=decision.retry_after)
    """

    def __init__(
        self,
        store: Optional[RateLimitStore] = None,
        *,
        max_requests_per_minute: int = 10,
        max_gas_per_hour: int = 1_000_000,
        window_seconds: float = 60.0,
        gas_window_seconds: float = 3600.0,
        sweep_interval: float = 300.0,
        clock: Clock = time.time,
    ) -> None:
        self.store = store if store is not None else InMemoryRateLimitStore()
        self.max_requests = max_requests_per_minute
        self.max_gas = max_gas_per_hour
        self.window = window_seconds
        self.gas_window = gas_window_seconds
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._lock = threading.RLock()
        self._sweep_task: Optional[asyncio.Task] = None

    @staticmethod
    def _key(identifier: str) -> str:
        return identifier.lower()

    # ==================== Admission ====================

    def check_limit(self, identifier: str) -> RateLimitDecision:
        """
        Check whether ``identifier`` may make another request.

        Consults the ban map first, then the request window. Creates the
        entry lazily and rolls expired windows forward. Does not count the
        request; see ``increment_count`` and ``acquire``.
        """
        with self._lock:
            return self._check(self._key(identifier), self._clock())

    def increment_count(self, identifier: str) -> None:
        """Count one request. No-op for identifiers never checked."""
        with self._lock:
            key = self._key(identifier)
            entry = self.store.get_entry(key)
            if entry is None:
                return
            entry.count += 1
            self.store.put_entry(key, entry)

    def acquire(self, identifier: str) -> RateLimitDecision:
        """Atomically check the limit and, if allowed, count the request."""
        with self._lock:
            key = self._key(identifier)
            decision = self._check(key, self._clock())
            if not decision.allowed:
                return decision
            entry = self.store.get_entry(key)
            entry.count += 1
            self.store.put_entry(key, entry)
            return RateLimitDecision(True, window_end=entry.reset_time)

    def release(self, identifier: str, window_end: Optional[float] = None) -> None:
        """
        Give back a slot taken by ``acquire``.

        When ``window_end`` is given, the slot is only returned if the
        request window it was charged to is still the current one.
        """
        with self._lock:
            key = self._key(identifier)
            entry = self.store.get_entry(key)
            if entry is None or entry.count == 0:
                return
            if window_end is not None and entry.reset_time != window_end:
                return
            entry.count -= 1
            self.store.put_entry(key, entry)

    def _check(self, key: str, now: float) -> RateLimitDecision:
        ban_until = self.store.get_ban(key)
        if ban_until is not None:
            if now < ban_until:
                return RateLimitDecision(False, math.ceil(ban_until - now))
            self.store.delete_ban(key)

        entry = self._touch(key, now)

        if entry.count >= self.max_requests:
            return RateLimitDecision(False, max(1, math.ceil(entry.reset_time - now)))
        return RateLimitDecision(True)

    def _touch(self, key: str, now: float) -> RateLimitEntry:
        entry = self.store.get_entry(key)
        if entry is None:
            entry = RateLimitEntry(count=0, reset_time=now + self.window, gas_used=0, last_reset=now)
        if now >= entry.reset_time:
            entry.count = 0
            entry.reset_time = now + self.window
        if now >= entry.last_reset + self.gas_window:
            entry.gas_used = 0
            entry.last_reset = now
        self.store.put_entry(key, entry)
        return entry

    # ==================== Gas Budget ====================

    def add_gas_usage(self, identifier: str, gas_used: int) -> bool:
        """
        Charge ``gas_used`` against the identifier's hourly budget.

        Returns:
            False, without recording the usage, when the new total would
            exceed the cap (the identifier is then banned for one gas
            window) or when the identifier has no entry; True otherwise.
        """
        with self._lock:
            key = self._key(identifier)
            entry = self.store.get_entry(key)
            if entry is None:
                return False

            now = self._clock()
            if now >= entry.last_reset + self.gas_window:
                entry.gas_used = 0
                entry.last_reset = now

            new_total = entry.gas_used + gas_used
            if new_total > self.max_gas:
                self.store.put_ban(key, now + self.gas_window)
                log_event(LOGGER, logging.WARNING, "Gas budget exceeded, identifier banned",
                          identifier=key, gasUsed=str(new_total), banSeconds=self.gas_window)
                return False

            entry.gas_used = new_total
            self.store.put_entry(key, entry)
            return True

    # ==================== Bans ====================

    def ban_wallet(self, identifier: str, duration: float) -> None:
        """Ban ``identifier`` for ``duration`` seconds from now."""
        with self._lock:
            key = self._key(identifier)
            self.store.put_ban(key, self._clock() + duration)
        log_event(LOGGER, logging.WARNING, "Identifier banned", identifier=key, durationSeconds=duration)

    def is_banned(self, identifier: str) -> bool:
        with self._lock:
            ban_until = self.store.get_ban(self._key(identifier))
            return ban_until is not None and self._clock() < ban_until

    # ==================== Introspection ====================

    def get_usage_stats(self, identifier: str) -> Optional[UsageStats]:
        with self._lock:
            entry = self.store.get_entry(self._key(identifier))
            if entry is None:
                return None
            return UsageStats(
                request_count=entry.count,
                gas_used=entry.gas_used,
                reset_time=entry.reset_time,
                gas_reset_time=entry.last_reset + self.gas_window,
            )

    # ==================== Maintenance ====================

    def sweep(self) -> int:
        """Delete entries whose both windows expired and expired bans. Returns entries removed."""
        removed = 0
        with self._lock:
            now = self._clock()
            for key, entry in self.store.entries():
                if now >= entry.reset_time and now >= entry.last_reset + self.gas_window:
                    self.store.delete_entry(key)
                    removed += 1
            for key, ban_until in self.store.bans():
                if now >= ban_until:
                    self.store.delete_ban(key)
        return removed

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            removed = self.sweep()
            if removed:
                log_event(LOGGER, logging.DEBUG, "Rate limiter sweep", removed=removed)

    def start(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.get_running_loop().create_task(self._sweep_loop())

    async def stop(self) -> None:
        """Cancel the sweep task and wait for it to finish."""
        task, self._sweep_task = self._sweep_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
