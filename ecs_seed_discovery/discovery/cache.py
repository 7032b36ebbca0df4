"""Bounded-time, single-flight cache around the seed address fetch."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from .models import CachedResult, SeedAddress

logger = logging.getLogger(__name__)


class SeedAddressCache:
    """Holds the last fetched seed list for ``refresh_interval`` seconds.

    An empty result is stored but does not count as populated, so the next call
    fetches again instead of waiting out the interval. Callers that arrive while a
    refresh is running wait for it and share its result.
    """

    def __init__(
        self,
        fetch: Callable[[], list[SeedAddress]],
        refresh_interval: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._fetch = fetch
        self._refresh_interval = refresh_interval
        self._clock = clock
        self._lock = threading.Lock()
        self._cached: CachedResult | None = None
        self._empty = True
        self._generation = 0

    @property
    def cached(self) -> CachedResult | None:
        return self._cached

    def _needs_refresh(self) -> bool:
        if self._empty or self._cached is None:
            return True
        return self._clock() - self._cached.fetched_at >= self._refresh_interval

    def get_or_refresh(self) -> list[SeedAddress]:
        observed = self._generation
        with self._lock:
            if self._generation != observed and self._cached is not None:
                # A refresh finished while we waited for the lock
                return list(self._cached.addresses)

            if not self._needs_refresh():
                return list(self._cached.addresses)

            addresses = self._fetch()
            self._cached = CachedResult(addresses=tuple(addresses), fetched_at=self._clock())
            self._empty = not addresses
            self._generation += 1
            logger.debug("Seed address cache refreshed with %d addresses", len(addresses))
            return list(addresses)
