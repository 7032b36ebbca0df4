"""Reference-counted, hot-reloadable access to the ECS client.

The manager advertises one current client at a time. ``reload()`` swaps in new
settings; the superseded client stays usable by callers that already borrowed
it and is closed when the last of them releases it.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Protocol

from ..exceptions import LifecycleError
from .credentials import ClientSettings
from .ecs_client import EcsApi

logger = logging.getLogger(__name__)


class ClosableClient(Protocol):
    def close(self) -> None: ...


ClientFactory = Callable[[ClientSettings], ClosableClient]


class EcsClientReference:
    """A borrowed handle on a shared client. Release it with ``close()`` or a ``with`` block."""

    def __init__(self, client: ClosableClient, settings: ClientSettings):
        self._client = client
        self._settings = settings
        self._lock = threading.Lock()
        self._ref_count = 1

    @property
    def client(self):
        return self._client

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def ref_count(self) -> int:
        with self._lock:
            return self._ref_count

    def inc_ref(self) -> None:
        with self._lock:
            if self._ref_count <= 0:
                raise LifecycleError("ECS client reference is already closed")
            self._ref_count += 1

    def dec_ref(self) -> bool:
        """Drop one reference. Returns True if this released the underlying client."""
        with self._lock:
            if self._ref_count <= 0:
                raise LifecycleError("ECS client reference released more times than acquired")
            self._ref_count -= 1
            if self._ref_count > 0:
                return False

        logger.debug("Last reference released, closing ECS client for region %s", self._settings.region)
        self._client.close()
        return True

    def close(self) -> None:
        self.dec_ref()

    def __enter__(self) -> EcsClientReference:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class _LazyClient:
    """Builds the client for one settings snapshot on first use and holds one reference to it."""

    def __init__(self, settings: ClientSettings, factory: ClientFactory):
        self._settings = settings
        self._factory = factory
        self._lock = threading.Lock()
        self._reference: EcsClientReference | None = None
        self._retired = False

    def acquire(self) -> EcsClientReference | None:
        """Borrow the client, building it if needed. None once this cell was reset."""
        with self._lock:
            if self._retired:
                return None
            if self._reference is None:
                logger.debug("Building ECS client for region %s", self._settings.region)
                self._reference = EcsClientReference(self._factory(self._settings), self._settings)
            self._reference.inc_ref()
            return self._reference

    def reset(self) -> None:
        """Retire the cell and drop the reference it holds on its own client."""
        with self._lock:
            self._retired = True
            reference, self._reference = self._reference, None
        if reference is not None:
            reference.dec_ref()


class EcsClientManager:
    """Owns the current ECS client and swaps it atomically on reload."""

    def __init__(self, client_factory: ClientFactory = EcsApi):
        self._factory = client_factory
        self._lock = threading.Lock()
        self._current: _LazyClient | None = None

    def client(self) -> EcsClientReference:
        """Borrow the current client. The caller must release the returned reference."""
        while True:
            with self._lock:
                current = self._current
            if current is None:
                raise LifecycleError("Missing ecs client configs")
            reference = current.acquire()
            if reference is not None:
                return reference
            # The cell was retired by a concurrent reload; pick up its replacement

    def reload(self, settings: ClientSettings) -> None:
        """Use ``settings`` for every client borrowed from now on."""
        new_cell = _LazyClient(settings, self._factory)
        with self._lock:
            old_cell, self._current = self._current, new_cell
        logger.info(
            "ECS client settings reloaded",
            extra={"region": settings.region, "credentials": type(settings.credentials).__name__},
        )
        if old_cell is not None:
            old_cell.reset()

    def close(self) -> None:
        with self._lock:
            old_cell, self._current = self._current, None
        if old_cell is not None:
            old_cell.reset()

    def __enter__(self) -> EcsClientManager:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
