"""ECS discovery package: inventory query, filters, client lifecycle and result cache."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .models import SeedAddress


@runtime_checkable
class AddressResolver(Protocol):
    """Host-provided translation of a textual address into transport endpoints."""

    def resolve(self, address: str) -> list[SeedAddress]:
        """Return zero or more endpoints for ``address``; raise ResolutionError on failure."""
        ...
