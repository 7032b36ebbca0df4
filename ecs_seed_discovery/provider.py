"""Seed hosts provider: the entry point the host calls once per discovery round."""

from __future__ import annotations

import logging
import time

from .discovery import AddressResolver
from .discovery.cache import SeedAddressCache
from .discovery.client_manager import EcsClientManager
from .discovery.filters import HostType, build_seed_addresses
from .discovery.inventory import InventoryQuery
from .discovery.models import FilterCriteria, SeedAddress

logger = logging.getLogger(__name__)


class EcsSeedHostsProvider:
    """Discovers peer addresses from ECS: query -> filter -> resolve, cached for ``refresh_interval``."""

    def __init__(
        self,
        client_manager: EcsClientManager,
        criteria: FilterCriteria,
        resolver: AddressResolver,
        refresh_interval: float = 10.0,
    ):
        self._criteria = criteria
        self._resolver = resolver
        self._query = InventoryQuery(client_manager, criteria)
        self._cache = SeedAddressCache(self._fetch_seed_addresses, refresh_interval)

        logger.debug(
            "Using host_type [%s], tags [%s], groups [%s] with any_group [%s], zone_ids [%s]",
            criteria.host_type,
            {key: sorted(values) for key, values in criteria.tags.items()},
            sorted(criteria.groups),
            criteria.any_group,
            sorted(criteria.zone_ids),
        )

    def get_seed_addresses(self) -> list[SeedAddress]:
        """Candidate peer addresses for this discovery round."""
        return self._cache.get_or_refresh()

    def _fetch_seed_addresses(self) -> list[SeedAddress]:
        start = time.monotonic()
        # An unknown host type fails the round before any API call
        HostType.parse(self._criteria.host_type)
        instances = self._query.fetch_instances()
        seeds = build_seed_addresses(instances, self._criteria, self._resolver)
        logger.info(
            "Discovered %d seed addresses from %d instances", len(seeds), len(instances),
            extra={
                "total_instances": len(instances),
                "seed_count": len(seeds),
                "elapsed_seconds": round(time.monotonic() - start, 2),
            },
        )
        return seeds
