"""Discovery plugin: wires configuration, the ECS client manager and the seed hosts provider."""

from __future__ import annotations

import logging
from collections.abc import Callable

from .config import AppConfig
from .discovery import AddressResolver
from .discovery.client_manager import EcsClientManager
from .discovery.credentials import client_settings_from_config
from .discovery.models import FilterCriteria
from .exceptions import DiscoveryError, MetadataError
from .metadata import EcsMetadataClient
from .provider import EcsSeedHostsProvider
from .resolver import MetadataNameResolver, TransportAddressResolver

logger = logging.getLogger(__name__)

ECS = "ecs"
ZONE_ID_ATTRIBUTE = "alicloud_zone_id"


class EcsDiscoveryPlugin:
    """Registers the ``ecs`` seed hosts provider and keeps its client settings reloadable."""

    def __init__(
        self,
        config: AppConfig,
        client_manager: EcsClientManager | None = None,
        metadata_client: EcsMetadataClient | None = None,
    ):
        self._config = config
        self._client_manager = client_manager or EcsClientManager()
        self._metadata = metadata_client or EcsMetadataClient.from_config(config.metadata)
        self.reload(config)

    @property
    def client_manager(self) -> EcsClientManager:
        return self._client_manager

    def reload(self, config: AppConfig) -> None:
        """Re-read credentials, region and endpoint; in-flight callers keep their old client."""
        settings = client_settings_from_config(config.ecs)
        self._client_manager.reload(settings)

    def seed_hosts_providers(
        self, resolver: AddressResolver | None = None,
    ) -> dict[str, Callable[[], EcsSeedHostsProvider]]:
        if resolver is None:
            resolver = TransportAddressResolver(self._config.discovery.transport_port)
        return {ECS: lambda: self.build_provider(resolver)}

    def build_provider(self, resolver: AddressResolver) -> EcsSeedHostsProvider:
        discovery = self._config.discovery
        return EcsSeedHostsProvider(
            self._client_manager,
            FilterCriteria.from_config(discovery),
            resolver,
            refresh_interval=discovery.node_cache_time,
        )

    def name_resolver(self) -> MetadataNameResolver:
        logger.debug("Register _ecs_, _ecs:xxx_ network names")
        return MetadataNameResolver(self._metadata)

    def node_attributes(self) -> dict[str, str]:
        """Node attributes describing this instance; the zone id when auto attributes are on."""
        if not self._config.node.auto_attributes:
            return {}

        logger.debug("Obtaining ECS [zone-id] from ECS metadata")
        try:
            zone_id = self._metadata.get_zone_id(retries=self._config.metadata.retries)
        except MetadataError:
            logger.error("Failed to get ECS metadata for [zone-id]", exc_info=True)
            return {}

        if not zone_id:
            raise DiscoveryError("No ECS [zone-id] metadata returned")
        return {ZONE_ID_ATTRIBUTE: zone_id}

    def close(self) -> None:
        self._client_manager.close()
        self._metadata.close()

    def __enter__(self) -> EcsDiscoveryPlugin:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
