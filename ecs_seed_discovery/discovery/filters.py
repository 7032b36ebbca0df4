"""Zone, tag and security-group filtering plus host-type address extraction."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from ..exceptions import ConfigError, ResolutionError
from . import AddressResolver
from .models import FilterCriteria, InstanceRecord, SeedAddress

logger = logging.getLogger(__name__)

PRIVATE_IP = "private_ip"
PUBLIC_IP = "public_ip"
TAG_PREFIX = "tag:"


@dataclass(frozen=True)
class HostType:
    """How a seed address is read from an instance: private IP, public IP or a tag value."""

    kind: str
    tag_name: str | None = None

    @classmethod
    def parse(cls, value: str) -> HostType:
        if value == PRIVATE_IP:
            return cls(PRIVATE_IP)
        if value == PUBLIC_IP:
            return cls(PUBLIC_IP)
        if value.startswith(TAG_PREFIX) and len(value) > len(TAG_PREFIX):
            return cls(TAG_PREFIX, value[len(TAG_PREFIX):])
        raise ConfigError(f"{value} is unknown for discovery.ecs.host_type")


class InstanceFilter:
    """Applies zone (membership), tag (OR within a key, AND across keys) and group filters."""

    def __init__(self, criteria: FilterCriteria):
        self._zone_ids = criteria.zone_ids
        self._tags = criteria.tags
        self._groups = criteria.groups
        self._any_group = criteria.any_group

    def apply(self, instances: Iterable[InstanceRecord]) -> list[InstanceRecord]:
        instances = list(instances)
        result = [inst for inst in instances if self.matches(inst)]
        filtered = len(instances) - len(result)
        if filtered:
            logger.debug("Instance filter removed %d of %d instances", filtered, len(instances))
        return result

    def matches(self, instance: InstanceRecord) -> bool:
        if self._zone_ids and instance.zone_id not in self._zone_ids:
            logger.debug(
                "Filtering out instance %s based on zone %s, not part of %s",
                instance.instance_id, instance.zone_id, sorted(self._zone_ids),
            )
            return False

        for key, values in self._tags.items():
            if not any(value in values for value in instance.tag_values(key)):
                logger.debug(
                    "Filtering out instance %s based on tag %s, not one of %s",
                    instance.instance_id, key, sorted(values),
                )
                return False

        if self._groups:
            if self._any_group:
                if self._groups.isdisjoint(instance.security_group_ids):
                    logger.debug(
                        "Filtering out instance %s based on groups %s, not part of %s",
                        instance.instance_id, sorted(instance.security_group_ids), sorted(self._groups),
                    )
                    return False
            elif not self._groups <= instance.security_group_ids:
                logger.debug(
                    "Filtering out instance %s based on groups %s, does not include all of %s",
                    instance.instance_id, sorted(instance.security_group_ids), sorted(self._groups),
                )
                return False

        return True


def extract_address(instance: InstanceRecord, host_type: HostType) -> str | None:
    """The raw address for ``instance`` under ``host_type``; None when it has none."""
    if host_type.kind == PRIVATE_IP:
        return instance.private_ips[0] if instance.private_ips else None
    if host_type.kind == PUBLIC_IP:
        return instance.public_ip
    return instance.tag(host_type.tag_name)


def build_seed_addresses(
    instances: Iterable[InstanceRecord],
    criteria: FilterCriteria,
    resolver: AddressResolver,
) -> list[SeedAddress]:
    """Filter instances and resolve their addresses, preserving instance order."""
    host_type = HostType.parse(criteria.host_type)
    seeds: list[SeedAddress] = []

    for instance in InstanceFilter(criteria).apply(instances):
        if host_type.kind == PRIVATE_IP and instance.private_ips is None:
            logger.debug("Filtering out instance %s, classic network is not supported", instance.instance_id)
            continue

        address = extract_address(instance, host_type)
        if address is None:
            logger.debug(
                "Not adding %s, address is null, host_type %s",
                instance.instance_id, criteria.host_type,
            )
            continue

        try:
            resolved = resolver.resolve(address)
        except (ResolutionError, OSError, ValueError):
            logger.warning(
                "Failed to add %s, address %s", instance.instance_id, address, exc_info=True,
            )
            continue

        for seed in resolved:
            logger.debug("Adding %s, address %s, transport_address %s", instance.instance_id, address, seed)
            seeds.append(seed)

    return seeds
