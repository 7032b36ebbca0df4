"""Data models for ECS instances, filter criteria and resolved seed addresses."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, NamedTuple

from ..config import DiscoveryConfig, as_list


@dataclass(frozen=True)
class InstanceRecord:
    """A single ECS instance as returned by DescribeInstances."""

    instance_id: str
    zone_id: str
    status: str
    security_group_ids: frozenset[str] = frozenset()
    private_ips: tuple[str, ...] | None = None  # None = no VPC attributes (classic network)
    public_ip: str | None = None
    tags: tuple[tuple[str, str], ...] = ()

    def tag(self, key: str) -> str | None:
        """Value of the first tag named *key*, or None."""
        for tag_key, tag_value in self.tags:
            if tag_key == key:
                return tag_value
        return None

    def tag_values(self, key: str) -> list[str]:
        return [value for tag_key, value in self.tags if tag_key == key]


@dataclass(frozen=True)
class FilterCriteria:
    """Client-side filters and host type, fixed for the lifetime of a provider."""

    zone_ids: frozenset[str] = frozenset()
    groups: frozenset[str] = frozenset()
    any_group: bool = True
    tags: Mapping[str, frozenset[str]] = field(default_factory=dict)
    host_type: str = "private_ip"

    def __post_init__(self) -> None:
        # Read-only copy; the filter and the inventory query share it
        object.__setattr__(self, "tags", MappingProxyType(dict(self.tags)))

    @classmethod
    def from_config(cls, config: DiscoveryConfig) -> FilterCriteria:
        return cls(
            zone_ids=frozenset(as_list(config.zone_ids)),
            groups=frozenset(as_list(config.groups)),
            any_group=config.any_group,
            tags={key: frozenset(as_list(values)) for key, values in config.tags.items()},
            host_type=config.host_type,
        )

    @property
    def single_value_tags(self) -> dict[str, str]:
        """Tag keys with exactly one acceptable value; these are filtered by the API."""
        return {key: next(iter(values)) for key, values in self.tags.items() if len(values) == 1}

    @property
    def multi_value_tags(self) -> dict[str, frozenset[str]]:
        """Tag keys with several acceptable values; the API only checks that the key exists."""
        return {key: values for key, values in self.tags.items() if len(values) > 1}


class SeedAddress(NamedTuple):
    """A transport endpoint offered to the host as a candidate peer."""

    host: str
    port: int

    def __str__(self) -> str:
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class CachedResult:
    addresses: tuple[SeedAddress, ...]
    fetched_at: float


def parse_instance(raw: dict[str, Any]) -> InstanceRecord:
    """Parse one entry of ``Instances.Instance`` from the DescribeInstances response body."""
    groups = raw.get("SecurityGroupIds") or {}
    tags = (raw.get("Tags") or {}).get("Tag") or []

    return InstanceRecord(
        instance_id=raw.get("InstanceId", ""),
        zone_id=raw.get("ZoneId", ""),
        status=raw.get("Status", ""),
        security_group_ids=frozenset(groups.get("SecurityGroupId") or []),
        private_ips=_parse_private_ips(raw.get("VpcAttributes")),
        public_ip=_parse_public_ip(raw),
        tags=tuple((t.get("TagKey", ""), t.get("TagValue", "")) for t in tags),
    )


def _parse_private_ips(vpc: dict[str, Any] | None) -> tuple[str, ...] | None:
    if not vpc:
        return None
    addresses = tuple((vpc.get("PrivateIpAddress") or {}).get("IpAddress") or [])
    if not vpc.get("VpcId") and not addresses:
        return None
    return addresses


def _parse_public_ip(raw: dict[str, Any]) -> str | None:
    """EIP address first, then the first allocated public IP."""
    eip = (raw.get("EipAddress") or {}).get("IpAddress")
    if eip:
        return eip
    public = (raw.get("PublicIpAddress") or {}).get("IpAddress") or []
    return public[0] if public else None


def parse_instances(body: dict[str, Any]) -> list[InstanceRecord]:
    """Parse all instances of one DescribeInstances page."""
    raw_instances = (body.get("Instances") or {}).get("Instance") or []
    return [parse_instance(raw) for raw in raw_instances]
