"""Turning discovered addresses and ECS meta names into transport endpoints."""

from __future__ import annotations

import ipaddress
import logging
import socket

from .discovery.models import SeedAddress
from .exceptions import MetadataError, ResolutionError
from .metadata import EcsMetadataClient

logger = logging.getLogger(__name__)

DEFAULT_TRANSPORT_PORT = 9300


def split_host_port(address: str, default_port: int) -> tuple[str, int]:
    """Split ``host``, ``host:port``, ``[v6]`` or ``[v6]:port``; bare IPv6 keeps the default port."""
    address = address.strip()
    if not address:
        raise ResolutionError("Empty address")

    if address.startswith("["):
        host, sep, rest = address[1:].partition("]")
        if not sep:
            raise ResolutionError(f"Unterminated IPv6 literal in {address!r}")
        port_str = rest[1:] if rest.startswith(":") else ""
    elif address.count(":") == 1:
        host, _, port_str = address.partition(":")
    else:
        host, port_str = address, ""

    if not port_str:
        return host, default_port
    try:
        port = int(port_str)
    except ValueError:
        raise ResolutionError(f"Invalid port in address {address!r}") from None
    if not 0 < port < 65536:
        raise ResolutionError(f"Port out of range in address {address!r}")
    return host, port


class TransportAddressResolver:
    """Resolves a host name or IP into seed addresses on a single transport port."""

    def __init__(self, default_port: int = DEFAULT_TRANSPORT_PORT):
        self._default_port = default_port

    def resolve(self, address: str) -> list[SeedAddress]:
        host, port = split_host_port(address, self._default_port)
        try:
            infos = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)
        except socket.gaierror as exc:
            raise ResolutionError(f"Failed to resolve {host!r}: {exc}") from exc

        seeds: list[SeedAddress] = []
        for _family, _type, _proto, _canonname, sockaddr in infos:
            seed = SeedAddress(sockaddr[0], port)
            if seed not in seeds:
                seeds.append(seed)
        return seeds


# config name -> EcsMetadataClient getter
_META_NAMES = {
    "ecs:privateIpv4": "get_private_ipv4",
    "ecs:publicIpv4": "get_public_ipv4",
    "ecs:publicIp": "get_public_ipv4",
    "ecs:privateIp": "get_private_ipv4",
    "ecs": "get_private_ipv4",
}


class MetadataNameResolver:
    """Resolves ``_ecs_``, ``_ecs:privateIp_`` and friends to this instance's own address."""

    def __init__(self, metadata_client: EcsMetadataClient):
        self._metadata = metadata_client

    def resolve_if_possible(self, value: str) -> list[ipaddress.IPv4Address | ipaddress.IPv6Address] | None:
        name = value.strip("_")
        getter = _META_NAMES.get(name)
        if getter is None:
            return None

        logger.debug("Obtaining ECS address for [%s] with %s", name, getter)
        try:
            result = getattr(self._metadata, getter)()
        except MetadataError as exc:
            raise MetadataError(
                f"Failed to fetch address for [{name}] from metadata: {exc}", url=exc.url,
            ) from exc

        if not result:
            raise MetadataError(f"No ECS metadata returned for [{name}]")
        line = result.splitlines()[0]
        try:
            return [ipaddress.ip_address(line)]
        except ValueError as exc:
            raise MetadataError(f"Metadata for [{name}] is not an IP address: {line!r}") from exc
