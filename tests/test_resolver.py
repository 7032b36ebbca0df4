"""Tests for transport address and ECS meta-name resolution."""

import ipaddress
import socket
from unittest.mock import MagicMock, patch

import pytest
import responses

from ecs_seed_discovery.discovery import AddressResolver
from ecs_seed_discovery.discovery.models import SeedAddress
from ecs_seed_discovery.exceptions import MetadataError, MetadataNotFoundError, ResolutionError
from ecs_seed_discovery.metadata import EcsMetadataClient
from ecs_seed_discovery.resolver import (
    MetadataNameResolver,
    TransportAddressResolver,
    split_host_port,
)


class TestSplitHostPort:
    @pytest.mark.parametrize("address,expected", [
        ("10.0.0.1", ("10.0.0.1", 9300)),
        ("10.0.0.1:9301", ("10.0.0.1", 9301)),
        ("node-1.internal", ("node-1.internal", 9300)),
        ("node-1.internal:9400", ("node-1.internal", 9400)),
        ("[fe80::1]", ("fe80::1", 9300)),
        ("[fe80::1]:9305", ("fe80::1", 9305)),
        ("fe80::1", ("fe80::1", 9300)),
        ("  10.0.0.1  ", ("10.0.0.1", 9300)),
    ])
    def test_valid(self, address, expected):
        assert split_host_port(address, 9300) == expected

    @pytest.mark.parametrize("address", ["", "   ", "10.0.0.1:http", "10.0.0.1:70000", "[fe80::1"])
    def test_invalid(self, address):
        with pytest.raises(ResolutionError):
            split_host_port(address, 9300)


class TestTransportAddressResolver:
    def test_is_an_address_resolver(self):
        assert isinstance(TransportAddressResolver(), AddressResolver)

    def test_numeric_ip(self):
        assert TransportAddressResolver(9300).resolve("127.0.0.1") == [SeedAddress("127.0.0.1", 9300)]

    def test_explicit_port_wins(self):
        assert TransportAddressResolver(9300).resolve("127.0.0.1:9555") == [SeedAddress("127.0.0.1", 9555)]

    def test_duplicates_removed(self):
        infos = [
            (socket.AF_INET, socket.SOCK_STREAM, 6, "", ("10.0.0.7", 9300)),
            (socket.AF_INET, socket.SOCK_STREAM, 6, "", ("10.0.0.7", 9300)),
            (socket.AF_INET, socket.SOCK_STREAM, 6, "", ("10.0.0.8", 9300)),
        ]
        with patch("ecs_seed_discovery.resolver.socket.getaddrinfo", return_value=infos):
            seeds = TransportAddressResolver(9300).resolve("search.internal")
        assert seeds == [SeedAddress("10.0.0.7", 9300), SeedAddress("10.0.0.8", 9300)]

    def test_lookup_failure(self):
        with patch(
            "ecs_seed_discovery.resolver.socket.getaddrinfo",
            side_effect=socket.gaierror(socket.EAI_NONAME, "Name or service not known"),
        ):
            with pytest.raises(ResolutionError, match="no-such-host"):
                TransportAddressResolver().resolve("no-such-host")


class TestMetadataNameResolver:
    def _resolver(self, private="172.16.0.5", public="47.0.0.5"):
        client = MagicMock()
        client.get_private_ipv4.return_value = private
        client.get_public_ipv4.return_value = public
        return MetadataNameResolver(client), client

    @pytest.mark.parametrize("name,getter,expected", [
        ("_ecs_", "get_private_ipv4", "172.16.0.5"),
        ("_ecs:privateIp_", "get_private_ipv4", "172.16.0.5"),
        ("_ecs:privateIpv4_", "get_private_ipv4", "172.16.0.5"),
        ("_ecs:publicIp_", "get_public_ipv4", "47.0.0.5"),
        ("_ecs:publicIpv4_", "get_public_ipv4", "47.0.0.5"),
    ])
    def test_known_names(self, name, getter, expected):
        resolver, client = self._resolver()
        assert resolver.resolve_if_possible(name) == [ipaddress.ip_address(expected)]
        getattr(client, getter).assert_called_once_with()

    def test_unknown_name(self):
        resolver, client = self._resolver()
        assert resolver.resolve_if_possible("_site_") is None
        client.get_private_ipv4.assert_not_called()
        client.get_public_ipv4.assert_not_called()

    def test_empty_metadata(self):
        resolver, _ = self._resolver(private="")
        with pytest.raises(MetadataError, match="No ECS metadata"):
            resolver.resolve_if_possible("_ecs_")

    def test_non_ip_metadata(self):
        resolver, _ = self._resolver(private="<html>")
        with pytest.raises(MetadataError, match="not an IP address"):
            resolver.resolve_if_possible("_ecs_")

    def test_metadata_failure_wrapped(self):
        client = MagicMock()
        client.get_public_ipv4.side_effect = MetadataNotFoundError("Invalid metadata url", url="http://x/")
        with pytest.raises(MetadataError, match=r"\[ecs:publicIp\]") as exc_info:
            MetadataNameResolver(client).resolve_if_possible("_ecs:publicIp_")
        assert exc_info.value.url == "http://x/"

    @responses.activate
    def test_reads_metadata_service(self):
        responses.add(
            responses.GET, "http://100.100.100.200/latest/meta-data/public-ipv4", body="47.0.0.9\n",
        )
        resolver = MetadataNameResolver(EcsMetadataClient())
        assert resolver.resolve_if_possible("_ecs:publicIpv4_") == [ipaddress.ip_address("47.0.0.9")]
