"""
Enforcement Policy & Address Resolution Tests.

Proves:
  1. Loopback / link-local only bindings are NOT enforced
  2. Any routable bound or publish address IS enforced
  3. Host settings resolve to the expected bindings
  4. IPv4-mapped addresses classify as their IPv4 form
  5. Only _local_ is a special host value
"""

import socket
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

PROJECT_ROOT = Path(__file__).parent.parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from searchnode.config.settings import Settings, SettingsError
from searchnode.network.addresses import (
    BoundTransportAddress,
    TransportAddress,
    resolve_bound_address,
    resolve_host,
)
from searchnode.startup.enforcement import enforce_limits

LOCAL_HOSTS = [
    "127.0.0.1", "127.0.1.1", "::1", "169.254.10.20", "fe80::1",
    "::ffff:127.0.0.1", "::ffff:169.254.1.1",
]
ROUTABLE_HOSTS = [
    "10.0.0.5", "192.168.1.10", "8.8.8.8", "0.0.0.0", "2001:db8::1",
    "::ffff:10.0.0.5",
]


def _addr(host, port=9300):
    return TransportAddress(host, port)


def _bound(bound_hosts, publish_host):
    return BoundTransportAddress(
        bound_addresses=tuple(_addr(h) for h in bound_hosts),
        publish_address=_addr(publish_host),
    )


class TestTransportAddress:

    @pytest.mark.parametrize("host", LOCAL_HOSTS)
    def test_local_addresses(self, host):
        """Loopback and link-local addresses classify as local."""
        assert _addr(host).is_loopback_or_link_local() is True

    @pytest.mark.parametrize("host", ROUTABLE_HOSTS)
    def test_routable_addresses(self, host):
        """Routable and wildcard addresses classify as non-local."""
        assert _addr(host).is_loopback_or_link_local() is False

    def test_hostname_is_not_local(self):
        """An unresolved name is never assumed local."""
        assert _addr("node-1.example.com").is_loopback_or_link_local() is False

    def test_str(self):
        """IPv6 hosts are bracketed."""
        assert str(_addr("127.0.0.1")) == "127.0.0.1:9300"
        assert str(_addr("::1")) == "[::1]:9300"


class TestEnforceLimits:

    def test_all_local_not_enforced(self):
        """All-local bindings only warn."""
        assert enforce_limits(_bound(LOCAL_HOSTS, "127.0.0.1")) is False

    @pytest.mark.parametrize("publish", LOCAL_HOSTS)
    def test_local_publish_variants_not_enforced(self, publish):
        """Any local publish address keeps advisory mode."""
        assert enforce_limits(_bound(["127.0.0.1"], publish)) is False

    @pytest.mark.parametrize("routable", ROUTABLE_HOSTS)
    def test_routable_bound_address_enforced(self, routable):
        """One routable bound address forces enforcement."""
        assert enforce_limits(_bound(["127.0.0.1", routable], "127.0.0.1")) is True

    @pytest.mark.parametrize("routable", ROUTABLE_HOSTS)
    def test_routable_publish_address_enforced(self, routable):
        """A routable publish address forces enforcement."""
        assert enforce_limits(_bound(["127.0.0.1"], routable)) is True

    def test_all_routable_enforced(self):
        """Fully exposed node is enforced."""
        assert enforce_limits(_bound(["10.0.0.5"], "10.0.0.5")) is True


class TestResolveBoundAddress:

    def test_default_is_local(self):
        """Default settings bind loopback only."""
        bound = resolve_bound_address(Settings.load(environ={}))
        hosts = [a.host for a in bound.bound_addresses]
        assert hosts == ["127.0.0.1", "::1"]
        assert bound.publish_address == TransportAddress("127.0.0.1", 9300)
        assert enforce_limits(bound) is False

    def test_network_host_applies_to_both(self):
        """network.host sets both bind and publish."""
        bound = resolve_bound_address(Settings({
            "network.host": "10.1.2.3",
            "transport.tcp.port": "9400",
        }))
        assert bound.bound_addresses == (TransportAddress("10.1.2.3", 9400),)
        assert bound.publish_address == TransportAddress("10.1.2.3", 9400)
        assert enforce_limits(bound) is True

    def test_publish_host_overrides(self):
        """network.publish_host overrides the publish side only."""
        bound = resolve_bound_address(Settings({
            "network.host": "_local_",
            "network.publish_host": "192.168.0.7",
        }))
        assert all(a.is_loopback_or_link_local() for a in bound.bound_addresses)
        assert bound.publish_address.host == "192.168.0.7"
        assert enforce_limits(bound) is True

    def test_wildcard_is_enforced(self):
        """Binding 0.0.0.0 exposes the node."""
        bound = resolve_bound_address(Settings({
            "network.bind_host": "0.0.0.0",
            "network.publish_host": "127.0.0.1",
        }))
        assert enforce_limits(bound) is True

    def test_literal_ip_is_not_looked_up(self):
        """Literal IPs bypass the resolver."""
        assert resolve_host(" 127.0.0.1 ") == ["127.0.0.1"]

    def test_ipv6_wildcard_is_enforced(self):
        """Binding :: exposes the node too."""
        bound = resolve_bound_address(Settings({"network.host": "::"}))
        assert [a.host for a in bound.bound_addresses] == ["::"]
        assert enforce_limits(bound) is True

    def test_underscore_names_are_not_wildcard_aliases(self):
        """_site_ goes to the resolver instead of silently binding every interface."""
        with patch.object(socket, "getaddrinfo",
                          side_effect=socket.gaierror("Name or service not known")) as lookup:
            with pytest.raises(SettingsError, match=r"failed to resolve host \[_site_\]"):
                resolve_host("_site_")
        assert lookup.call_args[0][0] == "_site_"

    def test_ipv4_mapped_loopback_bindings_not_enforced(self):
        """A node bound to ::ffff:127.0.0.1 is still local-only."""
        bound = resolve_bound_address(Settings({"network.host": "::ffff:127.0.0.1"}))
        assert enforce_limits(bound) is False
