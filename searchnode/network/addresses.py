"""
Transport address resolution for the node bindings.

Turns network.bind_host / network.publish_host (falling back to
network.host) into concrete addresses, each classifiable as
loopback-or-link-local or not.

Special host values:
  _local_        loopback addresses (127.0.0.1 and ::1)
  0.0.0.0, ::    wildcard, binds every interface

No other _name_ aliases exist; they resolve like any other host name.
"""

from __future__ import annotations

import ipaddress
import logging
import socket
from dataclasses import dataclass
from typing import List, Tuple

from searchnode.config.settings import (
    NETWORK_BIND_HOST,
    NETWORK_HOST,
    NETWORK_PUBLISH_HOST,
    TRANSPORT_TCP_PORT,
    Settings,
    SettingsError,
)

logger = logging.getLogger("searchnode.network")

_LOCAL_HOSTS = ("127.0.0.1", "::1")


@dataclass(frozen=True)
class TransportAddress:
    host: str
    port: int

    def is_loopback_or_link_local(self) -> bool:
        try:
            ip = ipaddress.ip_address(self.host)
        except ValueError:
            return False
        # ::ffff:127.0.0.1 classifies as its IPv4 address
        if ip.version == 6 and ip.ipv4_mapped is not None:
            ip = ip.ipv4_mapped
        return ip.is_loopback or ip.is_link_local

    def __str__(self) -> str:
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class BoundTransportAddress:
    """The addresses the node listens on plus the one it advertises."""
    bound_addresses: Tuple[TransportAddress, ...]
    publish_address: TransportAddress


def resolve_host(host: str) -> List[str]:
    """Resolve a configured host value to IP address strings.

    Literal IPs are returned as-is. Names go through getaddrinfo so
    'localhost' yields its loopback addresses.
    """
    host = host.strip()
    if host == "_local_":
        return list(_LOCAL_HOSTS)
    try:
        ipaddress.ip_address(host)
        return [host]
    except ValueError:
        pass

    try:
        infos = socket.getaddrinfo(host, None, proto=socket.IPPROTO_TCP)
    except socket.gaierror as e:
        raise SettingsError(f"failed to resolve host [{host}]: {e}") from e

    resolved: List[str] = []
    for info in infos:
        addr = info[4][0]
        if addr not in resolved:
            resolved.append(addr)
    return resolved


def resolve_bound_address(settings: Settings) -> BoundTransportAddress:
    """Compute the node bindings from settings."""
    port = settings.get_int(TRANSPORT_TCP_PORT, 9300)
    default_host = settings.get(NETWORK_HOST) or "_local_"
    bind_host = settings.get(NETWORK_BIND_HOST) or default_host
    publish_host = settings.get(NETWORK_PUBLISH_HOST) or default_host

    bound = tuple(TransportAddress(h, port) for h in resolve_host(bind_host))
    publish_candidates = resolve_host(publish_host)
    if not bound or not publish_candidates:
        raise SettingsError(
            f"no addresses resolved for bind host [{bind_host}] or publish host [{publish_host}]"
        )
    # prefer IPv4 for the published address
    publish_candidates.sort(key=lambda h: ":" in h)
    publish = TransportAddress(publish_candidates[0], port)

    logger.debug(
        f"bound_addresses {{{', '.join(str(a) for a in bound)}}}, "
        f"publish_address {{{publish}}}"
    )
    return BoundTransportAddress(bound_addresses=bound, publish_address=publish)
