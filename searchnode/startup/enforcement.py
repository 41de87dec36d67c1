"""
Enforcement policy for bootstrap checks.

Limits are enforced once the node is reachable from anywhere but its own
host: if any bound address or the publish address is routable, the node
is assumed to be running in production and every check must pass.
"""

from searchnode.network.addresses import BoundTransportAddress


def enforce_limits(bound: BoundTransportAddress) -> bool:
    """Return True if the bootstrap checks should be enforced."""
    local_only = (
        all(a.is_loopback_or_link_local() for a in bound.bound_addresses)
        and bound.publish_address.is_loopback_or_link_local()
    )
    return not local_only
