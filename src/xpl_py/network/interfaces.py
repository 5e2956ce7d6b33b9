"""Default local and broadcast address selection."""

from __future__ import annotations

import socket

# Probe targets for the outgoing-interface lookup.  No traffic is sent:
# connecting a UDP socket only selects a route.
_PROBE_IPV4 = ("10.255.255.255", 1)
_PROBE_IPV6 = ("fd00::1", 1)


def resolve_local_address(socket_type: str = "udp4") -> str:
    """Resolve this machine's outgoing interface address.

    Falls back to the loopback address of the family when no route is
    available.

    :param socket_type: ``"udp4"`` or ``"udp6"``.
    :returns: A textual IP address.
    """
    if socket_type == "udp6":
        family, probe, fallback = socket.AF_INET6, _PROBE_IPV6, "::1"
    else:
        family, probe, fallback = socket.AF_INET, _PROBE_IPV4, "127.0.0.1"
    try:
        with socket.socket(family, socket.SOCK_DGRAM) as s:
            s.connect(probe)
            ip: str = s.getsockname()[0]
    except OSError:
        return fallback
    if not ip or ip in ("0.0.0.0", "::"):
        return fallback
    return ip


def derive_broadcast_address(local_address: str) -> str:
    """Derive a /24 broadcast address from *local_address*.

    The final dotted octet is replaced with ``255``.  Addresses without
    a dot (IPv6) are returned unchanged.
    """
    idx = local_address.rfind(".")
    if idx > 0:
        return local_address[:idx] + ".255"
    return local_address


def short_host_name() -> str:
    """Host name truncated at its first dot."""
    return socket.gethostname().split(".", 1)[0]
