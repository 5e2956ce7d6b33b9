"""xPL peer addressing."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class XplAddress:
    """A UDP endpoint: host string plus port.

    Used for the ``from`` of received messages, for bound socket
    addresses, and as the key of hub client registrations.
    """

    host: str
    port: int

    @classmethod
    def from_sockaddr(cls, addr: tuple[Any, ...]) -> XplAddress:
        """Build from an ``(host, port, ...)`` socket address tuple.

        IPv6 socket addresses carry flow info and scope id after the
        port; those are dropped.
        """
        return cls(host=addr[0], port=addr[1])

    @property
    def key(self) -> str:
        """``host:port`` string used to index hub clients."""
        return f"{self.host}:{self.port}"

    def __str__(self) -> str:
        return self.key

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-friendly dict."""
        return {"host": self.host, "port": self.port}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> XplAddress:
        """Reconstruct from JSON-friendly dict."""
        return cls(host=data["host"], port=data["port"])
