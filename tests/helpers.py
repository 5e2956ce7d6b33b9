"""Shared test utilities for xpl-py tests."""

from __future__ import annotations

import asyncio

from xpl_py.network.address import XplAddress
from xpl_py.types.enums import SocketRole

LOCAL_HOST = "192.168.1.20"
BROADCAST_HOST = "192.168.1.255"
XPL_PORT = 3865


class FakeDatagramTransport:
    """In-memory stand-in for :class:`asyncio.DatagramTransport`."""

    def __init__(self, *, fail_for: set[tuple[str, int]] | None = None) -> None:
        self.sent: list[tuple[bytes, tuple[str, int]]] = []
        self.attempts = 0
        self.closed = False
        self.fail_for = fail_for if fail_for is not None else set()
        self.fail_all = False

    def sendto(self, data: bytes, addr: tuple[str, int]) -> None:
        self.attempts += 1
        if self.fail_all or addr in self.fail_for:
            msg = f"send to {addr} failed"
            raise OSError(msg)
        self.sent.append((data, addr))

    def close(self) -> None:
        self.closed = True

    def is_closing(self) -> bool:
        return self.closed

    def payloads(self) -> list[bytes]:
        return [data for data, _ in self.sent]


class FakeEndpoints:
    """Replacement for ``ConnectionManager._open_endpoint``.

    Each bind yields once to the event loop so concurrent demand can
    interleave.  ``fail`` maps a role to the ``OSError`` its bind raises.
    """

    def __init__(self, host: str = LOCAL_HOST, *, port: int = XPL_PORT) -> None:
        self.host = host
        self.port = port
        self.opened: list[SocketRole] = []
        self.transports: dict[SocketRole, FakeDatagramTransport] = {}
        self.fail: dict[SocketRole, OSError] = {}
        self._next_port = 50000

    async def __call__(self, role: SocketRole) -> tuple[FakeDatagramTransport, XplAddress]:
        self.opened.append(role)
        await asyncio.sleep(0)
        exc = self.fail.get(role)
        if exc is not None:
            raise exc
        if role is SocketRole.INPUT_BROADCAST:
            port = self.port
        else:
            port = self._next_port
            self._next_port += 1
        transport = FakeDatagramTransport()
        self.transports[role] = transport
        return transport, XplAddress(self.host, port)

    def sent(self, role: SocketRole) -> list[tuple[bytes, tuple[str, int]]]:
        transport = self.transports.get(role)
        return transport.sent if transport is not None else []


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


async def drain(rounds: int = 5) -> None:
    """Let pending background tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def stat_packet(
    body: dict[str, str] | None = None,
    *,
    target: str = "*",
    source: str = "acme-therm.kitchen",
    body_name: str = "sensor.basic",
    header_name: str = "xpl-stat",
) -> bytes:
    """Wire bytes of a typical status message."""
    lines = [header_name, "{", "hop=1", f"source={source}", f"target={target}", "}", body_name, "{"]
    lines.extend(f"{k}={v}" for k, v in (body or {"device": "temp1", "current": "21.5"}).items())
    lines.append("}")
    return ("\n".join(lines) + "\n").encode()
