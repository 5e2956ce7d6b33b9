"""Lazily created UDP sockets for the xPL protocol.

:class:`ConnectionManager` owns up to three sockets, one per
:class:`~xpl_py.types.enums.SocketRole`.  Each socket is bound on first
demand; an :class:`asyncio.Lock` per role makes concurrent demand share a
single bind.  Messages sent before any socket is ready are queued and
flushed, in submission order, once the first socket is bound.
"""

from __future__ import annotations

import asyncio
import logging
import socket
import sys
from typing import TYPE_CHECKING, Any

from xpl_py.network.address import XplAddress
from xpl_py.types.enums import SocketRole

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

DEFAULT_XPL_PORT = 3865

SOCKET_TYPES = ("udp4", "udp6")


class _XplProtocol(asyncio.DatagramProtocol):
    """:class:`~asyncio.DatagramProtocol` feeding one role's socket into the manager."""

    def __init__(
        self,
        role: SocketRole,
        callback: Callable[[bytes, tuple[str, int]], None],
        connection_lost_callback: Callable[
            [SocketRole, asyncio.BaseTransport | None, Exception | None], None
        ]
        | None = None,
    ) -> None:
        self._role = role
        self._callback = callback
        self._connection_lost_callback = connection_lost_callback
        self._transport: asyncio.BaseTransport | None = None

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self._transport = transport

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        """Forward an incoming UDP datagram to the registered callback."""
        self._callback(data, addr)

    def error_received(self, exc: Exception) -> None:
        """Handle transport errors."""
        logger.warning("UDP transport error on %s socket: %s", self._role.value, exc)

    def connection_lost(self, exc: Exception | None) -> None:
        """Handle transport connection loss (interface down, socket closed)."""
        if exc is not None:
            logger.warning("UDP connection lost on %s socket: %s", self._role.value, exc)
        else:
            logger.debug("UDP %s socket closed", self._role.value)
        if self._connection_lost_callback is not None:
            self._connection_lost_callback(self._role, self._transport, exc)


class ConnectionManager:
    """Owns the xPL UDP sockets and the pre-bind waiting queue."""

    def __init__(
        self,
        local_address: str,
        broadcast_address: str,
        port: int = DEFAULT_XPL_PORT,
        *,
        socket_type: str = "udp4",
        ttl: int | None = None,
    ) -> None:
        """Initialize the connection manager.

        :param local_address: Address the unicast and output sockets bind to.
        :param broadcast_address: Destination of outbound messages, and
            bind address of the hub's input socket.
        :param port: The shared xPL port. Defaults to 3865.
        :param socket_type: ``"udp4"`` or ``"udp6"``.
        :param ttl: IP unicast hop limit applied to every socket, or
            ``None`` for the OS default.
        """
        if socket_type not in SOCKET_TYPES:
            msg = f"socket_type must be one of {SOCKET_TYPES}, got {socket_type!r}"
            raise ValueError(msg)
        self._local_address = local_address
        self._broadcast_address = broadcast_address
        self._port = port
        self._socket_type = socket_type
        self._family = socket.AF_INET6 if socket_type == "udp6" else socket.AF_INET
        self._ttl = ttl
        self._sockets: dict[SocketRole, asyncio.DatagramTransport] = {}
        self._addresses: dict[SocketRole, XplAddress] = {}
        self._locks: dict[SocketRole, asyncio.Lock] = {role: asyncio.Lock() for role in SocketRole}
        self._waiting: list[bytes] | None = []
        self._receive_callback: Callable[[bytes, XplAddress], None] | None = None
        self._error_callback: Callable[[Exception], None] | None = None
        self._background_tasks: set[asyncio.Task[None]] = set()

    @property
    def port(self) -> int:
        return self._port

    @property
    def broadcast_address(self) -> str:
        return self._broadcast_address

    @property
    def local_address(self) -> str:
        return self._local_address

    @property
    def is_queueing(self) -> bool:
        """Whether sends are still being held until the first bind."""
        return self._waiting is not None

    @property
    def queued(self) -> int:
        """Number of buffers waiting for the first bind."""
        return len(self._waiting) if self._waiting is not None else 0

    def is_open(self, role: SocketRole) -> bool:
        """Whether a live socket exists for *role*."""
        return role in self._sockets

    def bound_address(self, role: SocketRole) -> XplAddress | None:
        """The address the *role* socket is bound to, or ``None``."""
        return self._addresses.get(role)

    def on_receive(self, callback: Callable[[bytes, XplAddress], None]) -> None:
        """Register a callback for datagrams received on any socket.

        :param callback: Called with ``(raw_bytes, source_address)``.
        """
        self._receive_callback = callback

    def on_error(self, callback: Callable[[Exception], None]) -> None:
        """Register a callback for errors on a socket that was already bound."""
        self._error_callback = callback

    async def acquire(self, role: SocketRole) -> tuple[asyncio.DatagramTransport, XplAddress]:
        """Return the socket for *role*, binding it on first use.

        Concurrent callers for the same role wait on the role's lock and
        receive the socket bound by the first caller.  When this is the
        first socket to become ready, the waiting queue is flushed
        before returning.

        :returns: ``(transport, bound_address)``.
        :raises OSError: If the bind fails (``errno.EADDRINUSE`` for an
            input socket means another hub owns the xPL port).
        """
        async with self._locks[role]:
            transport = self._sockets.get(role)
            if transport is not None:
                return transport, self._addresses[role]
            try:
                transport, address = await self._open_endpoint(role)
            except OSError:
                self._sockets.pop(role, None)
                self._addresses.pop(role, None)
                raise
            self._sockets[role] = transport
            self._addresses[role] = address
            logger.info("Bound %s socket on %s", role.value, address)

        if self._waiting is not None:
            await self._flush_waiting()
        return transport, address

    async def send(self, buffer: bytes) -> None:
        """Broadcast *buffer* on the xPL port.

        While the waiting queue is active the buffer is queued and this
        returns immediately.

        :raises OSError: If the output socket cannot be bound or the
            send fails.
        """
        if self._waiting is not None:
            logger.debug("Queued %d-byte message until first bind", len(buffer))
            self._waiting.append(buffer)
            return
        transport, _ = await self.acquire(SocketRole.OUTPUT_BROADCAST)
        logger.debug(
            "Sending %d bytes to %s:%d", len(buffer), self._broadcast_address, self._port
        )
        transport.sendto(buffer, (self._broadcast_address, self._port))

    def send_nowait(self, buffer: bytes) -> None:
        """Fire-and-forget :meth:`send`; failures are logged.

        Must be called from the event loop thread.  Queued buffers keep
        their call order.
        """
        if self._waiting is not None:
            logger.debug("Queued %d-byte message until first bind", len(buffer))
            self._waiting.append(buffer)
            return
        self._spawn_task(self._send_logged(buffer))

    async def send_to(self, buffer: bytes, destination: XplAddress) -> None:
        """Unicast *buffer* to *destination* through the local unicast socket."""
        transport, _ = await self.acquire(SocketRole.LOCAL_UNICAST)
        transport.sendto(buffer, (destination.host, destination.port))

    def close(self) -> bool:
        """Close every live socket.

        Safe to call when nothing is open.  Pending fire-and-forget sends
        are cancelled so they cannot re-open a socket.

        :returns: ``True`` if at least one socket was torn down.
        """
        for task in list(self._background_tasks):
            task.cancel()
        self._background_tasks.clear()

        closed = False
        for role in SocketRole:
            transport = self._sockets.pop(role, None)
            self._addresses.pop(role, None)
            if transport is not None:
                transport.close()
                closed = True
        if closed:
            logger.info("xPL sockets closed")
        return closed

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _bind_params(self, role: SocketRole) -> tuple[str, int, bool]:
        """Return ``(host, port, broadcast)`` for binding *role*."""
        match role:
            case SocketRole.LOCAL_UNICAST:
                return self._local_address, 0, False
            case SocketRole.OUTPUT_BROADCAST:
                return self._local_address, 0, True
            case SocketRole.INPUT_BROADCAST:
                # Windows cannot bind a broadcast address; use the wildcard.
                if sys.platform == "win32":
                    host = "::" if self._family == socket.AF_INET6 else "0.0.0.0"
                else:
                    host = self._broadcast_address
                return host, self._port, True

    async def _open_endpoint(
        self, role: SocketRole
    ) -> tuple[asyncio.DatagramTransport, XplAddress]:
        """Create and bind the UDP endpoint for *role*."""
        host, port, broadcast = self._bind_params(role)
        logger.debug(
            "Binding %s socket to %s:%d (broadcast=%s)", role.value, host, port, broadcast
        )
        loop = asyncio.get_running_loop()
        transport, _protocol = await loop.create_datagram_endpoint(
            lambda: _XplProtocol(role, self._on_datagram_received, self._on_connection_lost),
            local_addr=(host, port),
            family=self._family,
            allow_broadcast=broadcast,
        )
        sock = transport.get_extra_info("socket")
        if self._ttl:
            if self._family == socket.AF_INET6:
                sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_UNICAST_HOPS, self._ttl)
            else:
                sock.setsockopt(socket.IPPROTO_IP, socket.IP_TTL, self._ttl)
            logger.debug("Set %s socket TTL to %d", role.value, self._ttl)
        return transport, XplAddress.from_sockaddr(sock.getsockname())

    async def _flush_waiting(self) -> None:
        """Send every queued buffer once, in order, then retire the queue."""
        waiting, self._waiting = self._waiting, None
        if not waiting:
            return
        logger.debug("Flushing %d queued message(s)", len(waiting))
        for buffer in waiting:
            try:
                await self.send(buffer)
            except OSError:
                logger.warning("Failed to send queued xPL message", exc_info=True)

    async def _send_logged(self, buffer: bytes) -> None:
        try:
            await self.send(buffer)
        except OSError:
            logger.warning("Failed to send xPL message", exc_info=True)

    def _spawn_task(self, coro: Any) -> None:
        """Create a background task and track it to prevent GC."""
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    def _on_datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        if self._receive_callback is not None:
            self._receive_callback(data, XplAddress.from_sockaddr(addr))

    def _on_connection_lost(
        self,
        role: SocketRole,
        transport: asyncio.BaseTransport | None,
        exc: Exception | None,
    ) -> None:
        """Drop a lost socket from the cache so the next demand re-binds it."""
        if transport is not None and self._sockets.get(role) is transport:
            del self._sockets[role]
            self._addresses.pop(role, None)
        if exc is not None and self._error_callback is not None:
            self._error_callback(exc)
