"""Local xPL hub: client registration and message fan-out.

Only one process per host can bind the xPL port.  That process acts as
the hub: every other xPL application on the host announces itself with
periodic ``hbeat.app`` heartbeats, and the hub re-sends each message it
receives to every client whose registration has not expired.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from xpl_py.transport.heartbeat import HEARTBEAT_BODY
from xpl_py.types.enums import SocketRole

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine
    from typing import Any

    from xpl_py.encoding.message import XplMessage
    from xpl_py.network.address import XplAddress
    from xpl_py.transport.connection import ConnectionManager

logger = logging.getLogger(__name__)

# A registration survives two missed heartbeats.
TTL_HEARTBEAT_FACTOR = 2


@dataclass(slots=True)
class HubClient:
    """A registered hub client.

    ``ttl`` is the absolute expiry time on the hub's clock.  It is set
    once at registration and only replaced by a fresh heartbeat.
    """

    address: XplAddress
    ttl: float

    def is_expired(self, now: float) -> bool:
        return self.ttl < now


class HubManager:
    """Hub-side registration table and forwarding.

    The hub owns the input broadcast socket.  Wire :meth:`handle_message`
    to the inbound ``message`` and ``hub`` channels after :meth:`start`.
    """

    def __init__(
        self,
        connection: ConnectionManager,
        ping_delay: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize hub manager.

        :param connection: Connection manager owning the sockets.
        :param ping_delay: Heartbeat interval in seconds that clients
            are expected to honour.
        :param clock: Monotonic time source in seconds.
        """
        self._connection = connection
        self._ping_delay = ping_delay
        self._clock = clock
        self._clients: dict[str, HubClient] = {}
        self._background_tasks: set[asyncio.Task[None]] = set()

    @property
    def clients(self) -> dict[str, HubClient]:
        """Current registrations keyed by ``host:port``."""
        return dict(self._clients)

    async def start(self) -> XplAddress:
        """Bind the input broadcast socket on the xPL port.

        :returns: The bound address.
        :raises OSError: If the port cannot be bound.  ``errno.EADDRINUSE``
            means another hub is already running.
        """
        _, address = await self._connection.acquire(SocketRole.INPUT_BROADCAST)
        self._clients = {}
        logger.info("xPL hub started on %s", address)
        return address

    def stop(self) -> None:
        """Cancel in-flight forwarding and drop every registration."""
        for task in list(self._background_tasks):
            task.cancel()
        self._background_tasks.clear()
        self._clients.clear()

    def handle_message(self, message: XplMessage, source: XplAddress, raw: bytes) -> None:
        """Process one inbound packet.

        Heartbeats register or refresh the sender and are not forwarded.
        Anything else is forwarded to the registered clients.
        """
        if message.body_name == HEARTBEAT_BODY:
            self.register(source)
            return
        self._spawn_task(self._forward_logged(raw))

    def register(self, address: XplAddress) -> HubClient:
        """Register *address*, replacing any existing entry."""
        ttl = self._clock() + TTL_HEARTBEAT_FACTOR * self._ping_delay
        client = HubClient(address=address, ttl=ttl)
        self._clients[address.key] = client
        logger.debug("Registered hub client %s", address)
        return client

    async def forward(self, raw: bytes) -> int:
        """Send *raw* to every live client.

        Expired clients are removed.  A failed send to one client is
        logged and does not stop delivery to the others.

        :returns: Number of clients the message was sent to.
        :raises OSError: If the local unicast socket cannot be bound.
        """
        now = self._clock()
        transport, _ = await self._connection.acquire(SocketRole.LOCAL_UNICAST)
        sent = 0
        for key, client in list(self._clients.items()):
            if client.is_expired(now):
                logger.info("Hub client %s expired", client.address)
                del self._clients[key]
                continue
            try:
                transport.sendto(raw, (client.address.host, client.address.port))
            except OSError:
                logger.warning("Can not forward message to %s", client.address, exc_info=True)
                continue
            sent += 1
        logger.debug("Forwarded %d-byte message to %d client(s)", len(raw), sent)
        return sent

    async def _forward_logged(self, raw: bytes) -> None:
        try:
            await self.forward(raw)
        except OSError:
            logger.warning("Can not forward message to hub clients", exc_info=True)

    def _spawn_task(self, coro: Coroutine[Any, Any, None]) -> None:
        """Create a background task and track it to prevent GC."""
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
