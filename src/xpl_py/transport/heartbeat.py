"""Hub client heartbeats.

An xPL application that is not the hub announces itself by
broadcasting an ``hbeat.app`` status message when it binds and then at
every heartbeat interval.  The hub registers the sender and starts
forwarding traffic to it.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from xpl_py.encoding.message import XplMessage, encode_message
from xpl_py.types.enums import SocketRole

if TYPE_CHECKING:
    from xpl_py.network.address import XplAddress
    from xpl_py.transport.connection import ConnectionManager

logger = logging.getLogger(__name__)

HEARTBEAT_BODY = "hbeat.app"
HEARTBEAT_HEADER = "xpl-stat"

_WILDCARD_HOSTS = ("", "0.0.0.0", "::")


def heartbeat_interval_minutes(ping_delay: float) -> int:
    """Heartbeat ``interval`` field in whole minutes, at least 1."""
    return max(1, int(ping_delay // 60))


def build_heartbeat(
    source: str,
    target: str,
    address: XplAddress,
    ping_delay: float,
    local_address: str,
) -> XplMessage:
    """Build the ``hbeat.app`` message announcing *address*.

    :param source: This application's xPL identity.
    :param target: Header target.
    :param address: Bound address of the socket the heartbeat is sent from.
    :param ping_delay: Heartbeat interval in seconds.
    :param local_address: Fallback ``remote-ip`` when *address* is a wildcard.
    """
    remote_ip = address.host if address.host not in _WILDCARD_HOSTS else local_address
    return XplMessage(
        header_name=HEARTBEAT_HEADER,
        header={"hop": 1, "source": source, "target": target},
        body_name=HEARTBEAT_BODY,
        body={
            "interval": heartbeat_interval_minutes(ping_delay),
            "port": address.port,
            "remote-ip": remote_ip,
        },
    )


class HeartbeatManager:
    """Sends heartbeats to whichever hub is listening on the xPL port.

    Usage::

        heartbeat = HeartbeatManager(connection, "acme-therm.kitchen", "*", 240, "192.168.1.20")
        await heartbeat.start()
        # ...later...
        heartbeat.stop()
    """

    def __init__(
        self,
        connection: ConnectionManager,
        source: str,
        target: str,
        ping_delay: float,
        local_address: str,
    ) -> None:
        """Initialize heartbeat manager.

        :param connection: Connection manager owning the sockets.
        :param source: This application's xPL identity.
        :param target: Header target of heartbeat messages.
        :param ping_delay: Seconds between heartbeats.
        :param local_address: This host's address.
        """
        if ping_delay <= 0:
            msg = f"Heartbeat interval must be > 0 seconds, got {ping_delay}"
            raise ValueError(msg)
        self._connection = connection
        self._source = source
        self._target = target
        self._ping_delay = ping_delay
        self._local_address = local_address
        self._task: asyncio.Task[None] | None = None
        self._sent = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def sent(self) -> int:
        """Number of heartbeats sent so far."""
        return self._sent

    async def start(self) -> XplAddress:
        """Bind the output socket and start the heartbeat loop.

        The first heartbeat is sent before this returns.

        :returns: The output socket's bound address.
        :raises OSError: If the output socket cannot be bound.
        """
        _, address = await self._connection.acquire(SocketRole.OUTPUT_BROADCAST)
        if self._task is None:
            await self._send_logged()
            self._task = asyncio.create_task(self._heartbeat_loop())
        return address

    def stop(self) -> None:
        """Cancel the heartbeat loop.  Safe to call when not running."""
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def wait_stopped(self) -> None:
        """Cancel the loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def send_heartbeat(self) -> None:
        """Broadcast one heartbeat from the output socket."""
        transport, address = await self._connection.acquire(SocketRole.OUTPUT_BROADCAST)
        message = build_heartbeat(
            self._source, self._target, address, self._ping_delay, self._local_address
        )
        transport.sendto(
            encode_message(message),
            (self._connection.broadcast_address, self._connection.port),
        )
        self._sent += 1
        logger.debug(
            "Sent heartbeat from %s to %s:%d",
            address,
            self._connection.broadcast_address,
            self._connection.port,
        )

    async def _send_logged(self) -> None:
        try:
            await self.send_heartbeat()
        except OSError:
            logger.warning("Failed to send hub heartbeat", exc_info=True)

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self._ping_delay)
            await self._send_logged()
