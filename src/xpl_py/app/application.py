"""xPL application orchestrator.

Wires the wire codec, schema registries, connection manager, hub and
heartbeat managers, and the event bus together.
"""

from __future__ import annotations

import errno
import logging
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from xpl_py.app.events import CLOSE, ERROR, HUB, MESSAGE, VALIDATION_ERROR, EventBus, xpl_channel
from xpl_py.encoding.message import XplMessage, decode_message, encode_message
from xpl_py.errors import XplValidationError
from xpl_py.network.interfaces import (
    derive_broadcast_address,
    resolve_local_address,
    short_host_name,
)
from xpl_py.schema.validator import SchemaRegistry
from xpl_py.transport.connection import DEFAULT_XPL_PORT, SOCKET_TYPES, ConnectionManager
from xpl_py.transport.heartbeat import HeartbeatManager
from xpl_py.transport.hub import HubManager
from xpl_py.types.enums import HubState

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from xpl_py.network.address import XplAddress
    from xpl_py.schema.validator import FieldValue, Schema

logger = logging.getLogger(__name__)

WILDCARD_TARGET = "*"
DEFAULT_HUB_PING_DELAY = 4 * 60

COMMAND_HEADER = "xpl-cmnd"
STATUS_HEADER = "xpl-stat"
TRIGGER_HEADER = "xpl-trig"
DEFAULT_COMMAND_BODY = "sensor.request"
DEFAULT_STATUS_BODY = "sensor.basic"


@dataclass
class XplConfig:
    """Configuration for an xPL application.

    Unset addresses and identity are resolved in ``__post_init__``.
    """

    xpl_port: int = DEFAULT_XPL_PORT
    hub_support: bool = False
    socket_type: str = "udp4"
    broadcast_address: str | None = None
    local_address: str | None = None
    hub_ping_delay_second: int = DEFAULT_HUB_PING_DELAY
    xpl_source: str | None = None
    xpl_target: str = WILDCARD_TARGET
    promiscuous_mode: bool = False
    force_body_schema_validation: bool = False
    ttl: int | None = None
    keep_message_order: bool = False

    def __post_init__(self) -> None:
        if self.socket_type not in SOCKET_TYPES:
            msg = f"socket_type must be one of {SOCKET_TYPES}, got {self.socket_type!r}"
            raise ValueError(msg)
        if self.hub_ping_delay_second < 1:
            msg = f"hub_ping_delay_second must be >= 1, got {self.hub_ping_delay_second}"
            raise ValueError(msg)
        if not self.xpl_source:
            self.xpl_source = f"python.{short_host_name()}-{os.getpid()}"
        if not self.xpl_target:
            self.xpl_target = WILDCARD_TARGET
        if not self.local_address:
            self.local_address = resolve_local_address(self.socket_type)
        if not self.broadcast_address:
            self.broadcast_address = derive_broadcast_address(self.local_address)


class XplApplication:
    """An xPL endpoint: send API, inbound dispatch, and optional hub.

    Usage::

        app = XplApplication(XplConfig(hub_support=True))
        app.on("xpl:sensor.basic", lambda message, source: print(message.body))
        async with app:
            await app.send_stat({"device": "temp1", "type": "temp", "current": "21.5"})
    """

    def __init__(self, config: XplConfig | None = None) -> None:
        self._config = config if config is not None else XplConfig()
        self._events = EventBus()
        self._head_schemas = SchemaRegistry()
        self._body_schemas = SchemaRegistry()
        self._connection = ConnectionManager(
            self._config.local_address or "",
            self._config.broadcast_address or "",
            self._config.xpl_port,
            socket_type=self._config.socket_type,
            ttl=self._config.ttl,
        )
        self._connection.on_receive(self._on_datagram_received)
        self._connection.on_error(self._on_socket_error)
        self._hub: HubManager | None = None
        self._heartbeat: HeartbeatManager | None = None
        self._state = HubState.UNBOUND
        self._generation = 0
        self._binding: int | None = None
        logger.debug("xPL application configured: %s", self._config)

    @property
    def config(self) -> XplConfig:
        """The application configuration."""
        return self._config

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def connection(self) -> ConnectionManager:
        return self._connection

    @property
    def state(self) -> HubState:
        return self._state

    @property
    def hub(self) -> HubManager | None:
        """The hub manager while this application is the local hub."""
        return self._hub

    @property
    def heartbeat(self) -> HeartbeatManager | None:
        """The heartbeat manager while in client mode."""
        return self._heartbeat

    @property
    def is_hub(self) -> bool:
        return self._hub is not None

    # --- Lifecycle ---

    async def bind(self) -> None:
        """Bind the sockets and join the local xPL network.

        With hub support the application first tries to become the
        local hub.  If the xPL port is already in use, another hub is
        running and the application falls back to client mode, sending
        heartbeats to that hub.  A :meth:`close` issued while the bind
        is in flight wins: whatever the bind created is torn down.

        :raises OSError: If binding fails for any other reason.
        """
        self.close()
        generation = self._generation
        self._binding = generation
        try:
            hub = await self._start_hub() if self._config.hub_support else None
            heartbeat = None
            if hub is None and generation == self._generation:
                heartbeat = await self._connect_hub()
        finally:
            if self._binding == generation:
                self._binding = None
        if generation != self._generation:
            self._abandon_bind(hub, heartbeat)
            return
        if hub is not None:
            self._hub = hub
            self._events.on(MESSAGE, hub.handle_message)
            self._events.on(HUB, hub.handle_message)
            self._state = HubState.HUB_ACTIVE
        else:
            self._heartbeat = heartbeat
            self._state = HubState.CLIENT_MODE

    def close(self) -> None:
        """Stop heartbeats, drop hub clients, and close every socket.

        Safe to call when nothing is open.  A ``close`` event is emitted
        only when a socket was actually torn down.
        """
        self._generation += 1
        self._binding = None
        if self._heartbeat is not None:
            self._heartbeat.stop()
            self._heartbeat = None
        if self._hub is not None:
            self._events.off(MESSAGE, self._hub.handle_message)
            self._events.off(HUB, self._hub.handle_message)
            self._hub.stop()
            self._hub = None
        if self._connection.close():
            self._events.emit(CLOSE)
        if self._state in (HubState.HUB_ACTIVE, HubState.CLIENT_MODE):
            self._state = HubState.CLOSED

    async def __aenter__(self) -> XplApplication:
        """Bind the application as an async context manager."""
        await self.bind()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        """Close the application when exiting the context."""
        self.close()

    async def _start_hub(self) -> HubManager | None:
        hub = HubManager(self._connection, self._config.hub_ping_delay_second)
        try:
            await hub.start()
        except OSError as exc:
            if exc.errno != errno.EADDRINUSE:
                raise
            logger.info("xPL port %d already in use, another hub is running", self._config.xpl_port)
            return None
        return hub

    async def _connect_hub(self) -> HeartbeatManager:
        heartbeat = HeartbeatManager(
            self._connection,
            self._config.xpl_source or "",
            self._config.xpl_target,
            self._config.hub_ping_delay_second,
            self._config.local_address or "",
        )
        address = await heartbeat.start()
        logger.info("Connected to the xPL hub from %s", address)
        return heartbeat

    def _abandon_bind(self, hub: HubManager | None, heartbeat: HeartbeatManager | None) -> None:
        """Undo a bind that was overtaken by :meth:`close`."""
        logger.info("xPL application closed while binding")
        if heartbeat is not None:
            heartbeat.stop()
        if hub is not None:
            hub.stop()
        # Leave the sockets to a newer bind that is still in flight.
        if self._binding is None and self._connection.close():
            self._events.emit(CLOSE)

    # --- Subscriptions and schemas ---

    def on(self, channel: str, handler: Callable[..., Any]) -> None:
        """Subscribe to an event channel (see :mod:`xpl_py.app.events`)."""
        self._events.on(channel, handler)

    def off(self, channel: str, handler: Callable[..., Any]) -> None:
        self._events.off(channel, handler)

    def add_head_schema(self, header_name: str, schema: Schema | Mapping[str, Any]) -> Schema:
        """Validate the header of every received *header_name* message.

        :raises ValueError: If the schema has an invalid ``pattern``.
        """
        return self._head_schemas.register(header_name, schema)

    def add_body_schema(self, body_name: str, schema: Schema | Mapping[str, Any]) -> Schema:
        """Validate the body of every received *body_name* message.

        :raises ValueError: If the schema has an invalid ``pattern``.
        """
        return self._body_schemas.register(body_name, schema)

    # --- Send API ---

    def fill_header(
        self,
        target: str | None = None,
        source: str | None = None,
    ) -> dict[str, FieldValue]:
        """Build a standard ``hop``/``source``/``target`` header.

        A *source* starting with ``;`` is appended to the configured
        identity instead of replacing it.
        """
        if source and source.startswith(";"):
            source = f"{self._config.xpl_source} {source}"
        return {
            "hop": 1,
            "source": source or self._config.xpl_source or "",
            "target": target or self._config.xpl_target,
        }

    async def send(self, message: XplMessage) -> None:
        """Encode and broadcast *message*.

        Before the first socket is bound the message is queued and this
        returns immediately.

        :raises ValueError: If the message has no header name.
        :raises OSError: If the output socket cannot be bound.
        """
        await self._connection.send(encode_message(message))

    def send_nowait(self, message: XplMessage) -> None:
        """Fire-and-forget :meth:`send`; socket failures are logged."""
        self._connection.send_nowait(encode_message(message))

    async def send_message(
        self,
        header_name: str,
        header: dict[str, FieldValue],
        body_name: str | None = None,
        body: dict[str, FieldValue] | None = None,
    ) -> None:
        """Send a message built from its parts, header included."""
        await self.send(
            XplMessage(header_name=header_name, header=header, body_name=body_name, body=body)
        )

    async def send_command(
        self,
        command: str,
        body: dict[str, FieldValue],
        body_name: str | None = None,
        target: str | None = None,
        source: str | None = None,
    ) -> None:
        """Send *body* under an arbitrary header name *command*.

        The body name defaults to ``sensor.request`` for ``xpl-cmnd``
        and ``sensor.basic`` otherwise.
        """
        if not body_name:
            body_name = DEFAULT_COMMAND_BODY if command == COMMAND_HEADER else DEFAULT_STATUS_BODY
        await self.send(
            XplMessage(
                header_name=command,
                header=self.fill_header(target, source),
                body_name=body_name,
                body=body,
            )
        )

    async def send_cmnd(
        self,
        body: dict[str, FieldValue],
        body_name: str | None = None,
        target: str | None = None,
        source: str | None = None,
    ) -> None:
        """Send an ``xpl-cmnd`` message (default body ``sensor.request``)."""
        await self.send_command(
            COMMAND_HEADER, body, body_name or DEFAULT_COMMAND_BODY, target, source
        )

    async def send_stat(
        self,
        body: dict[str, FieldValue],
        body_name: str | None = None,
        target: str | None = None,
        source: str | None = None,
    ) -> None:
        """Send an ``xpl-stat`` message (default body ``sensor.basic``)."""
        await self.send_command(
            STATUS_HEADER, body, body_name or DEFAULT_STATUS_BODY, target, source
        )

    async def send_trig(
        self,
        body: dict[str, FieldValue],
        body_name: str | None = None,
        target: str | None = None,
        source: str | None = None,
    ) -> None:
        """Send an ``xpl-trig`` message (default body ``sensor.basic``)."""
        await self.send_command(
            TRIGGER_HEADER, body, body_name or DEFAULT_STATUS_BODY, target, source
        )

    # --- Receive path ---

    def _on_datagram_received(self, data: bytes, source: XplAddress) -> None:
        """Decode a datagram and dispatch it, or report why it was rejected."""
        try:
            message = decode_message(
                data,
                source,
                head_schemas=self._head_schemas,
                body_schemas=self._body_schemas,
                force_body_schema=self._config.force_body_schema_validation,
                keep_order=self._config.keep_message_order,
            )
        except XplValidationError as exc:
            logger.warning("Rejected message from %s: %s (%s)", source, exc, exc.code)
            self._events.emit(VALIDATION_ERROR, exc, data.decode("utf-8", errors="replace"), source)
            return
        self.dispatch(message, source, data)

    def dispatch(self, message: XplMessage, source: XplAddress, raw: bytes) -> None:
        """Publish a decoded message on the event channels.

        Messages addressed to another identity are dropped unless
        promiscuous mode is on; while hub-active they are offered on the
        ``hub`` channel instead.  Accepted messages go to ``message``,
        then ``xpl:<header name>``, then ``xpl:<body name>``.
        """
        if not self._config.promiscuous_mode:
            target = message.target
            if target and target not in (WILDCARD_TARGET, self._config.xpl_source):
                logger.debug("Ignoring message for %s from %s", target, source)
                if self._hub is not None:
                    self._events.emit(HUB, message, source, raw)
                return

        self._events.emit(MESSAGE, message, source, raw)
        if message.header_name:
            self._events.emit(xpl_channel(message.header_name), message, source)
        if message.body_name:
            self._events.emit(xpl_channel(message.body_name), message, source)

    def _on_socket_error(self, exc: Exception) -> None:
        self._events.emit(ERROR, exc)
