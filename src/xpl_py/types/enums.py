"""Enumerations shared across the xPL protocol layers."""

from __future__ import annotations

from enum import Enum, StrEnum


class ValidationErrorCode(StrEnum):
    """Stable failure codes raised while applying a schema to a decoded block."""

    UNKNOWN_FIELD = "UNKNOWN_FIELD"
    NO_VALUE = "NO_VALUE"
    NOT_A_NUMBER = "NOT_A_NUMBER"
    RANGE_ERROR = "RANGE_ERROR"
    REGEXP_NOT_MATCHED = "REGEXP_NOT_MATCHED"
    NOT_IN_ENUM = "NOT_IN_ENUM"
    NOT_IMPLEMENTED = "NOT_IMPLEMENTED"
    REQUIRED_FIELD_NOT_SPECIFIED = "REQUIRED_FIELD_NOT_SPECIFIED"
    NO_BODY_SCHEMA = "NO_BODY_SCHEMA"


class FieldType(StrEnum):
    """Declared type of a schema field."""

    INTEGER = "integer"
    FLOAT = "float"
    NUMBER = "number"
    BOOLEAN = "boolean"
    STRING = "string"


class SocketRole(Enum):
    """The three UDP socket roles owned by the connection manager.

    - ``LOCAL_UNICAST``: local address, ephemeral port.  Used by the hub
      to forward messages to its registered clients.
    - ``OUTPUT_BROADCAST``: local address, ephemeral port, broadcast
      enabled.  Used for every outbound message and heartbeat.
    - ``INPUT_BROADCAST``: broadcast address, well-known xPL port,
      broadcast enabled.  Only the hub owns this one.
    """

    LOCAL_UNICAST = "local-unicast"
    OUTPUT_BROADCAST = "output-broadcast"
    INPUT_BROADCAST = "input-broadcast"


class HubState(Enum):
    """Lifecycle of an :class:`~xpl_py.app.application.XplApplication`."""

    UNBOUND = "unbound"
    HUB_ACTIVE = "hub-active"
    CLIENT_MODE = "client-mode"
    CLOSED = "closed"
