"""xPL wire message encoding and decoding.

An xPL message is line-oriented text made of one or two blocks::

    xpl-stat
    {
    hop=1
    source=acme-therm.kitchen
    target=*
    }
    sensor.basic
    {
    device=temp1
    current=21.5
    }

Only string values are escaped: ``\\`` becomes ``\\\\`` and a newline
becomes the two characters ``\\n``.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from xpl_py.errors import XplValidationError
from xpl_py.schema.validator import validate
from xpl_py.types.enums import ValidationErrorCode

if TYPE_CHECKING:
    from collections.abc import Sequence

    from xpl_py.network.address import XplAddress
    from xpl_py.schema.validator import FieldValue, SchemaRegistry

BLOCK_OPEN = "{"
BLOCK_CLOSE = "}"

_FIELD_LINE = re.compile(r"([^=]+)=(.*)")


@dataclass(slots=True)
class XplMessage:
    """A decoded or to-be-encoded xPL message.

    ``body`` is present exactly when ``body_name`` is.  ``timestamp``
    and ``source`` are filled in on receipt only.
    """

    header_name: str
    header: dict[str, FieldValue] = field(default_factory=dict)
    body_name: str | None = None
    body: dict[str, FieldValue] | None = None
    timestamp: float | None = None
    source: XplAddress | None = None
    validated: bool = False
    header_order: list[str] | None = None
    body_order: list[str] | None = None

    def __post_init__(self) -> None:
        if self.body_name and self.body is None:
            self.body = {}
        elif not self.body_name and self.body is not None:
            msg = "Message body requires a body name"
            raise ValueError(msg)

    @property
    def target(self) -> str | None:
        """The header ``target`` field, if any."""
        target = self.header.get("target")
        return None if target is None else str(target)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-friendly dict."""
        result: dict[str, Any] = {
            "header_name": self.header_name,
            "header": dict(self.header),
        }
        if self.body_name:
            result["body_name"] = self.body_name
            result["body"] = dict(self.body or {})
        if self.timestamp is not None:
            result["timestamp"] = self.timestamp
        if self.source is not None:
            result["from"] = self.source.to_dict()
        return result


def encode_value(value: FieldValue) -> str:
    """Render one field value for the wire."""
    if isinstance(value, str):
        return value.replace("\\", "\\\\").replace("\n", "\\n")
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def decode_value(text: str) -> str:
    """Undo :func:`encode_value` for a string field.

    The ``\\n`` escape is decoded before doubled backslashes collapse,
    matching what deployed xPL peers expect on the wire.  A value that
    encodes to a backslash followed by a literal ``n`` therefore does
    not survive the round trip.
    """
    return text.replace("\\n", "\n").replace("\\\\", "\\")


def encode_message(message: XplMessage) -> bytes:
    """Encode *message* to its UTF-8 wire form.

    :raises ValueError: If the message has no header name.
    """
    if not message.header_name:
        msg = "Invalid xPL message format (no header name)"
        raise ValueError(msg)
    parts = [message.header_name, BLOCK_OPEN]
    parts.extend(f"{name}={encode_value(value)}" for name, value in message.header.items())
    parts.append(BLOCK_CLOSE)
    if message.body_name:
        parts.extend((message.body_name, BLOCK_OPEN))
        parts.extend(
            f"{name}={encode_value(value)}" for name, value in (message.body or {}).items()
        )
        parts.append(BLOCK_CLOSE)
    return ("\n".join(parts) + "\n").encode()


def decode_message(
    data: bytes | str,
    source: XplAddress | None = None,
    *,
    head_schemas: SchemaRegistry | None = None,
    body_schemas: SchemaRegistry | None = None,
    force_body_schema: bool = False,
    keep_order: bool = False,
) -> XplMessage:
    """Decode a datagram into an :class:`XplMessage`.

    Carriage returns are stripped and the text is split into lines.
    The header block and then the body block are read from a shared
    cursor.  Field lines that are not ``name=value`` are skipped; a
    block whose name is not followed by ``{`` is treated as absent.

    After parsing, a registered header schema and body schema are
    applied (coercing values in place).

    :param data: Raw datagram bytes or already-decoded text.
    :param source: Sender address, recorded on the message.
    :param head_schemas: Schemas keyed by header name.
    :param body_schemas: Schemas keyed by body name.
    :param force_body_schema: Fail when no body schema matched.
    :param keep_order: Record field names in wire order.
    :returns: The decoded message.
    :raises XplValidationError: If a schema rejects the message, or
        *force_body_schema* is set and no body schema applied.
    """
    text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data
    lines = text.replace("\r", "").split("\n")

    header_name, header, header_order, pos = _read_block(lines, 0, keep_order=keep_order)
    body_name, body, body_order, _ = _read_block(lines, pos, keep_order=keep_order)
    if not body_name:
        body = None

    message = XplMessage(
        header_name=header_name or "",
        header=header if header is not None else {},
        body_name=body_name if body is not None else None,
        body=body,
        timestamp=time.time(),
        source=source,
        header_order=header_order,
        body_order=body_order if body is not None else None,
    )

    head_schema = head_schemas.get(message.header_name) if head_schemas is not None else None
    if head_schema is not None:
        validate(head_schema, message.header)

    body_schema = body_schemas.get(message.body_name) if body_schemas is not None else None
    if body_schema is not None and message.body is not None:
        validate(body_schema, message.body)
        message.validated = True

    if force_body_schema and not message.validated:
        raise XplValidationError(
            ValidationErrorCode.NO_BODY_SCHEMA,
            f"No body schema for '{message.body_name}'.",
        )
    return message


def _read_block(
    lines: Sequence[str],
    pos: int,
    *,
    keep_order: bool,
) -> tuple[str | None, dict[str, FieldValue] | None, list[str] | None, int]:
    """Read one ``name { ... }`` block starting at *pos*.

    The line following the name is consumed whether or not it opens a
    block.  An unterminated block ends at the last line.

    :returns: ``(name, fields, order, next_pos)``; *fields* is ``None``
        when the block is absent.
    """
    name = lines[pos] if pos < len(lines) else None
    opener = lines[pos + 1] if pos + 1 < len(lines) else None
    pos += 2
    if opener != BLOCK_OPEN:
        return name, None, None, pos

    fields: dict[str, FieldValue] = {}
    order: list[str] | None = [] if keep_order else None
    while pos < len(lines):
        line = lines[pos]
        pos += 1
        if line == BLOCK_CLOSE:
            break
        m = _FIELD_LINE.fullmatch(line)
        if m is None:
            continue
        field_name = m.group(1)
        fields[field_name] = decode_value(m.group(2))
        if order is not None:
            order.append(field_name)
    return name, fields, order, pos
