"""JSON export of decoded xPL messages, backed by orjson."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

import orjson

logger = logging.getLogger(__name__)


def json_default(obj: object) -> object:
    """Default handler for xPL types orjson cannot encode natively.

    * Objects with a ``to_dict()`` method (messages, addresses).
    * Raw datagrams, decoded as UTF-8 with replacement.
    * :class:`~enum.Enum` members, by value.

    :raises TypeError: If *obj* is not a recognised type.
    """
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if isinstance(obj, bytes):
        return obj.decode("utf-8", errors="replace")
    if isinstance(obj, Enum):
        return obj.value
    msg = f"Cannot serialize {type(obj).__name__}"
    logger.warning("serialize failed: %s", msg)
    raise TypeError(msg)


def serialize(obj: Any, *, pretty: bool = False) -> bytes:
    """Encode a message, an address, or a plain dict as JSON.

    :param pretty: Indent output with 2 spaces.
    """
    data = obj.to_dict() if hasattr(obj, "to_dict") else obj
    return orjson.dumps(data, default=json_default, option=orjson.OPT_INDENT_2 if pretty else 0)


def deserialize(raw: bytes | str) -> dict[str, Any]:
    """Decode JSON produced by :func:`serialize` back to a dict.

    :raises orjson.JSONDecodeError: If *raw* is not valid JSON.
    :raises TypeError: If the document is not a JSON object.
    """
    result = orjson.loads(raw)
    if not isinstance(result, dict):
        msg = f"Expected JSON object, got {type(result).__name__}"
        logger.warning("deserialize failed: %s", msg)
        raise TypeError(msg)
    return result
