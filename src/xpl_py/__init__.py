"""xpl-py: Asynchronous xPL home-automation protocol library.

Typical usage::

    from xpl_py import XplApplication, XplConfig

    async with XplApplication(XplConfig(hub_support=True)) as app:
        await app.send_cmnd({"device": "lamp1", "command": "on"}, "x10.basic")
"""

__version__ = "0.1.0"

from xpl_py.aliases import load_device_aliases
from xpl_py.app.application import XplApplication, XplConfig
from xpl_py.app.events import EventBus
from xpl_py.encoding.message import XplMessage, decode_message, encode_message
from xpl_py.errors import XplError, XplValidationError
from xpl_py.network.address import XplAddress
from xpl_py.schema.validator import Schema
from xpl_py.serialization import deserialize, serialize
from xpl_py.types.enums import ValidationErrorCode

__all__ = [
    "EventBus",
    "Schema",
    "ValidationErrorCode",
    "XplAddress",
    "XplApplication",
    "XplConfig",
    "XplError",
    "XplMessage",
    "XplValidationError",
    "decode_message",
    "deserialize",
    "encode_message",
    "load_device_aliases",
    "serialize",
]
