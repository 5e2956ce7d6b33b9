"""JSON export of decoded xPL messages."""

from xpl_py.serialization.json import deserialize, json_default, serialize

__all__ = ["deserialize", "json_default", "serialize"]
