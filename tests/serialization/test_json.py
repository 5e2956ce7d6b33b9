"""Tests for JSON export (serialization/)."""

import orjson
import pytest

from xpl_py.encoding.message import XplMessage, decode_message
from xpl_py.network.address import XplAddress
from xpl_py.serialization import deserialize, json_default, serialize
from xpl_py.types.enums import HubState


class TestSerialize:
    def test_message(self):
        msg = XplMessage(
            header_name="xpl-stat",
            header={"hop": 1},
            body_name="sensor.basic",
            body={"current": 21.5, "on": True},
            source=XplAddress("192.168.1.30", 50123),
        )
        data = deserialize(serialize(msg))
        assert data == {
            "header_name": "xpl-stat",
            "header": {"hop": 1},
            "body_name": "sensor.basic",
            "body": {"current": 21.5, "on": True},
            "from": {"host": "192.168.1.30", "port": 50123},
        }

    def test_decoded_message_keeps_field_order(self):
        msg = decode_message(b"xpl-trig\n{\nhop=1\n}\nx10.basic\n{\ncommand=on\ndevice=a1\n}\n")
        out = serialize(msg)
        assert out.index(b'"command"') < out.index(b'"device"')

    def test_plain_dict(self):
        assert serialize({"a": 1}) == b'{"a":1}'

    def test_pretty(self):
        assert serialize({"hop": 1}, pretty=True) == b'{\n  "hop": 1\n}'

    def test_nested_objects_use_to_dict(self):
        out = deserialize(serialize({"peer": XplAddress("h", 1)}))
        assert out == {"peer": {"host": "h", "port": 1}}

    def test_deserialize_accepts_text(self):
        assert deserialize('{"hop": 1}') == {"hop": 1}

    def test_deserialize_rejects_non_object(self):
        with pytest.raises(TypeError, match="Expected JSON object"):
            deserialize(b"[1, 2]")

    def test_deserialize_invalid_json(self):
        with pytest.raises(orjson.JSONDecodeError):
            deserialize(b"xpl-stat")


class TestJsonDefault:
    def test_raw_datagram_as_text(self):
        assert json_default(b"xpl-stat\n{\n}\n") == "xpl-stat\n{\n}\n"

    def test_enum_value(self):
        assert json_default(HubState.HUB_ACTIVE) == "hub-active"

    def test_unknown_type(self):
        with pytest.raises(TypeError, match="Cannot serialize"):
            json_default(object())
