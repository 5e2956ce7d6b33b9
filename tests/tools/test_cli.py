"""Tests for the xPL command-line tools (tools/)."""

import asyncio
import time
from unittest.mock import AsyncMock, MagicMock, patch

import orjson
import pytest
from click.testing import CliRunner

from tests.helpers import stat_packet
from tools.cli import cli, config_from_options
from tools.formatting import format_client, format_message, print_error
from tools.parsers import apply_device_alias, parse_field, parse_fields
from xpl_py.app.events import MESSAGE
from xpl_py.encoding.message import decode_message
from xpl_py.network.address import XplAddress
from xpl_py.transport.hub import HubClient
from xpl_py.types.enums import HubState

BASE_ARGS = ["--local-address", "192.168.1.20", "--xpl-source", "acme-cli.test"]
PEER = XplAddress("192.168.1.30", 50123)


def _fake_run(app):
    """Stand-in for ``run_application`` driving *app* without sockets."""
    configs = []

    def run(config, coro_factory):
        configs.append(config)
        return asyncio.run(coro_factory(app))

    return run, configs


class TestParsers:
    def test_parse_field(self):
        assert parse_field("device=lamp1") == ("device", "lamp1")

    def test_value_keeps_equals(self):
        assert parse_field("expr=a=b") == ("expr", "a=b")

    @pytest.mark.parametrize("text", ["novalue", "=x", " =x"])
    def test_invalid(self, text):
        with pytest.raises(ValueError, match="name=value"):
            parse_field(text)

    def test_parse_fields_ordered(self):
        assert list(parse_fields(["b=1", "a=2"])) == ["b", "a"]

    def test_apply_device_alias(self):
        assert apply_device_alias({"device": "kitchen"}, {"kitchen": "temp1"}) == {
            "device": "temp1"
        }
        assert apply_device_alias({"device": "other"}, {"kitchen": "temp1"}) == {
            "device": "other"
        }


class TestFormatting:
    def test_format_message(self):
        line = format_message(decode_message(stat_packet(), PEER))
        assert line == (
            "192.168.1.30:50123  xpl-stat  acme-therm.kitchen -> *  sensor.basic  "
            "device=temp1 current=21.5"
        )

    def test_format_client(self):
        client = HubClient(address=PEER, ttl=1480.0)
        assert format_client(client, 1000.0) == "192.168.1.30:50123  expires in 480s"

    def test_format_expired_client(self):
        client = HubClient(address=PEER, ttl=1000.0)
        assert format_client(client, 1010.0).endswith("expires in 0s")

    def test_print_error_json(self, capsys):
        print_error("bad field", use_json=True)
        assert orjson.loads(capsys.readouterr().err) == {"error": "bad field"}

    def test_print_error_text(self, capsys):
        print_error("bad field")
        assert capsys.readouterr().err == "Error: bad field\n"


class TestConfigFromOptions:
    def test_maps_options(self):
        cfg = config_from_options(
            xpl_port=4000,
            hub_support=True,
            local_address="10.0.0.5",
            xpl_source="acme-cli.x",
            promiscuous=True,
            ttl=4,
            device_aliases="ignored=1",
        )
        assert cfg.xpl_port == 4000
        assert cfg.hub_support is True
        assert cfg.broadcast_address == "10.0.0.255"
        assert cfg.promiscuous_mode is True
        assert cfg.ttl == 4


class TestSendCommand:
    def test_sends_cmnd(self):
        app = MagicMock()
        app.send_command = AsyncMock()
        run, configs = _fake_run(app)
        with patch("tools.commands.send.run_application", run):
            result = CliRunner().invoke(
                cli, [*BASE_ARGS, "send", "device=lamp1", "command=on", "--body-name", "x10.basic"]
            )
        assert result.exit_code == 0, result.output
        app.send_command.assert_awaited_once_with(
            "xpl-cmnd", {"device": "lamp1", "command": "on"}, "x10.basic", None, None
        )
        assert configs[0].xpl_source == "acme-cli.test"
        assert "xpl-cmnd" in result.output

    def test_type_and_target(self):
        app = MagicMock()
        app.send_command = AsyncMock()
        run, _ = _fake_run(app)
        with patch("tools.commands.send.run_application", run):
            result = CliRunner().invoke(
                cli,
                [*BASE_ARGS, "send", "--type", "stat", "--target", "acme-hub.x", "a=1", "--json"],
            )
        assert result.exit_code == 0, result.output
        app.send_command.assert_awaited_once_with("xpl-stat", {"a": "1"}, None, "acme-hub.x", None)
        assert orjson.loads(result.output)["header"] == "xpl-stat"

    def test_device_alias_applied(self):
        app = MagicMock()
        app.send_command = AsyncMock()
        run, _ = _fake_run(app)
        with patch("tools.commands.send.run_application", run):
            result = CliRunner().invoke(
                cli,
                [*BASE_ARGS, "--device-aliases", "kitchen=temp1", "send", "device=kitchen"],
            )
        assert result.exit_code == 0, result.output
        assert app.send_command.await_args.args[1] == {"device": "temp1"}

    def test_invalid_field(self):
        result = CliRunner().invoke(cli, [*BASE_ARGS, "send", "broken"])
        assert result.exit_code == 1

    def test_socket_error(self):
        def run(config, coro_factory):
            raise OSError("Address not available")

        with patch("tools.commands.send.run_application", run):
            result = CliRunner().invoke(cli, [*BASE_ARGS, "send", "a=1"])
        assert result.exit_code == 1


class TestListenCommand:
    def _app(self):
        app = MagicMock()
        handlers = {}
        app.on.side_effect = lambda channel, handler: handlers.setdefault(channel, handler)
        return app, handlers

    def _run_delivering(self, app, handlers):
        def run(config, coro_factory):
            async def go():
                task = asyncio.ensure_future(coro_factory(app))
                await asyncio.sleep(0)
                raw = stat_packet()
                handlers[MESSAGE](decode_message(raw, PEER), PEER, raw)
                return await task

            return asyncio.run(go())

        return run

    def test_prints_messages(self):
        app, handlers = self._app()
        with patch("tools.commands.listen.run_application", self._run_delivering(app, handlers)):
            result = CliRunner().invoke(cli, [*BASE_ARGS, "listen", "--count", "1"])
        assert result.exit_code == 0, result.output
        assert "192.168.1.30:50123" in result.output
        assert "sensor.basic" in result.output
        assert "current=21.5" in result.output

    def test_json_output(self):
        app, handlers = self._app()
        with patch("tools.commands.listen.run_application", self._run_delivering(app, handlers)):
            result = CliRunner().invoke(cli, [*BASE_ARGS, "listen", "--count", "1", "--json"])
        assert result.exit_code == 0, result.output
        data = orjson.loads(result.output)
        assert data["body"] == {"device": "temp1", "current": "21.5"}
        assert data["from"] == {"host": "192.168.1.30", "port": 50123}


class TestHubCommand:
    def test_forces_hub_support_and_lists_clients(self):
        app = MagicMock()
        app.state = HubState.HUB_ACTIVE
        client = MagicMock()
        client.address = PEER
        client.ttl = time.monotonic() + 480
        app.hub.clients = {PEER.key: client}
        run, configs = _fake_run(app)
        with patch("tools.commands.hub.run_application", run):
            result = CliRunner().invoke(cli, [*BASE_ARGS, "hub", "--duration", "0"])
        assert result.exit_code == 0, result.output
        assert configs[0].hub_support is True
        assert "xPL hub listening" in result.output
        assert "192.168.1.30:50123  expires in" in result.output

    def test_client_mode(self):
        app = MagicMock()
        app.state = HubState.CLIENT_MODE
        app.hub = None
        run, _ = _fake_run(app)
        with patch("tools.commands.hub.run_application", run):
            result = CliRunner().invoke(cli, [*BASE_ARGS, "hub", "--duration", "0"])
        assert result.exit_code == 0, result.output
        assert "running as a client" in result.output
        assert "No hub clients registered" in result.output


def test_help_lists_commands():
    result = CliRunner().invoke(cli, ["--help"])
    assert result.exit_code == 0
    for name in ("listen", "send", "hub"):
        assert name in result.output
