"""Tests for hub client heartbeats (transport/heartbeat.py)."""

import asyncio

import pytest

from tests.helpers import BROADCAST_HOST, LOCAL_HOST, XPL_PORT, drain
from xpl_py.encoding.message import decode_message
from xpl_py.network.address import XplAddress
from xpl_py.transport.heartbeat import (
    HEARTBEAT_BODY,
    HeartbeatManager,
    build_heartbeat,
    heartbeat_interval_minutes,
)
from xpl_py.types.enums import SocketRole

SOURCE = "acme-therm.kitchen"


class TestBuildHeartbeat:
    @pytest.mark.parametrize(
        ("delay", "minutes"), [(240, 4), (60, 1), (30, 1), (1, 1), (299, 4)]
    )
    def test_interval_minutes(self, delay, minutes):
        assert heartbeat_interval_minutes(delay) == minutes

    def test_fields(self):
        msg = build_heartbeat(SOURCE, "*", XplAddress(LOCAL_HOST, 50100), 240, LOCAL_HOST)
        assert msg.header_name == "xpl-stat"
        assert msg.header == {"hop": 1, "source": SOURCE, "target": "*"}
        assert msg.body_name == HEARTBEAT_BODY
        assert msg.body == {"interval": 4, "port": 50100, "remote-ip": LOCAL_HOST}

    def test_wildcard_bind_uses_local_address(self):
        msg = build_heartbeat(SOURCE, "*", XplAddress("0.0.0.0", 50100), 240, LOCAL_HOST)
        assert msg.body["remote-ip"] == LOCAL_HOST


class TestHeartbeatManager:
    def test_rejects_non_positive_delay(self, connection):
        with pytest.raises(ValueError, match="> 0"):
            HeartbeatManager(connection, SOURCE, "*", 0, LOCAL_HOST)

    @pytest.mark.asyncio
    async def test_start_sends_first_heartbeat(self, connection, endpoints):
        heartbeat = HeartbeatManager(connection, SOURCE, "*", 240, LOCAL_HOST)
        address = await heartbeat.start()
        await drain()
        try:
            assert heartbeat.running
            assert heartbeat.sent == 1
            [(data, dest)] = endpoints.sent(SocketRole.OUTPUT_BROADCAST)
            assert dest == (BROADCAST_HOST, XPL_PORT)
            msg = decode_message(data)
            assert msg.body_name == "hbeat.app"
            assert msg.body["port"] == str(address.port)
            assert msg.body["remote-ip"] == LOCAL_HOST
        finally:
            await heartbeat.wait_stopped()
        assert not heartbeat.running

    @pytest.mark.asyncio
    async def test_first_heartbeat_sent_before_start_returns(self, connection, endpoints):
        heartbeat = HeartbeatManager(connection, SOURCE, "*", 240, LOCAL_HOST)
        await heartbeat.start()
        try:
            assert heartbeat.sent == 1
            assert len(endpoints.sent(SocketRole.OUTPUT_BROADCAST)) == 1
        finally:
            await heartbeat.wait_stopped()

    @pytest.mark.asyncio
    async def test_loop_waits_one_interval_before_next_heartbeat(self, connection, endpoints):
        heartbeat = HeartbeatManager(connection, SOURCE, "*", 240, LOCAL_HOST)
        await heartbeat.start()
        await drain()
        try:
            assert heartbeat.sent == 1
        finally:
            await heartbeat.wait_stopped()

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, connection):
        heartbeat = HeartbeatManager(connection, SOURCE, "*", 240, LOCAL_HOST)
        heartbeat.stop()
        await heartbeat.start()
        heartbeat.stop()
        heartbeat.stop()
        assert not heartbeat.running

    @pytest.mark.asyncio
    async def test_repeats_every_interval(self, connection, endpoints):
        heartbeat = HeartbeatManager(connection, SOURCE, "*", 0.01, LOCAL_HOST)
        await heartbeat.start()
        await asyncio.sleep(0.1)
        await heartbeat.wait_stopped()
        assert heartbeat.sent >= 2

    @pytest.mark.asyncio
    async def test_send_failure_does_not_stop_loop(self, connection, endpoints):
        heartbeat = HeartbeatManager(connection, SOURCE, "*", 0.01, LOCAL_HOST)
        transport, _ = await connection.acquire(SocketRole.OUTPUT_BROADCAST)
        transport.fail_all = True
        await heartbeat.start()
        await asyncio.sleep(0.1)
        assert heartbeat.running
        await heartbeat.wait_stopped()
        assert transport.attempts >= 2
        assert heartbeat.sent == 0
