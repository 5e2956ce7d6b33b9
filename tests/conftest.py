"""Shared fixtures for xpl-py tests."""

from __future__ import annotations

import pytest

from tests.helpers import BROADCAST_HOST, LOCAL_HOST, FakeClock, FakeEndpoints
from xpl_py.transport.connection import ConnectionManager


@pytest.fixture
def endpoints() -> FakeEndpoints:
    return FakeEndpoints()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def connection(endpoints: FakeEndpoints) -> ConnectionManager:
    """A connection manager whose sockets are in-memory fakes."""
    manager = ConnectionManager(LOCAL_HOST, BROADCAST_HOST)
    manager._open_endpoint = endpoints  # type: ignore[method-assign]
    return manager
