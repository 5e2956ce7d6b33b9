"""UDP sockets, hub fan-out and client heartbeats."""

from xpl_py.transport.connection import ConnectionManager
from xpl_py.transport.heartbeat import HeartbeatManager
from xpl_py.transport.hub import HubManager

__all__ = ["ConnectionManager", "HeartbeatManager", "HubManager"]
