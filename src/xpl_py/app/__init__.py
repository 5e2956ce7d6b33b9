"""High-level xPL application interface.

Public API:

- :class:`XplApplication`: orchestrator wiring the codec, schema
  registries, sockets, hub and heartbeat together.
- :class:`XplConfig`: configuration dataclass for an application.
- :class:`EventBus`: named event channels.
"""

from xpl_py.app.application import XplApplication, XplConfig
from xpl_py.app.events import EventBus

__all__ = ["EventBus", "XplApplication", "XplConfig"]
