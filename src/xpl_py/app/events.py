"""Named event channels for inbound xPL traffic and lifecycle notices."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

MESSAGE = "message"
"""Every accepted packet: ``(message, source, raw)``."""

VALIDATION_ERROR = "validationError"
"""Decode or schema failure: ``(error, raw_text, source)``."""

HUB = "hub"
"""Packets addressed to someone else, offered to the local hub: ``(message, source, raw)``."""

ERROR = "error"
"""Socket error after a socket became ready: ``(exc,)``."""

CLOSE = "close"
"""At least one socket was torn down by ``close()``: no arguments."""

_XPL_PREFIX = "xpl:"


def xpl_channel(name: str) -> str:
    """Channel name for a header name or body name (``xpl:<name>``)."""
    return _XPL_PREFIX + name


class EventBus:
    """A set of named channels, each with any number of subscribers.

    Subscribers are called synchronously in subscription order.  A
    subscriber that raises is logged and does not prevent delivery to
    the rest.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Callable[..., Any]]] = {}

    def on(self, channel: str, handler: Callable[..., Any]) -> None:
        """Subscribe *handler* to *channel*."""
        self._handlers.setdefault(channel, []).append(handler)

    def off(self, channel: str, handler: Callable[..., Any]) -> None:
        """Remove one subscription of *handler* from *channel*, if present."""
        handlers = self._handlers.get(channel, [])
        if handler in handlers:
            handlers.remove(handler)

    def has_subscribers(self, channel: str) -> bool:
        return bool(self._handlers.get(channel))

    def emit(self, channel: str, *args: Any) -> int:
        """Deliver *args* to every subscriber of *channel*.

        :returns: Number of subscribers called.
        """
        handlers = self._handlers.get(channel)
        if not handlers:
            return 0
        # Copy: a handler may unsubscribe itself while being called.
        snapshot = list(handlers)
        for handler in snapshot:
            try:
                handler(*args)
            except Exception:
                logger.exception("Unhandled error in %r subscriber", channel)
        return len(snapshot)
