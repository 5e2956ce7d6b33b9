"""Async bridge between Click (sync) and XplApplication (async)."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from typing import Any, TypeVar

from xpl_py.app.application import XplApplication, XplConfig

T = TypeVar("T")


def run_application(
    config: XplConfig,
    coro_factory: Callable[[XplApplication], Coroutine[Any, Any, T]],
) -> T:
    """Bind an xPL application, run a coroutine against it, then close it.

    :param config: Application configuration.
    :param coro_factory: Receives the bound application and returns the
        coroutine to execute.
    :returns: The return value of the coroutine.
    """

    async def _run() -> T:
        async with XplApplication(config) as app:
            return await coro_factory(app)

    return asyncio.run(_run())
