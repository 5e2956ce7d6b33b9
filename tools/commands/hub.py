"""hub command -- run the local xPL hub."""

from __future__ import annotations

import asyncio
import sys
import time

import click

from tools.connection import run_application
from tools.formatting import format_client, print_error
from xpl_py.app.application import XplApplication
from xpl_py.types.enums import HubState


@click.command()
@click.option(
    "--duration",
    type=float,
    default=None,
    help="Stop after this many seconds (default: run until interrupted).",
)
@click.pass_context
def hub(ctx: click.Context, duration: float | None) -> None:
    """Run as the local xPL hub.

    If another hub already owns the xPL port, run as its client instead.
    On exit the registered clients are listed.
    """
    try:
        config = ctx.obj["config_factory"](hub_support=True)
    except ValueError as e:
        print_error(str(e))
        sys.exit(1)

    async def _run(app: XplApplication) -> list[str]:
        if app.state is HubState.HUB_ACTIVE:
            click.echo(f"xPL hub listening on port {config.xpl_port}")
        else:
            click.echo("Another hub owns the xPL port, running as a client")
        if duration is None:
            await asyncio.Event().wait()
        else:
            await asyncio.sleep(duration)
        clients = app.hub.clients if app.hub is not None else {}
        now = time.monotonic()
        return [format_client(c, now) for c in clients.values()]

    try:
        lines = run_application(config, _run)
    except OSError as e:
        print_error(f"Socket error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        return

    if lines:
        click.echo("Registered hub clients:")
        for line in lines:
            click.echo(f"  {line}")
    else:
        click.echo("No hub clients registered")
