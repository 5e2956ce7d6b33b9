"""listen command -- print xPL messages as they arrive."""

from __future__ import annotations

import asyncio
import sys

import click

from tools.connection import run_application
from tools.formatting import format_message, print_error, print_json
from xpl_py.app.application import XplApplication
from xpl_py.app.events import MESSAGE, VALIDATION_ERROR
from xpl_py.encoding.message import XplMessage
from xpl_py.errors import XplValidationError
from xpl_py.network.address import XplAddress


@click.command()
@click.option("--json", "use_json", is_flag=True, default=False, help="Print messages as JSON.")
@click.option(
    "--count",
    type=click.IntRange(min=1),
    default=None,
    help="Exit after this many messages.",
)
@click.pass_context
def listen(ctx: click.Context, use_json: bool, count: int | None) -> None:
    """Print every xPL message this application accepts.

    Runs until interrupted, or until COUNT messages were printed.
    """
    try:
        config = ctx.obj["config_factory"]()
    except ValueError as e:
        print_error(str(e), use_json)
        sys.exit(1)

    async def _run(app: XplApplication) -> int:
        done = asyncio.Event()
        received = 0

        def on_message(message: XplMessage, source: XplAddress, raw: bytes) -> None:
            nonlocal received
            if use_json:
                print_json(message)
            else:
                click.echo(format_message(message))
            received += 1
            if count is not None and received >= count:
                done.set()

        def on_invalid(error: XplValidationError, text: str, source: XplAddress) -> None:
            print_error(f"Invalid message from {source}: {error} ({error.code})", use_json)

        app.on(MESSAGE, on_message)
        app.on(VALIDATION_ERROR, on_invalid)
        await done.wait()
        return received

    try:
        run_application(config, _run)
    except OSError as e:
        print_error(f"Socket error: {e}", use_json)
        sys.exit(1)
    except KeyboardInterrupt:
        pass
