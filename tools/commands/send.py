"""send command -- broadcast one xPL message."""

from __future__ import annotations

import sys

import click

from tools.connection import run_application
from tools.formatting import format_fields, print_error, print_json
from tools.parsers import apply_device_alias, parse_fields
from xpl_py.app.application import XplApplication


@click.command()
@click.argument("fields", nargs=-1)
@click.option(
    "--type",
    "message_type",
    type=click.Choice(["cmnd", "stat", "trig"]),
    default="cmnd",
    show_default=True,
    help="Message type (header xpl-<type>).",
)
@click.option("--body-name", default=None, help="Body schema name (default depends on type).")
@click.option("--target", default=None, help="Target identity (default: --xpl-target).")
@click.option(
    "--source",
    default=None,
    help="Source identity; a leading ';' appends to --xpl-source.",
)
@click.option("--json", "use_json", is_flag=True, default=False, help="Output JSON.")
@click.pass_context
def send(
    ctx: click.Context,
    fields: tuple[str, ...],
    message_type: str,
    body_name: str | None,
    target: str | None,
    source: str | None,
    use_json: bool,
) -> None:
    """Send one message whose body is built from FIELDS.

    FIELDS are name=value pairs (e.g. device=lamp1 command=on).  A
    ``device`` naming a configured alias is replaced by its device.
    """
    try:
        body = apply_device_alias(parse_fields(fields), ctx.obj.get("aliases", {}))
        config = ctx.obj["config_factory"]()
    except ValueError as e:
        print_error(str(e), use_json)
        sys.exit(1)

    header_name = f"xpl-{message_type}"

    async def _run(app: XplApplication) -> None:
        await app.send_command(header_name, dict(body), body_name, target, source)

    try:
        run_application(config, _run)
    except OSError as e:
        print_error(f"Socket error: {e}", use_json)
        sys.exit(1)

    if use_json:
        print_json({"header": header_name, "body_name": body_name, "body": body})
    else:
        click.echo(f"Sent {header_name} {body_name or '(default body)'}  {format_fields(body)}")
