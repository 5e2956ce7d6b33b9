"""Click CLI group and global xPL options."""

from __future__ import annotations

import functools
import logging
import sys
from typing import TYPE_CHECKING, Any

import click

from tools.commands.hub import hub
from tools.commands.listen import listen
from tools.commands.send import send
from xpl_py.aliases import load_device_aliases
from xpl_py.app.application import DEFAULT_HUB_PING_DELAY, XplConfig
from xpl_py.transport.connection import DEFAULT_XPL_PORT, SOCKET_TYPES

if TYPE_CHECKING:
    from collections.abc import Callable

_XPL_OPTIONS = (
    click.option(
        "--xpl-port",
        default=DEFAULT_XPL_PORT,
        type=int,
        show_default=True,
        help="Shared xPL UDP port.",
    ),
    click.option(
        "--hub-support",
        is_flag=True,
        default=False,
        help="Act as the local hub if none is running.",
    ),
    click.option(
        "--socket-type",
        type=click.Choice(SOCKET_TYPES),
        default="udp4",
        show_default=True,
        help="Socket family.",
    ),
    click.option(
        "--broadcast-address",
        default=None,
        help="Broadcast address (default: local /24).",
    ),
    click.option(
        "--local-address",
        default=None,
        help="Local bind address (default: outgoing interface).",
    ),
    click.option(
        "--hub-ping-delay-second",
        default=DEFAULT_HUB_PING_DELAY,
        type=click.IntRange(min=1),
        show_default=True,
        help="Seconds between two hub heartbeats.",
    ),
    click.option(
        "--xpl-source",
        default=None,
        help="Source identity of sent messages.",
    ),
    click.option(
        "--xpl-target",
        default="*",
        show_default=True,
        help="Default target of sent messages.",
    ),
    click.option(
        "--promiscuous",
        is_flag=True,
        default=False,
        help="Accept messages for any target.",
    ),
    click.option("--ttl", default=None, type=int, help="IP TTL of outgoing packets."),
    click.option(
        "--device-aliases",
        default=None,
        help="Inline 'alias=device,...' or JSON file paths.",
    ),
)


def xpl_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorate a click command with the standard xPL options."""
    for option in reversed(_XPL_OPTIONS):
        func = option(func)
    return func


def config_from_options(
    *,
    xpl_port: int = DEFAULT_XPL_PORT,
    hub_support: bool = False,
    socket_type: str = "udp4",
    broadcast_address: str | None = None,
    local_address: str | None = None,
    hub_ping_delay_second: int = DEFAULT_HUB_PING_DELAY,
    xpl_source: str | None = None,
    xpl_target: str = "*",
    promiscuous: bool = False,
    ttl: int | None = None,
    **_: Any,
) -> XplConfig:
    """Build an :class:`XplConfig` from parsed :func:`xpl_options` values."""
    return XplConfig(
        xpl_port=xpl_port,
        hub_support=hub_support,
        socket_type=socket_type,
        broadcast_address=broadcast_address,
        local_address=local_address,
        hub_ping_delay_second=hub_ping_delay_second,
        xpl_source=xpl_source,
        xpl_target=xpl_target,
        promiscuous_mode=promiscuous,
        ttl=ttl,
    )


@click.group()
@xpl_options
@click.option(
    "--verbose",
    is_flag=True,
    default=False,
    help="Enable debug logging.",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, device_aliases: str | None, **options: Any) -> None:
    """xPL command-line tools powered by xpl-py."""
    ctx.ensure_object(dict)
    ctx.obj["options"] = options
    ctx.obj["config_factory"] = functools.partial(config_from_options, **options)

    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )
    ctx.obj["aliases"] = load_device_aliases(device_aliases)


cli.add_command(listen)
cli.add_command(send)
cli.add_command(hub)
