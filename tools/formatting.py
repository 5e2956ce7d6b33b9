"""Output formatting for the xPL CLI.

Messages print one per line, or as JSON with ``--json``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import click

from xpl_py.serialization import serialize

if TYPE_CHECKING:
    from xpl_py.encoding.message import XplMessage
    from xpl_py.transport.hub import HubClient


def format_fields(fields: dict[str, Any] | None) -> str:
    """Render a block's fields as ``name=value`` pairs on one line."""
    if not fields:
        return ""
    return " ".join(f"{name}={value}" for name, value in fields.items())


def format_message(message: XplMessage) -> str:
    """One-line summary: sender, header, body name and body fields."""
    sender = str(message.source) if message.source is not None else "-"
    source = message.header.get("source", "-")
    target = message.header.get("target", "*")
    parts = [sender, message.header_name, f"{source} -> {target}"]
    if message.body_name:
        parts.append(message.body_name)
        body = format_fields(message.body)
        if body:
            parts.append(body)
    return "  ".join(parts)


def format_client(client: HubClient, now: float) -> str:
    """One line per hub registration, with the seconds left before it expires."""
    return f"{client.address}  expires in {max(0.0, client.ttl - now):.0f}s"


def print_json(data: Any) -> None:
    """Print a message or dict as indented JSON."""
    click.echo(serialize(data, pretty=True).decode())


def print_error(message: str, use_json: bool = False) -> None:
    """Print an error to stderr, as ``{"error": ...}`` in JSON mode."""
    if use_json:
        click.echo(serialize({"error": message}).decode(), err=True)
    else:
        click.echo(f"Error: {message}", err=True)
