"""Input parsing utilities for the xPL CLI."""

from __future__ import annotations


def parse_field(text: str) -> tuple[str, str]:
    """Parse a ``name=value`` argument.

    Only the first ``=`` separates name from value.

    :raises ValueError: If there is no ``=`` or the name is empty.
    """
    name, sep, value = text.partition("=")
    name = name.strip()
    if not sep or not name:
        msg = f"Invalid field {text!r}, expected name=value"
        raise ValueError(msg)
    return name, value


def parse_fields(items: tuple[str, ...] | list[str]) -> dict[str, str]:
    """Parse ``name=value`` arguments into an ordered dict."""
    return dict(parse_field(item) for item in items)


def apply_device_alias(fields: dict[str, str], aliases: dict[str, str]) -> dict[str, str]:
    """Replace a ``device`` field that names an alias with its device."""
    device = fields.get("device")
    if device is None or device not in aliases:
        return fields
    return {**fields, "device": aliases[device]}
