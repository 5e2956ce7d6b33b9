"""Device alias tables.

An alias table maps a friendly name to an xPL device identifier.  It is
given either inline as ``"kitchen=temp1,garage=temp2"`` or as a
comma-separated list of JSON files, each holding an object of
``alias -> device``.
"""

from __future__ import annotations

import logging
from pathlib import Path

import orjson

logger = logging.getLogger(__name__)


def load_device_aliases(definition: str | None) -> dict[str, str]:
    """Load a device alias table.

    Inline entries are trimmed and entries that are not exactly
    ``alias=device`` are skipped.  Files are merged in order, later
    files overriding earlier ones.  A file that cannot be read or
    parsed is logged and skipped.

    :param definition: Inline table, comma-separated file paths, or ``None``.
    :returns: The alias table, empty when *definition* is empty.
    """
    aliases: dict[str, str] = {}
    if not definition:
        return aliases

    if "=" in definition:
        for entry in definition.split(","):
            parts = entry.split("=")
            if len(parts) == 2:
                aliases[parts[0].strip()] = parts[1].strip()
        logger.debug("Device aliases: %s", aliases)
        return aliases

    for path in definition.split(","):
        _load_aliases_file(Path(path.strip()), aliases)
    logger.debug("Device aliases from %s: %s", definition, aliases)
    return aliases


def _load_aliases_file(path: Path, aliases: dict[str, str]) -> None:
    try:
        data = orjson.loads(path.read_bytes())
    except (OSError, orjson.JSONDecodeError):
        logger.error("Can not load device aliases from %s", path, exc_info=True)
        return
    if not isinstance(data, dict):
        logger.error("Device aliases file %s does not hold a JSON object", path)
        return
    for name, device in data.items():
        aliases[name] = str(device)
