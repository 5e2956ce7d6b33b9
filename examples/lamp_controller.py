"""Switch an X10 lamp on command, validating requests with a schema.

Usage::

    python examples/lamp_controller.py
"""

import asyncio
import logging

from xpl_py import XplApplication, XplConfig, XplMessage

logging.basicConfig(level=logging.INFO, format="%(name)s %(levelname)s %(message)s")

X10_SCHEMA = {
    "properties": {
        "device": {"type": "string", "pattern": "^[A-P][0-9]+$"},
        "command": {"type": "string", "enum": ["on", "off", "dim", "bright"]},
        "level": {"type": "integer", "minimum": 0, "maximum": 100},
    },
    "required": ["device", "command"],
}


async def main() -> None:
    """Answer every x10.basic command addressed to us with a trigger."""
    app = XplApplication(XplConfig(hub_support=True, xpl_source="acme-lamp.hall"))
    app.add_body_schema("x10.basic", X10_SCHEMA)

    def on_command(message: XplMessage, source: object) -> None:
        if message.header_name != "xpl-cmnd" or message.body is None:
            return
        print(f"{message.body['device']} -> {message.body['command']}")
        app.send_nowait(
            XplMessage(
                header_name="xpl-trig",
                header=app.fill_header(),
                body_name="x10.basic",
                body=dict(message.body),
            )
        )

    def on_invalid(error: Exception, raw_text: str, source: object) -> None:
        print(f"Rejected message from {source}: {error}")

    app.on("xpl:x10.basic", on_command)
    app.on("validationError", on_invalid)
    async with app:
        await asyncio.Event().wait()


if __name__ == "__main__":
    asyncio.run(main())
