"""Publish a temperature reading every minute.

Joins the local xPL network (becoming the hub if none is running) and
broadcasts ``sensor.basic`` status messages.

Usage::

    python examples/temperature_sensor.py
"""

import asyncio
import logging
import random

from xpl_py import XplApplication, XplConfig

logging.basicConfig(level=logging.INFO, format="%(name)s %(levelname)s %(message)s")


async def main() -> None:
    """Send a trigger on startup, then periodic status updates."""
    config = XplConfig(hub_support=True, xpl_source="acme-therm.kitchen")
    async with XplApplication(config) as app:
        await app.send_trig({"device": "temp1", "type": "temp", "current": 20.0})
        while True:
            await asyncio.sleep(60)
            reading = round(19.0 + random.random() * 3, 1)
            await app.send_stat({"device": "temp1", "type": "temp", "current": reading})


if __name__ == "__main__":
    asyncio.run(main())
