"""
Family Organizer — Entry Point.

Single entry point: `python main.py` starts the sync core, keeps every list
live until SIGINT/SIGTERM, then shuts down cleanly.
"""

import logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

import asyncio
import signal

from src.app import FamilyOrganizer


async def run() -> None:
    organizer = FamilyOrganizer.from_settings()
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    await organizer.start()
    try:
        await stop.wait()
    finally:
        await organizer.close()
        organizer.store.close()


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
