"""Inbound mail service entry point. Run from project root: python -m portal.main"""
import asyncio
import logging

from portal.inbound_server import start_inbound_server
from portal.models import init_db
from portal.services.background import drain

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("mailportal")


async def _serve() -> None:
    await init_db()
    runner = await start_inbound_server()
    if runner is None:
        raise ValueError("INTERNAL_API_SECRET is required for the inbound service")
    try:
        await asyncio.Event().wait()
    finally:
        await drain()
        await runner.cleanup()


def main() -> None:
    """Run the inbound service until interrupted."""
    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        logger.info("Inbound service stopped")


if __name__ == "__main__":
    main()
