"""Standalone probe sidecar.

Serves the probe endpoints, reports ready immediately and exits once a
shutdown signal has run the shutdown sequence. Configured through
``LIGHTKEEPER_*`` environment variables.
"""

import asyncio
import os

import structlog

from lightkeeper.config import LightkeeperSettings
from lightkeeper.logging_config import configure_logging
from lightkeeper.service import create_lightkeeper

logger = structlog.get_logger(__name__)


async def run(settings: LightkeeperSettings) -> None:
    lightkeeper = await create_lightkeeper(settings)

    logger.info(
        "application_startup",
        service="lightkeeper",
        version=os.getenv("APP_VERSION", "0.1.0"),
        port=lightkeeper.port,
        local_mode=lightkeeper.local_mode,
    )

    lightkeeper.signal_ready()

    try:
        await lightkeeper.wait_for_shutdown()
    finally:
        await lightkeeper.close()

    logger.info("application_shutdown")


def main() -> None:
    """Run the probe sidecar."""
    settings = LightkeeperSettings()
    configure_logging(settings)
    asyncio.run(run(settings))


if __name__ == "__main__":
    main()
