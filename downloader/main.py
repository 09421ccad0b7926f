"""
Entrypoint: load config, init logging, run one batch of downloads.
"""

import asyncio
import sys

import structlog

from .config import Config
from .log import setup_logging
from .worker import Downloader, DownloadContext, RunReport

logger = structlog.get_logger(__name__)


async def run_downloads(config: Config, **context_kwargs) -> RunReport:
    """Build a fresh context, run the batch and close the transport."""
    async with DownloadContext.create(config, **context_kwargs) as context:
        downloader = Downloader(context)
        return await downloader.run()


def main() -> int:
    """Main entry point for the downloader application."""
    try:
        config = Config()
    except (FileNotFoundError, ValueError) as e:
        print(f"Fatal error during startup: {e}")
        sys.exit(1)

    setup_logging(config.logging)

    try:
        asyncio.run(run_downloads(config))
    except KeyboardInterrupt:
        logger.info("shutting_down")
        return 0
    except Exception as e:
        logger.error("fatal_error", error=str(e), exc_info=True)
        sys.exit(1)

    logger.info("all_downloads_completed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
