"""
Main entry point for the BOOTH notifier.
"""

import asyncio
import sys
from typing import Optional

from .orchestrator import ApplicationOrchestrator
from .utils.error_handling import ConfigError, StorageError
from .utils.logging import get_logger, setup_logging


async def async_main(config_path: Optional[str] = None):
    """Async main application entry point."""
    # Console logging until the configured log settings are known
    setup_logging(log_level="INFO")
    logger = get_logger("main")

    logger.info("Starting BOOTH notifier", extra={"config_path": config_path})

    try:
        orchestrator = ApplicationOrchestrator(config_path)
        await orchestrator.run()

    except ConfigError as e:
        logger.critical("Invalid configuration", extra={"error": str(e)})
        sys.exit(1)

    except StorageError as e:
        logger.critical("Database unavailable", extra={"error": str(e)})
        sys.exit(1)


def main():
    """Main application entry point."""
    config_path = None

    # Check for config path argument
    if len(sys.argv) > 1:
        config_path = sys.argv[1]

    try:
        asyncio.run(async_main(config_path))
    except KeyboardInterrupt:
        print("\nShutdown requested by user")


if __name__ == "__main__":
    main()
