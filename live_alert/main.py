"""
Main entry point for the Live Alert system.
"""

import asyncio
import sys
from typing import Optional

from .orchestrator import ApplicationOrchestrator
from .utils.logging import get_logger, setup_logging


async def async_main(config_path: Optional[str] = None) -> int:
    """Async main application entry point."""
    # Console only until the configuration says where log files go
    setup_logging(log_dir=None, log_level="INFO")
    logger = get_logger("main")

    logger.info("Starting Live Alert", extra={"config_path": config_path})

    orchestrator = ApplicationOrchestrator(config_path)
    return await orchestrator.run()


def main():
    """Main application entry point."""
    config_path = None

    if len(sys.argv) > 1:
        config_path = sys.argv[1]

    try:
        exit_code = asyncio.run(async_main(config_path))
    except KeyboardInterrupt:
        print("\nShutdown requested by user")
        exit_code = 0
    except Exception as e:
        print(f"Fatal error: {e}")
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
