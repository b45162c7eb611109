"""
Command line entry point for the Kufar notifier.
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from .orchestrator import ApplicationOrchestrator
from .utils.logging import get_logger, setup_logging


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="kufar-notifier",
        description="Re-scrape saved Kufar searches and send new listings to Telegram.",
    )
    parser.add_argument(
        "config_path",
        nargs="?",
        help="YAML or JSON configuration file (default: search standard paths, then environment)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="run a single sync cycle and exit",
    )
    return parser.parse_args(argv)


async def async_main(config_path: Optional[str] = None, once: bool = False) -> int:
    """Run the orchestrator; returns the process exit code."""
    setup_logging(log_level="INFO")
    logger = get_logger("main")
    logger.info("Starting Kufar notifier", extra={"config_path": config_path, "once": once})

    try:
        orchestrator = ApplicationOrchestrator(config_path)
        ok = await orchestrator.run(once=once)
    except Exception as e:
        logger.error("Application failed", extra={"error": str(e)}, exc_info=True)
        return 1

    return 0 if ok else 1


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    try:
        sys.exit(asyncio.run(async_main(args.config_path, args.once)))
    except KeyboardInterrupt:
        print("\nShutdown requested by user")


if __name__ == "__main__":
    main()
