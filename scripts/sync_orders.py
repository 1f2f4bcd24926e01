#!/usr/bin/env python3
"""CLI script to run one marketplace order sync pass."""

import argparse
import asyncio
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import structlog

from sync_worker.tasks.sync_orders import run_marketplace_sync

logger = structlog.get_logger()


async def run(channel_id: int | None) -> int:
    summary = await run_marketplace_sync(channel_id)
    if summary["success"]:
        logger.info("Marketplace sync finished", **summary)
        return 0
    logger.error("Marketplace sync failed", **summary)
    return 1


def main() -> None:
    parser = argparse.ArgumentParser(description="Sync marketplace orders into the order tables")
    parser.add_argument(
        "--channel-id",
        type=int,
        default=None,
        help="Sync a single channel instead of all active channels",
    )
    args = parser.parse_args()

    sys.exit(asyncio.run(run(args.channel_id)))


if __name__ == "__main__":
    main()
