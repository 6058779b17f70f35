#!/usr/bin/env python3
"""One-shot collection: scrape every source that is due, then exit."""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from local_events.scheduler import CollectionScheduler


async def main() -> int:
    print("Starting one-shot collection...")
    try:
        summary = await CollectionScheduler().run_once()
    except Exception as e:
        print(f"Collection failed: {e}", file=sys.stderr)
        return 1
    print(
        f"Done! {summary.sources} sources, {summary.succeeded} ok, "
        f"{summary.failed} failed, {summary.events_stored} new events stored."
    )
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
