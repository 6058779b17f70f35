#!/usr/bin/env python3
"""Dry-run a venue recipe: scrape it and print what would be stored.

Usage: python scripts/check_venue.py "The Sylvee"
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from local_events.collector import EventCollector
from local_events.scrapers.venues import get_config, list_configured_venues


async def main(name: str) -> int:
    recipe = get_config(name)
    if recipe is None:
        print(f"No recipe for {name!r}. Known venues:", file=sys.stderr)
        for venue in list_configured_venues():
            print(f"  {venue}", file=sys.stderr)
        return 1

    print(f"Scraping {recipe.venue} ({recipe.url})...")
    try:
        events = await EventCollector().scrape_venue(recipe)
    except Exception as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1

    for e in events:
        print(f"  {e.start_datetime:%Y-%m-%d %H:%M}  {e.title}  [{e.category}]")
    print(f"{len(events)} events found.")
    return 0


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print(__doc__, file=sys.stderr)
        sys.exit(2)
    sys.exit(asyncio.run(main(sys.argv[1])))
