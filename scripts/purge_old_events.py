#!/usr/bin/env python3
"""Delete events older than the configured retention window."""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from local_events.scheduler import job_purge_old_events


if __name__ == "__main__":
    asyncio.run(job_purge_old_events())
