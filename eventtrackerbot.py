#!/usr/bin/env python3
"""Discord bot tracking Hypixel guild events with daily reports and giveaways."""

import asyncio

from event_tracker.runtime import main

if __name__ == "__main__":
    asyncio.run(main())
