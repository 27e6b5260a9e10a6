"""Entry point for running the event tracker via python -m event_tracker"""

import asyncio

from event_tracker.runtime import main

if __name__ == "__main__":
    asyncio.run(main())
