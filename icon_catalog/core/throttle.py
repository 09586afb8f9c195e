"""
Rate-limit strategies used between icons and between load batches.

Call sites only ask a Throttle how long to wait; swapping the fixed delay
for an adaptive one does not touch the orchestrator or the loader.
"""

import asyncio
import logging
import time

logger = logging.getLogger(__name__)


class Throttle:
    """Base strategy: no delay."""

    def next_delay(self) -> float:
        """Seconds to wait before the next unit of work."""
        return 0.0

    def wait(self):
        delay = self.next_delay()
        if delay > 0:
            time.sleep(delay)

    async def wait_async(self):
        delay = self.next_delay()
        if delay > 0:
            await asyncio.sleep(delay)


class FixedDelayThrottle(Throttle):
    """Waits the same number of seconds after every unit of work."""

    def __init__(self, delay_seconds: float):
        if delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0")
        self.delay_seconds = delay_seconds

    def next_delay(self) -> float:
        return self.delay_seconds

    def __repr__(self) -> str:
        return f"FixedDelayThrottle({self.delay_seconds}s)"
