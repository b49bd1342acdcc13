"""
Fixed-interval pacing between batches, pages and keywords.
"""
import logging
import asyncio
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class Pacer:
    """
    Sleeps a fixed delay between consecutive units of work.

    Tests pass a zero delay or their own `sleep` coroutine to record calls.
    """

    def __init__(
        self,
        delay_seconds: float,
        name: str = "pacer",
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.delay_seconds = max(0.0, float(delay_seconds))
        self.name = name
        self._sleep = sleep or asyncio.sleep

    async def wait(self):
        if self.delay_seconds <= 0:
            return
        logger.debug(f"[pacing] {self.name}: waiting {self.delay_seconds:.1f}s")
        await self._sleep(self.delay_seconds)
