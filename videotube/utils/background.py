import asyncio
from typing import Awaitable, Callable, Optional, Set

from loguru import logger

from videotube.config import settings


class BackgroundWriter:
    """Fire-and-forget writes with bounded concurrency.

    Used for writes a request triggers but must not wait for: the view
    counter, watch history and media cleanup. A write that raises or returns
    False is logged and counted as degraded; it is never raised to the
    request that scheduled it.
    """

    def __init__(self, max_concurrency: Optional[int] = None):
        self.max_concurrency = max_concurrency or settings.MAX_CONCURRENT_SIDE_EFFECTS
        self.accepting = False
        self.completed = 0
        self.failures = 0
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._tasks: Set[asyncio.Task] = set()

    def start(self):
        """Start accepting writes"""
        if not self.accepting:
            self.accepting = True
            self._semaphore = asyncio.Semaphore(self.max_concurrency)
            logger.info("Background writer started")

    def submit(self, name: str, write: Callable[[], Awaitable]) -> Optional[asyncio.Task]:
        """Schedule write() and return immediately

        Args:
            name: Label used in logs (e.g. 'views:<video_id>')
            write: Zero-argument callable returning the coroutine to run
        """
        if not self.accepting:
            self.failures += 1
            logger.warning(f"Background writer stopped, dropping write '{name}'")
            return None

        task = asyncio.create_task(self._run(name, write))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, name: str, write: Callable[[], Awaitable]):
        async with self._semaphore:
            try:
                result = await write()
                if result is False:
                    self.failures += 1
                    logger.warning(f"Degraded write '{name}' reported no effect")
                    return
                self.completed += 1
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.failures += 1
                logger.warning(f"Degraded write '{name}' failed: {e}")

    async def drain(self):
        """Wait until every scheduled write has finished"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def stop(self):
        """Stop accepting writes and let in-flight ones finish"""
        self.accepting = False
        await self.drain()
        logger.info(f"Background writer stopped ({self.completed} done, {self.failures} degraded)")

    def pending(self) -> int:
        return len(self._tasks)
