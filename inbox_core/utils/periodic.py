"""
Cancellable background loop for recurring async jobs.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTask:
    """
    Runs ``func`` immediately and then every ``interval`` seconds until
    stopped. A failing iteration is logged and the loop keeps going.
    """

    def __init__(self, name: str, func: Callable[[], Awaitable[object]], interval: float):
        self.name = name
        self.func = func
        self.interval = interval
        self._task: Optional[asyncio.Task] = None
        self.iterations = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)

    async def stop(self) -> None:
        """Cancel the loop and wait until it has exited."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        while True:
            try:
                await self.func()
            except Exception as exc:
                logger.error(f"Periodic task {self.name} failed (will retry): {exc}", exc_info=True)
            self.iterations += 1
            await asyncio.sleep(self.interval)
