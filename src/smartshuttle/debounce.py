"""Trailing-edge debounce and periodic polling on the asyncio loop."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Set, Tuple

logger = logging.getLogger(__name__)

AsyncCallable = Callable[..., Awaitable[Any]]


class DebouncedRefresher:
    """
    Coalesces bursts of calls into one execution after a quiet window.

    Each ``trigger`` cancels the pending (not yet started) execution and
    restarts the window with its own arguments, so only the last call of a
    burst runs. Executions that already started are never cancelled.
    """

    def __init__(self, func: AsyncCallable, wait_seconds: float, name: str = "refresh"):
        self.func = func
        self.wait_seconds = wait_seconds
        self.name = name
        self._pending: Optional[asyncio.Task] = None
        self._running: Set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    @property
    def running(self) -> bool:
        return bool(self._running)

    def trigger(self, *args: Any) -> None:
        """Schedule ``func(*args)`` after the quiet window. Must be called on the loop."""
        if self.pending:
            self._pending.cancel()
        loop = asyncio.get_running_loop()
        self._pending = loop.create_task(self._run_later(args))

    async def _run_later(self, args: Tuple) -> None:
        await asyncio.sleep(self.wait_seconds)

        task = asyncio.current_task()
        if self._pending is task:
            self._pending = None
        self._running.add(task)
        try:
            await self.func(*args)
        except Exception:
            logger.exception(f"Debounced {self.name} failed")
        finally:
            self._running.discard(task)

    def cancel(self) -> None:
        """Drop the pending execution, if any."""
        if self.pending:
            self._pending.cancel()
        self._pending = None

    async def wait_idle(self) -> None:
        """Wait until nothing is pending or running."""
        while self.pending or self._running:
            tasks = list(self._running)
            if self._pending is not None:
                tasks.append(self._pending)
            await asyncio.gather(*tasks, return_exceptions=True)


class PeriodicPoller:
    """Runs a coroutine function immediately and then every ``interval_seconds``."""

    def __init__(self, func: AsyncCallable, interval_seconds: float, name: str = "poll"):
        self.func = func
        self.interval_seconds = interval_seconds
        self.name = name
        self._task: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.active:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.info(f"Started {self.name} every {self.interval_seconds}s")

    async def _loop(self) -> None:
        while True:
            try:
                await self.func()
            except Exception:
                logger.exception(f"Periodic {self.name} failed")
            await asyncio.sleep(self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info(f"Stopped {self.name}")
