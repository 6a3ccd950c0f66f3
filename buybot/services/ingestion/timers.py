"""
Cancelable deferred actions.

A DeferredTask owns at most one live asyncio task. Arming while a task is
pending or running is a no-op, cancelling an idle handle is a no-op.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional

from loguru import logger


class DeferredTask:
    """
    Named handle for a coroutine scheduled after a delay.

    Example:
        ```python
        reconnect = DeferredTask("reconnect")
        reconnect.arm(4.0, manager.connect)
        reconnect.arm(4.0, manager.connect)  # already armed, ignored
        reconnect.cancel()
        ```
    """

    def __init__(
        self,
        name: str,
        on_error: Optional[Callable[[BaseException], None]] = None
    ):
        """
        Args:
            name: Used for the asyncio task name and log lines
            on_error: Called with any unexpected exception raised by the action
        """
        self.name = name
        self._on_error = on_error
        self._task: Optional[asyncio.Task] = None
        self._fired: bool = False

    @property
    def active(self) -> bool:
        """True while the action is waiting for its delay or running"""
        return self._task is not None and not self._task.done()

    @property
    def armed(self) -> bool:
        """True while the delay has not yet elapsed"""
        return self.active and not self._fired

    def arm(self, delay: float, action: Callable[[], Awaitable[Any]]) -> bool:
        """
        Schedule ``action`` to run after ``delay`` seconds.

        An action may re-arm its own handle; that schedules a fresh task and
        leaves the current one to finish.

        Returns:
            True if a new task was scheduled
        """
        if self.active and self._task is not asyncio.current_task():
            logger.debug(f"{self.name} already scheduled, ignoring arm")
            return False

        self._fired = False
        self._task = asyncio.create_task(self._run(delay, action), name=self.name)
        self._task.add_done_callback(self._on_done)
        return True

    def cancel(self) -> bool:
        """
        Cancel the pending or running action.

        Called from inside the action itself, the handle is released but the
        caller is left to return on its own.

        Returns:
            True if something was cancelled
        """
        task = self._task
        self._task = None
        self._fired = False

        if task is None or task.done():
            return False

        if task is not asyncio.current_task():
            task.cancel()
        return True

    async def wait_cancelled(self):
        """Cancel and wait for the task to unwind (used on shutdown)"""
        task = self._task
        self.cancel()
        if task is not None and task is not asyncio.current_task():
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _run(self, delay: float, action: Callable[[], Awaitable[Any]]):
        if delay > 0:
            await asyncio.sleep(delay)
        if self._task is asyncio.current_task():
            self._fired = True
        await action()

    def _on_done(self, task: asyncio.Task):
        if task is self._task:
            self._task = None
            self._fired = False

        if task.cancelled():
            return

        exc = task.exception()
        if exc is None:
            return

        logger.opt(exception=exc).error(f"{self.name} failed: {exc!r}")
        if self._on_error is not None:
            self._on_error(exc)
