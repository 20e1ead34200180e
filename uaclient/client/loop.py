"""
Background asyncio event loop.

Every asyncua session lives on one event loop running in a dedicated
thread. Synchronous callers (the HTTP request threads and the main
thread) submit coroutines to it and wait with a deadline.
"""

import asyncio
import concurrent.futures
import threading
from typing import Any, Coroutine, Optional

from ..logging import log_info, log_warn


class LoopNotRunning(RuntimeError):
    """Raised when a coroutine is submitted to a stopped loop."""


class EventLoopThread:
    """Runs an asyncio event loop in a daemon thread."""

    def __init__(self, name: str = "uaclient-loop"):
        self.name = name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._started = threading.Event()

    @property
    def loop(self) -> Optional[asyncio.AbstractEventLoop]:
        return self._loop

    @property
    def is_running(self) -> bool:
        return self._loop is not None and self._loop.is_running()

    def start(self) -> None:
        if self._thread is not None:
            return
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, daemon=True, name=self.name)
        self._thread.start()
        self._started.wait()

    def run(self, coro: Coroutine, timeout: Optional[float] = None) -> Any:
        """
        Run a coroutine on the loop and wait for its result.

        Args:
            coro: Coroutine to schedule
            timeout: Seconds to wait, None waits forever

        Raises:
            LoopNotRunning: If the loop is not running
            concurrent.futures.TimeoutError: If the deadline passes (the coroutine is cancelled)
        """
        if not self.is_running:
            coro.close()
            raise LoopNotRunning(f"Event loop {self.name} is not running")

        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        try:
            return future.result(timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            raise

    def stop(self, timeout: float = 5.0) -> None:
        """Cancel pending tasks, stop the loop and join the thread."""
        if self._loop is None or self._thread is None:
            return

        if self._loop.is_running():
            cancel = asyncio.run_coroutine_threadsafe(self._cancel_pending(), self._loop)
            try:
                cancel.result(timeout)
            except concurrent.futures.TimeoutError:
                log_warn("Pending tasks did not finish cancelling in time")
            self._loop.call_soon_threadsafe(self._loop.stop)

        self._thread.join(timeout)
        if self._thread.is_alive():
            log_warn(f"Event loop thread {self.name} did not stop within timeout")
        else:
            self._loop.close()
            log_info(f"Event loop thread {self.name} stopped")
        self._thread = None
        self._loop = None
        self._started.clear()

    def _run(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.call_soon(self._started.set)
        self._loop.run_forever()

    @staticmethod
    async def _cancel_pending() -> None:
        current = asyncio.current_task()
        tasks = [t for t in asyncio.all_tasks() if t is not current and not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
