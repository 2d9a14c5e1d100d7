"""
Host primitives used by the timed policies: a monotonic clock, a
schedule/cancel timer and a future factory.
"""

import asyncio
import time
from typing import Any, Callable


class LoopScheduler:
    """Scheduler backed by the running asyncio event loop."""

    def now(self) -> float:
        """Monotonic time in seconds, on the same clock as the default loop."""
        return time.monotonic()

    def call_later(self, delay: float, callback: Callable[..., Any], *args) -> asyncio.TimerHandle:
        """Schedule ``callback`` after ``delay`` seconds, even when ``delay`` is zero."""
        return asyncio.get_running_loop().call_later(delay, callback, *args)

    def create_future(self) -> asyncio.Future:
        """Create a future attached to the running loop."""
        return asyncio.get_running_loop().create_future()


default_scheduler = LoopScheduler()
