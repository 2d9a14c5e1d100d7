"""
Uniform representation of operation results.

Every policy branches on the tag of an outcome instead of inspecting the
returned object itself:

- ``Immediate(value)``: the operation returned an ordinary value (``None`` included).
- ``Deferred(future)``: the operation returned an awaitable. Coroutines are
  scheduled as tasks so several callers can await one computation.
- ``Failed(error)``: the operation raised synchronously.
"""

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Callable


class Outcome:
    """Base class for tagged outcomes."""

    is_deferred = False
    is_failed = False

    def unwrap(self) -> Any:
        """Return the value (or a view of the shared future), re-raising a failure."""
        raise NotImplementedError

    def settle(self, target: asyncio.Future) -> None:
        """Propagate this outcome into ``target``."""
        raise NotImplementedError


@dataclass(frozen=True)
class Immediate(Outcome):
    value: Any

    def unwrap(self) -> Any:
        return self.value

    def settle(self, target: asyncio.Future) -> None:
        if not target.done():
            target.set_result(self.value)


@dataclass(frozen=True)
class Failed(Outcome):
    error: BaseException

    is_failed = True

    def unwrap(self) -> Any:
        raise self.error

    def settle(self, target: asyncio.Future) -> None:
        if not target.done():
            target.set_exception(self.error)


@dataclass(frozen=True)
class Deferred(Outcome):
    future: asyncio.Future

    is_deferred = True

    def unwrap(self) -> Any:
        # Each caller gets its own shield; cancelling it leaves the shared future running.
        view = asyncio.shield(self.future)
        if view is not self.future:
            view.add_done_callback(retrieve_exception)
        return view

    def settle(self, target: asyncio.Future) -> None:
        self.future.add_done_callback(lambda source: copy_future_state(source, target))


def copy_future_state(source: asyncio.Future, target: asyncio.Future) -> None:
    """Copy the settled state of ``source`` into ``target`` unless it is already done."""
    if target.done():
        return
    if source.cancelled():
        target.cancel()
        return
    error = source.exception()
    if error is not None:
        target.set_exception(error)
    else:
        target.set_result(source.result())


def retrieve_exception(future: asyncio.Future) -> None:
    """Mark a failure as seen so discarded futures do not warn."""
    if not future.cancelled():
        future.exception()


def future_failed(future: asyncio.Future) -> bool:
    """True when a settled future was cancelled or holds an exception."""
    return future.cancelled() or future.exception() is not None


def classify(result: Any) -> Outcome:
    """Tag the return value of an operation."""
    if inspect.isawaitable(result):
        return Deferred(asyncio.ensure_future(result))
    return Immediate(result)


def invoke(func: Callable, *args, **kwargs) -> Outcome:
    """Run ``func`` and capture whatever it produces as an outcome."""
    try:
        result = func(*args, **kwargs)
    except Exception as e:
        return Failed(e)
    return classify(result)
