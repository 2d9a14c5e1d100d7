"""
LazyLoad: compute a zero-argument value on first access and keep it.
"""

import asyncio
import functools
from dataclasses import dataclass
from typing import Any, Callable, Optional

from callguard.config import get_settings
from callguard.logging import get_logger
from callguard.metrics import get_metrics_collector
from callguard.outcome import Outcome, Immediate, invoke, future_failed
from callguard.state_store import InvocationStateStore
from callguard.validation import require_callable, operation_name


@dataclass
class LazySlot:
    outcome: Optional[Outcome] = None


class LazyLoad:
    """Data descriptor holding one lazily computed outcome per instance.

    Racing accesses made while an asynchronous first computation is still
    pending receive the same future. Assigning to the attribute replaces the
    stored value; deleting it makes the next access compute again.
    """

    def __init__(self, func: Callable, as_method: bool = False, cache_failures: bool = False):
        require_callable("lazy_load", func)
        functools.update_wrapper(self, func)
        self.func = func
        self.name = operation_name(func)
        self.as_method = as_method
        self.cache_failures = cache_failures
        self.state_store = InvocationStateStore(LazySlot)
        self.logger = get_logger("callguard.lazy_load")
        self.metrics = get_metrics_collector()

    def __set_name__(self, owner_cls: type, name: str) -> None:
        self.name = name

    def load(self, instance: Any) -> Any:
        """Return the stored outcome, computing it on first access."""
        slot = self.state_store.state_for(instance, self.name)
        if slot.outcome is not None:
            self.metrics.record_event("lazy_load", self.name, "hit")
            return slot.outcome.unwrap()

        self.logger.debug("Initializing lazy attribute", operation=self.name)
        self.metrics.record_event("lazy_load", self.name, "miss")
        outcome = invoke(self.func, instance)
        if outcome.is_failed:
            self.metrics.record_failure("lazy_load", self.name)
            if not self.cache_failures:
                return outcome.unwrap()

        slot.outcome = outcome
        if outcome.is_deferred and not self.cache_failures:
            self._reset_when_failed(slot, outcome)
        return outcome.unwrap()

    def _reset_when_failed(self, slot: LazySlot, outcome: Outcome) -> None:
        def on_done(future: asyncio.Future) -> None:
            if future_failed(future) and slot.outcome is outcome:
                slot.outcome = None
                self.metrics.record_failure("lazy_load", self.name)
                self.logger.debug("Reset failed lazy attribute", operation=self.name)
        outcome.future.add_done_callback(on_done)

    def __get__(self, instance: Any, owner: Optional[type] = None) -> Any:
        if instance is None:
            return self
        if self.as_method:
            return functools.partial(self.load, instance)
        return self.load(instance)

    def __set__(self, instance: Any, value: Any) -> None:
        self.state_store.state_for(instance, self.name).outcome = Immediate(value)

    def __delete__(self, instance: Any) -> None:
        self.state_store.clear(instance, self.name)


def lazy_load(func: Optional[Callable] = None,
              *,
              as_method: bool = False,
              cache_failures: Optional[bool] = None) -> Any:
    """Turn a zero-argument method into a lazily computed attribute.

    Usable as ``@lazy_load`` or ``@lazy_load(as_method=True)``; with
    ``as_method`` the attribute is called like the original method.
    """
    if cache_failures is None:
        cache_failures = get_settings().cache_failures

    def decorator(target: Callable) -> LazyLoad:
        return LazyLoad(target, as_method=as_method, cache_failures=cache_failures)

    if func is not None:
        return decorator(func)
    return decorator
