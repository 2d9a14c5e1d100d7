"""
Debounce: coalesce bursts of calls into one execution with the latest arguments.
"""

import asyncio
import functools
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from callguard.config import get_settings
from callguard.errors import PolicyConfigurationError, SupersededCallError
from callguard.logging import get_logger
from callguard.metrics import get_metrics_collector
from callguard.outcome import Outcome, invoke, future_failed, retrieve_exception
from callguard.state_store import InvocationStateStore
from callguard.timers import default_scheduler
from callguard.validation import require_non_negative, require_callable, operation_name


class SupersededPolicy(Enum):
    """What happens to the future of a call replaced by a newer one."""
    REJECT = "reject"  # fail with SupersededCallError
    SHARE = "share"    # settle with the outcome of the execution that absorbed it
    IGNORE = "ignore"  # leave pending forever


@dataclass
class DebounceRecord:
    """Pending window of one (owner, operation) pair."""
    timer: Optional[Any] = None
    args: Tuple[Any, ...] = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)
    pending: Optional[asyncio.Future] = None
    absorbed: List[asyncio.Future] = field(default_factory=list)


def debounce(delay: Optional[float] = None,
             *,
             superseded: Optional[Any] = None,
             scheduler=None) -> Callable:
    """Delay execution until ``delay`` seconds pass without another call.

    Each call cancels the owner's pending timer, replaces the stored arguments
    and arms a fresh timer. When the timer fires the operation runs once with
    the last arguments and the future returned by that last call is settled
    with its outcome. A zero delay still goes through the scheduler.

    The armed timer holds a strong reference to the owner until it fires or
    is cancelled.
    """
    settings = get_settings()
    if delay is None:
        delay = settings.debounce_delay
    require_non_negative("debounce", "delay", delay)

    try:
        superseded_policy = SupersededPolicy(superseded or settings.superseded_policy)
    except ValueError as e:
        raise PolicyConfigurationError(
            f"debounce superseded must be one of {[p.value for p in SupersededPolicy]}",
            {"superseded": repr(superseded)}
        ) from e

    scheduler = scheduler or default_scheduler
    logger = get_logger("callguard.debounce")
    metrics = get_metrics_collector()

    def decorator(func: Callable) -> Callable:
        require_callable("debounce", func)
        name = operation_name(func)
        store = InvocationStateStore(DebounceRecord)

        def report(outcome: Outcome) -> None:
            if outcome.is_failed:
                metrics.record_failure("debounce", name)
                logger.error("Debounced call failed", operation=name, error=str(outcome.error))
            elif outcome.is_deferred:
                def on_done(future: asyncio.Future) -> None:
                    if future_failed(future):
                        metrics.record_failure("debounce", name)
                        logger.error("Debounced call failed", operation=name,
                                     error="cancelled" if future.cancelled() else str(future.exception()))
                outcome.future.add_done_callback(on_done)

        def fire(owner: Any, record: DebounceRecord) -> None:
            args, kwargs = record.args, record.kwargs
            targets = [record.pending, *record.absorbed]
            record.timer = None
            record.pending = None
            record.absorbed = []
            record.args, record.kwargs = (), {}

            logger.debug("Debounce window elapsed", operation=name, delay=delay)
            metrics.record_event("debounce", name, "execute")
            outcome = invoke(func, owner, *args, **kwargs)
            report(outcome)
            for target in targets:
                outcome.settle(target)

        def supersede(record: DebounceRecord) -> None:
            previous = record.pending
            record.timer.cancel()
            record.timer = None
            record.pending = None
            metrics.record_event("debounce", name, "superseded")
            if previous is None or previous.done():
                return
            if superseded_policy is SupersededPolicy.REJECT:
                previous.set_exception(SupersededCallError(name))
            elif superseded_policy is SupersededPolicy.SHARE:
                record.absorbed.append(previous)

        @functools.wraps(func)
        def wrapper(owner, *args, **kwargs):
            record = store.state_for(owner, name)
            metrics.record_event("debounce", name, "call")
            if record.timer is not None:
                supersede(record)

            record.args, record.kwargs = args, kwargs
            future = scheduler.create_future()
            future.add_done_callback(retrieve_exception)
            record.pending = future
            record.timer = scheduler.call_later(delay, fire, owner, record)
            return future

        wrapper.state_store = store
        return wrapper

    return decorator
