"""
Throttle: run at most once per window, on the leading and trailing edges.
"""

import asyncio
import functools
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

from callguard.config import get_settings
from callguard.errors import OperationFailure
from callguard.logging import get_logger
from callguard.metrics import get_metrics_collector
from callguard.outcome import Outcome, invoke, future_failed
from callguard.state_store import InvocationStateStore
from callguard.timers import default_scheduler
from callguard.validation import require_non_negative, require_callable, operation_name


@dataclass
class ThrottleRecord:
    """Window state of one (owner, operation) pair."""
    last_run: Optional[float] = None
    timer: Optional[Any] = None
    args: Tuple[Any, ...] = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)


def throttle(delay: Optional[float] = None, *, scheduler=None) -> Callable:
    """Limit an operation to one execution per ``delay`` seconds.

    A call arriving after the window has elapsed runs immediately (leading
    edge). Calls inside the window replace the stored arguments and re-arm a
    single trailing timer for the remainder of the window; when it fires the
    operation runs with the latest arguments.

    The wrapper always returns ``None``. Failures of a leading synchronous
    execution propagate to the caller; trailing and asynchronous failures have
    no caller attached and are logged.
    """
    if delay is None:
        delay = get_settings().throttle_delay
    require_non_negative("throttle", "delay", delay)

    scheduler = scheduler or default_scheduler
    logger = get_logger("callguard.throttle")
    metrics = get_metrics_collector()

    def decorator(func: Callable) -> Callable:
        require_callable("throttle", func)
        name = operation_name(func)
        store = InvocationStateStore(ThrottleRecord)

        def log_failure(error: BaseException, edge: str) -> None:
            failure = OperationFailure.from_exception(error)
            metrics.record_failure("throttle", name)
            logger.error("Throttled call failed", operation=name, edge=edge, error=failure.message)

        def watch(outcome: Outcome, edge: str) -> None:
            def on_done(future: asyncio.Future) -> None:
                if future.cancelled():
                    log_failure(asyncio.CancelledError("cancelled"), edge)
                elif future_failed(future):
                    log_failure(future.exception(), edge)
            outcome.future.add_done_callback(on_done)

        def execute(owner: Any, args: Tuple[Any, ...], kwargs: Dict[str, Any], edge: str) -> Outcome:
            metrics.record_event("throttle", name, edge)
            logger.debug("Throttled call executing", operation=name, edge=edge)
            outcome = invoke(func, owner, *args, **kwargs)
            if outcome.is_deferred:
                watch(outcome, edge)
            return outcome

        def fire(owner: Any, record: ThrottleRecord) -> None:
            args, kwargs = record.args, record.kwargs
            record.timer = None
            record.args, record.kwargs = (), {}
            record.last_run = scheduler.now()
            outcome = execute(owner, args, kwargs, "trailing")
            if outcome.is_failed:
                log_failure(outcome.error, "trailing")

        def cancel_trailing(record: ThrottleRecord) -> None:
            if record.timer is not None:
                record.timer.cancel()
                record.timer = None

        @functools.wraps(func)
        def wrapper(owner, *args, **kwargs) -> None:
            record = store.state_for(owner, name)
            now = scheduler.now()
            metrics.record_event("throttle", name, "call")

            elapsed = None if record.last_run is None else now - record.last_run
            if elapsed is None or elapsed >= delay:
                cancel_trailing(record)
                record.args, record.kwargs = (), {}
                record.last_run = now
                outcome = execute(owner, args, kwargs, "leading")
                if outcome.is_failed:
                    metrics.record_failure("throttle", name)
                    outcome.unwrap()
                return None

            cancel_trailing(record)
            record.args, record.kwargs = args, kwargs
            record.timer = scheduler.call_later(delay - elapsed, fire, owner, record)
            metrics.record_event("throttle", name, "coalesced")
            return None

        wrapper.state_store = store
        return wrapper

    return decorator
