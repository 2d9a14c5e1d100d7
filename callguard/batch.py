"""
Batch operations: collect calls made in one loop iteration into a single execution.
"""

import functools
from dataclasses import dataclass, field
from typing import Any, Callable, List, Tuple

from callguard.errors import OperationFailure, PolicyConfigurationError
from callguard.logging import get_logger
from callguard.metrics import get_metrics_collector
from callguard.outcome import invoke, future_failed
from callguard.state_store import InvocationStateStore
from callguard.timers import default_scheduler
from callguard.validation import require_callable, operation_name


@dataclass
class BatchRecord:
    calls: List[Tuple[Any, ...]] = field(default_factory=list)
    scheduled: bool = False


def batch_operations(*, scheduler=None) -> Callable:
    """Run the operation once per loop iteration with every argument collected.

    ``obj.render(a)`` followed by ``obj.render(b, c)`` in the same iteration
    results in a single ``render(obj, [a, b, c])`` on the next iteration.
    Calls return ``None``; failures of the batched execution are logged.
    Only positional arguments are collected; keyword arguments are rejected.
    """
    scheduler = scheduler or default_scheduler
    logger = get_logger("callguard.batch")
    metrics = get_metrics_collector()

    def decorator(func: Callable) -> Callable:
        require_callable("batch_operations", func)
        name = operation_name(func)
        store = InvocationStateStore(BatchRecord)

        def log_failure(error: BaseException, size: int) -> None:
            failure = OperationFailure.from_exception(error)
            metrics.record_failure("batch_operations", name)
            logger.error("Batched operation failed", operation=name, batch_size=size, error=failure.message)

        def flush(owner: Any, record: BatchRecord) -> None:
            calls = record.calls
            record.calls = []
            record.scheduled = False

            items = [arg for call in calls for arg in call]
            metrics.record_event("batch_operations", name, "flush")
            logger.debug("Flushing batched calls", operation=name, calls=len(calls), batch_size=len(items))

            outcome = invoke(func, owner, items)
            if outcome.is_failed:
                log_failure(outcome.error, len(items))
            elif outcome.is_deferred:
                def on_done(future):
                    if future.cancelled():
                        return
                    if future_failed(future):
                        log_failure(future.exception(), len(items))
                outcome.future.add_done_callback(on_done)

        @functools.wraps(func)
        def wrapper(owner, *args, **kwargs) -> None:
            if kwargs:
                raise PolicyConfigurationError(
                    f"batch_operations collects positional arguments only, got keywords {sorted(kwargs)}",
                    {"policy": "batch_operations", "operation": name}
                )
            record = store.state_for(owner, name)
            record.calls.append(args)
            metrics.record_event("batch_operations", name, "call")
            if not record.scheduled:
                record.scheduled = True
                scheduler.call_later(0, flush, owner, record)
            return None

        wrapper.state_store = store
        return wrapper

    return decorator
