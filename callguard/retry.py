"""
Retry mechanism with a bounded number of attempts and a fixed delay.
"""

import asyncio
import functools
from typing import Any, Callable, Optional, Tuple, Type

from callguard.config import get_settings
from callguard.errors import OperationFailure, RetryExhaustedError, PolicyConfigurationError
from callguard.logging import get_logger
from callguard.metrics import get_metrics_collector
from callguard.outcome import classify
from callguard.validation import require_non_negative, require_callable, operation_name


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(self,
                 retries: Optional[int] = None,
                 delay: Optional[float] = None,
                 retry_on: Tuple[Type[BaseException], ...] = (Exception,)):
        settings = get_settings()
        self.retries = settings.retry_attempts if retries is None else retries
        self.delay = settings.retry_delay if delay is None else delay
        self.retry_on = retry_on

        require_non_negative("auto_retry", "retries", self.retries)
        require_non_negative("auto_retry", "delay", self.delay)
        if not isinstance(self.retries, int):
            raise PolicyConfigurationError(
                f"auto_retry retries must be a whole number, got {self.retries}",
                {"policy": "auto_retry", "retries": self.retries}
            )

    @property
    def max_attempts(self) -> int:
        return self.retries + 1


def auto_retry(retries: Optional[int] = None,
               delay: Optional[float] = None,
               *,
               retry_on: Tuple[Type[BaseException], ...] = (Exception,),
               config: Optional[RetryConfig] = None) -> Callable:
    """Decorator retrying a sync or async operation on failure.

    The operation runs up to ``retries + 1`` times, waiting ``delay`` seconds
    between attempts. The wrapper is a coroutine function: callers await the
    first successful result, or a single ``RetryExhaustedError`` wrapping the
    last failure. Exceptions not matching ``retry_on`` propagate unchanged.
    Every call starts counting attempts from zero. A prepared ``RetryConfig``
    may be passed as ``config`` in place of the individual arguments.
    """
    if config is None:
        config = RetryConfig(retries, delay, retry_on)
    elif retries is not None or delay is not None or retry_on != (Exception,):
        raise PolicyConfigurationError(
            "auto_retry takes either a config or retries, delay and retry_on, not both",
            {"policy": "auto_retry"}
        )

    logger = get_logger("callguard.retry")
    metrics = get_metrics_collector()

    def decorator(func: Callable) -> Callable:
        require_callable("auto_retry", func)
        name = operation_name(func)

        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            for attempt in range(1, config.max_attempts + 1):
                try:
                    logger.debug(
                        "Retry attempt",
                        attempt=attempt,
                        max_attempts=config.max_attempts,
                        operation=name
                    )

                    outcome = classify(func(*args, **kwargs))
                    result = await outcome.future if outcome.is_deferred else outcome.value

                    if attempt > 1:
                        logger.info(
                            "Retry succeeded",
                            attempt=attempt,
                            operation=name
                        )

                    return result

                except config.retry_on as e:
                    failure = OperationFailure.from_exception(e)
                    metrics.record_failure("auto_retry", name)

                    if attempt == config.max_attempts:
                        logger.error(
                            "All retry attempts exhausted",
                            attempt=attempt,
                            retries=config.retries,
                            operation=name,
                            error=failure.message
                        )
                        metrics.record_event("auto_retry", name, "exhausted")
                        raise RetryExhaustedError(config.retries, failure) from e

                    logger.warning(
                        "Retry attempt failed, waiting before next attempt",
                        attempt=attempt,
                        delay=config.delay,
                        operation=name,
                        error=failure.message
                    )
                    metrics.record_event("auto_retry", name, "retry")

                    await asyncio.sleep(config.delay)

        wrapper.retry_config = config
        return wrapper

    return decorator
