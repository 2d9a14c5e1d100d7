"""
Memoize: per-owner result cache keyed by call arguments.
"""

import asyncio
import functools
import json
from typing import Any, Callable, Dict, Optional

from callguard.config import get_settings
from callguard.logging import get_logger
from callguard.metrics import get_metrics_collector
from callguard.outcome import Outcome, invoke, future_failed
from callguard.state_store import InvocationStateStore
from callguard.validation import require_callable, operation_name


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"))


def _canonical(value: Any) -> Any:
    """Rewrite ``value`` into plain JSON that keeps container and type identity.

    Dicts, tuples, sets and anything JSON has no native form for become
    single-key tagged objects, so no tagged form can collide with a plain
    string, number or list.
    """
    if value is None or type(value) in (bool, int, float, str):
        return value
    if type(value) is list:
        return [_canonical(item) for item in value]
    if type(value) is tuple:
        return {"__tuple__": [_canonical(item) for item in value]}
    if type(value) is dict:
        items = [[_canonical(k), _canonical(v)] for k, v in value.items()]
        return {"__dict__": sorted(items, key=_dumps)}
    if type(value) in (set, frozenset):
        return {"__set__": sorted((_canonical(item) for item in value), key=_dumps)}
    return {"__repr__": repr(value), "__type__": type(value).__qualname__}


def default_key(*args, **kwargs) -> str:
    """Stable serialization of an argument list.

    Keyword order and dict insertion order do not matter. Values JSON cannot
    encode are keyed by their type and ``repr``.
    """
    keywords = sorted([name, _canonical(value)] for name, value in kwargs.items())
    return _dumps([_canonical(list(args)), keywords])


def memoize(func: Optional[Callable] = None,
            *,
            key: Optional[Callable[..., str]] = None,
            cache_failures: Optional[bool] = None) -> Callable:
    """Cache outcomes per owner and argument key.

    The outcome is stored before a deferred result settles, so concurrent
    callers with the same key share one pending future instead of starting a
    second execution. ``key`` receives the call arguments without the owner.

    Failures are shared by callers already waiting on the same computation.
    Unless ``cache_failures`` is true, a failed entry is then dropped so the
    next call runs the operation again.

    Usable as ``@memoize`` or ``@memoize(key=..., cache_failures=...)``.
    ``wrapper.cache_clear(owner)`` drops one owner's cache.
    """
    if cache_failures is None:
        cache_failures = get_settings().cache_failures
    if key is not None:
        require_callable("memoize key", key)
    key_func = key or default_key

    logger = get_logger("callguard.memoize")
    metrics = get_metrics_collector()

    def decorator(target: Callable) -> Callable:
        require_callable("memoize", target)
        name = operation_name(target)
        store = InvocationStateStore(dict)

        def evict_when_failed(cache: Dict[str, Outcome], cache_key: str, outcome: Outcome) -> None:
            def on_done(future: asyncio.Future) -> None:
                if future_failed(future) and cache.get(cache_key) is outcome:
                    del cache[cache_key]
                    metrics.record_failure("memoize", name)
                    logger.debug("Evicted failed cache entry", operation=name, key=cache_key)
            outcome.future.add_done_callback(on_done)

        @functools.wraps(target)
        def wrapper(owner, *args, **kwargs):
            cache = store.state_for(owner, name)
            cache_key = key_func(*args, **kwargs)

            outcome = cache.get(cache_key)
            if outcome is not None:
                metrics.record_event("memoize", name, "hit")
                return outcome.unwrap()

            metrics.record_event("memoize", name, "miss")
            outcome = invoke(target, owner, *args, **kwargs)
            if outcome.is_failed:
                metrics.record_failure("memoize", name)
                if not cache_failures:
                    return outcome.unwrap()

            cache[cache_key] = outcome
            if outcome.is_deferred and not cache_failures:
                evict_when_failed(cache, cache_key, outcome)
            return outcome.unwrap()

        def cache_clear(owner: Any) -> None:
            store.clear(owner, name)
            logger.debug("Cache cleared", operation=name)

        wrapper.cache_clear = cache_clear
        wrapper.state_store = store
        return wrapper

    if func is not None:
        return decorator(func)
    return decorator
