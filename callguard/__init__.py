"""
callguard: call-control decorators for methods.

Each policy intercepts calls to an owner's operation and decides whether to
run it now, later, or not at all:

- debounce: coalesce bursts into one trailing execution
- throttle: leading and trailing execution once per window
- memoize: argument-keyed result cache with in-flight sharing
- lazy_load: single-slot first-access cache
- auto_retry: bounded attempts with a fixed delay
- batch_operations: one execution per loop iteration with all arguments

Per-owner state lives in an InvocationStateStore that never keeps owners alive.
"""

from callguard.batch import batch_operations
from callguard.config import CallControlSettings, get_settings
from callguard.debounce import debounce, SupersededPolicy
from callguard.errors import (
    CallControlError,
    ErrorResponse,
    NotCallableError,
    OperationFailure,
    PolicyConfigurationError,
    RetryExhaustedError,
    SupersededCallError,
)
from callguard.lazy_load import lazy_load, LazyLoad
from callguard.memoize import memoize, default_key
from callguard.outcome import Immediate, Deferred, Failed, classify, invoke
from callguard.retry import auto_retry, RetryConfig
from callguard.state_store import InvocationStateStore
from callguard.throttle import throttle
from callguard.timers import LoopScheduler

__all__ = [
    "auto_retry",
    "batch_operations",
    "CallControlError",
    "CallControlSettings",
    "classify",
    "debounce",
    "default_key",
    "Deferred",
    "ErrorResponse",
    "Failed",
    "get_settings",
    "Immediate",
    "invoke",
    "InvocationStateStore",
    "lazy_load",
    "LazyLoad",
    "LoopScheduler",
    "memoize",
    "NotCallableError",
    "OperationFailure",
    "PolicyConfigurationError",
    "RetryConfig",
    "RetryExhaustedError",
    "SupersededCallError",
    "SupersededPolicy",
    "throttle",
]
