"""
Wrap-time checks shared by every policy.
"""

import math
from typing import Any

from callguard.errors import PolicyConfigurationError, NotCallableError


def require_non_negative(policy: str, name: str, value: Any) -> None:
    """Reject negative, non-finite or non-numeric delays and retry counts."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise PolicyConfigurationError(
            f"{policy} {name} must be a number, got {type(value).__name__}",
            {"policy": policy, name: repr(value)}
        )
    if not math.isfinite(value):
        raise PolicyConfigurationError(
            f"{policy} {name} must be finite, got {value}",
            {"policy": policy, name: repr(value)}
        )
    if value < 0:
        raise PolicyConfigurationError(
            f"{policy} {name} must be non-negative, got {value}",
            {"policy": policy, name: value}
        )


def require_callable(policy: str, target: Any) -> None:
    if not callable(target):
        raise NotCallableError(target, policy)


def operation_name(func: Any) -> str:
    """Name used for logs, metrics and state keys."""
    return getattr(func, "__name__", type(func).__name__)
