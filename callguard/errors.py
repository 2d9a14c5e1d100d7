"""
Error taxonomy for callguard call-control policies.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel

try:
    from opentelemetry import trace
    HAS_OPENTELEMETRY = True
except ImportError:
    HAS_OPENTELEMETRY = False


class ErrorResponse(BaseModel):
    """Serializable error payload."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class CallControlError(Exception):
    """Base exception for all call-control errors."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        trace_id = None
        if HAS_OPENTELEMETRY:
            current_span = trace.get_current_span()
            if current_span and current_span.is_recording():
                span_context = current_span.get_span_context()
                if span_context.trace_id != 0:
                    trace_id = f"{span_context.trace_id:032x}"

        return ErrorResponse(
            trace_id=trace_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class PolicyConfigurationError(CallControlError):
    """Invalid policy parameters, raised at wrap time."""

    def __init__(self, message: str = "Invalid policy configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("POLICY_CONFIGURATION_ERROR", message, details)


class NotCallableError(CallControlError):
    """A policy was applied to something that cannot be invoked."""

    def __init__(self, target: Any, policy: str):
        super().__init__(
            "NOT_CALLABLE_ERROR",
            f"{policy} can only be applied to callables, got {type(target).__name__}",
            {"policy": policy, "target_type": type(target).__name__}
        )


class OperationFailure(CallControlError):
    """Normalized failure of a wrapped operation.

    The original exception is kept on ``cause``. Exceptions raised without a
    message are described by their class name so every failure carries text.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__("OPERATION_FAILURE", message, details)
        self.cause = cause

    @classmethod
    def from_exception(cls, exc: BaseException) -> "OperationFailure":
        if isinstance(exc, OperationFailure):
            return exc
        text = str(exc)
        if not text:
            text = f"{type(exc).__name__} raised without a message"
        return cls(text, cause=exc, details={"exception_type": type(exc).__name__})


class RetryExhaustedError(CallControlError):
    """Raised when all retry attempts are exhausted."""

    def __init__(self, retries: int, last_failure: OperationFailure):
        super().__init__(
            "RETRY_EXHAUSTED_ERROR",
            f"Failed after {retries} retries: {last_failure.message}",
            {"retries": retries, "attempts": retries + 1, **last_failure.details}
        )
        self.retries = retries
        self.attempts = retries + 1
        self.last_failure = last_failure


class SupersededCallError(CallControlError):
    """A debounced call was replaced by a newer call before its window elapsed."""

    def __init__(self, operation: str):
        super().__init__(
            "SUPERSEDED_CALL_ERROR",
            f"Call to {operation} was superseded by a newer call",
            {"operation": operation}
        )
