"""
Structured error types for the watch service.

Every failure the watch core can observe is classified so the tick loop can
decide what to do with it without string matching:

- **Transient infrastructure failure** (store or delivery channel down):
  logged, the subject is skipped for this tick, the next tick retries.
- **Lock state unknown**: the lock store could not be read or written; the
  tick does not run (fail closed).
- **Data inconsistency**: persisted watch state violates an invariant; the
  subject is treated as Noop and surfaced for an operator.
- **Validation failure** on an outgoing payload: that single send fails
  locally before any network attempt.
- **Configuration error**: missing or invalid settings.

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                        WatchError                               │
        │  (category, retryable, context, cause)                          │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                 │
        │  TransientError          ValidationError       ConfigError      │
        │  (retryable=True)        (VALIDATION)          (CONFIG)         │
        │       │                        │                    │           │
        │  NetworkError            PayloadValidationError MissingConfig   │
        │  RateLimitError                                 InvalidConfig   │
        │  StoreUnavailableError                                          │
        │                                                                 │
        │  DeliveryError           LockStateUnknownError                  │
        │  (DELIVERY)              (LOCK, fail closed)                    │
        │                                                                 │
        │  DataInconsistencyError                                         │
        │  (DATA)                                                         │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = StoreUnavailableError("query failed")
    >>> error.retryable
    True
    >>> error.with_context(subject_id="U123").context["subject_id"]
    'U123'
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and log routing."""

    NETWORK = "NETWORK"
    DATABASE = "DATABASE"
    LOCK = "LOCK"
    DELIVERY = "DELIVERY"
    VALIDATION = "VALIDATION"
    CONFIG = "CONFIG"
    DATA = "DATA"
    INTERNAL = "INTERNAL"


class WatchError(Exception):
    """
    Base exception for all watch-service errors.

    Carries a category, an explicit retry flag, free-form context for
    structured logging, and the chained underlying exception.

    Subclasses set ``default_category`` and ``default_retryable``.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context: dict[str, Any] = dict(context or {})
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> WatchError:
        """Add context to this error (fluent API)."""
        self.context.update(kwargs)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.context:
            result["context"] = dict(self.context)
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# TRANSIENT ERRORS (Retried by the next tick)
# =============================================================================


class TransientError(WatchError):
    """Temporary error that may succeed on the next tick."""

    default_category = ErrorCategory.NETWORK
    default_retryable = True


class NetworkError(TransientError):
    """Network-related transient error."""

    default_category = ErrorCategory.NETWORK


class RateLimitError(TransientError):
    """The delivery channel refused the request with a rate limit."""

    default_category = ErrorCategory.NETWORK

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        retry_after: int | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class StoreUnavailableError(TransientError):
    """The subject store could not be read or written."""

    default_category = ErrorCategory.DATABASE


# =============================================================================
# LOCK ERRORS
# =============================================================================


class LockStateUnknownError(WatchError):
    """
    The lock store could not determine whether a lock is held.

    Callers must treat this as "do not run this tick". Running anyway would
    risk duplicate notifications from overlapping invocations.
    """

    default_category = ErrorCategory.LOCK
    default_retryable = True

    def __init__(self, lock_name: str, *, cause: Exception | None = None):
        self.lock_name = lock_name
        super().__init__(
            f"Could not determine state of lock {lock_name!r}",
            context={"lock_name": lock_name},
            cause=cause,
        )


# =============================================================================
# DELIVERY ERRORS
# =============================================================================


class DeliveryError(WatchError):
    """A message could not be delivered to its recipient."""

    default_category = ErrorCategory.DELIVERY
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        recipient: str | None = None,
        status: int | None = None,
        detail: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.recipient = recipient
        self.status = status
        self.detail = detail
        if recipient:
            self.context.setdefault("recipient", recipient)
        if status is not None:
            self.context.setdefault("status", status)


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(WatchError):
    """Data validation error. Never retryable."""

    default_category = ErrorCategory.VALIDATION
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = repr(self.value)
        return result


class PayloadValidationError(ValidationError):
    """An outgoing message is malformed and was not sent."""

    pass


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(WatchError):
    """Configuration error. Never retryable."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class MissingConfigError(ConfigError):
    """Required configuration is missing."""

    def __init__(self, key: str, message: str | None = None):
        self.key = key
        super().__init__(message or f"Missing required configuration: {key}")


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}")


# =============================================================================
# DATA ERRORS
# =============================================================================


class DataInconsistencyError(WatchError):
    """Persisted watch state violates an invariant."""

    default_category = ErrorCategory.DATA
    default_retryable = False

    def __init__(self, subject_id: str, reason: str):
        self.subject_id = subject_id
        self.reason = reason
        super().__init__(
            f"Inconsistent watch state for {subject_id}: {reason}",
            context={"subject_id": subject_id, "reason": reason},
        )


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check if an error is worth retrying on a later tick."""
    if isinstance(error, WatchError):
        return error.retryable
    return isinstance(error, (ConnectionError, TimeoutError, OSError))


__all__ = [
    "ErrorCategory",
    "WatchError",
    "TransientError",
    "NetworkError",
    "RateLimitError",
    "StoreUnavailableError",
    "LockStateUnknownError",
    "DeliveryError",
    "ValidationError",
    "PayloadValidationError",
    "ConfigError",
    "MissingConfigError",
    "InvalidConfigError",
    "DataInconsistencyError",
    "is_retryable",
]
