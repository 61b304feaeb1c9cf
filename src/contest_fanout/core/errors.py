"""
Structured error types for contest-fanout.

Every failure the partition processor can observe is expressed as a
FanoutError subclass carrying a category, a retry flag and structured
context (contest, selection, partition, batch number). Two propagation
policies hang off this hierarchy:

- **Store errors** (StoreQueryError) are fatal. A failed page aborts the
  whole partition scan and is raised to the caller.
- **Worker errors** (WorkerInvocationError) are contained per batch. The
  Dispatcher retries them with backoff and records the last one in the
  batch outcome instead of raising.

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────┐
        │                       FanoutError                         │
        │  (category, retryable, context, cause)                    │
        ├──────────────────────────────────────────────────────────┤
        │  TransientError        StoreError         ValidationError │
        │  (retryable=True)      (STORE)            (VALIDATION)    │
        │       │                    │                              │
        │  WorkerInvocationError StoreQueryError    ConfigError     │
        │  (WORKER)              (fatal scan)       (CONFIG)        │
        │                                               │           │
        │                                          InvalidConfigError│
        └──────────────────────────────────────────────────────────┘

Examples:
    >>> error = WorkerInvocationError("throttled")
    >>> error.retryable
    True
    >>> error.with_context(partition_id="2", batch_number=1).context.batch_number
    1

    >>> try:
    ...     raise ConnectionError("socket closed")
    ... except ConnectionError as e:
    ...     raise StoreQueryError("query failed", cause=e)
    Traceback (most recent call last):
    ...
    StoreQueryError: query failed

Usage:
    from contest_fanout.core.errors import StoreQueryError, WorkerInvocationError

    try:
        client.query(**params)
    except ClientError as e:
        raise StoreQueryError("Store query failed", cause=e)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories used for classification and log routing."""

    # Infrastructure errors (usually transient)
    NETWORK = "NETWORK"
    WORKER = "WORKER"             # Downstream worker invocation
    STORE = "STORE"               # Partitioned store query

    # Data errors
    VALIDATION = "VALIDATION"

    # Configuration errors (never retryable)
    CONFIG = "CONFIG"

    # Internal errors
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    The identifying triple of the partition scan plus the batch and attempt
    the error belongs to. Anything else goes into ``metadata``.

    Examples:
        >>> ctx = ErrorContext(contest_id="contest_123", partition_id="2")
        >>> ctx.to_dict()
        {'contest_id': 'contest_123', 'partition_id': '2'}

    Attributes:
        contest_id: Contest (store partition key) being scanned
        selection_id: Winning selection the scan matches on
        partition_id: Partition within the selection
        batch_number: Sequence number of the batch being dispatched
        attempt: 1-based dispatch attempt number
        operation: Store/worker operation name (e.g. "Query", "Invoke")
        metadata: Additional key-value pairs
    """

    contest_id: str | None = None
    selection_id: str | None = None
    partition_id: str | None = None
    batch_number: int | None = None
    attempt: int | None = None
    operation: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["contest_id", "selection_id", "partition_id",
                    "batch_number", "attempt", "operation"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class FanoutError(Exception):
    """
    Base exception for all contest-fanout errors.

    Every instance carries:
    - **category:** ErrorCategory for classification
    - **retryable:** whether the failed operation may be attempted again
    - **context:** ErrorContext with the partition/batch identifiers
    - **cause:** the underlying exception, also chained as ``__cause__``

    Subclasses set ``default_category`` and ``default_retryable``.

    Examples:
        >>> error = FanoutError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.retryable
        False

        >>> error = FanoutError("Invoke failed", category=ErrorCategory.WORKER, retryable=True)
        >>> error.to_dict()["category"]
        'WORKER'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> FanoutError:
        """
        Add context to this error (fluent API).

        Usage:
            raise StoreQueryError("Query failed").with_context(
                contest_id="contest_123",
                partition_id="2",
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# TRANSIENT ERRORS (Usually Retryable)
# =============================================================================


class TransientError(FanoutError):
    """
    Temporary error that may succeed on retry.

    Use for throttling, timeouts and service hiccups where sending the same
    request again after a delay has a reasonable chance of succeeding.
    """

    default_category = ErrorCategory.NETWORK
    default_retryable = True


class WorkerInvocationError(TransientError):
    """The downstream worker invocation request failed.

    Retryable by default. The Lambda adapter marks rejections that can never
    succeed (missing function, access denied, oversized payload) with
    ``retryable=False`` so the Dispatcher stops early.
    """

    default_category = ErrorCategory.WORKER


# =============================================================================
# STORE ERRORS (Fatal to the scan)
# =============================================================================


class StoreError(FanoutError):
    """Error from the partitioned store."""

    default_category = ErrorCategory.STORE
    default_retryable = False


class StoreQueryError(StoreError):
    """A page query against the store failed.

    Never retried at the page layer; aborts the entire partition scan.
    """

    pass


# =============================================================================
# VALIDATION / CONFIGURATION ERRORS
# =============================================================================


class ValidationError(FanoutError):
    """
    Invalid input (query triple, entry-point event).

    Never retryable - input must be fixed.
    """

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


class ConfigError(FanoutError):
    """Configuration error. Never retryable."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    def __init__(
        self,
        key: str,
        value: Any,
        message: str | None = None,
        *,
        cause: Exception | None = None,
    ):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}", cause=cause)


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check if a worker-side error should be retried.

    FanoutErrors carry their own flag. Anything else raised by a worker
    invoker is treated as transient.
    """
    if isinstance(error, FanoutError):
        return error.retryable
    return True


def describe_error(error: BaseException) -> str:
    """Render an error as ``"<Type>: <message>"`` for outcome reports."""
    message = error.message if isinstance(error, FanoutError) else str(error)
    return f"{type(error).__name__}: {message}"


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "FanoutError",
    "TransientError",
    "WorkerInvocationError",
    "StoreError",
    "StoreQueryError",
    "ValidationError",
    "ConfigError",
    "InvalidConfigError",
    "is_retryable",
    "describe_error",
]
