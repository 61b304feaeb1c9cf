"""Contest-fanout core -- errors, logging, settings and the data model.

Architecture::

    errors.py     Structured error hierarchy (FanoutError, StoreQueryError,
                  WorkerInvocationError)
    logging.py    structlog configuration + get_logger / LogContext
    settings.py   FanoutSettings (pydantic-settings, FANOUT_ env prefix)
    models.py     PartitionQuery, Page, Batch, DispatchOutcome,
                  PartitionResult, ScanState
"""

from contest_fanout.core.errors import (
    ConfigError,
    ErrorCategory,
    ErrorContext,
    FanoutError,
    InvalidConfigError,
    StoreError,
    StoreQueryError,
    TransientError,
    ValidationError,
    WorkerInvocationError,
    describe_error,
    is_retryable,
)
from contest_fanout.core.logging import (
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    unbind_context,
)
from contest_fanout.core.models import (
    Batch,
    DispatchOutcome,
    DispatchStatus,
    Page,
    PartitionQuery,
    PartitionResult,
    PartitionStatus,
    Record,
    ScanState,
)

__all__ = [
    # errors
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
    # logging
    "configure_logging",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
    # models
    "Record",
    "PartitionQuery",
    "Page",
    "Batch",
    "DispatchOutcome",
    "DispatchStatus",
    "PartitionResult",
    "PartitionStatus",
    "ScanState",
]
