"""Runtime settings for the partition processor.

Settings are read from ``FANOUT_``-prefixed environment variables (and an
optional ``.env`` file) once, at the entry point. Components never read the
environment themselves: the handler and CLI pull the values they need off
a ``FanoutSettings`` instance and pass them into constructors.

Examples:
    >>> from contest_fanout.core.settings import FanoutSettings
    >>> s = FanoutSettings(max_batch_size=25)
    >>> s.worker_function_name
    'batchProcessorLambda'

    FANOUT_WORKER_FUNCTION_NAME=winnerNotifier  overrides the downstream target
    FANOUT_MAX_ATTEMPTS=5                       raises the dispatch attempt limit
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from contest_fanout.core.errors import InvalidConfigError


class FanoutSettings(BaseSettings):
    """Settings for one partition-processor deployment.

    Fields
    ──────
    table_name / index_name      : store table and the secondary index holding
                                   the composite selection+partition key
    partition_key_attribute      : index hash key (contest id)
    range_key_attribute          : index range key (``selection#partition``)
    key_separator                : separator used to build the range key
    page_size                    : store page limit, independent of batch size
    max_batch_size               : records per dispatched batch
    max_attempts                 : dispatch attempts per batch, first one included
    base_delay_seconds           : backoff base, doubled per failed attempt
    max_delay_seconds            : backoff cap
    max_concurrency              : in-flight dispatches per partition
    worker_function_name         : downstream worker target
    region_name / endpoint_url   : AWS client settings
    log_level / log_json         : structlog configuration
    service_name                 : ``service`` field on every log event
    """

    model_config = SettingsConfigDict(
        env_prefix="FANOUT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Store ────────────────────────────────────────────────────
    table_name: str = "ContestParticipants"
    index_name: str = "SelectionPartitionIndex"
    partition_key_attribute: str = "contestId"
    range_key_attribute: str = "selectionPartitionId"
    key_separator: str = Field(default="#", min_length=1)
    page_size: int = Field(default=20, ge=1, le=1000)

    # ── Batching / dispatch ──────────────────────────────────────
    max_batch_size: int = Field(default=40, ge=1)
    # base * 2**(max_attempts - 2) stays under max_delay at the defaults
    max_attempts: int = Field(default=3, ge=1, le=7)
    base_delay_seconds: float = Field(default=1.0, ge=0.0)
    max_delay_seconds: float = Field(default=60.0, ge=0.0)
    max_concurrency: int = Field(default=10, ge=1)
    worker_function_name: str = "batchProcessorLambda"

    # ── AWS ──────────────────────────────────────────────────────
    region_name: str = "eu-central-1"
    endpoint_url: str | None = None

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool = True
    service_name: str = "partition-processor"

    @field_validator("log_level")
    @classmethod
    def _normalise_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR"}:
            raise ValueError(f"unsupported log level: {value}")
        return level

    @field_validator("worker_function_name", "table_name", "index_name")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


def load_settings(**overrides: Any) -> FanoutSettings:
    """Build settings from the environment plus explicit overrides.

    Raises:
        InvalidConfigError: a value failed validation; ``key`` names the
            first offending field.
    """
    try:
        return FanoutSettings(**overrides)
    except ValidationError as e:
        first = e.errors()[0]
        key = ".".join(str(part) for part in first.get("loc", ())) or "settings"
        value = first.get("input")
        raise InvalidConfigError(
            key,
            value,
            f"Invalid configuration for {key}: {value!r} ({first.get('msg')})",
            cause=e,
        ) from e


@lru_cache(maxsize=1)
def get_settings() -> FanoutSettings:
    """Return the process-wide settings, loaded on first use."""
    return load_settings()


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    get_settings.cache_clear()


__all__ = ["FanoutSettings", "load_settings", "get_settings", "reset_settings"]
