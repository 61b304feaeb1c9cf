"""Retry policy for batch dispatch: bounded attempts, exponential backoff.

The policy is split in two so it can be tested without waiting:

- ``ExponentialBackoff`` is pure configuration plus a pure delay function.
- ``RetryContext`` is the per-dispatch state machine::

      ATTEMPTING(n) ──success──▶ SUCCEEDED
           │
           └──failure──▶ ATTEMPTING(n+1)   if n < max_attempts and retryable
                        EXHAUSTED          otherwise

The caller owns the clock: it asks ``next_delay()`` after a failure and
sleeps however it likes (``asyncio.sleep`` in production, a recorder in
tests).

Example:
    >>> backoff = ExponentialBackoff(max_attempts=3, base_delay=1.0)
    >>> [backoff.delay_for(n) for n in (1, 2, 3)]
    [1.0, 2.0, 4.0]
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from contest_fanout.core.errors import is_retryable


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(UTC)


@dataclass(frozen=True)
class ExponentialBackoff:
    """Exponential backoff without jitter.

    Delay after failed attempt ``n`` (1-based) =
    ``min(base_delay * multiplier ** (n - 1), max_delay)``

    Attributes:
        max_attempts: Total attempts allowed, the first one included
        base_delay: Delay in seconds after the first failed attempt
        max_delay: Cap on any single delay, in seconds
        multiplier: Exponential multiplier (default: 2)
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be non-negative")

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after 1-based ``attempt`` failed."""
        if attempt < 1:
            raise ValueError("attempt is 1-based")
        return min(self.base_delay * (self.multiplier ** (attempt - 1)), self.max_delay)

    def allows_another(self, attempt: int, error: Exception | None = None) -> bool:
        """Whether a failure on ``attempt`` may be followed by another attempt."""
        if attempt >= self.max_attempts:
            return False
        if error is not None and not is_retryable(error):
            return False
        return True


class RetryState(str, Enum):
    """State of one dispatch's retry loop."""

    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


@dataclass
class RetryContext:
    """Tracks attempts for a single dispatch.

    Created per dispatch and discarded once it resolves.

    Example:
        >>> ctx = RetryContext(ExponentialBackoff(max_attempts=2))
        >>> ctx.begin_attempt()
        1
        >>> ctx.record_failure(RuntimeError("throttled"))
        <RetryState.ATTEMPTING: 'attempting'>
        >>> ctx.next_delay()
        1.0
    """

    backoff: ExponentialBackoff
    attempt: int = field(default=0, init=False)
    state: RetryState = field(default=RetryState.ATTEMPTING, init=False)
    last_error: Exception | None = field(default=None, init=False)
    started_at: datetime = field(default_factory=utcnow, init=False)

    def begin_attempt(self) -> int:
        """Start the next attempt and return its 1-based number."""
        if self.state is not RetryState.ATTEMPTING:
            raise RuntimeError(f"cannot attempt from state {self.state.value}")
        self.attempt += 1
        return self.attempt

    def record_success(self) -> RetryState:
        self.state = RetryState.SUCCEEDED
        return self.state

    def record_failure(self, error: Exception) -> RetryState:
        """Record a failed attempt and move to ATTEMPTING or EXHAUSTED."""
        self.last_error = error
        if not self.backoff.allows_another(self.attempt, error):
            self.state = RetryState.EXHAUSTED
        return self.state

    def next_delay(self) -> float:
        """Delay before the next attempt, based on the attempt that just failed."""
        return self.backoff.delay_for(self.attempt)

    @property
    def attempts(self) -> int:
        """Number of attempts made."""
        return self.attempt

    @property
    def elapsed_seconds(self) -> float:
        """Total elapsed time since the context was created."""
        return (utcnow() - self.started_at).total_seconds()


__all__ = [
    "ExponentialBackoff",
    "RetryState",
    "RetryContext",
]
