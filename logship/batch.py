"""
Batch and delivery outcome types.

A Batch is the immutable snapshot of records taken at one flush point. Its
body is serialized once, so every retry sends exactly the same bytes. Only the
retry bookkeeping (attempt, backoff, state) changes across attempts.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .records import records_to_body

# Delay before the first retry, doubled after every failed attempt
INITIAL_BACKOFF = 2.0


class BatchState(Enum):
    """Delivery states of a batch."""

    PENDING = "pending"
    SENDING = "sending"
    RETRY_WAITING = "retry_waiting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (BatchState.SUCCEEDED, BatchState.FAILED)


class OutcomeKind(Enum):
    SUCCESS = "success"
    RETRYABLE = "retryable"
    FATAL = "fatal"


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of a single delivery attempt."""

    kind: OutcomeKind
    reason: str | None = None
    error: BaseException | None = None

    @classmethod
    def success(cls) -> "DeliveryOutcome":
        return cls(OutcomeKind.SUCCESS)

    @classmethod
    def retryable(cls, error: BaseException) -> "DeliveryOutcome":
        return cls(OutcomeKind.RETRYABLE, reason=str(error), error=error)

    @classmethod
    def fatal(cls, error: BaseException) -> "DeliveryOutcome":
        return cls(OutcomeKind.FATAL, reason=str(error), error=error)


@dataclass
class Batch:
    """Records captured at one flush point plus their retry state."""

    id: int
    records: tuple[dict[str, Any], ...]
    body: str = field(init=False, repr=False)
    attempt: int = 1
    backoff: float = INITIAL_BACKOFF
    state: BatchState = BatchState.PENDING
    reported: bool = field(default=False, repr=False)

    def __post_init__(self):
        self.records = tuple(self.records)
        self.body = records_to_body(self.records)

    def __len__(self) -> int:
        return len(self.records)

    @property
    def body_bytes(self) -> bytes:
        # lone surrogates cannot be encoded; replace rather than fail the batch
        return self.body.encode("utf-8", errors="replace")

    def next_retry_delay(self) -> float:
        """Advance to the next attempt and return how long to wait before it."""
        delay = self.backoff
        self.attempt += 1
        self.backoff = self.backoff * 2
        return delay
