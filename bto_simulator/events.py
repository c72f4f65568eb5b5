from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    """
    Event vocabulary for the rule engine.
    Keep this small; add types only when tests require them.
    """

    OPERATION_START = "OPERATION_START"
    TIMESTAMP_ASSIGNED = "TIMESTAMP_ASSIGNED"
    READ_ACCEPTED = "READ_ACCEPTED"
    WRITE_ACCEPTED = "WRITE_ACCEPTED"
    # Obsolete write discarded by Thomas' write rule.
    WRITE_IGNORED = "WRITE_IGNORED"
    # Operation of a transaction that was already aborted earlier in the run.
    OPERATION_IGNORED = "OPERATION_IGNORED"
    TRANSACTION_ABORTED = "TRANSACTION_ABORTED"
    COMMIT_NOTIFIED = "COMMIT_NOTIFIED"


@dataclass(frozen=True, slots=True)
class Event:
    """
    A structured, orderable fact emitted by the engine (optionally).

    step and seq are owned by the sink (so the engine remains stateless).
    """

    step: int
    seq: int
    type: EventType
    tx: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
