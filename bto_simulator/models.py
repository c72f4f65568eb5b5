from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Hashable


class OperationKind(str, Enum):
    READ = "READ"
    WRITE = "WRITE"
    COMMIT = "COMMIT"


class Outcome(str, Enum):
    """
    Verdict for a single operation.

    IGNORED covers two distinct cases (Thomas' write rule and operations of an
    already-aborted transaction); the message tells them apart.
    """

    ACCEPTED = "ACCEPTED"
    ABORTED = "ABORTED"
    IGNORED = "IGNORED"
    COMMIT_NOTIFIED = "COMMIT_NOTIFIED"


@dataclass(frozen=True, slots=True)
class Operation:
    kind: OperationKind
    tx: str
    # Required for READ/WRITE, ignored for COMMIT.
    item: str | None = None
    # Opaque, caller-assigned; only used to correlate results with input.
    op_id: Hashable | None = None


@dataclass(slots=True)
class ItemState:
    # RTS / WTS; both start at 0 on first reference to the item.
    read_ts: int = 0
    write_ts: int = 0


@dataclass(slots=True)
class TransactionState:
    # None until the first operation of the transaction is seen.
    timestamp: int | None = None
    aborted: bool = False


@dataclass(frozen=True, slots=True)
class OperationResult:
    op: Operation
    outcome: Outcome
    message: str


@dataclass(frozen=True)
class RunResult:
    """
    Immutable outcome of one replay of an operation sequence.

    items / transactions are copies of the final run state; mutating them
    does not affect any other RunResult.
    """

    log: tuple[OperationResult, ...]
    items: dict[str, ItemState]
    transactions: dict[str, TransactionState]
    valid: bool
    abort_messages: tuple[str, ...]
    use_thomas_rule: bool = True
    aborted_transactions: tuple[str, ...] = field(init=False)

    def __post_init__(self) -> None:
        aborted = tuple(tx for tx, st in self.transactions.items() if st.aborted)
        object.__setattr__(self, "aborted_transactions", aborted)
