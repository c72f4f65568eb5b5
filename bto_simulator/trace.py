from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from bto_simulator.engine import RunContext, evaluate_operation
from bto_simulator.models import Operation, OperationResult


@dataclass(frozen=True)
class ItemTrace:
    item: str
    read_ts: int
    write_ts: int


@dataclass(frozen=True)
class TransactionTrace:
    tx: str
    timestamp: int | None
    aborted: bool


@dataclass(frozen=True)
class StepTrace:
    step: int
    result: OperationResult
    # State AFTER the operation was applied
    items: list[ItemTrace]
    transactions: list[TransactionTrace]


def snapshot_step(step: int, ctx: RunContext, result: OperationResult) -> StepTrace:
    """
    Create a trace snapshot of the run state right after one operation.

    Items and transactions appear in order of first reference.
    This function does not modify simulation behavior.
    """
    return StepTrace(
        step=step,
        result=result,
        items=[ItemTrace(item=k, read_ts=v.read_ts, write_ts=v.write_ts) for k, v in ctx.items.items()],
        transactions=[
            TransactionTrace(tx=k, timestamp=v.timestamp, aborted=v.aborted)
            for k, v in ctx.transactions.items()
        ],
    )


def run_with_trace(operations: Iterable[Operation], use_thomas_rule: bool = True) -> list[StepTrace]:
    """
    Replay the operations, returning a per-operation trace log.

    Notes:
    - Uses engine.evaluate_operation() for behavior (same rules) + observability.
    - Adds observability only (no rule changes).
    """
    ctx = RunContext()
    log: list[StepTrace] = []
    for step, op in enumerate(operations, start=1):
        result = evaluate_operation(ctx, op, use_thomas_rule=use_thomas_rule)
        log.append(snapshot_step(step, ctx, result))
    return log
