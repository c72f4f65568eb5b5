from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Iterable

from bto_simulator.event_sink import EventSink
from bto_simulator.events import EventType
from bto_simulator.models import (
    ItemState,
    Operation,
    OperationKind,
    OperationResult,
    Outcome,
    RunResult,
    TransactionState,
)

logger = logging.getLogger(__name__)


@dataclass
class RunContext:
    """
    All mutable state of a single run.

    A fresh context is created for every run_simulation() call, so no run can
    observe state left over from another one.
    """

    # Last timestamp handed out; the next new transaction gets counter + 1.
    counter: int = 0
    items: dict[str, ItemState] = field(default_factory=dict)
    transactions: dict[str, TransactionState] = field(default_factory=dict)

    def timestamp_for(self, tx: str) -> int:
        """Return tx's timestamp, assigning the next one on first reference."""
        st = self.transactions.setdefault(tx, TransactionState())
        if st.timestamp is None:
            self.counter += 1
            st.timestamp = self.counter
        return st.timestamp

    def has_timestamp(self, tx: str) -> bool:
        st = self.transactions.get(tx)
        return st is not None and st.timestamp is not None

    def state_for(self, item: str) -> ItemState:
        st = self.items.get(item)
        if st is None:
            st = ItemState()
            self.items[item] = st
        return st

    def is_aborted(self, tx: str) -> bool:
        st = self.transactions.get(tx)
        return st is not None and st.aborted

    def mark_aborted(self, tx: str) -> None:
        st = self.transactions.setdefault(tx, TransactionState())
        st.aborted = True

    def snapshot_items(self) -> dict[str, ItemState]:
        return {k: replace(v) for k, v in self.items.items()}

    def snapshot_transactions(self) -> dict[str, TransactionState]:
        return {k: replace(v) for k, v in self.transactions.items()}


def _abort(
    ctx: RunContext,
    op: Operation,
    message: str,
    event_sink: EventSink | None,
    **data: object,
) -> OperationResult:
    ctx.mark_aborted(op.tx)
    logger.debug("abort %s: %s", op.tx, message)
    if event_sink is not None:
        event_sink.emit(EventType.TRANSACTION_ABORTED, tx=op.tx, item=op.item, reason=message, **data)
    return OperationResult(op=op, outcome=Outcome.ABORTED, message=message)


def _read(ctx: RunContext, op: Operation, ts: int, event_sink: EventSink | None) -> OperationResult:
    tx, item = op.tx, op.item
    if not item:
        return _abort(ctx, op, f"Read by {tx} rejected: read requires an item -> abort.", event_sink)

    st = ctx.state_for(item)
    if ts < st.write_ts:
        return _abort(
            ctx,
            op,
            f"Read({item}) by {tx} rejected: TS({tx})={ts} < WTS({item})={st.write_ts} -> abort.",
            event_sink,
            ts=ts,
            write_ts=st.write_ts,
        )

    st.read_ts = max(st.read_ts, ts)
    if event_sink is not None:
        event_sink.emit(EventType.READ_ACCEPTED, tx=tx, item=item, ts=ts, read_ts=st.read_ts)
    return OperationResult(
        op=op,
        outcome=Outcome.ACCEPTED,
        message=f"Read({item}) by {tx} succeeds. RTS({item}) = {st.read_ts}",
    )


def _write(
    ctx: RunContext,
    op: Operation,
    ts: int,
    use_thomas_rule: bool,
    event_sink: EventSink | None,
) -> OperationResult:
    tx, item = op.tx, op.item
    if not item:
        return _abort(ctx, op, f"Write by {tx} rejected: write requires an item -> abort.", event_sink)

    st = ctx.state_for(item)

    # Write-read conflict first; Thomas' rule never overrides it.
    if ts < st.read_ts:
        return _abort(
            ctx,
            op,
            f"Write({item}) by {tx} rejected: TS({tx})={ts} < RTS({item})={st.read_ts} -> abort.",
            event_sink,
            ts=ts,
            read_ts=st.read_ts,
        )

    if ts < st.write_ts:
        if use_thomas_rule:
            if event_sink is not None:
                event_sink.emit(EventType.WRITE_IGNORED, tx=tx, item=item, ts=ts, write_ts=st.write_ts)
            return OperationResult(
                op=op,
                outcome=Outcome.IGNORED,
                message=(
                    f"Write({item}) by {tx} ignored by Thomas' write rule: "
                    f"TS({tx})={ts} < WTS({item})={st.write_ts}; obsolete write discarded."
                ),
            )
        return _abort(
            ctx,
            op,
            f"Write({item}) by {tx} rejected: TS({tx})={ts} < WTS({item})={st.write_ts} -> abort.",
            event_sink,
            ts=ts,
            write_ts=st.write_ts,
        )

    st.write_ts = ts
    if event_sink is not None:
        event_sink.emit(EventType.WRITE_ACCEPTED, tx=tx, item=item, ts=ts, write_ts=st.write_ts)
    return OperationResult(
        op=op,
        outcome=Outcome.ACCEPTED,
        message=f"Write({item}) by {tx} succeeds. WTS({item}) = {st.write_ts}",
    )


def _commit(ctx: RunContext, op: Operation, event_sink: EventSink | None) -> OperationResult:
    aborted = ctx.is_aborted(op.tx)
    if event_sink is not None:
        event_sink.emit(EventType.COMMIT_NOTIFIED, tx=op.tx, aborted=aborted)
    status = "but transaction was aborted" if aborted else "committed"
    return OperationResult(
        op=op,
        outcome=Outcome.COMMIT_NOTIFIED,
        message=f"Commit request for {op.tx} -- {status}.",
    )


def evaluate_operation(
    ctx: RunContext,
    op: Operation,
    *,
    use_thomas_rule: bool,
    event_sink: EventSink | None = None,
) -> OperationResult:
    """
    Apply the Basic Timestamp Ordering rules to one operation.

    Rules:
    - An operation of an already-aborted transaction is IGNORED with no
      further side effects (checked before anything else, including
      timestamp allocation).
    - Read(X) by T: abort if TS(T) < WTS(X), else RTS(X) = max(RTS(X), TS(T)).
    - Write(X) by T: abort if TS(T) < RTS(X); else if TS(T) < WTS(X) the
      write is IGNORED under Thomas' write rule and aborts otherwise;
      else WTS(X) = TS(T).
    - Read/Write without an item aborts the transaction.
    - Commit only reports the transaction's current status.
    """
    if event_sink is not None:
        event_sink.start_step()
        event_sink.emit(
            EventType.OPERATION_START,
            tx=op.tx,
            kind=op.kind.value,
            item=op.item,
            op_id=op.op_id,
        )

    if ctx.is_aborted(op.tx):
        if event_sink is not None:
            event_sink.emit(EventType.OPERATION_IGNORED, tx=op.tx)
        return OperationResult(
            op=op,
            outcome=Outcome.IGNORED,
            message=f"{op.tx}: transaction already aborted; operation ignored.",
        )

    is_new = not ctx.has_timestamp(op.tx)
    ts = ctx.timestamp_for(op.tx)
    if is_new and event_sink is not None:
        event_sink.emit(EventType.TIMESTAMP_ASSIGNED, tx=op.tx, ts=ts)

    if op.kind == OperationKind.READ:
        return _read(ctx, op, ts, event_sink)
    if op.kind == OperationKind.WRITE:
        return _write(ctx, op, ts, use_thomas_rule, event_sink)
    return _commit(ctx, op, event_sink)


def run_simulation(
    operations: Iterable[Operation],
    use_thomas_rule: bool = True,
    *,
    event_sink: EventSink | None = None,
) -> RunResult:
    """
    Replay an operation sequence from fresh state and collect the verdicts.

    Each operation yields exactly one OperationResult, in input order. The
    schedule is valid iff no transaction was aborted.
    """
    ctx = RunContext()
    log: list[OperationResult] = []

    logger.debug("run start (thomas_write_rule=%s)", use_thomas_rule)
    for op in operations:
        log.append(evaluate_operation(ctx, op, use_thomas_rule=use_thomas_rule, event_sink=event_sink))

    abort_messages = tuple(r.message for r in log if r.outcome == Outcome.ABORTED)
    valid = not any(st.aborted for st in ctx.transactions.values())
    logger.debug("run done: %d operations, %d aborts", len(log), len(abort_messages))

    return RunResult(
        log=tuple(log),
        items=ctx.snapshot_items(),
        transactions=ctx.snapshot_transactions(),
        valid=valid,
        abort_messages=abort_messages,
        use_thomas_rule=use_thomas_rule,
    )
