from __future__ import annotations

from dataclasses import dataclass

from bto_simulator.models import Operation, OperationKind, Outcome, RunResult

_OUTCOME_TAGS: dict[Outcome, str] = {
    Outcome.ACCEPTED: "OK",
    Outcome.ABORTED: "ABORT",
    Outcome.IGNORED: "IGNORED",
    Outcome.COMMIT_NOTIFIED: "COMMIT",
}

_OUTCOME_MARKS: dict[Outcome, str] = {
    Outcome.ACCEPTED: "ok",
    Outcome.ABORTED: "x",
    Outcome.IGNORED: "~",
    Outcome.COMMIT_NOTIFIED: "c",
}


@dataclass(frozen=True, slots=True)
class TimelineRow:
    """
    One input operation placed in its transaction's column.
    """
    step: int
    tx: str
    cell: str


def op_label(op: Operation) -> str:
    if op.kind == OperationKind.COMMIT:
        return "C"
    prefix = "R" if op.kind == OperationKind.READ else "W"
    return f"{prefix}({op.item or '?'})"


def transaction_order(result: RunResult) -> list[str]:
    """Transactions in order of first appearance in the log."""
    order: list[str] = []
    for r in result.log:
        if r.op.tx not in order:
            order.append(r.op.tx)
    return order


def derive_timeline_rows(result: RunResult) -> list[TimelineRow]:
    rows: list[TimelineRow] = []
    for step, r in enumerate(result.log, start=1):
        rows.append(
            TimelineRow(
                step=step,
                tx=r.op.tx,
                cell=f"{op_label(r.op)} {_OUTCOME_MARKS[r.outcome]}",
            )
        )
    return rows


def render_timeline(result: RunResult) -> str:
    """
    Render a step x transaction grid.

    Markers: ok = accepted, x = aborted, ~ = ignored, c = commit.
    """
    columns = transaction_order(result)
    if not columns:
        return "(No operations.)\n"

    rows = derive_timeline_rows(result)
    width = max([len(c) for c in columns] + [len(r.cell) for r in rows])
    step_width = max(len("#"), len(str(len(rows))))

    out: list[str] = []
    header = " | ".join(c.ljust(width) for c in columns)
    out.append(f"{'#'.rjust(step_width)} | {header}".rstrip())
    out.append("-" * len(out[0]))

    for row in rows:
        cells = [(row.cell if c == row.tx else "").ljust(width) for c in columns]
        out.append(f"{str(row.step).rjust(step_width)} | " + " | ".join(cells).rstrip())

    return "\n".join(out) + "\n"


def render_text_report(result: RunResult) -> str:
    out: list[str] = []
    rule = "on" if result.use_thomas_rule else "off"
    out.append(f"Basic Timestamp Ordering (Thomas' write rule: {rule})")
    out.append("")

    out.append("Operation log:")
    if not result.log:
        out.append("  (empty schedule)")
    for i, r in enumerate(result.log, start=1):
        tag = f"[{_OUTCOME_TAGS[r.outcome]}]"
        out.append(f"  {i:>3}. {tag:<9} {r.message}")
    out.append("")

    out.append("Data items:")
    if result.items:
        name_w = max(len("Item"), *(len(k) for k in result.items))
        out.append(f"  {'Item'.ljust(name_w)}  RTS  WTS")
        for k, st in result.items.items():
            out.append(f"  {k.ljust(name_w)}  {st.read_ts:>3}  {st.write_ts:>3}")
    else:
        out.append("  (none)")
    out.append("")

    out.append("Transactions:")
    if result.transactions:
        name_w = max(len("Tx"), *(len(k) for k in result.transactions))
        out.append(f"  {'Tx'.ljust(name_w)}   TS  Status")
        for k, st in result.transactions.items():
            ts = "-" if st.timestamp is None else str(st.timestamp)
            status = "ABORTED" if st.aborted else "ACTIVE"
            out.append(f"  {k.ljust(name_w)}  {ts:>3}  {status}")
    else:
        out.append("  (none)")
    out.append("")

    if result.valid:
        out.append("Schedule is VALID (no aborts).")
    else:
        n = len(result.aborted_transactions)
        out.append(f"Schedule is INVALID: {n} transaction(s) aborted.")
        for msg in result.abort_messages:
            out.append(f"  - {msg}")

    return "\n".join(out).rstrip() + "\n"
