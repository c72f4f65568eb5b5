from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from bto_simulator.models import Operation, OperationKind, RunResult


class InputFormatError(ValueError):
    """Raised when a schedule file fails validation."""


_KIND_ALIASES: dict[str, OperationKind] = {
    "read": OperationKind.READ,
    "r": OperationKind.READ,
    "write": OperationKind.WRITE,
    "w": OperationKind.WRITE,
    "commit": OperationKind.COMMIT,
    "c": OperationKind.COMMIT,
}

_DIGITS = re.compile(r"^\d+$")


@dataclass(frozen=True)
class ScheduleOptions:
    # Discard obsolete writes instead of aborting (Thomas' write rule).
    thomas_write_rule: bool = True


@dataclass(frozen=True)
class Schedule:
    operations: list[Operation]
    options: ScheduleOptions = field(default_factory=ScheduleOptions)


def normalize_tx_name(raw: str) -> str:
    """Normalize a transaction name to the T<n> convention.

    "3" -> "T3", "t3" -> "T3", "x" -> "Tx".
    """
    name = raw.strip()
    if _DIGITS.match(name):
        return f"T{name}"
    if name.upper().startswith("T"):
        return name.upper()
    return f"T{name}"


def load_schedule(path: Path, *, normalize_tx: bool = True) -> Schedule:
    """Load and validate a schedule file.

    Supported formats:

    Object format:
      {
        "options": {"thomas_write_rule": true},
        "operations": [
          {"type": "write", "tx": "1", "item": "A"},
          {"type": "read", "tx": "T2", "item": "A"},
          {"type": "commit", "tx": "T2"}
        ]
      }

    Bare format: the "operations" array on its own.

    "id" is optional on each operation; the 1-based position is used when it
    is absent.
    """

    if not path.exists():
        raise InputFormatError(f"file not found: {path}")
    if not path.is_file():
        raise InputFormatError(f"not a file: {path}")

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise InputFormatError(
            f"invalid JSON: {e.msg} (line {e.lineno}, col {e.colno})"
        ) from e

    return parse_schedule(raw, normalize_tx=normalize_tx)


def parse_schedule(raw: object, *, normalize_tx: bool = True) -> Schedule:
    if isinstance(raw, list):
        ops_raw: object = raw
        options = ScheduleOptions()
    elif isinstance(raw, dict):
        ops_raw = raw.get("operations")
        options = _parse_schedule_options(raw.get("options", {}))
    else:
        raise InputFormatError("root must be a JSON object or an array of operations")

    if not isinstance(ops_raw, list):
        raise InputFormatError("operations must be an array")

    operations: list[Operation] = []
    for i, item in enumerate(ops_raw):
        if not isinstance(item, dict):
            raise InputFormatError(f"operations[{i}] must be an object")
        operations.append(_parse_operation(item, index=i, normalize_tx=normalize_tx))

    return Schedule(operations=operations, options=options)


def _parse_operation(raw: dict[str, Any], *, index: int, normalize_tx: bool) -> Operation:
    label = f"operations[{index}]"

    kind_raw = raw.get("type", raw.get("kind"))
    if not isinstance(kind_raw, str):
        raise InputFormatError(f"{label}.type must be a string")
    kind = _KIND_ALIASES.get(kind_raw.strip().lower())
    if kind is None:
        raise InputFormatError(
            f"{label}.type must be one of: read, write, commit (got {kind_raw!r})"
        )

    tx = raw.get("tx")
    if isinstance(tx, int) and not isinstance(tx, bool):
        tx = str(tx)
    if not isinstance(tx, str) or not tx.strip():
        raise InputFormatError(f"{label}.tx must be a non-empty string")
    tx = normalize_tx_name(tx) if normalize_tx else tx.strip()

    item = raw.get("item", None)
    if item is not None and not isinstance(item, str):
        raise InputFormatError(f"{label}.item must be a string when provided")
    if item is not None:
        item = item.strip() or None
    if kind != OperationKind.COMMIT and item is None:
        raise InputFormatError(f"{label}.item is required for {kind.value.lower()}")
    if kind == OperationKind.COMMIT:
        item = None

    op_id = raw.get("id", index + 1)
    if not isinstance(op_id, (int, str)) or isinstance(op_id, bool):
        raise InputFormatError(f"{label}.id must be an int or string when provided")

    return Operation(kind=kind, tx=tx, item=item, op_id=op_id)


def _parse_schedule_options(raw: object) -> ScheduleOptions:
    if raw is None:
        return ScheduleOptions()
    if not isinstance(raw, dict):
        raise InputFormatError("options must be an object")

    thomas = raw.get("thomas_write_rule", True)
    if not isinstance(thomas, bool):
        raise InputFormatError("options.thomas_write_rule must be a boolean when provided")

    return ScheduleOptions(thomas_write_rule=thomas)


def dump_run_result(result: RunResult) -> dict[str, Any]:
    """Return a JSON-serializable view of a RunResult."""
    return {
        "thomas_write_rule": result.use_thomas_rule,
        "valid": result.valid,
        "log": [
            {
                "id": r.op.op_id,
                "type": r.op.kind.value,
                "tx": r.op.tx,
                "item": r.op.item,
                "outcome": r.outcome.value,
                "message": r.message,
            }
            for r in result.log
        ],
        "items": {
            k: {"read_ts": v.read_ts, "write_ts": v.write_ts} for k, v in result.items.items()
        },
        "transactions": {
            k: {"timestamp": v.timestamp, "aborted": v.aborted}
            for k, v in result.transactions.items()
        },
        "aborted_transactions": list(result.aborted_transactions),
        "abort_messages": list(result.abort_messages),
    }
