"""
BTO Simulator

Core modules:
- engine: timestamp allocation, per-item state and the Basic Timestamp Ordering rules
- models: core dataclasses
- trace: helpers for producing per-operation state snapshots (no behavior changes)
"""
from bto_simulator.engine import RunContext, evaluate_operation, run_simulation
from bto_simulator.models import (
    ItemState,
    Operation,
    OperationKind,
    OperationResult,
    Outcome,
    RunResult,
    TransactionState,
)

__all__ = [
    "ItemState",
    "Operation",
    "OperationKind",
    "OperationResult",
    "Outcome",
    "RunContext",
    "RunResult",
    "TransactionState",
    "evaluate_operation",
    "run_simulation",
]
