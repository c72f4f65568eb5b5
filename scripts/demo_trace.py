from __future__ import annotations

from bto_simulator.models import Operation, OperationKind
from bto_simulator.trace import run_with_trace


def main() -> None:
    r, w, c = OperationKind.READ, OperationKind.WRITE, OperationKind.COMMIT
    ops = [
        Operation(w, "T1", "A"),
        Operation(w, "T2", "A"),
        Operation(w, "T1", "A"),
        Operation(r, "T3", "A"),
        Operation(w, "T2", "A"),
        Operation(c, "T1"),
        Operation(c, "T2"),
        Operation(c, "T3"),
    ]

    for use_thomas in (True, False):
        print(f"\n=== Thomas' write rule: {'on' if use_thomas else 'off'} ===")
        for entry in run_with_trace(ops, use_thomas):
            print(f"\nStep {entry.step:2d} | {entry.result.outcome.value:<15s} {entry.result.message}")
            for it in entry.items:
                print(f"  item {it.item:<4s} RTS={it.read_ts:<3d} WTS={it.write_ts:<3d}")
            for tx in entry.transactions:
                flag = "ABORTED" if tx.aborted else ""
                print(f"  tx   {tx.tx:<4s} TS={tx.timestamp}  {flag}")


if __name__ == "__main__":
    main()
