from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from bto_simulator.engine import run_simulation
from bto_simulator.models import Operation, OperationKind
from bto_simulator.reporting import render_text_report, render_timeline
from bto_simulator.stream_io import InputFormatError, dump_run_result, load_schedule

logger = logging.getLogger("bto_simulator")


def _demo_operations() -> list[Operation]:
    # Deterministic demo: T1's late write of A is discarded, then T2 reads B
    # after the younger T3 has written it and aborts.
    r, w, c = OperationKind.READ, OperationKind.WRITE, OperationKind.COMMIT
    return [
        Operation(r, "T1", "A", op_id=1),
        Operation(w, "T2", "A", op_id=2),
        Operation(w, "T1", "A", op_id=3),
        Operation(w, "T3", "B", op_id=4),
        Operation(r, "T2", "B", op_id=5),
        Operation(w, "T2", "B", op_id=6),
        Operation(c, "T1", op_id=7),
        Operation(c, "T2", op_id=8),
        Operation(c, "T3", op_id=9),
    ]


def _cmd_run(args: argparse.Namespace) -> int:
    chosen = sum(1 for v in [bool(args.demo), bool(args.schedule)] if v)
    if chosen != 1:
        print("ERROR: choose exactly one of --demo or --schedule.", file=sys.stderr)
        return 2

    if args.schedule:
        try:
            schedule = load_schedule(Path(str(args.schedule)), normalize_tx=not args.raw_tx_names)
        except InputFormatError as e:
            print(f"ERROR: invalid schedule: {e}", file=sys.stderr)
            return 2
        operations = schedule.operations
        use_thomas = schedule.options.thomas_write_rule
    else:
        operations = _demo_operations()
        use_thomas = True

    # Command line wins over the schedule file.
    if args.thomas is not None:
        use_thomas = bool(args.thomas)

    logger.info("running %d operations (thomas_write_rule=%s)", len(operations), use_thomas)
    result = run_simulation(operations, use_thomas)

    sys.stdout.write(render_text_report(result))
    if args.timeline:
        sys.stdout.write("\nTimeline:\n")
        sys.stdout.write(render_timeline(result))

    if args.json_out:
        out_path = Path(str(args.json_out))
        out_path.write_text(json.dumps(dump_run_result(result), indent=2) + "\n", encoding="utf-8")
        logger.info("wrote %s", out_path)

    return 0


def build_parser() -> argparse.ArgumentParser:
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="bto_simulator",
        description=(
            "BTO Simulator - Basic Timestamp Ordering schedule checker.\n"
            "\n"
            "Replays a schedule of read/write/commit operations and reports which\n"
            "operations are accepted, aborted or ignored, and whether the schedule is valid."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (logs go to stderr).",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Replay a schedule and print the report.")
    run.add_argument("--demo", action="store_true", help="Run the built-in deterministic demo schedule.")
    run.add_argument("--schedule", type=str, help="Run a schedule JSON file.")
    rule = run.add_mutually_exclusive_group()
    rule.add_argument(
        "--thomas",
        dest="thomas",
        action="store_true",
        default=None,
        help="Enable Thomas' write rule (overrides the schedule options).",
    )
    rule.add_argument(
        "--no-thomas",
        dest="thomas",
        action="store_false",
        default=None,
        help="Disable Thomas' write rule (overrides the schedule options).",
    )
    run.add_argument("--timeline", action="store_true", help="Also print a per-transaction timeline grid.")
    run.add_argument(
        "--raw-tx-names",
        action="store_true",
        help="Keep transaction names as written instead of normalizing them to T<n>.",
    )
    run.add_argument("--json-out", type=str, default=None, help="Optional: write the run result as JSON.")
    run.set_defaults(func=_cmd_run)

    return parser


def main(argv: list[str] | None = None) -> int:
    argv = argv if argv is not None else sys.argv[1:]
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level)),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
