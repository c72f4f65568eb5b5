from __future__ import annotations

import pytest

from bto_simulator import run_simulation
from bto_simulator.models import ItemState, TransactionState
from bto_simulator.trace import run_with_trace
from tests._support.schedule_helpers import C, R, W, outcomes


def test_empty_schedule_is_vacuously_valid():
    result = run_simulation([], use_thomas_rule=True)

    assert result.log == ()
    assert result.items == {}
    assert result.transactions == {}
    assert result.valid is True
    assert result.abort_messages == ()
    assert result.aborted_transactions == ()


def test_scenario_write_then_younger_read_is_valid():
    result = run_simulation([W("T1", "A"), R("T2", "A")], use_thomas_rule=True)

    assert outcomes(result) == ["ACCEPTED", "ACCEPTED"]
    assert result.transactions["T1"].timestamp == 1
    assert result.transactions["T2"].timestamp == 2
    assert result.items["A"] == ItemState(read_ts=2, write_ts=1)
    assert result.valid is True


def test_scenario_thomas_rule_discards_obsolete_write():
    ops = [W("T1", "A"), W("T2", "A"), W("T1", "A")]

    on = run_simulation(ops, use_thomas_rule=True)
    assert outcomes(on) == ["ACCEPTED", "ACCEPTED", "IGNORED"]
    assert on.items["A"].write_ts == 2
    assert on.valid is True
    assert on.abort_messages == ()

    off = run_simulation(ops, use_thomas_rule=False)
    assert outcomes(off) == ["ACCEPTED", "ACCEPTED", "ABORTED"]
    assert off.items["A"].write_ts == 2
    assert off.transactions["T1"].aborted is True
    assert off.valid is False
    assert off.aborted_transactions == ("T1",)


def test_scenario_read_then_commit_succeeds():
    result = run_simulation([R("T1", "A"), C("T1")], use_thomas_rule=True)

    assert outcomes(result) == ["ACCEPTED", "COMMIT_NOTIFIED"]
    assert result.items["A"] == ItemState(read_ts=1, write_ts=0)
    assert "committed" in result.log[1].message
    assert "aborted" not in result.log[1].message
    assert result.valid is True


def test_scenario_missing_item_aborts_and_later_ops_are_ignored():
    result = run_simulation([R("T1", None), W("T1", "A"), C("T1")], use_thomas_rule=True)

    assert outcomes(result) == ["ABORTED", "IGNORED", "IGNORED"]
    assert "read requires an item" in result.log[0].message
    assert "already aborted" in result.log[1].message
    assert "already aborted" in result.log[2].message
    assert result.items == {}
    assert result.valid is False
    assert result.abort_messages == (result.log[0].message,)


def test_nth_distinct_transaction_gets_timestamp_n():
    ops = [R("T3", "A"), W("T1", "B"), R("T3", "B"), C("T9"), W("T1", "C"), R("T2", "A")]

    result = run_simulation(ops, use_thomas_rule=True)

    assert {tx: st.timestamp for tx, st in result.transactions.items()} == {
        "T3": 1,
        "T1": 2,
        "T9": 3,
        "T2": 4,
    }
    assert list(result.transactions) == ["T3", "T1", "T9", "T2"]


def test_identical_input_gives_identical_result():
    ops = [R("T1", "A"), W("T2", "A"), W("T1", "A"), W("T3", "B"), R("T2", "B"), W("T2", "B"), C("T1"), C("T2")]

    first = run_simulation(ops, use_thomas_rule=False)
    second = run_simulation(ops, use_thomas_rule=False)

    assert first == second
    assert [r.message for r in first.log] == [r.message for r in second.log]


def test_runs_do_not_share_state():
    run_simulation([W("T1", "A"), W("T2", "A"), R("T1", "A")], use_thomas_rule=True)

    fresh = run_simulation([R("T9", "A")], use_thomas_rule=True)

    assert fresh.transactions == {"T9": TransactionState(timestamp=1, aborted=False)}
    assert fresh.items == {"A": ItemState(read_ts=1, write_ts=0)}
    assert fresh.valid is True


def test_one_result_per_operation_in_input_order():
    ops = [W("T1", "A", op_id="a"), R("T2", "A", op_id="b"), W("T1", "A", op_id="c"), C("T2", op_id="d")]

    result = run_simulation(ops, use_thomas_rule=True)

    assert [r.op for r in result.log] == ops
    assert [r.op.op_id for r in result.log] == ["a", "b", "c", "d"]


def test_abort_absorbs_every_later_operation():
    # T1 aborts on its write of A (the younger T2 already read it).
    ops = [W("T1", "X"), R("T2", "A"), W("T1", "A"), R("T1", "Z"), W("T1", "B"), C("T1")]

    result = run_simulation(ops, use_thomas_rule=True)

    assert outcomes(result) == ["ACCEPTED", "ACCEPTED", "ABORTED", "IGNORED", "IGNORED", "IGNORED"]
    assert "Z" not in result.items
    assert "B" not in result.items
    assert result.items["A"] == ItemState(read_ts=2, write_ts=0)
    assert result.items["X"].write_ts == 1
    assert result.aborted_transactions == ("T1",)


@pytest.mark.parametrize("use_thomas", [True, False])
def test_valid_iff_no_abort_messages(use_thomas: bool):
    schedules = [
        [W("T1", "A"), R("T2", "A")],
        [W("T1", "A"), W("T2", "A"), W("T1", "A")],
        [R("T2", "A"), W("T1", "A")],
        [W("T2", "A"), R("T1", "A"), C("T1")],
    ]
    for ops in schedules:
        result = run_simulation(ops, use_thomas_rule=use_thomas)
        assert result.valid == (len(result.abort_messages) == 0)


def test_abort_messages_keep_occurrence_order():
    # T2 aborts first (read too old), then T1 (write after a younger read).
    ops = [W("T1", "Q"), W("T2", "Q"), W("T3", "A"), R("T2", "A"), R("T3", "B"), W("T1", "B")]

    result = run_simulation(ops, use_thomas_rule=True)

    assert outcomes(result) == ["ACCEPTED", "ACCEPTED", "ACCEPTED", "ABORTED", "ACCEPTED", "ABORTED"]
    assert len(result.abort_messages) == 2
    assert result.abort_messages[0].startswith("Read(A) by T2")
    assert result.abort_messages[1].startswith("Write(B) by T1")
    assert result.aborted_transactions == ("T1", "T2")


def test_item_timestamps_never_decrease():
    ops = [W("T1", "A"), R("T3", "A"), W("T2", "A"), R("T2", "A"), W("T4", "A"), R("T1", "A"), W("T3", "A")]

    for use_thomas in (True, False):
        last = (0, 0)
        for entry in run_with_trace(ops, use_thomas):
            a = next(i for i in entry.items if i.item == "A")
            assert a.read_ts >= last[0]
            assert a.write_ts >= last[1]
            last = (a.read_ts, a.write_ts)
