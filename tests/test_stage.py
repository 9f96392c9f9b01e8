"""Tests for stage module."""
import pytest

from prestigelayer.requirement import Req, Requirement
from prestigelayer.stage import StageDef, StageResolver, StageTable


class _Gate(Requirement):
    """Fixed-answer gate that records whether it was evaluated."""

    def __init__(self, met: bool) -> None:
        self.met = met
        self.calls = 0

    def evaluate(self, live) -> bool:
        self.calls += 1
        return self.met


def test_no_gates_met_is_stage_one():
    resolver = StageResolver([_Gate(False), _Gate(False)])
    assert resolver.resolve(None) == 1


def test_all_gates_met_is_completed_stage():
    resolver = StageResolver([_Gate(True), _Gate(True), _Gate(True)])
    assert resolver.completed == 4
    assert resolver.resolve(None) == 4


def test_first_unmet_gate_wins_and_later_gates_skipped():
    third = _Gate(True)
    resolver = StageResolver([_Gate(True), _Gate(False), third])
    assert resolver.resolve(None) == 2
    assert third.calls == 0


def test_empty_chain_is_always_completed():
    resolver = StageResolver([])
    assert resolver.completed == 1
    assert resolver.resolve(None) == 1


def test_stage_def_names():
    sdef = StageDef(
        "effarig",
        gates=[_Gate(True), _Gate(False)],
        names=["Infinity", "Eternity", "Reality"],
    )
    assert sdef.completed == 3
    assert sdef.resolve(None) == 2
    assert sdef.name(1) == "Infinity"
    assert sdef.name(3) == "Reality"


def test_stage_def_name_out_of_range():
    sdef = StageDef("effarig", gates=[_Gate(True)], names=["A", "B"])
    with pytest.raises(KeyError):
        sdef.name(0)
    with pytest.raises(KeyError):
        sdef.name(3)


def test_stage_def_accepts_factory_requirements():
    sdef = StageDef("custom", gates=[Req.custom(lambda _live: True)])
    assert sdef.resolve(None) == 2


def test_stage_table_with_default():
    table = StageTable({1: 1500, 2: 29.29}, default=25)
    assert table[1] == 1500
    assert table[2] == 29.29
    assert table[3] == 25
    assert table[4] == 25
    assert 7 in table


def test_stage_table_without_default():
    table = StageTable({4: 1.5})
    assert table[4] == 1.5
    assert 4 in table
    assert 3 not in table
    with pytest.raises(KeyError):
        table[3]
