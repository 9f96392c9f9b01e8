"""Tests for unlock module."""
from decimal import Decimal

import pytest

from prestigelayer.currency import CurrencyDef, CurrencyLedger
from prestigelayer.definition import LayerDefinition
from prestigelayer.requirement import Req
from prestigelayer.state import LiveState, PlayerProgress
from prestigelayer.unlock import UnlockDef, UnlockGroup, UnlockGroupDef


def _ceiling(live):
    ceiling = live.value("ceiling")
    return ceiling if ceiling > 0 else None


def _make_definition(hook_calls: list | None = None) -> LayerDefinition:
    calls = hook_calls if hook_calls is not None else []
    return LayerDefinition(
        currencies=[CurrencyDef("shards", initial_value=1000), CurrencyDef("other")],
        unlock_groups=[
            UnlockGroupDef(
                id="celestial",
                currency="shards",
                disabled_by="celestial",
                unlocks=[
                    UnlockDef(id=0, key="adjuster", cost=100, effect=2),
                    UnlockDef(id=1, key="filter", cost=5000),
                    UnlockDef(id=2, key="hooked", cost=10,
                              on_purchased=lambda progress: calls.append(progress)),
                    UnlockDef(id=3, key="gated", cost=1,
                              purchase_requirements=(Req.flag("open"),)),
                    UnlockDef(id=4, key="capped", cost=0,
                              effect=lambda live: Decimal(100), cap=_ceiling),
                ],
            ),
            UnlockGroupDef(id="untouched", currency="shards", unlocks=[UnlockDef(id=0)]),
        ],
    )


def _make(hook_calls=None, **live_kwargs):
    defn = _make_definition(hook_calls)
    progress = PlayerProgress(defn)
    ledger = CurrencyLedger(defn.currencies)
    group = UnlockGroup(defn.unlock_group("celestial"), progress, ledger)
    live = LiveState(defn, progress, ledger, **live_kwargs)
    return group, progress, ledger, live


def test_purchase_sets_bit_and_debits():
    group, progress, ledger, live = _make()
    assert group.purchase("adjuster", live)
    assert group.is_unlocked(0)
    assert progress.unlock_bits["celestial"] == 0b1
    assert ledger.balance("shards") == 900


def test_purchase_twice_is_noop():
    group, progress, ledger, live = _make()
    assert group.purchase(0, live)
    assert not group.purchase(0, live)
    assert progress.unlock_bits["celestial"] == 0b1
    assert ledger.balance("shards") == 900


def test_purchase_insufficient_currency():
    group, progress, ledger, live = _make()
    assert not group.purchase("filter", live)
    assert not group.is_unlocked("filter")
    assert ledger.balance("shards") == 1000


def test_purchase_requirement_blocks_without_debit():
    group, _, ledger, live = _make()
    assert not group.purchase("gated", live)
    assert ledger.balance("shards") == 1000

    group2, _, ledger2, live2 = _make(flags=frozenset({"open"}))
    assert group2.purchase("gated", live2)
    assert ledger2.balance("shards") == 999


def test_on_purchased_runs_once_after_bit_set():
    calls = []
    group, progress, _, live = _make(hook_calls=calls)
    assert group.purchase("hooked", live)
    assert not group.purchase("hooked", live)
    assert calls == [progress]
    assert group.is_unlocked("hooked")


def test_unlock_is_free():
    group, _, ledger, _ = _make()
    assert group.unlock("filter")
    assert not group.unlock("filter")
    assert group.is_unlocked("filter")
    assert ledger.balance("shards") == 1000


def test_unlocked_ids_sorted():
    group, _, _, _ = _make()
    group.unlock(2)
    group.unlock(0)
    assert group.unlocked_ids() == [0, 2]


def test_reset_bits_clears_only_listed():
    group, progress, _, _ = _make()
    for uid in (0, 1, 2):
        group.unlock(uid)
    progress.unlock_bits["untouched"] = 1
    group.reset_bits(["filter"])
    assert group.unlocked_ids() == [0, 2]
    assert progress.unlock_bits["untouched"] == 1


def test_reset_group_clears_all():
    group, progress, _, _ = _make()
    group.unlock(0)
    group.unlock(2)
    group.reset_group()
    assert progress.unlock_bits["celestial"] == 0


def test_effect_active_respects_disable_flag():
    group, _, _, live = _make(disabled=frozenset({"celestial"}))
    group.unlock("adjuster")
    assert group.is_unlocked("adjuster")
    assert not group.is_effect_active("adjuster", live)
    assert not group.can_be_applied("adjuster", live)

    group2, _, _, live2 = _make()
    group2.unlock("adjuster")
    assert group2.can_be_applied("adjuster", live2)


def test_effect_value_literal_and_callable():
    group, _, _, live = _make()
    assert group.effect_value("adjuster", live) == 2
    assert group.effect_value("capped", live) == 100
    assert group.effect_value("filter", live) is None


def test_capped_effect_clamps_only_when_ceiling_present():
    group, _, _, live = _make()
    assert group.capped_effect("capped", live) == 100

    group2, _, _, live2 = _make(externals={"ceiling": 40})
    assert group2.capped_effect("capped", live2) == 40
    assert group2.effect_value("capped", live2) == 100


def test_cost_resolution():
    group, _, _, live = _make()
    assert group.cost("filter", live) == 5000
    assert group.can_purchase("adjuster", live)
    assert not group.can_purchase("filter", live)


def test_unknown_unlock_fails_fast():
    group, _, _, live = _make()
    with pytest.raises(KeyError, match="Unknown unlock"):
        group.purchase(17, live)
    with pytest.raises(KeyError):
        group.is_unlocked("missing")
