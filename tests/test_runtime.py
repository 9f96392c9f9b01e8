"""Tests for runtime module."""
import threading
from decimal import Decimal

import pytest

from prestigelayer.cost_scaling import CostScaling
from prestigelayer.currency import CurrencyDef
from prestigelayer.definition import LayerConfig, LayerDefinition
from prestigelayer.effect import Effect, FormulaDef
from prestigelayer.events import LayerEvent
from prestigelayer.rebuyable import RebuyableDef, RebuyableGroupDef
from prestigelayer.requirement import Req
from prestigelayer.reset import ResetDef
from prestigelayer.run import RunDef
from prestigelayer.runtime import LayerRuntime
from prestigelayer.stage import StageDef
from prestigelayer.unlock import UnlockDef, UnlockGroupDef


def _make_layer(hooks: list | None = None) -> LayerDefinition:
    """A small layer exercising every part of the runtime."""
    calls = hooks if hooks is not None else []
    return LayerDefinition(
        config=LayerConfig(name="Test"),
        currencies=[
            CurrencyDef("shards", initial_value=1000),
            CurrencyDef("dt", initial_value=Decimal("1e5")),
        ],
        unlock_groups=[
            UnlockGroupDef(
                id="celestial",
                currency="shards",
                disabled_by="celestial",
                unlocks=[
                    UnlockDef(0, "adjuster", cost=100, effect=2),
                    UnlockDef(1, "filter", cost=200),
                    UnlockDef(2, "infinity", cost=0),
                    UnlockDef(3, "eternity", cost=0),
                    UnlockDef(4, "expensive", cost=1e9),
                ],
            ),
        ],
        rebuyable_groups=[
            RebuyableGroupDef(
                id="dilation",
                currency="dt",
                rebuyables=[
                    RebuyableDef(1, "dtGain", initial_cost=1e4, cost_increment=10,
                                 effect=Effect.geometric(2),
                                 cap=lambda live: 4 if live.is_running("effarig") else None),
                    RebuyableDef(2, "cheap", initial_cost=1, purchase_cap=5,
                                 cost_scaling=CostScaling.fixed()),
                ],
            ),
        ],
        stages=[
            StageDef(
                "chain",
                gates=[Req.unlocked("celestial", "infinity"),
                       Req.unlocked("celestial", "eternity")],
                names=["Infinity", "Eternity", "Done"],
            ),
        ],
        runs=[
            RunDef("effarig", on_start=lambda p: calls.append(("start", "effarig")),
                   on_stop=lambda p: calls.append(("stop", "effarig"))),
            RunDef("teresa"),
            RunDef("side", exclusive=False),
        ],
        resets=[
            ResetDef("dilation", rebuyable_groups=["dilation"], currencies=["dt"]),
            ResetDef("stages", unlock_bits={"celestial": ["infinity", "eternity"]}),
            ResetDef("everything", unlock_bits={"celestial": "all"}, stop_runs=True),
        ],
        formulas=[
            FormulaDef("dt_over", lambda live, p: live.balance("dt") / p["div"], {"div": 10}),
        ],
    )


def _make_runtime(hooks=None, now: float = 0.0) -> LayerRuntime:
    return LayerRuntime(_make_layer(hooks), clock=lambda: now)


def _record(rt: LayerRuntime, *events: LayerEvent) -> list:
    seen = []
    for event in events:
        rt.events.on(event, seen.append)
    return seen


def test_initialization():
    rt = _make_runtime()
    assert rt.balance("shards") == 1000
    assert rt.rebuyable_count("dilation", "dtGain") == 0
    assert rt.current_stage("chain") == 1
    assert rt.stage_name("chain") == "Infinity"


def test_invalid_definition_rejected():
    defn = LayerDefinition(
        currencies=[CurrencyDef("shards")],
        unlock_groups=[UnlockGroupDef("g", [UnlockDef(0), UnlockDef(0)], currency="gold")],
    )
    with pytest.raises(ValueError, match="Invalid LayerDefinition"):
        LayerRuntime(defn)


def test_purchase_unlock():
    rt = _make_runtime()
    seen = _record(rt, LayerEvent.UNLOCK_PURCHASED)
    assert rt.purchase_unlock("celestial", "adjuster")
    assert rt.is_unlocked("celestial", 0)
    assert rt.balance("shards") == 900
    assert len(seen) == 1
    assert seen[0].source == "celestial"
    assert seen[0].detail == {"unlock": 0}


def test_purchase_unlock_twice_emits_once():
    rt = _make_runtime()
    seen = _record(rt, LayerEvent.UNLOCK_PURCHASED)
    assert rt.purchase_unlock("celestial", "adjuster")
    assert not rt.purchase_unlock("celestial", "adjuster")
    assert rt.balance("shards") == 900
    assert len(seen) == 1


def test_purchase_unlock_too_expensive():
    rt = _make_runtime()
    assert not rt.purchase_unlock("celestial", "expensive")
    assert rt.balance("shards") == 1000


def test_purchase_all_unlocks_in_id_order():
    rt = _make_runtime()
    assert rt.purchase_all_unlocks("celestial") == [0, 1, 2, 3]
    assert rt.balance("shards") == 700
    assert not rt.is_unlocked("celestial", "expensive")


def test_grant_unlock_enters_stage():
    rt = _make_runtime()
    granted = _record(rt, LayerEvent.UNLOCK_GRANTED)
    stages = _record(rt, LayerEvent.STAGE_ENTERED)
    assert rt.grant_unlock("celestial", "infinity")
    assert not rt.grant_unlock("celestial", "infinity")
    assert rt.balance("shards") == 1000
    assert rt.current_stage("chain") == 2
    assert rt.stage_name("chain") == "Eternity"
    assert len(granted) == 1
    assert [(r.source, r.detail) for r in stages] == [
        ("chain", {"stage": 2, "previous": 1}),
    ]


def test_stage_never_skips_unmet_gate():
    rt = _make_runtime()
    rt.grant_unlock("celestial", "eternity")
    assert rt.current_stage("chain") == 1
    rt.grant_unlock("celestial", "infinity")
    assert rt.current_stage("chain") == 3
    assert rt.stage_name("chain") == "Done"


def test_purchase_rebuyable_scenario():
    rt = _make_runtime()
    seen = _record(rt, LayerEvent.REBUYABLE_PURCHASED)
    assert rt.current_cost("dilation", "dtGain") == Decimal("1e4")
    assert rt.purchase_rebuyable("dilation", "dtGain")
    assert rt.rebuyable_count("dilation", "dtGain") == 1
    assert rt.balance("dt") == Decimal("9e4")
    assert rt.current_cost("dilation", "dtGain") == Decimal("1e5")
    assert seen[0].detail == {"rebuyable": 1, "count": 1}


def test_purchase_max_rebuyable():
    rt = _make_runtime()
    assert rt.purchase_max_rebuyable("dilation", "cheap", limit=2) == 2
    assert rt.purchase_max_rebuyable("dilation", "cheap") == 3
    assert rt.reached_cap("dilation", "cheap")
    assert rt.purchase_max_rebuyable("dilation", "cheap") == 0
    assert rt.rebuyable_count("dilation", "cheap") == 5


def test_rebuyable_effect_cap_follows_run():
    rt = _make_runtime()
    rt.credit("dt", Decimal("1e9"))
    rt.purchase_max_rebuyable("dilation", "dtGain", limit=3)
    assert rt.rebuyable_effect("dilation", "dtGain") == 8
    rt.start_run("effarig")
    assert rt.rebuyable_effect("dilation", "dtGain") == 4
    assert rt.rebuyable_effect("dilation", "dtGain", capped=False) == 8
    rt.stop_run("effarig")
    assert rt.rebuyable_effect("dilation", "dtGain") == 8


def test_disable_suppresses_effect_not_ownership():
    rt = _make_runtime()
    rt.purchase_unlock("celestial", "adjuster")
    assert rt.can_be_applied("celestial", "adjuster")
    rt.disable("celestial")
    assert rt.is_unlocked("celestial", "adjuster")
    assert not rt.can_be_applied("celestial", "adjuster")
    rt.enable("celestial")
    assert rt.can_be_applied("celestial", "adjuster")
    assert rt.unlock_effect("celestial", "adjuster") == 2


def test_exclusive_run_stops_others():
    hooks = []
    rt = _make_runtime(hooks)
    stopped = _record(rt, LayerEvent.RUN_STOPPED)
    assert rt.start_run("effarig")
    assert rt.start_run("teresa")
    assert rt.is_running("teresa")
    assert not rt.is_running("effarig")
    assert hooks == [("start", "effarig"), ("stop", "effarig")]
    assert [r.source for r in stopped] == ["effarig"]


def test_non_exclusive_run_keeps_others():
    rt = _make_runtime()
    rt.start_run("effarig")
    rt.start_run("side")
    assert rt.is_running("effarig")
    assert rt.is_running("side")
    assert rt.clear_runs() == ["effarig", "side"]
    assert not rt.is_running("effarig")


def test_stop_run_not_running():
    rt = _make_runtime()
    seen = _record(rt, LayerEvent.RUN_STOPPED)
    assert not rt.stop_run("effarig")
    assert seen == []


def test_reset_clears_only_what_it_names():
    rt = _make_runtime()
    rt.purchase_unlock("celestial", "adjuster")
    rt.purchase_rebuyable("dilation", "dtGain")
    rt.credit("shards", 5)
    result = rt.trigger_reset("dilation")
    assert result.rebuyable_groups == ["dilation"]
    assert result.currencies == ["dt"]
    assert rt.rebuyable_count("dilation", "dtGain") == 0
    assert rt.balance("dt") == Decimal("1e5")
    assert rt.is_unlocked("celestial", "adjuster")
    assert rt.balance("shards") == 905


def test_reset_listed_bits_drops_stage():
    rt = _make_runtime()
    rt.grant_unlock("celestial", "infinity")
    rt.grant_unlock("celestial", "eternity")
    rt.purchase_unlock("celestial", "adjuster")
    stages = _record(rt, LayerEvent.STAGE_ENTERED)
    resets = _record(rt, LayerEvent.RESET)
    rt.trigger_reset("stages")
    assert rt.current_stage("chain") == 1
    assert rt.is_unlocked("celestial", "adjuster")
    assert stages[0].detail == {"stage": 1, "previous": 3}
    assert resets[0].detail["unlock_groups"] == ["celestial"]


def test_reset_all_and_stop_runs():
    rt = _make_runtime()
    rt.purchase_all_unlocks("celestial")
    rt.start_run("effarig")
    result = rt.trigger_reset("everything")
    assert result.runs_stopped == ["effarig"]
    assert rt.progress.bits("celestial") == 0
    assert not rt.is_running("effarig")


def test_handler_failure_keeps_committed_state():
    rt = _make_runtime()

    def broken(_record):
        raise RuntimeError("display crashed")

    rt.events.on(LayerEvent.UNLOCK_PURCHASED, broken)
    with pytest.raises(RuntimeError):
        rt.purchase_unlock("celestial", "adjuster")
    assert rt.is_unlocked("celestial", "adjuster")
    assert rt.balance("shards") == 900


def test_formula_and_externals():
    rt = _make_runtime()
    assert rt.formula("dt_over") == Decimal("1e4")
    rt.set_external("galaxies", 7)
    assert rt.live().value("galaxies") == 7
    rt.clear_external("galaxies")
    assert rt.live().value("galaxies") == 0


def test_flags():
    rt = _make_runtime()
    rt.set_flag("pelle_doomed")
    assert rt.live().flag("pelle_doomed")
    rt.set_flag("pelle_doomed", on=False)
    assert not rt.live().flag("pelle_doomed")


def test_touch_sets_last_update():
    rt = _make_runtime(now=5000.0)
    rt.touch()
    assert rt.progress.last_update == 5000.0
    rt.touch(now=100.0)
    assert rt.live().elapsed == 4900.0


def test_unknown_ids_fail_fast():
    rt = _make_runtime()
    with pytest.raises(KeyError):
        rt.purchase_unlock("nope", 0)
    with pytest.raises(KeyError):
        rt.purchase_unlock("celestial", 99)
    with pytest.raises(KeyError):
        rt.purchase_rebuyable("dilation", "nope")
    with pytest.raises(KeyError):
        rt.start_run("nope")
    with pytest.raises(KeyError):
        rt.trigger_reset("nope")
    with pytest.raises(KeyError):
        rt.formula("nope")


def test_concurrent_purchases_never_overspend():
    rt = _make_runtime()
    rt.ledger.set("dt", 100)
    results = []

    def worker():
        for _ in range(20):
            results.append(rt.purchase_rebuyable("dilation", "cheap"))

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(True) == 5
    assert rt.rebuyable_count("dilation", "cheap") == 5
    assert rt.balance("dt") == 95


@pytest.mark.parametrize(
    "setter, check",
    [
        (lambda rt: rt.set_external("galaxies", 3), lambda live: live.value("galaxies") == 3),
        (lambda rt: rt.clear_external("galaxies"), lambda live: live.value("galaxies") == 0),
        (lambda rt: rt.set_flag("pelle_doomed"), lambda live: live.flag("pelle_doomed")),
        (lambda rt: rt.disable("celestial"), lambda live: live.is_disabled("celestial")),
        (lambda rt: rt.enable("celestial"), lambda live: not live.is_disabled("celestial")),
    ],
)
def test_setters_wait_for_runtime_lock(setter, check):
    rt = _make_runtime()
    rt.set_external("galaxies", 1)
    rt.disable("celestial")

    rt._lock.acquire()
    try:
        worker = threading.Thread(target=setter, args=(rt,))
        worker.start()
        worker.join(0.2)
        assert worker.is_alive()
    finally:
        rt._lock.release()
    worker.join()

    assert check(rt.live())
