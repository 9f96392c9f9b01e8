"""Effarig celestial layer, combined with the Time Dilation upgrade table."""
from __future__ import annotations

import math
from decimal import Decimal
from enum import IntEnum
from typing import Any, Mapping

from prestigelayer._types import ONE, ZERO, Number, clamp_min, plog10, pow_value, to_value
from prestigelayer.currency import CurrencyDef
from prestigelayer.definition import LayerConfig, LayerDefinition
from prestigelayer.effect import ElapsedWindow, FormulaDef, elapsed_power, finite_or, nerf_curve
from prestigelayer.requirement import Req
from prestigelayer.reset import ResetDef
from prestigelayer.run import RunDef
from prestigelayer.stage import StageDef, StageTable
from prestigelayer.state import LiveState
from prestigelayer.unlock import UnlockDef, UnlockGroupDef

from examples.dilation_upgrades import dilation_rebuyables, dilation_upgrades

MAX_VALUE = 1.7976931348623157e308
LOG10_MAX_VALUE = plog10(MAX_VALUE)


class EffarigStage(IntEnum):
    INFINITY = 1
    ETERNITY = 2
    REALITY = 3
    COMPLETED = 4


# Stage unlocks are awarded for finishing a stage, never bought.
_granted_only = (Req.custom(lambda _live: False),)


def effarig_unlocks() -> UnlockGroupDef:
    return UnlockGroupDef(
        id="effarig",
        currency="relic_shards",
        disabled_by="effarig",
        unlocks=[
            UnlockDef(id=0, key="adjuster", cost=1e7,
                      description="Adjustable glyph level factors"),
            UnlockDef(id=1, key="glyphFilter", cost=2e8,
                      description="Glyph filtering"),
            UnlockDef(id=2, key="setSaves", cost=3e9,
                      description="Glyph set saves"),
            UnlockDef(id=3, key="run", cost=5e11,
                      description="Enter Effarig's Reality"),
            UnlockDef(id=4, key="infinity", purchase_requirements=_granted_only,
                      description="Effarig Infinity"),
            UnlockDef(id=5, key="eternity", purchase_requirements=_granted_only,
                      description="Effarig Eternity"),
            UnlockDef(id=6, key="reality", purchase_requirements=_granted_only,
                      description="Effarig Reality"),
        ],
    )


def effarig_stages() -> StageDef:
    return StageDef(
        id="effarig",
        gates=[
            Req.unlocked("effarig", "infinity"),
            Req.unlocked("effarig", "eternity"),
            Req.unlocked("effarig", "reality"),
        ],
        names=["Infinity", "Eternity", "Reality", "Reality"],
    )


# ── Formulas ─────────────────────────────────────────────────────────

NERF_CONSTANT = StageTable({EffarigStage.INFINITY: 1500, EffarigStage.ETERNITY: 29.29}, default=25)
GLYPH_LEVEL_CAP = StageTable({EffarigStage.INFINITY: 100, EffarigStage.ETERNITY: 1500}, default=2000)


def nerf_factor(live: LiveState, power: Number) -> float:
    c = NERF_CONSTANT[live.stage("effarig")]
    return nerf_curve(plog10(power), c, ceiling=3.0)


def _tick_dilation(live: LiveState, params: Mapping[str, Any]) -> float:
    return params["base"] + params["scale"] * nerf_factor(live, live.balance("time_shards"))


def _mult_dilation(live: LiveState, params: Mapping[str, Any]) -> float:
    return params["base"] + params["scale"] * nerf_factor(live, live.balance("infinity_power"))


def _tickspeed(live: LiveState, params: Mapping[str, Any]) -> Decimal:
    tick = clamp_min(live.value("tickspeed_base", 1), Decimal("1e-9000000"))
    base = 3 + plog10(ONE / tick)
    return ONE / pow_value(10, base ** live.formula("tick_dilation"))


def dilated_multiplier(live: LiveState, mult: Number) -> Decimal:
    """Dimension multiplier under Effarig's multiplier dilation."""
    return pow_value(10, plog10(mult) ** live.formula("mult_dilation"))


def _eternity_cap(live: LiveState, params: Mapping[str, Any]) -> Decimal | None:
    if live.is_running("effarig") and live.stage("effarig") == EffarigStage.ETERNITY:
        return to_value(params["cap"])
    return None


def _glyph_level_cap(live: LiveState, params: Mapping[str, Any]) -> int:
    return params["table"][live.stage("effarig")]


def _shards_gained(live: LiveState, params: Mapping[str, Any]) -> Decimal:
    if not live.flag("teresa_effarig"):
        return ZERO
    alchemy = finite_or(live.value("alchemy_effarig", 1), 1)
    base = to_value(plog10(live.balance("eternity_points") + 1)) / params["divisor"]
    return pow_value(base, live.value("glyph_effect_count", 0)) * alchemy


def _max_rarity_boost(live: LiveState, params: Mapping[str, Any]) -> float:
    return 5 * math.log10(plog10(live.balance("relic_shards") + 10))


def _bonus_rg(live: LiveState, params: Mapping[str, Any]) -> int:
    # 0 until Effarig Infinity raises the replicanti cap
    return math.floor(plog10(live.value("replicanti_cap", MAX_VALUE)) / LOG10_MAX_VALUE - 1)


# ── Infinity challenge effects while in Effarig's Reality ────────────


def _ic3(live: LiveState, params: Mapping[str, Any]) -> Decimal:
    base = to_value(1.05) + live.value("galaxies", 0) * to_value(0.005)
    return pow_value(base, live.value("total_tick_bought", 0))


def _external(key: str):
    def _fn(live: LiveState, params: Mapping[str, Any]) -> Decimal:
        return live.value(key, 1)
    return _fn


def _ic6(live: LiveState, params: Mapping[str, Any]) -> Decimal:
    return clamp_min(live.balance("matter"), 1)


def _ic6_matter_gain(live: LiveState, params: Mapping[str, Any]) -> Decimal:
    diff_pow = params["diff_pow"][live.stage("effarig")]
    return elapsed_power(diff_pow, live.elapsed, params["window"])


def _ic8(live: LiveState, params: Mapping[str, Any]) -> Decimal:
    real_time = float(live.value("infinity_real_time", 0))
    diff = max(real_time, 0.0) ** 1.2 - float(live.value("infinity_last_buy_time", 0))
    stage = live.stage("effarig")
    # No elapsed window here, only the clamp at zero.
    return elapsed_power(params["base"][stage], diff * params["scale"][stage])


def effarig_formulas() -> list[FormulaDef]:
    return [
        FormulaDef("tick_dilation", _tick_dilation, {"base": 0.7, "scale": 0.1}),
        FormulaDef("mult_dilation", _mult_dilation, {"base": 0.25, "scale": 0.25}),
        FormulaDef("tickspeed", _tickspeed),
        FormulaDef("eternity_cap", _eternity_cap, {"cap": Decimal("1e50")}),
        FormulaDef("glyph_level_cap", _glyph_level_cap, {"table": GLYPH_LEVEL_CAP}),
        FormulaDef("shards_gained", _shards_gained, {"divisor": 7500}),
        FormulaDef("max_rarity_boost", _max_rarity_boost),
        FormulaDef("bonus_rg", _bonus_rg),
        FormulaDef("IC3", _ic3),
        FormulaDef("IC4", _external("ic4_effect")),
        FormulaDef("IC6", _ic6),
        FormulaDef(
            "IC6MatterGain",
            _ic6_matter_gain,
            {
                "diff_pow": StageTable({
                    EffarigStage.INFINITY: 1,
                    EffarigStage.ETERNITY: 1.03,
                    EffarigStage.REALITY: 1.1,
                    EffarigStage.COMPLETED: 1.4,
                }),
                "window": ElapsedWindow(1, 21_600_000),
            },
        ),
        FormulaDef("IC7", _external("ic7_effect")),
        FormulaDef(
            "IC8",
            _ic8,
            {
                "base": StageTable({
                    EffarigStage.INFINITY: Decimal("0.1"),
                    EffarigStage.ETERNITY: 1 / Decimal("2.11e12"),
                    EffarigStage.REALITY: 1 / Decimal("5.5e555"),
                    EffarigStage.COMPLETED: 1 / Decimal("2e1111"),
                }),
                "scale": StageTable({EffarigStage.COMPLETED: 1.5}, default=1),
            },
        ),
    ]


def define_layer() -> LayerDefinition:
    return LayerDefinition(
        config=LayerConfig(name="Effarig & Time Dilation"),
        currencies=[
            CurrencyDef("relic_shards", display_name="Relic Shards"),
            CurrencyDef("dilated_time", display_name="Dilated Time"),
            CurrencyDef("tachyon_particles", display_name="Tachyon Particles"),
            CurrencyDef("eternity_points", display_name="Eternity Points"),
            CurrencyDef("time_shards", display_name="Time Shards"),
            CurrencyDef("infinity_power", display_name="Infinity Power"),
            CurrencyDef("matter", display_name="Matter"),
        ],
        unlock_groups=[effarig_unlocks(), dilation_upgrades()],
        rebuyable_groups=[dilation_rebuyables()],
        stages=[effarig_stages()],
        runs=[RunDef("effarig", display_name="Effarig's Reality")],
        resets=[
            ResetDef(
                "dilation",
                rebuyable_groups=["dilation"],
                currencies=["dilated_time", "tachyon_particles"],
            ),
            ResetDef(
                "effarig_stages",
                unlock_bits={"effarig": ["infinity", "eternity", "reality"]},
            ),
            ResetDef("celestial_runs", stop_runs=True),
        ],
        formulas=effarig_formulas(),
    )
