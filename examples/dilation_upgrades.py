"""Time Dilation upgrade table: rebuyables plus one-time upgrades."""
from __future__ import annotations

from decimal import Decimal

from prestigelayer._types import clamp_min, plog10, pow_value, to_value
from prestigelayer.effect import Effect, SoftcapStep
from prestigelayer.rebuyable import RebuyableDef, RebuyableGroupDef
from prestigelayer.requirement import Req
from prestigelayer.state import LiveState
from prestigelayer.unlock import UnlockDef, UnlockGroupDef

UNCAPPED = None
DOOMED = "pelle_doomed"

_doomed_only = (Req.flag(DOOMED),)


def _dt_gain(count: int, live: LiveState) -> Decimal:
    base = 2 * live.value("singularity_dt_mult", 1) * live.value("achievement_187_mult", 1)
    return pow_value(base, count)


def _tachyon_gain(count: int, live: LiveState) -> Decimal:
    if live.flag(DOOMED):
        return pow_value(1, count)
    return pow_value(3, count)


def _td_mult_replicanti(live: LiveState) -> Decimal:
    return pow_value(10, plog10(live.value("replicanti_mult", 1)) * 0.1)


def _nd_mult_dt(live: LiveState) -> Decimal:
    return clamp_min(pow_value(live.balance("dilated_time"), 308), 1)


def _ip_mult_dt(live: LiveState) -> Decimal:
    return clamp_min(pow_value(live.balance("dilated_time"), 1000), 1)


def _ip_mult_cap(live: LiveState) -> Decimal | None:
    return live.formula("eternity_cap")


def _dt_to_boosts(live: LiveState) -> Decimal:
    exponent = to_value(2.5) + live.value("glyph_dilation_pow", 0)
    return pow_value(live.balance("dilated_time"), exponent)


def _replicanti_to_dt(live: LiveState) -> dict[str, Decimal]:
    dt = live.balance("dilated_time")
    replicanti = live.value("replicanti_amount", 0)
    log2_rep = (clamp_min(replicanti, 0) + 1).ln() / Decimal(2).ln()
    return {
        "replicanti": pow_value(to_value(plog10(dt + 1)) + 1, 3),
        "dt": pow_value(log2_rep, 2.5),
    }


def _tt_generator(live: LiveState) -> Decimal:
    return live.balance("tachyon_particles") / 20000


def _flat_dilation_mult(live: LiveState) -> Decimal:
    excess = max(plog10(live.balance("eternity_points")) - 1500, 0) / 2500
    return pow_value(Decimal(10) ** 9, min(excess ** 1.2, 1))


def dilation_rebuyables() -> RebuyableGroupDef:
    return RebuyableGroupDef(
        id="dilation",
        currency="dilated_time",
        rebuyables=[
            RebuyableDef(
                id=1,
                key="dtGain",
                initial_cost=1e4,
                cost_increment=10,
                purchase_cap=UNCAPPED,
                effect=_dt_gain,
                description="Double Dilated Time gain",
            ),
            RebuyableDef(
                id=2,
                key="galaxyThreshold",
                initial_cost=1e6,
                cost_increment=100,
                # The 38th purchase is at 1e80 and is the last one.
                purchase_cap=38,
                effect=Effect.until(38, Effect.geometric(0.8), after=0),
                description="Reset Dilated Time and Tachyon Galaxies, but lower their threshold",
            ),
            RebuyableDef(
                id=3,
                key="tachyonGain",
                initial_cost=1e7,
                cost_increment=20,
                purchase_cap=UNCAPPED,
                effect=_tachyon_gain,
                description="Triple the amount of Tachyon Particles gained",
            ),
            RebuyableDef(
                id=4,
                key="tachyonBaseExponent",
                initial_cost=1e10,
                cost_increment=150,
                purchase_cap=UNCAPPED,
                effect=Effect.softcapped(
                    0.75, [SoftcapStep(15, 0.5), SoftcapStep(100, 0.25)]
                ),
                description="Increase the Tachyon Particle formula exponent",
            ),
            RebuyableDef(
                id=14,
                key="dtGainPelle",
                initial_cost=1e14,
                cost_increment=100,
                purchase_cap=UNCAPPED,
                effect=Effect.geometric(5),
                purchase_requirements=_doomed_only,
                description="x5 Dilated Time gain",
            ),
            RebuyableDef(
                id=15,
                key="galaxyMultiplier",
                initial_cost=1e15,
                cost_increment=1000,
                purchase_cap=UNCAPPED,
                effect=Effect.per_count(1, offset=1),
                purchase_requirements=_doomed_only,
                description="Multiply Tachyon Galaxies gained",
            ),
            RebuyableDef(
                id=16,
                key="tickspeedPower",
                initial_cost=1e16,
                cost_increment=1e4,
                purchase_cap=UNCAPPED,
                effect=Effect.per_count(0.03, offset=1),
                purchase_requirements=_doomed_only,
                description="Gain a power to Tickspeed",
            ),
        ],
    )


def dilation_upgrades() -> UnlockGroupDef:
    return UnlockGroupDef(
        id="dilation_upgrades",
        currency="dilated_time",
        unlocks=[
            UnlockDef(id=5, key="doubleGalaxies", cost=5e6, effect=20,
                      description="Gain x20 as many Tachyon Galaxies"),
            UnlockDef(id=6, key="tdMultReplicanti", cost=1e9, effect=_td_mult_replicanti,
                      description="Time Dimensions are affected by Replicanti multiplier ^0.1"),
            UnlockDef(id=7, key="ndMultDT", cost=5e7, effect=_nd_mult_dt,
                      description="Antimatter Dimension multiplier based on Dilated Time"),
            UnlockDef(id=8, key="ipMultDT", cost=2e12, effect=_ip_mult_dt, cap=_ip_mult_cap,
                      description="Infinity Point multiplier based on Dilated Time"),
            UnlockDef(id=9, key="timeStudySplit", cost=1e10,
                      description="Buy all three Time Study paths from the Dimension Split"),
            UnlockDef(id=10, key="dilationPenalty", cost=1e11, effect=1.12,
                      description="Reduce the Dilation penalty"),
            UnlockDef(id=11, key="dtToBoosts", cost=1e100, effect=_dt_to_boosts,
                      description="Dilated Time boosts the Dimension Boost multiplier"),
            UnlockDef(id=12, key="replicantiToDT", cost=Decimal("1e50"), effect=_replicanti_to_dt,
                      description="Replicanti and Dilated Time multiply each other's gain"),
            UnlockDef(id=13, key="ttGenerator", cost=1e15, effect=_tt_generator,
                      description="Generate Time Theorems based on Tachyon Particles"),
            UnlockDef(id=17, key="galaxyThresholdPelle", cost=1e45, effect=Decimal("0.1"),
                      purchase_requirements=_doomed_only,
                      description="Apply a 10th root to the Tachyon Galaxy threshold"),
            UnlockDef(id=18, key="flatDilationMult", cost=1e55, effect=_flat_dilation_mult,
                      purchase_requirements=_doomed_only,
                      description="Gain more Dilated Time based on current EP"),
        ],
    )


ONE_TIME_IDS = [5, 6, 7, 8, 9, 10, 11, 12, 13, 17, 18]
