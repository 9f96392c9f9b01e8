# prestigelayer: Unlock, Rebuyable & Stage Engine for Incremental Game Prestige Layers

from prestigelayer._types import (
    Value,
    DynamicValue,
    to_value,
    resolve_value,
    plog10,
    clamp,
    clamp_min,
    pow_value,
    compare,
)
from prestigelayer.requirement import Requirement, Req
from prestigelayer.cost_scaling import CostScaling
from prestigelayer.effect import (
    Effect,
    ElapsedWindow,
    FormulaDef,
    SoftcapStep,
    elapsed_power,
    finite_or,
    nerf_curve,
    softcap,
)
from prestigelayer.currency import CurrencyDef, CurrencyState, CurrencyLedger
from prestigelayer.unlock import UnlockDef, UnlockGroupDef, UnlockGroup
from prestigelayer.rebuyable import RebuyableDef, RebuyableGroupDef, RebuyableGroup
from prestigelayer.stage import StageDef, StageResolver, StageTable
from prestigelayer.run import RunDef
from prestigelayer.reset import ResetDef, ResetResult
from prestigelayer.events import EventHub, EventRecord, LayerEvent
from prestigelayer.definition import LayerDefinition, LayerConfig
from prestigelayer.state import LiveState, PlayerProgress
from prestigelayer.runtime import LayerRuntime

__all__ = [
    # Types
    "Value",
    "DynamicValue",
    "to_value",
    "resolve_value",
    "plog10",
    "clamp",
    "clamp_min",
    "pow_value",
    "compare",
    # Requirements
    "Requirement",
    "Req",
    # Cost
    "CostScaling",
    # Effects
    "Effect",
    "ElapsedWindow",
    "FormulaDef",
    "SoftcapStep",
    "elapsed_power",
    "finite_or",
    "nerf_curve",
    "softcap",
    # Data model
    "CurrencyDef",
    "CurrencyState",
    "CurrencyLedger",
    "UnlockDef",
    "UnlockGroupDef",
    "UnlockGroup",
    "RebuyableDef",
    "RebuyableGroupDef",
    "RebuyableGroup",
    "StageDef",
    "StageResolver",
    "StageTable",
    "RunDef",
    "ResetDef",
    "ResetResult",
    # Events
    "EventHub",
    "EventRecord",
    "LayerEvent",
    # Definition
    "LayerDefinition",
    "LayerConfig",
    # State
    "LiveState",
    "PlayerProgress",
    # Runtime
    "LayerRuntime",
]
