from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

from prestigelayer._types import Number, Value, to_value, value_context
from prestigelayer.cost_scaling import CostScaling
from prestigelayer.requirement import Requirement

if TYPE_CHECKING:
    from prestigelayer.currency import CurrencyLedger
    from prestigelayer.state import LiveState, PlayerProgress

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RebuyableDef:
    """Static definition of a repeatable upgrade."""

    id: int
    key: str = ""
    initial_cost: Number = 1
    cost_increment: Number = 10
    cost_scaling: CostScaling | None = None
    purchase_cap: int | None = None
    effect: Callable[[int, LiveState], Any] | None = None
    cap: Callable[[LiveState], Any] | None = None
    currency: str = ""
    purchase_requirements: tuple[Requirement, ...] = ()
    description: str = ""

    def __post_init__(self) -> None:
        if self.cost_scaling is None:
            object.__setattr__(
                self, "cost_scaling", CostScaling.exponential(self.cost_increment)
            )

    def cost_at(self, count: int) -> Value:
        return self.cost_scaling.compute(self.initial_cost, count)


@dataclass
class RebuyableGroupDef:
    """Rebuyables sharing one purchase-count map and one cost currency."""

    id: str
    rebuyables: list[RebuyableDef] = field(default_factory=list)
    currency: str = ""

    _by_id: dict[int, RebuyableDef] = field(default_factory=dict, init=False, repr=False)
    _by_key: dict[str, RebuyableDef] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        self._by_id = {r.id: r for r in self.rebuyables}
        self._by_key = {r.key: r for r in self.rebuyables if r.key}

    def get(self, rebuyable_id: int | str) -> RebuyableDef:
        rdef = (
            self._by_key.get(rebuyable_id)
            if isinstance(rebuyable_id, str)
            else self._by_id.get(rebuyable_id)
        )
        if rdef is None:
            raise KeyError(f"Unknown rebuyable {rebuyable_id!r} in group {self.id!r}")
        return rdef

    def currency_for(self, rdef: RebuyableDef) -> str:
        return rdef.currency or self.currency


class RebuyableGroup:
    """State machine over one group's purchase counts.

    Counts only go up here; ``reset`` is the single way back to zero.
    """

    def __init__(
        self,
        definition: RebuyableGroupDef,
        progress: PlayerProgress,
        ledger: CurrencyLedger,
    ) -> None:
        self.definition = definition
        self._progress = progress
        self._ledger = ledger

    @property
    def id(self) -> str:
        return self.definition.id

    def count(self, rebuyable_id: int | str) -> int:
        rdef = self.definition.get(rebuyable_id)
        return self._progress.counts(self.id)[rdef.id]

    def cost_at(self, rebuyable_id: int | str, count: int) -> Value:
        return self.definition.get(rebuyable_id).cost_at(count)

    def current_cost(self, rebuyable_id: int | str) -> Value:
        return self.cost_at(rebuyable_id, self.count(rebuyable_id))

    def reached_cap(self, rebuyable_id: int | str) -> bool:
        cap = self.definition.get(rebuyable_id).purchase_cap
        if cap is None:
            return False
        return self.count(rebuyable_id) >= cap

    def can_purchase(self, rebuyable_id: int | str, live: LiveState) -> bool:
        rdef = self.definition.get(rebuyable_id)
        if self.reached_cap(rebuyable_id):
            return False
        if not all(r.evaluate(live) for r in rdef.purchase_requirements):
            return False
        return self._ledger.balance(self.definition.currency_for(rdef)) >= self.current_cost(rdef.id)

    def purchase(self, rebuyable_id: int | str, live: LiveState) -> bool:
        """Buy one level. Returns False with no change at cap or when short."""
        rdef = self.definition.get(rebuyable_id)
        if self.reached_cap(rdef.id):
            return False
        for req in rdef.purchase_requirements:
            if not req.evaluate(live):
                return False

        cost = self.current_cost(rdef.id)
        if not self._ledger.debit(self.definition.currency_for(rdef), cost):
            return False

        counts = self._progress.counts(self.id)
        counts[rdef.id] += 1
        logger.debug(
            "Purchased rebuyable %s/%s level %d for %s",
            self.id, rdef.key or rdef.id, counts[rdef.id], cost,
        )
        return True

    def current_effect(self, rebuyable_id: int | str, live: LiveState) -> Any:
        rdef = self.definition.get(rebuyable_id)
        if rdef.effect is None:
            return None
        with value_context():
            return rdef.effect(self.count(rdef.id), live)

    def capped_effect(self, rebuyable_id: int | str, live: LiveState) -> Any:
        """Effect clamped to the definition's dynamic ceiling, if any."""
        rdef = self.definition.get(rebuyable_id)
        value = self.current_effect(rdef.id, live)
        if rdef.cap is None:
            return value
        with value_context():
            ceiling = rdef.cap(live)
        if ceiling is None:
            return value
        return min(to_value(value), to_value(ceiling))

    def reset(self) -> None:
        counts = self._progress.counts(self.id)
        for rid in counts:
            counts[rid] = 0
