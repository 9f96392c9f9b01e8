from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

from prestigelayer._types import DynamicValue, Value, resolve_value, to_value, value_context
from prestigelayer.requirement import Requirement

if TYPE_CHECKING:
    from prestigelayer.currency import CurrencyLedger
    from prestigelayer.state import LiveState, PlayerProgress

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnlockDef:
    """A one-time purchase occupying bit *id* of its group's bitmask."""

    id: int
    key: str = ""
    cost: DynamicValue = 0
    currency: str = ""
    effect: Any = None
    cap: Callable[[LiveState], Any] | None = None
    on_purchased: Callable[[PlayerProgress], None] | None = None
    purchase_requirements: tuple[Requirement, ...] = ()
    description: str = ""


@dataclass
class UnlockGroupDef:
    """Unlocks sharing one bitmask and, by default, one cost currency."""

    id: str
    unlocks: list[UnlockDef] = field(default_factory=list)
    currency: str = ""
    disabled_by: str | None = None

    _by_id: dict[int, UnlockDef] = field(default_factory=dict, init=False, repr=False)
    _by_key: dict[str, UnlockDef] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        self._by_id = {u.id: u for u in self.unlocks}
        self._by_key = {u.key: u for u in self.unlocks if u.key}

    def get(self, unlock_id: int | str) -> UnlockDef:
        udef = (
            self._by_key.get(unlock_id)
            if isinstance(unlock_id, str)
            else self._by_id.get(unlock_id)
        )
        if udef is None:
            raise KeyError(f"Unknown unlock {unlock_id!r} in group {self.id!r}")
        return udef

    def currency_for(self, udef: UnlockDef) -> str:
        return udef.currency or self.currency


class UnlockGroup:
    """State machine over one unlock group's bitmask.

    Bits only ever get set here, except through ``reset_group`` and
    ``reset_bits`` which exist for explicit reset operations.
    """

    def __init__(
        self,
        definition: UnlockGroupDef,
        progress: PlayerProgress,
        ledger: CurrencyLedger,
    ) -> None:
        self.definition = definition
        self._progress = progress
        self._ledger = ledger

    @property
    def id(self) -> str:
        return self.definition.id

    @property
    def bits(self) -> int:
        return self._progress.bits(self.id)

    @bits.setter
    def bits(self, value: int) -> None:
        self._progress.unlock_bits[self.id] = value

    def is_unlocked(self, unlock_id: int | str) -> bool:
        udef = self.definition.get(unlock_id)
        return bool(self.bits & (1 << udef.id))

    def unlocked_ids(self) -> list[int]:
        return [u.id for u in sorted(self.definition.unlocks, key=lambda u: u.id)
                if self.bits & (1 << u.id)]

    def cost(self, unlock_id: int | str, live: LiveState) -> Value:
        return resolve_value(self.definition.get(unlock_id).cost, live)

    def can_purchase(self, unlock_id: int | str, live: LiveState) -> bool:
        udef = self.definition.get(unlock_id)
        if self.bits & (1 << udef.id):
            return False
        if not all(r.evaluate(live) for r in udef.purchase_requirements):
            return False
        currency = self.definition.currency_for(udef)
        return self._ledger.balance(currency) >= resolve_value(udef.cost, live)

    def purchase(self, unlock_id: int | str, live: LiveState) -> bool:
        """Buy an unlock. Returns False with no change when owned or short."""
        udef = self.definition.get(unlock_id)
        if self.bits & (1 << udef.id):
            return False
        for req in udef.purchase_requirements:
            if not req.evaluate(live):
                return False

        cost = resolve_value(udef.cost, live)
        if not self._ledger.debit(self.definition.currency_for(udef), cost):
            return False

        self.bits = self.bits | (1 << udef.id)
        logger.debug("Purchased unlock %s/%s for %s", self.id, udef.key or udef.id, cost)

        if udef.on_purchased is not None:
            udef.on_purchased(self._progress)
        return True

    def unlock(self, unlock_id: int | str) -> bool:
        """Set the bit without charging. Returns whether it was newly set."""
        udef = self.definition.get(unlock_id)
        if self.bits & (1 << udef.id):
            return False
        self.bits = self.bits | (1 << udef.id)
        logger.debug("Granted unlock %s/%s", self.id, udef.key or udef.id)
        return True

    def reset_group(self) -> None:
        self.bits = 0

    def reset_bits(self, unlock_ids: list[int | str]) -> None:
        mask = 0
        for uid in unlock_ids:
            mask |= 1 << self.definition.get(uid).id
        self.bits = self.bits & ~mask

    # ── Effects ──────────────────────────────────────────────────────

    def is_effect_active(self, unlock_id: int | str, live: LiveState) -> bool:
        self.definition.get(unlock_id)
        disabled_by = self.definition.disabled_by
        return not (disabled_by and live.is_disabled(disabled_by))

    def can_be_applied(self, unlock_id: int | str, live: LiveState) -> bool:
        return self.is_unlocked(unlock_id) and self.is_effect_active(unlock_id, live)

    def effect_value(self, unlock_id: int | str, live: LiveState) -> Any:
        effect = self.definition.get(unlock_id).effect
        if callable(effect):
            with value_context():
                return effect(live)
        if isinstance(effect, (int, float)):
            return to_value(effect)
        return effect

    def capped_effect(self, unlock_id: int | str, live: LiveState) -> Any:
        udef = self.definition.get(unlock_id)
        value = self.effect_value(unlock_id, live)
        if udef.cap is None:
            return value
        with value_context():
            ceiling = udef.cap(live)
        if ceiling is None:
            return value
        return min(to_value(value), to_value(ceiling))
