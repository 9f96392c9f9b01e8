from __future__ import annotations

import logging
from dataclasses import dataclass

from prestigelayer._types import ZERO, Number, Value, to_value, value_context

logger = logging.getLogger(__name__)


@dataclass
class CurrencyDef:
    """Static definition of a currency."""

    id: str
    display_name: str = ""
    initial_value: Number = 0

    def __post_init__(self) -> None:
        if not self.display_name:
            self.display_name = self.id


@dataclass
class CurrencyState:
    """Mutable runtime state for a currency."""

    current: Value = ZERO
    total_earned: Value = ZERO


class CurrencyLedger:
    """In-memory currency balances.

    The engine only needs ``balance`` and ``debit``; any object providing
    those two methods can stand in for this class.
    """

    def __init__(self, currencies: list[CurrencyDef]) -> None:
        self._defs = {c.id: c for c in currencies}
        self._states: dict[str, CurrencyState] = {}
        for cdef in currencies:
            initial = to_value(cdef.initial_value)
            self._states[cdef.id] = CurrencyState(current=initial, total_earned=initial)

    def _state(self, id: str) -> CurrencyState:
        cs = self._states.get(id)
        if cs is None:
            raise KeyError(f"Unknown currency: {id!r}")
        return cs

    def __contains__(self, id: str) -> bool:
        return id in self._states

    def ids(self) -> list[str]:
        return list(self._states)

    def balance(self, id: str) -> Value:
        return self._state(id).current

    def total_earned(self, id: str) -> Value:
        return self._state(id).total_earned

    def can_afford(self, id: str, amount: Number) -> bool:
        return self._state(id).current >= to_value(amount)

    def debit(self, id: str, amount: Number) -> bool:
        """Spend *amount*. Returns False and changes nothing if short."""
        cs = self._state(id)
        cost = to_value(amount)
        if cs.current < cost:
            return False
        with value_context():
            cs.current -= cost
        logger.debug("Debited %s %s (balance %s)", cost, id, cs.current)
        return True

    def credit(self, id: str, amount: Number) -> None:
        cs = self._state(id)
        gained = to_value(amount)
        with value_context():
            cs.current += gained
            if gained > 0:
                cs.total_earned += gained

    def set(self, id: str, amount: Number) -> None:
        self._state(id).current = to_value(amount)

    def reset(self, id: str) -> None:
        cs = self._state(id)
        initial = to_value(self._defs[id].initial_value)
        cs.current = initial
        cs.total_earned = initial
