from __future__ import annotations

from typing import Callable

from prestigelayer._types import Number, Value, pow_value, to_value, value_context


class CostScaling:
    """Determines how an upgrade's cost changes with purchase count."""

    def __init__(self, fn: Callable[[Value, int], Number]) -> None:
        self._fn = fn

    def compute(self, initial_cost: Number, current_count: int) -> Value:
        with value_context():
            return to_value(self._fn(to_value(initial_cost), current_count))

    @classmethod
    def fixed(cls) -> CostScaling:
        """Cost never changes."""
        return cls(lambda initial, _count: initial)

    @classmethod
    def exponential(cls, increment: Number = 10) -> CostScaling:
        """Cost = initial * increment^count."""
        inc = to_value(increment)

        def _compute(initial: Value, count: int) -> Value:
            return initial * pow_value(inc, count)

        return cls(_compute)

    @classmethod
    def linear(cls, increment_pct: Number = 0.10) -> CostScaling:
        """Cost = initial * (1 + increment_pct * count)."""
        pct = to_value(increment_pct)

        def _compute(initial: Value, count: int) -> Value:
            return initial * (1 + pct * count)

        return cls(_compute)

    @classmethod
    def custom(cls, fn: Callable[[Value, int], Number]) -> CostScaling:
        """Arbitrary cost function of (initial_cost, count)."""
        return cls(fn)
