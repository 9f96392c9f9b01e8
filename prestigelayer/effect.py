from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Mapping

from prestigelayer._types import ZERO, Number, Value, clamp, pow_value, to_value, value_context

if TYPE_CHECKING:
    from prestigelayer.state import LiveState


# ── Curves ───────────────────────────────────────────────────────────


def nerf_curve(x: Number, c: float, ceiling: float = 3.0) -> float:
    """Compress x >= 0 into [0, ceiling) as ceiling * (1 - c / (c + sqrt(x))).

    Smaller *c* saturates faster. Negative or NaN *x* counts as 0.
    """
    if c <= 0:
        raise ValueError(f"nerf_curve needs c > 0, got {c!r}")
    x = float(x)
    if math.isnan(x) or x < 0:
        x = 0.0
    return ceiling * (1 - c / (c + math.sqrt(x)))


@dataclass(frozen=True)
class SoftcapStep:
    """Above *threshold*, value becomes threshold * (value/threshold)^exponent."""

    threshold: Number
    exponent: Number


def softcap(value: Number, steps: list[SoftcapStep] | tuple[SoftcapStep, ...]) -> Value:
    """Apply each step in order; each sees the output of the previous one."""
    v = to_value(value)
    with value_context():
        for step in steps:
            threshold = to_value(step.threshold)
            if v >= threshold:
                v = pow_value(v / threshold, step.exponent) * threshold
    return v


@dataclass(frozen=True)
class ElapsedWindow:
    """Inclusive bounds applied to an elapsed duration before it is used."""

    minimum: float
    maximum: float

    def apply(self, elapsed: float) -> float:
        return float(clamp(elapsed, self.minimum, self.maximum))


def elapsed_power(
    base: Number, elapsed: float, window: ElapsedWindow | None = None
) -> Value:
    """base ** elapsed, with elapsed clamped by *window* or at least to 0."""
    if window is not None:
        elapsed = window.apply(elapsed)
    else:
        elapsed = max(0.0, elapsed)
    return pow_value(base, to_value(elapsed))


# ── Named formulas ───────────────────────────────────────────────────


@dataclass
class FormulaDef:
    """A named effect formula with its numeric parameters kept alongside."""

    id: str
    fn: Callable[[LiveState, Mapping[str, Any]], Any]
    params: dict[str, Any] = field(default_factory=dict)
    description: str = ""

    def evaluate(self, live: LiveState) -> Any:
        with value_context():
            return self.fn(live, self.params)


# ── Rebuyable effect builders ────────────────────────────────────────


class Effect:
    """Convenience constructors for common count-driven effects."""

    @staticmethod
    def static(value: Number) -> Callable[[int, LiveState], Value]:
        """Constant value regardless of count."""
        v = to_value(value)
        return lambda _count, _live: v

    @staticmethod
    def geometric(base: Number) -> Callable[[int, LiveState], Value]:
        """base^count."""
        b = to_value(base)
        return lambda count, _live: pow_value(b, count)

    @staticmethod
    def per_count(per_unit: Number, offset: Number = 0) -> Callable[[int, LiveState], Value]:
        """offset + per_unit * count."""
        p = to_value(per_unit)
        o = to_value(offset)
        return lambda count, _live: o + p * count

    @staticmethod
    def softcapped(
        per_unit: Number, steps: list[SoftcapStep]
    ) -> Callable[[int, LiveState], Value]:
        """per_unit * count, tempered by *steps*."""
        p = to_value(per_unit)
        _steps = tuple(steps)
        return lambda count, _live: softcap(p * count, _steps)

    @staticmethod
    def until(limit: int, inner: Callable[[int, LiveState], Any], after: Number = 0):
        """*inner* below *limit* purchases, then a fixed *after* value."""
        a = to_value(after)

        def _value(count: int, live: LiveState) -> Any:
            if count < limit:
                return inner(count, live)
            return a

        return _value


def finite_or(value: Number, fallback: Number = ZERO) -> Value:
    """*value* if it is finite, else *fallback*."""
    v = to_value(value)
    if not v.is_finite():
        return to_value(fallback)
    return v
