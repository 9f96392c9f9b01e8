from __future__ import annotations

import decimal
import math
import operator
from decimal import Decimal
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from prestigelayer.state import LiveState

# Values routinely exceed float range (1e1111 and beyond). Engine arithmetic
# runs in this private context; the caller's decimal context is never touched.
_CONTEXT = decimal.Context(prec=34, Emax=decimal.MAX_EMAX, Emin=decimal.MIN_EMIN)


def value_context():
    """Context manager running Decimal arithmetic in the engine's context."""
    return decimal.localcontext(_CONTEXT)


Value = Decimal
Number = Decimal | float | int
DynamicValue = Number | Callable[['LiveState'], Number]

ZERO = Decimal(0)
ONE = Decimal(1)

_OPS: dict[str, Callable[[object, object], bool]] = {
    ">=": operator.ge,
    "<=": operator.le,
    ">": operator.gt,
    "<": operator.lt,
    "==": operator.eq,
    "!=": operator.ne,
}


def to_value(x: Number | str | None) -> Value:
    """Coerce ints, floats and strings to Value. None and NaN become zero."""
    if x is None:
        return ZERO
    if isinstance(x, Decimal):
        return ZERO if x.is_nan() else x
    if isinstance(x, float):
        if math.isnan(x):
            return ZERO
        # repr keeps 1e4 as 1E+4 instead of its binary expansion
        return _CONTEXT.create_decimal(repr(x) if math.isfinite(x) else x)
    v = _CONTEXT.create_decimal(x)
    return ZERO if v.is_nan() else v


def resolve_value(value: DynamicValue, live: LiveState) -> Value:
    """Resolve a literal number or a callable that takes LiveState."""
    if callable(value):
        with value_context():
            return to_value(value(live))
    return to_value(value)


def plog10(x: Number) -> float:
    """log10 of x, or 0 when x is below 1."""
    v = to_value(x)
    if v <= ONE:
        return 0.0
    return float(v.log10(_CONTEXT))


def clamp(x: Number, lo: Number, hi: Number) -> Value:
    v = to_value(x)
    return max(to_value(lo), min(to_value(hi), v))


def clamp_min(x: Number, lo: Number) -> Value:
    return max(to_value(x), to_value(lo))


def pow_value(base: Number, exponent: Number) -> Value:
    """base ** exponent with the domain clamped: a non-positive base gives 0."""
    b = to_value(base)
    e = to_value(exponent)
    if e == ZERO:
        return ONE
    if b <= ZERO:
        return ZERO
    return _CONTEXT.power(b, e)


def compare(left: object, op: str, right: object) -> bool:
    """Compare two values using a string operator."""
    fn = _OPS.get(op)
    if fn is None:
        raise ValueError(f"Unknown operator: {op!r}. Expected one of {list(_OPS)}")
    return fn(left, right)
