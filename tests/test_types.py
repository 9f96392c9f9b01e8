"""Tests for _types module."""
import decimal
from decimal import Decimal

import pytest

from prestigelayer._types import (
    clamp,
    clamp_min,
    compare,
    plog10,
    pow_value,
    resolve_value,
    to_value,
    value_context,
)


class FakeLive:
    """Minimal stand-in for LiveState."""
    def value(self, key, default=0):
        return Decimal(7)


def test_to_value_float_keeps_decimal_digits():
    assert to_value(1e4) == Decimal(10000)
    assert to_value(0.1) == Decimal("0.1")


def test_to_value_nan_and_none_become_zero():
    assert to_value(float("nan")) == 0
    assert to_value(Decimal("NaN")) == 0
    assert to_value(None) == 0


def test_to_value_beyond_float_range():
    v = to_value("1e5000")
    assert v > to_value(1.7976931348623157e308)
    assert v * v == Decimal("1e10000")


def test_resolve_value_literal():
    assert resolve_value(42, FakeLive()) == Decimal(42)


def test_resolve_value_callable():
    assert resolve_value(lambda live: live.value("x") * 2, FakeLive()) == Decimal(14)


def test_plog10():
    assert plog10(0) == 0.0
    assert plog10(Decimal("0.5")) == 0.0
    assert plog10(1000) == pytest.approx(3.0)
    assert plog10(Decimal("1e2500")) == pytest.approx(2500.0)


def test_clamp():
    assert clamp(5, 1, 10) == 5
    assert clamp(-3, 1, 10) == 1
    assert clamp(30, 1, 10) == 10
    assert clamp_min(-2, 0) == 0
    assert clamp_min(4, 1) == 4


def test_pow_value_domain():
    assert pow_value(2, 10) == 1024
    assert pow_value(0, 0) == 1
    assert pow_value(5, 0) == 1
    assert pow_value(0, 3) == 0
    assert pow_value(-1, Decimal("0.5")) == 0


def test_import_leaves_default_context_alone():
    assert decimal.DefaultContext.prec == 28
    assert decimal.DefaultContext.Emax == 999999
    assert decimal.DefaultContext.Emin == -999999


def test_pow_value_beyond_host_exponent_range():
    with decimal.localcontext(decimal.Context(prec=10, Emax=999, Emin=-999)):
        big = pow_value(10, 5000)
        tiny = pow_value(Decimal("0.1"), 5000)
        assert decimal.getcontext().prec == 10
    assert big == Decimal("1e5000")
    assert tiny == Decimal("1e-5000")


def test_value_context_restores_caller_context():
    with decimal.localcontext(decimal.Context(prec=5)):
        with value_context():
            assert decimal.getcontext().prec > 5
        assert decimal.getcontext().prec == 5


def test_compare_operators():
    assert compare(5, ">=", 3)
    assert compare(3, ">=", 3)
    assert not compare(2, ">=", 3)
    assert compare(Decimal(3), "<", 5)
    assert compare(3, "==", Decimal(3))
    assert compare(3, "!=", 4)


def test_compare_unknown_operator():
    with pytest.raises(ValueError, match="Unknown operator"):
        compare(1, "??", 2)
