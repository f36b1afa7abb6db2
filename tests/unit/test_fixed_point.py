"""
Unit tests for fixed-point arithmetic and elementary functions.

This module validates:
1. Exact construction and formatting
2. Truncation toward zero in multiplication and division
3. Range and domain errors
4. exp/ln/sqrt against high-precision Decimal references
"""

import math
import pickle
from decimal import Decimal, localcontext

import pytest

from fixedpricer.core.fixed_point import (
    HALF,
    ONE,
    PI,
    ZERO,
    FixedPoint,
    exp,
    ln,
    sqrt,
)
from fixedpricer.utils.constants import MAX_RAW, SCALE
from fixedpricer.utils.errors import DivideByZero, DomainError, InvalidParameter, RangeOverflow


def fp(value) -> FixedPoint:
    return FixedPoint.parse(value)


def reference(function, value: str) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = 50
        return getattr(Decimal(value), function)()


def ulps(actual: FixedPoint, expected: Decimal) -> int:
    with localcontext() as ctx:
        ctx.prec = 50
        return abs(actual.raw - int(expected * SCALE))


# ===========================
# Construction Tests
# ===========================


def test_from_string_exact():
    assert fp("1.5").raw == 1_500_000_000_000_000_000
    assert fp("-0.000000000000000001").raw == -1


def test_from_string_truncates_extra_digits():
    assert fp("0.1234567890123456789").raw == 123456789012345678
    assert fp("-0.1234567890123456789").raw == -123456789012345678


def test_from_string_invalid():
    with pytest.raises(InvalidParameter):
        fp("not-a-number")
    with pytest.raises(InvalidParameter):
        fp("Infinity")


def test_parse_float_uses_shortest_repr():
    assert fp(0.1) == fp("0.1")


def test_parse_rejects_bool():
    with pytest.raises(TypeError):
        fp(True)


def test_str_and_repr():
    assert str(fp("-2.50")) == "-2.5"
    assert str(fp(7)) == "7"
    assert repr(fp("0.25")) == "FixedPoint('0.25')"


def test_format_spec():
    assert f"{fp('1.23456'):.2f}" == "1.23"


def test_int_truncates_toward_zero():
    assert int(fp("-2.7")) == -2
    assert int(fp("2.7")) == 2


def test_immutable():
    value = fp(1)
    with pytest.raises(AttributeError):
        value._raw = 5


def test_pickle_roundtrip():
    value = fp("3.14")
    assert pickle.loads(pickle.dumps(value)) == value


def test_equal_values_hash_equal():
    assert hash(fp(2)) == hash(2)
    assert len({fp("0.5"), HALF, fp(0.5)}) == 1


# ===========================
# Arithmetic Tests
# ===========================


def test_basic_arithmetic():
    assert fp("1.5") * 2 == 3
    assert fp(1) / 3 == FixedPoint(333333333333333333)
    assert fp(1) - fp("0.25") == fp("0.75")
    assert 1 + fp("0.5") == fp("1.5")


def test_multiplication_truncates_toward_zero():
    tiny = FixedPoint(1)
    assert (tiny * HALF).raw == 0
    assert (-tiny * HALF).raw == 0


def test_division_truncates_toward_zero():
    assert (fp(-1) / 3).raw == -333333333333333333
    assert (fp(2) / 3).raw == 666666666666666666


def test_divide_by_zero():
    with pytest.raises(DivideByZero):
        fp(1) / ZERO
    with pytest.raises(ZeroDivisionError):
        fp(1) / 0


def test_overflow_detected():
    with pytest.raises(RangeOverflow):
        FixedPoint(MAX_RAW) + FixedPoint(1)
    with pytest.raises(OverflowError):
        FixedPoint(MAX_RAW) * 2


def test_comparisons_with_int():
    assert fp("0.999") < 1
    assert fp(1) >= 1
    assert -fp(1) < ZERO


# ===========================
# Elementary Function Tests
# ===========================


def test_sqrt_exact_squares():
    assert sqrt(fp(4)) == 2
    assert sqrt(fp("0.25")) == HALF
    assert sqrt(ZERO) == ZERO


def test_sqrt_is_floor_of_true_root():
    assert sqrt(fp(2)).raw == math.isqrt(2 * SCALE * SCALE)


def test_sqrt_negative_raises():
    with pytest.raises(DomainError):
        sqrt(fp(-1))


def test_exp_zero_is_one():
    assert exp(ZERO) == ONE


@pytest.mark.parametrize("x", ["1", "-1", "0.5", "2.302585092994045684", "-10.25", "20", "0.000001"])
def test_exp_against_decimal(x):
    assert ulps(exp(fp(x)), reference("exp", x)) <= 2


def test_exp_large_argument_overflows():
    with pytest.raises(RangeOverflow):
        exp(fp(136))


def test_exp_underflows_to_zero():
    assert exp(fp(-50)) == ZERO


def test_ln_one_is_zero():
    assert ln(ONE) == ZERO


@pytest.mark.parametrize("x", ["2", "0.5", "10", "100", "3000", "0.001", "1.000001"])
def test_ln_against_decimal(x):
    assert ulps(ln(fp(x)), reference("ln", x)) <= 2


@pytest.mark.parametrize("x", ["0", "-1"])
def test_ln_non_positive_raises(x):
    with pytest.raises(DomainError):
        ln(fp(x))


@pytest.mark.parametrize("x", ["0.3", "1", "7.5", "42"])
def test_exp_ln_inverse(x):
    value = fp(x)
    assert abs(exp(ln(value)) - value) < fp("0.000000000000001") * max(value, ONE)


def test_pi_digits():
    assert PI.raw == 3141592653589793238


def test_method_aliases():
    value = fp("2.25")
    assert value.sqrt() == fp("1.5")
    assert value.ln() == ln(value)
    assert value.exp() == exp(value)
