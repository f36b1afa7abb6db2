"""
Fixed-point decimal arithmetic and elementary functions.

A FixedPoint holds a Python int ``raw`` equal to the real value times 10^18.
All arithmetic is integer arithmetic, so results are bit-reproducible on any
interpreter and any platform.

Rounding and error model:
    - ``*`` and ``/`` truncate toward zero, at most 1 ulp (1e-18) of error
      per operation.
    - ``sqrt`` is the exact floor of the true root (error < 1 ulp).
    - ``exp`` and ``ln`` evaluate their series at 36 working digits and
      truncate the result, at most 2 ulp of error.
    Higher layers accumulate these bounds; nothing in the engine rounds
    them away.

Range:
    Every result is re-validated against the signed 256-bit raw range and
    raises RangeOverflow outside it.

References:
    Muller, J.-M. (2016). Elementary Functions: Algorithms and Implementation.
"""

import math
from decimal import Decimal
from fractions import Fraction

from fixedpricer.utils.constants import (
    DECIMALS,
    EXP_MAX_ARGUMENT,
    EXP_MIN_ARGUMENT,
    EXP_SERIES_TERMS,
    GUARD_SCALE,
    LN_SERIES_TERMS,
    MAX_RAW,
    MIN_RAW,
    SCALE,
    WORK_SCALE,
)
from fixedpricer.utils.errors import DivideByZero, DomainError, InvalidParameter, RangeOverflow

# Working-precision constants (36 fractional digits, truncated)
LN2_WORK = 693147180559945309417232121458176568
SQRT2_WORK = 1414213562373095048801688724209698078
PI_WORK = 3141592653589793238462643383279502884


def div_toward_zero(numerator: int, denominator: int) -> int:
    """Integer division rounding toward zero (Python's // floors)."""
    quotient = abs(numerator) // abs(denominator)
    if (numerator < 0) != (denominator < 0):
        return -quotient
    return quotient


def _div_nearest(numerator: int, denominator: int) -> int:
    """Nearest-integer quotient for a positive denominator (ties go up)."""
    return (2 * numerator + denominator) // (2 * denominator)


def _checked(raw: int, operation: str) -> int:
    if raw > MAX_RAW or raw < MIN_RAW:
        raise RangeOverflow(operation, raw)
    return raw


class FixedPoint:
    """
    Immutable signed fixed-point number with 18 fractional decimal digits.

    Attributes:
        raw: Scaled integer (value * 10^18); this is also the serialization
            format at the engine boundary.

    Examples:
        >>> FixedPoint.from_string("1.5") * FixedPoint.from_int(2)
        FixedPoint('3')
        >>> FixedPoint.from_int(1) / FixedPoint.from_int(3)
        FixedPoint('0.333333333333333333')
    """

    __slots__ = ("_raw",)

    def __init__(self, raw: int):
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise TypeError(f"raw value must be an int, got {type(raw).__name__}")
        object.__setattr__(self, "_raw", _checked(raw, "construct"))

    def __setattr__(self, name, value):
        raise AttributeError("FixedPoint is immutable")

    def __reduce__(self):
        return (FixedPoint, (self._raw,))

    @property
    def raw(self) -> int:
        return self._raw

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_int(cls, value: int) -> "FixedPoint":
        return cls(value * SCALE)

    @classmethod
    def from_decimal(cls, value: Decimal) -> "FixedPoint":
        """Exact conversion; digits beyond the 18th are truncated toward zero."""
        if not value.is_finite():
            raise InvalidParameter("value", value, "must be finite")
        sign, digits, exponent = value.as_tuple()
        coefficient = int("".join(str(digit) for digit in digits)) if digits else 0
        shift = exponent + DECIMALS
        if shift >= 0:
            raw = coefficient * 10**shift
        else:
            raw = coefficient // 10 ** (-shift)
        return cls(-raw if sign else raw)

    @classmethod
    def from_string(cls, text: str) -> "FixedPoint":
        try:
            value = Decimal(text.strip())
        except ArithmeticError:
            raise InvalidParameter("value", text, "not a decimal number") from None
        return cls.from_decimal(value)

    @classmethod
    def parse(cls, value) -> "FixedPoint":
        """
        Convert a FixedPoint, int, str, Decimal or float into a FixedPoint.

        Floats are converted through their shortest round-trip repr, so the
        same float always maps to the same fixed-point value.
        """
        if isinstance(value, FixedPoint):
            return value
        if isinstance(value, bool):
            raise TypeError("bool is not a numeric value")
        if isinstance(value, int):
            return cls.from_int(value)
        if isinstance(value, str):
            return cls.from_string(value)
        if isinstance(value, Decimal):
            return cls.from_decimal(value)
        if isinstance(value, float):
            if not math.isfinite(value):
                raise InvalidParameter("value", value, "must be finite")
            return cls.from_string(repr(value))
        raise TypeError(f"Cannot convert {type(value).__name__} to FixedPoint")

    # ------------------------------------------------------------------
    # Arithmetic
    # ------------------------------------------------------------------

    @staticmethod
    def _coerce(other):
        if isinstance(other, FixedPoint):
            return other
        if isinstance(other, int) and not isinstance(other, bool):
            return FixedPoint.from_int(other)
        return None

    def __add__(self, other):
        other = self._coerce(other)
        if other is None:
            return NotImplemented
        return FixedPoint(_checked(self._raw + other._raw, "add"))

    __radd__ = __add__

    def __sub__(self, other):
        other = self._coerce(other)
        if other is None:
            return NotImplemented
        return FixedPoint(_checked(self._raw - other._raw, "sub"))

    def __rsub__(self, other):
        other = self._coerce(other)
        if other is None:
            return NotImplemented
        return other - self

    def __mul__(self, other):
        other = self._coerce(other)
        if other is None:
            return NotImplemented
        return FixedPoint(_checked(div_toward_zero(self._raw * other._raw, SCALE), "mul"))

    __rmul__ = __mul__

    def __truediv__(self, other):
        other = self._coerce(other)
        if other is None:
            return NotImplemented
        if other._raw == 0:
            raise DivideByZero(self)
        return FixedPoint(_checked(div_toward_zero(self._raw * SCALE, other._raw), "div"))

    def __rtruediv__(self, other):
        other = self._coerce(other)
        if other is None:
            return NotImplemented
        return other / self

    def __neg__(self):
        return FixedPoint(_checked(-self._raw, "neg"))

    def __pos__(self):
        return self

    def __abs__(self):
        return FixedPoint(_checked(abs(self._raw), "abs"))

    # ------------------------------------------------------------------
    # Comparison
    # ------------------------------------------------------------------

    def __eq__(self, other):
        other = self._coerce(other)
        if other is None:
            return NotImplemented
        return self._raw == other._raw

    def __hash__(self):
        return hash(Fraction(self._raw, SCALE))

    def __lt__(self, other):
        other = self._coerce(other)
        if other is None:
            return NotImplemented
        return self._raw < other._raw

    def __le__(self, other):
        other = self._coerce(other)
        if other is None:
            return NotImplemented
        return self._raw <= other._raw

    def __gt__(self, other):
        other = self._coerce(other)
        if other is None:
            return NotImplemented
        return self._raw > other._raw

    def __ge__(self, other):
        other = self._coerce(other)
        if other is None:
            return NotImplemented
        return self._raw >= other._raw

    def __bool__(self):
        return self._raw != 0

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def __int__(self):
        return div_toward_zero(self._raw, SCALE)

    def __float__(self):
        # Diagnostic use only; the engine never computes in floats
        return self._raw / SCALE

    def to_decimal(self) -> Decimal:
        digits = tuple(int(c) for c in str(abs(self._raw)))
        return Decimal((1 if self._raw < 0 else 0, digits, -DECIMALS))

    def __str__(self):
        sign = "-" if self._raw < 0 else ""
        whole, frac = divmod(abs(self._raw), SCALE)
        if frac == 0:
            return f"{sign}{whole}"
        return f"{sign}{whole}.{frac:0{DECIMALS}d}".rstrip("0")

    def __repr__(self):
        return f"FixedPoint('{self}')"

    def __format__(self, format_spec):
        if not format_spec:
            return str(self)
        return format(self.to_decimal(), format_spec)

    # ------------------------------------------------------------------
    # Elementary functions
    # ------------------------------------------------------------------

    def sqrt(self) -> "FixedPoint":
        return sqrt(self)

    def ln(self) -> "FixedPoint":
        return ln(self)

    def exp(self) -> "FixedPoint":
        return exp(self)


# ===========================
# Working-precision kernels
# ===========================


def exp_work(w: int) -> int:
    """
    e^w for a 36-digit working-scale integer, returned at working scale.

    Range reduction: w = k·ln2 + r with |r| <= ln2/2, then a Taylor series
    in r and an exact binary shift by k.
    """
    if w == 0:
        return WORK_SCALE
    k = _div_nearest(w, LN2_WORK)
    r = w - k * LN2_WORK

    total = WORK_SCALE
    term = WORK_SCALE
    for n in range(1, EXP_SERIES_TERMS + 1):
        term = div_toward_zero(term * r, n * WORK_SCALE)
        if term == 0:
            break
        total += term

    if k >= 0:
        return total << k
    return total >> -k


def ln_work(w: int) -> int:
    """
    Natural log of a positive working-scale integer, returned at working scale.

    The argument is normalized by powers of two into [1/√2, √2), where
    ln(m) = 2·atanh(z) with z = (m-1)/(m+1), |z| <= 0.1716.
    """
    k = w.bit_length() - WORK_SCALE.bit_length()
    m = w >> k if k >= 0 else w << -k
    while m >= 2 * WORK_SCALE:
        m >>= 1
        k += 1
    while m < WORK_SCALE:
        m <<= 1
        k -= 1
    if m > SQRT2_WORK:
        m >>= 1
        k += 1

    z = div_toward_zero((m - WORK_SCALE) * WORK_SCALE, m + WORK_SCALE)
    z_squared = z * z // WORK_SCALE

    total = z
    term = z
    for n in range(1, LN_SERIES_TERMS + 1):
        term = div_toward_zero(term * z_squared, WORK_SCALE)
        if term == 0:
            break
        total += div_toward_zero(term, 2 * n + 1)

    return 2 * total + k * LN2_WORK


def sqrt_work(w: int) -> int:
    """Floor square root of a non-negative working-scale integer."""
    return math.isqrt(w * WORK_SCALE)


# ===========================
# Public elementary functions
# ===========================


def sqrt(x: FixedPoint) -> FixedPoint:
    """
    Square root, exact to the floor of the last digit.

    Raises:
        DomainError: If x is negative
    """
    if x.raw < 0:
        raise DomainError("sqrt", x)
    return FixedPoint(math.isqrt(x.raw * SCALE))


def exp(x: FixedPoint) -> FixedPoint:
    """
    Exponential function.

    Returns zero when the exact result is below one unit of least precision.

    Raises:
        RangeOverflow: If x > 135 (result would leave the 256-bit range)
    """
    if x.raw > EXP_MAX_ARGUMENT * SCALE:
        raise RangeOverflow("exp", x)
    if x.raw < EXP_MIN_ARGUMENT * SCALE:
        return ZERO
    return FixedPoint(exp_work(x.raw * GUARD_SCALE) // GUARD_SCALE)


def ln(x: FixedPoint) -> FixedPoint:
    """
    Natural logarithm.

    Raises:
        DomainError: If x <= 0
    """
    if x.raw <= 0:
        raise DomainError("ln", x)
    return FixedPoint(div_toward_zero(ln_work(x.raw * GUARD_SCALE), GUARD_SCALE))


ZERO = FixedPoint(0)
ONE = FixedPoint(SCALE)
TWO = FixedPoint(2 * SCALE)
HALF = FixedPoint(SCALE // 2)
PI = FixedPoint(PI_WORK // GUARD_SCALE)

# 1/√(2π), derived from PI_WORK at working precision
INV_SQRT_2PI = FixedPoint(
    (WORK_SCALE * WORK_SCALE // sqrt_work(2 * PI_WORK)) // GUARD_SCALE
)
