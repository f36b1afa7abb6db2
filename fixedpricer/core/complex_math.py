"""
Complex arithmetic and trigonometry on fixed-point values.

There is no native complex type in the engine: a Complex is an ordered pair
of FixedPoint values, and every transcendental function is evaluated at 36
working digits from integer series, then truncated to 18 digits.

Branch convention:
    - argument() is the principal value in (-π, π].
    - ln() is the principal logarithm ln|z| + i·arg(z); its cut lies on the
      negative real axis.
    - sqrt() is the principal root, built from the polar form
      √|z|·(cos θ/2 + i·sin θ/2), so Re(√z) >= 0 always.
    The Heston characteristic function relies on this convention; see
    fixedpricer.core.heston for the formulation that keeps its log argument
    away from the cut.
"""

import math
from dataclasses import dataclass

from fixedpricer.core.fixed_point import (
    ONE,
    PI_WORK,
    ZERO,
    FixedPoint,
    div_toward_zero,
    exp,
    ln_work,
    sqrt_work,
)
from fixedpricer.utils.constants import (
    ATAN_SERIES_TERMS,
    GUARD_SCALE,
    SCALE,
    TRIG_SERIES_TERMS,
    WORK_SCALE,
)
from fixedpricer.utils.errors import DivideByZero, DomainError

HALF_PI_WORK = PI_WORK // 2


def _to_fixed(w: int) -> FixedPoint:
    return FixedPoint(div_toward_zero(w, GUARD_SCALE))


# ===========================
# Trigonometric kernel
# ===========================


def sin_cos_work(w: int) -> tuple[int, int]:
    """
    (sin w, cos w) for a working-scale angle, at working scale.

    The angle is reduced by the nearest multiple of π/2 to |r| <= π/4; the
    multiple's residue mod 4 selects the quadrant rotation.
    """
    k = (2 * w + HALF_PI_WORK) // (2 * HALF_PI_WORK)
    r = w - k * HALF_PI_WORK
    r_squared = r * r // WORK_SCALE

    sine = r
    term = r
    for n in range(1, TRIG_SERIES_TERMS + 1):
        term = div_toward_zero(-term * r_squared, (2 * n) * (2 * n + 1) * WORK_SCALE)
        if term == 0:
            break
        sine += term

    cosine = WORK_SCALE
    term = WORK_SCALE
    for n in range(1, TRIG_SERIES_TERMS + 1):
        term = div_toward_zero(-term * r_squared, (2 * n - 1) * (2 * n) * WORK_SCALE)
        if term == 0:
            break
        cosine += term

    quadrant = k % 4
    if quadrant == 0:
        return sine, cosine
    if quadrant == 1:
        return cosine, -sine
    if quadrant == 2:
        return -sine, -cosine
    return -cosine, sine


def atan_work(w: int) -> int:
    """
    Arctangent of a working-scale value, at working scale.

    |x| > 1 goes through atan(x) = π/2 - atan(1/x); two half-angle steps
    atan(x) = 2·atan(x / (1 + √(1+x²))) bring |x| below tan(π/16) before
    the alternating series.
    """
    if w < 0:
        return -atan_work(-w)
    if w > WORK_SCALE:
        return HALF_PI_WORK - atan_work(WORK_SCALE * WORK_SCALE // w)

    for _ in range(2):
        w = w * WORK_SCALE // (WORK_SCALE + sqrt_work(WORK_SCALE + w * w // WORK_SCALE))

    w_squared = w * w // WORK_SCALE
    total = w
    term = w
    for n in range(1, ATAN_SERIES_TERMS + 1):
        term = div_toward_zero(-term * w_squared, WORK_SCALE)
        if term == 0:
            break
        total += div_toward_zero(term, 2 * n + 1)
    return 4 * total


def atan2_work(y: int, x: int) -> int:
    """
    Principal angle of the point (x, y) in (-π, π], at working scale.

    x and y may be at any common scale (only their ratio matters).

    Raises:
        DomainError: For the origin, where the angle is undefined
    """
    if x == 0:
        if y == 0:
            raise DomainError("atan2", "(0, 0)")
        return HALF_PI_WORK if y > 0 else -HALF_PI_WORK
    angle = atan_work(div_toward_zero(y * WORK_SCALE, x))
    if x > 0:
        return angle
    if y >= 0:
        return angle + PI_WORK
    return angle - PI_WORK


def sin(x: FixedPoint) -> FixedPoint:
    return _to_fixed(sin_cos_work(x.raw * GUARD_SCALE)[0])


def cos(x: FixedPoint) -> FixedPoint:
    return _to_fixed(sin_cos_work(x.raw * GUARD_SCALE)[1])


def atan(x: FixedPoint) -> FixedPoint:
    return _to_fixed(atan_work(x.raw * GUARD_SCALE))


def atan2(y: FixedPoint, x: FixedPoint) -> FixedPoint:
    return _to_fixed(atan2_work(y.raw, x.raw))


# ===========================
# Complex numbers
# ===========================


@dataclass(frozen=True)
class Complex:
    """
    Immutable complex number re + i·im over FixedPoint.

    Products and quotients are formed on the raw integers and truncated
    once, so each operation carries at most 1 ulp of error per component.
    """

    re: FixedPoint
    im: FixedPoint = ZERO

    @classmethod
    def of(cls, re, im=0) -> "Complex":
        return cls(FixedPoint.parse(re), FixedPoint.parse(im))

    @property
    def is_zero(self) -> bool:
        return self.re.raw == 0 and self.im.raw == 0

    def _norm_squared(self) -> int:
        # re² + im² at 36-digit scale, i.e. exactly at working scale
        return self.re.raw * self.re.raw + self.im.raw * self.im.raw

    def __add__(self, other):
        if isinstance(other, Complex):
            return Complex(self.re + other.re, self.im + other.im)
        if isinstance(other, (FixedPoint, int)):
            return Complex(self.re + other, self.im)
        return NotImplemented

    __radd__ = __add__

    def __sub__(self, other):
        if isinstance(other, Complex):
            return Complex(self.re - other.re, self.im - other.im)
        if isinstance(other, (FixedPoint, int)):
            return Complex(self.re - other, self.im)
        return NotImplemented

    def __rsub__(self, other):
        if isinstance(other, (FixedPoint, int)):
            return Complex(other - self.re, -self.im)
        return NotImplemented

    def __neg__(self):
        return Complex(-self.re, -self.im)

    def __mul__(self, other):
        if isinstance(other, Complex):
            a, b = self.re.raw, self.im.raw
            c, d = other.re.raw, other.im.raw
            return Complex(
                FixedPoint(div_toward_zero(a * c - b * d, SCALE)),
                FixedPoint(div_toward_zero(a * d + b * c, SCALE)),
            )
        if isinstance(other, (FixedPoint, int)):
            return Complex(self.re * other, self.im * other)
        return NotImplemented

    __rmul__ = __mul__

    def __truediv__(self, other):
        if isinstance(other, (FixedPoint, int)):
            return Complex(self.re / other, self.im / other)
        if not isinstance(other, Complex):
            return NotImplemented
        denominator = other._norm_squared()
        if denominator == 0:
            raise DivideByZero(self)
        a, b = self.re.raw, self.im.raw
        c, d = other.re.raw, other.im.raw
        return Complex(
            FixedPoint(div_toward_zero((a * c + b * d) * SCALE, denominator)),
            FixedPoint(div_toward_zero((b * c - a * d) * SCALE, denominator)),
        )

    def __rtruediv__(self, other):
        if isinstance(other, (FixedPoint, int)):
            return Complex(FixedPoint.parse(other)) / self
        return NotImplemented

    def conjugate(self) -> "Complex":
        return Complex(self.re, -self.im)

    def modulus(self) -> FixedPoint:
        return FixedPoint(math.isqrt(self._norm_squared()))

    def argument(self) -> FixedPoint:
        return _to_fixed(atan2_work(self.im.raw, self.re.raw))

    def exp(self) -> "Complex":
        magnitude = exp(self.re)
        sine, cosine = sin_cos_work(self.im.raw * GUARD_SCALE)
        return Complex(
            FixedPoint(div_toward_zero(magnitude.raw * cosine, WORK_SCALE)),
            FixedPoint(div_toward_zero(magnitude.raw * sine, WORK_SCALE)),
        )

    def ln(self) -> "Complex":
        """
        Principal logarithm.

        Raises:
            DomainError: For zero
        """
        if self.is_zero:
            raise DomainError("ln", self)
        log_modulus = div_toward_zero(ln_work(self._norm_squared()), 2)
        return Complex(_to_fixed(log_modulus), self.argument())

    def sqrt(self) -> "Complex":
        """Principal square root via polar decomposition (Re >= 0)."""
        if self.is_zero:
            return self
        modulus_work = math.isqrt(self._norm_squared() * WORK_SCALE)
        root_modulus_work = sqrt_work(modulus_work)
        half_angle = div_toward_zero(atan2_work(self.im.raw, self.re.raw), 2)
        sine, cosine = sin_cos_work(half_angle)
        # |θ/2| <= π/2, so cos(θ/2) >= 0; series error must not flip the sign
        cosine = max(cosine, 0)
        return Complex(
            _to_fixed(div_toward_zero(root_modulus_work * cosine, WORK_SCALE)),
            _to_fixed(div_toward_zero(root_modulus_work * sine, WORK_SCALE)),
        )

    def __str__(self):
        sign = "-" if self.im.raw < 0 else "+"
        return f"({self.re} {sign} {abs(self.im)}i)"


I = Complex(ZERO, ONE)
