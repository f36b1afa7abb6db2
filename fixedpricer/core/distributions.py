"""
Standard normal distribution in fixed point.

The CDF uses the Abramowitz & Stegun rational approximations in
t = 1/(1 + p·|x|), evaluated by Horner's method:

    Φ(x) = 1 - φ(x)·(b1·t + b2·t² + ... + bn·tⁿ),   x >= 0

Negative arguments reuse the same upper tail through the exact identity
Φ(x) = 1 - Φ(-x), so Φ(x) + Φ(-x) = 1 holds to the last digit.

References:
    Abramowitz, M., & Stegun, I. A. (1964). Handbook of Mathematical
    Functions, formulas 26.2.16 and 26.2.17.
"""

from fixedpricer.core.fixed_point import HALF, INV_SQRT_2PI, ONE, ZERO, FixedPoint, exp
from fixedpricer.utils.constants import MAX_STANDARD_DEVIATIONS
from fixedpricer.utils.errors import InvalidParameter
from fixedpricer.utils.types import CdfQuality

# 26.2.17: |error| < 7.5e-8
_PRECISE_P = FixedPoint.from_string("0.2316419")
_PRECISE_COEFFICIENTS = tuple(
    FixedPoint.from_string(c)
    for c in ("0.319381530", "-0.356563782", "1.781477937", "-1.821255978", "1.330274429")
)

# 26.2.16: |error| < 1e-5
_FAST_P = FixedPoint.from_string("0.33267")
_FAST_COEFFICIENTS = tuple(
    FixedPoint.from_string(c) for c in ("0.4361836", "-0.1201676", "0.9372980")
)

CDF_ERROR_BOUNDS = {
    "precise": FixedPoint.from_string("0.000000075"),
    "fast": FixedPoint.from_string("0.00001"),
}


def normal_pdf(x: FixedPoint) -> FixedPoint:
    """
    Standard normal probability density φ(x) = (1/√(2π))·exp(-x²/2).

    Args:
        x: Value at which to evaluate the PDF

    Returns:
        Density at x; exactly zero once exp(-x²/2) is below one ulp
    """
    return INV_SQRT_2PI * exp(-(x * x) / 2)


def _upper_tail(x: FixedPoint, quality: CdfQuality) -> FixedPoint:
    """Q(x) = 1 - Φ(x) for x > 0 via the rational approximation."""
    if quality == "precise":
        p, coefficients = _PRECISE_P, _PRECISE_COEFFICIENTS
    elif quality == "fast":
        p, coefficients = _FAST_P, _FAST_COEFFICIENTS
    else:
        raise InvalidParameter("quality", quality, "must be 'precise' or 'fast'")

    t = ONE / (ONE + p * x)

    # Horner: t·(b1 + t·(b2 + t·(... + t·bn)))
    polynomial = coefficients[-1]
    for coefficient in reversed(coefficients[:-1]):
        polynomial = coefficient + t * polynomial
    return normal_pdf(x) * (t * polynomial)


def normal_cdf(x: FixedPoint, quality: CdfQuality = "precise") -> FixedPoint:
    """
    Standard normal cumulative distribution function Φ(x).

    Args:
        x: Value at which to evaluate the CDF
        quality: "precise" (A&S 26.2.17, error < 7.5e-8) or
            "fast" (A&S 26.2.16, error < 1e-5)

    Returns:
        Probability that a standard normal random variable is below x

    Examples:
        >>> normal_cdf(FixedPoint.from_int(0))
        FixedPoint('0.5')

    Notes:
        For |x| > 8 the result is exactly 0 or 1; the true tail there is
        below 7e-16 and smaller than the approximation's own error.
    """
    if x.raw == 0:
        return HALF
    if x > MAX_STANDARD_DEVIATIONS:
        return ONE
    if x < -MAX_STANDARD_DEVIATIONS:
        return ZERO

    tail = _upper_tail(abs(x), quality)
    if x.raw > 0:
        return ONE - tail
    return tail
