"""
Verification residuals for an external harness.

Each function returns a fixed-point scalar that is zero (or small and
bounded) when the corresponding property of the engine holds, so a
harness can assert on exact values rather than re-deriving the pricing
mathematics.
"""

import logging
from typing import Iterable, Sequence

from fixedpricer.core.black_scholes import black_scholes_call, black_scholes_price, black_scholes_put
from fixedpricer.core.distributions import normal_cdf
from fixedpricer.core.fixed_point import ONE, ZERO, FixedPoint, exp, sqrt
from fixedpricer.core.heston import heston_call
from fixedpricer.core.lattice import price_lattice
from fixedpricer.core.payoffs import call_payoff, put_payoff
from fixedpricer.utils.types import (
    CdfQuality,
    HestonParameters,
    OptionParameters,
    OptionType,
    validate_option_type,
)

logger = logging.getLogger(__name__)

DEFAULT_STEP_COUNTS = (8, 16, 32, 64)


def cdf_symmetry_residual(x: FixedPoint, quality: CdfQuality = "precise") -> FixedPoint:
    """Φ(x) + Φ(-x) - 1; exactly zero by construction."""
    return normal_cdf(x, quality) + normal_cdf(-x, quality) - ONE


def put_call_parity_residual(params: OptionParameters, quality: CdfQuality = "precise") -> FixedPoint:
    """C - P - (S - K·e^(-rT)) for the closed-form prices."""
    call = black_scholes_call(params, quality)
    put = black_scholes_put(params, quality)
    forward_value = params.spot - params.strike * exp(-(params.risk_free_rate * params.time_to_expiry))
    return call - put - forward_value


def payoff_parity_residual(spot: FixedPoint, strike: FixedPoint) -> FixedPoint:
    """callPayoff - putPayoff - (S - K) at expiry; exactly zero."""
    return call_payoff(spot, strike) - put_payoff(spot, strike) - (spot - strike)


def lattice_convergence_errors(
    params: OptionParameters,
    step_counts: Iterable[int] = DEFAULT_STEP_COUNTS,
    option_type: OptionType = "call",
) -> list[tuple[int, FixedPoint]]:
    """
    |European lattice price - Black-Scholes price| for each step count.

    Returns:
        List of (steps, absolute error) in the order given
    """
    reference = black_scholes_price(params, option_type)
    errors = []
    for steps in step_counts:
        lattice = price_lattice(params, steps, option_type, american=False)
        errors.append((steps, abs(lattice.price - reference)))
    logger.debug("Lattice convergence errors: %s", errors)
    return errors


def heston_bsm_gap(params: HestonParameters) -> FixedPoint:
    """
    |Heston call - Black-Scholes call at σ = √v0|.

    Small when xi is small and v0 equals theta, where the variance process
    is close to deterministic and constant.
    """
    bsm = black_scholes_call(
        OptionParameters(
            spot=params.spot,
            strike=params.strike,
            volatility=sqrt(params.v0),
            risk_free_rate=params.risk_free_rate,
            time_to_expiry=params.time_to_expiry,
        )
    )
    return abs(heston_call(params) - bsm)


def spot_monotonicity_residual(
    params: OptionParameters,
    spots: Sequence[FixedPoint],
    option_type: OptionType = "call",
) -> FixedPoint:
    """
    Largest monotonicity violation along an increasing spot ladder.

    Calls must be non-decreasing in spot and puts non-increasing. Returns
    zero when the property holds, otherwise the largest wrong-way move.
    """
    validate_option_type(option_type)
    ordered = sorted(spots)
    prices = [black_scholes_price(params.replace(spot=spot), option_type) for spot in ordered]

    worst = ZERO
    for lower, upper in zip(prices, prices[1:]):
        violation = lower - upper if option_type == "call" else upper - lower
        worst = max(worst, violation)
    return worst
