"""
Implied volatility solver with automatic method selection.

This module provides a high-level interface for solving implied volatility,
automatically choosing between Newton-Raphson and bisection based on
convergence behavior.
"""

import logging
from typing import Literal, Optional, Sequence

from fixedpricer.core.fixed_point import ZERO, FixedPoint, PI, exp, sqrt
from fixedpricer.solvers.bisection import bisection_iv
from fixedpricer.solvers.newton_raphson import newton_raphson_iv
from fixedpricer.utils.constants import IV_INITIAL_GUESS, PARITY_TOLERANCE
from fixedpricer.utils.errors import InvalidParameter
from fixedpricer.utils.types import (
    ImpliedVolResult,
    OptionParameters,
    OptionType,
    validate_option_type,
)

logger = logging.getLogger(__name__)

SolverMethod = Literal["auto", "newton", "bisection"]

INITIAL_GUESS = FixedPoint.from_string(IV_INITIAL_GUESS)
_BOUNDS_TOLERANCE = FixedPoint.from_string(PARITY_TOLERANCE)
_GUESS_FLOOR = FixedPoint.from_string("0.01")
_GUESS_CEILING = FixedPoint.from_int(5)
_ATM_LOWER = FixedPoint.from_string("0.9")
_ATM_UPPER = FixedPoint.from_string("1.1")


def brenner_subrahmanyam_approximation(
    market_price: FixedPoint,
    spot: FixedPoint,
    time_to_expiry: FixedPoint,
) -> FixedPoint:
    """
    Brenner-Subrahmanyam approximation for ATM implied volatility.

    Formula (for ATM):
        σ ≈ √(2π/T) × (C/S)

    Reference:
        Brenner, M., & Subrahmanyam, M. G. (1988). A Simple Formula to
        Compute the Implied Standard Deviation. Financial Analysts Journal, 44(5), 80-83.

    Notes:
        - Most accurate for ATM options (S ≈ K)
        - Always returns a value clamped to [1%, 500%]
    """
    if spot.raw <= 0 or time_to_expiry.raw <= 0 or market_price.raw <= 0:
        return INITIAL_GUESS

    sigma_guess = sqrt(2 * PI / time_to_expiry) * (market_price / spot)
    return max(_GUESS_FLOOR, min(sigma_guess, _GUESS_CEILING))


def get_initial_guess(
    market_price: FixedPoint,
    spot: FixedPoint,
    strike: FixedPoint,
    time_to_expiry: FixedPoint,
) -> FixedPoint:
    """
    Brenner-Subrahmanyam for near-ATM options (0.9 <= S/K <= 1.1), the
    fixed IV_INITIAL_GUESS for deep ITM/OTM.
    """
    moneyness = spot / strike
    if _ATM_LOWER <= moneyness <= _ATM_UPPER:
        return brenner_subrahmanyam_approximation(market_price, spot, time_to_expiry)
    return INITIAL_GUESS


def validate_arbitrage_bounds(
    market_price: FixedPoint,
    spot: FixedPoint,
    strike: FixedPoint,
    time_to_expiry: FixedPoint,
    risk_free_rate: FixedPoint,
    option_type: OptionType,
) -> Optional[str]:
    """
    Check if market price violates no-arbitrage bounds.

    Returns:
        None if valid, error message string if arbitrage violation detected
    """
    discount_strike = strike * exp(-(risk_free_rate * time_to_expiry))

    if option_type == "call":
        # C >= max(S - K·e^(-rT), 0) and C <= S
        lower_bound = max(spot - discount_strike, ZERO)
        upper_bound = spot
        if market_price < lower_bound - _BOUNDS_TOLERANCE:
            return (
                f"Call price {market_price:.4f} below lower bound {lower_bound:.4f}. "
                f"Arbitrage: buy call, short stock, lend strike PV."
            )
        if market_price > upper_bound + _BOUNDS_TOLERANCE:
            return (
                f"Call price {market_price:.4f} above upper bound {upper_bound:.4f}. "
                f"Arbitrage: sell call, cannot exceed stock value."
            )
    else:
        # P >= max(K·e^(-rT) - S, 0) and P <= K·e^(-rT)
        lower_bound = max(discount_strike - spot, ZERO)
        upper_bound = discount_strike
        if market_price < lower_bound - _BOUNDS_TOLERANCE:
            return (
                f"Put price {market_price:.4f} below lower bound {lower_bound:.4f}. "
                f"Arbitrage: buy put, buy stock, borrow strike PV."
            )
        if market_price > upper_bound + _BOUNDS_TOLERANCE:
            return (
                f"Put price {market_price:.4f} above upper bound {upper_bound:.4f}. "
                f"Arbitrage: sell put, cannot exceed strike PV."
            )

    return None


def implied_volatility(
    market_price,
    spot,
    strike,
    time_to_expiry,
    risk_free_rate,
    option_type: OptionType = "call",
    method: SolverMethod = "auto",
    initial_guess=None,
) -> ImpliedVolResult:
    """
    Solve for implied volatility with automatic method selection.

    This is the main entry point for implied volatility calculation.
    It automatically:
    1. Validates arbitrage bounds
    2. Generates an initial guess (if not provided)
    3. Tries Newton-Raphson first (fast, quadratic convergence)
    4. Falls back to bisection if Newton-Raphson fails

    Args:
        market_price: Observed market price
        spot: Spot price
        strike: Strike price
        time_to_expiry: Time to expiration in years
        risk_free_rate: Risk-free rate (annualized, continuous)
        option_type: "call" or "put"
        method: "auto" (default), "newton", or "bisection"
        initial_guess: Starting volatility (auto-generated if None)

    Numeric arguments may be FixedPoint, int, decimal string, Decimal or float.

    Returns:
        ImpliedVolResult with the solved volatility and convergence details

    Raises:
        InvalidParameter: If market price violates no-arbitrage bounds, or
            an input is out of domain

    Examples:
        >>> result = implied_volatility("10.4506", spot=100, strike=100,
        ...                             time_to_expiry=1, risk_free_rate="0.05")
        >>> f"{result.volatility:.2f}", result.method
        ('0.20', 'newton-raphson')
    """
    validate_option_type(option_type)
    if method not in ("auto", "newton", "bisection"):
        raise InvalidParameter("method", method, "must be 'auto', 'newton' or 'bisection'")

    market_price = FixedPoint.parse(market_price)
    if market_price.raw < 0:
        raise InvalidParameter("market_price", market_price, "must be non-negative")

    guess = None if initial_guess is None else FixedPoint.parse(initial_guess)
    params = OptionParameters(
        spot=spot,
        strike=strike,
        volatility=guess if guess is not None and guess.raw > 0 else INITIAL_GUESS,
        risk_free_rate=risk_free_rate,
        time_to_expiry=time_to_expiry,
    )

    # Step 1: Validate arbitrage bounds
    violation = validate_arbitrage_bounds(
        market_price, params.spot, params.strike, params.time_to_expiry,
        params.risk_free_rate, option_type,
    )
    if violation:
        raise InvalidParameter("market_price", market_price, f"Arbitrage violation detected: {violation}")

    # Step 2: Get initial guess
    if guess is None:
        guess = get_initial_guess(market_price, params.spot, params.strike, params.time_to_expiry)

    # Step 3: Try Newton-Raphson (unless method explicitly set to "bisection")
    if method in ("auto", "newton"):
        nr_result = newton_raphson_iv(market_price, params, option_type, guess)
        if nr_result.success or method == "newton":
            return nr_result
        logger.info("Newton-Raphson failed (%s); falling back to bisection", nr_result.message)

    # Step 4: Fallback to bisection
    result = bisection_iv(market_price, params, option_type)
    if not result.success:
        logger.warning("Implied volatility did not converge: %s", result.message)
    return result


def implied_volatility_vectorized(
    market_prices: Sequence,
    spot,
    strikes: Sequence,
    time_to_expiry,
    risk_free_rate,
    option_type: OptionType = "call",
) -> list[ImpliedVolResult]:
    """
    Solve for implied volatilities for multiple strikes (volatility smile).

    Raises:
        InvalidParameter: If market_prices and strikes have different lengths
    """
    if len(market_prices) != len(strikes):
        raise InvalidParameter(
            "strikes",
            len(strikes),
            f"market_prices ({len(market_prices)}) and strikes ({len(strikes)}) must have same length",
        )

    return [
        implied_volatility(
            market_price=price,
            spot=spot,
            strike=strike,
            time_to_expiry=time_to_expiry,
            risk_free_rate=risk_free_rate,
            option_type=option_type,
        )
        for price, strike in zip(market_prices, strikes)
    ]
