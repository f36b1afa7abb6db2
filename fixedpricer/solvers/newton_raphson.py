"""
Newton-Raphson method for implied volatility calculation.

This module implements the Newton-Raphson algorithm for solving
the Black-Scholes equation for volatility given a market price.
The method uses vega (∂V/∂σ) as the derivative for fast convergence;
price and vega come from a single Greeks evaluation per iteration.
"""

from typing import Optional

from fixedpricer.core.black_scholes import calculate_greeks
from fixedpricer.core.fixed_point import FixedPoint
from fixedpricer.utils.constants import (
    IV_ITERATION_CAP,
    IV_MAX_ITERATIONS,
    IV_MAX_VOL,
    IV_MIN_VEGA,
    IV_MIN_VOL,
    IV_PRICE_TOLERANCE,
    IV_VOL_TOLERANCE,
)
from fixedpricer.utils.errors import StepBudgetExceeded
from fixedpricer.utils.types import ImpliedVolResult, OptionParameters, OptionType

PRICE_TOLERANCE = FixedPoint.from_string(IV_PRICE_TOLERANCE)
VOL_TOLERANCE = FixedPoint.from_string(IV_VOL_TOLERANCE)
MIN_VEGA = FixedPoint.from_string(IV_MIN_VEGA)
MIN_VOL = FixedPoint.from_string(IV_MIN_VOL)
MAX_VOL = FixedPoint.from_string(IV_MAX_VOL)


def newton_raphson_iv(
    market_price: FixedPoint,
    params: OptionParameters,
    option_type: OptionType,
    initial_guess: Optional[FixedPoint] = None,
    max_iterations: int = IV_MAX_ITERATIONS,
    price_tolerance: FixedPoint = PRICE_TOLERANCE,
    vol_tolerance: FixedPoint = VOL_TOLERANCE,
) -> ImpliedVolResult:
    """
    Solve for implied volatility using Newton-Raphson method.

    The Newton-Raphson update is:
        σ_{n+1} = σ_n - (BS(σ_n) - market_price) / vega(σ_n)

    This method has quadratic convergence near the solution but can
    diverge if the initial guess is poor or vega is too small.

    Args:
        market_price: Observed market price of the option
        params: Contract parameters; the volatility field is the starting
            point unless initial_guess is given
        option_type: "call" or "put"
        initial_guess: Starting volatility estimate
        max_iterations: Maximum number of iterations, at most IV_ITERATION_CAP
        price_tolerance: Convergence tolerance for price difference
        vol_tolerance: Convergence tolerance for volatility change

    Returns:
        ImpliedVolResult with volatility, iterations, method, success flag

    Raises:
        StepBudgetExceeded: If max_iterations exceeds IV_ITERATION_CAP

    Notes:
        - Returns success=False if vega drops below MIN_VEGA (switch to bisection)
        - Returns success=False if σ goes out of bounds [MIN_VOL, MAX_VOL]
        - Returns success=True if converged within tolerances
    """
    if max_iterations > IV_ITERATION_CAP:
        raise StepBudgetExceeded("max_iterations", max_iterations, IV_ITERATION_CAP)

    sigma = params.volatility if initial_guess is None else initial_guess
    iterations = 0

    for _ in range(max_iterations):
        iterations += 1

        greeks = calculate_greeks(params.replace(volatility=sigma), option_type)

        # Check convergence on price
        price_diff = greeks.price - market_price
        if abs(price_diff) < price_tolerance:
            return ImpliedVolResult(
                volatility=sigma,
                iterations=iterations,
                method="newton-raphson",
                success=True,
                message=f"Converged in {iterations} iterations (price tol)",
            )

        if greeks.vega < MIN_VEGA:
            return ImpliedVolResult(
                volatility=sigma,
                iterations=iterations,
                method="newton-raphson",
                success=False,
                message=f"Vega too small ({greeks.vega}) at iteration {iterations}, need fallback",
            )

        sigma_new = sigma - price_diff / greeks.vega

        if sigma_new < MIN_VOL or sigma_new > MAX_VOL:
            return ImpliedVolResult(
                volatility=sigma,
                iterations=iterations,
                method="newton-raphson",
                success=False,
                message=f"Stepped out of bounds (σ={sigma_new:.4f}) at iteration {iterations}",
            )

        if abs(sigma_new - sigma) < vol_tolerance:
            return ImpliedVolResult(
                volatility=sigma_new,
                iterations=iterations,
                method="newton-raphson",
                success=True,
                message=f"Converged in {iterations} iterations (vol tol)",
            )

        sigma = sigma_new

    return ImpliedVolResult(
        volatility=sigma,
        iterations=iterations,
        method="newton-raphson",
        success=False,
        message=f"Max iterations ({max_iterations}) reached without convergence",
    )
