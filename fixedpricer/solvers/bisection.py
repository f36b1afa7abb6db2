"""
Bisection method for implied volatility calculation.

Robust fallback when Newton-Raphson fails. Black-Scholes prices are
strictly increasing in volatility, so a bracket [σ_lo, σ_hi] whose
endpoints straddle the market price always contains exactly one root,
and every halving keeps it. The iteration count is fixed in advance,
which makes the worst-case cost of a solve known.
"""

from fixedpricer.core.black_scholes import black_scholes_price
from fixedpricer.core.fixed_point import FixedPoint
from fixedpricer.solvers.newton_raphson import MAX_VOL, MIN_VOL, PRICE_TOLERANCE, VOL_TOLERANCE
from fixedpricer.utils.constants import IV_BISECTION_ITERATIONS, IV_ITERATION_CAP
from fixedpricer.utils.errors import StepBudgetExceeded
from fixedpricer.utils.types import ImpliedVolResult, OptionParameters, OptionType


def bisection_iv(
    market_price: FixedPoint,
    params: OptionParameters,
    option_type: OptionType,
    vol_lower: FixedPoint = MIN_VOL,
    vol_upper: FixedPoint = MAX_VOL,
    max_iterations: int = IV_BISECTION_ITERATIONS,
    tolerance: FixedPoint = PRICE_TOLERANCE,
) -> ImpliedVolResult:
    """
    Solve for implied volatility by interval halving.

    Args:
        market_price: Observed market price of the option
        params: Contract parameters (the volatility field is ignored)
        option_type: "call" or "put"
        vol_lower: Lower bound for volatility search
        vol_upper: Upper bound for volatility search
        max_iterations: Number of halvings, at most IV_ITERATION_CAP
        tolerance: Convergence tolerance for price difference

    Returns:
        ImpliedVolResult; success=False with volatility 0 if the bracket
        does not contain the market price

    Raises:
        StepBudgetExceeded: If max_iterations exceeds IV_ITERATION_CAP
    """
    if max_iterations > IV_ITERATION_CAP:
        raise StepBudgetExceeded("max_iterations", max_iterations, IV_ITERATION_CAP)

    def objective(sigma: FixedPoint) -> FixedPoint:
        """BS(σ) - market_price, increasing in σ."""
        return black_scholes_price(params.replace(volatility=sigma), option_type) - market_price

    obj_lower = objective(vol_lower)
    obj_upper = objective(vol_upper)
    if obj_lower.raw > 0 or obj_upper.raw < 0:
        return ImpliedVolResult(
            volatility=FixedPoint(0),
            iterations=0,
            method="bisection",
            success=False,
            message=(
                f"Bisection failed: objective doesn't bracket a root. "
                f"obj({vol_lower:.4f}) = {obj_lower:.6f}, "
                f"obj({vol_upper:.4f}) = {obj_upper:.6f}. "
                f"Market price {market_price} may violate arbitrage bounds."
            ),
        )

    lower, upper = vol_lower, vol_upper
    iterations = 0
    for _ in range(max_iterations):
        iterations += 1
        middle = (lower + upper) / 2
        obj_middle = objective(middle)
        if abs(obj_middle) < tolerance:
            return ImpliedVolResult(
                volatility=middle,
                iterations=iterations,
                method="bisection",
                success=True,
                message=f"Converged with price error {abs(obj_middle)}",
            )
        if obj_middle.raw < 0:
            lower = middle
        else:
            upper = middle

    # Flat objective (tiny vega): accept once the bracket itself is tight
    collapsed = upper - lower < VOL_TOLERANCE
    return ImpliedVolResult(
        volatility=(lower + upper) / 2,
        iterations=iterations,
        method="bisection",
        success=collapsed,
        message=f"Bracket narrowed to [{lower}, {upper}]",
    )
