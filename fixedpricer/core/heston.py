"""
Heston stochastic-volatility pricing in fixed point.

Mathematical Background:
    Under the Heston model the variance follows a CIR process

        dS = r·S·dt + √v·S·dW₁
        dv = κ(θ - v)·dt + ξ·√v·dW₂,       d⟨W₁, W₂⟩ = ρ·dt

    and a European call is C = S·P₁ - K·e^(-rT)·P₂, with

        P_j = 1/2 + (1/π)·∫₀^∞ Re[e^(-iφ·lnK)·f_j(φ) / (iφ)] dφ

    The characteristic functions f_j are evaluated in the "little trap"
    formulation (g = (β - d)/(β + d), e^(-dT)), which keeps the complex
    logarithm on its principal branch for the maturities and vol-of-vols
    met in practice.

Numerical scheme:
    The integral is truncated at U_max, chosen from v·T so the cut sits at
    the same depth of the integrand's decay for every maturity, and is
    evaluated by composite 8-point Gauss-Legendre quadrature on a fixed
    number of panels, so every price costs the same number of
    characteristic-function evaluations.

References:
    Heston, S. L. (1993). A Closed-Form Solution for Options with Stochastic
    Volatility. Review of Financial Studies, 6(2), 327-343.
    Albrecher, H., Mayer, P., Schoutens, W., & Tistaert, J. (2007). The Little
    Heston Trap. Wilmott Magazine, 83-92.
"""

import logging
from typing import Optional

from fixedpricer.core.black_scholes import calculate_greeks
from fixedpricer.core.complex_math import Complex
from fixedpricer.core.fixed_point import HALF, ONE, PI, ZERO, FixedPoint, exp, ln, sqrt
from fixedpricer.core.quadrature import integrate
from fixedpricer.utils.constants import (
    HESTON_IV_MAX_ITERATIONS,
    HESTON_MAX_INTEGRATION_LIMIT,
    HESTON_PANELS,
    HESTON_TRUNCATION_DEPTH,
    IV_ITERATION_CAP,
    IV_MAX_VOL,
    IV_MIN_VEGA,
    IV_MIN_VOL,
    IV_PRICE_TOLERANCE,
    IV_VOL_TOLERANCE,
)
from fixedpricer.utils.errors import InvalidParameter, NonConvergence, StepBudgetExceeded
from fixedpricer.utils.types import (
    HestonParameters,
    ImpliedVolResult,
    OptionParameters,
    OptionType,
    validate_option_type,
)

logger = logging.getLogger(__name__)

_PRICE_TOLERANCE = FixedPoint.from_string(IV_PRICE_TOLERANCE)
_VOL_TOLERANCE = FixedPoint.from_string(IV_VOL_TOLERANCE)
_MIN_VEGA = FixedPoint.from_string(IV_MIN_VEGA)
_MIN_VOL = FixedPoint.from_string(IV_MIN_VOL)
_MAX_VOL = FixedPoint.from_string(IV_MAX_VOL)


def check_feller_condition(params: HestonParameters) -> bool:
    """
    Check 2κθ > ξ², under which the variance process never touches zero.

    Violations are common in calibrated parameter sets and do not stop
    pricing; they are only logged.
    """
    ratio = params.feller_ratio
    satisfied = ratio > 1
    if not satisfied:
        logger.warning(
            "Feller condition violated: 2*kappa*theta/xi^2 = %s < 1 "
            "(kappa=%s, theta=%s, xi=%s)",
            ratio, params.kappa, params.theta, params.xi,
        )
    return satisfied


def characteristic_exponent(
    params: HestonParameters,
    phi: FixedPoint,
    j: int,
) -> Complex:
    """
    Exponent of f_j(φ)·e^(-iφ·lnK), i.e. C + D·v0 + iφ·ln(S/K).

    Args:
        params: Heston parameters
        phi: Integration variable φ > 0
        j: 1 for the stock-measure probability, 2 for the risk-neutral one

    Formula:
        β = b_j - iρξφ,          b₁ = κ - ρξ, b₂ = κ
        d = √(β² - ξ²(2u_j·iφ - φ²)),   u₁ = 1/2, u₂ = -1/2
        g = (β - d)/(β + d)
        C = r·iφ·T + (κθ/ξ²)·[(β - d)T - 2·ln((1 - g·e^(-dT))/(1 - g))]
        D = ((β - d)/ξ²)·(1 - e^(-dT))/(1 - g·e^(-dT))
    """
    kappa, xi, rho = params.kappa, params.xi, params.rho
    T = params.time_to_expiry
    xi_squared = xi * xi

    if j == 1:
        u, b = HALF, kappa - rho * xi
    else:
        u, b = -HALF, kappa

    beta = Complex(b, -(rho * xi * phi))
    d = (beta * beta - Complex(-(phi * phi), 2 * u * phi) * xi_squared).sqrt()
    beta_minus_d = beta - d
    g = beta_minus_d / (beta + d)
    decay = (-(d * T)).exp()
    one_minus_g_decay = ONE - g * decay

    log_term = (one_minus_g_decay / (ONE - g)).ln()
    C = (
        Complex(ZERO, params.risk_free_rate * phi * T)
        + (beta_minus_d * T - log_term * 2) * (params.kappa * params.theta / xi_squared)
    )
    D = (beta_minus_d / xi_squared) * ((ONE - decay) / one_minus_g_decay)

    log_moneyness = ln(params.spot) - ln(params.strike)
    return C + D * params.v0 + Complex(ZERO, phi * log_moneyness)


def integration_limit(params: HestonParameters) -> FixedPoint:
    """
    Truncation point U_max of the probability integrals.

    The integrand's modulus decays roughly like e^(-v·T·φ²/2), so the cut
    scales with 1/√(v·T): short maturities need a long range, long ones a
    short range that the fixed panels resolve finely. The slower of v0 and
    theta sets the decay. Capped at HESTON_MAX_INTEGRATION_LIMIT.

    Formula:
        U_max = min(depth / √(min(v0, θ)·T), cap)
    """
    variance = min(params.v0, params.theta)
    scale = sqrt(variance * params.time_to_expiry)
    cap = FixedPoint.from_int(HESTON_MAX_INTEGRATION_LIMIT)
    if scale.raw == 0:
        return cap
    return min(FixedPoint.from_int(HESTON_TRUNCATION_DEPTH) / scale, cap)


def heston_probabilities(
    params: HestonParameters,
    panels: int = HESTON_PANELS,
    upper_limit: Optional[FixedPoint] = None,
) -> tuple[FixedPoint, FixedPoint]:
    """
    In-the-money probabilities (P₁, P₂).

    Re[z / (iφ)] = Im(z)/φ, so each integrand is the imaginary part of
    exp(C + D·v0 + iφ·ln(S/K)) divided by φ.

    Raises:
        StepBudgetExceeded: If panels exceeds MAX_HESTON_PANELS
    """
    upper = integration_limit(params) if upper_limit is None else upper_limit

    def integrand(j):
        def evaluate(phi: FixedPoint) -> FixedPoint:
            return characteristic_exponent(params, phi, j).exp().im / phi
        return evaluate

    p1 = HALF + integrate(integrand(1), ZERO, upper, panels) / PI
    p2 = HALF + integrate(integrand(2), ZERO, upper, panels) / PI
    logger.debug("Heston probabilities P1=%s P2=%s (panels=%d, U_max=%s)", p1, p2, panels, upper)
    return p1, p2


def heston_call(params: HestonParameters, panels: int = HESTON_PANELS) -> FixedPoint:
    """
    European call under Heston dynamics.

    Formula:
        C = max(S·P₁ - K·e^(-rT)·P₂, 0)
    """
    check_feller_condition(params)
    p1, p2 = heston_probabilities(params, panels)
    discount = exp(-(params.risk_free_rate * params.time_to_expiry))
    price = params.spot * p1 - params.strike * discount * p2
    return max(price, ZERO)


def heston_put(params: HestonParameters, panels: int = HESTON_PANELS) -> FixedPoint:
    """
    European put via put-call parity.

    Formula:
        P = max(C - S + K·e^(-rT), 0)
    """
    call = heston_call(params, panels)
    discount = exp(-(params.risk_free_rate * params.time_to_expiry))
    return max(call - params.spot + params.strike * discount, ZERO)


def heston_price(
    params: HestonParameters,
    option_type: OptionType = "call",
    panels: int = HESTON_PANELS,
) -> FixedPoint:
    """Calculate Heston European option price (call or put)."""
    validate_option_type(option_type)
    if option_type == "call":
        return heston_call(params, panels)
    return heston_put(params, panels)


def heston_implied_vol(
    params: HestonParameters,
    option_type: OptionType = "call",
    max_iterations: int = HESTON_IV_MAX_ITERATIONS,
    panels: int = HESTON_PANELS,
    strict: bool = False,
) -> ImpliedVolResult:
    """
    Black-Scholes volatility that reproduces the Heston price.

    Newton-Raphson on σ ↦ BSM(σ) - Heston, started from √v0 and stepped with
    the BSM vega. Iterates are kept inside [IV_MIN_VOL, IV_MAX_VOL].

    Args:
        params: Heston parameters
        option_type: "call" or "put"
        max_iterations: Iteration budget, at most IV_ITERATION_CAP
        panels: Quadrature panels for the Heston price
        strict: Raise NonConvergence instead of returning a failed result

    Returns:
        ImpliedVolResult; on failure, the iterate with the smallest price
        error and success=False

    Raises:
        StepBudgetExceeded: If max_iterations exceeds IV_ITERATION_CAP
        NonConvergence: Only with strict=True
    """
    if max_iterations > IV_ITERATION_CAP:
        raise StepBudgetExceeded("max_iterations", max_iterations, IV_ITERATION_CAP)
    if max_iterations < 1:
        raise InvalidParameter("max_iterations", max_iterations, "must be at least 1")
    validate_option_type(option_type)

    target = heston_price(params, option_type, panels)
    sigma = min(max(sqrt(params.v0), _MIN_VOL), _MAX_VOL)
    best_sigma, best_error = sigma, None
    message = f"Failed to converge after {max_iterations} iterations"

    for iteration in range(1, max_iterations + 1):
        bsm = calculate_greeks(
            OptionParameters(
                spot=params.spot,
                strike=params.strike,
                volatility=sigma,
                risk_free_rate=params.risk_free_rate,
                time_to_expiry=params.time_to_expiry,
            ),
            option_type,
        )
        price_diff = bsm.price - target
        if best_error is None or abs(price_diff) < best_error:
            best_sigma, best_error = sigma, abs(price_diff)

        if abs(price_diff) < _PRICE_TOLERANCE:
            return ImpliedVolResult(sigma, iteration, "newton-raphson", True, "Converged (price tolerance)")

        if bsm.vega < _MIN_VEGA:
            message = f"Vega too small ({bsm.vega}) at iteration {iteration}"
            break

        sigma_new = min(max(sigma - price_diff / bsm.vega, _MIN_VOL), _MAX_VOL)
        if abs(sigma_new - sigma) < _VOL_TOLERANCE:
            return ImpliedVolResult(sigma_new, iteration, "newton-raphson", True, "Converged (volatility tolerance)")
        sigma = sigma_new

    result = ImpliedVolResult(best_sigma, iteration, "newton-raphson", False, message)
    logger.warning("Heston implied volatility did not converge: %s (best sigma=%s)", message, best_sigma)
    if strict:
        raise NonConvergence(result)
    return result
