"""
Black-Scholes-Merton option pricing model in fixed point.

This module implements the classical Black-Scholes-Merton formula for
European options, including the standard Greeks. d1 and d2 are computed
once per request and shared by the price and every Greek, so all outputs
of one call are mutually consistent to the last digit.

Mathematical Background:
    The Black-Scholes formula prices European options under assumptions:
    - Log-normal asset price distribution
    - Constant volatility and interest rate
    - No transaction costs or taxes
    - Continuous trading possible

Error handling:
    Prices are floored at zero: a negative premium of a few ulps is an
    artifact of the polynomial CDF approximation, not a domain violation.

References:
    Black, F., & Scholes, M. (1973). The Pricing of Options and Corporate Liabilities.
    Journal of Political Economy, 81(3), 637-654.
"""

from typing import NamedTuple

from fixedpricer.core.distributions import normal_cdf, normal_pdf
from fixedpricer.core.fixed_point import ONE, ZERO, FixedPoint, exp, ln, sqrt
from fixedpricer.utils.types import (
    CdfQuality,
    Greeks,
    OptionParameters,
    OptionType,
    validate_option_type,
)


class _Terms(NamedTuple):
    d1: FixedPoint
    d2: FixedPoint
    sqrt_t: FixedPoint
    discount: FixedPoint  # e^(-rT)


def _terms(params: OptionParameters) -> _Terms:
    S, K = params.spot, params.strike
    sigma, r, T = params.volatility, params.risk_free_rate, params.time_to_expiry

    sqrt_t = sqrt(T)
    diffusion = sigma * sqrt_t

    # Log-space moneyness: ln(S) - ln(K)
    log_moneyness = ln(S) - ln(K)
    drift = (r + sigma * sigma / 2) * T

    d1 = (log_moneyness + drift) / diffusion
    d2 = d1 - diffusion
    return _Terms(d1, d2, sqrt_t, exp(-(r * T)))


def d1_d2(params: OptionParameters) -> tuple[FixedPoint, FixedPoint]:
    """
    Calculate the d1 and d2 parameters of the Black-Scholes formula.

    Args:
        params: Validated option parameters

    Returns:
        (d1, d2)

    Formula:
        d1 = [ln(S/K) + (r + σ²/2)T] / (σ√T)
        d2 = d1 - σ√T

    Notes:
        N(d2) is the risk-neutral probability of finishing in the money.
    """
    terms = _terms(params)
    return terms.d1, terms.d2


def black_scholes_call(params: OptionParameters, quality: CdfQuality = "precise") -> FixedPoint:
    """
    Calculate European call option price using Black-Scholes formula.

    Formula:
        C = S·N(d1) - K·e^(-rT)·N(d2)

    Examples:
        >>> params = OptionParameters(spot=100, strike=100, volatility="0.2",
        ...                           risk_free_rate="0.05", time_to_expiry=1)
        >>> abs(float(black_scholes_call(params)) - 10.4506) < 0.001
        True
    """
    terms = _terms(params)
    price = (
        params.spot * normal_cdf(terms.d1, quality)
        - params.strike * terms.discount * normal_cdf(terms.d2, quality)
    )
    return max(price, ZERO)


def black_scholes_put(params: OptionParameters, quality: CdfQuality = "precise") -> FixedPoint:
    """
    Calculate European put option price using Black-Scholes formula.

    Formula:
        P = K·e^(-rT)·N(-d2) - S·N(-d1)

    Alternatively (via put-call parity):
        P = C - S + K·e^(-rT)
    """
    terms = _terms(params)
    price = (
        params.strike * terms.discount * normal_cdf(-terms.d2, quality)
        - params.spot * normal_cdf(-terms.d1, quality)
    )
    return max(price, ZERO)


def black_scholes_price(
    params: OptionParameters,
    option_type: OptionType = "call",
    quality: CdfQuality = "precise",
) -> FixedPoint:
    """
    Calculate European option price (call or put).

    Raises:
        InvalidParameter: If option_type is not "call" or "put"
    """
    validate_option_type(option_type)
    if option_type == "call":
        return black_scholes_call(params, quality)
    return black_scholes_put(params, quality)


def calculate_greeks(
    params: OptionParameters,
    option_type: OptionType = "call",
    quality: CdfQuality = "precise",
) -> Greeks:
    """
    Calculate price and all Greeks for an option in one pass.

    Args:
        params: Validated option parameters
        option_type: "call" or "put"
        quality: CDF approximation quality

    Returns:
        Greeks record with price, delta, gamma, theta, vega, rho

    Formulas:
        Call delta: Δ_c = N(d1)              Put delta: Δ_p = N(d1) - 1
        Gamma:      Γ = φ(d1) / (S·σ·√T)
        Vega:       ν = S·√T·φ(d1)            (per unit of volatility)
        Call theta: Θ_c = -S·φ(d1)·σ/(2√T) - r·K·e^(-rT)·N(d2)
        Put theta:  Θ_p = -S·φ(d1)·σ/(2√T) + r·K·e^(-rT)·N(-d2)
        Call rho:   ρ_c = K·T·e^(-rT)·N(d2)   Put rho: ρ_p = -K·T·e^(-rT)·N(-d2)

    Notes:
        Theta is annualized; divide by 365 for a per-calendar-day figure.
    """
    validate_option_type(option_type)
    S, K = params.spot, params.strike
    sigma, r, T = params.volatility, params.risk_free_rate, params.time_to_expiry

    terms = _terms(params)
    pdf_d1 = normal_pdf(terms.d1)
    discounted_strike = K * terms.discount

    # Shared by both sides
    gamma = pdf_d1 / (S * sigma * terms.sqrt_t)
    vega = S * terms.sqrt_t * pdf_d1
    time_decay = -(S * pdf_d1 * sigma) / (2 * terms.sqrt_t)

    if option_type == "call":
        nd1 = normal_cdf(terms.d1, quality)
        nd2 = normal_cdf(terms.d2, quality)
        price = S * nd1 - discounted_strike * nd2
        delta = nd1
        theta = time_decay - r * discounted_strike * nd2
        rho = discounted_strike * T * nd2
    else:
        n_minus_d1 = normal_cdf(-terms.d1, quality)
        n_minus_d2 = normal_cdf(-terms.d2, quality)
        price = discounted_strike * n_minus_d2 - S * n_minus_d1
        delta = normal_cdf(terms.d1, quality) - ONE
        theta = time_decay + r * discounted_strike * n_minus_d2
        rho = -(discounted_strike * T * n_minus_d2)

    return Greeks(
        price=max(price, ZERO),
        delta=delta,
        gamma=gamma,
        theta=theta,
        vega=vega,
        rho=rho,
    )
