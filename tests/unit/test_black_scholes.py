"""
Unit tests for Black-Scholes pricing and Greeks calculations.

This module validates:
1. Known analytical solutions from textbooks
2. Put-call parity relationship
3. Edge cases (T→0, σ→0, deep ITM/OTM)
4. Greeks accuracy via finite-difference comparison
5. Monotonicity properties
"""

import math

import pytest

from fixedpricer.core.black_scholes import (
    black_scholes_call,
    black_scholes_price,
    black_scholes_put,
    calculate_greeks,
    d1_d2,
)
from fixedpricer.core.fixed_point import ZERO, FixedPoint, exp, sqrt
from fixedpricer.utils.errors import InvalidParameter
from fixedpricer.utils.types import OptionParameters


def params(S=100, K=100, T=1, r="0.05", sigma="0.2") -> OptionParameters:
    return OptionParameters(spot=S, strike=K, volatility=sigma, risk_free_rate=r, time_to_expiry=T)


def float_call(S, K, T, r, sigma):
    """Independent double-precision reference for the closed form."""
    cdf = lambda x: 0.5 * (1.0 + math.erf(x / math.sqrt(2.0)))
    d1 = (math.log(S / K) + (r + sigma * sigma / 2) * T) / (sigma * math.sqrt(T))
    d2 = d1 - sigma * math.sqrt(T)
    return S * cdf(d1) - K * math.exp(-r * T) * cdf(d2)


# ===========================
# Known Solutions Tests
# ===========================


def test_atm_call_known_solution(standard_params):
    """
    Test against known solution from Hull's "Options, Futures, and Other Derivatives".
    Example: S=100, K=100, T=1, r=5%, σ=20% → Call ≈ 10.4506
    """
    price = black_scholes_call(standard_params)
    assert abs(float(price) - 10.4506) < 0.001, f"Expected ~10.4506, got {price}"


def test_atm_put_known_solution(standard_params):
    """S=100, K=100, T=1, r=5%, σ=20% → Put ≈ 5.5735"""
    price = black_scholes_put(standard_params)
    assert abs(float(price) - 5.5735) < 0.001, f"Expected ~5.5735, got {price}"


def test_itm_call_known_solution():
    """S=120, K=100, T=0.5, r=5%, σ=20% → Call ≈ 22.95"""
    price = black_scholes_call(params(S=120, T="0.5"))
    assert 22.5 < float(price) < 23.5, f"Expected ~22.95, got {price}"


def test_otm_put_known_solution():
    """S=120, K=100, T=0.5, r=5%, σ=20% → Put ≈ 0.48"""
    price = black_scholes_put(params(S=120, T="0.5"))
    assert 0.3 < float(price) < 0.7, f"Expected ~0.48, got {price}"


def test_high_volatility_short_expiry_reference():
    """
    S=3000, K=3100, σ=65%, r=5%, T=0.0833: within 0.01% of an independent
    double-precision evaluation of the same closed form.
    """
    price = black_scholes_call(params(S=3000, K=3100, T="0.0833", sigma="0.65"))
    reference = float_call(3000.0, 3100.0, 0.0833, 0.05, 0.65)
    assert abs(float(price) - reference) / reference < 1e-4


@pytest.mark.parametrize(
    "S,K,T,r,sigma",
    [(100, 100, 1.0, 0.05, 0.2), (110, 95, 0.5, 0.03, 0.35), (80, 100, 2.0, 0.0, 0.5)],
)
def test_call_against_float_reference(S, K, T, r, sigma):
    price = black_scholes_call(params(S, K, T, r, sigma))
    assert abs(float(price) - float_call(S, K, T, r, sigma)) < 5e-5


def test_fast_quality_close_to_precise(standard_params):
    precise = black_scholes_call(standard_params, "precise")
    fast = black_scholes_call(standard_params, "fast")
    # Each CDF term is off by less than 1e-5, scaled by S and K·e^(-rT)
    assert abs(float(precise - fast)) < 2e-3


# ===========================
# Put-Call Parity Tests
# ===========================


@pytest.mark.parametrize(
    "S,K,T,r,sigma",
    [
        (100, 100, "1", "0.05", "0.2"),  # ATM
        (110, 100, "1", "0.05", "0.2"),  # ITM call
        (90, 100, "1", "0.05", "0.2"),  # OTM call
        (100, 100, "0.25", "0.05", "0.3"),  # High vol, short expiry
        (100, 100, "2", "0.03", "0.15"),  # Long expiry
        (3000, 3100, "0.0833", "0.05", "0.65"),
    ],
)
def test_put_call_parity(S, K, T, r, sigma):
    """C - P = S - K·e^(-rT), to within a few ulps."""
    p = params(S, K, T, r, sigma)
    lhs = black_scholes_call(p) - black_scholes_put(p)
    rhs = p.spot - p.strike * exp(-(p.risk_free_rate * p.time_to_expiry))
    assert abs(lhs - rhs) < FixedPoint.from_string("0.000000001")


# ===========================
# Edge Cases Tests
# ===========================


def test_call_near_expiration():
    """Call at expiration should equal intrinsic value."""
    price = black_scholes_call(params(S=105, T="0.00000001"))
    assert abs(float(price) - 5.0) < 0.01


def test_put_near_expiration():
    price = black_scholes_put(params(S=95, T="0.00000001"))
    assert abs(float(price) - 5.0) < 0.01


def test_near_zero_volatility_itm_call():
    """With vanishing vol, ITM call is S - K·e^(-rT)."""
    price = black_scholes_call(params(S=110, sigma="0.00000001"))
    expected = 110 - 100 * math.exp(-0.05)
    assert abs(float(price) - expected) < 0.01


def test_near_zero_volatility_otm_call():
    price = black_scholes_call(params(S=90, sigma="0.00000001"))
    assert price == ZERO


def test_deep_otm_call():
    price = black_scholes_call(params(S=50))
    assert ZERO <= price < 1


def test_prices_never_negative():
    for strike in (10, 50, 100, 200, 1000):
        p = params(K=strike, T="0.01", sigma="0.05")
        assert black_scholes_call(p) >= ZERO
        assert black_scholes_put(p) >= ZERO


# ===========================
# d1 and d2 Tests
# ===========================


def test_d1_d2_relationship(standard_params):
    """d2 = d1 - σ√T."""
    d1, d2 = d1_d2(standard_params)
    diffusion = standard_params.volatility * sqrt(standard_params.time_to_expiry)
    assert d1 - d2 == diffusion


def test_d1_atm_value(standard_params):
    """ln(S/K) = 0 ATM, so d1 = (r + σ²/2)√T / σ = 0.35."""
    d1, _ = d1_d2(standard_params)
    assert abs(d1 - FixedPoint.from_string("0.35")) < FixedPoint.from_string("0.000000000000001")


def test_d1_sign():
    d1_itm, _ = d1_d2(params(S=120))
    d1_otm, _ = d1_d2(params(S=80))
    assert d1_itm > 0
    assert d1_otm < 0


# ===========================
# Pricing Function Tests
# ===========================


def test_black_scholes_price_dispatch(standard_params):
    assert black_scholes_price(standard_params, "call") == black_scholes_call(standard_params)
    assert black_scholes_price(standard_params, "put") == black_scholes_put(standard_params)


def test_black_scholes_price_invalid_type(standard_params):
    with pytest.raises(InvalidParameter):
        black_scholes_price(standard_params, option_type="straddle")


# ===========================
# Input Validation Tests
# ===========================


@pytest.mark.parametrize(
    "field, overrides",
    [
        ("spot", {"S": -100}),
        ("strike", {"K": 0}),
        ("time_to_expiry", {"T": 0}),
        ("volatility", {"sigma": "-0.2"}),
        ("risk_free_rate", {"r": "-0.01"}),
    ],
)
def test_invalid_parameters_raise(field, overrides):
    with pytest.raises(InvalidParameter) as excinfo:
        params(**overrides)
    assert excinfo.value.field == field


def test_invalid_parameter_is_value_error():
    with pytest.raises(ValueError):
        params(S=-1)


# ===========================
# Greeks Tests
# ===========================


def test_greeks_signs(standard_params):
    call = calculate_greeks(standard_params, "call")
    put = calculate_greeks(standard_params, "put")
    assert 0 < call.delta < 1
    assert -1 < put.delta < 0
    assert call.gamma > 0 and call.gamma == put.gamma
    assert call.vega > 0 and call.vega == put.vega
    assert call.theta < 0
    assert call.rho > 0 > put.rho


def test_greeks_price_matches_pricer(standard_params):
    assert calculate_greeks(standard_params, "call").price == black_scholes_call(standard_params)
    assert calculate_greeks(standard_params, "put").price == black_scholes_put(standard_params)


def test_delta_parity(standard_params):
    """Δ_call - Δ_put = 1"""
    call = calculate_greeks(standard_params, "call")
    put = calculate_greeks(standard_params, "put")
    assert call.delta - put.delta == 1


def _central_difference(p: OptionParameters, field: str, h: str, option_type="call") -> float:
    step = FixedPoint.from_string(h)
    value = getattr(p, field)
    up = black_scholes_price(p.replace(**{field: value + step}), option_type)
    down = black_scholes_price(p.replace(**{field: value - step}), option_type)
    return float(up - down) / (2 * float(step))


@pytest.mark.parametrize("option_type", ["call", "put"])
def test_delta_finite_difference(standard_params, option_type):
    analytical = calculate_greeks(standard_params, option_type).delta
    numerical = _central_difference(standard_params, "spot", "0.01", option_type)
    assert abs(float(analytical) - numerical) < 1e-4


def test_gamma_finite_difference(standard_params):
    h = FixedPoint.from_int(1)
    S = standard_params.spot
    price = black_scholes_call(standard_params)
    up = black_scholes_call(standard_params.replace(spot=S + h))
    down = black_scholes_call(standard_params.replace(spot=S - h))
    numerical = float(up - 2 * price + down)
    assert abs(float(calculate_greeks(standard_params).gamma) - numerical) < 1e-4


def test_vega_finite_difference(standard_params):
    analytical = float(calculate_greeks(standard_params).vega)
    numerical = _central_difference(standard_params, "volatility", "0.01")
    assert abs(analytical - numerical) / analytical < 1e-3


@pytest.mark.parametrize("option_type", ["call", "put"])
def test_theta_finite_difference(standard_params, option_type):
    """Theta is ∂V/∂t = -∂V/∂T, annualized."""
    analytical = float(calculate_greeks(standard_params, option_type).theta)
    numerical = -_central_difference(standard_params, "time_to_expiry", "0.001", option_type)
    assert abs(analytical - numerical) < 1e-2


@pytest.mark.parametrize("option_type", ["call", "put"])
def test_rho_finite_difference(standard_params, option_type):
    analytical = float(calculate_greeks(standard_params, option_type).rho)
    numerical = _central_difference(standard_params, "risk_free_rate", "0.001", option_type)
    assert abs(analytical - numerical) < 1e-2


# ===========================
# Monotonicity Tests
# ===========================


def test_call_price_increases_with_spot():
    prices = [black_scholes_call(params(S=s)) for s in range(60, 141, 5)]
    assert all(a <= b for a, b in zip(prices, prices[1:]))


def test_put_price_decreases_with_spot():
    prices = [black_scholes_put(params(S=s)) for s in range(60, 141, 5)]
    assert all(a >= b for a, b in zip(prices, prices[1:]))


def test_call_price_decreases_with_strike():
    assert black_scholes_call(params(K=105)) < black_scholes_call(params(K=100))


def test_call_price_increases_with_volatility():
    vols = ["0.05", "0.1", "0.2", "0.4", "0.8", "1.6"]
    prices = [black_scholes_call(params(sigma=v)) for v in vols]
    assert all(a < b for a, b in zip(prices, prices[1:]))


def test_call_price_increases_with_time():
    assert black_scholes_call(params(T=1)) > black_scholes_call(params(T="0.5"))


def test_gamma_non_negative_across_spots():
    for s in range(20, 301, 20):
        assert calculate_greeks(params(S=s)).gamma >= ZERO
