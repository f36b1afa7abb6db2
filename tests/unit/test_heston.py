"""
Unit tests for the Heston stochastic-volatility pricer.

This module validates:
1. Convergence to Black-Scholes as vol-of-vol vanishes
2. Put-call parity and price bounds
3. Quadrature stability and step budgets
4. The BSM-equivalent implied volatility solver
"""

import logging

import pytest

from fixedpricer.core.black_scholes import black_scholes_call, calculate_greeks
from fixedpricer.core.fixed_point import ZERO, FixedPoint, exp
from fixedpricer.core.heston import (
    check_feller_condition,
    heston_call,
    heston_implied_vol,
    heston_price,
    heston_probabilities,
    heston_put,
    integration_limit,
)
from fixedpricer.utils.constants import HESTON_MAX_INTEGRATION_LIMIT
from fixedpricer.utils.errors import InvalidParameter, NonConvergence, StepBudgetExceeded
from fixedpricer.utils.types import HestonParameters, OptionParameters


def discounted_strike(params: HestonParameters) -> FixedPoint:
    return params.strike * exp(-(params.risk_free_rate * params.time_to_expiry))


def with_changes(params: HestonParameters, **changes) -> HestonParameters:
    values = {name: getattr(params, name) for name in params.__dataclass_fields__}
    values.update(changes)
    return HestonParameters(**values)


# ===========================
# Black-Scholes Limit Tests
# ===========================


def test_low_volvol_matches_black_scholes(low_volvol_heston):
    bsm = black_scholes_call(
        OptionParameters(spot=100, strike=100, volatility="0.2", risk_free_rate="0.05", time_to_expiry=1)
    )
    assert abs(float(heston_call(low_volvol_heston) - bsm)) < 0.01


@pytest.mark.parametrize("strike", [90, 110])
def test_low_volvol_matches_black_scholes_off_the_money(low_volvol_heston, strike):
    params = with_changes(low_volvol_heston, strike=FixedPoint.from_int(strike))
    bsm = black_scholes_call(
        OptionParameters(spot=100, strike=strike, volatility="0.2", risk_free_rate="0.05", time_to_expiry=1)
    )
    assert abs(float(heston_call(params) - bsm)) < 0.01


# ===========================
# Parity and Bounds Tests
# ===========================


def test_put_call_parity_exact(skewed_heston):
    call = heston_call(skewed_heston)
    put = heston_put(skewed_heston)
    assert call - put == skewed_heston.spot - discounted_strike(skewed_heston)


def test_price_bounds(skewed_heston):
    call = heston_call(skewed_heston)
    lower = max(skewed_heston.spot - discounted_strike(skewed_heston), ZERO)
    assert lower <= call <= skewed_heston.spot
    # Negative correlation lowers the ATM price slightly below Black-Scholes (≈10.45)
    assert abs(float(call) - 10.45) < 1.0


def test_price_dispatch(skewed_heston):
    assert heston_price(skewed_heston, "call") == heston_call(skewed_heston)
    assert heston_price(skewed_heston, "put") == heston_put(skewed_heston)
    with pytest.raises(InvalidParameter):
        heston_price(skewed_heston, "straddle")


def test_probabilities_in_unit_interval(skewed_heston):
    p1, p2 = heston_probabilities(skewed_heston)
    assert 0 < p2 < p1 < 1


def test_call_decreases_with_strike(skewed_heston):
    prices = [heston_call(with_changes(skewed_heston, strike=FixedPoint.from_int(k))) for k in (80, 100, 120)]
    assert prices[0] > prices[1] > prices[2]


# ===========================
# Quadrature Tests
# ===========================


def test_panel_refinement_is_stable(skewed_heston):
    coarse = heston_call(skewed_heston, panels=16)
    fine = heston_call(skewed_heston, panels=32)
    assert abs(float(coarse - fine)) < 1e-3


def test_panel_budget(skewed_heston):
    with pytest.raises(StepBudgetExceeded):
        heston_call(skewed_heston, panels=65)


@pytest.mark.parametrize(
    "T,reference",
    [("0.01", 0.80711), ("0.02", 1.14629), ("30", 53.792)],
)
def test_maturity_range_matches_reference(T, reference):
    params = HestonParameters(
        spot=100, strike=100, risk_free_rate="0.02", time_to_expiry=T,
        v0="0.04", theta="0.04", kappa=2, xi="0.3", rho="-0.5",
    )
    assert abs(float(heston_call(params)) - reference) < 2e-3


def test_integration_limit_scales_with_maturity(skewed_heston):
    # 10 / √(0.04·1)
    assert integration_limit(skewed_heston) == FixedPoint.from_int(50)
    short = with_changes(skewed_heston, time_to_expiry=FixedPoint.from_string("0.01"))
    assert integration_limit(short) == FixedPoint.from_int(500)


def test_integration_limit_capped(skewed_heston):
    tiny = with_changes(skewed_heston, time_to_expiry=FixedPoint.from_string("0.0000001"))
    assert integration_limit(tiny) == FixedPoint.from_int(HESTON_MAX_INTEGRATION_LIMIT)


def test_integration_limit_uses_smaller_variance(skewed_heston):
    params = with_changes(skewed_heston, v0=FixedPoint.from_string("0.25"))
    assert integration_limit(params) == integration_limit(skewed_heston)


def test_deterministic(skewed_heston):
    assert heston_call(skewed_heston).raw == heston_call(skewed_heston).raw


# ===========================
# Parameter and Feller Tests
# ===========================


def test_feller_ratio(low_volvol_heston):
    assert low_volvol_heston.feller_ratio == 1600


def test_feller_violation_only_warns(skewed_heston, caplog):
    params = with_changes(skewed_heston, xi=FixedPoint.from_int(1))
    with caplog.at_level(logging.WARNING, logger="fixedpricer.core.heston"):
        assert check_feller_condition(params) is False
        price = heston_call(params)
    assert "Feller condition violated" in caplog.text
    assert price > ZERO


def test_feller_satisfied(skewed_heston):
    assert check_feller_condition(skewed_heston) is True


@pytest.mark.parametrize(
    "field, value",
    [("rho", "1.5"), ("rho", "-1.01"), ("xi", "0"), ("v0", "-0.04"), ("kappa", "0"), ("time_to_expiry", "0")],
)
def test_invalid_parameters(skewed_heston, field, value):
    with pytest.raises(InvalidParameter):
        with_changes(skewed_heston, **{field: value})


# ===========================
# Implied Volatility Tests
# ===========================


def test_implied_vol_low_volvol(low_volvol_heston):
    result = heston_implied_vol(low_volvol_heston)
    assert result.success
    assert result.method == "newton-raphson"
    assert abs(float(result.volatility) - 0.2) < 1e-3


@pytest.mark.parametrize("option_type", ["call", "put"])
def test_implied_vol_reprices(skewed_heston, option_type):
    result = heston_implied_vol(skewed_heston, option_type)
    assert result.success
    bsm = calculate_greeks(
        OptionParameters(
            spot=100, strike=100, volatility=result.volatility, risk_free_rate="0.05", time_to_expiry=1
        ),
        option_type,
    )
    target = heston_price(skewed_heston, option_type)
    assert abs(float(bsm.price - target)) < 1e-6


def test_implied_vol_returns_best_iterate(skewed_heston, caplog):
    with caplog.at_level(logging.WARNING, logger="fixedpricer.core.heston"):
        result = heston_implied_vol(skewed_heston, max_iterations=1)
    assert not result.success
    assert result.iterations == 1
    assert result.volatility == FixedPoint.from_string("0.2")
    assert "did not converge" in caplog.text


def test_implied_vol_strict_raises(skewed_heston):
    with pytest.raises(NonConvergence) as excinfo:
        heston_implied_vol(skewed_heston, max_iterations=1, strict=True)
    assert excinfo.value.result.success is False


def test_implied_vol_iteration_budget(skewed_heston):
    with pytest.raises(StepBudgetExceeded):
        heston_implied_vol(skewed_heston, max_iterations=65)
