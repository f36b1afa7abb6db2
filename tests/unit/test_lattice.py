"""
Unit tests for the Cox-Ross-Rubinstein binomial lattice.
"""

import pytest

from fixedpricer.core.black_scholes import calculate_greeks
from fixedpricer.core.fixed_point import ONE, ZERO, FixedPoint, exp
from fixedpricer.core.lattice import build_lattice_config, early_exercise_premium, price_lattice
from fixedpricer.diagnostics.residuals import lattice_convergence_errors
from fixedpricer.utils.errors import InvalidParameter, InvalidProbability, StepBudgetExceeded
from fixedpricer.utils.types import LatticeConfig, OptionParameters


# ===========================
# Configuration Tests
# ===========================


def test_config_coefficients(standard_params):
    config = build_lattice_config(standard_params, 32)
    assert config.steps == 32
    assert config.step_size == FixedPoint.from_string("0.03125")
    assert ZERO < config.risk_neutral_probability < ONE
    assert config.up_factor > ONE > config.down_factor
    assert abs(config.up_factor * config.down_factor - ONE) < FixedPoint.from_string("0.000000000000001")
    assert config.discount_per_step == exp(-(standard_params.risk_free_rate * config.step_size))


def test_invalid_probability_rejected():
    # e^(rΔt) exceeds u when the rate dwarfs the volatility
    params = OptionParameters(spot=100, strike=100, volatility="0.01", risk_free_rate=1, time_to_expiry=1)
    with pytest.raises(InvalidProbability) as excinfo:
        build_lattice_config(params, 1)
    assert excinfo.value.value > ONE


def test_vanishing_volatility_raises_invalid_probability():
    params = OptionParameters(
        spot=100, strike=100, volatility="0.000000000000000001", risk_free_rate="0.05", time_to_expiry=1
    )
    with pytest.raises(InvalidProbability) as excinfo:
        build_lattice_config(params, 64)
    assert excinfo.value.value == "undefined"


def test_config_validates_probability_directly():
    with pytest.raises(InvalidProbability):
        LatticeConfig(
            step_size=ONE,
            up_factor=FixedPoint.from_string("1.1"),
            down_factor=FixedPoint.from_string("0.9"),
            risk_neutral_probability=ZERO,
            discount_per_step=ONE,
            steps=1,
        )


def test_step_budget(standard_params):
    with pytest.raises(StepBudgetExceeded) as excinfo:
        price_lattice(standard_params, 65)
    assert excinfo.value.requested == 65
    with pytest.raises(InvalidParameter):
        price_lattice(standard_params, 0)


# ===========================
# Pricing Tests
# ===========================


def test_european_converges_to_black_scholes(standard_params):
    errors = [error for _, error in lattice_convergence_errors(standard_params, (8, 16, 32, 64))]
    assert all(a > b for a, b in zip(errors, errors[1:]))
    assert errors[-1] < FixedPoint.from_string("0.05")


def test_american_put_at_least_european(american_put_params):
    american = price_lattice(american_put_params, 32, "put", american=True)
    european = price_lattice(american_put_params, 32, "put", american=False)
    assert american.price >= european.price
    assert american.price >= 10  # intrinsic value
    assert american.american and not european.american


def test_early_exercise_premium_positive_for_itm_put(american_put_params):
    premium = early_exercise_premium(american_put_params, 32, "put")
    assert premium > ZERO


def test_no_early_exercise_for_call_without_dividends(standard_params):
    assert early_exercise_premium(standard_params, 32, "call") == ZERO


def test_single_step_lattice(standard_params):
    config = build_lattice_config(standard_params, 1)
    result = price_lattice(standard_params, 1, "call", american=False)
    up_payoff = standard_params.spot * config.up_factor - standard_params.strike
    expected = config.discount_per_step * (config.risk_neutral_probability * up_payoff)
    assert result.price == expected
    assert result.steps == 1


def test_delta_close_to_black_scholes(standard_params):
    lattice = price_lattice(standard_params, 64, "call", american=False)
    analytical = calculate_greeks(standard_params, "call").delta
    assert abs(float(lattice.delta - analytical)) < 0.02


def test_put_delta_negative(american_put_params):
    result = price_lattice(american_put_params, 32, "put")
    assert -1 <= result.delta < 0


def test_deterministic(american_put_params):
    first = price_lattice(american_put_params, 64, "put")
    second = price_lattice(american_put_params, 64, "put")
    assert first == second


def test_invalid_option_type(standard_params):
    with pytest.raises(InvalidParameter):
        price_lattice(standard_params, 8, "straddle")
