"""
Pytest configuration and shared fixtures.
"""

import pytest

from fixedpricer.utils.types import HestonParameters, OptionParameters


@pytest.fixture
def standard_params():
    """Standard at-the-money option parameters."""
    return OptionParameters(
        spot=100,
        strike=100,
        volatility="0.2",
        risk_free_rate="0.05",
        time_to_expiry=1,
    )


@pytest.fixture
def itm_call_params():
    """In-the-money call parameters."""
    return OptionParameters(
        spot=110,
        strike=100,
        volatility="0.2",
        risk_free_rate="0.05",
        time_to_expiry=1,
    )


@pytest.fixture
def american_put_params():
    """In-the-money put where early exercise has value."""
    return OptionParameters(
        spot=100,
        strike=110,
        volatility="0.3",
        risk_free_rate="0.05",
        time_to_expiry=1,
    )


@pytest.fixture
def low_volvol_heston():
    """Heston parameters with almost deterministic variance (v0 = theta)."""
    return HestonParameters(
        spot=100,
        strike=100,
        risk_free_rate="0.05",
        time_to_expiry=1,
        v0="0.04",
        theta="0.04",
        kappa=2,
        xi="0.01",
        rho=0,
    )


@pytest.fixture
def skewed_heston():
    """Typical equity-style Heston parameters with negative correlation."""
    return HestonParameters(
        spot=100,
        strike=100,
        risk_free_rate="0.05",
        time_to_expiry=1,
        v0="0.04",
        theta="0.04",
        kappa="1.5",
        xi="0.3",
        rho="-0.7",
    )
