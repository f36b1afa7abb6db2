"""
Data types and structures for options pricing.

This module defines the value-typed records exchanged with callers:
parameter records (validated on construction), result records, and
solver/diagnostic outcomes. Every numeric field is a FixedPoint; plain
ints, decimal strings, Decimals and floats are converted on construction.
"""

from dataclasses import dataclass, fields
from typing import Literal

from fixedpricer.core.fixed_point import FixedPoint
from fixedpricer.utils.errors import InvalidParameter, InvalidProbability

OptionType = Literal["call", "put"]
CdfQuality = Literal["precise", "fast"]


def _coerce_fields(record) -> None:
    for field in fields(record):
        value = getattr(record, field.name)
        if field.type in (FixedPoint, "FixedPoint") and not isinstance(value, FixedPoint):
            object.__setattr__(record, field.name, FixedPoint.parse(value))


def _require_positive(field: str, value: FixedPoint) -> None:
    if value.raw <= 0:
        raise InvalidParameter(field, value, "must be positive")


def _require_non_negative(field: str, value: FixedPoint) -> None:
    if value.raw < 0:
        raise InvalidParameter(field, value, "must be non-negative")


def validate_option_type(option_type: str) -> None:
    if option_type not in ("call", "put"):
        raise InvalidParameter("option_type", option_type, "must be 'call' or 'put'")


@dataclass(frozen=True)
class OptionParameters:
    """
    Immutable container for Black-Scholes option parameters.

    Attributes:
        spot: Current spot price of the underlying asset
        strike: Strike price
        volatility: Annualized volatility
        risk_free_rate: Risk-free interest rate (annualized, continuous compounding)
        time_to_expiry: Time to expiration in years
    """
    spot: FixedPoint
    strike: FixedPoint
    volatility: FixedPoint
    risk_free_rate: FixedPoint
    time_to_expiry: FixedPoint

    def __post_init__(self) -> None:
        """Validate parameters are positive where required."""
        _coerce_fields(self)
        _require_positive("spot", self.spot)
        _require_positive("strike", self.strike)
        _require_positive("volatility", self.volatility)
        _require_non_negative("risk_free_rate", self.risk_free_rate)
        _require_positive("time_to_expiry", self.time_to_expiry)

    def replace(self, **changes) -> "OptionParameters":
        values = {field.name: getattr(self, field.name) for field in fields(self)}
        values.update(changes)
        return OptionParameters(**values)


@dataclass(frozen=True)
class Greeks:
    """
    Container for option price and Greeks.

    Attributes:
        price: Option premium, floored at zero
        delta: Rate of change of option price with respect to spot price (∂V/∂S)
        gamma: Rate of change of delta with respect to spot price (∂²V/∂S²), >= 0
        theta: Rate of change of option price with respect to calendar time, per year
        vega: Rate of change of option price with respect to volatility (∂V/∂σ), >= 0
        rho: Rate of change of option price with respect to interest rate (∂V/∂r)
    """
    price: FixedPoint
    delta: FixedPoint
    gamma: FixedPoint
    theta: FixedPoint
    vega: FixedPoint
    rho: FixedPoint


@dataclass(frozen=True)
class HestonParameters:
    """
    Immutable container for Heston stochastic-volatility parameters.

    Attributes:
        spot, strike, risk_free_rate, time_to_expiry: As in OptionParameters
        v0: Initial variance
        theta: Long-run variance
        kappa: Mean-reversion speed of the variance
        xi: Volatility of variance (vol-of-vol)
        rho: Correlation between spot and variance shocks, in [-1, 1]
    """
    spot: FixedPoint
    strike: FixedPoint
    risk_free_rate: FixedPoint
    time_to_expiry: FixedPoint
    v0: FixedPoint
    theta: FixedPoint
    kappa: FixedPoint
    xi: FixedPoint
    rho: FixedPoint

    def __post_init__(self) -> None:
        _coerce_fields(self)
        _require_positive("spot", self.spot)
        _require_positive("strike", self.strike)
        _require_non_negative("risk_free_rate", self.risk_free_rate)
        _require_positive("time_to_expiry", self.time_to_expiry)
        _require_positive("v0", self.v0)
        _require_positive("theta", self.theta)
        _require_positive("kappa", self.kappa)
        _require_positive("xi", self.xi)
        if self.rho < -1 or self.rho > 1:
            raise InvalidParameter("rho", self.rho, "correlation must lie in [-1, 1]")

    @property
    def feller_ratio(self) -> FixedPoint:
        """2·kappa·theta / xi²; the variance process stays positive when > 1."""
        return 2 * self.kappa * self.theta / (self.xi * self.xi)


@dataclass(frozen=True)
class LatticeConfig:
    """
    Cox-Ross-Rubinstein lattice coefficients for one (parameters, steps) pair.

    Attributes:
        step_size: Δt = T/N
        up_factor: u = e^(σ√Δt)
        down_factor: d = 1/u
        risk_neutral_probability: p = (e^(rΔt) - d)/(u - d), strictly inside (0, 1)
        discount_per_step: e^(-rΔt)
        steps: N
    """
    step_size: FixedPoint
    up_factor: FixedPoint
    down_factor: FixedPoint
    risk_neutral_probability: FixedPoint
    discount_per_step: FixedPoint
    steps: int

    def __post_init__(self) -> None:
        p = self.risk_neutral_probability
        if p.raw <= 0 or p >= 1:
            raise InvalidProbability(
                p, f"u={self.up_factor}, d={self.down_factor}, dt={self.step_size}"
            )


@dataclass(frozen=True)
class LatticeResult:
    """
    Result from the binomial lattice.

    Attributes:
        price: Option value at the root
        delta: Finite-difference delta from the two nodes after the first step
        steps: Number of lattice steps used
        american: Whether early exercise was allowed
    """
    price: FixedPoint
    delta: FixedPoint
    steps: int
    american: bool


@dataclass(frozen=True)
class VolatilitySurfacePoint:
    """
    One point of the liquidity-sensitive implied-volatility surface.

    Attributes:
        strike: Strike price
        moneyness: K/S - 1
        time_to_expiry: Time to expiration in years
        implied_volatility: Clamped surface volatility
    """
    strike: FixedPoint
    moneyness: FixedPoint
    time_to_expiry: FixedPoint
    implied_volatility: FixedPoint


@dataclass
class ImpliedVolResult:
    """
    Result from implied volatility solver.

    Attributes:
        volatility: Solved implied volatility (annualized); best iterate on failure
        iterations: Number of iterations used
        method: Method used ('newton-raphson' or 'bisection')
        success: Whether the solver converged successfully
        message: Additional information about convergence
    """
    volatility: FixedPoint
    iterations: int
    method: Literal["newton-raphson", "bisection"]
    success: bool
    message: str = ""


@dataclass
class ArbitrageCheck:
    """
    Result from arbitrage validation.

    Attributes:
        is_valid: Whether the price satisfies no-arbitrage conditions
        violations: List of specific violations detected
        details: Dictionary with detailed check results
    """
    is_valid: bool
    violations: list[str]
    details: dict
