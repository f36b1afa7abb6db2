"""
Liquidity-sensitive implied volatility surface (LSIVS).

The quoting volatility for a strike is the realized volatility marked up by
a smile term and by a pool-utilization premium:

    σ_imp = σ_realized · (1 + skew(K, S) + premium(u))
    skew(K, S)  = α·m² + β·m,          m = K/S - 1
    premium(u)  = γ·u / (1 - u),       0 <= u < 1

The premium diverges as utilization approaches 1, throttling supply near
capacity. The result is clamped into [iv_floor, iv_ceiling]; utilization
outside [0, 1) is rejected, since it signals an accounting error upstream.

Realized volatility comes from an EWMA (RiskMetrics) variance estimator:

    σ²_n = λ·σ²_(n-1) + (1 - λ)·r_n²,   r_n = ln(P_n / P_(n-1))

The estimator is the engine's only state. It is an immutable value: update()
returns a new version, so an observation sequence can be replayed exactly.
"""

import logging
from dataclasses import dataclass, replace
from typing import Iterable, Optional

from fixedpricer.core.fixed_point import ONE, ZERO, FixedPoint, ln, sqrt
from fixedpricer.utils.constants import (
    EWMA_DEFAULT_DECAY,
    PERIODS_PER_YEAR,
    SURFACE_DEFAULT_ALPHA,
    SURFACE_DEFAULT_BETA,
    SURFACE_DEFAULT_GAMMA,
    SURFACE_DEFAULT_IV_CEILING,
    SURFACE_DEFAULT_IV_FLOOR,
)
from fixedpricer.utils.errors import InvalidParameter, OutOfOrderObservation
from fixedpricer.utils.types import VolatilitySurfacePoint

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SurfaceConfig:
    """
    Shape parameters of the surface.

    Attributes:
        alpha: Quadratic smile curvature
        beta: Linear skew tilt (negative: downside strikes richer)
        gamma: Utilization premium scale, >= 0
        iv_floor: Lowest quotable volatility, > 0
        iv_ceiling: Highest quotable volatility, >= iv_floor
    """
    alpha: FixedPoint = FixedPoint.from_string(SURFACE_DEFAULT_ALPHA)
    beta: FixedPoint = FixedPoint.from_string(SURFACE_DEFAULT_BETA)
    gamma: FixedPoint = FixedPoint.from_string(SURFACE_DEFAULT_GAMMA)
    iv_floor: FixedPoint = FixedPoint.from_string(SURFACE_DEFAULT_IV_FLOOR)
    iv_ceiling: FixedPoint = FixedPoint.from_string(SURFACE_DEFAULT_IV_CEILING)

    def __post_init__(self) -> None:
        for name in ("alpha", "beta", "gamma", "iv_floor", "iv_ceiling"):
            value = getattr(self, name)
            if not isinstance(value, FixedPoint):
                object.__setattr__(self, name, FixedPoint.parse(value))
        if self.gamma.raw < 0:
            raise InvalidParameter("gamma", self.gamma, "must be non-negative")
        if self.iv_floor.raw <= 0:
            raise InvalidParameter("iv_floor", self.iv_floor, "must be positive")
        if self.iv_ceiling < self.iv_floor:
            raise InvalidParameter(
                "iv_ceiling", self.iv_ceiling, f"must be >= iv_floor ({self.iv_floor})"
            )


DEFAULT_SURFACE = SurfaceConfig()


def moneyness(strike: FixedPoint, spot: FixedPoint) -> FixedPoint:
    """m = K/S - 1 (zero at the money)."""
    if strike.raw <= 0:
        raise InvalidParameter("strike", strike, "must be positive")
    if spot.raw <= 0:
        raise InvalidParameter("spot", spot, "must be positive")
    return strike / spot - ONE


def skew(strike: FixedPoint, spot: FixedPoint, config: SurfaceConfig = DEFAULT_SURFACE) -> FixedPoint:
    """α·m² + β·m"""
    m = moneyness(strike, spot)
    return config.alpha * m * m + config.beta * m


def utilization_premium(utilization: FixedPoint, config: SurfaceConfig = DEFAULT_SURFACE) -> FixedPoint:
    """
    γ·u / (1 - u)

    Raises:
        InvalidParameter: If utilization is outside [0, 1)
    """
    if utilization.raw < 0 or utilization >= 1:
        raise InvalidParameter("utilization", utilization, "must lie in [0, 1)")
    return config.gamma * utilization / (ONE - utilization)


def implied_volatility(
    realized_volatility: FixedPoint,
    strike: FixedPoint,
    spot: FixedPoint,
    utilization: FixedPoint,
    config: SurfaceConfig = DEFAULT_SURFACE,
) -> FixedPoint:
    """
    Surface volatility for one strike, clamped into [iv_floor, iv_ceiling].

    Args:
        realized_volatility: Annualized realized volatility, >= 0
        strike: Strike price
        spot: Current spot price
        utilization: Pool utilization ratio in [0, 1)
        config: Surface shape parameters

    Returns:
        Quoting volatility

    Raises:
        InvalidParameter: Negative realized volatility, non-positive prices,
            or utilization outside [0, 1)
    """
    if realized_volatility.raw < 0:
        raise InvalidParameter("realized_volatility", realized_volatility, "must be non-negative")
    premium = utilization_premium(utilization, config)
    raw_vol = realized_volatility * (ONE + skew(strike, spot, config) + premium)
    clamped = min(max(raw_vol, config.iv_floor), config.iv_ceiling)
    if clamped != raw_vol:
        logger.debug("Surface volatility %s clamped to %s", raw_vol, clamped)
    return clamped


def surface_point(
    realized_volatility: FixedPoint,
    strike: FixedPoint,
    spot: FixedPoint,
    time_to_expiry: FixedPoint,
    utilization: FixedPoint,
    config: SurfaceConfig = DEFAULT_SURFACE,
) -> VolatilitySurfacePoint:
    """Build a VolatilitySurfacePoint for one (strike, expiry)."""
    if time_to_expiry.raw <= 0:
        raise InvalidParameter("time_to_expiry", time_to_expiry, "must be positive")
    return VolatilitySurfacePoint(
        strike=strike,
        moneyness=moneyness(strike, spot),
        time_to_expiry=time_to_expiry,
        implied_volatility=implied_volatility(
            realized_volatility, strike, spot, utilization, config
        ),
    )


def build_smile(
    realized_volatility: FixedPoint,
    strikes: Iterable[FixedPoint],
    spot: FixedPoint,
    time_to_expiry: FixedPoint,
    utilization: FixedPoint,
    config: SurfaceConfig = DEFAULT_SURFACE,
) -> list[VolatilitySurfacePoint]:
    """Surface points across a strike ladder for a single expiry."""
    return [
        surface_point(realized_volatility, strike, spot, time_to_expiry, utilization, config)
        for strike in strikes
    ]


# ===========================
# Realized volatility (EWMA)
# ===========================


@dataclass(frozen=True)
class RealizedVolatilityEstimator:
    """
    Versioned EWMA variance estimate.

    Attributes:
        decay: λ in (0, 1), weight kept on the previous variance
        variance: Current per-period variance estimate σ²
        last_price: Price of the latest observation
        last_timestamp: Time of the latest observation (any monotone unit)
        observation_count: Number of prices folded in, including the first
        version: Incremented by every update
    """
    decay: FixedPoint
    variance: FixedPoint
    last_price: FixedPoint
    last_timestamp: int
    observation_count: int = 1
    version: int = 0

    @classmethod
    def initialize(
        cls,
        price,
        timestamp: int,
        decay=EWMA_DEFAULT_DECAY,
        initial_variance=0,
    ) -> "RealizedVolatilityEstimator":
        """
        Start an estimator from its first price observation.

        Raises:
            InvalidParameter: Non-positive price, decay outside (0, 1),
                or negative initial variance
        """
        price = FixedPoint.parse(price)
        decay = FixedPoint.parse(decay)
        initial_variance = FixedPoint.parse(initial_variance)
        if price.raw <= 0:
            raise InvalidParameter("price", price, "must be positive")
        if decay.raw <= 0 or decay >= 1:
            raise InvalidParameter("decay", decay, "must lie in (0, 1)")
        if initial_variance.raw < 0:
            raise InvalidParameter("initial_variance", initial_variance, "must be non-negative")
        return cls(
            decay=decay,
            variance=initial_variance,
            last_price=price,
            last_timestamp=timestamp,
        )

    def update(self, price, timestamp: int) -> "RealizedVolatilityEstimator":
        """
        Fold in the next observation and return the new estimator version.

        Raises:
            OutOfOrderObservation: If timestamp is not after last_timestamp
            InvalidParameter: If price is not positive
        """
        price = FixedPoint.parse(price)
        if timestamp <= self.last_timestamp:
            raise OutOfOrderObservation(timestamp, self.last_timestamp)
        if price.raw <= 0:
            raise InvalidParameter("price", price, "must be positive")

        log_return = ln(price / self.last_price)
        variance = self.decay * self.variance + (ONE - self.decay) * log_return * log_return
        return replace(
            self,
            variance=variance,
            last_price=price,
            last_timestamp=timestamp,
            observation_count=self.observation_count + 1,
            version=self.version + 1,
        )

    def replay(self, observations: Iterable[tuple]) -> "RealizedVolatilityEstimator":
        """Apply (price, timestamp) observations in order."""
        estimator = self
        for price, timestamp in observations:
            estimator = estimator.update(price, timestamp)
        return estimator

    @property
    def volatility(self) -> FixedPoint:
        """Per-period volatility √σ²."""
        return sqrt(self.variance)

    def annualized_volatility(self, periods_per_year: Optional[int] = None) -> FixedPoint:
        """√(σ² · periods per year); the default assumes daily observations."""
        periods = PERIODS_PER_YEAR if periods_per_year is None else periods_per_year
        if periods <= 0:
            raise InvalidParameter("periods_per_year", periods, "must be positive")
        return sqrt(self.variance * periods)

    @property
    def is_warm(self) -> bool:
        """True once at least one return has been observed."""
        return self.observation_count > 1 or self.variance > ZERO
