"""
Cox-Ross-Rubinstein binomial lattice for American and European options.

Mathematical Background:
    Over N steps of length Δt = T/N the spot moves up by u = e^(σ√Δt) or
    down by d = 1/u. Under the risk-neutral measure the up-move probability
    is p = (e^(rΔt) - d)/(u - d), which must lie strictly inside (0, 1);
    otherwise the inputs admit arbitrage and the lattice is rejected.

    Values are rolled back from expiry with

        V = max(exercise, e^(-rΔt)·(p·V_up + (1 - p)·V_down))   (American)
        V = e^(-rΔt)·(p·V_up + (1 - p)·V_down)                  (European)

Numerical scheme:
    One value vector of N + 1 nodes is overwritten in place, so memory is
    O(N) and work is O(N²). Node spots S·u^j·d^(i-j) come from precomputed
    power tables rather than repeated exponentials. N is capped at
    MAX_LATTICE_STEPS to bound the cost of a request.

References:
    Cox, J. C., Ross, S. A., & Rubinstein, M. (1979). Option Pricing:
    A Simplified Approach. Journal of Financial Economics, 7(3), 229-263.
"""

import logging

from fixedpricer.core.fixed_point import ONE, ZERO, FixedPoint, exp, sqrt
from fixedpricer.core.payoffs import intrinsic_value
from fixedpricer.utils.constants import DEFAULT_LATTICE_STEPS, MAX_LATTICE_STEPS
from fixedpricer.utils.errors import InvalidParameter, InvalidProbability, StepBudgetExceeded
from fixedpricer.utils.types import (
    LatticeConfig,
    LatticeResult,
    OptionParameters,
    OptionType,
    validate_option_type,
)

logger = logging.getLogger(__name__)


def _validate_steps(steps: int) -> None:
    if steps > MAX_LATTICE_STEPS:
        raise StepBudgetExceeded("steps", steps, MAX_LATTICE_STEPS)
    if steps < 1:
        raise InvalidParameter("steps", steps, "must be at least 1")


def build_lattice_config(params: OptionParameters, steps: int = DEFAULT_LATTICE_STEPS) -> LatticeConfig:
    """
    Derive the CRR coefficients once per (parameters, steps).

    Raises:
        StepBudgetExceeded: If steps exceeds MAX_LATTICE_STEPS
        InvalidParameter: If steps < 1
        InvalidProbability: If p falls outside (0, 1)
    """
    _validate_steps(steps)
    dt = params.time_to_expiry / steps
    up = exp(params.volatility * sqrt(dt))
    down = ONE / up
    growth = exp(params.risk_free_rate * dt)
    if up == down:
        # σ√Δt below one ulp: the tree has no spread and p is undefined
        raise InvalidProbability(
            "undefined", f"u = d = {up} for volatility={params.volatility}, dt={dt}"
        )
    probability = (growth - down) / (up - down)
    return LatticeConfig(
        step_size=dt,
        up_factor=up,
        down_factor=down,
        risk_neutral_probability=probability,
        discount_per_step=exp(-(params.risk_free_rate * dt)),
        steps=steps,
    )


def _powers(base: FixedPoint, count: int) -> list[FixedPoint]:
    table = [ONE]
    for _ in range(count):
        table.append(table[-1] * base)
    return table


def price_lattice(
    params: OptionParameters,
    steps: int = DEFAULT_LATTICE_STEPS,
    option_type: OptionType = "put",
    american: bool = True,
) -> LatticeResult:
    """
    Price an option by backward induction on a CRR tree.

    Args:
        params: Validated option parameters
        steps: Number of time steps, 1..MAX_LATTICE_STEPS
        option_type: "call" or "put"
        american: Allow early exercise at every node

    Returns:
        LatticeResult with root price and first-step delta

    Raises:
        StepBudgetExceeded: If steps exceeds MAX_LATTICE_STEPS
        InvalidProbability: If the inputs give p outside (0, 1)

    Notes:
        Delta = (V_u - V_d)/(S·u - S·d) from the two nodes one step from the
        root. With steps=1 those are the expiry payoffs.
    """
    validate_option_type(option_type)
    config = build_lattice_config(params, steps)
    S, K = params.spot, params.strike
    p = config.risk_neutral_probability
    q = ONE - p
    disc = config.discount_per_step

    up_powers = _powers(config.up_factor, steps)
    down_powers = _powers(config.down_factor, steps)

    # values[j] holds the node with j up-moves at the current step
    values = [
        intrinsic_value(S * up_powers[j] * down_powers[steps - j], K, option_type)
        for j in range(steps + 1)
    ]

    first_step = values[:2]
    for i in range(steps - 1, -1, -1):
        for j in range(i + 1):
            continuation = disc * (p * values[j + 1] + q * values[j])
            if american:
                exercise = intrinsic_value(S * up_powers[j] * down_powers[i - j], K, option_type)
                values[j] = max(exercise, continuation)
            else:
                values[j] = continuation
        if i == 1:
            first_step = values[:2]

    value_down, value_up = first_step
    delta = (value_up - value_down) / (S * config.up_factor - S * config.down_factor)
    logger.debug(
        "Lattice %s %s: steps=%d p=%s price=%s",
        "american" if american else "european", option_type, steps, p, values[0],
    )
    return LatticeResult(price=values[0], delta=delta, steps=steps, american=american)


def early_exercise_premium(
    params: OptionParameters,
    steps: int = DEFAULT_LATTICE_STEPS,
    option_type: OptionType = "put",
) -> FixedPoint:
    """max(American - European, 0) on the same lattice."""
    american = price_lattice(params, steps, option_type, american=True).price
    european = price_lattice(params, steps, option_type, american=False).price
    return max(american - european, ZERO)
