"""
Arbitrage diagnostics for option pricing validation.

This module implements no-arbitrage checks on fixed-point prices:
- Price bounds validation
- Put-call parity
- Strike monotonicity
- Butterfly convexity
- Calendar spread arbitrage
"""

from dataclasses import dataclass
from typing import Optional

from fixedpricer.core.fixed_point import ZERO, FixedPoint, exp
from fixedpricer.utils.constants import ARBITRAGE_TOLERANCE, PARITY_TOLERANCE
from fixedpricer.utils.errors import InvalidParameter
from fixedpricer.utils.types import ArbitrageCheck, OptionType

DEFAULT_TOLERANCE = FixedPoint.from_string(ARBITRAGE_TOLERANCE)
DEFAULT_PARITY_TOLERANCE = FixedPoint.from_string(PARITY_TOLERANCE)


@dataclass
class OptionData:
    """Container for a quoted option."""

    strike: FixedPoint
    price: FixedPoint
    option_type: OptionType
    expiry: Optional[FixedPoint] = None  # Time to expiration (for calendar spreads)


def _discounted_strike(strike: FixedPoint, time_to_expiry: FixedPoint, risk_free_rate: FixedPoint) -> FixedPoint:
    return strike * exp(-(risk_free_rate * time_to_expiry))


def check_price_bounds(
    call_price: FixedPoint,
    put_price: FixedPoint,
    spot: FixedPoint,
    strike: FixedPoint,
    time_to_expiry: FixedPoint,
    risk_free_rate: FixedPoint,
    tolerance: FixedPoint = DEFAULT_TOLERANCE,
) -> ArbitrageCheck:
    """
    Validate option prices against no-arbitrage bounds.

    Checks:
    1. Call lower bound: C >= max(S - K·e^(-rT), 0)
    2. Call upper bound: C <= S
    3. Put lower bound: P >= max(K·e^(-rT) - S, 0)
    4. Put upper bound: P <= K·e^(-rT)

    Returns:
        ArbitrageCheck with validation results
    """
    violations = []
    details = {}

    discount_strike = _discounted_strike(strike, time_to_expiry, risk_free_rate)

    call_lower = max(spot - discount_strike, ZERO)
    call_lower_ok = call_price >= call_lower - tolerance
    details["call_lower_bound"] = call_lower_ok
    if not call_lower_ok:
        violations.append(f"Call price {call_price:.4f} below lower bound {call_lower:.4f}")

    call_upper_ok = call_price <= spot + tolerance
    details["call_upper_bound"] = call_upper_ok
    if not call_upper_ok:
        violations.append(f"Call price {call_price:.4f} above upper bound {spot:.4f}")

    put_lower = max(discount_strike - spot, ZERO)
    put_lower_ok = put_price >= put_lower - tolerance
    details["put_lower_bound"] = put_lower_ok
    if not put_lower_ok:
        violations.append(f"Put price {put_price:.4f} below lower bound {put_lower:.4f}")

    put_upper_ok = put_price <= discount_strike + tolerance
    details["put_upper_bound"] = put_upper_ok
    if not put_upper_ok:
        violations.append(f"Put price {put_price:.4f} above upper bound {discount_strike:.4f}")

    return ArbitrageCheck(is_valid=not violations, violations=violations, details=details)


def check_put_call_parity(
    call_price: FixedPoint,
    put_price: FixedPoint,
    spot: FixedPoint,
    strike: FixedPoint,
    time_to_expiry: FixedPoint,
    risk_free_rate: FixedPoint,
    tolerance: FixedPoint = DEFAULT_PARITY_TOLERANCE,
) -> ArbitrageCheck:
    """
    Validate put-call parity relationship.

    Put-call parity:
        C - P = S - K·e^(-rT)
    """
    lhs = call_price - put_price
    rhs = spot - _discounted_strike(strike, time_to_expiry, risk_free_rate)

    diff = abs(lhs - rhs)
    is_valid = diff < tolerance

    violations = []
    if not is_valid:
        violations.append(
            f"Put-call parity violated: C - P = {lhs:.6f}, "
            f"S - K·e^(-rT) = {rhs:.6f}, diff = {diff:.6f}"
        )

    details = {"parity_lhs": lhs, "parity_rhs": rhs, "difference": diff}
    return ArbitrageCheck(is_valid=is_valid, violations=violations, details=details)


def check_strike_monotonicity(
    options: list[OptionData], tolerance: FixedPoint = DEFAULT_TOLERANCE
) -> ArbitrageCheck:
    """
    Check monotonicity in strike: calls decrease, puts increase.

    For calls: C(K1) >= C(K2) if K1 < K2
    For puts: P(K1) <= P(K2) if K1 < K2
    """
    violations = []
    details = {}

    calls = sorted([opt for opt in options if opt.option_type == "call"], key=lambda x: x.strike)
    puts = sorted([opt for opt in options if opt.option_type == "put"], key=lambda x: x.strike)

    for lower, upper in zip(calls, calls[1:]):
        if lower.price < upper.price - tolerance:
            violations.append(
                f"Call monotonicity violated: C(K={lower.strike}) = {lower.price:.4f} "
                f"< C(K={upper.strike}) = {upper.price:.4f}"
            )
    details["call_monotonic"] = not violations

    initial_violations = len(violations)
    for lower, upper in zip(puts, puts[1:]):
        if lower.price > upper.price + tolerance:
            violations.append(
                f"Put monotonicity violated: P(K={lower.strike}) = {lower.price:.4f} "
                f"> P(K={upper.strike}) = {upper.price:.4f}"
            )
    details["put_monotonic"] = len(violations) == initial_violations

    return ArbitrageCheck(is_valid=not violations, violations=violations, details=details)


def check_butterfly_arbitrage(
    k1: FixedPoint,
    k2: FixedPoint,
    k3: FixedPoint,
    c1: FixedPoint,
    c2: FixedPoint,
    c3: FixedPoint,
    tolerance: FixedPoint = DEFAULT_TOLERANCE,
) -> ArbitrageCheck:
    """
    Check butterfly spread no-arbitrage condition.

    No-arbitrage (convexity in strike) requires:
        w1·C1 + w3·C3 >= C2
    where w1 = (K3-K2)/(K3-K1), w3 = (K2-K1)/(K3-K1); for equal spacing
    this is C1 + C3 >= 2·C2.

    Raises:
        InvalidParameter: If strikes are not strictly increasing
    """
    if not (k1 < k2 < k3):
        raise InvalidParameter("strikes", (str(k1), str(k2), str(k3)), "must be ordered K1 < K2 < K3")

    w1 = (k3 - k2) / (k3 - k1)
    w3 = (k2 - k1) / (k3 - k1)

    lhs = w1 * c1 + w3 * c3
    rhs = c2
    is_valid = lhs >= rhs - tolerance

    violations = []
    if not is_valid:
        violations.append(
            f"Butterfly arbitrage: w1·C1 + w3·C3 = {lhs:.4f} < C2 = {rhs:.4f}. "
            f"Arbitrage: sell butterfly spread."
        )

    details = {"lhs": lhs, "rhs": rhs, "w1": w1, "w3": w3}
    return ArbitrageCheck(is_valid=is_valid, violations=violations, details=details)


def check_calendar_spread(
    near_price: FixedPoint,
    far_price: FixedPoint,
    option_type: OptionType,
    tolerance: FixedPoint = DEFAULT_TOLERANCE,
) -> ArbitrageCheck:
    """
    Check calendar spread no-arbitrage condition.

    For the same strike, longer-dated options must be worth at least
    as much as shorter-dated options: C_far >= C_near (same for puts).
    """
    is_valid = far_price >= near_price - tolerance

    violations = []
    if not is_valid:
        violations.append(
            f"Calendar spread arbitrage: {option_type} far price {far_price:.4f} "
            f"< near price {near_price:.4f}"
        )

    details = {"near_price": near_price, "far_price": far_price}
    return ArbitrageCheck(is_valid=is_valid, violations=violations, details=details)
