"""
Exercise payoffs of vanilla options.

These are exact in fixed point (only subtraction and comparison), so the
expiry identities hold to the last digit:

    call_payoff(S, K) - put_payoff(S, K) == S - K
    0 <= call_payoff(S, K) <= S
    0 <= put_payoff(S, K) <= K
"""

from fixedpricer.core.fixed_point import ZERO, FixedPoint
from fixedpricer.utils.types import OptionType, validate_option_type


def call_payoff(spot: FixedPoint, strike: FixedPoint) -> FixedPoint:
    """max(S - K, 0)"""
    return max(spot - strike, ZERO)


def put_payoff(spot: FixedPoint, strike: FixedPoint) -> FixedPoint:
    """max(K - S, 0)"""
    return max(strike - spot, ZERO)


def intrinsic_value(spot: FixedPoint, strike: FixedPoint, option_type: OptionType) -> FixedPoint:
    """
    Value of immediate exercise.

    Raises:
        InvalidParameter: If option_type is not "call" or "put"
    """
    validate_option_type(option_type)
    if option_type == "call":
        return call_payoff(spot, strike)
    return put_payoff(spot, strike)
