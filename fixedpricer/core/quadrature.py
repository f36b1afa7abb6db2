"""
Composite Gauss-Legendre quadrature in fixed point.

The 8-point rule integrates polynomials up to degree 15 exactly on each
panel. Nodes and weights on [-1, 1] are tabulated to 25 digits and
truncated to the fixed-point grid, so the weights of one panel sum to 2
within a few ulps.

Panel mapping for [a, b]:
    u = (b - a)/2 · x + (a + b)/2
    weight = (b - a)/2 · w
"""

from typing import Callable

from fixedpricer.core.fixed_point import ZERO, FixedPoint
from fixedpricer.utils.constants import MAX_HESTON_PANELS
from fixedpricer.utils.errors import InvalidParameter, StepBudgetExceeded

# Positive half of the symmetric rule on [-1, 1]
_POSITIVE_NODES = tuple(
    FixedPoint.from_string(x)
    for x in (
        "0.1834346424956498049394761",
        "0.5255324099163289858177390",
        "0.7966664774136267395915539",
        "0.9602898564975362316835609",
    )
)
_HALF_WEIGHTS = tuple(
    FixedPoint.from_string(w)
    for w in (
        "0.3626837833783619829651504",
        "0.3137066458778872873379622",
        "0.2223810344533744705443560",
        "0.1012285362903762591525314",
    )
)

GAUSS_LEGENDRE_NODES = tuple(-x for x in reversed(_POSITIVE_NODES)) + _POSITIVE_NODES
GAUSS_LEGENDRE_WEIGHTS = tuple(reversed(_HALF_WEIGHTS)) + _HALF_WEIGHTS


def composite_nodes(
    lower: FixedPoint,
    upper: FixedPoint,
    panels: int,
) -> list[tuple[FixedPoint, FixedPoint]]:
    """
    Abscissae and weights of the composite rule on [lower, upper].

    Args:
        lower: Left end of the interval
        upper: Right end of the interval, > lower
        panels: Number of equal-width panels, 1..MAX_HESTON_PANELS

    Returns:
        List of (node, weight) pairs, 8 per panel, in increasing node order

    Raises:
        StepBudgetExceeded: If panels exceeds MAX_HESTON_PANELS
        InvalidParameter: If panels < 1 or upper <= lower
    """
    if panels > MAX_HESTON_PANELS:
        raise StepBudgetExceeded("panels", panels, MAX_HESTON_PANELS)
    if panels < 1:
        raise InvalidParameter("panels", panels, "must be at least 1")
    if upper <= lower:
        raise InvalidParameter("upper", upper, f"must exceed lower ({lower})")

    width = (upper - lower) / panels
    half_width = width / 2

    pairs = []
    for panel in range(panels):
        center = lower + width * panel + half_width
        for x, w in zip(GAUSS_LEGENDRE_NODES, GAUSS_LEGENDRE_WEIGHTS):
            pairs.append((center + half_width * x, half_width * w))
    return pairs


def integrate(
    function: Callable[[FixedPoint], FixedPoint],
    lower: FixedPoint,
    upper: FixedPoint,
    panels: int,
) -> FixedPoint:
    """
    ∫ function(u) du over [lower, upper] with a fixed number of evaluations.

    The evaluation count is always 8·panels: no adaptive refinement, so the
    cost of a call is known in advance.
    """
    total = ZERO
    for node, weight in composite_nodes(lower, upper, panels):
        total = total + weight * function(node)
    return total
