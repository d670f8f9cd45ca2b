"""
Multiple Importance Sampling (MIS) weights.

The path tracer combines BSDF sampling and light sampling with the
balance heuristic.
"""

from __future__ import annotations


def balance_heuristic(x: float, y: float) -> float:
    """Balance heuristic weight of a strategy with pdf ``x`` against ``y``.

    Evaluated as ``1 / (1 + y / x)``, which equals ``x / (x + y)`` but
    stays well defined when ``y`` is infinite or ``x + y`` overflows.

    Args:
        x: PDF of the strategy being weighted (must be positive)
        y: PDF of the competing strategy

    Returns:
        Weight in [0, 1]
    """
    return 1.0 / (1.0 + y / x)
