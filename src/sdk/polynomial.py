"""Polynomial arithmetic modulo the curve order."""

from __future__ import annotations

from typing import Mapping, Sequence

from core.errors import ThresholdKeyError
from sdk.curve import CURVE_ORDER, random_scalar


def random_polynomial(secret: int, degree: int) -> tuple[int, ...]:
    """Return coefficients ``[secret, a1, ..., a_degree]``."""
    return (secret % CURVE_ORDER,) + tuple(random_scalar() for _ in range(degree))


def evaluate(coefficients: Sequence[int], x: int) -> int:
    """Evaluate a polynomial at ``x`` using Horner's rule."""
    result = 0
    for coefficient in reversed(coefficients):
        result = (result * x + coefficient) % CURVE_ORDER
    return result


def interpolate(points: Mapping[int, int], x: int) -> int:
    """Evaluate the Lagrange polynomial through ``points`` at ``x``.

    Args:
        points: Share index to share value.
        x: Index to evaluate; 0 yields the secret.

    Returns:
        Polynomial value modulo the curve order.

    Raises:
        ThresholdKeyError: If no points are supplied.
    """
    if not points:
        raise ThresholdKeyError("Cannot interpolate without shares.")
    result = 0
    for index_j, value_j in points.items():
        numerator = 1
        denominator = 1
        for index_m in points:
            if index_m == index_j:
                continue
            numerator = numerator * (x - index_m) % CURVE_ORDER
            denominator = denominator * (index_j - index_m) % CURVE_ORDER
        basis = numerator * pow(denominator, -1, CURVE_ORDER) % CURVE_ORDER
        result = (result + value_j * basis) % CURVE_ORDER
    return result
