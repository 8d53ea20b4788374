"""Unit tests for polynomial helpers."""

from __future__ import annotations

import pytest

from core.errors import ThresholdKeyError
from sdk.curve import CURVE_ORDER
from sdk.polynomial import evaluate, interpolate, random_polynomial


def test_evaluate_uses_coefficient_order() -> None:
    """Coefficients should be ordered from constant term upwards."""
    assert evaluate((5, 3, 2), 2) == 5 + 3 * 2 + 2 * 4


def test_evaluate_reduces_modulo_curve_order() -> None:
    """Results should stay inside the scalar field."""
    assert evaluate((CURVE_ORDER - 1, 1), 1) == 0


def test_interpolate_recovers_secret_from_two_points() -> None:
    """Any two points of a degree-1 polynomial recover its constant term."""
    coefficients = random_polynomial(1234, 1)
    points = {index: evaluate(coefficients, index) for index in (3, 11)}

    assert interpolate(points, 0) == 1234


def test_interpolate_evaluates_unseen_index() -> None:
    """Interpolated polynomial should match direct evaluation elsewhere."""
    coefficients = random_polynomial(99, 1)
    points = {index: evaluate(coefficients, index) for index in (1, 2)}

    assert interpolate(points, 77) == evaluate(coefficients, 77)


def test_interpolate_raises_without_points() -> None:
    """Empty point sets cannot be interpolated."""
    with pytest.raises(ThresholdKeyError):
        interpolate({}, 0)
