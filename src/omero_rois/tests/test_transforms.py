import math

import numpy as np
import pytest

from omero_rois.exceptions import ShapeGeometryError
from omero_rois.transforms import (
    IDENTITY,
    Affine2D,
    SpatialTransform,
    from_coefficients,
    from_matrix,
    identity,
    rotate,
    scale_2d,
    translate,
)


def test_identity_leaves_points_unchanged():
    pts = np.array([[1.0, 2.0], [-3.0, 4.5]])
    np.testing.assert_array_equal(IDENTITY(pts), pts)
    assert identity().is_identity()
    assert isinstance(IDENTITY, SpatialTransform)


def test_matrix_convention():
    """x' = a*x + b*y + tx, y' = c*x + d*y + ty."""
    t = from_matrix([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
    np.testing.assert_allclose(t(np.array([1.0, 1.0])), [6.0, 15.0])
    assert t.coefficients == (1.0, 2.0, 3.0, 4.0, 5.0, 6.0)
    assert t.to_list() == [[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]]
    assert t == from_coefficients(1, 2, 3, 4, 5, 6)


def test_matrix_is_read_only():
    t = translate(1, 2)
    with pytest.raises(ValueError):
        t.A[0, 0] = 5.0


def test_composition_applies_right_operand_first():
    t = translate(10, 0) @ scale_2d(2)
    np.testing.assert_allclose(t(np.array([1.0, 1.0])), [12.0, 2.0])
    t2 = scale_2d(2) @ translate(10, 0)
    np.testing.assert_allclose(t2(np.array([1.0, 1.0])), [22.0, 2.0])


def test_rotate_about_centre_keeps_centre():
    t = rotate(0.7, cx=3.0, cy=-2.0)
    np.testing.assert_allclose(t(np.array([3.0, -2.0])), [3.0, -2.0], atol=1e-12)
    quarter = rotate(math.pi / 2)
    np.testing.assert_allclose(quarter(np.array([1.0, 0.0])), [0.0, 1.0], atol=1e-12)


def test_inverse_round_trip():
    t = from_coefficients(2.0, 0.5, 1.0, -0.3, 1.5, -4.0)
    pts = np.array([[0.0, 0.0], [10.0, -3.0]])
    np.testing.assert_allclose(t.inverse()(t(pts)), pts, atol=1e-12)


def test_singular_inverse_raises():
    with pytest.raises(ShapeGeometryError, match="singular"):
        scale_2d(0.0, 1.0).inverse()


@pytest.mark.parametrize(
    "transform, axis_aligned, orthogonal",
    [
        (IDENTITY, True, True),
        (scale_2d(2.0, -3.0) @ translate(1, 1), True, True),
        (rotate(0.3), False, True),
        (from_coefficients(1.0, 0.5, 0.0, 0.0, 1.0, 0.0), False, False),
    ],
)
def test_classification(transform, axis_aligned, orthogonal):
    assert transform.is_axis_aligned() is axis_aligned
    assert transform.has_orthogonal_axes() is orthogonal


def test_hash_and_equality():
    assert hash(translate(1, 2)) == hash(translate(1, 2))
    assert translate(1, 2) != translate(2, 1)
    assert Affine2D(np.eye(3)) == IDENTITY


def test_signed_zero_hashes_like_zero():
    negative = Affine2D(np.array([[1.0, -0.0, 0.0], [0.0, 1.0, -0.0], [0.0, 0.0, 1.0]]))
    assert negative == IDENTITY
    assert hash(negative) == hash(IDENTITY)
    assert len({negative, IDENTITY}) == 1
