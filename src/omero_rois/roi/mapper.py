"""
roi/mapper.py
=============

Coordinate mapping between shape-local and image coordinates.

Transforms attached to shapes are never baked implicitly: the helpers below
either compose matrices into ``shape.transform`` or, for :func:`bake`,
fold the transform into the coordinates when the variant can hold the
result exactly.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, TypeVar

import numpy as np
from numpy.typing import NDArray

from omero_rois.exceptions import (
    InvalidGeometryError,
    ShapeGeometryError,
    UnsupportedShapeError,
)
from omero_rois.transforms import IDENTITY, Affine2D

from .shapes import (
    DEFAULT_ELLIPSE_SEGMENTS,
    Ellipse,
    Line,
    Mask,
    Point,
    Polygon,
    Polyline,
    Rectangle,
    Shape,
    Text,
)

_ShapeT = TypeVar("_ShapeT", bound=Shape)


def _as_affine(matrix: Affine2D | Any) -> Affine2D:
    return matrix if isinstance(matrix, Affine2D) else Affine2D(matrix)


# ---------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------
def apply_transform(shape: _ShapeT, matrix: Affine2D | Any) -> _ShapeT:
    """Compose ``matrix`` into the shape transform.

    ``matrix`` acts first, the existing transform after it, so repeated
    calls right-multiply. The stored coordinates are unchanged.
    """
    return shape.with_transform(shape.transform @ _as_affine(matrix))


def reverse_transform(shape: _ShapeT, matrix: Affine2D | Any) -> _ShapeT:
    """Compose the inverse of ``matrix`` into the shape transform.

    Raises
    ------
    ShapeGeometryError
        If ``matrix`` is singular.
    """
    return shape.with_transform(shape.transform @ _as_affine(matrix).inverse())


def to_local(shape: Shape, x: float, y: float) -> tuple[float, float]:
    """Map image coordinates (x, y) to the shape's own coordinates."""
    local = shape.transform.inverse()(np.array([x, y], dtype=float))
    return float(local[0]), float(local[1])


# ---------------------------------------------------------------------
# Geometry in image coordinates
# ---------------------------------------------------------------------
def transformed_points(shape: Shape) -> NDArray[np.float64]:
    """Control points of ``shape`` with its transform applied, shape (N, 2).

    Rectangles and masks give their four corners, ellipses their four axis
    end points, point-based variants their points.
    """
    match shape:
        case Point() | Text() | Rectangle() | Ellipse() | Line() | Polyline() | Polygon() | Mask():
            return shape.transform(shape.control_points())
        case _:
            raise UnsupportedShapeError(
                f"Unsupported shape type: {type(shape).__name__}", obj=shape
            )


def bounds(shape: Shape) -> tuple[float, float, float, float]:
    """Axis-aligned bounds ``(min_x, min_y, max_x, max_y)`` in image coordinates.

    Ellipse bounds are computed analytically and are exact under any affine
    transform; every other variant is bounded by its transformed vertices.
    """
    match shape:
        case Ellipse(x=x, y=y, radius_x=rx, radius_y=ry):
            a, b, _, c, d, _ = shape.transform.coefficients
            cx, cy = shape.transform(np.array([x, y], dtype=float))
            half_w = float(np.hypot(a * rx, b * ry))
            half_h = float(np.hypot(c * rx, d * ry))
            return cx - half_w, cy - half_h, cx + half_w, cy + half_h
        case Point() | Text() | Rectangle() | Line() | Polyline() | Polygon() | Mask():
            pts = transformed_points(shape)
            min_x, min_y = pts.min(axis=0)
            max_x, max_y = pts.max(axis=0)
            return float(min_x), float(min_y), float(max_x), float(max_y)
        case _:
            raise UnsupportedShapeError(
                f"Unsupported shape type: {type(shape).__name__}", obj=shape
            )


# ---------------------------------------------------------------------
# Baking
# ---------------------------------------------------------------------
def _not_representable(shape: Shape, reason: str) -> ShapeGeometryError:
    return ShapeGeometryError(
        f"Cannot fold the transform into a {type(shape).__name__}",
        got=repr(shape.transform),
        hint=reason,
    )


def bake(shape: _ShapeT) -> _ShapeT:
    """Return a copy of ``shape`` with an identity transform.

    The transform is folded into the coordinates. Point-based variants can
    always absorb it; rectangles and ellipses only when it is axis-aligned,
    masks only when it is a pure translation.

    Raises
    ------
    ShapeGeometryError
        If the variant cannot represent the transformed geometry exactly.
    """
    transform = shape.transform
    if transform.is_identity():
        return shape.copy()

    match shape:
        case Point() | Text():
            x, y = transform(np.array([shape.x, shape.y], dtype=float))
            return replace(shape, x=float(x), y=float(y), transform=IDENTITY)
        case Line():
            (x1, y1), (x2, y2) = transformed_points(shape)
            return replace(
                shape,
                x1=float(x1),
                y1=float(y1),
                x2=float(x2),
                y2=float(y2),
                transform=IDENTITY,
            )
        case Polyline() | Polygon():
            try:
                return replace(shape, points=transformed_points(shape), transform=IDENTITY)
            except InvalidGeometryError as e:
                raise _not_representable(shape, "The transform collapses the points") from e
        case Rectangle():
            if not transform.is_axis_aligned():
                raise _not_representable(shape, "Only axis-aligned transforms keep a rectangle")
            min_x, min_y, max_x, max_y = bounds(shape)
            return replace(
                shape,
                x=min_x,
                y=min_y,
                width=max_x - min_x,
                height=max_y - min_y,
                transform=IDENTITY,
            )
        case Ellipse():
            if not transform.is_axis_aligned():
                raise _not_representable(shape, "Only axis-aligned transforms keep an ellipse")
            a, _, _, _, d, _ = transform.coefficients
            cx, cy = transform(np.array([shape.x, shape.y], dtype=float))
            return replace(
                shape,
                x=float(cx),
                y=float(cy),
                radius_x=abs(a) * shape.radius_x,
                radius_y=abs(d) * shape.radius_y,
                transform=IDENTITY,
            )
        case Mask():
            if not np.array_equal(transform.linear, np.eye(2)):
                raise _not_representable(shape, "Mask pixels can only be translated")
            tx, ty = transform.translation
            return replace(shape, x=shape.x + tx, y=shape.y + ty, transform=IDENTITY)
        case _:
            raise UnsupportedShapeError(
                f"Unsupported shape type: {type(shape).__name__}", obj=shape
            )


class CoordinateMapper:
    """
    Stateless helper bundling the coordinate operations for one conversion.

    Parameters
    ----------
    n_segments : int, optional
        Number of vertices used for polygonal ellipse outlines. Default 64.
    """

    def __init__(self, n_segments: int = DEFAULT_ELLIPSE_SEGMENTS) -> None:
        if n_segments < 4:
            raise ValueError(f"n_segments must be at least 4, got {n_segments}")
        self.n_segments = n_segments

    def __repr__(self) -> str:
        return f"CoordinateMapper(n_segments={self.n_segments})"

    def apply_transform(self, shape: _ShapeT, matrix: Affine2D | Any) -> _ShapeT:
        return apply_transform(shape, matrix)

    def reverse_transform(self, shape: _ShapeT, matrix: Affine2D | Any) -> _ShapeT:
        return reverse_transform(shape, matrix)

    def transformed_points(self, shape: Shape) -> NDArray[np.float64]:
        return transformed_points(shape)

    def bounds(self, shape: Shape) -> tuple[float, float, float, float]:
        return bounds(shape)

    def bake(self, shape: _ShapeT) -> _ShapeT:
        return bake(shape)

    def to_local(self, shape: Shape, x: float, y: float) -> tuple[float, float]:
        return to_local(shape, x, y)

    def outline(self, shape: Shape) -> NDArray[np.float64]:
        """Polygonal outline in image coordinates."""
        return shape.to_polygon_approx(self.n_segments)
