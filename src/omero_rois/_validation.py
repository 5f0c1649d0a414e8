"""Internal validation utilities for shape and ROI arguments.

Functions are preferred over classes here: none of these checks need state.
Every check raises a structured :class:`~omero_rois.exceptions.ValidationError`
(or one of its geometry subclasses) so the message explains what was
expected, what was received and how to fix it.

These functions are for internal use only (note the leading underscore in module name).
"""

from __future__ import annotations

from typing import Any

import numpy as np
from numpy.typing import NDArray

from omero_rois.exceptions import (
    InvalidGeometryError,
    ShapeGeometryError,
    ValidationError,
)


def ensure_finite_scalar(value: Any, name: str) -> float:
    """Convert ``value`` to a finite float.

    Parameters
    ----------
    value : Any
        Value to convert
    name : str
        Name of the parameter for error messages

    Returns
    -------
    float
        The converted value.

    Raises
    ------
    InvalidGeometryError
        If the value is not a number or is NaN/Inf

    Examples
    --------
    >>> ensure_finite_scalar(3, "x")
    3.0
    """
    try:
        converted = float(value)
    except (TypeError, ValueError):
        raise InvalidGeometryError(
            f"{name} must be a number",
            expected="int or float",
            got=f"{type(value).__name__} ({value!r})",
        ) from None
    if not np.isfinite(converted):
        raise InvalidGeometryError(
            f"{name} must be finite",
            expected=f"finite {name}",
            got=f"{name} = {converted}",
            hint="NaN and infinite coordinates cannot be stored on a shape",
        )
    return converted


def ensure_non_negative_size(value: float, name: str) -> None:
    """Verify a width, height or radius is non-negative.

    Parameters
    ----------
    value : float
        Value to check
    name : str
        Name of the parameter for error messages

    Raises
    ------
    InvalidGeometryError
        If the value is negative

    Examples
    --------
    >>> ensure_non_negative_size(0.0, "width")  # OK
    >>> ensure_non_negative_size(-1.0, "width")  # Raises
    """
    if value < 0:
        raise InvalidGeometryError(
            f"Invalid value for {name}",
            expected=f"{name} >= 0",
            got=f"{name} = {value}",
            hint="Move the origin instead of using a negative size",
        )


def ensure_plane_index(value: Any, name: str) -> int:
    """Verify a C/Z/T index is an integer >= -1.

    ``-1`` is the sentinel for "all planes along this axis".

    Parameters
    ----------
    value : Any
        Index to check
    name : str
        Name of the axis for error messages

    Returns
    -------
    int
        The index as a Python int.

    Raises
    ------
    InvalidGeometryError
        If the index is not an integer or is below -1

    Examples
    --------
    >>> ensure_plane_index(-1, "c")
    -1
    """
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise InvalidGeometryError(
            f"{name} must be an integer plane index",
            expected="int >= -1",
            got=f"{type(value).__name__} ({value!r})",
        )
    if value < -1:
        raise InvalidGeometryError(
            f"Invalid plane index for {name}",
            expected=f"{name} >= -1",
            got=f"{name} = {value}",
            hint="Use -1 to apply the shape to all planes along this axis",
        )
    return int(value)


def ensure_points_array(
    points: Any, name: str, min_points: int, distinct: bool = False
) -> NDArray[np.float64]:
    """Convert ``points`` to a read-only ``(N, 2)`` float array.

    Parameters
    ----------
    points : array-like
        Sequence of (x, y) pairs
    name : str
        Name of the shape for error messages
    min_points : int
        Minimum number of points required
    distinct : bool, optional
        If True, count only distinct points towards ``min_points``.
        By default False.

    Returns
    -------
    NDArray[np.float64], shape (N, 2)
        A private, read-only copy of the points.

    Raises
    ------
    InvalidGeometryError
        If the points are malformed, non-finite, or too few

    Examples
    --------
    >>> ensure_points_array([(0, 0), (1, 1)], "Polyline", 2).shape
    (2, 2)
    """
    try:
        arr = np.array(points, dtype=float)
    except (TypeError, ValueError) as e:
        raise InvalidGeometryError(
            f"{name} points could not be converted to numbers: {e}",
            expected="sequence of (x, y) pairs",
        ) from e

    if arr.size == 0:
        arr = arr.reshape(0, 2)
    if arr.ndim != 2 or arr.shape[1] != 2:
        raise InvalidGeometryError(
            f"{name} points must be (x, y) pairs",
            expected="array with shape (n, 2)",
            got=f"array with shape {arr.shape}",
            example="    points = [(0.0, 0.0), (3.0, 0.0), (3.0, 4.0)]",
        )
    if not np.all(np.isfinite(arr)):
        raise InvalidGeometryError(
            f"{name} points must be finite",
            hint="Remove NaN/Inf vertices before building the shape",
        )

    n_points = len(np.unique(arr, axis=0)) if distinct else len(arr)
    if n_points < min_points:
        qualifier = "distinct " if distinct else ""
        raise InvalidGeometryError(
            f"{name} needs at least {min_points} {qualifier}points",
            expected=f">= {min_points} {qualifier}points",
            got=f"{n_points} {qualifier}point(s)",
        )

    arr.flags.writeable = False
    return arr


def ensure_bitmap(bitmap: Any, width: float, height: float) -> NDArray[np.bool_]:
    """Convert ``bitmap`` to a read-only boolean array matching width/height.

    Parameters
    ----------
    bitmap : array-like
        2-D array of 0/1 (or booleans), one row per pixel row
    width : float
        Declared mask width
    height : float
        Declared mask height

    Returns
    -------
    NDArray[np.bool_], shape (height, width)
        A private, read-only copy of the bitmap.

    Raises
    ------
    ShapeGeometryError
        If the bitmap is not 2-D, holds values other than 0/1, or its shape
        differs from ``(height, width)``
    """
    arr = np.asarray(bitmap)
    if arr.ndim != 2:
        raise ShapeGeometryError(
            "Mask bitmap must be 2-dimensional",
            expected="array with shape (height, width)",
            got=f"array with shape {arr.shape}",
        )
    if arr.dtype != np.bool_ and not np.all((arr == 0) | (arr == 1)):
        raise ShapeGeometryError(
            "Mask bitmap must only contain 0 and 1",
            hint="Threshold the raster first, e.g. bitmap = raster > 0",
        )
    if arr.shape != (height, width):
        raise ShapeGeometryError(
            "Mask bitmap dimensions do not match the declared size",
            expected=f"shape ({height}, {width})",
            got=f"shape {arr.shape}",
            hint="width is the number of columns, height the number of rows",
        )
    out = arr.astype(bool, copy=True)
    out.flags.writeable = False
    return out


def ensure_matrix_2x3(matrix: Any, name: str = "matrix") -> NDArray[np.float64]:
    """Convert a 2×3 or 3×3 affine matrix to a 3×3 homogeneous array.

    Parameters
    ----------
    matrix : array-like
        ``[[a, b, tx], [c, d, ty]]`` or the full homogeneous matrix
    name : str, optional
        Name of the parameter for error messages

    Returns
    -------
    NDArray[np.float64], shape (3, 3)

    Raises
    ------
    ValidationError
        If the matrix has the wrong shape, non-finite entries, or a 3×3
        matrix whose last row is not ``[0, 0, 1]``
    """
    arr = np.array(matrix, dtype=float)
    if arr.shape == (2, 3):
        arr = np.vstack([arr, [0.0, 0.0, 1.0]])
    elif arr.shape != (3, 3):
        raise ValidationError(
            f"{name} must be a 2x3 affine matrix",
            expected="[[a, b, tx], [c, d, ty]]",
            got=f"array with shape {arr.shape}",
            example="    matrix = [[1.0, 0.0, 5.0], [0.0, 1.0, -2.0]]",
        )
    if not np.all(np.isfinite(arr)):
        raise ValidationError(f"{name} must only contain finite values")
    if not np.allclose(arr[2], [0.0, 0.0, 1.0]):
        raise ValidationError(
            f"{name} is not affine",
            expected="last row [0, 0, 1]",
            got=f"last row {arr[2].tolist()}",
        )
    arr[2] = [0.0, 0.0, 1.0]
    return arr
