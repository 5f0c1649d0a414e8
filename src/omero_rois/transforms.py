"""
transforms.py - 2-D affine transforms attached to shapes
========================================================

Two complementary APIs
----------------------
1.  *Composable objects* (`Affine2D`, `SpatialTransform`)
    Build a transform once, attach it to shapes, compose with ``@``.
2.  *Factory helpers* (`identity`, `translate`, `scale_2d`, `rotate`,
    `from_matrix`) for the transforms ROIs actually use.

A shape transform is the 2×3 matrix ``[[a, b, tx], [c, d, ty]]`` applied as

    x' = a·x + b·y + tx
    y' = c·x + d·y + ty

It is stored as a 3 × 3 homogeneous matrix. All functions assume coordinates
are shaped ``(..., 2)``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import numpy as np
from numpy.typing import NDArray

from omero_rois._validation import ensure_matrix_2x3
from omero_rois.exceptions import ShapeGeometryError

# Relative tolerance used to classify transforms (identity, axis-aligned,
# orthogonal columns). Tight enough to keep round trips exact.
_CLASSIFY_TOL = 1e-12


# ---------------------------------------------------------------------
# 1.  Composable transform objects
# ---------------------------------------------------------------------
@runtime_checkable
class SpatialTransform(Protocol):
    """Callable that maps an (N, 2) array of points → (N, 2) array."""

    def __call__(self, pts: NDArray[np.float64]) -> NDArray[np.float64]: ...


@dataclass(frozen=True, slots=True, eq=False)
class Affine2D(SpatialTransform):
    """
    2-D affine transform expressed as a 3 × 3 homogeneous matrix *A* such that

        [x', y', 1]^T  =  A @ [x, y, 1]^T

    Instances are immutable; the matrix is copied and made read-only.
    """

    A: NDArray[np.float64]  # shape (3, 3)

    def __post_init__(self) -> None:
        matrix = ensure_matrix_2x3(self.A, name="A")
        matrix.flags.writeable = False
        object.__setattr__(self, "A", matrix)

    # ---- core --------------------------------------------------------
    def __call__(self, pts: NDArray[np.float64]) -> NDArray[np.float64]:
        pts = np.asanyarray(pts, dtype=float)
        pts_h = np.c_[pts.reshape(-1, 2), np.ones((pts.size // 2, 1))]
        out = pts_h @ self.A.T
        return out[:, :2].reshape(pts.shape)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Affine2D):
            return NotImplemented
        return bool(np.array_equal(self.A, other.A))

    def __hash__(self) -> int:
        # -0.0 and 0.0 compare equal
        return hash((self.A + 0.0).tobytes())

    def __repr__(self) -> str:
        a, b, tx, c, d, ty = self.coefficients
        return f"Affine2D([[{a!r}, {b!r}, {tx!r}], [{c!r}, {d!r}, {ty!r}]])"

    # ---- accessors ---------------------------------------------------
    @property
    def matrix(self) -> NDArray[np.float64]:
        """The 2 × 3 matrix ``[[a, b, tx], [c, d, ty]]``."""
        return np.array(self.A[:2], dtype=float)

    @property
    def linear(self) -> NDArray[np.float64]:
        """The 2 × 2 linear part ``[[a, b], [c, d]]``."""
        return np.array(self.A[:2, :2], dtype=float)

    @property
    def translation(self) -> NDArray[np.float64]:
        """The translation vector ``(tx, ty)``."""
        return np.array(self.A[:2, 2], dtype=float)

    @property
    def coefficients(self) -> tuple[float, float, float, float, float, float]:
        """Return ``(a, b, tx, c, d, ty)`` as plain floats."""
        (a, b, tx), (c, d, ty) = self.A[:2].tolist()
        return a, b, tx, c, d, ty

    @property
    def determinant(self) -> float:
        return float(np.linalg.det(self.A[:2, :2]))

    # ---- classification ----------------------------------------------
    def is_identity(self) -> bool:
        """True if the transform leaves every point unchanged."""
        return bool(np.array_equal(self.A, np.eye(3)))

    def is_axis_aligned(self) -> bool:
        """True if the linear part is diagonal (no rotation or shear)."""
        a, b, _, c, d, _ = self.coefficients
        scale = max(abs(a), abs(d), 1.0)
        return abs(b) <= _CLASSIFY_TOL * scale and abs(c) <= _CLASSIFY_TOL * scale

    def has_orthogonal_axes(self) -> bool:
        """True if the images of the x and y axes stay perpendicular.

        Such transforms map rectangles onto (possibly rotated) rectangles.
        """
        col_x, col_y = self.A[:2, 0], self.A[:2, 1]
        norm = float(np.linalg.norm(col_x) * np.linalg.norm(col_y))
        return abs(float(col_x @ col_y)) <= _CLASSIFY_TOL * max(norm, 1.0)

    # ---- helpers -----------------------------------------------------
    def inverse(self) -> "Affine2D":
        """Return the inverse transform.

        Raises
        ------
        ShapeGeometryError
            If the transform is singular.
        """
        det = self.determinant
        if not np.isfinite(det) or abs(det) <= np.finfo(float).tiny:
            raise ShapeGeometryError(
                "Cannot invert a singular affine transform",
                got=f"determinant = {det}",
                hint="The transform collapses the plane onto a line or point",
            )
        return Affine2D(np.linalg.inv(self.A))

    def compose(self, other: "Affine2D") -> "Affine2D":
        """Return ``self ∘ other`` (apply *other* first, then *self*)."""
        return Affine2D(self.A @ other.A)

    # Pythonic shorthand:  t3 = t1 @ t2
    def __matmul__(self, other: "Affine2D") -> "Affine2D":  # noqa: D401
        return self.compose(other)

    # ---- serialisation -------------------------------------------------
    def to_list(self) -> list[list[float]]:
        """Return the 2 × 3 matrix as nested lists (JSON friendly)."""
        return self.A[:2].tolist()


def identity() -> Affine2D:
    """Return the identity transform."""
    return Affine2D(np.eye(3))


IDENTITY = identity()


def from_matrix(matrix: Any) -> Affine2D:
    """Build a transform from ``[[a, b, tx], [c, d, ty]]`` (or a 3 × 3 matrix)."""
    return Affine2D(matrix)


def from_coefficients(
    a: float, b: float, tx: float, c: float, d: float, ty: float
) -> Affine2D:
    """Build a transform from its six coefficients."""
    return Affine2D(np.array([[a, b, tx], [c, d, ty], [0.0, 0.0, 1.0]]))


# Factory helpers for the most common ops ---------------------------------
def scale_2d(sx: float = 1.0, sy: float | None = None) -> Affine2D:
    """Uniform or anisotropic scaling."""
    sy = sx if sy is None else sy
    return Affine2D(np.array([[sx, 0.0, 0.0], [0.0, sy, 0.0], [0.0, 0.0, 1.0]]))


def translate(tx: float = 0.0, ty: float = 0.0) -> Affine2D:
    """Translation by (*tx*, *ty*)."""
    return Affine2D(np.array([[1.0, 0.0, tx], [0.0, 1.0, ty], [0.0, 0.0, 1.0]]))


def rotate(theta: float, cx: float = 0.0, cy: float = 0.0) -> Affine2D:
    """
    Rotation by *theta* radians about (*cx*, *cy*).

    Image coordinates have the y-axis pointing down, so a positive angle
    turns clockwise on screen.

    Parameters
    ----------
    theta
        Rotation angle in radians.
    cx, cy
        Centre of rotation.
    """
    cos_t, sin_t = math.cos(theta), math.sin(theta)
    # R(p - c) + c
    tx = cx - cos_t * cx + sin_t * cy
    ty = cy - sin_t * cx - cos_t * cy
    return Affine2D(
        np.array([[cos_t, -sin_t, tx], [sin_t, cos_t, ty], [0.0, 0.0, 1.0]])
    )
