"""
roi/shapes.py
=============

Server-side geometric primitives: a closed family of immutable shape values.

Every variant carries a position (C, Z, T), an affine transform, a caption and
a few style attributes. Geometry is validated at construction and never
silently clamped. Changes go through :meth:`Shape.with_transform`,
:meth:`Shape.with_position` or :func:`dataclasses.replace`, which re-run the
validation and return an unowned copy.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar

import numpy as np
import shapely.geometry as shp
from numpy.typing import NDArray

from omero_rois._validation import (
    ensure_bitmap,
    ensure_finite_scalar,
    ensure_non_negative_size,
    ensure_plane_index,
    ensure_points_array,
)
from omero_rois.exceptions import InvalidGeometryError, UnsupportedShapeError
from omero_rois.transforms import Affine2D, identity

if TYPE_CHECKING:
    from .core import ROI

# Number of vertices used for polygonal ellipse outlines unless overridden.
DEFAULT_ELLIPSE_SEGMENTS = 64


class Marker(Enum):
    """Decoration drawn at a line end point."""

    NONE = "None"
    ARROW = "Arrow"

    @classmethod
    def coerce(cls, value: "Marker | str | None") -> "Marker":
        """Accept a Marker, its string value, or None (no marker)."""
        if value is None:
            return cls.NONE
        if isinstance(value, cls):
            return value
        for member in cls:
            if str(value).strip().lower() in (member.value.lower(), member.name.lower()):
                return member
        raise InvalidGeometryError(
            f"Unknown line marker {value!r}",
            expected=" or ".join(repr(m.value) for m in cls),
        )


# ---------------------------------------------------------------------
# Common base
# ---------------------------------------------------------------------


@dataclass(frozen=True, eq=False, kw_only=True)
class Shape:
    """
    Base class of the shape variants.

    Parameters
    ----------
    c, z, t
        Channel, focal plane and time point. ``-1`` means "all planes along
        this axis".
    transform
        Affine transform from the stored coordinates to image coordinates.
        Accepts an :class:`Affine2D` or a ``[[a, b, tx], [c, d, ty]]`` matrix.
    text
        Caption, independent of the :class:`Text` variant.
    font_size
        Caption font size in points.
    stroke, fill
        Colour strings (e.g. ``"#ff0000ff"``) or None.
    id
        Server id, unset until the shape is persisted.
    """

    kind: ClassVar[str] = "shape"

    c: int = -1
    z: int = -1
    t: int = -1
    transform: Affine2D = field(default_factory=identity)
    text: str = ""
    font_size: float | None = None
    stroke: str | None = None
    fill: str | None = None
    id: int | None = None

    _roi: "ROI | None" = field(default=None, init=False, repr=False)

    # -----------------------------------------------------------------
    # Validation
    # -----------------------------------------------------------------
    def __post_init__(self) -> None:
        for axis in ("c", "z", "t"):
            object.__setattr__(self, axis, ensure_plane_index(getattr(self, axis), axis))
        if not isinstance(self.transform, Affine2D):
            object.__setattr__(self, "transform", Affine2D(self.transform))
        object.__setattr__(self, "text", "" if self.text is None else str(self.text))
        if self.font_size is not None:
            object.__setattr__(
                self, "font_size", ensure_finite_scalar(self.font_size, "font_size")
            )
        self._validate()

    def _validate(self) -> None:
        pass

    def _set_finite(self, *names: str) -> None:
        for name in names:
            object.__setattr__(self, name, ensure_finite_scalar(getattr(self, name), name))

    # -----------------------------------------------------------------
    # Ownership
    # -----------------------------------------------------------------
    @property
    def roi(self) -> "ROI | None":
        """The ROI currently owning this shape, if any."""
        return self._roi

    def _set_owner(self, roi: "ROI | None") -> None:
        object.__setattr__(self, "_roi", roi)

    # -----------------------------------------------------------------
    # Convenience
    # -----------------------------------------------------------------
    @property
    def position(self) -> tuple[int, int, int]:
        """``(c, z, t)``."""
        return self.c, self.z, self.t

    def with_position(self, c: int, z: int, t: int) -> "Shape":
        """Return an unowned copy placed at ``(c, z, t)``."""
        return replace(self, c=c, z=z, t=t)

    def with_transform(self, transform: Affine2D | Any) -> "Shape":
        """Return an unowned copy with ``transform`` replacing the current one."""
        return replace(self, transform=transform)

    def copy(self) -> "Shape":
        """Return an unowned copy of the shape."""
        return replace(self)

    # -----------------------------------------------------------------
    # Geometry contract
    # -----------------------------------------------------------------
    def control_points(self) -> NDArray[np.float64]:
        """Defining points in shape coordinates (transform not applied)."""
        raise NotImplementedError

    def outline(self, n_segments: int = DEFAULT_ELLIPSE_SEGMENTS) -> NDArray[np.float64]:
        """Outline vertices in shape coordinates (transform not applied)."""
        return self.control_points()

    def to_polygon_approx(
        self, n_segments: int = DEFAULT_ELLIPSE_SEGMENTS
    ) -> NDArray[np.float64]:
        """Outline vertices in image coordinates, shape ``(N, 2)``.

        Ellipses are sampled with ``n_segments`` vertices. Polygons are not
        closed with a duplicate vertex. Used for bounds and areas, never for
        export.
        """
        return self.transform(self.outline(n_segments))

    def bounding_box(self) -> "Rectangle":
        """Axis-aligned bounding rectangle in image coordinates.

        The rectangle keeps the shape's C/Z/T and style; its caption is the
        shape caption followed by ``" (Bounding Box)"``.
        """
        from .mapper import bounds

        min_x, min_y, max_x, max_y = bounds(self)
        return Rectangle(
            min_x,
            min_y,
            max_x - min_x,
            max_y - min_y,
            c=self.c,
            z=self.z,
            t=self.t,
            text=f"{self.text} (Bounding Box)",
            font_size=self.font_size,
            stroke=self.stroke,
        )

    def to_shapely(self, n_segments: int = DEFAULT_ELLIPSE_SEGMENTS) -> shp.base.BaseGeometry:
        """Shapely geometry of the shape in image coordinates."""
        return shp.Polygon(self.to_polygon_approx(n_segments))

    @property
    def area(self) -> float:
        """Area in image coordinates (0 for points and lines)."""
        return float(self.to_shapely().area)

    def _geometry(self) -> NDArray[np.float64]:
        raise NotImplementedError

    def almost_equal(self, other: "Shape", rtol: float = 1e-9, atol: float = 1e-9) -> bool:
        """Compare two shapes by value, with a tolerance on coordinates."""
        if type(self) is not type(other):
            return False
        if (self.position, self.text) != (other.position, other.text):
            return False
        mine, theirs = self._geometry(), other._geometry()
        if mine.shape != theirs.shape:
            return False
        return bool(
            np.allclose(mine, theirs, rtol=rtol, atol=atol)
            and np.allclose(self.transform.A, other.transform.A, rtol=rtol, atol=atol)
        )

    # -----------------------------------------------------------------
    # Serialisation helpers (JSON-friendly)
    # -----------------------------------------------------------------
    def _geometry_dict(self) -> dict[str, Any]:
        raise NotImplementedError

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serialisable representation."""
        return {
            "kind": self.kind,
            **self._geometry_dict(),
            "c": self.c,
            "z": self.z,
            "t": self.t,
            "transform": self.transform.to_list(),
            "text": self.text,
            "font_size": self.font_size,
            "stroke": self.stroke,
            "fill": self.fill,
            "id": self.id,
        }


# ---------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class Point(Shape):
    """A single point."""

    kind: ClassVar[str] = "point"

    x: float
    y: float

    def _validate(self) -> None:
        self._set_finite("x", "y")

    def control_points(self) -> NDArray[np.float64]:
        return np.array([[self.x, self.y]])

    def to_shapely(self, n_segments: int = DEFAULT_ELLIPSE_SEGMENTS) -> shp.Point:
        return shp.Point(self.to_polygon_approx()[0])

    def _geometry(self) -> NDArray[np.float64]:
        return np.array([self.x, self.y])

    def _geometry_dict(self) -> dict[str, Any]:
        return {"x": self.x, "y": self.y}


@dataclass(frozen=True, eq=False)
class Text(Shape):
    """A text anchor; the content is the shape caption (``text``)."""

    kind: ClassVar[str] = "text"

    x: float
    y: float

    def _validate(self) -> None:
        self._set_finite("x", "y")

    def control_points(self) -> NDArray[np.float64]:
        return np.array([[self.x, self.y]])

    def to_shapely(self, n_segments: int = DEFAULT_ELLIPSE_SEGMENTS) -> shp.Point:
        return shp.Point(self.to_polygon_approx()[0])

    def _geometry(self) -> NDArray[np.float64]:
        return np.array([self.x, self.y])

    def _geometry_dict(self) -> dict[str, Any]:
        return {"x": self.x, "y": self.y}


@dataclass(frozen=True, eq=False)
class Rectangle(Shape):
    """Axis-aligned rectangle (before transform) with top-left corner (x, y)."""

    kind: ClassVar[str] = "rectangle"

    x: float
    y: float
    width: float
    height: float

    def _validate(self) -> None:
        self._set_finite("x", "y", "width", "height")
        ensure_non_negative_size(self.width, "width")
        ensure_non_negative_size(self.height, "height")

    def control_points(self) -> NDArray[np.float64]:
        x0, y0 = self.x, self.y
        x1, y1 = self.x + self.width, self.y + self.height
        return np.array([[x0, y0], [x1, y0], [x1, y1], [x0, y1]])

    def _geometry(self) -> NDArray[np.float64]:
        return np.array([self.x, self.y, self.width, self.height])

    def _geometry_dict(self) -> dict[str, Any]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True, eq=False)
class Ellipse(Shape):
    """Axis-aligned ellipse (before transform) centred on (x, y)."""

    kind: ClassVar[str] = "ellipse"

    x: float
    y: float
    radius_x: float
    radius_y: float

    def _validate(self) -> None:
        self._set_finite("x", "y", "radius_x", "radius_y")
        ensure_non_negative_size(self.radius_x, "radius_x")
        ensure_non_negative_size(self.radius_y, "radius_y")

    def control_points(self) -> NDArray[np.float64]:
        """Axis end points: left, right, top, bottom."""
        x, y, rx, ry = self.x, self.y, self.radius_x, self.radius_y
        return np.array([[x - rx, y], [x + rx, y], [x, y - ry], [x, y + ry]])

    def outline(self, n_segments: int = DEFAULT_ELLIPSE_SEGMENTS) -> NDArray[np.float64]:
        theta = np.linspace(0.0, 2.0 * np.pi, n_segments, endpoint=False)
        return np.column_stack(
            [
                self.x + self.radius_x * np.cos(theta),
                self.y + self.radius_y * np.sin(theta),
            ]
        )

    @property
    def area(self) -> float:
        return float(np.pi * self.radius_x * self.radius_y * abs(self.transform.determinant))

    def _geometry(self) -> NDArray[np.float64]:
        return np.array([self.x, self.y, self.radius_x, self.radius_y])

    def _geometry_dict(self) -> dict[str, Any]:
        return {
            "x": self.x,
            "y": self.y,
            "radius_x": self.radius_x,
            "radius_y": self.radius_y,
        }


@dataclass(frozen=True, eq=False)
class Line(Shape):
    """Straight segment from (x1, y1) to (x2, y2) with optional end markers."""

    kind: ClassVar[str] = "line"

    x1: float
    y1: float
    x2: float
    y2: float
    marker_start: Marker = Marker.NONE
    marker_end: Marker = Marker.NONE

    def _validate(self) -> None:
        self._set_finite("x1", "y1", "x2", "y2")
        object.__setattr__(self, "marker_start", Marker.coerce(self.marker_start))
        object.__setattr__(self, "marker_end", Marker.coerce(self.marker_end))

    def control_points(self) -> NDArray[np.float64]:
        return np.array([[self.x1, self.y1], [self.x2, self.y2]])

    def to_shapely(self, n_segments: int = DEFAULT_ELLIPSE_SEGMENTS) -> shp.LineString:
        return shp.LineString(self.to_polygon_approx())

    @property
    def has_arrow(self) -> bool:
        return Marker.ARROW in (self.marker_start, self.marker_end)

    def almost_equal(self, other: Shape, rtol: float = 1e-9, atol: float = 1e-9) -> bool:
        if not super().almost_equal(other, rtol=rtol, atol=atol):
            return False
        return (self.marker_start, self.marker_end) == (
            other.marker_start,  # type: ignore[attr-defined]
            other.marker_end,  # type: ignore[attr-defined]
        )

    def _geometry(self) -> NDArray[np.float64]:
        return np.array([self.x1, self.y1, self.x2, self.y2])

    def _geometry_dict(self) -> dict[str, Any]:
        return {
            "x1": self.x1,
            "y1": self.y1,
            "x2": self.x2,
            "y2": self.y2,
            "marker_start": self.marker_start.value,
            "marker_end": self.marker_end.value,
        }


@dataclass(frozen=True, eq=False)
class Polyline(Shape):
    """Open path through at least two points."""

    kind: ClassVar[str] = "polyline"

    points: NDArray[np.float64]

    def _validate(self) -> None:
        object.__setattr__(
            self, "points", ensure_points_array(self.points, "Polyline", min_points=2)
        )

    def control_points(self) -> NDArray[np.float64]:
        return np.array(self.points)

    def to_shapely(self, n_segments: int = DEFAULT_ELLIPSE_SEGMENTS) -> shp.LineString:
        return shp.LineString(self.to_polygon_approx())

    def _geometry(self) -> NDArray[np.float64]:
        return np.asarray(self.points)

    def _geometry_dict(self) -> dict[str, Any]:
        return {"points": self.points.tolist()}


@dataclass(frozen=True, eq=False)
class Polygon(Shape):
    """Closed path through at least three distinct points.

    The closing edge is implicit: the first point is not repeated.
    """

    kind: ClassVar[str] = "polygon"

    points: NDArray[np.float64]

    def _validate(self) -> None:
        object.__setattr__(
            self,
            "points",
            ensure_points_array(self.points, "Polygon", min_points=3, distinct=True),
        )

    def control_points(self) -> NDArray[np.float64]:
        return np.array(self.points)

    def _geometry(self) -> NDArray[np.float64]:
        return np.asarray(self.points)

    def _geometry_dict(self) -> dict[str, Any]:
        return {"points": self.points.tolist()}


@dataclass(frozen=True, eq=False)
class Mask(Shape):
    """Binary raster covering the rectangle (x, y, width, height).

    ``bitmap`` has one row per pixel row: its shape must be exactly
    ``(height, width)``.
    """

    kind: ClassVar[str] = "mask"

    x: float
    y: float
    width: float
    height: float
    bitmap: NDArray[np.bool_]

    def _validate(self) -> None:
        self._set_finite("x", "y", "width", "height")
        ensure_non_negative_size(self.width, "width")
        ensure_non_negative_size(self.height, "height")
        object.__setattr__(
            self, "bitmap", ensure_bitmap(self.bitmap, self.width, self.height)
        )

    @classmethod
    def from_bitmap(cls, x: float, y: float, bitmap: Any, **kwargs: Any) -> "Mask":
        """Build a mask whose width/height are taken from ``bitmap``."""
        arr = np.asarray(bitmap)
        if arr.ndim != 2:
            # let the regular validation produce the error message
            return cls(x, y, 0, 0, arr, **kwargs)
        height, width = arr.shape
        return cls(x, y, width, height, arr, **kwargs)

    def control_points(self) -> NDArray[np.float64]:
        x0, y0 = self.x, self.y
        x1, y1 = self.x + self.width, self.y + self.height
        return np.array([[x0, y0], [x1, y0], [x1, y1], [x0, y1]])

    @property
    def area(self) -> float:
        return float(np.count_nonzero(self.bitmap) * abs(self.transform.determinant))

    def almost_equal(self, other: Shape, rtol: float = 1e-9, atol: float = 1e-9) -> bool:
        return super().almost_equal(other, rtol=rtol, atol=atol) and bool(
            np.array_equal(self.bitmap, other.bitmap)  # type: ignore[attr-defined]
        )

    def _geometry(self) -> NDArray[np.float64]:
        return np.array([self.x, self.y, self.width, self.height])

    def _geometry_dict(self) -> dict[str, Any]:
        return {
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "bitmap": mask_to_rle(self.bitmap),
        }


SHAPE_TYPES: dict[str, type[Shape]] = {
    cls.kind: cls
    for cls in (Point, Text, Rectangle, Ellipse, Line, Polyline, Polygon, Mask)
}
"""The closed set of shape variants, keyed by their ``kind`` tag."""


# ---------------------------------------------------------------------
# Run-length encoding of mask bitmaps
# ---------------------------------------------------------------------


def mask_to_rle(bitmap: NDArray[np.bool_]) -> str:
    """
    Encode a binary bitmap as ``"start1,length1,start2,length2,..."``.

    Starts are 0-indexed positions in the row-major flattened bitmap.
    """
    flat = np.asarray(bitmap, dtype=np.int8).ravel()
    padded = np.concatenate([[0], flat, [0]])
    changes = np.flatnonzero(np.diff(padded))
    starts, ends = changes[::2], changes[1::2]
    return ",".join(f"{s},{e - s}" for s, e in zip(starts, ends))


def rle_to_mask(rle: str, height: int, width: int) -> NDArray[np.bool_]:
    """
    Convert a Run-Length Encoded string to a binary bitmap.

    Parameters
    ----------
    rle : str
        The Run-Length Encoding string, e.g., "start1,length1,start2,length2,...".
        Values are 0-indexed and refer to the flattened bitmap.
    height : int
        Number of rows.
    width : int
        Number of columns.

    Returns
    -------
    NDArray[np.bool_], shape (height, width)

    Raises
    ------
    ValueError
        If RLE string is malformed or values are out of bounds.
    """
    mask = np.zeros(height * width, dtype=bool)
    if not rle.strip():
        return mask.reshape((height, width))

    try:
        rle_values = list(map(int, rle.split(",")))
    except ValueError:
        raise ValueError(f"RLE string contains non-integer values: {rle}")

    if len(rle_values) % 2 != 0:
        raise ValueError(f"RLE string has an odd number of values: {rle}")

    for start, length in zip(rle_values[::2], rle_values[1::2]):
        if start < 0 or length < 0 or start + length > mask.size:
            raise ValueError(f"RLE run ({start}, {length}) is out of bounds")
        mask[start : start + length] = True

    return mask.reshape((height, width))


def shape_from_dict(payload: Mapping[str, Any]) -> Shape:
    """Inverse of :meth:`Shape.to_dict`."""
    kind = payload.get("kind")
    try:
        cls = SHAPE_TYPES[kind]  # type: ignore[index]
    except KeyError:
        raise UnsupportedShapeError(f"Unknown shape kind {kind!r}", obj=payload) from None

    common = {
        "c": payload.get("c", -1),
        "z": payload.get("z", -1),
        "t": payload.get("t", -1),
        "transform": payload.get("transform", [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]]),
        "text": payload.get("text", ""),
        "font_size": payload.get("font_size"),
        "stroke": payload.get("stroke"),
        "fill": payload.get("fill"),
        "id": payload.get("id"),
    }

    match kind:
        case "point" | "text":
            return cls(payload["x"], payload["y"], **common)
        case "rectangle":
            return Rectangle(
                payload["x"], payload["y"], payload["width"], payload["height"], **common
            )
        case "ellipse":
            return Ellipse(
                payload["x"],
                payload["y"],
                payload["radius_x"],
                payload["radius_y"],
                **common,
            )
        case "line":
            return Line(
                payload["x1"],
                payload["y1"],
                payload["x2"],
                payload["y2"],
                marker_start=payload.get("marker_start"),
                marker_end=payload.get("marker_end"),
                **common,
            )
        case "polyline" | "polygon":
            return cls(payload["points"], **common)
        case "mask":
            width, height = payload["width"], payload["height"]
            bitmap = rle_to_mask(payload.get("bitmap", ""), int(height), int(width))
            return Mask(payload["x"], payload["y"], width, height, bitmap, **common)
        case _:  # pragma: no cover - SHAPE_TYPES lookup already failed
            raise UnsupportedShapeError(f"Unknown shape kind {kind!r}", obj=payload)
