"""
imagej.py
=========

In-memory model of ImageJ-style ROIs.

The classes mirror the ImageJ ``Roi`` family closely enough for conversion:
float geometry, a string property map, optional C/Z/T
positions (``None`` when the ROI is not tied to a plane), colours, a group
number and an optional affine transform applied on top of the geometry.

========================  ===========================================
Class                     ImageJ counterpart
========================  ===========================================
:class:`RectRoi`          ``Roi`` (rectangle, optionally with a raster)
:class:`OvalRoi`          ``OvalRoi``
:class:`LineRoi`          ``Line``
:class:`ArrowRoi`         ``Arrow``
:class:`PolygonRoi`       ``PolygonRoi`` (polygon, freehand, traced,
                          polyline, freeline, angle)
:class:`PointRoi`         ``PointRoi`` (multi-point)
:class:`TextRoi`          ``TextRoi``
:class:`ImageRoi`         ``ImageRoi`` (raster overlay)
:class:`RotatedRectRoi`   ``RotatedRectRoi``
:class:`EllipseRoi`       ``EllipseRoi`` (rotated ellipse)
:class:`ShapeRoi`         ``ShapeRoi`` (composite)
========================  ===========================================
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum

import numpy as np
from numpy.typing import NDArray

from omero_rois.transforms import Affine2D


class PolygonType(Enum):
    """Sub-types of :class:`PolygonRoi`."""

    POLYGON = "polygon"
    FREEHAND = "freehand"
    TRACED = "traced"
    POLYLINE = "polyline"
    FREELINE = "freeline"
    ANGLE = "angle"

    @property
    def closed(self) -> bool:
        """True for area types, False for line types."""
        return self in (PolygonType.POLYGON, PolygonType.FREEHAND, PolygonType.TRACED)


@dataclass(eq=False, kw_only=True)
class ImageJRoi:
    """Attributes shared by every foreign ROI."""

    name: str = ""
    properties: dict[str, str] = field(default_factory=dict)
    c_position: int | None = None
    z_position: int | None = None
    t_position: int | None = None
    stroke_color: str | None = None
    fill_color: str | None = None
    group: int = 0
    transform: Affine2D | None = None

    def get_property(self, key: str) -> str | None:
        return self.properties.get(key)

    def set_property(self, key: str, value: object) -> None:
        self.properties[key] = str(value)

    @property
    def position(self) -> tuple[int | None, int | None, int | None]:
        return self.c_position, self.z_position, self.t_position

    def set_position(
        self, c: int | None = None, z: int | None = None, t: int | None = None
    ) -> None:
        self.c_position, self.z_position, self.t_position = c, z, t


@dataclass(eq=False)
class RectRoi(ImageJRoi):
    """Rectangle; ``image`` optionally holds the raster of an exported mask."""

    x: float
    y: float
    width: float
    height: float
    image: NDArray | None = None


@dataclass(eq=False)
class OvalRoi(ImageJRoi):
    """Ellipse inscribed in the rectangle (x, y, width, height)."""

    x: float
    y: float
    width: float
    height: float


@dataclass(eq=False)
class LineRoi(ImageJRoi):
    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def length(self) -> float:
        return math.hypot(self.x2 - self.x1, self.y2 - self.y1)


@dataclass(eq=False)
class ArrowRoi(LineRoi):
    """Line with an arrow head on (x2, y2), or on both ends if double-headed."""

    double_headed: bool = False


@dataclass(eq=False)
class PolygonRoi(ImageJRoi):
    points: NDArray[np.float64]
    type: PolygonType = PolygonType.POLYGON

    def __post_init__(self) -> None:
        self.points = np.array(self.points, dtype=float).reshape(-1, 2)
        self.type = PolygonType(self.type)


@dataclass(eq=False)
class PointRoi(ImageJRoi):
    points: NDArray[np.float64]

    def __post_init__(self) -> None:
        self.points = np.array(self.points, dtype=float).reshape(-1, 2)


@dataclass(eq=False)
class TextRoi(ImageJRoi):
    x: float
    y: float
    text: str = ""
    font_size: float | None = None


@dataclass(eq=False)
class ImageRoi(ImageJRoi):
    """Raster overlay placed with its top-left corner at (x, y)."""

    x: float
    y: float
    raster: NDArray

    def __post_init__(self) -> None:
        self.raster = np.array(self.raster)

    @property
    def width(self) -> int:
        return int(self.raster.shape[1])

    @property
    def height(self) -> int:
        return int(self.raster.shape[0])


@dataclass(eq=False)
class RotatedRectRoi(ImageJRoi):
    """Rectangle of width ``rect_width`` centred on the axis (x1, y1)-(x2, y2)."""

    x1: float
    y1: float
    x2: float
    y2: float
    rect_width: float


@dataclass(eq=False)
class EllipseRoi(ImageJRoi):
    """Ellipse with major axis (x1, y1)-(x2, y2) and minor/major ``aspect_ratio``."""

    x1: float
    y1: float
    x2: float
    y2: float
    aspect_ratio: float


@dataclass(eq=False)
class ShapeRoi(ImageJRoi):
    """Composite of other ROIs (boolean combination)."""

    parts: list[ImageJRoi] = field(default_factory=list)
