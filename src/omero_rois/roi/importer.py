"""
roi/importer.py
===============

Convert ImageJ-style ROIs into :class:`~omero_rois.roi.core.ROI` aggregates.

Foreign ROIs sharing the same integer value in the grouping property (``"ROI"``
by default) end up in one ROI, in order of first appearance. ROIs without a
usable value each become their own ROI. Foreign kinds without a shape
counterpart are skipped with a warning.
"""

from __future__ import annotations

import math
import re
import warnings
from collections.abc import Iterable
from logging import getLogger
from typing import Any

import numpy as np

from omero_rois.config import (
    DEFAULT,
    get_settings,
    name_property,
    resolve_property,
)
from omero_rois.exceptions import UnsupportedShapeError
from omero_rois.imagej import (
    ArrowRoi,
    EllipseRoi,
    ImageJRoi,
    ImageRoi,
    LineRoi,
    OvalRoi,
    PointRoi,
    PolygonRoi,
    RectRoi,
    RotatedRectRoi,
    TextRoi,
)
from omero_rois.transforms import IDENTITY, rotate

from .core import ROI
from .mapper import CoordinateMapper
from .shapes import (
    Ellipse,
    Line,
    Marker,
    Mask,
    Point,
    Polygon,
    Polyline,
    Rectangle,
    Shape,
    Text,
)

logger = getLogger(__name__)

_INTEGER = re.compile(r"[+-]?\d+")


def parse_group_key(value: str | None) -> int | None:
    """Canonical grouping key of a property value.

    Values are compared as integers, so ``"024"``, ``" 24 "`` and ``"24"``
    share a key. Missing or non-integer values give None.
    """
    if value is None:
        return None
    stripped = value.strip()
    if not _INTEGER.fullmatch(stripped):
        return None
    return int(stripped)


def _plane(position: int | None) -> int:
    return -1 if position is None else position


def _axis(x1: float, y1: float, x2: float, y2: float) -> tuple[float, float, float, float]:
    """Centre, length and angle of the segment (x1, y1)-(x2, y2)."""
    cx, cy = (x1 + x2) / 2.0, (y1 + y2) / 2.0
    return cx, cy, math.hypot(x2 - x1, y2 - y1), math.atan2(y2 - y1, x2 - x1)


class ImageJImporter:
    """
    Import foreign ROIs as shapes and group them into ROIs.

    Parameters
    ----------
    property : str, None or DEFAULT, optional
        Foreign property holding the ROI index. ``DEFAULT`` (the default)
        uses the configured key, None disables grouping, a blank string falls
        back to the configured key.
    mapper : CoordinateMapper, optional
        Coordinate helper; one is built from the settings when omitted.
    """

    def __init__(self, property: Any = DEFAULT, mapper: CoordinateMapper | None = None) -> None:
        self.property = resolve_property(property)
        if mapper is None:
            mapper = CoordinateMapper(get_settings().ellipse_segments)
        self.mapper = mapper

    # -----------------------------------------------------------------
    # Single foreign ROI
    # -----------------------------------------------------------------
    def import_shapes(self, ij_roi: ImageJRoi) -> list[Shape]:
        """Convert one foreign ROI into one or more shapes.

        Raises
        ------
        UnsupportedShapeError
            If the foreign kind has no shape counterpart.
        InvalidGeometryError
            If the foreign geometry is degenerate.
        """
        common: dict[str, Any] = {
            "c": _plane(ij_roi.c_position),
            "z": _plane(ij_roi.z_position),
            "t": _plane(ij_roi.t_position),
            "text": ij_roi.name or "",
            "stroke": ij_roi.stroke_color,
            "fill": ij_roi.fill_color,
            "transform": ij_roi.transform if ij_roi.transform is not None else IDENTITY,
        }

        match ij_roi:
            case ArrowRoi(double_headed=True):
                shapes = [
                    Line(
                        ij_roi.x1,
                        ij_roi.y1,
                        ij_roi.x2,
                        ij_roi.y2,
                        marker_start=Marker.ARROW,
                        marker_end=Marker.ARROW,
                        **common,
                    )
                ]
            case ArrowRoi():
                # the head becomes the first point
                shapes = [
                    Line(
                        ij_roi.x2,
                        ij_roi.y2,
                        ij_roi.x1,
                        ij_roi.y1,
                        marker_start=Marker.ARROW,
                        **common,
                    )
                ]
            case LineRoi():
                shapes = [Line(ij_roi.x1, ij_roi.y1, ij_roi.x2, ij_roi.y2, **common)]
            case RectRoi():
                shapes = [
                    Rectangle(ij_roi.x, ij_roi.y, ij_roi.width, ij_roi.height, **common)
                ]
            case OvalRoi():
                rx, ry = ij_roi.width / 2.0, ij_roi.height / 2.0
                shapes = [Ellipse(ij_roi.x + rx, ij_roi.y + ry, rx, ry, **common)]
            case PolygonRoi():
                cls = Polygon if ij_roi.type.closed else Polyline
                shapes = [cls(ij_roi.points, **common)]
            case PointRoi():
                shapes = [Point(x, y, **common) for x, y in ij_roi.points.tolist()]
            case TextRoi():
                common["text"] = ij_roi.text
                shapes = [Text(ij_roi.x, ij_roi.y, font_size=ij_roi.font_size, **common)]
            case ImageRoi():
                bitmap = np.asarray(ij_roi.raster) != 0
                shapes = [Mask.from_bitmap(ij_roi.x, ij_roi.y, bitmap, **common)]
            case RotatedRectRoi():
                cx, cy, length, angle = _axis(ij_roi.x1, ij_roi.y1, ij_roi.x2, ij_roi.y2)
                width = ij_roi.rect_width
                rect = Rectangle(
                    cx - length / 2.0, cy - width / 2.0, length, width, **common
                )
                shapes = [self.mapper.apply_transform(rect, rotate(angle, cx, cy))]
            case EllipseRoi():
                cx, cy, length, angle = _axis(ij_roi.x1, ij_roi.y1, ij_roi.x2, ij_roi.y2)
                radius = length / 2.0
                ellipse = Ellipse(cx, cy, radius, ij_roi.aspect_ratio * radius, **common)
                shapes = [self.mapper.apply_transform(ellipse, rotate(angle, cx, cy))]
            case _:
                raise UnsupportedShapeError(
                    f"Unsupported ImageJ ROI type: {type(ij_roi).__name__}", obj=ij_roi
                )

        return shapes

    def group_key(self, ij_roi: ImageJRoi) -> int | None:
        """Grouping key of ``ij_roi``, or None when it forms its own ROI."""
        if self.property is None:
            return None
        return parse_group_key(ij_roi.get_property(self.property))

    def roi_name(self, ij_roi: ImageJRoi) -> str | None:
        if self.property is None:
            return None
        return ij_roi.get_property(name_property(self.property))

    # -----------------------------------------------------------------
    # Batch
    # -----------------------------------------------------------------
    def import_rois(self, ij_rois: Iterable[ImageJRoi]) -> list[ROI]:
        """Convert and group foreign ROIs.

        Parameters
        ----------
        ij_rois : iterable of ImageJRoi
            Foreign ROIs, in display order.

        Returns
        -------
        list of ROI
            ROIs in order of first appearance of their key; shapes keep the
            input order.
        """
        rois: list[ROI] = []
        by_key: dict[int, ROI] = {}
        n_skipped = 0

        for ij_roi in ij_rois:
            try:
                shapes = self.import_shapes(ij_roi)
            except UnsupportedShapeError as e:
                warnings.warn(f"Skipping foreign ROI {ij_roi.name!r}: {e}", stacklevel=2)
                n_skipped += 1
                continue

            key = self.group_key(ij_roi)
            roi = by_key.get(key) if key is not None else None
            if roi is None:
                roi = ROI()
                rois.append(roi)
                if key is not None:
                    by_key[key] = roi
            if roi.name is None:
                roi.name = self.roi_name(ij_roi)
            roi.add_shapes(shapes)
            logger.debug(
                "Imported %s as %d shape(s) (key=%s)",
                type(ij_roi).__name__,
                len(shapes),
                key,
            )

        rois = [roi for roi in rois if len(roi)]
        logger.info(
            "Imported %d ROI(s), skipped %d unsupported foreign ROI(s)",
            len(rois),
            n_skipped,
        )
        return rois


def rois_from_imagej(ij_rois: Iterable[ImageJRoi], property: Any = DEFAULT) -> list[ROI]:
    """Convert foreign ROIs to ROIs, grouped by ``property``.

    See :class:`ImageJImporter`.

    Examples
    --------
    >>> from omero_rois.imagej import RectRoi
    >>> rois = rois_from_imagej([RectRoi(1, 2, 3, 4, properties={"ROI": "1"})])
    >>> len(rois), type(rois[0][0]).__name__
    (1, 'Rectangle')
    """
    return ImageJImporter(property).import_rois(ij_rois)
