"""
roi/exporter.py
===============

Convert :class:`~omero_rois.roi.core.ROI` aggregates into a flat list of
ImageJ-style ROIs.

Every foreign ROI produced from the ROI at 1-based position *i* is stamped
with the grouping property ``<key> = "i"``, plus ``<key>_NAME`` and
``<key>_ID`` when the ROI has a name or a server id, so that
:func:`~omero_rois.roi.importer.rois_from_imagej` rebuilds the same grouping.
"""

from __future__ import annotations

import warnings
from collections.abc import Iterable
from logging import getLogger
from typing import Any

import numpy as np

from omero_rois.config import (
    DEFAULT,
    get_settings,
    id_property,
    name_property,
    resolve_property,
)
from omero_rois.exceptions import UnsupportedShapeError
from omero_rois.imagej import (
    ArrowRoi,
    EllipseRoi,
    ImageJRoi,
    LineRoi,
    OvalRoi,
    PointRoi,
    PolygonRoi,
    PolygonType,
    RectRoi,
    RotatedRectRoi,
    TextRoi,
)

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


def _position(index: int) -> int | None:
    return index if index >= 0 else None


def _ellipse_extent(ij_roi: ImageJRoi) -> list[float]:
    if isinstance(ij_roi, OvalRoi):
        return [ij_roi.x, ij_roi.y, ij_roi.width, ij_roi.height]
    return [ij_roi.x1, ij_roi.y1, ij_roi.x2, ij_roi.y2, ij_roi.aspect_ratio]


class ImageJExporter:
    """
    Export ROIs as foreign ROIs.

    Parameters
    ----------
    property : str, None or DEFAULT, optional
        Foreign property receiving the ROI index. ``DEFAULT`` uses the
        configured key; None writes no property.
    group_rois : bool, optional
        Set the foreign group number to the ROI index when there are fewer
        ROIs than ``max_groups``. Defaults to the configured value.
    mapper : CoordinateMapper, optional
        Coordinate helper; one is built from the settings when omitted.

    Notes
    -----
    Ellipses are written by their corners or by the ends of their major
    axis. Shapes whose corners overflow a float are rejected, and the centre
    is only recovered to within ``1e-9`` relative to the larger of the
    centre coordinate and the radius.
    """

    def __init__(
        self,
        property: Any = DEFAULT,
        group_rois: bool | None = None,
        mapper: CoordinateMapper | None = None,
    ) -> None:
        settings = get_settings()
        self.property = resolve_property(property)
        self.group_rois = settings.group_rois if group_rois is None else group_rois
        self.max_groups = settings.max_groups
        self.mapper = mapper if mapper is not None else CoordinateMapper(settings.ellipse_segments)

    # -----------------------------------------------------------------
    # Geometry
    # -----------------------------------------------------------------
    def _rectangle(self, shape: Rectangle) -> ImageJRoi:
        transform = shape.transform
        if transform.is_identity():
            return RectRoi(shape.x, shape.y, shape.width, shape.height)
        if transform.is_axis_aligned():
            min_x, min_y, max_x, max_y = self.mapper.bounds(shape)
            return RectRoi(min_x, min_y, max_x - min_x, max_y - min_y)
        if transform.has_orthogonal_axes():
            mid_y = shape.y + shape.height / 2.0
            (x1, y1), (x2, y2) = transform(
                np.array([[shape.x, mid_y], [shape.x + shape.width, mid_y]])
            )
            rect_width = float(np.linalg.norm(transform.linear[:, 1])) * shape.height
            return RotatedRectRoi(float(x1), float(y1), float(x2), float(y2), rect_width)
        warnings.warn(
            "Rectangle with a sheared transform exported as a polygon", stacklevel=3
        )
        return PolygonRoi(self.mapper.transformed_points(shape), PolygonType.POLYGON)

    def _ellipse(self, shape: Ellipse) -> ImageJRoi:
        ij_roi = self._ellipse_geometry(shape)
        if not np.isfinite(_ellipse_extent(ij_roi)).all():
            raise UnsupportedShapeError(
                "Ellipse is too large for a corner-based foreign ROI", obj=shape
            )
        return ij_roi

    def _ellipse_geometry(self, shape: Ellipse) -> ImageJRoi:
        transform = shape.transform
        if transform.is_identity():
            rx, ry = shape.radius_x, shape.radius_y
            return OvalRoi(shape.x - rx, shape.y - ry, 2.0 * rx, 2.0 * ry)
        if transform.is_axis_aligned():
            min_x, min_y, max_x, max_y = self.mapper.bounds(shape)
            return OvalRoi(min_x, min_y, max_x - min_x, max_y - min_y)
        # principal axes of the transformed ellipse
        axes = transform.linear @ np.diag([shape.radius_x, shape.radius_y])
        if not np.isfinite(axes).all():
            raise UnsupportedShapeError(
                "Ellipse is too large for a corner-based foreign ROI", obj=shape
            )
        u, s, _ = np.linalg.svd(axes)
        cx, cy = transform(np.array([shape.x, shape.y], dtype=float))
        major = u[:, 0] * s[0]
        ratio = float(s[1] / s[0]) if s[0] > 0 else 0.0
        return EllipseRoi(
            float(cx - major[0]),
            float(cy - major[1]),
            float(cx + major[0]),
            float(cy + major[1]),
            ratio,
        )

    def _line(self, shape: Line) -> ImageJRoi:
        (x1, y1), (x2, y2) = self.mapper.transformed_points(shape).tolist()
        markers = (shape.marker_start, shape.marker_end)
        if markers == (Marker.ARROW, Marker.ARROW):
            return ArrowRoi(x1, y1, x2, y2, double_headed=True)
        if Marker.ARROW in markers:
            # imported back with the end points swapped, head first
            return ArrowRoi(x1, y1, x2, y2)
        return LineRoi(x1, y1, x2, y2)

    def _mask(self, shape: Mask) -> ImageJRoi:
        if not shape.transform.is_identity():
            warnings.warn("Mask transform dropped on export", stacklevel=3)
        return RectRoi(
            shape.x, shape.y, shape.width, shape.height, image=np.array(shape.bitmap)
        )

    def export_shape(self, shape: Shape) -> ImageJRoi:
        """Convert one shape (geometry, caption, style and position).

        Raises
        ------
        UnsupportedShapeError
            If the shape variant has no foreign counterpart.
        """
        match shape:
            case Point():
                ij_roi: ImageJRoi = PointRoi(self.mapper.transformed_points(shape))
            case Text():
                (x, y), = self.mapper.transformed_points(shape).tolist()
                ij_roi = TextRoi(x, y, text=shape.text, font_size=shape.font_size)
            case Rectangle():
                ij_roi = self._rectangle(shape)
            case Ellipse():
                ij_roi = self._ellipse(shape)
            case Line():
                ij_roi = self._line(shape)
            case Polyline():
                ij_roi = PolygonRoi(self.mapper.transformed_points(shape), PolygonType.POLYLINE)
            case Polygon():
                ij_roi = PolygonRoi(self.mapper.transformed_points(shape), PolygonType.POLYGON)
            case Mask():
                ij_roi = self._mask(shape)
            case _:
                raise UnsupportedShapeError(
                    f"Unsupported shape type: {type(shape).__name__}", obj=shape
                )

        ij_roi.name = shape.text
        ij_roi.set_position(_position(shape.c), _position(shape.z), _position(shape.t))
        ij_roi.stroke_color = shape.stroke
        ij_roi.fill_color = shape.fill
        return ij_roi

    # -----------------------------------------------------------------
    # Batch
    # -----------------------------------------------------------------
    def stamp(self, ij_roi: ImageJRoi, roi: ROI, index: int, grouped: bool) -> None:
        """Write the grouping metadata of the ROI at 1-based ``index``."""
        if self.property is not None:
            ij_roi.set_property(self.property, index)
            if roi.name:
                ij_roi.set_property(name_property(self.property), roi.name)
            if roi.id is not None:
                ij_roi.set_property(id_property(self.property), roi.id)
        if grouped:
            ij_roi.group = index

    def export_rois(self, rois: Iterable[ROI]) -> list[ImageJRoi]:
        """Convert ROIs into a flat list of foreign ROIs.

        Shapes without a foreign counterpart are skipped with a warning.
        """
        rois = list(rois)
        grouped = self.group_rois and len(rois) < self.max_groups
        ij_rois: list[ImageJRoi] = []
        n_skipped = 0

        for index, roi in enumerate(rois, start=1):
            for shape in roi:
                try:
                    ij_roi = self.export_shape(shape)
                except UnsupportedShapeError as e:
                    warnings.warn(f"Skipping shape of ROI {index}: {e}", stacklevel=2)
                    n_skipped += 1
                    continue
                self.stamp(ij_roi, roi, index, grouped)
                ij_rois.append(ij_roi)

        logger.info(
            "Exported %d ROI(s) as %d foreign ROI(s), skipped %d shape(s)",
            len(rois),
            len(ij_rois),
            n_skipped,
        )
        return ij_rois


def rois_to_imagej(
    rois: Iterable[ROI], property: Any = DEFAULT, group_rois: bool | None = None
) -> list[ImageJRoi]:
    """Convert ROIs to foreign ROIs. See :class:`ImageJExporter`."""
    return ImageJExporter(property, group_rois).export_rois(rois)


def export_shape(shape: Shape) -> ImageJRoi:
    """Convert a single shape with the default settings."""
    return ImageJExporter().export_shape(shape)
