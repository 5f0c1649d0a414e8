"""
roi
===

Server-side ROI objects and their conversion to and from ImageJ-style ROIs.

This sub-package offers:

* :class:`Shape` and its variants - immutable geometric primitives
* :class:`ROI`  - an ordered collection of exclusively-owned shapes
* :class:`CoordinateMapper` - transform composition, baking and bounds
* Import / export of ImageJ-style ROIs, grouped by a string property
* JSON and pandas helpers, and the :class:`RoiStore` persistence seam

"""

from __future__ import annotations

# --- core value objects ---------------------------------
from .core import ROI, Bounds, ROIState
from .shapes import (
    SHAPE_TYPES,
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
    shape_from_dict,
)
from .mapper import CoordinateMapper

# --- conversion -----------------------------------------
from .exporter import ImageJExporter, export_shape, rois_to_imagej
from .importer import ImageJImporter, rois_from_imagej

# --- thin adapters --------------------------------------
from .io import rois_from_json, rois_to_dataframe, rois_to_json
from .store import RoiStore, delete_roi, load_rois, save_rois

__all__ = [
    "ROI",
    "ROIState",
    "Bounds",
    "Shape",
    "SHAPE_TYPES",
    "Point",
    "Text",
    "Rectangle",
    "Ellipse",
    "Line",
    "Polyline",
    "Polygon",
    "Mask",
    "Marker",
    "shape_from_dict",
    "CoordinateMapper",
    "ImageJImporter",
    "rois_from_imagej",
    "ImageJExporter",
    "rois_to_imagej",
    "export_shape",
    "rois_to_json",
    "rois_from_json",
    "rois_to_dataframe",
    "RoiStore",
    "save_rois",
    "load_rois",
    "delete_roi",
]
