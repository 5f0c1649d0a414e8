"""Shared test fixtures for omero_rois tests.

This module provides:
1. Isolation of the process-wide conversion settings
2. Sample shapes, ROIs and foreign ROIs used across test modules
3. An in-memory RoiStore double
"""

import numpy as np
import pytest

from omero_rois import config
from omero_rois.imagej import OvalRoi, RectRoi
from omero_rois.roi import ROI, Ellipse, Line, Marker, Mask, Point, Polygon, Rectangle


# ==============================================================================
# SETTINGS
# ==============================================================================


@pytest.fixture(autouse=True)
def reset_settings():
    """Every test starts with default, unfrozen settings."""
    config._reset_settings()
    yield
    config._reset_settings()


# ==============================================================================
# SHAPE / ROI FIXTURES
# ==============================================================================


@pytest.fixture
def rectangle():
    return Rectangle(1.0, 2.0, 3.0, 4.0, c=1, z=2, t=3, text="rect")


@pytest.fixture
def triangle():
    return Polygon([(0.0, 0.0), (3.0, 0.0), (3.0, 4.0)])


@pytest.fixture
def mask():
    bitmap = np.zeros((10, 10), dtype=bool)
    bitmap[2:5, 3:8] = True
    return Mask(3.0, 3.0, 10, 10, bitmap)


@pytest.fixture
def mixed_roi():
    """ROI holding one shape of most variants."""
    return ROI(
        [
            Point(5.0, 6.0, c=0, z=0, t=0),
            Rectangle(1.0, 2.0, 3.0, 4.0),
            Ellipse(10.0, 10.0, 4.0, 2.0, z=3),
            Line(0.0, 0.0, 5.0, 5.0, marker_end=Marker.ARROW),
            Polygon([(0.0, 0.0), (3.0, 0.0), (3.0, 4.0)]),
        ],
        name="mixed",
    )


@pytest.fixture
def grouped_foreign_rois():
    """Rectangle and oval sharing grouping value "24"."""
    rect = RectRoi(1, 2, 3, 4, properties={"ROI": "24"}, c_position=1, z_position=2, t_position=3)
    oval = OvalRoi(4, 5, 6, 7, properties={"ROI": "24"}, c_position=0, z_position=1, t_position=3)
    return [rect, oval]


# ==============================================================================
# STORE DOUBLE
# ==============================================================================


class FakeStore:
    """In-memory RoiStore recording calls; ``fail`` makes save() raise."""

    def __init__(self, fail=False):
        self.fail = fail
        self.saved = []
        self.deleted = []
        self.by_image = {}
        self._next_id = 100

    def save(self, rois):
        if self.fail:
            raise ConnectionError("server unavailable")
        ids = []
        for roi in rois:
            self._next_id += 1
            ids.append(self._next_id)
            self.saved.append(roi)
        return ids

    def fetch_by_image(self, image_id):
        return [ROI.from_dict(d) for d in self.by_image.get(image_id, [])]

    def delete(self, roi):
        self.deleted.append(roi)


@pytest.fixture
def store_class():
    return FakeStore


@pytest.fixture
def store():
    return FakeStore()
