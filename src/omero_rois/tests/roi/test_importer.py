import math
import warnings

import numpy as np
import pytest

from omero_rois.config import configure
from omero_rois.exceptions import InvalidGeometryError
from omero_rois.imagej import (
    ArrowRoi,
    EllipseRoi,
    ImageRoi,
    LineRoi,
    OvalRoi,
    PointRoi,
    PolygonRoi,
    PolygonType,
    RectRoi,
    RotatedRectRoi,
    ShapeRoi,
    TextRoi,
)
from omero_rois.roi.importer import ImageJImporter, parse_group_key, rois_from_imagej
from omero_rois.roi.mapper import bounds, transformed_points
from omero_rois.roi.shapes import (
    Ellipse,
    Line,
    Marker,
    Mask,
    Point,
    Polygon,
    Polyline,
    Rectangle,
    Text,
)
from omero_rois.transforms import IDENTITY, translate


def _single_shape(ij_roi):
    (shape,) = ImageJImporter().import_shapes(ij_roi)
    return shape


class TestShapeConversion:
    def test_rectangle(self):
        shape = _single_shape(RectRoi(1, 2, 3, 4, name="r"))
        assert isinstance(shape, Rectangle)
        assert (shape.x, shape.y, shape.width, shape.height) == (1, 2, 3, 4)
        assert shape.text == "r"
        assert shape.transform == IDENTITY

    def test_rectangle_with_raster_degrades(self):
        raster = np.ones((10, 10), dtype=np.uint8)
        shape = _single_shape(RectRoi(3, 3, 10, 10, image=raster))
        assert type(shape) is Rectangle
        assert (shape.x, shape.y, shape.width, shape.height) == (3, 3, 10, 10)

    def test_oval(self):
        shape = _single_shape(OvalRoi(4, 5, 6, 7))
        assert isinstance(shape, Ellipse)
        assert (shape.x, shape.y, shape.radius_x, shape.radius_y) == (7, 8.5, 3, 3.5)

    def test_line(self):
        shape = _single_shape(LineRoi(0, 1, 2, 3))
        assert isinstance(shape, Line)
        assert (shape.x1, shape.y1, shape.x2, shape.y2) == (0, 1, 2, 3)
        assert (shape.marker_start, shape.marker_end) == (Marker.NONE, Marker.NONE)

    def test_single_headed_arrow_puts_head_first(self):
        shape = _single_shape(ArrowRoi(3, 3, 10, 10))
        assert (shape.x1, shape.y1, shape.x2, shape.y2) == (10, 10, 3, 3)
        assert shape.marker_start is Marker.ARROW
        assert shape.marker_end is Marker.NONE

    def test_double_headed_arrow(self):
        shape = _single_shape(ArrowRoi(3, 3, 10, 10, double_headed=True))
        assert (shape.x1, shape.y1, shape.x2, shape.y2) == (3, 3, 10, 10)
        assert (shape.marker_start, shape.marker_end) == (Marker.ARROW, Marker.ARROW)

    @pytest.mark.parametrize(
        "kind, expected",
        [
            (PolygonType.POLYGON, Polygon),
            (PolygonType.FREEHAND, Polygon),
            (PolygonType.TRACED, Polygon),
            (PolygonType.POLYLINE, Polyline),
            (PolygonType.FREELINE, Polyline),
            (PolygonType.ANGLE, Polyline),
        ],
    )
    def test_polygon_family(self, kind, expected):
        shape = _single_shape(PolygonRoi([(0, 0), (3, 0), (3, 4)], kind))
        assert type(shape) is expected
        np.testing.assert_array_equal(shape.points, [[0, 0], [3, 0], [3, 4]])

    def test_multi_point_gives_one_point_each(self):
        shapes = ImageJImporter().import_shapes(
            PointRoi([(1, 2), (3, 4), (5, 6)], name="spots", z_position=2)
        )
        assert [type(s) for s in shapes] == [Point, Point, Point]
        assert [(s.x, s.y) for s in shapes] == [(1, 2), (3, 4), (5, 6)]
        assert all(s.text == "spots" and s.z == 2 for s in shapes)

    def test_text(self):
        shape = _single_shape(TextRoi(1, 2, text="hello", font_size=14, name="label"))
        assert isinstance(shape, Text)
        assert shape.text == "hello"
        assert shape.font_size == 14.0

    def test_image_roi_becomes_mask(self):
        raster = np.zeros((3, 4), dtype=np.uint8)
        raster[1, 2] = 255
        shape = _single_shape(ImageRoi(5, 6, raster))
        assert isinstance(shape, Mask)
        assert (shape.x, shape.y, shape.width, shape.height) == (5, 6, 4, 3)
        assert shape.bitmap.sum() == 1 and shape.bitmap[1, 2]

    def test_rotated_rectangle(self):
        shape = _single_shape(RotatedRectRoi(0, 0, 0, 4, rect_width=2))
        assert isinstance(shape, Rectangle)
        assert (shape.width, shape.height) == (4, 2)
        corners = transformed_points(shape)
        np.testing.assert_allclose(
            bounds(shape), (-1.0, 0.0, 1.0, 4.0), atol=1e-12
        )
        assert corners.shape == (4, 2)

    def test_rotated_ellipse(self):
        shape = _single_shape(EllipseRoi(0, 0, 6, 6, aspect_ratio=0.5))
        assert isinstance(shape, Ellipse)
        length = math.hypot(6, 6)
        assert shape.radius_x == pytest.approx(length / 2)
        assert shape.radius_y == pytest.approx(length / 4)
        np.testing.assert_allclose(transformed_points(shape)[:2], [[0, 0], [6, 6]], atol=1e-12)

    def test_position_and_style(self):
        shape = _single_shape(
            RectRoi(
                0,
                0,
                1,
                1,
                c_position=0,
                t_position=5,
                stroke_color="#ff0000ff",
                fill_color="#00ff0080",
            )
        )
        assert shape.position == (0, -1, 5)
        assert (shape.stroke, shape.fill) == ("#ff0000ff", "#00ff0080")

    def test_foreign_transform_is_kept(self):
        shape = _single_shape(RectRoi(0, 0, 1, 1, transform=translate(5, 5)))
        assert shape.transform == translate(5, 5)

    def test_foreign_transform_composes_after_rotation(self):
        shape = _single_shape(
            RotatedRectRoi(0, 0, 0, 4, rect_width=2, transform=translate(10, 0))
        )
        np.testing.assert_allclose(bounds(shape), (9.0, 0.0, 11.0, 4.0), atol=1e-12)

    def test_composite_is_unsupported(self):
        from omero_rois.exceptions import UnsupportedShapeError

        with pytest.raises(UnsupportedShapeError) as info:
            ImageJImporter().import_shapes(ShapeRoi())
        assert isinstance(info.value.obj, ShapeRoi)

    def test_degenerate_geometry_propagates(self):
        with pytest.raises(InvalidGeometryError):
            ImageJImporter().import_shapes(RectRoi(0, 0, -1, 1))


class TestGroupKey:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("24", 24),
            (" 24 ", 24),
            ("024", 24),
            ("-3", -3),
            ("invalid", None),
            ("", None),
            ("2.5", None),
            ("2_4", None),
            (None, None),
        ],
    )
    def test_parse(self, value, expected):
        assert parse_group_key(value) == expected


class TestGrouping:
    def test_scenario_rectangle_and_oval(self, grouped_foreign_rois):
        rois = rois_from_imagej(grouped_foreign_rois)
        assert len(rois) == 1
        rect, oval = rois[0]
        assert isinstance(rect, Rectangle)
        assert (rect.x, rect.y, rect.width, rect.height) == (1, 2, 3, 4)
        assert rect.position == (1, 2, 3)
        assert isinstance(oval, Ellipse)
        assert (oval.x, oval.y, oval.radius_x, oval.radius_y) == (7, 8.5, 3, 3.5)
        assert oval.position == (0, 1, 3)

    def test_invalid_values_are_singletons(self):
        a = RectRoi(0, 0, 1, 1, properties={"ROI": "24"})
        b = OvalRoi(0, 0, 1, 1, properties={"ROI": "24"})
        c = LineRoi(0, 0, 1, 1, properties={"ROI": "invalid"})
        rois = rois_from_imagej([a, b, c])
        assert len(rois) == 2
        assert [type(s) for s in rois[0]] == [Rectangle, Ellipse]
        assert [type(s) for s in rois[1]] == [Line]

    def test_missing_values_are_singletons(self):
        rois = rois_from_imagej([RectRoi(0, 0, 1, 1), RectRoi(1, 1, 1, 1)])
        assert [len(roi) for roi in rois] == [1, 1]

    def test_leading_zeros_share_a_roi(self):
        rois = rois_from_imagej(
            [
                RectRoi(0, 0, 1, 1, properties={"ROI": "024"}),
                RectRoi(0, 0, 1, 1, properties={"ROI": " 24"}),
            ]
        )
        assert len(rois) == 1

    def test_order_of_first_appearance(self):
        ij_rois = [
            RectRoi(0, 0, 1, 1, properties={"ROI": "2"}),
            RectRoi(1, 0, 1, 1, properties={"ROI": "1"}),
            RectRoi(2, 0, 1, 1, properties={"ROI": "2"}),
        ]
        rois = rois_from_imagej(ij_rois)
        assert [[s.x for s in roi] for roi in rois] == [[0, 2], [1]]

    def test_grouping_disabled(self, grouped_foreign_rois):
        assert len(rois_from_imagej(grouped_foreign_rois, property=None)) == 2

    def test_custom_property(self):
        ij_rois = [
            RectRoi(0, 0, 1, 1, properties={"cell": "1", "ROI": "1"}),
            RectRoi(0, 0, 1, 1, properties={"cell": "1", "ROI": "2"}),
        ]
        assert len(rois_from_imagej(ij_rois, property="cell")) == 1
        assert len(rois_from_imagej(ij_rois)) == 2

    def test_blank_property_uses_default(self, grouped_foreign_rois):
        assert len(rois_from_imagej(grouped_foreign_rois, property="  ")) == 1

    def test_configured_default_property(self):
        configure(property="cell")
        ij_rois = [
            RectRoi(0, 0, 1, 1, properties={"cell": "7"}),
            RectRoi(0, 0, 1, 1, properties={"cell": "7"}),
        ]
        assert len(rois_from_imagej(ij_rois)) == 1

    def test_roi_name_from_property(self):
        rois = rois_from_imagej(
            [RectRoi(0, 0, 1, 1, properties={"ROI": "1", "ROI_NAME": "nucleus"})]
        )
        assert rois[0].name == "nucleus"

    def test_unsupported_is_skipped_with_warning(self):
        ij_rois = [
            RectRoi(0, 0, 1, 1, properties={"ROI": "1"}),
            ShapeRoi(name="composite", properties={"ROI": "1"}),
            ShapeRoi(name="alone", properties={"ROI": "2"}),
        ]
        with pytest.warns(UserWarning, match="composite"):
            rois = rois_from_imagej(ij_rois)
        assert len(rois) == 1
        assert len(rois[0]) == 1

    def test_empty_point_roi_gives_no_roi(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            assert rois_from_imagej([PointRoi(np.empty((0, 2)))]) == []
