import numpy as np
import pytest

from omero_rois.exceptions import ROIStateError, ShapeOwnershipError
from omero_rois.roi.core import ROI, Bounds, ROIState
from omero_rois.roi.shapes import Ellipse, Point, Polygon, Rectangle
from omero_rois.transforms import translate


def test_roi_creation(mixed_roi):
    assert len(mixed_roi) == 5
    assert mixed_roi.name == "mixed"
    assert mixed_roi.state is ROIState.NEW
    assert mixed_roi.id is None
    assert all(shape.roi is mixed_roi for shape in mixed_roi)


def test_shapes_keep_insertion_order():
    shapes = [Point(i, i) for i in range(4)]
    roi = ROI(shapes)
    assert [s.x for s in roi] == [0.0, 1.0, 2.0, 3.0]
    assert roi[2] is shapes[2]
    assert roi.shapes == shapes
    assert roi.shapes is not roi.shapes


def test_shapes_of(mixed_roi):
    assert [type(s) for s in mixed_roi.shapes_of(Rectangle, Ellipse)] == [
        Rectangle,
        Ellipse,
    ]
    assert mixed_roi.shapes_of(Polygon)[0].points.shape == (3, 2)


class TestOwnership:
    def test_shape_cannot_join_two_rois(self):
        p = Point(0, 0)
        ROI([p])
        with pytest.raises(ShapeOwnershipError, match="another ROI"):
            ROI([p])

    def test_shape_cannot_be_added_twice(self):
        p = Point(0, 0)
        roi = ROI([p])
        with pytest.raises(ShapeOwnershipError, match="this ROI"):
            roi.add_shape(p)
        assert len(roi) == 1

    def test_reparenting(self):
        p = Point(0, 0)
        first, second = ROI([p]), ROI()
        removed = first.remove_shape(p)
        assert removed is p
        assert p.roi is None
        second.add_shape(p)
        assert p.roi is second
        assert len(first) == 0

    def test_remove_by_index(self, mixed_roi):
        first = mixed_roi[0]
        assert mixed_roi.remove_shape(0) is first
        assert first not in mixed_roi

    def test_remove_foreign_shape(self):
        with pytest.raises(ValueError):
            ROI([Point(0, 0)]).remove_shape(Point(0, 0))

    def test_copy_is_unowned(self):
        p = Point(0, 0)
        ROI([p])
        ROI([p.copy()])

    def test_contains_uses_identity(self):
        p = Point(0, 0)
        roi = ROI([p])
        assert p in roi
        assert Point(0, 0) not in roi

    def test_failed_constructor_claims_nothing(self):
        a, b = Point(0, 0), Point(1, 1)
        ROI([b])
        with pytest.raises(ShapeOwnershipError, match="another ROI"):
            ROI([a, b])
        assert a.roi is None
        assert ROI([a])[0] is a

    def test_failed_batch_leaves_roi_untouched(self):
        a, b = Point(0, 0), Point(1, 1)
        ROI([b])
        roi = ROI([Point(5, 5)], id=3)
        with pytest.raises(ShapeOwnershipError):
            roi.add_shapes([a, b])
        assert len(roi) == 1
        assert a.roi is None
        assert roi.state is ROIState.SAVED

    def test_batch_rejects_repeated_shape(self):
        p = Point(0, 0)
        with pytest.raises(ShapeOwnershipError, match="twice"):
            ROI([p, p])
        assert p.roi is None

    def test_batch_rejects_non_shape_atomically(self):
        p = Point(0, 0)
        with pytest.raises(TypeError):
            ROI([p, "not a shape"])
        assert p.roi is None

    def test_rejects_non_shapes(self):
        with pytest.raises(TypeError):
            ROI().add_shape((0, 0))


class TestLifecycle:
    def test_save_then_modify(self):
        roi = ROI([Point(0, 0)])
        roi.mark_saved(12)
        assert (roi.id, roi.state) == (12, ROIState.SAVED)
        roi.add_shape(Point(1, 1))
        assert roi.state is ROIState.MODIFIED
        roi.mark_saved(12)
        assert roi.state is ROIState.SAVED
        roi.remove_shape(0)
        assert roi.state is ROIState.MODIFIED

    def test_new_stays_new_on_mutation(self):
        roi = ROI()
        roi.add_shape(Point(0, 0))
        assert roi.state is ROIState.NEW

    def test_empty_roi_cannot_be_saved(self):
        with pytest.raises(ROIStateError, match="empty"):
            ROI().mark_saved(1)

    def test_deleted_is_terminal(self):
        roi = ROI([Point(0, 0)])
        roi.mark_deleted()
        assert roi.state is ROIState.DELETED
        with pytest.raises(ROIStateError, match="DELETED"):
            roi.add_shape(Point(1, 1))
        with pytest.raises(ROIStateError):
            roi.remove_shape(0)
        with pytest.raises(ROIStateError):
            roi.mark_saved(3)

    def test_deleting_releases_shapes(self):
        p = Point(0, 0)
        deleted = ROI([p])
        deleted.mark_deleted()
        assert p.roi is None
        assert len(deleted) == 1
        assert ROI([p])[0] is p

    def test_roi_with_id_starts_saved(self):
        assert ROI([Point(0, 0)], id=4).state is ROIState.SAVED


class TestBounds:
    def test_bounds_cover_all_shapes(self):
        roi = ROI(
            [
                Rectangle(0, 0, 2, 2, c=0, z=3, t=1),
                Ellipse(10, 10, 1, 2, c=2, z=1, t=1),
                Point(-1, 5, c=1, z=2, t=4, transform=translate(0, 1)),
            ]
        )
        b = roi.bounds()
        assert isinstance(b, Bounds)
        assert (b.x_min, b.y_min, b.x_max, b.y_max) == (-1.0, 0.0, 11.0, 12.0)
        assert (b.c, b.z, b.t) == ((0, 2), (1, 3), (1, 4))
        assert b.start == (-1.0, 0.0, 0, 1, 1)
        assert b.end == (11.0, 12.0, 2, 3, 4)
        assert (b.width, b.height) == (12.0, 12.0)

    def test_all_planes_sentinel(self):
        roi = ROI([Point(0, 0, c=1), Point(1, 1, c=-1)])
        assert roi.bounds().c == (-1, -1)

    def test_empty_roi_has_no_bounds(self):
        with pytest.raises(ValueError):
            ROI().bounds()


def test_dict_round_trip(mixed_roi):
    mixed_roi.image = 42
    restored = ROI.from_dict(mixed_roi.to_dict())
    assert restored.name == "mixed"
    assert restored.image == 42
    assert restored.state is ROIState.NEW
    assert len(restored) == len(mixed_roi)
    for a, b in zip(restored, mixed_roi):
        assert a.almost_equal(b)


def test_repr(mixed_roi):
    assert repr(mixed_roi) == (
        "ROI(name='mixed', id=None, image=None, state=NEW, shapes=5)"
    )
