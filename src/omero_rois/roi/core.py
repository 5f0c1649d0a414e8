"""
roi/core.py
===========

Pure data layer for *ROI* objects.

An :class:`ROI` is an ordered collection of shapes attached to one image.
Each shape belongs to at most one ROI at a time; moving a shape is an
explicit ``remove_shape`` followed by ``add_shape``.

Lifecycle::

    NEW --mark_saved--> SAVED --add/remove--> MODIFIED --mark_saved--> SAVED
     \\_____________________ mark_deleted ____________________/
                                 |
                              DELETED (terminal)
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from omero_rois.exceptions import ROIStateError, ShapeOwnershipError

from .mapper import bounds as shape_bounds
from .shapes import Shape, shape_from_dict


class ROIState(Enum):
    """Lifecycle state of an :class:`ROI`."""

    NEW = "new"
    SAVED = "saved"
    MODIFIED = "modified"
    DELETED = "deleted"


@dataclass(frozen=True, slots=True)
class Bounds:
    """
    5-D box containing an ROI: x/y extents plus C/Z/T index ranges.

    A C/Z/T range of ``(-1, -1)`` means at least one shape spans every plane
    along that axis.
    """

    x_min: float
    y_min: float
    x_max: float
    y_max: float
    c: tuple[int, int]
    z: tuple[int, int]
    t: tuple[int, int]

    @property
    def start(self) -> tuple[float, float, int, int, int]:
        """``(x, y, c, z, t)`` of the lower corner."""
        return self.x_min, self.y_min, self.c[0], self.z[0], self.t[0]

    @property
    def end(self) -> tuple[float, float, int, int, int]:
        """``(x, y, c, z, t)`` of the upper corner."""
        return self.x_max, self.y_max, self.c[1], self.z[1], self.t[1]

    @property
    def width(self) -> float:
        return self.x_max - self.x_min

    @property
    def height(self) -> float:
        return self.y_max - self.y_min


def _plane_range(indices: Iterable[int]) -> tuple[int, int]:
    values = list(indices)
    if -1 in values:
        return -1, -1
    return min(values), max(values)


class ROI(Sequence[Shape]):
    """
    Ordered, mutable collection of shapes sharing one image.

    Parameters
    ----------
    shapes : iterable of Shape, optional
        Initial shapes, added in order with :meth:`add_shape`.
    name : str, optional
        Human-readable ROI name.
    image : int, optional
        Id of the image the ROI is attached to.
    id : int, optional
        Server id; a non-None id marks the ROI as already saved.

    Examples
    --------
    >>> from omero_rois.roi.shapes import Point, Rectangle
    >>> roi = ROI([Rectangle(0, 0, 10, 5)], name="cell")
    >>> roi.add_shape(Point(2, 3))
    >>> len(roi), roi.state.name
    (2, 'NEW')
    """

    def __init__(
        self,
        shapes: Iterable[Shape] = (),
        name: str | None = None,
        image: int | None = None,
        id: int | None = None,
    ) -> None:
        self._shapes: list[Shape] = []
        self.name = name
        self.image = image
        self.id = id
        self.state = ROIState.NEW
        self.add_shapes(shapes)
        if id is not None:
            self.state = ROIState.SAVED

    # -----------------------------------------------------------------
    # Sequence API
    # -----------------------------------------------------------------
    def __len__(self) -> int:
        return len(self._shapes)

    def __getitem__(self, idx):  # type: ignore[override]
        return self._shapes[idx]

    def __iter__(self) -> Iterator[Shape]:
        return iter(self._shapes)

    def __contains__(self, shape: object) -> bool:
        return any(s is shape for s in self._shapes)

    def __repr__(self) -> str:
        return (
            f"ROI(name={self.name!r}, id={self.id!r}, image={self.image!r}, "
            f"state={self.state.name}, shapes={len(self)})"
        )

    @property
    def shapes(self) -> list[Shape]:
        """A copy of the shape list."""
        return list(self._shapes)

    def shapes_of(self, *types: type[Shape]) -> list[Shape]:
        """Shapes that are instances of any of ``types``."""
        return [s for s in self._shapes if isinstance(s, types)]

    # -----------------------------------------------------------------
    # Mutation
    # -----------------------------------------------------------------
    def _check_mutable(self) -> None:
        if self.state is ROIState.DELETED:
            raise ROIStateError("Cannot modify a deleted ROI", state=self.state.name)

    def _touch(self) -> None:
        if self.state is ROIState.SAVED:
            self.state = ROIState.MODIFIED

    def _claimable(self, shape: Shape) -> None:
        if not isinstance(shape, Shape):
            raise TypeError(f"Expected a Shape, got {type(shape).__name__}")
        if shape.roi is not None:
            where = "this ROI" if shape.roi is self else "another ROI"
            raise ShapeOwnershipError(
                f"{type(shape).__name__} already belongs to {where}",
                hint="Remove it from its ROI first, or add shape.copy()",
            )

    def add_shape(self, shape: Shape) -> None:
        """Append ``shape`` and take ownership of it.

        Raises
        ------
        ShapeOwnershipError
            If the shape already belongs to an ROI (this one included).
        ROIStateError
            If the ROI was deleted.
        """
        self.add_shapes([shape])

    def add_shapes(self, shapes: Iterable[Shape]) -> None:
        """Append several shapes; either all of them are added or none is."""
        self._check_mutable()
        shapes = list(shapes)
        seen: set[int] = set()
        for shape in shapes:
            self._claimable(shape)
            if id(shape) in seen:
                raise ShapeOwnershipError(
                    f"{type(shape).__name__} is listed twice in the same batch"
                )
            seen.add(id(shape))
        if not shapes:
            return
        for shape in shapes:
            shape._set_owner(self)
        self._shapes.extend(shapes)
        self._touch()

    def remove_shape(self, shape: Shape | int) -> Shape:
        """Remove a shape (given by identity or position) and release it.

        Returns
        -------
        Shape
            The removed shape, now unowned.
        """
        self._check_mutable()
        if isinstance(shape, int):
            removed = self._shapes.pop(shape)
        else:
            for i, s in enumerate(self._shapes):
                if s is shape:
                    removed = self._shapes.pop(i)
                    break
            else:
                raise ValueError("Shape is not part of this ROI")
        removed._set_owner(None)
        self._touch()
        return removed

    # -----------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------
    def mark_saved(self, roi_id: int) -> None:
        """Record a successful save under server id ``roi_id``."""
        self._check_mutable()
        if not self._shapes:
            raise ROIStateError("Cannot persist an empty ROI", state=self.state.name)
        self.id = roi_id
        self.state = ROIState.SAVED

    def mark_deleted(self) -> None:
        """Enter the terminal DELETED state.

        The shapes are released so they can join another ROI; the deleted
        ROI keeps its list of them for inspection.
        """
        for shape in self._shapes:
            shape._set_owner(None)
        self.state = ROIState.DELETED

    # -----------------------------------------------------------------
    # Geometry
    # -----------------------------------------------------------------
    def bounds(self) -> Bounds:
        """5-D bounds of all shapes (transforms applied).

        Raises
        ------
        ValueError
            If the ROI has no shape.
        """
        if not self._shapes:
            raise ValueError("An empty ROI has no bounds")
        boxes = [shape_bounds(s) for s in self._shapes]
        return Bounds(
            x_min=min(b[0] for b in boxes),
            y_min=min(b[1] for b in boxes),
            x_max=max(b[2] for b in boxes),
            y_max=max(b[3] for b in boxes),
            c=_plane_range(s.c for s in self._shapes),
            z=_plane_range(s.z for s in self._shapes),
            t=_plane_range(s.t for s in self._shapes),
        )

    # -----------------------------------------------------------------
    # Serialisation helpers (JSON-friendly)
    # -----------------------------------------------------------------
    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "id": self.id,
            "image": self.image,
            "shapes": [s.to_dict() for s in self._shapes],
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ROI":
        return cls(
            (shape_from_dict(s) for s in payload.get("shapes", [])),
            name=payload.get("name"),
            image=payload.get("image"),
            id=payload.get("id"),
        )
