"""
roi/store.py
============

Seam between in-memory ROIs and the remote image server.

Conversion never talks to the server. Persisting is a separate phase that
goes through a :class:`RoiStore`: every ROI is validated first, the store is
called once, and ROIs are only marked saved after the call succeeded.
"""

from __future__ import annotations

from collections.abc import Iterable
from logging import getLogger
from typing import Protocol, runtime_checkable

from omero_rois.exceptions import ROIStateError

from .core import ROI, ROIState

logger = getLogger(__name__)


@runtime_checkable
class RoiStore(Protocol):
    """Remote collaborator persisting ROIs for an image."""

    def save(self, rois: list[ROI]) -> list[int]:
        """Persist ``rois`` and return their server ids, in order."""
        ...

    def fetch_by_image(self, image_id: int) -> list[ROI]:
        """Return the ROIs attached to image ``image_id``."""
        ...

    def delete(self, roi: ROI) -> None:
        """Remove ``roi`` from the server."""
        ...


def save_rois(rois: Iterable[ROI], store: RoiStore) -> list[int]:
    """Persist ROIs through ``store``.

    Parameters
    ----------
    rois : iterable of ROI
        ROIs to save. Each must hold at least one shape and not be deleted.
    store : RoiStore
        Remote collaborator.

    Returns
    -------
    list of int
        Server ids, in the order of ``rois``.

    Raises
    ------
    ROIStateError
        If an ROI is empty or deleted, or the store returns the wrong
        number of ids. No ROI is modified in that case.
    """
    rois = list(rois)
    for roi in rois:
        if roi.state is ROIState.DELETED:
            raise ROIStateError("Cannot save a deleted ROI", state=roi.state.name)
        if not len(roi):
            raise ROIStateError("Cannot persist an empty ROI", state=roi.state.name)

    ids = list(store.save(rois))
    if len(ids) != len(rois):
        raise ROIStateError(
            f"Store returned {len(ids)} id(s) for {len(rois)} ROI(s)"
        )
    for roi, roi_id in zip(rois, ids):
        roi.mark_saved(roi_id)
    logger.info("Saved %d ROI(s)", len(rois))
    return ids


def load_rois(store: RoiStore, image_id: int) -> list[ROI]:
    """Fetch the ROIs of image ``image_id``; they come back SAVED."""
    rois = list(store.fetch_by_image(image_id))
    for roi in rois:
        roi.image = image_id
        if roi.id is not None:
            roi.state = ROIState.SAVED
    logger.info("Loaded %d ROI(s) for image %s", len(rois), image_id)
    return rois


def delete_roi(roi: ROI, store: RoiStore) -> None:
    """Delete ``roi`` remotely (when it was saved) and mark it DELETED."""
    if roi.state is ROIState.DELETED:
        raise ROIStateError("ROI is already deleted", state=roi.state.name)
    if roi.id is not None:
        store.delete(roi)
    roi.mark_deleted()
