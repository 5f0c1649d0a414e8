"""
roi/io.py
=========

Helper functions for exporting ROIs to a shareable JSON schema and for
summarising them as a table.

"""

from __future__ import annotations

import json
import warnings
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Union

import pandas as pd

from .core import ROI
from .mapper import bounds

# --------------------------------------------------------------------------
# 1.  Generic JSON <--> ROIs round-trip
# --------------------------------------------------------------------------
_SCHEMA_TAG = "OMERO-ROIs-v1"


def rois_to_json(rois: Iterable[ROI], path: Union[str, Path], *, indent: int = 2) -> None:
    """Write a list-of-dicts file that any language can read.

    Mask bitmaps are stored as run-length strings ``"start,length,..."``
    over the row-major flattened bitmap.

    Parameters
    ----------
    rois : iterable of ROI
        ROIs to write.
    path : str or Path
        Destination file path.
    indent : int, optional
        Indentation level for the JSON file. Default is 2 spaces.

    """
    payload = {
        "format": _SCHEMA_TAG,
        "rois": [roi.to_dict() for roi in rois],
    }
    # Ensure the parent directory exists before writing
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(payload, indent=indent))


def rois_from_json(path: Union[str, Path]) -> list[ROI]:
    """Load the schema written by :func:`rois_to_json`.

    Parameters
    ----------
    path : str or Path
        Path to the JSON file containing ROIs.

    Returns
    -------
    list of ROI
        ROIs in file order. ROIs stored with an id come back SAVED.
    """
    blob = json.loads(Path(path).read_text())
    if blob.get("format") != _SCHEMA_TAG:
        warnings.warn(
            f"Unrecognised format tag {blob.get('format')!r}; attempting best-effort load"
        )
    return [ROI.from_dict(d) for d in blob["rois"]]


# --------------------------------------------------------------------------
# 2.  Tabular summary
# --------------------------------------------------------------------------
def rois_to_dataframe(rois: Iterable[ROI]) -> pd.DataFrame:
    """Return a *pandas* DataFrame summary, one row per shape.

    Parameters
    ----------
    rois : iterable of ROI
        ROIs to summarise.

    Returns
    -------
    pd.DataFrame
        Columns: ROI index/id/name, shape kind, C/Z/T, caption, the bounds of
        the transformed shape and its area.
    """
    records: list[Mapping[str, Any]] = []
    for roi_index, roi in enumerate(rois):
        for shape in roi:
            x_min, y_min, x_max, y_max = bounds(shape)
            records.append(
                {
                    "roi_index": roi_index,
                    "roi_id": roi.id,
                    "roi_name": roi.name,
                    "kind": shape.kind,
                    "c": shape.c,
                    "z": shape.z,
                    "t": shape.t,
                    "text": shape.text,
                    "x_min": x_min,
                    "y_min": y_min,
                    "x_max": x_max,
                    "y_max": y_max,
                    "area": shape.area,
                }
            )

    columns = [
        "roi_index",
        "roi_id",
        "roi_name",
        "kind",
        "c",
        "z",
        "t",
        "text",
        "x_min",
        "y_min",
        "x_max",
        "y_max",
        "area",
    ]
    return pd.DataFrame.from_records(records, columns=columns)
