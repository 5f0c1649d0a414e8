from omero_rois.config import DEFAULT, DEFAULT_PROPERTY, configure, get_settings  # noqa
from omero_rois.exceptions import (  # noqa
    ConfigurationError,
    InvalidGeometryError,
    OmeroRoisError,
    ROIStateError,
    ShapeGeometryError,
    ShapeOwnershipError,
    UnsupportedShapeError,
    ValidationError,
)
from omero_rois.roi import (  # noqa
    ROI,
    CoordinateMapper,
    Ellipse,
    Line,
    Marker,
    Mask,
    Point,
    Polygon,
    Polyline,
    Rectangle,
    ROIState,
    Shape,
    Text,
    rois_from_imagej,
    rois_to_imagej,
)
from omero_rois.transforms import Affine2D  # noqa

from ._version import __version__
