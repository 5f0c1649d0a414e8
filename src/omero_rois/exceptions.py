"""Custom exceptions for omero_rois.

This module provides specialized exceptions that give helpful, actionable error
messages when shapes, ROIs or conversions are misused.

Usage Guidelines
----------------
Choose the appropriate exception type based on when and why the error occurs:

- **ValidationError**: An argument doesn't meet requirements (wrong type,
  wrong shape, out of range). Use when a user-provided value is invalid.

- **InvalidGeometryError**: A shape cannot be built from the given geometry
  (negative sizes, too few points, bad C/Z/T). Raised at construction, values
  are never clamped.

- **ShapeGeometryError**: Geometry that is individually valid but
  inconsistent or not representable: a mask raster that does not match its
  declared size, a singular transform that must be inverted, a transform a
  shape variant cannot absorb.

- **UnsupportedShapeError**: A foreign ROI kind or shape variant without a
  counterpart on the other side. Batch conversions turn it into a warning and
  skip the offending item.

- **ShapeOwnershipError**: A shape is added to a second ROI without being
  removed from the first one.

- **ROIStateError**: An operation is not allowed in the ROI's lifecycle state.

- **ConfigurationError**: Settings are invalid or changed after being frozen.

All exceptions inherit from **OmeroRoisError**, allowing users to catch
any package-specific error with a single except clause.

Examples
--------
>>> from omero_rois.exceptions import InvalidGeometryError, OmeroRoisError
>>>
>>> try:
...     raise InvalidGeometryError(
...         "Polygon needs more points",
...         expected="at least 3 distinct points",
...         got="2 distinct points",
...         hint="Use a Polyline for open two-point paths",
...     )
... except OmeroRoisError as e:
...     print(type(e).__name__)
InvalidGeometryError
"""

from __future__ import annotations

from typing import Any


class OmeroRoisError(Exception):
    """Base exception for all omero_rois errors.

    All custom exceptions in this package inherit from this base class,
    making it easy to catch any package-specific error.
    """

    pass


class ValidationError(OmeroRoisError, ValueError):
    """Raised when input validation fails.

    The error message explains what was expected, what was received, and how
    to fix it.

    Parameters
    ----------
    message : str
        Description of what went wrong
    expected : str, optional
        What was expected (for structured error messages)
    got : str, optional
        What was actually received
    hint : str, optional
        Actionable suggestion for fixing the error
    example : str, optional
        Code snippet showing correct usage

    Examples
    --------
    >>> raise ValidationError(
    ...     "Invalid channel index",
    ...     expected="c >= -1",
    ...     got="c = -3",
    ...     hint="Use -1 for 'all channels'"
    ... )
    Traceback (most recent call last):
    ...
    omero_rois.exceptions.ValidationError: Invalid channel index
    ...
    """

    def __init__(
        self,
        message: str,
        expected: str | None = None,
        got: str | None = None,
        hint: str | None = None,
        example: str | None = None,
    ):
        """Initialize ValidationError with structured message components."""
        parts = [message]

        if expected is not None:
            parts.append(f"\nExpected: {expected}")

        if got is not None:
            parts.append(f"Got: {got}")

        if hint is not None:
            parts.append(f"\nHint: {hint}")

        if example is not None:
            parts.append(f"\nExample:\n{example}")

        super().__init__("\n".join(parts))


class InvalidGeometryError(ValidationError):
    """Raised when a shape is constructed from degenerate or invalid geometry.

    Covers negative width/height/radii, non-finite coordinates, polygons with
    fewer than three distinct points, polylines with fewer than two points and
    C/Z/T indices below the ``-1`` sentinel.
    """

    pass


class ShapeGeometryError(InvalidGeometryError):
    """Raised when geometry is inconsistent or cannot be represented.

    Examples are a mask bitmap whose dimensions differ from the declared
    width/height, or a singular affine transform that has to be inverted.
    These errors are surfaced to the caller, never recovered locally.
    """

    pass


class UnsupportedShapeError(OmeroRoisError):
    """Raised when a shape or foreign ROI has no counterpart on the other side.

    Parameters
    ----------
    message : str
        Description of the unsupported object
    obj : Any, optional
        The object that could not be converted

    Examples
    --------
    >>> raise UnsupportedShapeError("Composite shapes are not supported")
    Traceback (most recent call last):
    ...
    omero_rois.exceptions.UnsupportedShapeError: Composite shapes are not supported
    """

    def __init__(self, message: str, obj: Any = None) -> None:
        """Initialize UnsupportedShapeError with the offending object."""
        self.obj = obj
        super().__init__(message)


class ShapeOwnershipError(OmeroRoisError):
    """Raised when a shape would end up in more than one ROI.

    Parameters
    ----------
    message : str
        Description of the ownership conflict
    hint : str, optional
        Actionable suggestion for fixing the error
    """

    def __init__(self, message: str, hint: str | None = None) -> None:
        """Initialize ShapeOwnershipError with optional hint."""
        if hint is not None:
            message = f"{message}\n\nHint: {hint}"
        super().__init__(message)


class ROIStateError(OmeroRoisError):
    """Raised when an ROI operation is not allowed in its current state.

    Parameters
    ----------
    message : str
        Description of the state problem
    state : str, optional
        Name of the current lifecycle state
    """

    def __init__(self, message: str, state: str | None = None) -> None:
        """Initialize ROIStateError with the current state."""
        if state is not None:
            message = f"{message} (state: {state})"
        super().__init__(message)


class ConfigurationError(OmeroRoisError):
    """Raised when configuration is invalid or inconsistent.

    Parameters
    ----------
    message : str
        Description of the configuration problem
    hint : str, optional
        Actionable suggestion for fixing the configuration

    Examples
    --------
    >>> raise ConfigurationError(
    ...     "Settings are frozen",
    ...     hint="Call configure() before the first conversion"
    ... )
    Traceback (most recent call last):
    ...
    omero_rois.exceptions.ConfigurationError: Settings are frozen
    <BLANKLINE>
    Hint: Call configure() before the first conversion
    """

    def __init__(self, message: str, hint: str | None = None) -> None:
        """Initialize ConfigurationError with optional hint.

        Parameters
        ----------
        message : str
            Description of the configuration problem
        hint : str, optional
            Actionable suggestion for fixing the configuration
        """
        if hint is not None:
            message = f"{message}\n\nHint: {hint}"
        super().__init__(message)
