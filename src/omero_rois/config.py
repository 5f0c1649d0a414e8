"""Process-wide conversion settings and the ROI property convention.

Foreign ROIs carry a string property (``"ROI"`` by default) whose value tells
which server-side ROI they belong to. Two derived properties complete the
convention: ``"<key>_NAME"`` holds the ROI name and ``"<key>_ID"`` its server
id.

The settings object is process-wide. It can be replaced with
:func:`configure` until it is first read through :func:`get_settings`; after
that it is read-only.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, fields, replace
from typing import Any

from omero_rois.exceptions import ConfigurationError

DEFAULT_PROPERTY = "ROI"
"""Default foreign property storing the local ROI index."""

MAX_GROUPS = 255
"""Foreign group numbers are one byte, 0 meaning "no group"."""


class _DefaultProperty:
    """Sentinel for "use the configured grouping property"."""

    _instance: "_DefaultProperty | None" = None

    def __new__(cls) -> "_DefaultProperty":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "DEFAULT"


DEFAULT = _DefaultProperty()


@dataclass(frozen=True, slots=True)
class ConversionSettings:
    """
    Settings shared by the importer and the exporter.

    Parameters
    ----------
    property
        Foreign property holding the ROI index/label.
    group_rois
        Whether exported foreign ROIs get a group number per ROI.
    max_groups
        Group numbers are only written when there are fewer ROIs than this.
    ellipse_segments
        Number of vertices used when an ellipse is approximated by a polygon.
    """

    property: str = DEFAULT_PROPERTY
    group_rois: bool = True
    max_groups: int = MAX_GROUPS
    ellipse_segments: int = 64

    def __post_init__(self) -> None:
        if not isinstance(self.property, str) or not self.property.strip():
            raise ConfigurationError(
                "The grouping property must be a non-empty string",
                hint=f"Use the default {DEFAULT_PROPERTY!r} or another key name",
            )
        if self.max_groups < 1:
            raise ConfigurationError(
                f"max_groups must be positive, got {self.max_groups}"
            )
        if self.ellipse_segments < 4:
            raise ConfigurationError(
                f"ellipse_segments must be at least 4, got {self.ellipse_segments}"
            )


_lock = threading.Lock()
_settings = ConversionSettings()
_frozen = False


def get_settings() -> ConversionSettings:
    """Return the process-wide settings; they cannot be reconfigured afterwards."""
    global _frozen
    with _lock:
        _frozen = True
        return _settings


def configure(**changes: Any) -> ConversionSettings:
    """Replace fields of the process-wide settings.

    Parameters
    ----------
    **changes
        Field names of :class:`ConversionSettings` and their new values.

    Returns
    -------
    ConversionSettings
        The new settings.

    Raises
    ------
    ConfigurationError
        If the settings were already read, or a field name is unknown.
    """
    global _settings
    known = {f.name for f in fields(ConversionSettings)}
    unknown = sorted(set(changes) - known)
    if unknown:
        raise ConfigurationError(
            f"Unknown setting(s): {', '.join(unknown)}",
            hint=f"Valid settings are: {', '.join(sorted(known))}",
        )
    with _lock:
        if _frozen:
            raise ConfigurationError(
                "Conversion settings are read-only once they have been used",
                hint="Call configure() at start-up, before converting any ROI",
            )
        _settings = replace(_settings, **changes)
        return _settings


def _reset_settings() -> None:
    """Restore the default, unfrozen settings (test helper)."""
    global _settings, _frozen
    with _lock:
        _settings = ConversionSettings()
        _frozen = False


# ---------------------------------------------------------------------
# Property names
# ---------------------------------------------------------------------
def check_property(property: str | None) -> str:
    """Return ``property``, or the configured default if it is None or blank."""
    if property is None or not property.strip():
        return get_settings().property
    return property


def resolve_property(property: "str | _DefaultProperty | None") -> str | None:
    """Resolve a grouping argument: ``DEFAULT`` → configured key, None → None."""
    if property is None:
        return None
    if isinstance(property, _DefaultProperty):
        return get_settings().property
    return check_property(property)


def name_property(property: str | None = None) -> str:
    """Property holding the ROI name (``"<key>_NAME"``)."""
    return f"{check_property(property)}_NAME"


def id_property(property: str | None = None) -> str:
    """Property holding the ROI server id (``"<key>_ID"``)."""
    return f"{check_property(property)}_ID"
