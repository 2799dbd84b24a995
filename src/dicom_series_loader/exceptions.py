"""Exception hierarchy for dicom-series-loader.

Failures are scoped to the smallest unit they affect: a ``DecodeError``
excludes one file, a ``GeometryError`` leaves one series unordered and a
``ThumbnailError`` leaves one series without a thumbnail.
"""

from typing import Optional


class SeriesLoaderError(Exception):
    """Base class for all dicom-series-loader errors."""


class DecodeError(SeriesLoaderError):
    """A raw file could not be decoded into a slice."""

    def __init__(self, message: str, file_name: Optional[str] = None):
        super().__init__(message)
        self.file_name = file_name


class GeometryError(SeriesLoaderError):
    """Orientation or position metadata is missing or invalid."""


class RenderError(SeriesLoaderError):
    """A slice could not be rendered into an encoded image."""

    def __init__(self, message: str, file_name: Optional[str] = None):
        super().__init__(message)
        self.file_name = file_name


class ThumbnailError(SeriesLoaderError):
    """Thumbnail generation failed for a series."""


class LoadCancelled(SeriesLoaderError):
    """The load was cancelled before every file was processed."""


class UnknownFileError(SeriesLoaderError, KeyError):
    """No raw file is registered under the requested identifier."""
