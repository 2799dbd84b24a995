"""DICOM Series Loader - Assemble decoded DICOM slices into ordered series with thumbnails."""

from .api import load_series, order_series
from .assembler import build_series, group_slices
from .decoder import Decoder, PydicomDecoder
from .exceptions import (
    DecodeError,
    GeometryError,
    LoadCancelled,
    RenderError,
    SeriesLoaderError,
    ThumbnailError,
    UnknownFileError,
)
from .loader import LoadOutcome, ProgressTracker, SliceLoader
from .models import RawFile, Series, Slice
from .registry import FileRegistry
from .renderer import Renderer, ThumbnailRenderer
from .slice_sorting import SliceOrdering, order_series_slices, sort_slices
from .thumbnails import ThumbnailSelector

__version__ = "0.1.0"
__all__ = [
    "load_series",
    "order_series",
    "build_series",
    "group_slices",
    "Decoder",
    "PydicomDecoder",
    "DecodeError",
    "GeometryError",
    "LoadCancelled",
    "RenderError",
    "SeriesLoaderError",
    "ThumbnailError",
    "UnknownFileError",
    "LoadOutcome",
    "ProgressTracker",
    "SliceLoader",
    "RawFile",
    "Series",
    "Slice",
    "FileRegistry",
    "Renderer",
    "ThumbnailRenderer",
    "SliceOrdering",
    "order_series_slices",
    "sort_slices",
    "ThumbnailSelector",
]
