"""High-level API for dicom-series-loader."""

import logging
import threading
from collections.abc import Sequence
from typing import Callable, List, Optional

from .assembler import build_series, group_slices
from .decoder import Decoder, PydicomDecoder
from .exceptions import GeometryError
from .loader import SliceLoader
from .models import RawFile, Series
from .registry import FileRegistry
from .renderer import Renderer, ThumbnailRenderer
from .slice_sorting import order_series_slices
from .thumbnails import ThumbnailSelector

logger = logging.getLogger(__name__)


def order_series(series: Series) -> Series:
    """
    Order the slices of a series in place.

    When the geometry metadata is unusable the slices keep their arrival
    order and ``series.ordered`` is set to False.
    """
    try:
        ordering = order_series_slices(series.slices)
    except GeometryError as e:
        logger.warning(f"Leaving series {series.series_uid} unordered: {e}")
        series.ordered = False
        return series

    series.slices = ordering.slices
    series.cover_slice = ordering.cover_slice
    series.ordered = True
    return series


def load_series(
    files: Sequence[RawFile],
    on_progress: Optional[Callable[[float], None]] = None,
    *,
    decoder: Optional[Decoder] = None,
    renderer: Optional[Renderer] = None,
    registry: Optional[FileRegistry] = None,
    max_workers: Optional[int] = None,
    cancel_event: Optional[threading.Event] = None,
) -> List[Series]:
    """
    Decode a batch of DICOM files and assemble them into ordered series.

    Parameters
    ----------
    files : sequence of RawFile
        Files to decode
    on_progress : callable, optional
        Called with the completed fraction after every decode attempt.
        Invoked from worker threads, one call at a time.
    decoder : Decoder, optional
        Defaults to PydicomDecoder()
    renderer : Renderer, optional
        Defaults to ThumbnailRenderer()
    registry : FileRegistry, optional
        Receives every raw file; a fresh registry is used when omitted
    max_workers : int, optional
        Thread pool size for both phases. Defaults to one worker per task.
    cancel_event : threading.Event, optional
        Set it to abort outstanding work

    Returns
    -------
    list[Series]
        One series per SeriesInstanceUID, slices ordered, thumbnails attached
        where they could be generated

    Raises
    ------
    TypeError
        If files is not a sequence of RawFile or on_progress is not callable
    ValueError
        If max_workers < 1
    LoadCancelled
        If cancel_event was set during the load phase
    """
    if isinstance(files, (str, bytes)) or not isinstance(files, Sequence):
        raise TypeError(f"files must be a sequence of RawFile, got {type(files).__name__}")
    for f in files:
        if not isinstance(f, RawFile):
            raise TypeError(f"files must contain RawFile objects, got {type(f).__name__}")
    if on_progress is not None and not callable(on_progress):
        raise TypeError("on_progress must be callable")
    if max_workers is not None and max_workers < 1:
        raise ValueError(f"max_workers must be >= 1, got {max_workers}")

    decoder = decoder if decoder is not None else PydicomDecoder()
    renderer = renderer if renderer is not None else ThumbnailRenderer()
    registry = registry if registry is not None else FileRegistry()

    loader = SliceLoader(decoder, registry, max_workers=max_workers)
    slices = loader.load(files, on_progress, cancel_event)

    series_list = build_series(group_slices(slices))
    for series in series_list:
        order_series(series)

    selector = ThumbnailSelector(decoder, renderer, registry)
    series_list = selector.select_thumbnails(
        series_list, max_workers=max_workers, cancel_event=cancel_event
    )

    logger.info(
        f"Loaded {len(slices)} of {len(files)} files into {len(series_list)} series"
    )
    return series_list
