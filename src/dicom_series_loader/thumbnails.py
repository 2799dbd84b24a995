"""Pick and render a representative thumbnail for each series."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

from .constants import HIGH_FIDELITY_TRANSFER_SYNTAXES
from .decoder import Decoder
from .exceptions import ThumbnailError
from .models import Series, Slice
from .registry import FileRegistry
from .renderer import Renderer

logger = logging.getLogger(__name__)


def representative_slice(series: Series) -> Slice:
    """Return the middle slice of the ordered series."""
    if not series.slices:
        raise ThumbnailError(f"Series {series.series_uid} has no slices")
    return series.slices[len(series.slices) // 2]


class ThumbnailSelector:
    """
    Attach a thumbnail rendered from the middle slice of each series.

    Slices whose transfer syntax needs it are decoded again from their raw
    file in high-fidelity mode before rendering.
    """

    def __init__(self, decoder: Decoder, renderer: Renderer, registry: FileRegistry):
        self.decoder = decoder
        self.renderer = renderer
        self.registry = registry

    def render_thumbnail(self, series: Series) -> str:
        """
        Render the thumbnail text for a series.

        Raises:
            ThumbnailError: If the slice cannot be re-decoded or rendered. Any exception
                raised by a collaborator is wrapped.
        """
        slice_ = representative_slice(series)

        if slice_.transfer_syntax in HIGH_FIDELITY_TRANSFER_SYNTAXES:
            try:
                raw_file = self.registry.get(slice_.file_id)
                slice_ = self.decoder.decode(raw_file, slice_.file_id, high_fidelity=True)
            except Exception as e:
                raise ThumbnailError(
                    f"High-fidelity decode failed for {slice_.file_id}: {e}"
                ) from e
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(f"Re-decoded {slice_.file_id} in high-fidelity mode")

        try:
            return self.renderer.encode(slice_)
        except Exception as e:
            raise ThumbnailError(f"Rendering failed for {slice_.file_id}: {e}") from e

    def select_thumbnail(self, series: Series) -> Series:
        """Populate ``series.thumbnail``; it stays None when generation fails."""
        try:
            series.thumbnail = self.render_thumbnail(series)
        except ThumbnailError as e:
            logger.warning(f"No thumbnail for series {series.series_uid}: {e}")
            series.thumbnail = None
        return series

    def select_thumbnails(
        self,
        series_list: Sequence[Series],
        max_workers: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[Series]:
        """Generate thumbnails for all series concurrently, returned in input order."""
        if not series_list:
            return []

        def task(series: Series) -> Series:
            if cancel_event is not None and cancel_event.is_set():
                return series
            return self.select_thumbnail(series)

        with ThreadPoolExecutor(max_workers=max_workers or len(series_list)) as executor:
            return list(executor.map(task, series_list))
