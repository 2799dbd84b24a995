"""Render slices into encoded thumbnail images."""

import base64
import logging
from io import BytesIO
from typing import Dict, Optional, Protocol, Tuple, Union

import numpy as np
import pydicom
from PIL import Image
from pydicom.multival import MultiValue
from pydicom.pixels import apply_modality_lut, apply_voi_lut

from .constants import DEFAULT_IMAGE_QUALITY, DEFAULT_IMAGE_WIDTH, DEFAULT_THUMBNAIL_FORMAT
from .exceptions import RenderError
from .models import Slice

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = {"JPEG": "image/jpeg", "WEBP": "image/webp"}


class Renderer(Protocol):
    """Anything that turns a slice into an encoded image."""

    def encode(self, slice_: Slice) -> str:
        ...


def auto_window(pixel_array: np.ndarray) -> Dict[str, float]:
    """
    Auto-detect window and center from pixel array statistics.

    Uses the 2nd and 98th percentiles, ignoring NaN padding.
    """
    p2 = np.nanpercentile(pixel_array, 2)
    p98 = np.nanpercentile(pixel_array, 98)

    window_center = (p2 + p98) / 2
    window_width = p98 - p2

    # Ensure minimum window width
    if window_width < 10:
        window_width = 10

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"Auto-detected contrast: WW={window_width:.1f}, WC={window_center:.1f}")
    return {
        "window_width": float(window_width),
        "window_center": float(window_center),
    }


def linear_window(pixel_array: np.ndarray, window_width: float, window_center: float) -> np.ndarray:
    """Apply a linear window/level and scale to uint8."""
    if window_width <= 0:
        return np.zeros_like(pixel_array, dtype=np.uint8)

    below = window_center - window_width / 2
    above = window_center + window_width / 2

    windowed = np.clip(np.nan_to_num(pixel_array, nan=below), below, above)
    windowed = ((windowed - below) / window_width) * 255
    return windowed.astype(np.uint8)


def voi_output_range(ds: pydicom.Dataset) -> Tuple[float, float]:
    """
    Range of the values produced by ``apply_voi_lut`` for this dataset.

    A VOI LUT outputs entries of ``LUTDescriptor[2]`` bits. Windowing outputs
    the stored value range, mapped through the modality LUT or rescale when
    the dataset has one.
    """
    if ds.get("VOILUTSequence"):
        bits = int(ds.VOILUTSequence[0].LUTDescriptor[2])
        return 0.0, float(2**bits - 1)

    if ds.get("ModalityLUTSequence"):
        bits = int(ds.ModalityLUTSequence[0].LUTDescriptor[2])
        return 0.0, float(2**bits - 1)

    bits_stored = int(ds.BitsStored)
    if int(ds.PixelRepresentation) == 0:
        y_min, y_max = 0.0, float(2**bits_stored - 1)
    else:
        y_min, y_max = float(-(2 ** (bits_stored - 1))), float(2 ** (bits_stored - 1) - 1)

    slope = ds.get("RescaleSlope")
    intercept = ds.get("RescaleIntercept")
    if slope is not None and intercept is not None:
        y_min = y_min * float(slope) + float(intercept)
        y_max = y_max * float(slope) + float(intercept)
    return y_min, y_max


class ThumbnailRenderer:
    """
    Render a slice's pixels into a base64-encoded JPEG or WebP image.

    Parameters
    ----------
    image_width : int, optional
        Output width in pixels, height scaled proportionally. None keeps the
        native size.
    quality : int, default 60
        Encoder quality (0-100)
    image_format : str, default "JPEG"
        "JPEG" or "WEBP"
    window_settings : str or dict, optional
        None applies the file's VOI LUT or window (including non-linear
        VOILUTFunction) when present and falls back to auto-detection; "auto" always auto-detects; a dict with
        ``window_width`` and ``window_center`` is applied as-is.
    """

    def __init__(
        self,
        image_width: Optional[int] = DEFAULT_IMAGE_WIDTH,
        quality: int = DEFAULT_IMAGE_QUALITY,
        image_format: str = DEFAULT_THUMBNAIL_FORMAT,
        window_settings: Optional[Union[str, Dict[str, float]]] = None,
    ):
        image_format = image_format.upper()
        if image_format == "JPG":
            image_format = "JPEG"
        if image_format not in SUPPORTED_FORMATS:
            raise ValueError(f"Unsupported thumbnail format: {image_format}")
        if not 0 <= quality <= 100:
            raise ValueError(f"quality must be in [0, 100], got {quality}")
        self.image_width = image_width
        self.quality = quality
        self.image_format = image_format
        self.window_settings = window_settings

    @property
    def mime_type(self) -> str:
        return SUPPORTED_FORMATS[self.image_format]

    def encode(self, slice_: Slice) -> str:
        """Render a slice and return the base64 text of the encoded image."""
        image = self.render(slice_)
        buffer = BytesIO()
        try:
            image.save(buffer, self.image_format, quality=self.quality)
        except (OSError, ValueError) as e:
            raise RenderError(f"Failed to encode {slice_.file_id}: {e}", slice_.file_id) from e
        return base64.b64encode(buffer.getvalue()).decode("ascii")

    def render(self, slice_: Slice) -> Image.Image:
        """Render a slice into a resized 8-bit PIL image."""
        ds = slice_.dataset
        if ds is None:
            raise RenderError(f"No dataset available for {slice_.file_id}", slice_.file_id)

        try:
            pixel_array = slice_.pixel_array
        except Exception as e:
            raise RenderError(f"No pixel data available for {slice_.file_id}: {e}", slice_.file_id) from e

        pixel_array = self._first_frame(pixel_array, ds)

        try:
            if int(ds.get("SamplesPerPixel", 1)) > 1:
                img = self._color_to_image(pixel_array)
            else:
                img = self._grayscale_to_image(pixel_array, ds)
        except RenderError:
            raise
        except Exception as e:
            raise RenderError(f"Failed to render {slice_.file_id}: {e}", slice_.file_id) from e

        return self._resize_image(img)

    @staticmethod
    def _first_frame(pixel_array: np.ndarray, ds: pydicom.Dataset) -> np.ndarray:
        frames = int(ds.get("NumberOfFrames", 1) or 1)
        if frames > 1:
            return pixel_array[0]
        return pixel_array

    def _grayscale_to_image(self, pixel_array: np.ndarray, ds: pydicom.Dataset) -> Image.Image:
        pixel_array = apply_modality_lut(pixel_array, ds)

        windowed = None
        if self.window_settings is None:
            windowed = self._embedded_voi(pixel_array, ds)

        # Fall back to the stored window, presets or auto contrast
        if windowed is None:
            window = None
            if self.window_settings is None:
                window = self._file_window(ds)
            if window is None:
                window = self._window_for(pixel_array, ds)
            windowed = linear_window(pixel_array, window["window_width"], window["window_center"])

        if windowed.ndim != 2:
            raise RenderError(f"Unexpected pixel array shape {windowed.shape}")
        return Image.fromarray(windowed)

    @staticmethod
    def _embedded_voi(pixel_array: np.ndarray, ds: pydicom.Dataset) -> Optional[np.ndarray]:
        """VOI LUT or window stored in the file, scaled to uint8. None when absent or unusable."""
        if not ds.get("VOILUTSequence") and "WindowWidth" not in ds:
            return None
        try:
            transformed = apply_voi_lut(pixel_array, ds)
            lo, hi = voi_output_range(ds)
        except Exception as e:
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(f"apply_voi_lut failed, falling back to custom windowing: {e}")
            return None
        if hi <= lo:
            return None
        scaled = (np.clip(transformed.astype(float), lo, hi) - lo) / (hi - lo) * 255
        return scaled.astype(np.uint8)

    @staticmethod
    def _file_window(ds: pydicom.Dataset) -> Optional[Dict[str, float]]:
        """Window/center stored in the file, first value when multi-valued."""
        if "WindowWidth" not in ds or "WindowCenter" not in ds:
            return None
        ww = ds.WindowWidth
        wc = ds.WindowCenter
        if isinstance(ww, MultiValue):
            ww = ww[0]
        if isinstance(wc, MultiValue):
            wc = wc[0]
        try:
            return {"window_width": float(ww), "window_center": float(wc)}
        except (TypeError, ValueError):
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(f"Ignoring invalid window settings: WW={ww!r}, WC={wc!r}")
            return None

    def _window_for(self, pixel_array: np.ndarray, ds: pydicom.Dataset) -> Dict[str, float]:
        if isinstance(self.window_settings, dict):
            return self.window_settings

        # Remove padding from stats when available
        stats = pixel_array.astype(float)
        if "PixelPaddingValue" in ds:
            padding = ds.PixelPaddingValue
            if "PixelPaddingRangeLimit" in ds:
                lo, hi = sorted([padding, ds.PixelPaddingRangeLimit])
                mask = (stats >= lo) & (stats <= hi)
            else:
                mask = stats == padding
            if not mask.all():
                stats = np.where(mask, np.nan, stats)
        return auto_window(stats)

    @staticmethod
    def _color_to_image(pixel_array: np.ndarray) -> Image.Image:
        if pixel_array.dtype != np.uint8:
            lo = float(pixel_array.min())
            hi = float(pixel_array.max())
            scale = 255.0 / (hi - lo) if hi > lo else 0.0
            pixel_array = ((pixel_array - lo) * scale).astype(np.uint8)
        return Image.fromarray(pixel_array)

    def _resize_image(self, img: Image.Image) -> Image.Image:
        """Resize image to the thumbnail width while maintaining aspect ratio."""
        if self.image_width is None or self.image_width <= 0:
            return img

        width, height = img.size
        aspect_ratio = height / width
        new_height = max(1, int(self.image_width * aspect_ratio))
        return img.resize((self.image_width, new_height), Image.Resampling.LANCZOS)
