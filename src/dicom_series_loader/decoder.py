"""Decode raw DICOM files into slices."""

import logging
from io import BytesIO
from typing import Any, Optional, Protocol, Union

import pydicom
from pydicom.multival import MultiValue

from .exceptions import DecodeError
from .models import RawFile, Slice

logger = logging.getLogger(__name__)


class Decoder(Protocol):
    """Anything that turns a raw file into a slice."""

    def decode(self, raw_file: RawFile, file_id: str, high_fidelity: bool = False) -> Slice:
        ...


def _multi_value(ds: pydicom.Dataset, keyword: str) -> Optional[list[Any]]:
    """Return a multi-valued element as a list, or None if absent or empty."""
    value = ds.get(keyword)
    if value is None or value == "":
        return None
    if isinstance(value, (list, tuple, MultiValue)):
        return list(value)
    # A single value where several were expected; validated at ordering time
    return [value]


def _optional_str(ds: pydicom.Dataset, keyword: str) -> Optional[str]:
    value = ds.get(keyword)
    if value is None or value == "":
        return None
    return str(value).strip()


def dataset_to_slice(ds: pydicom.Dataset, file_id: str) -> Slice:
    """
    Build a Slice from a decoded dataset.

    Args:
        ds: pydicom.Dataset
        file_id: Identifier of the originating raw file

    Returns:
        Slice wrapping the dataset

    Raises:
        DecodeError: If the dataset has no SeriesInstanceUID
    """
    series_uid = _optional_str(ds, "SeriesInstanceUID")
    if not series_uid:
        raise DecodeError("Missing SeriesInstanceUID")

    transfer_syntax = None
    file_meta = getattr(ds, "file_meta", None)
    if file_meta is not None and "TransferSyntaxUID" in file_meta:
        transfer_syntax = str(file_meta.TransferSyntaxUID)

    instance_number = None
    if "InstanceNumber" in ds and ds.InstanceNumber not in (None, ""):
        try:
            instance_number = int(ds.InstanceNumber)
        except (TypeError, ValueError):
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(f"Ignoring invalid InstanceNumber in {file_id}: {ds.InstanceNumber!r}")

    return Slice(
        series_uid,
        file_id,
        description=_optional_str(ds, "SeriesDescription") or "",
        image_orientation_patient=_multi_value(ds, "ImageOrientationPatient"),
        image_position_patient=_multi_value(ds, "ImagePositionPatient"),
        patient_position=_optional_str(ds, "PatientPosition"),
        transfer_syntax=transfer_syntax,
        sop_instance_uid=_optional_str(ds, "SOPInstanceUID"),
        instance_number=instance_number,
        dataset=ds,
    )


class PydicomDecoder:
    """Decode DICOM files with pydicom.

    The default path reads the dataset and leaves pixel decoding until the
    pixels are first accessed. The high-fidelity path decompresses the pixel
    data immediately, optionally with a specific pydicom decoding plugin.

    Parameters
    ----------
    defer_size : int or str, optional
        Passed to ``pydicom.dcmread`` on the default path
    decoding_plugin : str, default ""
        pydicom decoding plugin for the high-fidelity path ("" lets pydicom choose)
    """

    def __init__(
        self,
        defer_size: Optional[Union[int, str]] = None,
        decoding_plugin: str = "",
    ):
        self.defer_size = defer_size
        self.decoding_plugin = decoding_plugin

    def decode(self, raw_file: RawFile, file_id: str, high_fidelity: bool = False) -> Slice:
        try:
            if high_fidelity:
                ds = pydicom.dcmread(BytesIO(raw_file.data), force=True)
                self._decompress(ds, raw_file.name)
            else:
                ds = pydicom.dcmread(
                    BytesIO(raw_file.data), defer_size=self.defer_size, force=True
                )
        except DecodeError:
            raise
        except Exception as e:
            raise DecodeError(f"Failed to read {raw_file.name}: {e}", raw_file.name) from e

        try:
            slice_ = dataset_to_slice(ds, file_id)
        except DecodeError as e:
            raise DecodeError(f"{raw_file.name}: {e}", raw_file.name) from e

        if logger.isEnabledFor(logging.DEBUG):
            mode = "high-fidelity" if high_fidelity else "default"
            logger.debug(f"Decoded {raw_file.name} ({mode}) as {file_id}")
        return slice_

    def _decompress(self, ds: pydicom.Dataset, name: str) -> None:
        if "PixelData" not in ds:
            return
        file_meta = getattr(ds, "file_meta", None)
        if file_meta is None or "TransferSyntaxUID" not in file_meta:
            return
        if not file_meta.TransferSyntaxUID.is_compressed:
            return
        try:
            ds.decompress(
                decoding_plugin=self.decoding_plugin,
                generate_instance_uid=False,
            )
        except Exception as e:
            raise DecodeError(f"Failed to decompress {name}: {e}", name) from e
