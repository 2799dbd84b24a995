"""Raw files, decoded slices and assembled series."""

from pathlib import Path
from typing import Any, Optional, Sequence, Union

import numpy as np
import pydicom


def _frozen(values: Optional[Any]) -> Optional[Any]:
    """Copy a multi-valued attribute into a tuple; strings and None pass through."""
    if values is None or isinstance(values, (str, bytes)):
        return values
    return tuple(values)


class RawFile:
    """An undecoded input file.

    Raw files are compared by identity only. The bytes are kept so that a
    slice can be decoded again later, e.g. in high-fidelity mode.
    """

    __slots__ = ("name", "data")

    def __init__(self, name: str, data: bytes):
        self.name = name
        self.data = data

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "RawFile":
        path = Path(path)
        return cls(path.name, path.read_bytes())

    def __len__(self) -> int:
        return len(self.data)

    def __repr__(self) -> str:
        return f"RawFile(name={self.name!r}, size={len(self.data)})"


class Slice:
    """A single decoded DICOM slice.

    Slices are read-only once decoded. Geometry values are kept exactly as the
    decoder produced them; validation happens when a series is ordered.

    Parameters
    ----------
    series_uid : str
        SeriesInstanceUID shared by every slice of the series
    file_id : str
        Identifier of the originating raw file in the FileRegistry
    description : str
        SeriesDescription, may be empty
    image_orientation_patient : sequence, optional
        Row and column direction cosines (six values)
    image_position_patient : sequence, optional
        Coordinates of the slice origin (three values)
    patient_position : str, optional
        Acquisition convention code, e.g. ``HFS`` or ``FFP``
    transfer_syntax : str, optional
        Transfer syntax UID of the pixel data
    dataset : pydicom.Dataset, optional
        Decoded dataset for tagged-metadata and pixel access
    """

    def __init__(
        self,
        series_uid: str,
        file_id: str,
        *,
        description: str = "",
        image_orientation_patient: Optional[Sequence[Any]] = None,
        image_position_patient: Optional[Sequence[Any]] = None,
        patient_position: Optional[str] = None,
        transfer_syntax: Optional[str] = None,
        sop_instance_uid: Optional[str] = None,
        instance_number: Optional[int] = None,
        dataset: Optional[pydicom.Dataset] = None,
    ):
        self._series_uid = series_uid
        self._file_id = file_id
        self._description = description or ""
        self._image_orientation_patient = _frozen(image_orientation_patient)
        self._image_position_patient = _frozen(image_position_patient)
        self._patient_position = patient_position
        self._transfer_syntax = transfer_syntax
        self._sop_instance_uid = sop_instance_uid
        self._instance_number = instance_number
        self._dataset = dataset
        self._pixel_array: Optional[np.ndarray] = None

    @property
    def series_uid(self) -> str:
        return self._series_uid

    @property
    def file_id(self) -> str:
        return self._file_id

    @property
    def description(self) -> str:
        return self._description

    @property
    def image_orientation_patient(self) -> Optional[tuple]:
        return self._image_orientation_patient

    @property
    def image_position_patient(self) -> Optional[tuple]:
        return self._image_position_patient

    @property
    def patient_position(self) -> Optional[str]:
        return self._patient_position

    @property
    def transfer_syntax(self) -> Optional[str]:
        return self._transfer_syntax

    @property
    def sop_instance_uid(self) -> Optional[str]:
        return self._sop_instance_uid

    @property
    def instance_number(self) -> Optional[int]:
        return self._instance_number

    @property
    def dataset(self) -> Optional[pydicom.Dataset]:
        return self._dataset

    @property
    def pixel_array(self) -> np.ndarray:
        """Stored pixel values, decoded on first access."""
        if self._pixel_array is None:
            if self._dataset is None:
                raise AttributeError(f"Slice {self._file_id} has no dataset")
            self._pixel_array = self._dataset.pixel_array
        return self._pixel_array

    def get(self, keyword: str, default: Any = None) -> Any:
        """Look up a DICOM element value by keyword."""
        if self._dataset is None:
            return default
        return self._dataset.get(keyword, default)

    def __repr__(self) -> str:
        return (
            f"Slice(series_uid={self._series_uid!r}, file_id={self._file_id!r}, "
            f"position={self._image_position_patient!r})"
        )


class Series:
    """A group of slices sharing one SeriesInstanceUID.

    ``slices`` holds the output of slice ordering. When ordering failed
    ``ordered`` is False and the slices keep their arrival order.
    """

    def __init__(
        self,
        series_uid: str,
        description: str = "",
        slices: Optional[list] = None,
    ):
        self.series_uid = series_uid
        self.description = description
        self.slices: list[Slice] = list(slices) if slices is not None else []
        self.thumbnail: Optional[str] = None
        self.ordered = True
        self.cover_slice: Optional[Slice] = None

    @property
    def slice_count(self) -> int:
        return len(self.slices)

    def __len__(self) -> int:
        return len(self.slices)

    def __repr__(self) -> str:
        return (
            f"Series(series_uid={self.series_uid!r}, description={self.description!r}, "
            f"slices={len(self.slices)}, ordered={self.ordered}, "
            f"thumbnail={'yes' if self.thumbnail else 'no'})"
        )
