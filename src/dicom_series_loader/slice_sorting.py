"""
DICOM Slice Sorting

Orders the slices of one series along their acquisition axis.

The slice normal is the cross product of the row and column direction cosines
(ImageOrientationPatient) of the first slice. Every slice origin
(ImagePositionPatient) is projected onto that normal, and slices are sorted by
decreasing distance. Feet-first acquisitions (FFDR, FFDL, FFP) index distance
in the opposite physical direction, so their order is reversed.

Archives sometimes inject a "cover" image at the start of a series, typically a
single coronal slice in front of an axial stack. When a series has more than
two slices and the first slice's orientation differs from the second one's,
the first slice is dropped before sorting.
"""

import logging
import math
from typing import Any, List, Optional, Sequence

import numpy as np

from .constants import FEET_FIRST_POSITIONS
from .exceptions import GeometryError
from .models import Slice

logger = logging.getLogger(__name__)


class SliceOrdering:
    """Result of ordering one series: sorted slices plus the removed cover slice."""

    __slots__ = ("slices", "cover_slice", "normal")

    def __init__(self, slices: List[Slice], cover_slice: Optional[Slice], normal: np.ndarray):
        self.slices = slices
        self.cover_slice = cover_slice
        self.normal = normal


def parse_vector(values: Optional[Sequence[Any]], length: int, name: str, where: str = "") -> np.ndarray:
    """
    Validate and convert a multi-valued geometry attribute to floats.

    Args:
        values: Raw values as decoded (strings, DSfloat, floats)
        length: Required number of values
        name: Attribute name for error messages
        where: Slice description for error messages

    Returns:
        NumPy float array of the given length

    Raises:
        GeometryError: If the attribute is missing, has the wrong number of
            values, or contains anything that is not a finite number
    """
    suffix = f" on {where}" if where else ""
    if values is None:
        raise GeometryError(f"Missing {name}{suffix}")
    if isinstance(values, (str, bytes)):
        values = str(values).split("\\")
    values = list(values)
    if len(values) != length:
        raise GeometryError(f"{name} must have {length} values, got {len(values)}{suffix}")
    try:
        vector = np.array([float(v) for v in values], dtype=float)
    except (TypeError, ValueError) as e:
        raise GeometryError(f"Unparsable {name}{suffix}: {values!r}") from e
    if not all(math.isfinite(v) for v in vector):
        raise GeometryError(f"Non-finite {name}{suffix}: {values!r}")
    return vector


def remove_cover_slice(slices: Sequence[Slice]) -> tuple[List[Slice], Optional[Slice]]:
    """
    Drop a leading cover slice whose orientation differs from the rest.

    Orientations are compared by value: any difference between the first and
    second slice counts, no matter how small.

    Returns:
        Tuple of (remaining slices, removed cover slice or None)
    """
    slices = list(slices)
    if len(slices) > 2:
        first = slices[0].image_orientation_patient
        second = slices[1].image_orientation_patient
        if first != second:
            logger.info(f"Eliminating cover slice {slices[0].file_id} from series {slices[0].series_uid}")
            return slices[1:], slices[0]
    return slices, None


def slice_normal(slice_: Slice) -> np.ndarray:
    """Return the normal of a slice's plane: row cosines x column cosines."""
    orientation = parse_vector(
        slice_.image_orientation_patient, 6, "ImageOrientationPatient", slice_.file_id
    )
    normal = np.cross(orientation[:3], orientation[3:])
    if not np.any(normal):
        raise GeometryError(
            f"Degenerate ImageOrientationPatient on {slice_.file_id}: "
            f"{slice_.image_orientation_patient!r}"
        )
    return normal


def slice_distances(slices: Sequence[Slice], normal: np.ndarray) -> List[float]:
    """
    Signed distance of every slice origin along the normal.

    Every slice must carry a valid orientation even though only the first one
    defines the normal.
    """
    distances = []
    for s in slices:
        parse_vector(s.image_orientation_patient, 6, "ImageOrientationPatient", s.file_id)
        position = parse_vector(s.image_position_patient, 3, "ImagePositionPatient", s.file_id)
        distances.append(float(np.dot(position, normal)))
    return distances


def is_feet_first(patient_position: Optional[str]) -> bool:
    if not patient_position:
        return False
    return patient_position.strip().upper() in FEET_FIRST_POSITIONS


def order_series_slices(slices: Sequence[Slice]) -> SliceOrdering:
    """
    Order the slices of one series for viewing.

    Args:
        slices: Slices of a single series, in arrival order

    Returns:
        SliceOrdering with the ordered slices and any removed cover slice

    Raises:
        ValueError: If slices is empty
        GeometryError: If orientation or position metadata is missing or invalid
    """
    if not slices:
        raise ValueError("Cannot sort empty slices list")

    remaining, cover = remove_cover_slice(slices)
    reference = remaining[0]

    normal = slice_normal(reference)
    distances = slice_distances(remaining, normal)

    # sorted() is stable, equal distances keep their relative order
    indices = sorted(range(len(remaining)), key=lambda i: distances[i], reverse=True)
    ordered = [remaining[i] for i in indices]

    if is_feet_first(reference.patient_position):
        ordered.reverse()

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            f"Sorted {len(ordered)} slices of {reference.series_uid} along normal "
            f"{normal.tolist()} (patient position {reference.patient_position})"
        )
    return SliceOrdering(ordered, cover, normal)


def sort_slices(slices: Sequence[Slice]) -> List[Slice]:
    """
    Sort slices along their acquisition axis.

    See the module docstring for the ordering rules.

    Raises:
        ValueError: If slices is empty
        GeometryError: If orientation or position metadata is missing or invalid
    """
    return order_series_slices(slices).slices
