from io import BytesIO

import numpy as np
import pydicom
import pytest
from pydicom.dataset import Dataset, FileMetaDataset
from pydicom.uid import CTImageStorage, ExplicitVRLittleEndian, generate_uid

from dicom_series_loader import DecodeError, RawFile, RenderError, Slice


AXIAL = (1.0, 0.0, 0.0, 0.0, 1.0, 0.0)
CORONAL = (1.0, 0.0, 0.0, 0.0, 0.0, -1.0)


def make_slice(
    z=0.0,
    series_uid="1.2.3",
    orientation=AXIAL,
    patient_position="HFS",
    file_id=None,
    description="Axial",
    transfer_syntax=ExplicitVRLittleEndian,
    position=None,
):
    if position is None:
        position = (0.0, 0.0, z)
    return Slice(
        series_uid,
        file_id or f"{series_uid}:{z}",
        description=description,
        image_orientation_patient=orientation,
        image_position_patient=position,
        patient_position=patient_position,
        transfer_syntax=transfer_syntax,
    )


class FakeDecoder:
    """Decoder returning prepared slices keyed by raw file name.

    A prepared value that is an exception instance is raised instead.
    """

    def __init__(self, results, high_fidelity_results=None):
        self.results = results
        self.high_fidelity_results = high_fidelity_results or {}
        self.calls = []

    def decode(self, raw_file, file_id, high_fidelity=False):
        self.calls.append((raw_file.name, file_id, high_fidelity))
        table = self.high_fidelity_results if high_fidelity else self.results
        result = table[raw_file.name]
        if isinstance(result, Exception):
            raise result
        return Slice(
            result.series_uid,
            file_id,
            description=result.description,
            image_orientation_patient=result.image_orientation_patient,
            image_position_patient=result.image_position_patient,
            patient_position=result.patient_position,
            transfer_syntax=result.transfer_syntax,
            sop_instance_uid=result.sop_instance_uid,
        )


class FakeRenderer:
    def __init__(self, fail_for=()):
        self.fail_for = set(fail_for)
        self.rendered = []

    def encode(self, slice_):
        self.rendered.append(slice_)
        if slice_.file_id in self.fail_for:
            raise RenderError(f"cannot render {slice_.file_id}")
        return f"thumb:{slice_.file_id}"


def make_dicom_bytes(
    series_uid="1.2.3",
    position=(0.0, 0.0, 0.0),
    orientation=AXIAL,
    patient_position="HFS",
    description="Axial",
    instance_number=1,
    rows=8,
    columns=8,
    window=None,
    voi_lut_function=None,
    include_series_uid=True,
    include_pixels=True,
):
    sop_uid = generate_uid()

    file_meta = FileMetaDataset()
    file_meta.TransferSyntaxUID = ExplicitVRLittleEndian
    file_meta.MediaStorageSOPClassUID = CTImageStorage
    file_meta.MediaStorageSOPInstanceUID = sop_uid

    ds = Dataset()
    ds.file_meta = file_meta
    ds.SOPClassUID = CTImageStorage
    ds.SOPInstanceUID = sop_uid
    if include_series_uid:
        ds.SeriesInstanceUID = series_uid
    ds.SeriesDescription = description
    ds.Modality = "CT"
    ds.PatientPosition = patient_position
    ds.InstanceNumber = instance_number
    if orientation is not None:
        ds.ImageOrientationPatient = [str(v) for v in orientation]
    if position is not None:
        ds.ImagePositionPatient = [str(v) for v in position]
    if window is not None:
        ds.WindowWidth, ds.WindowCenter = window
    if voi_lut_function is not None:
        ds.VOILUTFunction = voi_lut_function

    if include_pixels:
        ds.Rows = rows
        ds.Columns = columns
        ds.SamplesPerPixel = 1
        ds.PhotometricInterpretation = "MONOCHROME2"
        ds.BitsAllocated = 16
        ds.BitsStored = 16
        ds.HighBit = 15
        ds.PixelRepresentation = 0
        pixels = np.arange(rows * columns, dtype=np.uint16).reshape(rows, columns) * 10
        ds.PixelData = pixels.tobytes()

    buffer = BytesIO()
    pydicom.dcmwrite(buffer, ds, enforce_file_format=True)
    return buffer.getvalue()


@pytest.fixture
def dicom_file():
    """Factory for RawFile objects holding small synthetic CT slices."""

    def factory(name="slice.dcm", **kwargs):
        return RawFile(name, make_dicom_bytes(**kwargs))

    return factory


def decode_error(name):
    return DecodeError(f"corrupt {name}", name)
