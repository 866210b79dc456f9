"""
Synthetic DICOM files for tests.

Builds small pydicom datasets and serializes them to bytes so tests can
exercise loading, organizing, decoding and text extraction without sample
files on disk.
"""

from io import BytesIO
from typing import Optional

import numpy as np
from pydicom.dataset import Dataset, FileMetaDataset
from pydicom.sequence import Sequence
from pydicom.uid import ExplicitVRLittleEndian, generate_uid

CT_IMAGE_STORAGE = "1.2.840.10008.5.1.4.1.1.2"
BASIC_TEXT_SR_STORAGE = "1.2.840.10008.5.1.4.1.1.88.11"


def make_dataset(
    study_uid: str = "1.2.826.0.1.1",
    series_uid: str = "1.2.826.0.1.1.1",
    instance_number: Optional[int] = 1,
    modality: str = "CT",
    rows: int = 8,
    columns: int = 8,
    pixel_spacing: Optional[str] = "0.5\\0.5",
    with_pixels: bool = True,
    sop_class_uid: str = CT_IMAGE_STORAGE,
) -> Dataset:
    """
    Build a dataset with patient/study/series tags and optional 16-bit pixel data.

    Args:
        study_uid: Study Instance UID
        series_uid: Series Instance UID
        instance_number: Instance Number (None leaves the tag out)
        modality: Modality
        rows: Image rows
        columns: Image columns
        pixel_spacing: Pixel Spacing string (None leaves the tag out)
        with_pixels: Include PixelData and the image pixel module
        sop_class_uid: SOP Class UID

    Returns:
        Dataset with file meta information
    """
    ds = Dataset()
    ds.file_meta = FileMetaDataset()
    ds.file_meta.MediaStorageSOPClassUID = sop_class_uid
    ds.file_meta.MediaStorageSOPInstanceUID = generate_uid()
    ds.file_meta.TransferSyntaxUID = ExplicitVRLittleEndian

    ds.SOPClassUID = sop_class_uid
    ds.SOPInstanceUID = ds.file_meta.MediaStorageSOPInstanceUID
    ds.PatientName = "Test^Patient"
    ds.PatientID = "PID001"
    ds.PatientBirthDate = "19800102"
    ds.PatientSex = "O"
    ds.StudyDate = "20240315"
    ds.StudyDescription = "Head CT"
    ds.SeriesDescription = "Axial"
    ds.InstitutionName = "General Hospital"
    ds.Modality = modality
    ds.StudyInstanceUID = study_uid
    ds.SeriesInstanceUID = series_uid
    if instance_number is not None:
        ds.InstanceNumber = instance_number
    if pixel_spacing is not None:
        ds.PixelSpacing = pixel_spacing.split("\\")

    if with_pixels:
        ds.Rows = rows
        ds.Columns = columns
        ds.SamplesPerPixel = 1
        ds.PhotometricInterpretation = "MONOCHROME2"
        ds.BitsAllocated = 16
        ds.BitsStored = 12
        ds.HighBit = 11
        ds.PixelRepresentation = 0
        ds.WindowCenter = 100
        ds.WindowWidth = 200
        pixels = (np.arange(rows * columns, dtype=np.uint16) * 10).reshape(rows, columns)
        ds.PixelData = pixels.tobytes()
    return ds


def make_report_dataset(
    study_uid: str = "1.2.826.0.1.1",
    series_uid: str = "1.2.826.0.1.1.9",
    text: str = "No acute intracranial abnormality.",
) -> Dataset:
    """Build a structured report with a nested text content item."""
    ds = make_dataset(study_uid=study_uid, series_uid=series_uid, modality="SR",
                      pixel_spacing=None, with_pixels=False, sop_class_uid=BASIC_TEXT_SR_STORAGE)
    ds.SeriesDescription = "Radiology Report"
    item = Dataset()
    item.ValueType = "TEXT"
    item.TextValue = text
    ds.ContentSequence = Sequence([item])
    return ds


def to_bytes(ds: Dataset) -> bytes:
    """Serialize a dataset as a DICOM file."""
    buffer = BytesIO()
    ds.save_as(buffer, enforce_file_format=True)
    return buffer.getvalue()


def image_bytes(**kwargs) -> bytes:
    return to_bytes(make_dataset(**kwargs))


def no_pixel_bytes(**kwargs) -> bytes:
    """A valid DICOM file the rendering engine cannot display."""
    kwargs.setdefault("pixel_spacing", None)
    return to_bytes(make_dataset(with_pixels=False, **kwargs))
