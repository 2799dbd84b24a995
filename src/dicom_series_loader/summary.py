"""Tabular summary of loaded series."""

import logging
from pathlib import Path
from typing import Iterable, Union

import polars as pl

from .models import Series

logger = logging.getLogger(__name__)

SUMMARY_SCHEMA = {
    "SeriesUID": pl.Utf8,
    "Description": pl.Utf8,
    "SliceCount": pl.Int64,
    "Ordered": pl.Boolean,
    "CoverSliceRemoved": pl.Boolean,
    "HasThumbnail": pl.Boolean,
    "FirstInstance": pl.Utf8,
    "LastInstance": pl.Utf8,
}

SUMMARY_FORMATS = {".parquet": "parquet", ".csv": "csv", ".json": "json"}


def series_dataframe(series_list: Iterable[Series]) -> pl.DataFrame:
    """Build one row per series describing how it was assembled."""
    rows = []
    for series in series_list:
        first = series.slices[0] if series.slices else None
        last = series.slices[-1] if series.slices else None
        rows.append(
            {
                "SeriesUID": series.series_uid,
                "Description": series.description,
                "SliceCount": len(series.slices),
                "Ordered": series.ordered,
                "CoverSliceRemoved": series.cover_slice is not None,
                "HasThumbnail": series.thumbnail is not None,
                "FirstInstance": first.sop_instance_uid if first else None,
                "LastInstance": last.sop_instance_uid if last else None,
            }
        )
    return pl.DataFrame(rows, schema=SUMMARY_SCHEMA)


def write_summary(df: pl.DataFrame, output_path: Union[str, Path]) -> Path:
    """
    Write a summary table, choosing the format from the file suffix.

    Raises:
        ValueError: If the suffix is not .parquet, .csv or .json
    """
    output_path = Path(output_path)
    fmt = SUMMARY_FORMATS.get(output_path.suffix.lower())
    if fmt is None:
        raise ValueError(f"Unsupported summary format: {output_path.suffix or output_path.name}")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    if fmt == "parquet":
        df.write_parquet(str(output_path))
    elif fmt == "csv":
        df.write_csv(str(output_path))
    else:
        df.write_json(str(output_path))

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"Wrote {len(df)} series rows to {output_path}")
    return output_path
