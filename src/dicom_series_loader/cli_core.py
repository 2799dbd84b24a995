"""
DICOM Series Loader

Load a folder or bucket of DICOM files, assemble them into ordered series and
write one thumbnail per series.
"""

import base64
import logging
from pathlib import Path

from .api import load_series
from .renderer import ThumbnailRenderer
from .sources import list_raw_files
from .summary import series_dataframe, write_summary


THUMBNAIL_SUFFIXES = {"JPEG": ".jpg", "WEBP": ".webp"}
PROGRESS_LOG_STEP = 0.1


def setup_logging(verbose=False):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.WARNING
    format_str = '%(levelname)s: %(message)s' if not verbose else '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    logging.basicConfig(
        level=level,
        format=format_str
    )


def _progress_logger(logger):
    """Return a progress callback that logs every 10% step."""
    state = {"next": PROGRESS_LOG_STEP}

    def report(fraction):
        if fraction >= state["next"] or fraction >= 1.0:
            logger.info(f"Decoded {fraction:.0%}")
            while state["next"] <= fraction:
                state["next"] += PROGRESS_LOG_STEP

    return report


def _safe_filename(series_uid: str) -> str:
    return "".join(c if c.isalnum() or c in ".-_" else "_" for c in series_uid)


def write_thumbnails(series_list, output_dir: Path, image_format: str):
    """Write decoded thumbnails to output_dir; returns the written paths by series UID."""
    output_dir.mkdir(parents=True, exist_ok=True)
    suffix = THUMBNAIL_SUFFIXES[image_format]
    written = {}
    for series in series_list:
        if series.thumbnail is None:
            continue
        path = output_dir / f"{_safe_filename(series.series_uid)}{suffix}"
        path.write_bytes(base64.b64decode(series.thumbnail))
        written[series.series_uid] = path
    return written


def load_command(args, logger):
    """Load DICOM files under a root, order them into series and write thumbnails."""
    try:
        renderer = ThumbnailRenderer(
            image_width=args.width,
            quality=args.quality,
            image_format=args.format,
        )
    except ValueError as e:
        logger.error(f"Invalid thumbnail settings: {e}")
        return 1

    if args.verbose:
        logger.info(f"Loading DICOM files from {args.root}")

    try:
        files = list_raw_files(args.root, suffix=args.suffix, max_workers=args.workers)
    except Exception as e:
        logger.error(f"Failed to list files under {args.root}: {e}")
        return 1

    if not files:
        logger.error(f"No files matching '*{args.suffix}' found under {args.root}")
        return 1

    series_list = load_series(
        files,
        on_progress=_progress_logger(logger),
        renderer=renderer,
        max_workers=args.workers,
    )
    if not series_list:
        logger.error("None of the files could be decoded")
        return 1

    output_dir = Path(args.output_dir)
    written = write_thumbnails(series_list, output_dir, renderer.image_format)

    summary_path = getattr(args, "summary", None)
    if summary_path:
        try:
            write_summary(series_dataframe(series_list), summary_path)
        except (ValueError, OSError) as e:
            logger.error(f"Failed to write summary: {e}")
            return 1

    for series in series_list:
        flags = []
        if not series.ordered:
            flags.append("unordered")
        if series.cover_slice is not None:
            flags.append("cover removed")
        if series.series_uid not in written:
            flags.append("no thumbnail")
        note = f" [{', '.join(flags)}]" if flags else ""
        print(f"{series.series_uid}\t{len(series.slices)}\t{series.description}{note}")

    return 0
