"""Click-based command-line interface for dicom-series-loader."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional
from types import SimpleNamespace

import click

from .constants import (
    DEFAULT_IMAGE_QUALITY,
    DEFAULT_IMAGE_WIDTH,
    DEFAULT_MAX_WORKERS,
)
from .cli_core import setup_logging, load_command


CommandCallable = Callable[[object, logging.Logger], int]


def _invoke_command(func: CommandCallable, **kwargs: Any) -> None:
    """Invoke existing command helpers and map errors to Click exceptions."""
    args = kwargs
    setup_logging(bool(args.get("verbose", False)))
    logger = logging.getLogger(__name__)
    rc = func(SimpleNamespace(**args), logger)
    if rc != 0:
        raise click.ClickException(f"{func.__name__} failed with exit code {rc}")


@click.group()
def cli() -> None:
    """Assemble DICOM files into ordered series with thumbnails."""


@cli.command("load")
@click.argument("root")
@click.argument("output_dir", type=click.Path(file_okay=False, path_type=str))
@click.option(
    "-w",
    "--width",
    type=int,
    default=DEFAULT_IMAGE_WIDTH,
    show_default=True,
    help="Thumbnail width in pixels.",
)
@click.option(
    "-q",
    "--quality",
    type=click.IntRange(0, 100),
    default=DEFAULT_IMAGE_QUALITY,
    show_default=True,
    help="Thumbnail quality 0-100.",
)
@click.option(
    "-f",
    "--format",
    "image_format",
    type=click.Choice(["jpeg", "webp"], case_sensitive=False),
    default="jpeg",
    show_default=True,
    help="Thumbnail image format.",
)
@click.option(
    "--workers",
    type=click.IntRange(min=1),
    default=DEFAULT_MAX_WORKERS,
    show_default=True,
    help="Maximum concurrent downloads, decodes and renders.",
)
@click.option(
    "--suffix",
    default=".dcm",
    show_default=True,
    help="Only load files ending with this suffix (empty for all files).",
)
@click.option(
    "--summary",
    type=click.Path(dir_okay=False, path_type=str),
    help="Write a series summary table (.parquet, .csv or .json).",
)
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    help="Enable detailed logging",
)
def load_click(
    *,
    root: str,
    output_dir: str,
    width: int,
    quality: int,
    image_format: str,
    workers: int,
    suffix: str,
    summary: Optional[str],
    verbose: bool,
) -> None:
    """Load DICOM files under ROOT (local path, file://, s3:// or http(s)://) and write thumbnails to OUTPUT_DIR."""
    _invoke_command(
        load_command,
        root=root,
        output_dir=output_dir,
        width=width,
        quality=quality,
        format=image_format.upper(),
        workers=workers,
        suffix=suffix,
        summary=summary,
        verbose=verbose,
    )
