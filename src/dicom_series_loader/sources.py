"""Fetch raw DICOM files from local, S3 or HTTP storage."""

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional

from obstore.store import from_url

from .constants import DEFAULT_MAX_WORKERS
from .models import RawFile

logger = logging.getLogger(__name__)

REMOTE_SCHEMES = ("s3://", "http://", "https://", "file://")


def open_store(root_path: str):
    """Initialize the appropriate object store based on path."""
    if not root_path.startswith(REMOTE_SCHEMES):
        # Local filesystem paths must be absolute file:// URLs
        root_path = Path(root_path).expanduser().resolve().as_uri()

    # For S3, use anonymous access (skip signature)
    if root_path.startswith("s3://"):
        from obstore.store import S3Store
        return S3Store.from_url(
            root_path,
            config={"aws_skip_signature": "true"}
        )

    return from_url(root_path)


def list_paths(store, prefix: Optional[str] = None, suffix: str = ".dcm") -> List[str]:
    """List object paths below prefix that end with suffix, sorted."""
    paths = []
    # obstore.list yields batches of object metadata
    for batch in store.list(prefix=prefix):
        objects = batch if isinstance(batch, list) else [batch]
        for obj in objects:
            path = obj.get("path") if isinstance(obj, dict) else str(obj)
            if not suffix or path.lower().endswith(suffix.lower()):
                paths.append(path)
    paths.sort()
    return paths


def fetch_raw_file(store, path: str) -> RawFile:
    result = store.get(path)
    # GetResult.bytes() returns obstore.Bytes which can be converted to bytes
    data = bytes(result.bytes())
    return RawFile(path.split("/")[-1], data)


def list_raw_files(
    root_path: str,
    prefix: Optional[str] = None,
    suffix: str = ".dcm",
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> List[RawFile]:
    """
    Fetch every file below a storage root.

    Args:
        root_path: Local directory, file://, s3:// or http(s):// root
        prefix: Optional path prefix within the root
        suffix: Only fetch objects whose path ends with this suffix ("" for all)
        max_workers: Number of concurrent downloads

    Returns:
        List of RawFile objects in path order
    """
    store = open_store(root_path)
    paths = list_paths(store, prefix=prefix, suffix=suffix)
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"Found {len(paths)} objects under {root_path}")
    if not paths:
        return []

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        return list(executor.map(lambda p: fetch_raw_file(store, p), paths))
