"""Registry mapping file identifiers back to raw files."""

import itertools
import threading

from .exceptions import UnknownFileError
from .models import RawFile


class FileRegistry:
    """Map opaque file identifiers to the raw files they were decoded from.

    A registry is owned by the caller of ``load_series`` and is needed after
    the bulk load to re-decode a slice in high-fidelity mode.
    """

    def __init__(self, prefix: str = "dicomfile"):
        self._prefix = prefix
        self._files: dict[str, RawFile] = {}
        self._counter = itertools.count()
        self._lock = threading.Lock()

    def register(self, raw_file: RawFile) -> str:
        """Add a raw file and return its new identifier."""
        with self._lock:
            file_id = f"{self._prefix}:{next(self._counter)}"
            self._files[file_id] = raw_file
        return file_id

    def get(self, file_id: str) -> RawFile:
        with self._lock:
            try:
                return self._files[file_id]
            except KeyError:
                raise UnknownFileError(file_id) from None

    def __contains__(self, file_id: object) -> bool:
        with self._lock:
            return file_id in self._files

    def __len__(self) -> int:
        with self._lock:
            return len(self._files)
