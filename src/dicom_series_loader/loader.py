"""Concurrent decoding of raw files into slices."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, List, Optional, Sequence

from .decoder import Decoder
from .exceptions import DecodeError, LoadCancelled
from .models import RawFile, Slice
from .registry import FileRegistry

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


def _no_progress(fraction: float) -> None:
    pass


class LoadOutcome:
    """Result of one decode task: a slice, a decode error, or a cancellation."""

    __slots__ = ("raw_file", "file_id", "slice", "error", "cancelled")

    def __init__(
        self,
        raw_file: RawFile,
        file_id: str,
        slice_: Optional[Slice] = None,
        error: Optional[DecodeError] = None,
        cancelled: bool = False,
    ):
        self.raw_file = raw_file
        self.file_id = file_id
        self.slice = slice_
        self.error = error
        self.cancelled = cancelled

    @property
    def ok(self) -> bool:
        return self.slice is not None

    def __repr__(self) -> str:
        state = "ok" if self.ok else ("cancelled" if self.cancelled else f"error={self.error}")
        return f"LoadOutcome({self.raw_file.name!r}, {state})"


class ProgressTracker:
    """
    Thread-safe progress accounting for a batch of decode tasks.

    Each success advances the completed count; each failure shrinks the
    expected total instead. The reported fraction is completed / total, so a
    failure makes it jump forward rather than advance by a fixed step. When
    every file has failed the fraction is reported as 1.0.
    """

    def __init__(self, total: int, callback: Optional[ProgressCallback] = None):
        self.completed = 0
        self.total = total
        self._callback = callback or _no_progress
        self._lock = threading.Lock()

    @property
    def fraction(self) -> float:
        if self.total <= 0:
            return 1.0
        return self.completed / self.total

    def succeeded(self) -> float:
        with self._lock:
            self.completed += 1
            return self._report()

    def failed(self) -> float:
        with self._lock:
            self.total -= 1
            return self._report()

    def _report(self) -> float:
        # Called with the lock held so callbacks arrive in completion order
        value = self.fraction
        self._callback(value)
        return value


class SliceLoader:
    """
    Decode a batch of raw files concurrently.

    Parameters
    ----------
    decoder : Decoder
        Turns a raw file into a slice
    registry : FileRegistry
        Receives every raw file so slices can be traced back to it
    max_workers : int, optional
        Thread pool size. Defaults to one worker per file.
    """

    def __init__(
        self,
        decoder: Decoder,
        registry: FileRegistry,
        max_workers: Optional[int] = None,
    ):
        if max_workers is not None and max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.decoder = decoder
        self.registry = registry
        self.max_workers = max_workers

    def load(
        self,
        files: Sequence[RawFile],
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[Slice]:
        """
        Decode every file and return the slices that decoded successfully.

        Raises:
            LoadCancelled: If cancel_event was set before all files were processed
        """
        outcomes = self.load_outcomes(files, on_progress, cancel_event)
        return [o.slice for o in outcomes if o.ok]

    def load_outcomes(
        self,
        files: Sequence[RawFile],
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[LoadOutcome]:
        """Decode every file and return one outcome per processed file, in input order."""
        if not files:
            return []

        tracker = ProgressTracker(len(files), on_progress)
        max_workers = self.max_workers or len(files)
        outcomes: dict[int, LoadOutcome] = {}

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {}
            for index, raw_file in enumerate(files):
                file_id = self.registry.register(raw_file)
                future = executor.submit(self._decode_one, raw_file, file_id, tracker, cancel_event)
                futures[future] = index

            for future in as_completed(futures):
                if future.cancelled():
                    continue
                outcomes[futures[future]] = future.result()
                if cancel_event is not None and cancel_event.is_set():
                    for pending in futures:
                        pending.cancel()

        if cancel_event is not None and cancel_event.is_set():
            processed = sum(1 for o in outcomes.values() if not o.cancelled)
            if processed < len(files):
                logger.warning(f"Load cancelled after {processed} of {len(files)} files")
                raise LoadCancelled(f"Load cancelled after {processed} of {len(files)} files")

        failures = sum(1 for o in outcomes.values() if o.error is not None)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Decoded {len(outcomes) - failures} of {len(files)} files ({failures} failed)")
        return [outcomes[i] for i in sorted(outcomes)]

    def _decode_one(
        self,
        raw_file: RawFile,
        file_id: str,
        tracker: ProgressTracker,
        cancel_event: Optional[threading.Event],
    ) -> LoadOutcome:
        if cancel_event is not None and cancel_event.is_set():
            return LoadOutcome(raw_file, file_id, cancelled=True)

        try:
            slice_ = self.decoder.decode(raw_file, file_id, high_fidelity=False)
        except DecodeError as e:
            error = e
        except Exception as e:
            error = DecodeError(f"Failed to decode {raw_file.name}: {e}", raw_file.name)
            error.__cause__ = e
        else:
            tracker.succeeded()
            return LoadOutcome(raw_file, file_id, slice_=slice_)

        logger.warning(f"Error while loading file {raw_file.name}: {error}")
        tracker.failed()
        return LoadOutcome(raw_file, file_id, error=error)
