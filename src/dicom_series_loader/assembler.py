"""Group decoded slices into series."""

import logging
from typing import Iterable, List, Mapping

from .models import Series, Slice

logger = logging.getLogger(__name__)


def group_slices(slices: Iterable[Slice]) -> dict[str, List[Slice]]:
    """Partition slices by SeriesInstanceUID, keeping arrival order within each group."""
    groups: dict[str, List[Slice]] = {}
    for s in slices:
        groups.setdefault(s.series_uid, []).append(s)
    return groups


def build_series(groups: Mapping[str, List[Slice]]) -> List[Series]:
    """
    Build one Series per group.

    The description is taken from the first slice of each group; it is
    expected to be the same on every slice.
    """
    series_list = []
    for series_uid, members in groups.items():
        if not members:
            continue
        series_list.append(Series(series_uid, members[0].description, members))

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"Assembled {len(series_list)} series from {sum(len(m) for m in groups.values())} slices")
    return series_list
