"""
Region index over a generated document.

A region is a run of generated coordinates that a source map attributes to
a single source file. Regions are built by compressing the map's mappings:
a new region opens every time the mapped source changes, and the previous
region ends where the new one starts. The last region is open-ended.
"""

from __future__ import annotations

import bisect
import logging
import sys
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from .errors import NoOwningRegionError


logger = logging.getLogger(__name__)

Position = Tuple[int, int]

_OPEN_END: Position = (sys.maxsize, sys.maxsize)


@dataclass(frozen=True)
class Region:
    source: Optional[str]
    start_line: int
    start_column: int
    end_line: Optional[int] = None
    end_column: Optional[int] = None

    @property
    def start(self) -> Position:
        return (self.start_line, self.start_column)

    @property
    def end(self) -> Position:
        if self.end_line is None:
            return _OPEN_END
        return (self.end_line, self.end_column if self.end_column is not None else sys.maxsize)

    def contains(self, line: int, column: int) -> bool:
        # A region owns its own end position: ties at a boundary go to the
        # region that ends there.
        return self.start <= (line, column) <= self.end


class RegionIndex:
    """
    Ordered, immutable sequence of regions.

    resolve() returns the first region, in index order, whose span contains
    the position. When region ends are monotonic (always the case for maps
    in generated order) this is found by bisecting the end boundaries;
    otherwise the index falls back to a linear scan with the same result.
    """

    def __init__(self, regions: Iterable[Region]):
        self._regions: Tuple[Region, ...] = tuple(regions)
        self._ends: List[Position] = [r.end for r in self._regions]
        self._monotonic = all(a <= b for a, b in zip(self._ends, self._ends[1:]))
        if not self._monotonic:
            logger.debug("Region ends are not ordered; using linear resolution")

    def __len__(self) -> int:
        return len(self._regions)

    def __iter__(self):
        return iter(self._regions)

    def __getitem__(self, i: int) -> Region:
        return self._regions[i]

    def resolve(self, line: int, column: int) -> Region:
        """
        Find the region owning a generated position.

        Args:
            line: Generated line, 1-based
            column: Generated column, 0-based

        Returns:
            The owning Region

        Raises:
            NoOwningRegionError: if no region contains the position
        """
        position = (line, column)

        if self._monotonic:
            i = bisect.bisect_left(self._ends, position)
            if i < len(self._regions) and self._regions[i].start <= position:
                return self._regions[i]
        else:
            for region in self._regions:
                if region.contains(line, column):
                    return region

        raise NoOwningRegionError(line, column)


def build_regions(mappings: Iterable[Tuple[int, int, Optional[str]]]) -> RegionIndex:
    """
    Compress (generated_line, generated_column, source) mappings into a
    RegionIndex.

    The mappings must be in generated order; no region is created for a
    mapping whose source is the same as the currently open region's.
    Leading mappings without a source open no region.
    """
    regions: List[Region] = []
    open_start: Optional[Position] = None
    current_source: Optional[str] = None

    for line, column, source in mappings:
        if source == current_source:
            continue
        if open_start is not None:
            regions.append(Region(current_source, open_start[0], open_start[1], line, column))
        open_start = (line, column)
        current_source = source

    if open_start is not None:
        regions.append(Region(current_source, open_start[0], open_start[1]))

    logger.debug(f"Built {len(regions)} regions")
    return RegionIndex(regions)
