"""
River extraction.

Turns the continuous accumulation field into discrete rivers. Sources
are processed strongest first; each one is traced from its headwater
down the flow targets until it reaches the sea, a lake, the end of the
drainage or a river that was traced earlier.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import numpy as np
import structlog

from .cell_graph import CellGraph
from .options import HydrologyOptions

logger = structlog.get_logger()


class RiverType(Enum):
    """River size classes."""

    STREAM = "stream"
    RIVER = "river"
    MAJOR_RIVER = "major_river"


@dataclass
class River:
    """Represents a river with its properties."""

    id: int
    cells: Sequence[int]  # source first, mouth last
    width: int = 1
    length: int = 0
    max_accumulation: int = 0
    name: Optional[str] = None
    seasonal: bool = False
    river_type: RiverType = RiverType.STREAM
    parent_id: Optional[int] = None  # river this one joins
    join_cell: Optional[int] = None  # first cell of the parent after the confluence
    tributaries: Sequence[int] = field(default_factory=list)
    lake_id: Optional[int] = None  # lake the river ends in
    drains_to_ocean: bool = False
    deltas: Sequence[Sequence[int]] = field(default_factory=list)

    @property
    def source(self) -> int:
        return self.cells[0]

    @property
    def mouth(self) -> int:
        return self.cells[-1]

    def freeze(self) -> "River":
        """Swap the cell lists for tuples once generation is done."""
        self.cells = tuple(self.cells)
        self.tributaries = tuple(self.tributaries)
        self.deltas = tuple(tuple(channel) for channel in self.deltas)
        return self

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cells": list(self.cells),
            "source": self.source,
            "mouth": self.mouth,
            "width": self.width,
            "length": self.length,
            "max_accumulation": self.max_accumulation,
            "name": self.name,
            "seasonal": self.seasonal,
            "type": self.river_type.value,
            "parent_id": self.parent_id,
            "join_cell": self.join_cell,
            "tributaries": list(self.tributaries),
            "lake_id": self.lake_id,
            "drains_to_ocean": self.drains_to_ocean,
            "deltas": [list(channel) for channel in self.deltas],
        }


@dataclass
class RiverExtraction:
    """Rivers plus the numbers behind them."""

    rivers: List[River]
    river_ids: np.ndarray  # river owning each cell, -1 for none
    threshold: int
    candidate_sources: int
    rejected_short: int
    threshold_adjustments: int = 0


def river_threshold(land_cells: int, options: HydrologyOptions) -> int:
    """Accumulation a cell needs before it carries a river."""
    if options.river_threshold is not None:
        return int(options.river_threshold)
    proportional = math.ceil(land_cells * options.river_threshold_fraction)
    return max(options.min_river_threshold, proportional)


class RiverExtractor:
    """Extracts rivers from a flow field."""

    def __init__(
        self,
        graph: CellGraph,
        targets: np.ndarray,
        accumulation: np.ndarray,
        lake_ids: np.ndarray,
        options: HydrologyOptions,
    ):
        self.graph = graph
        self.targets = targets
        self.accumulation = accumulation
        self.lake_ids = lake_ids
        self.options = options

        self._ocean = graph.ocean_mask(options.sea_level)
        self._donors: List[List[int]] = [[] for _ in range(graph.n_cells)]
        for cell, target in enumerate(targets.tolist()):
            if target >= 0:
                self._donors[target].append(cell)

    def extract(self) -> RiverExtraction:
        """
        Extract rivers, lowering the threshold if auto-adjust is enabled.

        With ``auto_adjust_threshold`` the threshold drops by 20 % (never
        below ``min_threshold``) while fewer than ``target_rivers`` come
        out, up to ``max_threshold_adjustments`` times.
        """
        land_cells = int(np.count_nonzero(~self._ocean))
        threshold = river_threshold(land_cells, self.options)
        logger.info("Generating rivers", threshold=threshold, land_cells=land_cells)

        rivers, river_ids, candidates, rejected = self._extract_at(threshold)

        adjustments = 0
        if self.options.auto_adjust_threshold:
            while (
                len(rivers) < self.options.target_rivers
                and adjustments < self.options.max_threshold_adjustments
                and threshold > self.options.min_threshold
            ):
                threshold = max(self.options.min_threshold, int(threshold * 0.8))
                adjustments += 1
                logger.info("Lowering river threshold", threshold=threshold, rivers=len(rivers))
                rivers, river_ids, candidates, rejected = self._extract_at(threshold)

        logger.info(
            "Rivers generated",
            rivers=len(rivers),
            candidate_sources=candidates,
            rejected_short=rejected,
            threshold=threshold,
        )
        return RiverExtraction(
            rivers=rivers,
            river_ids=river_ids,
            threshold=threshold,
            candidate_sources=candidates,
            rejected_short=rejected,
            threshold_adjustments=adjustments,
        )

    def _extract_at(self, threshold: int) -> Tuple[List[River], np.ndarray, int, int]:
        acc = self.accumulation
        in_lake = self.lake_ids >= 0
        eligible = np.flatnonzero((acc >= threshold) & ~self._ocean & ~in_lake)
        candidates = sorted(eligible.tolist(), key=lambda c: (-int(acc[c]), c))

        claimed = np.full(self.graph.n_cells, -1, dtype=np.int64)
        rivers: List[River] = []
        rejected = 0

        for start in candidates:
            if claimed[start] >= 0:
                continue

            head = self._headwater(start, claimed)
            river = self._trace(len(rivers), head, claimed)
            if len(river.cells) < self.options.min_river_length:
                claimed[river.cells] = -1
                rejected += 1
                continue

            river.length = len(river.cells)
            river.max_accumulation = int(acc[list(river.cells)].max())
            if river.parent_id is not None:
                rivers[river.parent_id].tributaries.append(river.id)
            rivers.append(river)

        return rivers, claimed, len(candidates), rejected

    def _headwater(self, cell: int, claimed: np.ndarray) -> int:
        """Follow the strongest free donor upstream as far as it goes."""
        acc = self.accumulation
        while True:
            best = -1
            best_acc = 0
            for donor in self._donors[cell]:
                if claimed[donor] >= 0 or self.lake_ids[donor] >= 0:
                    continue
                # donors are in ascending id order, so ties keep the lower id
                if acc[donor] > best_acc:
                    best = donor
                    best_acc = acc[donor]
            if best < 0:
                return cell
            cell = best

    def _trace(self, river_id: int, head: int, claimed: np.ndarray) -> River:
        """Trace one river down the flow targets, claiming its cells."""
        river = River(id=river_id, cells=[])
        cell = head
        while True:
            if self._ocean[cell]:
                river.drains_to_ocean = True
                break
            if self.lake_ids[cell] >= 0:
                river.lake_id = int(self.lake_ids[cell])
                break
            if claimed[cell] >= 0:
                river.parent_id = int(claimed[cell])
                river.join_cell = int(cell)
                break

            river.cells.append(int(cell))
            claimed[cell] = river_id
            target = self.targets[cell]
            if target < 0:
                break
            cell = target
        return river
