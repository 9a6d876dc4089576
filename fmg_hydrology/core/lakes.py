"""
Lake detection and classification.

Lakes are flat regions the pit filler had to raise. Their geometry
(members, spill plateau, outlet) is known straight after filling; their
water balance (inflow, evaporation) needs the rivers.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import structlog

from .cell_graph import CellGraph, neighbors_of
from .options import HydrologyOptions
from .pit_filling import FilledTerrain

logger = structlog.get_logger()


class LakeType(Enum):
    """Classification of lakes based on their water balance."""

    FRESHWATER = "freshwater"
    SALTWATER = "saltwater"  # closed, no outlet
    BRACKISH = "brackish"  # barely more inflow than evaporation
    SEASONAL = "seasonal"  # dries up in dry seasons


@dataclass
class Lake:
    """Represents a lake with its properties."""

    id: int
    cells: Sequence[int]
    level: float  # water surface (effective elevation of every member)
    outlet: Optional[int] = None  # cell the lake drains into, None when closed
    shoreline: Sequence[int] = field(default_factory=list)  # non-member cells adjacent to the lake
    inflow: int = 0  # accumulation carried in by rivers ending in the lake
    evaporation: float = 0.0
    area: int = 0  # member cell count
    temperature: float = 0.0
    precipitation: float = 0.0
    inflowing_rivers: Sequence[int] = field(default_factory=list)
    outlet_river: Optional[int] = None
    lake_type: LakeType = LakeType.FRESHWATER

    # Routing geometry: every cell flat with the lake, and the one that spills into the outlet
    plateau: Sequence[int] = field(default_factory=list, repr=False)
    spill_cell: Optional[int] = field(default=None, repr=False)

    @property
    def closed(self) -> bool:
        """True if the lake has nowhere to spill or evaporation meets or exceeds inflow."""
        return self.outlet is None or self.evaporation >= self.inflow

    @property
    def net_outflow(self) -> float:
        if self.closed:
            return 0.0
        return max(self.inflow - self.evaporation, 0.0)

    def freeze(self) -> "Lake":
        """Swap the cell lists for tuples once generation is done."""
        self.cells = tuple(self.cells)
        self.shoreline = tuple(self.shoreline)
        self.inflowing_rivers = tuple(self.inflowing_rivers)
        self.plateau = tuple(self.plateau)
        return self

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cells": list(self.cells),
            "level": self.level,
            "outlet": self.outlet,
            "shoreline": list(self.shoreline),
            "inflow": self.inflow,
            "evaporation": self.evaporation,
            "closed": self.closed,
            "area": self.area,
            "temperature": self.temperature,
            "precipitation": self.precipitation,
            "inflowing_rivers": list(self.inflowing_rivers),
            "outlet_river": self.outlet_river,
            "type": self.lake_type.value,
        }


def lake_evaporation(area: int, temperature: float, precipitation: float, options: HydrologyOptions) -> float:
    """
    Water a lake loses per step.

    Grows with surface area, doubles every 10°C and shrinks as rain over
    the lake rises. Always positive for a non-empty lake.
    """
    warmth = 2.0 ** (temperature / 10.0)
    dampening = 1.0 + max(precipitation, 0.0) / options.evaporation_precipitation_scale
    return options.evaporation_rate * area * warmth / dampening


class LakeIdentifier:
    """Groups lake-candidate cells into lakes and works out their water balance."""

    def __init__(self, graph: CellGraph, terrain: FilledTerrain, options: HydrologyOptions):
        self.graph = graph
        self.terrain = terrain
        self.options = options

    def identify(self) -> List[Lake]:
        """
        Find lakes among the cells raised by pit filling.

        Candidates at identical effective elevation that touch form one
        lake; lakes smaller than ``min_lake_cells`` are dropped. The outlet
        is the lowest cell next to the lake's flat plateau that sits
        strictly below the lake, or a plateau cell on the ocean/map border.
        """
        logger.info("Detecting lakes")

        levels = self.terrain.heights.tolist()
        candidates = self.terrain.lake_candidates
        sink = self.graph.sink_mask(self.options.sea_level)
        assigned = np.zeros(self.graph.n_cells, dtype=bool)

        lakes: List[Lake] = []
        for cell in np.flatnonzero(candidates).tolist():
            if assigned[cell]:
                continue

            level = levels[cell]
            members = self._flood_fill(cell, lambda c: candidates[c] and levels[c] == level)
            assigned[members] = True
            if len(members) < self.options.min_lake_cells:
                continue

            plateau = self._flood_fill(cell, lambda c: levels[c] == level)
            outlet, spill_cell = self._find_outlet(plateau, level, levels, sink)
            lakes.append(
                Lake(
                    id=len(lakes),
                    cells=members,
                    level=level,
                    outlet=outlet,
                    shoreline=neighbors_of(self.graph, members),
                    area=len(members),
                    plateau=plateau,
                    spill_cell=spill_cell,
                )
            )

        logger.info("Lakes detected", count=len(lakes))
        return lakes

    def classify(self, lakes: List[Lake], rivers: Sequence, accumulation: np.ndarray) -> None:
        """
        Fill in inflow, climate means and evaporation.

        Inflow is the accumulation at the mouth of every river ending in
        the lake.
        """
        inflowing: Dict[int, List] = defaultdict(list)
        for river in rivers:
            if river.lake_id is not None:
                inflowing[river.lake_id].append(river)

        for lake in lakes:
            lake_rivers = inflowing.get(lake.id, [])
            lake.inflowing_rivers = [river.id for river in lake_rivers]
            lake.inflow = int(sum(int(accumulation[river.mouth]) for river in lake_rivers))
            lake.area = len(lake.cells)
            lake.temperature = self._mean(self.graph.temperature, lake.cells, self.options.default_temperature)
            lake.precipitation = self._mean(self.graph.precipitation, lake.cells, self.options.default_precipitation)
            lake.evaporation = lake_evaporation(lake.area, lake.temperature, lake.precipitation, self.options)

        logger.info("Lakes classified", closed=sum(1 for lake in lakes if lake.closed), total=len(lakes))

    def _flood_fill(self, start: int, accept: Callable[[int], bool]) -> List[int]:
        """Connected cells reachable from ``start`` through accepted cells."""
        region = {start}
        work = [start]
        while work:
            cell = work.pop()
            for neighbor in self.graph.cell_neighbors[cell]:
                if neighbor not in region and accept(neighbor):
                    region.add(neighbor)
                    work.append(neighbor)
        return sorted(region)

    def _find_outlet(
        self, plateau: List[int], level: float, levels: list, sink: np.ndarray
    ) -> Tuple[Optional[int], Optional[int]]:
        """Lowest exit of the plateau and the plateau cell spilling into it."""
        plateau_set = set(plateau)
        exits = []
        for cell in plateau:
            if sink[cell]:
                exits.append((levels[cell], cell))
            for neighbor in self.graph.cell_neighbors[cell]:
                if neighbor not in plateau_set and levels[neighbor] < level:
                    exits.append((levels[neighbor], neighbor))

        if not exits:
            return None, None

        outlet = min(exits)[1]
        if outlet in plateau_set:
            return outlet, outlet
        spill_cell = min(c for c in plateau if outlet in self.graph.cell_neighbors[c])
        return outlet, spill_cell

    @staticmethod
    def _mean(values: Optional[np.ndarray], cells: List[int], default: float) -> float:
        if values is None or not cells:
            return float(default)
        return float(np.mean(values[list(cells)]))


def lake_membership(n_cells: int, lakes: Sequence[Lake]) -> np.ndarray:
    """Per-cell id of the lake the cell belongs to, -1 for none."""
    ids = np.full(n_cells, -1, dtype=np.int64)
    for lake in lakes:
        ids[list(lake.cells)] = lake.id
    return ids
