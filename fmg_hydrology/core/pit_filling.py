"""
Depression filling (priority flood).

Every land cell ends up with a non-increasing path to the ocean or the map
border. Cells that had to be raised are remembered as lake candidates
instead of being treated as plain terrain.
"""

import heapq
from collections import deque
from dataclasses import dataclass, field
from typing import List

import numpy as np
import structlog

from .cell_graph import CellGraph
from .options import HydrologyOptions

logger = structlog.get_logger()


@dataclass
class FilledTerrain:
    """Output of the pit filler."""

    heights: np.ndarray  # effective elevation, >= original everywhere
    lake_candidates: np.ndarray  # bool per cell
    enclosed_basins: List[int] = field(default_factory=list)  # floor seed of each basin with no sink

    @property
    def cells_raised(self) -> int:
        return int(np.count_nonzero(self.lake_candidates))


class PitFiller:
    """Raises local minima to their spill level."""

    def __init__(self, graph: CellGraph, options: HydrologyOptions):
        self.graph = graph
        self.options = options

    def fill(self) -> FilledTerrain:
        """
        Run the priority flood.

        The queue is seeded with every ocean and border cell. Entries are
        ``(level, cell_id)`` tuples so ties at equal level pop in ascending
        id order. A land region that never connects to a seed is flooded
        from its own lowest cell and becomes a single closed basin.
        """
        logger.info("Filling depressions", cells=self.graph.n_cells)

        original = self.graph.heights
        self._original = original.tolist()
        self._levels = list(self._original)
        self._ocean = self.graph.ocean_mask(self.options.sea_level)
        self._visited = np.zeros(self.graph.n_cells, dtype=bool)

        seeds = [
            (self._levels[i], i)
            for i in np.flatnonzero(self.graph.sink_mask(self.options.sea_level)).tolist()
        ]
        heapq.heapify(seeds)
        self._flood(seeds)

        enclosed = []
        while not self._visited.all():
            unvisited = np.flatnonzero(~self._visited).tolist()
            seed = min(unvisited, key=lambda i: (self._levels[i], i))
            logger.warning(
                "Land region has no reachable ocean or border, treating it as a closed basin",
                seed_cell=seed,
                elevation=self._levels[seed],
            )
            enclosed.append(seed)
            self._flood([(self._levels[seed], seed)])

        floors = [self._basin_floor(seed) for seed in enclosed]

        heights = np.asarray(self._levels, dtype=original.dtype)
        lake_candidates = (heights.astype(np.float64) - original.astype(np.float64)) > self.options.lake_depth_tolerance
        for floor in floors:
            lake_candidates[floor] = True

        terrain = FilledTerrain(heights=heights, lake_candidates=lake_candidates, enclosed_basins=enclosed)
        logger.info(
            "Depression filling completed",
            cells_raised=int(np.count_nonzero(heights > original)),
            lake_candidates=terrain.cells_raised,
            enclosed_basins=len(enclosed),
        )
        return terrain

    def _flood(self, heap: list) -> None:
        neighbors = self.graph.cell_neighbors
        levels = self._levels
        original = self._original
        visited = self._visited

        while heap:
            level, cell = heapq.heappop(heap)
            if visited[cell]:
                continue
            visited[cell] = True

            if level > levels[cell] and not self._ocean[cell]:
                levels[cell] = level

            current = levels[cell]
            for neighbor in neighbors[cell]:
                if not visited[neighbor]:
                    heapq.heappush(heap, (max(original[neighbor], current), neighbor))

    def _basin_floor(self, seed: int) -> List[int]:
        """
        Level the floor of an enclosed basin and return its cells.

        Grows from the seed in ascending level order until the region holds
        ``min_lake_cells`` cells and every cell around it is strictly
        higher, then raises the region to its highest member. A sloped bowl
        therefore still gets a lake-sized flat floor.
        """
        levels = self._levels
        target = self.options.min_lake_cells
        level = levels[seed]
        region = []
        seen = {seed}
        heap = [(level, seed)]
        while heap:
            priority, cell = heap[0]
            if len(region) >= target and priority > level:
                break
            heapq.heappop(heap)
            level = max(level, priority)
            region.append(cell)
            for neighbor in self.graph.cell_neighbors[cell]:
                if neighbor not in seen:
                    seen.add(neighbor)
                    heapq.heappush(heap, (max(levels[neighbor], level), neighbor))

        for cell in region:
            levels[cell] = level
        return sorted(region)


def verify_drainage(graph: CellGraph, heights: np.ndarray, sea_level: float) -> List[int]:
    """
    Land cells with no non-increasing path to an ocean or border cell.

    Searches backwards from every sink, climbing only to neighbors at the
    same or a higher elevation. An empty result means the terrain drains.
    """
    reached = graph.sink_mask(sea_level).copy()
    work = deque(np.flatnonzero(reached).tolist())
    levels = heights.tolist()

    while work:
        cell = work.popleft()
        for neighbor in graph.cell_neighbors[cell]:
            if not reached[neighbor] and levels[neighbor] >= levels[cell]:
                reached[neighbor] = True
                work.append(neighbor)

    undrained = ~reached & ~graph.ocean_mask(sea_level)
    return np.flatnonzero(undrained).tolist()
