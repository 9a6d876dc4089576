"""Flow directions: one downhill neighbor per land cell."""

from collections import deque
from typing import Iterable, List, Optional, Set

import numpy as np
import structlog

from .cell_graph import CellGraph
from .lakes import Lake
from .options import HydrologyOptions

logger = structlog.get_logger()

NO_TARGET = -1


class FlowRouter:
    """Steepest-descent router over pit-filled heights."""

    def __init__(self, graph: CellGraph, heights: np.ndarray, options: HydrologyOptions):
        self.graph = graph
        self.heights = heights
        self.options = options

    def route(self, lakes: Optional[List[Lake]] = None, closed_lakes: Iterable[int] = ()) -> np.ndarray:
        """
        Calculate the flow target of every cell.

        Ocean and border cells are sinks. Other cells flow to the neighbor
        with the greatest drop, the lowest id winning ties. Cells with no
        lower neighbor are resolved across their flat towards the nearest
        exit. Open lakes drain every plateau cell to their outlet; members
        of closed lakes get no target.

        Returns:
            int32 array of neighbor ids, NO_TARGET where water stops
        """
        lakes = lakes or []
        closed = set(closed_lakes)
        n_cells = self.graph.n_cells
        neighbors = self.graph.cell_neighbors
        levels = self.heights.tolist()
        sink = self.graph.sink_mask(self.options.sea_level)

        blocked: Set[int] = set()
        lake_routed: Set[int] = set()
        for lake in lakes:
            if lake.id in closed:
                blocked.update(lake.cells)
            elif lake.outlet is not None:
                lake_routed.update(lake.plateau)

        targets = np.full(n_cells, NO_TARGET, dtype=np.int32)
        flats = []
        for cell in range(n_cells):
            if sink[cell] or cell in blocked or cell in lake_routed:
                continue

            height = levels[cell]
            steepest = NO_TARGET
            max_drop = 0
            for neighbor in neighbors[cell]:
                drop = height - levels[neighbor]
                if drop > max_drop:
                    max_drop = drop
                    steepest = neighbor

            if steepest != NO_TARGET:
                targets[cell] = steepest
            else:
                flats.append(cell)

        for lake in lakes:
            if lake.id not in closed and lake.outlet is not None:
                self._route_lake(lake, targets, sink, blocked)

        unresolved = self._resolve_flats(flats, targets, levels)

        logger.info(
            "Flow directions calculated",
            flats=len(flats),
            unresolved_flats=unresolved,
            closed_lakes=len(closed),
        )
        return targets

    def _route_lake(self, lake: Lake, targets: np.ndarray, sink: np.ndarray, blocked: Set[int]) -> None:
        """Drain the lake plateau through its spill cell into the outlet."""
        plateau = set(lake.plateau) - blocked
        spill = lake.spill_cell
        if spill != lake.outlet and not sink[spill]:
            targets[spill] = lake.outlet

        seen = {spill}
        work = deque([spill])
        while work:
            cell = work.popleft()
            for neighbor in self.graph.cell_neighbors[cell]:
                if neighbor in plateau and neighbor not in seen:
                    seen.add(neighbor)
                    if not sink[neighbor]:
                        targets[neighbor] = cell
                    work.append(neighbor)

    def _resolve_flats(self, flats: List[int], targets: np.ndarray, levels: list) -> int:
        """
        Point each flat cell one step closer to an exit.

        Exits are equal-elevation neighbors that already drain (they have a
        target, are sinks, or belong to a closed lake). The search spreads
        breadth-first from the cells next to exits. Returns the number of
        flat cells left without a target.
        """
        if not flats:
            return 0

        neighbors = self.graph.cell_neighbors
        flat_set = set(flats)
        resolved = set()
        work = deque()

        for cell in flats:
            for neighbor in neighbors[cell]:
                if neighbor not in flat_set and levels[neighbor] == levels[cell]:
                    targets[cell] = neighbor
                    resolved.add(cell)
                    work.append(cell)
                    break

        while work:
            cell = work.popleft()
            for neighbor in neighbors[cell]:
                if neighbor in flat_set and neighbor not in resolved and levels[neighbor] == levels[cell]:
                    targets[neighbor] = cell
                    resolved.add(neighbor)
                    work.append(neighbor)

        return len(flat_set) - len(resolved)
