"""Flow accumulation: number of upstream cells draining through each cell."""

import heapq
from dataclasses import dataclass

import numpy as np
import structlog

from .cell_graph import CellGraph
from .exceptions import MAX_SUPPORTED_CELLS, AccumulationOverflowError, HydrologyError

logger = structlog.get_logger()


@dataclass
class FlowField:
    """Per-cell downhill target and drainage count."""

    targets: np.ndarray  # neighbor id, or NO_TARGET
    accumulation: np.ndarray  # int64, >= 1

    def freeze(self) -> "FlowField":
        """Make both buffers read-only; called once generation is done."""
        self.targets.flags.writeable = False
        self.accumulation.flags.writeable = False
        return self


class FlowAccumulator:
    """Sums drainage down the router's targets."""

    def __init__(self, graph: CellGraph, heights: np.ndarray, targets: np.ndarray):
        self.graph = graph
        self.heights = heights
        self.targets = targets

    def accumulate(self) -> np.ndarray:
        """
        Accumulate flow from high to low.

        Cells are taken highest first (lowest id on ties), and a cell is
        only taken once every donor has been, which orders the
        equal-elevation edges the router creates across flats. Each cell
        starts at 1 and passes its total to its target.
        """
        n_cells = self.graph.n_cells
        if n_cells > MAX_SUPPORTED_CELLS:
            raise AccumulationOverflowError(n_cells)

        targets = self.targets.tolist()
        levels = self.heights.tolist()

        pending_donors = [0] * n_cells
        for target in targets:
            if target >= 0:
                pending_donors[target] += 1

        ready = [(-levels[cell], cell) for cell in range(n_cells) if pending_donors[cell] == 0]
        heapq.heapify(ready)

        accumulation = [1] * n_cells
        processed = 0
        while ready:
            _, cell = heapq.heappop(ready)
            processed += 1
            target = targets[cell]
            if target < 0:
                continue
            accumulation[target] += accumulation[cell]
            pending_donors[target] -= 1
            if pending_donors[target] == 0:
                heapq.heappush(ready, (-levels[target], target))

        if processed != n_cells:
            raise HydrologyError(f"Flow targets contain a cycle ({n_cells - processed} cells never drained)")

        result = np.asarray(accumulation, dtype=np.int64)
        logger.info("Flow accumulated", max_accumulation=int(result.max()) if n_cells else 0)
        return result
