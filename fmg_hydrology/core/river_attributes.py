"""River and lake attributes: width, seasonality, type, names, deltas."""

import math
from collections import deque
from typing import List, Optional

import numpy as np
import structlog

from .alea_prng import AleaPRNG
from .cell_graph import CellGraph
from .flow_accumulation import FlowField
from .lakes import Lake, LakeType
from .options import HydrologyOptions
from .river_names import RiverNameGenerator
from .rivers import River, RiverType

logger = structlog.get_logger()


def half_up(value: float) -> int:
    """Round to the nearest integer, halves going up (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def river_width(max_accumulation: int, options: HydrologyOptions) -> int:
    """Width from peak accumulation on a log10 scale, rounded half up and clamped to [1, max_river_width]."""
    width = half_up(math.log10(max_accumulation + 1) * options.width_scale)
    return int(min(max(width, 1), options.max_river_width))


def river_type_for(width: int) -> RiverType:
    if width <= 2:
        return RiverType.STREAM
    if width <= 8:
        return RiverType.RIVER
    return RiverType.MAJOR_RIVER


class AttributeDeriver:
    """Fills in presentation attributes once rivers and lakes are final."""

    def __init__(self, graph: CellGraph, flow: FlowField, options: HydrologyOptions, prng: AleaPRNG):
        self.graph = graph
        self.flow = flow
        self.options = options
        self.prng = prng
        self._ocean = graph.ocean_mask(options.sea_level)

    def derive(self, rivers: List[River], lakes: List[Lake], river_ids: np.ndarray) -> None:
        logger.info("Deriving river attributes", rivers=len(rivers), lakes=len(lakes))

        for river in rivers:
            self._size(river)
        self._name(rivers)
        for river in rivers:
            river.deltas = self._deltas(river)
        for lake in lakes:
            self._lake(lake, river_ids)

        logger.info(
            "Attributes derived",
            seasonal_rivers=sum(1 for river in rivers if river.seasonal),
            named_rivers=sum(1 for river in rivers if river.name),
            deltas=sum(1 for river in rivers if river.deltas),
        )

    def _size(self, river: River) -> None:
        opts = self.options
        river.length = len(river.cells)
        river.max_accumulation = int(self.flow.accumulation[list(river.cells)].max())
        river.width = river_width(river.max_accumulation, opts)

        river.seasonal = self._mean_precipitation(river.cells) < opts.seasonal_precipitation
        if river.seasonal:
            river.width = max(1, half_up(river.width * (1 - opts.seasonal_width_reduction)))
        river.river_type = river_type_for(river.width)

    def _name(self, rivers: List[River]) -> None:
        """Name the longest (then widest) rivers; the rest stay unnamed."""
        ranked = sorted(rivers, key=lambda r: (-r.length, -r.width, r.id))
        names = RiverNameGenerator(self.prng)
        for river in ranked[: self.options.named_rivers]:
            river.name = names.name(major=river.width >= self.options.major_river_width)

    def _deltas(self, river: River) -> List[List[int]]:
        """
        Distributary channels near the mouth of a large coastal river.

        Coastal land cells within ``delta_search_radius`` steps of the mouth
        are collected in breadth-first order; each channel is the search
        path from the mouth to one of them.
        """
        opts = self.options
        mouth_acc = int(self.flow.accumulation[river.mouth])
        if not river.drains_to_ocean or mouth_acc < opts.delta_min_accumulation:
            return []

        neighbors = self.graph.cell_neighbors
        parent = {river.mouth: None}
        depth = {river.mouth: 0}
        coastal = []
        work = deque([river.mouth])
        while work:
            cell = work.popleft()
            if cell != river.mouth and any(self._ocean[nb] for nb in neighbors[cell]):
                coastal.append(cell)
            if depth[cell] >= opts.delta_search_radius:
                continue
            for neighbor in neighbors[cell]:
                if neighbor not in parent and not self._ocean[neighbor]:
                    parent[neighbor] = cell
                    depth[neighbor] = depth[cell] + 1
                    work.append(neighbor)

        if len(coastal) < 2:
            return []

        count = min(opts.max_delta_channels, 2 + mouth_acc // opts.delta_channel_step, len(coastal))
        channels = []
        for end in coastal[:count]:
            path = []
            cell: Optional[int] = end
            while cell is not None:
                path.append(cell)
                cell = parent[cell]
            channels.append(path[::-1])
        return channels

    def _lake(self, lake: Lake, river_ids: np.ndarray) -> None:
        opts = self.options
        if lake.closed:
            lake.lake_type = LakeType.SALTWATER
        elif lake.precipitation < opts.seasonal_precipitation:
            lake.lake_type = LakeType.SEASONAL
        elif lake.inflow < opts.brackish_inflow_ratio * lake.evaporation:
            lake.lake_type = LakeType.BRACKISH
        else:
            lake.lake_type = LakeType.FRESHWATER

        lake.outlet_river = None
        if lake.outlet is not None and river_ids[lake.outlet] >= 0:
            lake.outlet_river = int(river_ids[lake.outlet])

    def _mean_precipitation(self, cells: List[int]) -> float:
        if self.graph.precipitation is None:
            return float(self.options.default_precipitation)
        return float(np.mean(self.graph.precipitation[list(cells)]))
