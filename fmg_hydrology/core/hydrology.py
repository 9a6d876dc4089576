"""
Hydrology system: rivers and lakes over a cell graph.

This module wires the stages together:
- Depression filling (priority flood)
- Lake detection on the filled terrain
- Flow routing and accumulation
- River extraction
- Lake water balance, repeated until the set of closed lakes settles
- River and lake attributes (width, names, deltas, lake types)
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np
import structlog

from .alea_prng import AleaPRNG
from .cell_graph import CellGraph
from .exceptions import MAX_SUPPORTED_CELLS, AccumulationOverflowError
from .flow_accumulation import FlowAccumulator, FlowField
from .flow_routing import FlowRouter
from .lakes import Lake, LakeIdentifier, lake_membership
from .options import HydrologyOptions
from .pit_filling import PitFiller, verify_drainage
from .river_attributes import AttributeDeriver
from .rivers import River, RiverExtraction, RiverExtractor

logger = structlog.get_logger()

QUANTILES = (5, 25, 50, 75, 95)


@dataclass
class HydrologyReport:
    """Diagnostics of one generation run."""

    river_threshold: int = 0
    candidate_sources: int = 0
    rivers_generated: int = 0
    rejected_short: int = 0
    threshold_adjustments: int = 0
    cells_raised: int = 0
    enclosed_basins: int = 0
    undrained_cells: int = 0
    land_cells: int = 0
    land_cells_with_target: int = 0
    lakes: int = 0
    closed_lakes: int = 0
    passes: int = 0
    accumulation_quantiles: Dict[str, float] = field(default_factory=dict)
    top_sources: List[Tuple[int, int]] = field(default_factory=list)  # (cell, accumulation)

    def to_dict(self) -> dict:
        return {
            "river_threshold": self.river_threshold,
            "candidate_sources": self.candidate_sources,
            "rivers_generated": self.rivers_generated,
            "rejected_short": self.rejected_short,
            "threshold_adjustments": self.threshold_adjustments,
            "cells_raised": self.cells_raised,
            "enclosed_basins": self.enclosed_basins,
            "undrained_cells": self.undrained_cells,
            "land_cells": self.land_cells,
            "land_cells_with_target": self.land_cells_with_target,
            "lakes": self.lakes,
            "closed_lakes": self.closed_lakes,
            "passes": self.passes,
            "accumulation_quantiles": dict(self.accumulation_quantiles),
            "top_sources": [list(source) for source in self.top_sources],
        }


@dataclass(frozen=True)
class HydrologyResult:
    """Read-only hydrology of a map."""

    heights: np.ndarray  # effective elevation after pit filling
    flow: FlowField
    river_ids: np.ndarray  # river per cell, -1 for none
    lake_ids: np.ndarray  # lake per cell, -1 for none
    rivers: Tuple[River, ...]
    lakes: Tuple[Lake, ...]
    report: HydrologyReport

    @property
    def has_river(self) -> np.ndarray:
        return self.river_ids >= 0

    def as_dict(self) -> dict:
        """Plain, JSON-serialisable view with a stable layout."""
        return {
            "heights": self.heights.tolist(),
            "targets": self.flow.targets.tolist(),
            "accumulation": self.flow.accumulation.tolist(),
            "river_ids": self.river_ids.tolist(),
            "lake_ids": self.lake_ids.tolist(),
            "rivers": [river.to_dict() for river in self.rivers],
            "lakes": [lake.to_dict() for lake in self.lakes],
            "report": self.report.to_dict(),
        }


class HydrologyGenerator:
    """Generates rivers and lakes for a cell graph."""

    def __init__(
        self,
        graph: CellGraph,
        options: Optional[HydrologyOptions] = None,
        prng: Optional[AleaPRNG] = None,
    ):
        self.graph = graph
        self.options = options or HydrologyOptions()
        self.prng = prng or AleaPRNG(self.options.seed)

    def generate(self) -> HydrologyResult:
        """Run the complete hydrology pass. Any stage error propagates."""
        self.options.validate()
        n_cells = self.graph.n_cells
        if n_cells > MAX_SUPPORTED_CELLS:
            raise AccumulationOverflowError(n_cells)

        logger.info("Starting hydrology generation", cells=n_cells, sea_level=self.options.sea_level)
        report = HydrologyReport()

        terrain = PitFiller(self.graph, self.options).fill()
        report.cells_raised = int(np.count_nonzero(terrain.heights > self.graph.heights))
        report.enclosed_basins = len(terrain.enclosed_basins)

        undrained = verify_drainage(self.graph, terrain.heights, self.options.sea_level)
        report.undrained_cells = len(undrained)
        if undrained:
            logger.warning(
                "Cells drain only into enclosed basins",
                cells=len(undrained),
                enclosed_basins=report.enclosed_basins,
            )

        identifier = LakeIdentifier(self.graph, terrain, self.options)
        lakes = identifier.identify()
        lake_ids = lake_membership(n_cells, lakes)

        targets, accumulation, extraction, closed = self._settle_lakes(
            terrain.heights, lakes, lake_ids, identifier, report
        )
        for lake in lakes:
            if lake.id in closed:
                lake.outlet = None

        flow = FlowField(targets=targets, accumulation=accumulation)
        deriver = AttributeDeriver(self.graph, flow, self.options, self.prng.fork("river-attributes"))
        deriver.derive(extraction.rivers, lakes, extraction.river_ids)

        self._fill_report(report, flow, extraction, lakes)

        heights = terrain.heights.copy()
        river_ids = extraction.river_ids
        for array in (heights, river_ids, lake_ids):
            array.flags.writeable = False
        flow.freeze()
        for river in extraction.rivers:
            river.freeze()
        for lake in lakes:
            lake.freeze()

        logger.info(
            "Hydrology generation completed",
            rivers=len(extraction.rivers),
            lakes=len(lakes),
            closed_lakes=report.closed_lakes,
            passes=report.passes,
        )
        return HydrologyResult(
            heights=heights,
            flow=flow,
            river_ids=river_ids,
            lake_ids=lake_ids,
            rivers=tuple(extraction.rivers),
            lakes=tuple(lakes),
            report=report,
        )

    def _settle_lakes(
        self,
        heights: np.ndarray,
        lakes: List[Lake],
        lake_ids: np.ndarray,
        identifier: LakeIdentifier,
        report: HydrologyReport,
    ):
        """
        Route, accumulate and extract until no further lake closes.

        Lakes with no outlet (enclosed basins) are closed from the first
        pass whatever their inflow. Closing a lake removes its outflow,
        which can only lower the inflow of lakes downstream, so the closed
        set grows monotonically and settles within ``len(lakes) + 1`` passes.
        """
        router = FlowRouter(self.graph, heights, self.options)

        closed = {lake.id for lake in lakes if lake.outlet is None}
        for pass_number in range(1, len(lakes) + 2):
            targets = router.route(lakes, closed)
            accumulation = FlowAccumulator(self.graph, heights, targets).accumulate()
            extraction = RiverExtractor(self.graph, targets, accumulation, lake_ids, self.options).extract()
            identifier.classify(lakes, extraction.rivers, accumulation)
            report.passes = pass_number

            now_closed = {lake.id for lake in lakes if lake.closed}
            if now_closed <= closed:
                break
            logger.info("Lakes closed, rerouting", newly_closed=sorted(now_closed - closed))
            closed |= now_closed

        return targets, accumulation, extraction, closed

    def _fill_report(
        self, report: HydrologyReport, flow: FlowField, extraction: RiverExtraction, lakes: List[Lake]
    ) -> None:
        land = ~self.graph.ocean_mask(self.options.sea_level)
        report.river_threshold = extraction.threshold
        report.candidate_sources = extraction.candidate_sources
        report.rivers_generated = len(extraction.rivers)
        report.rejected_short = extraction.rejected_short
        report.threshold_adjustments = extraction.threshold_adjustments
        report.land_cells = int(np.count_nonzero(land))
        report.land_cells_with_target = int(np.count_nonzero(land & (flow.targets >= 0)))
        report.lakes = len(lakes)
        report.closed_lakes = sum(1 for lake in lakes if lake.closed)

        land_acc = flow.accumulation[land]
        if land_acc.size:
            report.accumulation_quantiles = {
                f"p{q}": float(np.percentile(land_acc, q)) for q in QUANTILES
            }
            land_cells = np.flatnonzero(land).tolist()
            ranked = sorted(land_cells, key=lambda c: (-int(flow.accumulation[c]), c))
            report.top_sources = [(c, int(flow.accumulation[c])) for c in ranked[:20]]


def generate_hydrology(
    graph: CellGraph,
    options: Optional[HydrologyOptions] = None,
    prng: Optional[AleaPRNG] = None,
) -> HydrologyResult:
    """Convenience wrapper around ``HydrologyGenerator(...).generate()``."""
    return HydrologyGenerator(graph, options, prng).generate()
