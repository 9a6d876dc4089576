"""Tests for flow accumulation."""

import numpy as np
import pytest

from fmg_hydrology.core import (
    NO_TARGET,
    AccumulationOverflowError,
    FlowAccumulator,
    FlowField,
    FlowRouter,
    HydrologyError,
    HydrologyOptions,
)

from conftest import chain_graph


class TestFlowAccumulator:
    """Test drainage counting."""

    def test_ramp_accumulates_linearly(self, ramp_graph):
        targets = FlowRouter(ramp_graph, ramp_graph.heights, HydrologyOptions()).route()
        acc = FlowAccumulator(ramp_graph, ramp_graph.heights, targets).accumulate()

        assert acc.dtype == np.int64
        assert acc.tolist() == list(range(1, 22))

    def test_confluence_sums_branches(self, confluence_graph):
        targets = FlowRouter(confluence_graph, confluence_graph.heights, HydrologyOptions()).route()
        acc = FlowAccumulator(confluence_graph, confluence_graph.heights, targets).accumulate()

        assert acc[49] == 50
        assert acc[79] == 30
        assert acc[80] == 81
        assert acc[86] == 87

    def test_flat_edges_ordered(self):
        """Equal-height flow across a flat still adds up in the right order."""
        graph = chain_graph([5, 5, 5, 0], border=[3])
        targets = np.array([1, 2, 3, NO_TARGET], dtype=np.int32)
        acc = FlowAccumulator(graph, graph.heights, targets).accumulate()
        assert acc.tolist() == [1, 2, 3, 4]

    def test_cycle_rejected(self):
        graph = chain_graph([5, 5, 0], border=[2])
        targets = np.array([1, 0, NO_TARGET], dtype=np.int32)
        with pytest.raises(HydrologyError):
            FlowAccumulator(graph, graph.heights, targets).accumulate()

    def test_oversized_graph_rejected(self, ramp_graph, monkeypatch):
        monkeypatch.setattr("fmg_hydrology.core.flow_accumulation.MAX_SUPPORTED_CELLS", 10)
        targets = np.full(ramp_graph.n_cells, NO_TARGET, dtype=np.int32)
        with pytest.raises(AccumulationOverflowError):
            FlowAccumulator(ramp_graph, ramp_graph.heights, targets).accumulate()


class TestFlowField:
    def test_freeze(self):
        field = FlowField(targets=np.array([1, NO_TARGET]), accumulation=np.array([1, 2]))
        field.freeze()
        with pytest.raises(ValueError):
            field.targets[0] = 0
