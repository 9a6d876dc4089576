"""Tests for the full hydrology pass."""

import json

import numpy as np
import pytest

from fmg_hydrology.core import (
    AleaPRNG,
    CellGraph,
    ConfigurationError,
    HydrologyGenerator,
    HydrologyOptions,
    LakeType,
    NO_TARGET,
    generate_hydrology,
    verify_drainage,
)

from conftest import chain_graph


class TestScenarios:
    """End-to-end behaviour on hand-built terrain."""

    def test_single_cell_pit_is_filled_without_a_lake(self, pit_grid):
        """A one-cell pit is raised to its spill level and drains, but is too small for a lake."""
        result = generate_hydrology(pit_grid)
        centre = 2 * 5 + 2

        assert result.heights[centre] == 11
        assert result.lakes == ()
        assert result.flow.targets[centre] != NO_TARGET
        assert verify_drainage(pit_grid, result.heights, 1) == []
        assert result.report.cells_raised == 1

    def test_ramp_becomes_one_river(self, ramp_graph):
        """A 20-cell ramp yields a single river with accumulation 1..20."""
        result = generate_hydrology(ramp_graph)

        assert len(result.rivers) == 1
        river = result.rivers[0]
        assert river.cells == tuple(range(20))
        assert river.length == 20
        assert river.drains_to_ocean
        assert result.flow.accumulation[list(river.cells)].tolist() == list(range(1, 21))
        assert result.report.river_threshold == 20

    def test_tributary_joins_main_river(self, confluence_graph):
        """The longer branch carries the main river past the confluence; the other joins it."""
        result = generate_hydrology(confluence_graph)

        assert len(result.rivers) == 2
        main, tributary = result.rivers
        assert main.cells == tuple(range(50)) + (80, 81, 82, 83, 84, 85)
        assert tributary.cells == tuple(range(50, 80))
        assert tributary.parent_id == main.id
        assert tributary.join_cell == 80
        assert main.tributaries == (tributary.id,)
        assert result.flow.accumulation[80] == 81
        assert all(result.flow.accumulation[c] >= 80 for c in main.cells[50:])

    def test_enclosed_dry_bowl_is_a_closed_lake(self, enclosed_grid):
        """A bowl with no way out and no rain keeps a closed, salty lake."""
        result = generate_hydrology(enclosed_grid)

        assert result.report.enclosed_basins == 1
        assert len(result.lakes) == 1
        lake = result.lakes[0]
        floor = tuple(sorted(r * 6 + c for r in range(1, 5) for c in range(1, 5)))
        assert lake.cells == floor
        assert lake.outlet is None
        assert lake.inflow == 0
        assert lake.evaporation > 0
        assert lake.closed
        assert lake.lake_type == LakeType.SALTWATER
        assert all(result.flow.targets[c] == NO_TARGET for c in lake.cells)

    def test_river_fed_enclosed_basin_stays_closed(self):
        """A basin with nowhere to spill is closed even when its inflow beats evaporation."""
        graph = chain_graph(list(range(60, 30, -1)) + [20, 20, 20])
        result = generate_hydrology(graph)

        assert result.report.enclosed_basins == 1
        assert len(result.lakes) == 1
        lake = result.lakes[0]
        assert lake.cells == (30, 31, 32)
        assert lake.outlet is None
        assert lake.inflow == 30
        assert lake.inflow > lake.evaporation
        assert lake.closed
        assert lake.net_outflow == 0.0
        assert lake.lake_type == LakeType.SALTWATER
        assert lake.outlet_river is None
        assert all(result.flow.targets[c] == NO_TARGET for c in lake.cells)
        assert result.report.closed_lakes == 1
        assert result.report.passes == 1

        river = result.rivers[0]
        assert river.lake_id == lake.id
        assert river.cells == tuple(range(30))

    def test_sloped_enclosed_bowl_gets_a_levelled_lake(self):
        """A bowl whose floor steps down to a single low cell still holds a lake."""
        rows, cols = np.indices((7, 7))
        ring = np.minimum(np.minimum(rows, cols), np.minimum(6 - rows, 6 - cols))
        heights = np.choose(ring, [10, 6, 4, 2])
        graph = CellGraph.from_grid(heights, mark_edges=False, precipitation=np.zeros((7, 7)))
        result = generate_hydrology(graph)

        assert result.report.enclosed_basins == 1
        assert len(result.lakes) == 1
        lake = result.lakes[0]
        assert lake.cells == tuple(sorted(r * 7 + c for r in range(2, 5) for c in range(2, 5)))
        assert lake.level == 4
        assert result.heights[24] == 4
        assert lake.outlet is None
        assert lake.closed
        assert lake.lake_type == LakeType.SALTWATER
        assert all(result.heights[c] > lake.level for c in lake.shoreline)

    def test_open_lake_feeds_outflow_river(self, basin_graph):
        """A basin on a river's course fills, spills over its rim and continues to the sea."""
        result = generate_hydrology(basin_graph)

        assert len(result.lakes) == 1
        lake = result.lakes[0]
        assert lake.cells == (30, 31, 32)
        assert lake.level == 25
        assert lake.outlet == 34
        assert not lake.closed
        assert lake.inflow == 30
        assert lake.net_outflow > 0
        assert lake.lake_type == LakeType.FRESHWATER

        inflow_river = next(r for r in result.rivers if r.lake_id == lake.id)
        assert inflow_river.cells == tuple(range(30))
        assert lake.inflowing_rivers == (inflow_river.id,)
        assert lake.outlet_river is not None
        outflow = result.rivers[lake.outlet_river]
        assert outflow.cells == (33, 34, 35, 36)
        assert outflow.drains_to_ocean

    def test_evaporating_lake_closes_and_stops_draining(self, basin_graph):
        """When evaporation beats inflow the outlet is dropped and the lake floor gets no targets."""
        options = HydrologyOptions(evaporation_rate=100.0)
        result = generate_hydrology(basin_graph, options)

        lake = result.lakes[0]
        assert lake.closed
        assert lake.outlet is None
        assert lake.lake_type == LakeType.SALTWATER
        assert all(result.flow.targets[c] == NO_TARGET for c in lake.cells)
        assert result.report.closed_lakes == 1
        assert result.report.passes == 2

    def test_large_coastal_river_builds_a_delta(self, delta_grid):
        """A river reaching the sea with enough flow splits into channels at its mouth."""
        options = HydrologyOptions(delta_min_accumulation=40)
        result = generate_hydrology(delta_grid, options)

        assert len(result.rivers) == 1
        river = result.rivers[0]
        assert river.mouth == 45
        assert result.flow.accumulation[45] == 43
        assert river.deltas == ((45, 44), (45, 46))

    def test_no_delta_below_accumulation_threshold(self, delta_grid):
        result = generate_hydrology(delta_grid)
        assert result.rivers[0].deltas == ()


class TestInvariants:
    """Properties that hold on any map."""

    @pytest.fixture
    def island_result(self):
        from fmg_hydrology.core import generate_jittered_points

        width, height, spacing = 120, 100, 5
        points = generate_jittered_points(width, height, spacing, seed="invariants")
        distance = np.hypot(points[:, 0] - width / 2, points[:, 1] - height / 2) / 50
        prng = AleaPRNG("invariants-heights")
        noise = np.array([prng.random() * 8 for _ in range(len(points))])
        heights = np.clip(np.round(40 * (1 - distance) + noise), 0, 100).astype(np.int32)

        graph = CellGraph.from_points(points, heights, width, height, spacing)
        options = HydrologyOptions(river_threshold=10)
        return graph, generate_hydrology(graph, options)

    def test_every_land_cell_drains(self, island_result):
        graph, result = island_result
        assert result.report.enclosed_basins == 0
        assert verify_drainage(graph, result.heights, 1) == []

    def test_accumulation_grows_downstream(self, island_result):
        _, result = island_result
        acc = result.flow.accumulation
        targets = result.flow.targets
        assert acc.min() >= 1
        for cell, target in enumerate(targets.tolist()):
            if target != NO_TARGET:
                assert acc[target] >= acc[cell]

    def test_rivers_follow_targets_and_never_overlap(self, island_result):
        _, result = island_result
        seen = set()
        for river in result.rivers:
            for upper, lower in zip(river.cells, river.cells[1:]):
                assert result.flow.targets[upper] == lower
            assert seen.isdisjoint(river.cells)
            seen.update(river.cells)
            if river.join_cell is not None:
                assert river.join_cell in result.rivers[river.parent_id].cells
                assert result.flow.targets[river.mouth] == river.join_cell

    def test_width_grows_with_accumulation(self, island_result):
        _, result = island_result
        ordered = sorted(result.rivers, key=lambda r: r.max_accumulation)
        widths = [r.width for r in ordered if not r.seasonal]
        assert widths == sorted(widths)

    def test_lakes_are_flat_and_connected(self, island_result):
        graph, result = island_result
        for lake in result.lakes:
            levels = {result.heights[c] for c in lake.cells}
            assert levels == {lake.level}

            members = set(lake.cells)
            reached = {lake.cells[0]}
            work = [lake.cells[0]]
            while work:
                cell = work.pop()
                for neighbor in graph.cell_neighbors[cell]:
                    if neighbor in members and neighbor not in reached:
                        reached.add(neighbor)
                        work.append(neighbor)
            assert reached == members

            for neighbor in lake.shoreline:
                assert result.heights[neighbor] >= lake.level or neighbor == lake.outlet

    def test_results_are_read_only(self, island_result):
        _, result = island_result
        with pytest.raises(ValueError):
            result.flow.accumulation[0] = 99
        with pytest.raises(ValueError):
            result.heights[0] = 99
        assert isinstance(result.rivers, tuple)

    def test_river_and_lake_cells_are_read_only(self, basin_graph):
        result = generate_hydrology(basin_graph)
        river = result.rivers[0]
        lake = result.lakes[0]

        assert isinstance(river.cells, tuple)
        assert isinstance(river.tributaries, tuple)
        assert isinstance(river.deltas, tuple)
        assert isinstance(lake.cells, tuple)
        assert isinstance(lake.shoreline, tuple)
        assert isinstance(lake.inflowing_rivers, tuple)
        with pytest.raises(AttributeError):
            river.cells.append(99)
        with pytest.raises(TypeError):
            lake.cells[0] = 99
        assert result.as_dict()["rivers"][0]["cells"] == list(river.cells)


class TestDeterminism:
    """Same input, same output."""

    def test_repeated_runs_match(self, confluence_graph):
        first = generate_hydrology(confluence_graph, prng=AleaPRNG("rivers"))
        second = generate_hydrology(confluence_graph, prng=AleaPRNG("rivers"))
        assert json.dumps(first.as_dict(), sort_keys=True) == json.dumps(second.as_dict(), sort_keys=True)

    def test_generator_can_run_twice(self, basin_graph):
        """The injected stream is forked, so a second run names rivers identically."""
        generator = HydrologyGenerator(basin_graph, prng=AleaPRNG(42))
        first = generator.generate()
        second = generator.generate()
        assert [r.name for r in first.rivers] == [r.name for r in second.rivers]

    def test_graph_is_not_modified(self, pit_grid):
        before = pit_grid.heights.copy()
        generate_hydrology(pit_grid)
        assert np.array_equal(pit_grid.heights, before)


class TestGeneratorErrors:
    """Configuration problems abort before any stage runs."""

    def test_negative_min_river_length(self, ramp_graph):
        with pytest.raises(ConfigurationError):
            generate_hydrology(ramp_graph, HydrologyOptions(min_river_length=-1))

    def test_configuration_error_is_a_value_error(self, ramp_graph):
        with pytest.raises(ValueError):
            generate_hydrology(ramp_graph, HydrologyOptions(max_river_width=0))


class TestReport:
    """Diagnostics describe the run."""

    def test_report_counts(self, confluence_graph):
        report = generate_hydrology(confluence_graph).report

        assert report.land_cells == 86
        assert report.land_cells_with_target == 86
        assert report.rivers_generated == 2
        assert report.rejected_short == 0
        assert report.passes == 1
        assert set(report.accumulation_quantiles) == {"p5", "p25", "p50", "p75", "p95"}
        assert report.top_sources[0] == (85, 86)
        assert len(report.top_sources) == 20

    def test_as_dict_is_json_serialisable(self, basin_graph):
        data = generate_hydrology(basin_graph).as_dict()
        encoded = json.loads(json.dumps(data))
        assert encoded["lakes"][0]["type"] == "freshwater"
        assert len(encoded["river_ids"]) == basin_graph.n_cells
