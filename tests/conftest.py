"""Small hand-built cell graphs shared by the hydrology tests."""

import numpy as np
import pytest

from fmg_hydrology.core import CellGraph


def chain_graph(heights, border=(), precipitation=None, extra_edges=()):
    """Cells joined in a line (i <-> i + 1), plus any extra edges."""
    n_cells = len(heights)
    neighbors = [[] for _ in range(n_cells)]
    for i in range(n_cells - 1):
        neighbors[i].append(i + 1)
    for a, b in extra_edges:
        neighbors[a].append(b)

    flags = np.zeros(n_cells, dtype=bool)
    flags[list(border)] = True
    return CellGraph(
        heights=np.asarray(heights),
        cell_neighbors=neighbors,
        cell_border_flags=flags,
        precipitation=precipitation,
    )


@pytest.fixture
def ramp_graph():
    """Twenty land cells stepping 20..1 down to one ocean cell."""
    return chain_graph(list(range(20, 0, -1)) + [0], border=[20])


@pytest.fixture
def confluence_graph():
    """
    Two branches merging at M and draining to the sea.

    Branch A: cells 0-49 (60..11), branch B: cells 50-79 (40..11),
    M: cell 80 (10), D1-D5: cells 81-85 (9..5), ocean: cell 86.
    """
    heights = [60 - i for i in range(50)] + [40 - j for j in range(30)] + [10, 9, 8, 7, 6, 5, 0]
    neighbors = [[] for _ in range(87)]

    def link(a, b):
        neighbors[a].append(b)

    for i in range(49):
        link(i, i + 1)
    for j in range(50, 79):
        link(j, j + 1)
    link(49, 80)
    link(79, 80)
    for k in range(80, 86):
        link(k, k + 1)

    border = np.zeros(87, dtype=bool)
    border[86] = True
    return CellGraph(heights=np.asarray(heights), cell_neighbors=neighbors, cell_border_flags=border)


@pytest.fixture
def basin_graph():
    """
    Ramp into a three-cell basin behind a rim, then down to the sea.

    Cells 0-29 ramp 60..31, basin cells 30-32 sit at 20, rim cell 33 at
    25, then 34-36 fall 15, 10, 5 to the ocean cell 37.
    """
    heights = [60 - i for i in range(30)] + [20, 20, 20, 25, 15, 10, 5, 0]
    return chain_graph(heights, border=[37])


@pytest.fixture
def pit_grid():
    """5x5 slope (10 + row) whose centre is a single-cell pit at 10."""
    heights = np.add.outer(np.arange(5), np.full(5, 10))
    heights[2, 2] = 10
    return CellGraph.from_grid(heights)


@pytest.fixture
def enclosed_grid():
    """6x6 bowl with no ocean and no border: rim at 10, 4x4 floor at 5, no rain."""
    heights = np.full((6, 6), 10)
    heights[1:5, 1:5] = 5
    return CellGraph.from_grid(heights, mark_edges=False, precipitation=np.zeros((6, 6)))


@pytest.fixture
def delta_grid():
    """
    7 wide, 8 tall valley whose bottom row is ocean.

    Land funnels into the centre column, which runs straight into the sea.
    """
    rows, cols = np.indices((8, 7))
    heights = (7 - rows) + np.abs(cols - 3) * 3
    heights[7, :] = 0
    return CellGraph.from_grid(heights, mark_edges=False)
