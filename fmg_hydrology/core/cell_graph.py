"""Cell graph consumed by the hydrology pass, plus builders for grids and Voronoi meshes."""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np
import structlog
from scipy.spatial import Voronoi

from .alea_prng import AleaPRNG

logger = structlog.get_logger()


@dataclass
class CellGraph:
    """Planar cell graph with elevation and optional climate data.

    Cells are addressed by integer id (their index in every array).
    Neighbor lists are stored sorted, without duplicates and symmetric, so
    iteration order is deterministic everywhere downstream.
    """

    heights: np.ndarray                  # ordinal elevation, below sea level is ocean
    cell_neighbors: List[List[int]]      # cells.c[i] = list of neighbor cell IDs
    cell_border_flags: np.ndarray        # cells.b[i] = 1 if map-edge cell
    temperature: Optional[np.ndarray] = field(default=None)
    precipitation: Optional[np.ndarray] = field(default=None)
    points: Optional[np.ndarray] = field(default=None)  # cell centres, informational

    def __post_init__(self):
        self.heights = np.asarray(self.heights)
        n_cells = len(self.heights)

        if len(self.cell_neighbors) != n_cells:
            raise ValueError(
                f"cell_neighbors has {len(self.cell_neighbors)} entries for {n_cells} cells"
            )
        self.cell_border_flags = np.asarray(self.cell_border_flags, dtype=bool)
        if len(self.cell_border_flags) != n_cells:
            raise ValueError("cell_border_flags length does not match heights")

        for name in ("temperature", "precipitation"):
            values = getattr(self, name)
            if values is None:
                continue
            values = np.asarray(values, dtype=np.float64)
            if len(values) != n_cells:
                raise ValueError(f"{name} length does not match heights")
            setattr(self, name, values)

        neighbor_sets = [set() for _ in range(n_cells)]
        for cell_id, neighbors in enumerate(self.cell_neighbors):
            for neighbor_id in neighbors:
                neighbor_id = int(neighbor_id)
                if not 0 <= neighbor_id < n_cells:
                    raise ValueError(f"Cell {cell_id} has out-of-range neighbor {neighbor_id}")
                if neighbor_id == cell_id:
                    continue
                neighbor_sets[cell_id].add(neighbor_id)
                neighbor_sets[neighbor_id].add(cell_id)
        self.cell_neighbors = [sorted(s) for s in neighbor_sets]

    @property
    def n_cells(self) -> int:
        return len(self.heights)

    def ocean_mask(self, sea_level: float) -> np.ndarray:
        """Cells below sea level."""
        return self.heights < sea_level

    def sink_mask(self, sea_level: float) -> np.ndarray:
        """Cells where water leaves the map: ocean or map border."""
        return self.ocean_mask(sea_level) | self.cell_border_flags

    @classmethod
    def from_grid(
        cls,
        heights: np.ndarray,
        diagonal: bool = False,
        mark_edges: bool = True,
        temperature: Optional[np.ndarray] = None,
        precipitation: Optional[np.ndarray] = None,
    ) -> "CellGraph":
        """
        Build a graph from a 2D height array.

        Cell ids are row-major (``row * n_cols + col``). Climate arrays may
        be given in the same 2D shape.

        Args:
            heights: 2D array of elevations
            diagonal: Connect the 8 surrounding cells instead of 4
            mark_edges: Flag cells on the outer ring as border cells
        """
        heights = np.asarray(heights)
        if heights.ndim != 2:
            raise ValueError("Grid heights must be a 2D array")

        n_rows, n_cols = heights.shape
        offsets = [(-1, 0), (0, -1), (0, 1), (1, 0)]
        if diagonal:
            offsets += [(-1, -1), (-1, 1), (1, -1), (1, 1)]

        neighbors = []
        border = np.zeros(n_rows * n_cols, dtype=bool)
        for row in range(n_rows):
            for col in range(n_cols):
                cell_neighbors = []
                for d_row, d_col in offsets:
                    r, c = row + d_row, col + d_col
                    if 0 <= r < n_rows and 0 <= c < n_cols:
                        cell_neighbors.append(r * n_cols + c)
                neighbors.append(cell_neighbors)
                if mark_edges and (row in (0, n_rows - 1) or col in (0, n_cols - 1)):
                    border[row * n_cols + col] = True

        rows, cols = np.indices(heights.shape)
        points = np.column_stack([cols.ravel(), rows.ravel()]).astype(np.float64)

        return cls(
            heights=heights.ravel(),
            cell_neighbors=neighbors,
            cell_border_flags=border,
            temperature=None if temperature is None else np.asarray(temperature).ravel(),
            precipitation=None if precipitation is None else np.asarray(precipitation).ravel(),
            points=points,
        )

    @classmethod
    def from_points(
        cls,
        points: np.ndarray,
        heights: np.ndarray,
        width: float,
        height: float,
        spacing: float,
        temperature: Optional[np.ndarray] = None,
        precipitation: Optional[np.ndarray] = None,
    ) -> "CellGraph":
        """
        Build a graph from cell centres using a Voronoi diagram.

        Boundary points are added around the map to pseudo-clip the
        diagram; cells sharing a ridge with a boundary point are border
        cells.
        """
        points = np.asarray(points, dtype=np.float64)
        boundary = get_boundary_points(width, height, spacing)
        vor = Voronoi(np.vstack([points, boundary]))
        neighbors, border = build_cell_connectivity(vor, len(points))

        return cls(
            heights=heights,
            cell_neighbors=neighbors,
            cell_border_flags=border,
            temperature=temperature,
            precipitation=precipitation,
            points=points,
        )


def generate_jittered_points(width: float, height: float, spacing: float, seed: str = "default") -> np.ndarray:
    """
    Generate jittered square grid points.

    Creates a regular grid with randomized positions to prevent artificial
    patterns. The jitter comes from the Alea PRNG so a seed always gives
    the same mesh.
    """
    prng = AleaPRNG(seed)

    radius = spacing / 2
    jittering = radius * 0.9  # max deviation
    double_jittering = jittering * 2

    def jitter():
        return prng.random() * double_jittering - jittering

    points = []
    y = radius
    while y < height:
        x = radius
        while x < width:
            xj = min(round(x + jitter(), 2), width)
            yj = min(round(y + jitter(), 2), height)
            points.append([xj, yj])
            x += spacing
        y += spacing

    return np.array(points)


def get_boundary_points(width: float, height: float, spacing: float) -> np.ndarray:
    """Points around the map edge that keep edge cells finite."""
    offset = round(-1 * spacing)
    b_spacing = spacing * 2
    w = width - offset * 2
    h = height - offset * 2

    number_x = int(np.ceil(w / b_spacing) - 1)
    number_y = int(np.ceil(h / b_spacing) - 1)

    points = []
    for i in range(number_x):
        x = int(np.ceil((w * (i + 0.5)) / number_x + offset))
        points.append([x, offset])
        points.append([x, h + offset])

    for i in range(number_y):
        y = int(np.ceil((h * (i + 0.5)) / number_y + offset))
        points.append([offset, y])
        points.append([w + offset, y])

    return np.array(points, dtype=np.float64)


def build_cell_connectivity(vor: Voronoi, n_grid_points: int) -> Tuple[List[List[int]], np.ndarray]:
    """
    Cell adjacency and border flags from scipy Voronoi output.

    Args:
        vor: scipy Voronoi diagram over grid points followed by boundary points
        n_grid_points: Number of grid points (excluding boundary)

    Returns:
        Tuple of (cell_neighbors, border_flags)
    """
    cell_neighbors: List[set] = [set() for _ in range(n_grid_points)]
    border_flags = np.zeros(n_grid_points, dtype=bool)

    for p1, p2 in vor.ridge_points:
        if p1 < n_grid_points and p2 < n_grid_points:
            cell_neighbors[p1].add(int(p2))
            cell_neighbors[p2].add(int(p1))
        elif p1 < n_grid_points:
            border_flags[p1] = True
        elif p2 < n_grid_points:
            border_flags[p2] = True

    logger.info("Cell connectivity built", cells=n_grid_points, border_cells=int(border_flags.sum()))
    return [sorted(s) for s in cell_neighbors], border_flags


def neighbors_of(graph: CellGraph, cells: Sequence[int]) -> List[int]:
    """Sorted cells adjacent to ``cells`` but not part of them."""
    members = set(cells)
    ring = set()
    for cell in cells:
        for neighbor in graph.cell_neighbors[cell]:
            if neighbor not in members:
                ring.add(neighbor)
    return sorted(ring)
