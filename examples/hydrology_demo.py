"""
Example generating rivers and lakes for a random Voronoi island.
"""

import argparse
import json

import numpy as np

from fmg_hydrology.core import AleaPRNG, CellGraph, HydrologyGenerator, generate_jittered_points
from fmg_hydrology.config import settings
from fmg_hydrology.utils import configure_logging


def island_heights(points, width, height, prng):
    """Radial island: high in the middle, sea towards the edges, with a few random hills."""
    cx, cy = width / 2, height / 2
    max_radius = min(width, height) / 2
    distance = np.hypot(points[:, 0] - cx, points[:, 1] - cy) / max_radius
    heights = 60 * (1 - distance)

    for _ in range(6):
        hx = prng.random() * width
        hy = prng.random() * height
        spread = max_radius * (0.1 + prng.random() * 0.2)
        bump = np.exp(-((points[:, 0] - hx) ** 2 + (points[:, 1] - hy) ** 2) / (2 * spread ** 2))
        heights += (10 + prng.random() * 20) * bump

    return np.clip(np.round(heights), 0, 100).astype(np.int32)


def main():
    parser = argparse.ArgumentParser(description="Generate hydrology for a random island")
    parser.add_argument("--seed", default=settings.seed)
    parser.add_argument("--width", type=float, default=400)
    parser.add_argument("--height", type=float, default=300)
    parser.add_argument("--spacing", type=float, default=8)
    parser.add_argument("--log-format", default="plain", choices=["plain", "json"])
    args = parser.parse_args()

    configure_logging(fmt=args.log_format)

    prng = AleaPRNG(args.seed)
    points = generate_jittered_points(args.width, args.height, args.spacing, seed=args.seed)
    heights = island_heights(points, args.width, args.height, prng.fork("heights"))

    # Wetter on the west coast, warmer in the south
    precipitation = 20 + 80 * (1 - points[:, 0] / args.width)
    temperature = 5 + 20 * (points[:, 1] / args.height)

    graph = CellGraph.from_points(
        points,
        heights,
        args.width,
        args.height,
        args.spacing,
        temperature=temperature,
        precipitation=precipitation,
    )
    options = settings.hydrology_options(seed=args.seed, auto_adjust_threshold=True)
    result = HydrologyGenerator(graph, options, prng).generate()

    summary = {
        "cells": graph.n_cells,
        "report": result.report.to_dict(),
        "rivers": [
            {
                "id": river.id,
                "name": river.name,
                "type": river.river_type.value,
                "length": river.length,
                "width": river.width,
                "seasonal": river.seasonal,
                "deltas": len(river.deltas),
            }
            for river in result.rivers
        ],
        "lakes": [
            {"id": lake.id, "area": lake.area, "type": lake.lake_type.value, "closed": lake.closed}
            for lake in result.lakes
        ],
    }
    print(json.dumps(summary, indent=2))


if __name__ == "__main__":
    main()
