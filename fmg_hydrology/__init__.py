"""
Procedural rivers and lakes for fantasy map cell graphs.
"""

from .core import (
    AleaPRNG,
    CellGraph,
    HydrologyGenerator,
    HydrologyOptions,
    HydrologyResult,
    generate_hydrology,
)

__version__ = "0.1.0"

__all__ = ['AleaPRNG', 'CellGraph', 'HydrologyGenerator', 'HydrologyOptions',
           'HydrologyResult', 'generate_hydrology']
