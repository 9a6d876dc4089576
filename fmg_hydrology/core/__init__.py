"""
Core hydrology functionality.
"""

from .alea_prng import AleaPRNG
from .cell_graph import CellGraph, generate_jittered_points
from .exceptions import MAX_SUPPORTED_CELLS, AccumulationOverflowError, ConfigurationError, HydrologyError
from .flow_accumulation import FlowAccumulator, FlowField
from .flow_routing import NO_TARGET, FlowRouter
from .hydrology import HydrologyGenerator, HydrologyReport, HydrologyResult, generate_hydrology
from .lakes import Lake, LakeIdentifier, LakeType, lake_evaporation
from .options import HydrologyOptions
from .pit_filling import FilledTerrain, PitFiller, verify_drainage
from .river_attributes import AttributeDeriver, river_width
from .river_names import RiverNameGenerator
from .rivers import River, RiverExtractor, RiverType

__all__ = ['AleaPRNG', 'CellGraph', 'generate_jittered_points',
           'MAX_SUPPORTED_CELLS', 'AccumulationOverflowError', 'ConfigurationError', 'HydrologyError',
           'FlowAccumulator', 'FlowField', 'NO_TARGET', 'FlowRouter',
           'HydrologyGenerator', 'HydrologyReport', 'HydrologyResult', 'generate_hydrology',
           'Lake', 'LakeIdentifier', 'LakeType', 'lake_evaporation',
           'HydrologyOptions', 'FilledTerrain', 'PitFiller', 'verify_drainage',
           'AttributeDeriver', 'river_width', 'RiverNameGenerator',
           'River', 'RiverExtractor', 'RiverType']
