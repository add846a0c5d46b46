"""
Core hex terrain generation functionality.
"""

from .terrain import TerrainType, TERRAIN_NAMES, TERRAIN_HEIGHTS
from .hex_grid import GridConfig, HexCell, HexGrid, build_hex_grid, grid_from_cells, hex_to_world
from .adjacency import AdjacencyRules, DEFAULT_ADJACENCY, default_rules, load_rules
from .possibilities import PossibilityStore
from .selector import select_next, choose_category
from .propagator import Propagator, PropagationReport, propagate
from .generation import (
    GenerationOptions,
    GenerationResult,
    GenerationRun,
    RunState,
    generate,
    generate_with_retries,
)

__all__ = ['TerrainType', 'TERRAIN_NAMES', 'TERRAIN_HEIGHTS',
           'GridConfig', 'HexCell', 'HexGrid', 'build_hex_grid', 'grid_from_cells', 'hex_to_world',
           'AdjacencyRules', 'DEFAULT_ADJACENCY', 'default_rules', 'load_rules',
           'PossibilityStore', 'select_next', 'choose_category',
           'Propagator', 'PropagationReport', 'propagate',
           'GenerationOptions', 'GenerationResult', 'GenerationRun', 'RunState',
           'generate', 'generate_with_retries']
