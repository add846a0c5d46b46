"""
Events emitted by a generation run.

Consumers (tile visuals, loggers, tests) receive these in order. An event that
has been emitted is final: later contradiction or cancellation never retracts
it.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional, Tuple

from .hex_grid import HexCell
from .terrain import TERRAIN_HEIGHTS, TERRAIN_NAMES, TerrainType


@dataclass(frozen=True)
class CellCollapsed:
    """A cell was committed to a terrain.

    ``forced`` is True when propagation left the cell a single option and the
    selector never had to choose for it.
    """

    cell: HexCell
    category: TerrainType
    step: int
    forced: bool = False

    @property
    def name(self) -> str:
        return TERRAIN_NAMES[self.category]

    @property
    def height(self) -> float:
        return TERRAIN_HEIGHTS[self.category]


@dataclass(frozen=True)
class PropagationStep:
    """One worklist iteration of constraint propagation."""

    cell: HexCell
    narrowed: Tuple[HexCell, ...] = ()
    resolved: Tuple[HexCell, ...] = ()


@dataclass(frozen=True)
class Contradiction:
    """Propagation emptied a cell; the run stops."""

    cell: HexCell
    source: Optional[HexCell]
    trigger: FrozenSet[TerrainType] = field(default_factory=frozenset)
    step: int = 0


@dataclass(frozen=True)
class RunCompleted:
    """Every cell is resolved."""

    assignment: Dict[HexCell, TerrainType]
    collapses: int


@dataclass(frozen=True)
class RunCancelled:
    """The run was abandoned between steps."""

    collapses: int
