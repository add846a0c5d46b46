"""
Per-cell possibility sets.

The store is the only mutable state of a generation run. Possibility sets are
held as terrain bitmasks in a numpy array indexed by the grid's stable cell
index. Sets only ever shrink: ``restrict`` intersects and ``collapse`` narrows
to a member that is already possible.
"""

from typing import Dict, FrozenSet, Iterable, Optional

import numpy as np
import structlog

from ..exceptions import ContradictionError, InvalidCollapseError
from .adjacency import FULL_MASK, mask_terrains, terrain_mask
from .hex_grid import HexCell, HexGrid
from .terrain import TerrainType

logger = structlog.get_logger()

# Number of set bits for every mask value
_POPCOUNT = np.array([bin(m).count("1") for m in range(FULL_MASK + 1)], dtype=np.uint8)


class PossibilityStore:
    """Possibility sets for every cell of one grid."""

    def __init__(self, grid: HexGrid):
        self.grid = grid
        self.masks = np.zeros(len(grid), dtype=np.uint16)
        self.initialize()

    def initialize(self) -> None:
        """Reset every cell to the full terrain enumeration."""
        self.masks.fill(FULL_MASK)

    # Reads

    def get(self, cell) -> FrozenSet[TerrainType]:
        return mask_terrains(int(self.masks[self.grid.index_of(cell)]))

    def mask_at(self, index: int) -> int:
        return int(self.masks[index])

    def count_at(self, index: int) -> int:
        return int(_POPCOUNT[self.masks[index]])

    def counts(self) -> np.ndarray:
        """Remaining possibility count per cell, in index order."""
        return _POPCOUNT[self.masks]

    def is_resolved(self, cell) -> bool:
        return self.count_at(self.grid.index_of(cell)) == 1

    def all_resolved(self) -> bool:
        return bool(np.all(self.counts() == 1))

    def resolved_count(self) -> int:
        return int(np.count_nonzero(self.counts() == 1))

    def category_at(self, index: int) -> Optional[TerrainType]:
        """Terrain of a resolved cell, None while more than one remains."""
        mask = int(self.masks[index])
        if _POPCOUNT[mask] != 1:
            return None
        return TerrainType(mask.bit_length() - 1)

    def category_of(self, cell) -> Optional[TerrainType]:
        return self.category_at(self.grid.index_of(cell))

    def assignment(self) -> Dict[HexCell, TerrainType]:
        """Mapping of every resolved cell to its terrain."""
        result = {}
        for index, cell in enumerate(self.grid.cells):
            terrain = self.category_at(index)
            if terrain is not None:
                result[cell] = terrain
        return result

    # Writes

    def restrict(self, cell, allowed: Iterable[TerrainType], source=None) -> bool:
        """
        Intersect a cell's possibilities with ``allowed``.

        Args:
            cell: Cell to narrow
            allowed: Terrains still permitted
            source: Cell whose rule is being applied, for diagnostics

        Returns:
            True if the set shrank

        Raises:
            ContradictionError: If nothing would remain; the cell keeps its
                previous set
        """
        source_index = None if source is None else self.grid.index_of(source)
        return self.restrict_mask(self.grid.index_of(cell), terrain_mask(allowed), source_index)

    def restrict_mask(self, index: int, allowed_mask: int, source_index: Optional[int] = None) -> bool:
        """Index/bitmask form of restrict."""
        before = int(self.masks[index])
        after = before & allowed_mask
        if after == 0:
            source = trigger = None
            if source_index is not None:
                source = self.grid.cells[source_index]
                trigger = mask_terrains(int(self.masks[source_index]))
            raise ContradictionError(self.grid.cells[index], source=source, trigger=trigger)
        if after == before:
            return False
        self.masks[index] = after
        return True

    def collapse(self, cell, category: TerrainType) -> None:
        """
        Commit a cell to one terrain.

        Raises:
            InvalidCollapseError: If ``category`` is not currently possible
        """
        index = self.grid.index_of(cell)
        bit = 1 << int(category)
        if not int(self.masks[index]) & bit:
            raise InvalidCollapseError(
                f"Cannot collapse {tuple(cell)} to {TerrainType(category).name}: "
                f"possible terrains are {sorted(t.name for t in self.get(cell))}"
            )
        self.masks[index] = bit
