"""
Hexagonal grid topology in axial coordinates.

This module implements:
- Hex-diamond grid enumeration from width/height bounds
- Six-direction axial neighbourhoods (cells outside the grid are absent)
- Stable integer indices per cell, used to key per-cell arrays
- Flat-topped axial to world projection for drawing collaborators
"""

import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, NamedTuple, Optional, Tuple

import numpy as np
import structlog

from ..exceptions import InvalidConfigurationError

logger = structlog.get_logger()

# Axial direction offsets, in the order neighbours are reported
HEX_DIRECTIONS: Tuple[Tuple[int, int], ...] = (
    (1, 0),
    (1, -1),
    (0, -1),
    (-1, 0),
    (-1, 1),
    (0, 1),
)


class GridConfig(NamedTuple):
    """Configuration for hex grid generation."""

    width: int
    height: int
    hex_size: float = 1.0


class HexCell(NamedTuple):
    """Axial coordinate of one hex cell."""

    q: int
    r: int

    def offset(self, dq: int, dr: int) -> "HexCell":
        return HexCell(self.q + dq, self.r + dr)


@dataclass(frozen=True)
class HexGrid:
    """
    Immutable hex grid.

    Cells are stored in lexicographic (q, r) order; a cell's position in
    ``cells`` is its index for every per-cell array built on top of the grid.
    """

    config: GridConfig
    cells: Tuple[HexCell, ...]
    cell_neighbors: Tuple[Tuple[int, ...], ...]  # neighbour indices per cell
    _index: Dict[HexCell, int] = field(repr=False, compare=False)

    def __len__(self) -> int:
        return len(self.cells)

    def __iter__(self) -> Iterator[HexCell]:
        return iter(self.cells)

    def __contains__(self, cell) -> bool:
        return cell in self._index

    def index_of(self, cell) -> int:
        """
        Stable index of a cell.

        Raises:
            KeyError: If the coordinate is not part of the grid
        """
        try:
            return self._index[HexCell(*cell)]
        except (KeyError, TypeError):
            raise KeyError(f"Cell {cell!r} is not in the grid") from None

    def get(self, q: int, r: int) -> Optional[HexCell]:
        """Exact-match lookup by coordinate; None when outside the grid."""
        cell = HexCell(q, r)
        return cell if cell in self._index else None

    def neighbors(self, cell) -> List[HexCell]:
        """Neighbours of a cell in HEX_DIRECTIONS order."""
        return [self.cells[i] for i in self.cell_neighbors[self.index_of(cell)]]

    def neighbor_indices(self, index: int) -> Tuple[int, ...]:
        return self.cell_neighbors[index]

    @property
    def coordinates(self) -> np.ndarray:
        """(n, 2) int array of [q, r] rows in index order."""
        return np.array(self.cells, dtype=np.int32).reshape(len(self.cells), 2)


def hex_range(width: int, height: int) -> Iterator[HexCell]:
    """
    Enumerate the axial coordinates covered by a width/height bound.

    q runs over [-width, width]; for each q, r runs over
    [max(-height, -q - height), min(height, -q + height)].
    """
    for q in range(-width, width + 1):
        r1 = max(-height, -q - height)
        r2 = min(height, -q + height)
        for r in range(r1, r2 + 1):
            yield HexCell(q, r)


def _validate_config(config: GridConfig) -> None:
    for name in ("width", "height"):
        value = getattr(config, name)
        if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
            raise InvalidConfigurationError(f"Grid {name} must be an integer, got {value!r}")
        if value < 0:
            raise InvalidConfigurationError(f"Grid {name} must not be negative, got {value}")
    if not config.hex_size > 0:
        raise InvalidConfigurationError(f"Hex size must be positive, got {config.hex_size!r}")


def build_hex_grid(config: GridConfig) -> HexGrid:
    """
    Build the grid for a configuration.

    Args:
        config: Grid bounds and hex size

    Returns:
        HexGrid with precomputed neighbour indices

    Raises:
        InvalidConfigurationError: For negative or non-integer bounds, a
            non-positive hex size, or bounds that cover no cell
    """
    _validate_config(config)
    width, height = int(config.width), int(config.height)
    grid = grid_from_cells(hex_range(width, height), GridConfig(width, height, float(config.hex_size)))
    logger.info("Built hex grid", width=width, height=height, cells=len(grid))
    return grid


def grid_from_cells(cells: Iterable, config: Optional[GridConfig] = None) -> HexGrid:
    """
    Build a grid over an explicit set of axial coordinates.

    Cells are sorted into lexicographic (q, r) order and deduplicated.

    Raises:
        InvalidConfigurationError: If no cell is given
    """
    cells = tuple(sorted({HexCell(*cell) for cell in cells}))
    if not cells:
        raise InvalidConfigurationError("Grid contains no cells")
    index = {cell: i for i, cell in enumerate(cells)}

    cell_neighbors = []
    for cell in cells:
        neighbours = []
        for dq, dr in HEX_DIRECTIONS:
            j = index.get(cell.offset(dq, dr))
            if j is not None:
                neighbours.append(j)
        cell_neighbors.append(tuple(neighbours))

    return HexGrid(
        config=config or GridConfig(0, 0),
        cells=cells,
        cell_neighbors=tuple(cell_neighbors),
        _index=index,
    )


def hex_to_world(cell, hex_size: float = 1.0) -> Tuple[float, float]:
    """
    Project an axial coordinate to the (x, z) plane for a flat-topped grid.

    x = size * 3/2 * q
    z = size * sqrt(3) * (r + q / 2)
    """
    q, r = cell
    x = hex_size * 1.5 * q
    z = hex_size * math.sqrt(3.0) * (r + q / 2.0)
    return x, z


def hex_corners(center: Tuple[float, float], hex_size: float = 1.0) -> np.ndarray:
    """Six corner points (6, 2) of a flat-topped hex around a world position."""
    angles = np.deg2rad(np.arange(6) * 60.0)
    cx, cz = center
    return np.column_stack((cx + hex_size * np.cos(angles), cz + hex_size * np.sin(angles)))
