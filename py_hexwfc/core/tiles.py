"""
Tile placement records for visual collaborators.

The generator itself never draws. TilePlacer listens to CellCollapsed events
and turns each into a TilePlacement: world position, resting height and a
randomly chosen visual variant. Renderers consume the placements however they
like.
"""

from typing import Dict, List, Mapping, NamedTuple, Optional, Sequence, Tuple

import numpy as np
import structlog

from .alea_prng import AleaPRNG
from .events import CellCollapsed
from .hex_grid import HexCell, hex_corners, hex_to_world
from .terrain import TERRAIN_HEIGHTS, TERRAIN_NAMES, TerrainType

logger = structlog.get_logger()


class TilePlacement(NamedTuple):
    """Where and how to show one collapsed cell."""

    cell: HexCell
    category: TerrainType
    position: Tuple[float, float]
    height: float
    variant: Optional[str]
    corners: np.ndarray  # (6, 2) world outline


def choose_variant(
    category: TerrainType, variants: Mapping[TerrainType, Sequence[str]], rng: AleaPRNG
) -> Optional[str]:
    """
    Pick one visual variant for a terrain.

    Returns:
        Variant name, or None (with a warning) when the terrain has none
    """
    options = variants.get(category)
    if not options:
        logger.warning("No visual variants configured for terrain", terrain=TERRAIN_NAMES[category])
        return None
    return rng.choice(list(options))


class TilePlacer:
    """
    Event listener producing tile placements.

    Args:
        rng: Random source for variant choice (use a PRNG separate from the
            run's so visuals never change the generated terrain)
        variants: Visual variant names per terrain
        hex_size: Hex radius used for world projection
    """

    def __init__(
        self,
        rng: AleaPRNG,
        variants: Optional[Mapping[TerrainType, Sequence[str]]] = None,
        hex_size: float = 1.0,
    ):
        self.rng = rng
        self.variants = variants or {}
        self.hex_size = hex_size
        self.placements: Dict[HexCell, TilePlacement] = {}
        self.order: List[HexCell] = []

    def __call__(self, event) -> None:
        if isinstance(event, CellCollapsed):
            self.place(event.cell, event.category)

    def place(self, cell: HexCell, category: TerrainType) -> TilePlacement:
        position = hex_to_world(cell, self.hex_size)
        placement = TilePlacement(
            cell=cell,
            category=category,
            position=position,
            height=TERRAIN_HEIGHTS[category],
            variant=choose_variant(category, self.variants, self.rng) if self.variants else None,
            corners=hex_corners(position, self.hex_size),
        )
        self.placements[cell] = placement
        self.order.append(cell)
        return placement
