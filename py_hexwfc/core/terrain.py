"""
Terrain categories used by the hex generator.

The enumeration order is only used for deterministic iteration and tie
breaking; it carries no semantic ranking.
"""

from enum import IntEnum
from typing import Dict


class TerrainType(IntEnum):
    """Terrain categories a hex cell can collapse to."""

    GRASS = 0
    WATER = 1
    MOUNTAIN = 2
    FOREST = 3
    DESERT = 4


ALL_TERRAINS = tuple(TerrainType)

# Terrain names for display
TERRAIN_NAMES = {
    TerrainType.GRASS: "Grass",
    TerrainType.WATER: "Water",
    TerrainType.MOUNTAIN: "Mountain",
    TerrainType.FOREST: "Forest",
    TerrainType.DESERT: "Desert",
}

# One-letter symbols for text maps
TERRAIN_SYMBOLS = {
    TerrainType.GRASS: "G",
    TerrainType.WATER: "W",
    TerrainType.MOUNTAIN: "M",
    TerrainType.FOREST: "F",
    TerrainType.DESERT: "D",
}

# Resting height of a tile visual above the grid plane
TERRAIN_HEIGHTS: Dict[TerrainType, float] = {
    TerrainType.WATER: 0.0,
    TerrainType.GRASS: 1.0,
    TerrainType.DESERT: 1.0,
    TerrainType.FOREST: 2.0,
    TerrainType.MOUNTAIN: 2.0,
}


def terrain_from_name(name: str) -> TerrainType:
    """
    Look up a terrain by display name or enum name (case insensitive).

    Raises:
        KeyError: If the name matches no terrain
    """
    key = name.strip().upper()
    try:
        return TerrainType[key]
    except KeyError:
        raise KeyError(f"Unknown terrain type: {name!r}") from None
