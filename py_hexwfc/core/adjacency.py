"""
Terrain adjacency rules.

A rule table maps a terrain to the terrains permitted on any neighbouring cell.
The table is directional: propagation restricts a neighbour with the rule of
the *source* cell's terrain, so ``allowed_neighbors(WATER)`` and
``allowed_neighbors(GRASS)`` are used independently and are never closed
symmetrically.

Internally each set is also kept as a bitmask (bit ``int(terrain)``) so the
possibility store can intersect sets with plain integer operations.
"""

from typing import Dict, FrozenSet, Iterable, Mapping, Optional

import numpy as np
import structlog

from ..exceptions import InvalidConfigurationError
from .terrain import ALL_TERRAINS, TERRAIN_NAMES, TerrainType, terrain_from_name

logger = structlog.get_logger()

# Reference rule table
DEFAULT_ADJACENCY: Dict[TerrainType, FrozenSet[TerrainType]] = {
    TerrainType.GRASS: frozenset(
        {TerrainType.GRASS, TerrainType.FOREST, TerrainType.DESERT, TerrainType.WATER}
    ),
    TerrainType.WATER: frozenset(
        {TerrainType.WATER, TerrainType.GRASS, TerrainType.DESERT}
    ),
    TerrainType.MOUNTAIN: frozenset(
        {TerrainType.MOUNTAIN, TerrainType.FOREST, TerrainType.DESERT}
    ),
    TerrainType.FOREST: frozenset(
        {TerrainType.FOREST, TerrainType.GRASS, TerrainType.MOUNTAIN, TerrainType.DESERT}
    ),
    TerrainType.DESERT: frozenset(
        {
            TerrainType.DESERT,
            TerrainType.GRASS,
            TerrainType.WATER,
            TerrainType.FOREST,
            TerrainType.MOUNTAIN,
        }
    ),
}


def terrain_mask(terrains: Iterable[TerrainType]) -> int:
    """Bitmask with one bit set per terrain."""
    mask = 0
    for terrain in terrains:
        mask |= 1 << int(terrain)
    return mask


def mask_terrains(mask: int) -> FrozenSet[TerrainType]:
    """Inverse of terrain_mask."""
    return frozenset(t for t in ALL_TERRAINS if mask & (1 << int(t)))


FULL_MASK = terrain_mask(ALL_TERRAINS)


class AdjacencyRules:
    """
    Validated, read-only adjacency rule table.

    Args:
        table: Mapping from every terrain to the terrains allowed next to it

    Raises:
        InvalidConfigurationError: If a terrain has no entry or an entry
            contains something that is not a terrain
    """

    def __init__(self, table: Mapping[TerrainType, Iterable[TerrainType]]):
        rules = {}
        for terrain, allowed in table.items():
            if not isinstance(terrain, TerrainType):
                raise InvalidConfigurationError(f"Rule key {terrain!r} is not a terrain type")
            allowed = frozenset(allowed)
            bad = [a for a in allowed if not isinstance(a, TerrainType)]
            if bad:
                raise InvalidConfigurationError(
                    f"Rule for {TERRAIN_NAMES[terrain]} contains non-terrain values: {bad!r}"
                )
            if terrain not in allowed:
                logger.warning(
                    "Terrain does not tile against itself",
                    terrain=TERRAIN_NAMES[terrain],
                )
            rules[terrain] = allowed

        missing = [TERRAIN_NAMES[t] for t in ALL_TERRAINS if t not in rules]
        if missing:
            raise InvalidConfigurationError(f"Adjacency table has no entry for: {', '.join(missing)}")

        self._rules = rules
        self._masks = np.array([terrain_mask(rules[t]) for t in ALL_TERRAINS], dtype=np.uint16)
        self._support = self._build_support_table()

    def _build_support_table(self) -> np.ndarray:
        """Union of allowed-neighbour masks for every possible source mask."""
        support = np.zeros(FULL_MASK + 1, dtype=np.uint16)
        for mask in range(1, FULL_MASK + 1):
            union = 0
            for terrain in ALL_TERRAINS:
                if mask & (1 << int(terrain)):
                    union |= int(self._masks[int(terrain)])
            support[mask] = union
        return support

    @classmethod
    def from_names(cls, table: Mapping[str, Iterable[str]]) -> "AdjacencyRules":
        """
        Build rules from terrain names, e.g. loaded from JSON configuration.

        Raises:
            InvalidConfigurationError: For unknown terrain names or missing entries
        """
        try:
            converted = {
                terrain_from_name(key): [terrain_from_name(name) for name in values]
                for key, values in table.items()
            }
        except KeyError as exc:
            raise InvalidConfigurationError(str(exc.args[0])) from exc
        return cls(converted)

    def allowed_neighbors(self, terrain: TerrainType) -> FrozenSet[TerrainType]:
        """Terrains permitted on a neighbour of a cell with this terrain."""
        return self._rules[terrain]

    def allowed_mask(self, terrain: TerrainType) -> int:
        return int(self._masks[int(terrain)])

    def support_mask(self, source_mask: int) -> int:
        """
        Terrains a neighbour may still take given the source's possibilities.

        For a resolved source (one bit set) this is exactly the allowed mask
        of its terrain.
        """
        return int(self._support[source_mask])

    def is_symmetric(self) -> bool:
        return all(
            a in self._rules[b] for a in ALL_TERRAINS for b in self._rules[a]
        )

    def symmetrized(self) -> "AdjacencyRules":
        """Rules closed under symmetry (a allows b or b allows a)."""
        table = {t: set(self._rules[t]) for t in ALL_TERRAINS}
        for a in ALL_TERRAINS:
            for b in self._rules[a]:
                table[b].add(a)
        return AdjacencyRules(table)

    def to_names(self) -> Dict[str, list]:
        return {
            TERRAIN_NAMES[t]: [TERRAIN_NAMES[a] for a in sorted(self._rules[t])]
            for t in ALL_TERRAINS
        }

    def __eq__(self, other):
        if not isinstance(other, AdjacencyRules):
            return NotImplemented
        return self._rules == other._rules

    def __repr__(self):
        return f"AdjacencyRules({self.to_names()!r})"


def default_rules() -> AdjacencyRules:
    """The reference rule table."""
    return AdjacencyRules(DEFAULT_ADJACENCY)


def permissive_rules() -> AdjacencyRules:
    """Every terrain may neighbour every terrain."""
    return AdjacencyRules({t: ALL_TERRAINS for t in ALL_TERRAINS})


def load_rules(table: Optional[Mapping[str, Iterable[str]]]) -> AdjacencyRules:
    """Rules from a name mapping, or the reference rules when none is given."""
    if table is None:
        return default_rules()
    return AdjacencyRules.from_names(table)
