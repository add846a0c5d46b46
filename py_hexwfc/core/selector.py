"""
Collapse selection: which cell to collapse next and to what.

Cells are chosen by minimum remaining possibilities ("lowest entropy"). Ties go
to the lowest grid index, which is lexicographic (q, r) order, so selection is
fully deterministic and only the terrain choice consumes randomness.
"""

from typing import Optional

import numpy as np

from .alea_prng import AleaPRNG
from .hex_grid import HexCell
from .possibilities import PossibilityStore
from .terrain import TerrainType


def select_next_index(store: PossibilityStore) -> Optional[int]:
    """Index of the next cell to collapse, or None when every cell is resolved."""
    counts = store.counts()
    unresolved = counts > 1
    if not unresolved.any():
        return None
    # Resolved cells are pushed past any real count; argmin keeps the first minimum
    ranked = np.where(unresolved, counts, np.iinfo(counts.dtype).max)
    return int(np.argmin(ranked))


def select_next(store: PossibilityStore) -> Optional[HexCell]:
    """Next cell to collapse, or None when every cell is resolved."""
    index = select_next_index(store)
    return None if index is None else store.grid.cells[index]


def choose_category(cell, store: PossibilityStore, rng: AleaPRNG) -> TerrainType:
    """
    Pick a terrain uniformly among the cell's remaining possibilities.

    Possibilities are sorted before the draw so the result depends only on
    the seed.
    """
    options = sorted(store.get(cell))
    return rng.choice(options)
