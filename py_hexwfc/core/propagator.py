"""
Constraint propagation over the hex adjacency graph.

Starting from a freshly collapsed cell, a FIFO worklist narrows neighbouring
possibility sets with the adjacency rule of the dequeued (source) cell. Any
neighbour that shrinks is queued in turn so the restriction ripples outward
until nothing changes or a cell runs out of options.

Resolved neighbours are checked as well as narrowed: a rule that excludes a
neighbour's committed terrain is reported as a contradiction rather than
skipped, so a completed grid never holds a forbidden pair. Restrictions
already applied when a contradiction is raised stay applied.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Iterator, List

import structlog

from .adjacency import AdjacencyRules
from .events import PropagationStep
from .hex_grid import HexCell
from .possibilities import PossibilityStore

logger = structlog.get_logger()


@dataclass
class PropagationReport:
    """Summary of one propagate call."""

    origin: HexCell
    iterations: int = 0
    narrowed: int = 0
    resolved: List[HexCell] = field(default_factory=list)


class Propagator:
    """Applies adjacency rules to a possibility store."""

    def __init__(self, rules: AdjacencyRules):
        self.rules = rules

    def iter_propagate(self, origin, store: PossibilityStore) -> Iterator[PropagationStep]:
        """
        Propagate from ``origin``, yielding after every worklist iteration.

        Store state between yields is exactly as left by the finished
        iteration, so the caller may suspend here for as long as it likes.

        Raises:
            ContradictionError: When a neighbour's possibilities would become
                empty; propagation stops immediately
        """
        grid = store.grid
        start = grid.index_of(origin)
        worklist = deque([start])
        pending = {start}

        while worklist:
            current = worklist.popleft()
            pending.discard(current)
            allowed = self.rules.support_mask(store.mask_at(current))

            narrowed = []
            resolved = []
            for neighbor in grid.neighbor_indices(current):
                if store.restrict_mask(neighbor, allowed, source_index=current):
                    narrowed.append(grid.cells[neighbor])
                    if store.count_at(neighbor) == 1:
                        resolved.append(grid.cells[neighbor])
                    if neighbor not in pending:
                        pending.add(neighbor)
                        worklist.append(neighbor)

            yield PropagationStep(
                cell=grid.cells[current],
                narrowed=tuple(narrowed),
                resolved=tuple(resolved),
            )

    def propagate(self, origin, store: PossibilityStore) -> PropagationReport:
        """
        Propagate from ``origin`` to a fixed point.

        Returns:
            PropagationReport with the cells propagation resolved on its own

        Raises:
            ContradictionError: When a neighbour's possibilities would become empty
        """
        report = PropagationReport(origin=origin)
        for step in self.iter_propagate(origin, store):
            report.iterations += 1
            report.narrowed += len(step.narrowed)
            report.resolved.extend(step.resolved)
        logger.debug(
            "Propagation finished",
            origin=tuple(origin),
            iterations=report.iterations,
            narrowed=report.narrowed,
        )
        return report


def propagate(origin, store: PossibilityStore, rules: AdjacencyRules) -> PropagationReport:
    """Run propagation once with a throwaway Propagator."""
    return Propagator(rules).propagate(origin, store)
