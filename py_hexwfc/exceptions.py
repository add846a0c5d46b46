"""
Exception hierarchy for hex terrain generation.

Data/runtime failures derive from HexWFCError. Programmer errors (collapsing a
cell to a category it can no longer take) derive from AssertionError instead so
that a caller catching HexWFCError never hides a bug.
"""

from typing import FrozenSet, Optional


class HexWFCError(Exception):
    """Base class for generation errors."""


class InvalidConfigurationError(HexWFCError, ValueError):
    """Grid or rule configuration rejected before a run starts."""


class RunStateError(HexWFCError):
    """A generation run was driven from a state that does not allow it."""


class ContradictionError(HexWFCError):
    """
    A cell's possibility set became empty during propagation.

    Attributes:
        cell: Coordinate of the cell left with no possible category
        source: Cell whose adjacency rule emptied it (None if unknown)
        trigger: Categories the source still had when the rule was applied
    """

    def __init__(self, cell, source=None, trigger: Optional[FrozenSet] = None):
        self.cell = cell
        self.source = source
        self.trigger = trigger or frozenset()
        names = ", ".join(sorted(t.name for t in self.trigger)) or "?"
        if source is not None:
            message = f"Contradiction at {tuple(cell)}: no category allowed next to {tuple(source)} ({names})"
        else:
            message = f"Contradiction at {tuple(cell)}: no category left"
        super().__init__(message)


class InvalidCollapseError(AssertionError):
    """Collapse requested to a category that is not in the cell's possibility set."""
