"""
Generation driver for hex terrain Wave Function Collapse.

A GenerationRun owns one PossibilityStore and moves through
IDLE -> RUNNING -> COMPLETED | CONTRADICTED (or CANCELLED). Each iteration asks
the selector for the lowest-entropy cell, collapses it, emits a CellCollapsed
event and propagates the new constraint.

The run is a cooperative process: ``steps()`` is a generator that suspends
after every collapse, and additionally after every propagation worklist
iteration when ``fine_grained`` is set. Resuming the generator is the resume
signal; a synchronous caller simply exhausts it (``run()``), an async caller
paces it with ``run_async()``.
"""

import asyncio
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Union

import structlog

from ..exceptions import ContradictionError, InvalidConfigurationError, RunStateError
from ..utils.random import Seed, create_prng, derive_seed, resolve_seed
from .adjacency import AdjacencyRules, default_rules
from .alea_prng import AleaPRNG
from .events import CellCollapsed, Contradiction, PropagationStep, RunCancelled, RunCompleted
from .hex_grid import HexCell, HexGrid
from .possibilities import PossibilityStore
from .propagator import Propagator
from .selector import choose_category, select_next_index
from .terrain import TERRAIN_NAMES, TerrainType

logger = structlog.get_logger()

Event = Union[CellCollapsed, PropagationStep, Contradiction, RunCompleted, RunCancelled]
Listener = Callable[[Event], None]


class RunState(Enum):
    """Lifecycle of a generation run."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CONTRADICTED = "contradicted"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({RunState.COMPLETED, RunState.CONTRADICTED, RunState.CANCELLED})


@dataclass(frozen=True)
class GenerationOptions:
    """Generation run options."""

    seed: Optional[Seed] = None
    step_delay: float = 0.0  # seconds awaited per collapse by run_async
    fine_grained: bool = False  # also suspend after each propagation iteration

    def __post_init__(self):
        if self.step_delay < 0:
            raise InvalidConfigurationError(f"step_delay must not be negative, got {self.step_delay}")


@dataclass
class GenerationResult:
    """Outcome of a finished (or abandoned) run."""

    state: RunState
    seed: str
    collapses: int
    assignment: Dict[HexCell, TerrainType] = field(default_factory=dict)
    error: Optional[ContradictionError] = None

    @property
    def completed(self) -> bool:
        return self.state is RunState.COMPLETED

    def to_dict(self) -> dict:
        """JSON-serialisable summary."""
        data = {
            "state": self.state.value,
            "seed": self.seed,
            "collapses": self.collapses,
            "cells": {
                f"{cell.q},{cell.r}": TERRAIN_NAMES[terrain]
                for cell, terrain in sorted(self.assignment.items())
            },
        }
        if self.error is not None:
            data["contradiction"] = {
                "cell": list(self.error.cell),
                "source": list(self.error.source) if self.error.source is not None else None,
                "trigger": sorted(TERRAIN_NAMES[t] for t in self.error.trigger),
            }
        return data


class GenerationRun:
    """
    One Wave Function Collapse run over a grid.

    Args:
        grid: Grid to fill
        rules: Adjacency rules (reference rules when omitted)
        options: Seed and pacing options
        rng: Random source; built from ``options.seed`` when omitted
        on_collapse: Called with (cell, terrain) for every committed cell
        on_contradiction: Called with the Contradiction event if the run fails
    """

    def __init__(
        self,
        grid: HexGrid,
        rules: Optional[AdjacencyRules] = None,
        options: Optional[GenerationOptions] = None,
        rng: Optional[AleaPRNG] = None,
        on_collapse: Optional[Callable[[HexCell, TerrainType], None]] = None,
        on_contradiction: Optional[Callable[[Contradiction], None]] = None,
    ):
        self.grid = grid
        self.rules = rules or default_rules()
        self.options = options or GenerationOptions()

        if rng is None:
            rng = create_prng(self.options.seed)
        self.rng = rng
        self.seed = str(rng.seed)

        self.store = PossibilityStore(grid)
        self.propagator = Propagator(self.rules)

        self.state = RunState.IDLE
        self.collapses = 0
        self.history: List[CellCollapsed] = []
        self.error: Optional[ContradictionError] = None
        self._cancel_requested = False
        self._stepper: Optional[Iterator[Event]] = None
        self._listeners: List[Listener] = []

        if on_collapse is not None:

            def collapse_listener(event):
                if isinstance(event, CellCollapsed):
                    on_collapse(event.cell, event.category)

            self.add_listener(collapse_listener)

        if on_contradiction is not None:

            def contradiction_listener(event):
                if isinstance(event, Contradiction):
                    on_contradiction(event)

            self.add_listener(contradiction_listener)

    def add_listener(self, listener: Listener) -> None:
        """Register a callback receiving every emitted event."""
        self._listeners.append(listener)

    def _emit(self, event: Event) -> None:
        if isinstance(event, CellCollapsed):
            self.history.append(event)
        for listener in self._listeners:
            listener(event)

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    def cancel(self) -> None:
        """
        Abandon the run at the next suspension point.

        Events already emitted remain final.
        """
        if self.finished:
            return
        if self.state is RunState.IDLE:
            self._finish_cancelled()
            return
        self._cancel_requested = True

    def _finish_cancelled(self) -> RunCancelled:
        self.state = RunState.CANCELLED
        event = RunCancelled(collapses=self.collapses)
        logger.info("Generation cancelled", seed=self.seed, collapses=self.collapses)
        self._emit(event)
        return event

    def steps(self) -> Iterator[Event]:
        """
        Drive the run, suspending at every step.

        Yields:
            CellCollapsed after each selector collapse (before its
            propagation), PropagationStep after each worklist iteration when
            fine grained, then one terminal event (RunCompleted,
            Contradiction or RunCancelled). Forced collapses found by
            propagation go to listeners without a suspension of their own.

        Raises:
            RunStateError: If the run was already started
        """
        if self.state is not RunState.IDLE:
            raise RunStateError(f"Run is {self.state.value}; start a new run instead")
        self.state = RunState.RUNNING
        logger.info(
            "Generation started",
            seed=self.seed,
            cells=len(self.grid),
            fine_grained=self.options.fine_grained,
        )

        while True:
            if self._cancel_requested:
                yield self._finish_cancelled()
                return

            index = select_next_index(self.store)
            if index is None:
                self.state = RunState.COMPLETED
                event = RunCompleted(assignment=self.store.assignment(), collapses=self.collapses)
                logger.info("Generation completed", seed=self.seed, collapses=self.collapses)
                self._emit(event)
                yield event
                return

            cell = self.grid.cells[index]
            category = choose_category(cell, self.store, self.rng)
            self.store.collapse(cell, category)
            self.collapses += 1
            logger.debug("Collapsed cell", cell=tuple(cell), terrain=TERRAIN_NAMES[category])
            event = CellCollapsed(cell=cell, category=category, step=self.collapses)
            self._emit(event)
            yield event

            try:
                for propagation_step in self.propagator.iter_propagate(cell, self.store):
                    for forced in propagation_step.resolved:
                        self._emit(
                            CellCollapsed(
                                cell=forced,
                                category=self.store.category_of(forced),
                                step=self.collapses,
                                forced=True,
                            )
                        )
                    if self.options.fine_grained:
                        yield propagation_step
                        if self._cancel_requested:
                            yield self._finish_cancelled()
                            return
            except ContradictionError as exc:
                self.state = RunState.CONTRADICTED
                self.error = exc
                event = Contradiction(
                    cell=exc.cell, source=exc.source, trigger=exc.trigger, step=self.collapses
                )
                logger.warning(
                    "Contradiction encountered",
                    seed=self.seed,
                    cell=tuple(exc.cell),
                    source=tuple(exc.source) if exc.source is not None else None,
                    trigger=sorted(TERRAIN_NAMES[t] for t in exc.trigger),
                    collapses=self.collapses,
                )
                self._emit(event)
                yield event
                return

    def step(self) -> Optional[Event]:
        """
        Advance to the next suspension point.

        Returns:
            The event at that point, or None once the run is finished
        """
        stepper = self._resume()
        if stepper is None:
            return None
        return next(stepper, None)

    def _resume(self) -> Optional[Iterator[Event]]:
        """The suspended step generator, started on first use."""
        if self._stepper is None:
            if self.finished:
                return None
            self._stepper = self.steps()
        return self._stepper

    def run(self) -> GenerationResult:
        """Run synchronously to a terminal state, resuming any earlier step() calls."""
        while self.step() is not None:
            pass
        return self.result()

    async def run_async(self, step_delay: Optional[float] = None) -> GenerationResult:
        """
        Run as an asyncio task, awaiting ``step_delay`` after every collapse.

        Cancelling the awaiting task moves the run to CANCELLED before the
        CancelledError propagates.
        """
        delay = self.options.step_delay if step_delay is None else step_delay
        stepper = self._resume()
        if stepper is None:
            return self.result()
        try:
            for event in stepper:
                if isinstance(event, CellCollapsed):
                    await asyncio.sleep(delay)
                elif isinstance(event, PropagationStep):
                    await asyncio.sleep(0)
        except asyncio.CancelledError:
            stepper.close()
            if not self.finished:
                self._finish_cancelled()
            raise
        return self.result()

    def assignment(self) -> Dict[HexCell, TerrainType]:
        """Resolved cells so far (every cell once completed)."""
        return self.store.assignment()

    def result(self) -> GenerationResult:
        return GenerationResult(
            state=self.state,
            seed=self.seed,
            collapses=self.collapses,
            assignment=self.store.assignment(),
            error=self.error,
        )


def generate(
    grid: HexGrid,
    rules: Optional[AdjacencyRules] = None,
    seed: Optional[Seed] = None,
    listeners: Iterable[Listener] = (),
    options: Optional[GenerationOptions] = None,
    paced: bool = False,
) -> GenerationResult:
    """
    Run one generation and return its result.

    Args:
        seed: Overrides ``options.seed`` when given
        options: Seed and pacing options
        paced: Drive the run with run_async so ``options.step_delay`` is
            awaited after every collapse
    """
    options = options or GenerationOptions()
    if seed is not None:
        options = replace(options, seed=seed)
    run = GenerationRun(grid, rules, options)
    for listener in listeners:
        run.add_listener(listener)
    if paced:
        return asyncio.run(run.run_async())
    return run.run()


def generate_with_retries(
    grid: HexGrid,
    rules: Optional[AdjacencyRules] = None,
    seed: Optional[Seed] = None,
    attempts: int = 3,
    listeners: Iterable[Listener] = (),
    options: Optional[GenerationOptions] = None,
    paced: bool = False,
) -> GenerationResult:
    """
    Generate, discarding contradicted runs and retrying with derived seeds.

    Attempt n (n > 0) uses seed ``f"{seed}:{n}"``; ``seed`` falls back to
    ``options.seed``. Options and pacing apply to every attempt.

    Raises:
        ValueError: If attempts is not positive
        ContradictionError: The last contradiction when every attempt failed
    """
    if attempts < 1:
        raise ValueError(f"attempts must be positive, got {attempts}")
    options = options or GenerationOptions()
    base_seed = resolve_seed(seed if seed is not None else options.seed)
    listeners = list(listeners)

    result = None
    for attempt in range(attempts):
        result = generate(
            grid,
            rules,
            seed=derive_seed(base_seed, attempt),
            listeners=listeners,
            options=options,
            paced=paced,
        )
        if result.completed:
            if attempt:
                logger.info("Generation succeeded after retry", seed=result.seed, attempt=attempt)
            return result
        logger.info("Discarding contradicted run", seed=result.seed, attempt=attempt)

    raise result.error
