"""Tests for the generation driver."""

import asyncio

import pytest

from py_hexwfc.core.adjacency import AdjacencyRules, default_rules, permissive_rules
from py_hexwfc.core.alea_prng import AleaPRNG
from py_hexwfc.core.events import (
    CellCollapsed,
    Contradiction,
    PropagationStep,
    RunCancelled,
    RunCompleted,
)
from py_hexwfc.core.generation import (
    GenerationOptions,
    GenerationRun,
    RunState,
    generate,
    generate_with_retries,
)
from py_hexwfc.core.hex_grid import GridConfig, HexCell, build_hex_grid, grid_from_cells
from py_hexwfc.core.terrain import ALL_TERRAINS, TerrainType
from py_hexwfc.exceptions import ContradictionError, InvalidConfigurationError, RunStateError


def cyclic_rules():
    """Each terrain only allows the next one, so any two neighbours contradict."""
    terrains = list(ALL_TERRAINS)
    return AdjacencyRules(
        {t: {terrains[(i + 1) % len(terrains)]} for i, t in enumerate(terrains)}
    )


@pytest.fixture
def grid():
    return build_hex_grid(GridConfig(3, 3))


@pytest.fixture
def pair():
    return grid_from_cells([(0, 0), (1, 0)])


class TestCompletion:
    """Runs that finish successfully."""

    def test_tiny_scenario(self):
        """Width 1, height 0 with permissive rules completes without contradiction."""
        tiny = build_hex_grid(GridConfig(1, 0))
        run = GenerationRun(tiny, permissive_rules(), GenerationOptions(seed="tiny"))
        result = run.run()

        assert result.state is RunState.COMPLETED
        assert result.error is None
        assert set(result.assignment) == set(tiny.cells)
        assert all(t in ALL_TERRAINS for t in result.assignment.values())

    def test_small_hexagon_permissive(self):
        small = build_hex_grid(GridConfig(1, 1))
        result = GenerationRun(small, permissive_rules(), GenerationOptions(seed=1)).run()
        assert result.completed
        assert len(result.assignment) == 7
        # Nothing is ever narrowed, so every cell needs its own collapse
        assert result.collapses == 7

    @pytest.mark.parametrize("seed", ["a", "b", "c", "d", "e", 42])
    def test_adjacency_satisfied(self, grid, seed):
        rules = default_rules()
        result = generate(grid, rules, seed=seed)

        assert result.completed
        assert len(result.assignment) == len(grid)
        for cell in grid:
            for neighbour in grid.neighbors(cell):
                assert result.assignment[neighbour] in rules.allowed_neighbors(
                    result.assignment[cell]
                )

    def test_collapse_count_bounded(self, grid):
        result = generate(grid, seed="bound")
        assert 1 <= result.collapses <= len(grid)

    def test_every_cell_reported_once(self, grid):
        events = []
        result = generate(grid, seed="events", listeners=[events.append])

        collapsed = [e for e in events if isinstance(e, CellCollapsed)]
        assert sorted(e.cell for e in collapsed) == sorted(grid.cells)
        assert sum(not e.forced for e in collapsed) == result.collapses
        assert isinstance(events[-1], RunCompleted)
        assert events[-1].assignment == result.assignment

    def test_on_collapse_callback(self, grid):
        seen = {}
        run = GenerationRun(
            grid,
            options=GenerationOptions(seed="callback"),
            on_collapse=lambda cell, terrain: seen.setdefault(cell, terrain),
        )
        result = run.run()
        assert seen == result.assignment


class TestDeterminism:
    """Identical inputs give identical runs."""

    def test_same_seed_same_run(self, grid):
        first = GenerationRun(grid, options=GenerationOptions(seed="repeat"))
        second = GenerationRun(grid, options=GenerationOptions(seed="repeat"))
        first.run()
        second.run()

        assert first.history == second.history
        assert first.assignment() == second.assignment()

    def test_injected_rng(self, grid):
        a = GenerationRun(grid, rng=AleaPRNG("injected")).run()
        b = GenerationRun(grid, options=GenerationOptions(seed="injected")).run()
        assert a.seed == "injected"
        assert a.assignment == b.assignment

    def test_different_seeds_differ(self, grid):
        a = generate(grid, seed="one")
        b = generate(grid, seed="two")
        assert a.assignment != b.assignment

    def test_generated_seed_is_reported(self, grid):
        result = generate(grid)
        assert result.seed
        assert generate(grid, seed=result.seed).assignment == result.assignment


class TestContradiction:
    """Runs that dead-end."""

    def test_contradicted_state(self, pair):
        events = []
        run = GenerationRun(pair, cyclic_rules(), GenerationOptions(seed="dead"))
        run.add_listener(events.append)
        result = run.run()

        assert result.state is RunState.CONTRADICTED
        assert isinstance(result.error, ContradictionError)
        assert result.collapses == 1

        contradiction = events[-1]
        assert isinstance(contradiction, Contradiction)
        assert contradiction.cell == HexCell(0, 0)
        assert contradiction.source == HexCell(1, 0)
        assert len(contradiction.trigger) == 1

    def test_emitted_collapses_are_kept(self, pair):
        run = GenerationRun(pair, cyclic_rules(), GenerationOptions(seed="dead"))
        run.run()

        assert [e.forced for e in run.history] == [False, True]
        first, forced = run.history
        assert run.store.category_of(first.cell) is first.category
        assert run.store.category_of(forced.cell) is forced.category

    def test_on_contradiction_callback(self, pair):
        reports = []
        run = GenerationRun(
            pair,
            cyclic_rules(),
            GenerationOptions(seed="dead"),
            on_contradiction=reports.append,
        )
        run.run()
        assert len(reports) == 1
        assert reports[0].cell == HexCell(0, 0)

    def test_to_dict_reports_contradiction(self, pair):
        result = GenerationRun(pair, cyclic_rules(), GenerationOptions(seed="dead")).run()
        data = result.to_dict()
        assert data["state"] == "contradicted"
        assert data["contradiction"]["cell"] == [0, 0]
        assert data["contradiction"]["source"] == [1, 0]

    def test_retries_exhausted(self, pair):
        with pytest.raises(ContradictionError):
            generate_with_retries(pair, cyclic_rules(), seed="dead", attempts=3)

    def test_retries_success_keeps_seed(self, grid):
        result = generate_with_retries(grid, default_rules(), seed="ok", attempts=3)
        assert result.completed
        assert result.seed == "ok"

    def test_retries_rejects_zero_attempts(self, grid):
        with pytest.raises(ValueError):
            generate_with_retries(grid, attempts=0)


class TestStepping:
    """The run suspends between steps."""

    def test_step_by_step(self, grid):
        run = GenerationRun(grid, options=GenerationOptions(seed="steps"))
        assert run.state is RunState.IDLE

        event = run.step()
        assert isinstance(event, CellCollapsed)
        assert run.state is RunState.RUNNING
        assert run.collapses == 1
        # Suspended before propagation: only the collapsed cell has changed
        assert run.store.resolved_count() == 1

        events = [event]
        while not run.finished:
            events.append(run.step())
        assert isinstance(events[-1], RunCompleted)
        assert run.step() is None

    def test_fine_grained_yields_propagation(self, grid):
        run = GenerationRun(grid, options=GenerationOptions(seed="fine", fine_grained=True))
        events = list(run.steps())
        assert any(isinstance(e, PropagationStep) for e in events)
        assert isinstance(events[0], CellCollapsed)
        assert isinstance(events[1], PropagationStep)
        assert events[1].cell == events[0].cell

    def test_coarse_steps_have_no_propagation_events(self, grid):
        run = GenerationRun(grid, options=GenerationOptions(seed="coarse"))
        events = list(run.steps())
        assert not any(isinstance(e, PropagationStep) for e in events)

    def test_run_resumes_after_step(self, grid):
        run = GenerationRun(grid, options=GenerationOptions(seed="resume"))
        first = run.step()
        result = run.run()

        assert result.completed
        assert run.history[0] == first
        assert result.assignment == generate(grid, seed="resume").assignment

    def test_finished_run_returns_same_result(self, grid):
        run = GenerationRun(grid, options=GenerationOptions(seed="once"))
        first = run.run()
        second = run.run()
        assert second.assignment == first.assignment
        assert second.collapses == first.collapses

    def test_cannot_restart(self, grid):
        run = GenerationRun(grid, options=GenerationOptions(seed="once"))
        run.run()
        with pytest.raises(RunStateError):
            next(run.steps())

    def test_cancel_between_steps(self, grid):
        run = GenerationRun(grid, options=GenerationOptions(seed="cancel"))
        first = run.step()
        run.cancel()
        last = run.step()

        assert isinstance(last, RunCancelled)
        assert run.state is RunState.CANCELLED
        assert run.history[0] == first
        assert run.step() is None

    def test_cancel_during_propagation(self, grid):
        run = GenerationRun(grid, options=GenerationOptions(seed="cancel", fine_grained=True))
        run.step()
        assert isinstance(run.step(), PropagationStep)
        run.cancel()
        assert isinstance(run.step(), RunCancelled)
        assert run.result().state is RunState.CANCELLED

    def test_cancel_idle(self, grid):
        run = GenerationRun(grid)
        run.cancel()
        assert run.state is RunState.CANCELLED
        assert run.step() is None

    def test_cancel_finished_is_noop(self, grid):
        run = GenerationRun(grid, options=GenerationOptions(seed="done"))
        run.run()
        run.cancel()
        assert run.state is RunState.COMPLETED


class TestAsyncRun:
    """Async pacing."""

    @pytest.mark.asyncio
    async def test_run_async_completes(self, grid):
        run = GenerationRun(grid, options=GenerationOptions(seed="async", fine_grained=True))
        result = await run.run_async(step_delay=0)
        assert result.completed
        assert result.assignment == generate(grid, seed="async").assignment

    @pytest.mark.asyncio
    async def test_run_async_resumes_after_step(self, grid):
        run = GenerationRun(grid, options=GenerationOptions(seed="resume"))
        run.step()
        result = await run.run_async(step_delay=0)
        assert result.completed
        assert result.assignment == generate(grid, seed="resume").assignment

    def test_paced_generate(self, grid):
        events = []
        options = GenerationOptions(seed="paced", fine_grained=True)
        result = generate(grid, listeners=[events.append], options=options, paced=True)

        assert result.completed
        assert result.assignment == generate(grid, seed="paced").assignment
        assert any(isinstance(e, CellCollapsed) for e in events)

    def test_seed_overrides_options(self, grid):
        result = generate(grid, seed="explicit", options=GenerationOptions(seed="ignored"))
        assert result.seed == "explicit"

    @pytest.mark.asyncio
    async def test_task_cancellation(self, grid):
        events = []
        run = GenerationRun(grid, options=GenerationOptions(seed="slow", step_delay=10.0))
        run.add_listener(events.append)
        task = asyncio.create_task(run.run_async())
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert run.state is RunState.CANCELLED
        assert isinstance(events[0], CellCollapsed)
        assert isinstance(events[-1], RunCancelled)


class TestOptions:
    """Test option validation."""

    def test_negative_delay_rejected(self):
        with pytest.raises(InvalidConfigurationError):
            GenerationOptions(step_delay=-1)
