"""
Command line entry point.

Usage:
    python -m py_hexwfc [--width W] [--height H] [--seed SEED] [--retries N] [--json]
                        [--watch] [--step-delay S] [--fine-grained]

Defaults come from HEXWFC_* environment variables (see config.Settings).
"""

import argparse
import json
import sys
from dataclasses import replace
from typing import Dict, List, Optional

import structlog

from .config import get_settings
from .core.events import CellCollapsed
from .core.generation import GenerationResult, generate_with_retries
from .core.hex_grid import HexCell, HexGrid, build_hex_grid
from .core.terrain import TERRAIN_NAMES, TERRAIN_SYMBOLS, TerrainType
from .core.tiles import TilePlacer
from .exceptions import ContradictionError, InvalidConfigurationError
from .logging_config import configure_logging
from .utils.random import create_prng

logger = structlog.get_logger()


def render_text(grid: HexGrid, assignment: Dict[HexCell, TerrainType]) -> str:
    """
    One line per r row; each column is a q value. Unresolved cells print as
    '?', coordinates outside the grid as blanks.
    """
    coords = grid.coordinates
    q_min, r_min = coords.min(axis=0)
    q_max, r_max = coords.max(axis=0)
    lines = []
    for r in range(int(r_min), int(r_max) + 1):
        row = []
        for q in range(int(q_min), int(q_max) + 1):
            cell = grid.get(q, r)
            if cell is None:
                row.append(" ")
            elif cell in assignment:
                row.append(TERRAIN_SYMBOLS[assignment[cell]])
            else:
                row.append("?")
        lines.append(" ".join(row).rstrip())
    return "\n".join(lines)


def report_tile(placer: TilePlacer, event) -> None:
    """Print one line per collapsed tile to stderr while watching."""
    if not isinstance(event, CellCollapsed):
        return
    placement = placer.placements[event.cell]
    x, z = placement.position
    forced = " (forced)" if event.forced else ""
    print(
        f"{event.cell.q},{event.cell.r} {TERRAIN_NAMES[event.category]}{forced} "
        f"at x={x:.2f} z={z:.2f} y={placement.height:.1f}",
        file=sys.stderr,
    )


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Generate hex terrain with Wave Function Collapse")
    parser.add_argument("--width", type=int, default=settings.grid_width, help="Axial q bound")
    parser.add_argument("--height", type=int, default=settings.grid_height, help="Axial r bound")
    parser.add_argument("--seed", default=settings.seed, help="Random seed")
    parser.add_argument(
        "--retries", type=int, default=1, help="Attempts before giving up on contradictions"
    )
    parser.add_argument("--log-level", default=settings.log_level, help="Logging level")
    parser.add_argument(
        "--log-format", default=settings.log_format, choices=["json", "plain"], help="Log format"
    )
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    parser.add_argument(
        "--watch", action="store_true", help="Pace the run and report each tile as it collapses"
    )
    parser.add_argument(
        "--step-delay", type=float, default=settings.step_delay, help="Seconds per collapse when watching"
    )
    parser.add_argument(
        "--fine-grained",
        action="store_true",
        default=settings.fine_grained,
        help="Also yield after each propagation step",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level, args.log_format)

    settings = get_settings()
    try:
        grid = build_hex_grid(settings.grid_config()._replace(width=args.width, height=args.height))
        rules = settings.adjacency_rules()
    except InvalidConfigurationError as exc:
        logger.error("Invalid configuration", error=str(exc))
        return 2

    try:
        options = replace(
            settings.generation_options(),
            seed=args.seed,
            step_delay=args.step_delay,
            fine_grained=args.fine_grained,
        )
    except InvalidConfigurationError as exc:
        logger.error("Invalid configuration", error=str(exc))
        return 2

    listeners = []
    if args.watch:
        tiles_seed = f"{args.seed}:tiles" if args.seed else None
        placer = TilePlacer(create_prng(tiles_seed), hex_size=grid.config.hex_size)
        listeners.append(placer)
        listeners.append(lambda event: report_tile(placer, event))

    try:
        result: GenerationResult = generate_with_retries(
            grid,
            rules,
            attempts=max(args.retries, 1),
            listeners=listeners,
            options=options,
            paced=args.watch,
        )
    except ContradictionError as exc:
        logger.error("Generation failed", error=str(exc))
        return 1

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(f"seed: {result.seed}")
        print(render_text(grid, result.assignment))
    return 0


if __name__ == "__main__":
    sys.exit(main())
