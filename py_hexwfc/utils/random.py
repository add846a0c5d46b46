"""
Random source helpers.

Runs never share a hidden global generator: each run receives its own AleaPRNG
built from an explicit seed. When no seed is given one is drawn from uuid4 and
logged, so an interesting run can always be replayed.
"""

import uuid
from typing import Optional, Union

import structlog

logger = structlog.get_logger()

Seed = Union[str, int]


def resolve_seed(seed: Optional[Seed] = None) -> str:
    """
    Normalise a user supplied seed to the string form used by AleaPRNG.

    Args:
        seed: Seed string or integer, or None to generate a fresh one

    Returns:
        Seed string
    """
    if seed is None:
        seed = uuid.uuid4().hex[:12]
        logger.debug("Generated random seed", seed=seed)
    return str(seed)


def create_prng(seed: Optional[Seed] = None):
    """
    Create an independent PRNG for one generation run.

    Args:
        seed: Seed string or integer, or None to generate a fresh one

    Returns:
        AleaPRNG seeded with the resolved seed (available as ``prng.seed``)
    """
    from ..core.alea_prng import AleaPRNG

    return AleaPRNG(resolve_seed(seed))


def derive_seed(seed: Seed, attempt: int) -> str:
    """Seed for a retry attempt; attempt 0 keeps the original seed."""
    if attempt == 0:
        return str(seed)
    return f"{seed}:{attempt}"
