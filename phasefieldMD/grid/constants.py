"""Constants and validators for the grid package."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from phasefieldMD.errors import ConfigurationError

#: Axis names in Cartesian order.
AXIS_NAMES = ('x', 'y', 'z')

VALID_DIRECTIONS = ('x', 'y', 'z', 'xy', 'xz', 'yz', 'xyz')
VALID_MODES = ('average', 'density')
VALID_MEMORY_POLICIES = ('cumulative', 'block')

#: Smallest admissible axis range; narrower ranges are degenerate.
NUMERICAL_TOLERANCE: float = 1e-12

#: Absolute tolerance when checking that the box has not changed since binding.
BOX_TOLERANCE: float = 1e-6


def validate_direction(direction: str) -> tuple[int, ...]:
    """Validate an axis selection string and return the Cartesian axis indices.

    Parameters
    ----------
    direction : str
        One of ``'x'``, ``'y'``, ``'z'``, ``'xy'``, ``'xz'``, ``'yz'``, ``'xyz'``.

    Returns
    -------
    tuple of int
        Indices into ``(x, y, z)`` in the configured order.

    Raises
    ------
    ConfigurationError
        If the direction is not one of the valid selections.
    """
    normalised = direction.lower().strip()
    if normalised not in VALID_DIRECTIONS:
        raise ConfigurationError(
            f"{direction!r} is not a valid direction; must be one of {VALID_DIRECTIONS}"
        )
    return tuple(AXIS_NAMES.index(c) for c in normalised)


def validate_mode(mode: str) -> str:
    """Validate and normalise the accumulation mode ('average' or 'density')."""
    normalised = mode.lower().strip()
    if normalised not in VALID_MODES:
        raise ConfigurationError(f"mode must be one of {VALID_MODES}, got {mode!r}")
    return normalised


def validate_memory_policy(memory: str) -> str:
    """Validate and normalise the memory policy ('cumulative' or 'block')."""
    normalised = memory.lower().strip()
    if normalised not in VALID_MEMORY_POLICIES:
        raise ConfigurationError(
            f"memory must be one of {VALID_MEMORY_POLICIES}, got {memory!r}"
        )
    return normalised


def per_axis(
    value: float | Sequence[float] | None,
    ndim: int,
    name: str,
) -> np.ndarray | None:
    """Broadcast a scalar or per-axis sequence to a float array of length *ndim*.

    ``None`` is passed through unchanged.

    Raises
    ------
    ConfigurationError
        If a sequence of the wrong length is given.
    """
    if value is None:
        return None
    arr = np.atleast_1d(np.asarray(value, dtype=np.float64))
    if arr.ndim != 1:
        raise ConfigurationError(f"{name} must be a scalar or a flat sequence.")
    if arr.size == 1:
        arr = np.full(ndim, arr[0])
    if arr.size != ndim:
        raise ConfigurationError(
            f"{name} has {arr.size} entries but the grid has {ndim} axes."
        )
    return arr
