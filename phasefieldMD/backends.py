"""
Backend configuration for phasefieldMD.

This module provides unified backend selection for the numerically intensive
grid reduction (merging kernel contributions into the shared grid arrays).

The backend can be configured via the PHASEFIELDMD_BACKEND environment variable:
- 'numba': JIT-compiled parallel reduction (default, requires numba)
- 'numpy': Pure NumPy implementation based on ``np.add.at``

The number of private buffers used by the parallel reduction can be
configured via PHASEFIELDMD_REDUCTION_CHUNKS:
- 1: single buffer, sequential (default)
- N: split contributions into N chunks reduced in parallel
- -1: one chunk per Numba thread

Results are bit-for-bit reproducible for a fixed chunk count, since chunks
are always summed in the same order.

Example
-------
>>> import os
>>> os.environ['PHASEFIELDMD_BACKEND'] = 'numpy'  # Before importing phasefieldMD
>>> os.environ['PHASEFIELDMD_REDUCTION_CHUNKS'] = '4'
"""

from __future__ import annotations

import os

BACKEND_ENV_VAR = 'PHASEFIELDMD_BACKEND'
AVAILABLE_BACKENDS = frozenset({'numpy', 'numba'})
DEFAULT_BACKEND = 'numba'

REDUCTION_CHUNKS_ENV_VAR = 'PHASEFIELDMD_REDUCTION_CHUNKS'
DEFAULT_REDUCTION_CHUNKS = 1


def _resolve_backend() -> str:
    """Resolve and validate backend from environment variable.

    Called once at module import time to ensure the backend is valid.

    Returns
    -------
    str
        Validated backend name ('numpy' or 'numba').

    Raises
    ------
    ValueError
        If the environment variable contains an invalid backend name.
    """
    value = os.environ.get(BACKEND_ENV_VAR, DEFAULT_BACKEND).lower().strip()
    if not value:
        return DEFAULT_BACKEND
    if value not in AVAILABLE_BACKENDS:
        raise ValueError(
            f"Invalid PHASEFIELDMD_BACKEND '{value}'. "
            f"Must be one of: {', '.join(sorted(AVAILABLE_BACKENDS))}"
        )
    return value


def _resolve_reduction_chunks() -> int:
    """Resolve the reduction chunk count from environment variable.

    Returns
    -------
    int
        Number of private reduction buffers. -1 means one per Numba thread.

    Raises
    ------
    ValueError
        If the environment variable is not a valid integer, or is zero or
        below -1.
    """
    value = os.environ.get(REDUCTION_CHUNKS_ENV_VAR, '').strip()
    if not value:
        return DEFAULT_REDUCTION_CHUNKS
    try:
        chunks = int(value)
    except ValueError:
        raise ValueError(
            f"Invalid {REDUCTION_CHUNKS_ENV_VAR} '{value}'. Must be an integer."
        )
    if chunks == 0 or chunks < -1:
        raise ValueError(
            f"Invalid {REDUCTION_CHUNKS_ENV_VAR} '{value}'. "
            "Must be a positive integer or -1."
        )
    return chunks


BACKEND = _resolve_backend()
REDUCTION_CHUNKS = _resolve_reduction_chunks()


def get_backend() -> str:
    """
    Get the current backend.

    Returns
    -------
    str
        Backend name ('numpy' or 'numba').
    """
    return BACKEND


def get_reduction_chunks() -> int:
    """
    Get the number of private buffers used by the parallel reduction.

    Returns
    -------
    int
        Chunk count. 1 for a sequential reduction, -1 for one chunk per
        available Numba thread.
    """
    return REDUCTION_CHUNKS
