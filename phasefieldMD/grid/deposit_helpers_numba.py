"""
Numba JIT-compiled grid reduction functions.

Contributions from one frame are split into a fixed number of contiguous
chunks. Each chunk is reduced into its own private buffer under ``prange``,
so no two threads ever write to the same memory, and the buffers are then
summed into the shared grid in chunk order. For a fixed chunk count the
result does not depend on thread scheduling.
"""

from __future__ import annotations

import numpy as np
from numba import get_num_threads, jit, prange  # type: ignore[import-untyped]

from phasefieldMD.backends import get_reduction_chunks


@jit(nopython=True, cache=True)
def _scatter_add_sequential(
    values: np.ndarray,
    weights: np.ndarray,
    cells: np.ndarray,
    contributions: np.ndarray,
    deposited: np.ndarray,
) -> None:
    """Sequential reduction straight into the shared flat grids."""
    for i in range(cells.shape[0]):
        k = cells[i]
        if k >= 0:
            values[k] += contributions[i]
            weights[k] += deposited[i]


@jit(nopython=True, parallel=True, cache=True)
def _scatter_add_chunked(
    values: np.ndarray,
    weights: np.ndarray,
    cells: np.ndarray,
    contributions: np.ndarray,
    deposited: np.ndarray,
    n_chunks: int,
) -> None:
    """Parallel histogram reduction with one private buffer per chunk."""
    n = cells.shape[0]
    n_cells = values.shape[0]
    chunk = (n + n_chunks - 1) // n_chunks

    local_values = np.zeros((n_chunks, n_cells))
    local_weights = np.zeros((n_chunks, n_cells))

    for c in prange(n_chunks):
        lo = c * chunk
        hi = min(lo + chunk, n)
        for i in range(lo, hi):
            k = cells[i]
            if k >= 0:
                local_values[c, k] += contributions[i]
                local_weights[c, k] += deposited[i]

    # Merge in a fixed order
    for c in range(n_chunks):
        for k in range(n_cells):
            values[k] += local_values[c, k]
            weights[k] += local_weights[c, k]


def scatter_add_numba(
    values: np.ndarray,
    weights: np.ndarray,
    cells: np.ndarray,
    contributions: np.ndarray,
    deposited: np.ndarray,
    n_chunks: int | None = None,
) -> None:
    """
    Add per-contribution values and deposited kernel weights to grid cells.

    This is a wrapper around the JIT-compiled implementations that handles
    dtype/contiguity conversion and chooses between the sequential and the
    chunked parallel reduction.

    Parameters
    ----------
    values, weights : np.ndarray
        C-contiguous grids. Modified in place.
    cells : np.ndarray of int
        Flat (row-major) cell index of each contribution; negative entries
        are skipped.
    contributions, deposited : np.ndarray
        Amounts added to `values` and `weights` respectively.
    n_chunks : int, optional
        Number of private buffers. Defaults to the PHASEFIELDMD_REDUCTION_CHUNKS
        setting; -1 means one per Numba thread.
    """
    cells = np.ascontiguousarray(cells, dtype=np.int64).ravel()
    contributions = np.ascontiguousarray(contributions, dtype=np.float64).ravel()
    deposited = np.ascontiguousarray(deposited, dtype=np.float64).ravel()

    if n_chunks is None:
        n_chunks = get_reduction_chunks()
    if n_chunks == -1:
        n_chunks = get_num_threads()
    n_chunks = max(1, min(int(n_chunks), cells.shape[0]))

    flat_values = values.reshape(-1)
    flat_weights = weights.reshape(-1)

    if n_chunks == 1:
        _scatter_add_sequential(flat_values, flat_weights, cells, contributions, deposited)
    else:
        _scatter_add_chunked(flat_values, flat_weights, cells, contributions, deposited, n_chunks)
