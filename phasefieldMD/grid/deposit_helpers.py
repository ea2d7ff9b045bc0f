"""
Grid reduction helpers for merging kernel contributions into grid arrays.

Two backends are available:
- NumPy: Uses np.add.at() for correct accumulation
- Numba: JIT-compiled reduction over private per-chunk buffers (default)

The NumPy implementation uses np.add.at() to correctly handle the case where
several particles deposit to the same cell. Standard NumPy fancy indexing
with += only keeps the last value when indices contain duplicates.

Backend selection is controlled by the PHASEFIELDMD_BACKEND environment
variable. See `phasefieldMD.backends` for configuration details.
"""

from __future__ import annotations

from typing import Callable

import numpy as np

from phasefieldMD.backends import get_backend, AVAILABLE_BACKENDS


def _get_numba_function() -> Callable:
    """Import and return the Numba backend function."""
    try:
        from phasefieldMD.grid.deposit_helpers_numba import scatter_add_numba
        return scatter_add_numba
    except ImportError as e:
        raise ImportError(
            "Numba backend requested but numba is not installed. "
            "Install with: pip install numba"
        ) from e


def get_backend_function(backend: str | None = None) -> Callable:
    """
    Get the scatter-add function for the specified backend.

    Parameters
    ----------
    backend : str, optional
        Backend to use: 'numpy' or 'numba'. If not specified, uses the
        PHASEFIELDMD_BACKEND environment variable, defaulting to 'numba'.

    Returns
    -------
    Callable
        ``scatter_add(values, weights, cells, contributions, deposited)``.

    Raises
    ------
    ValueError
        If an unknown backend is specified.
    """
    if backend is None:
        backend = get_backend()

    if backend not in AVAILABLE_BACKENDS:
        raise ValueError(
            f"Unknown grid backend: {backend!r}. "
            f"Available backends: {sorted(AVAILABLE_BACKENDS)}"
        )

    if backend == 'numba':
        return _get_numba_function()

    return scatter_add


def scatter_add(
    values: np.ndarray,
    weights: np.ndarray,
    cells: np.ndarray,
    contributions: np.ndarray,
    deposited: np.ndarray,
) -> None:
    """
    Add per-contribution values and deposited kernel weights to grid cells.

    Parameters
    ----------
    values : np.ndarray
        C-contiguous grid of accumulated values. Modified in place.
    weights : np.ndarray
        C-contiguous grid of accumulated kernel weights (same shape as
        `values`). Modified in place.
    cells : np.ndarray of int
        Flat (row-major) cell index of each contribution. Negative entries
        mark padding and are skipped.
    contributions : np.ndarray
        Amount added to `values` for each entry of `cells`.
    deposited : np.ndarray
        Amount added to `weights` for each entry of `cells`.

    Notes
    -----
    This implementation uses np.add.at() so that repeated cell indices are
    all accumulated. Addition is performed in input order, which keeps the
    result reproducible.
    """
    cells = np.asarray(cells, dtype=np.int64).ravel()
    contributions = np.asarray(contributions, dtype=np.float64).ravel()
    deposited = np.asarray(deposited, dtype=np.float64).ravel()

    valid = cells >= 0
    np.add.at(values.ravel(), cells[valid], contributions[valid])
    np.add.at(weights.ravel(), cells[valid], deposited[valid])
