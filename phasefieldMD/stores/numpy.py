"""
NumPy array value store for phasefieldMD.

This module provides the NumpyValueStore class for per-particle values and
positions held directly as NumPy arrays in memory.
"""

from typing import Iterator

import numpy as np

from phasefieldMD.cell import as_cell_matrix
from ._base import ValueStore


class NumpyValueStore(ValueStore):
    """
    Per-particle values stored directly as NumPy arrays.

    Designed for simulation data already resident in memory, or for
    synthetic data generated numerically.

    Parameters
    ----------
    positions : np.ndarray
        Atomic positions of shape ``(frames, atoms, 3)``.
    values : np.ndarray
        Order parameter of each selected atom, shape ``(frames, n_selected)``.
        A 1D array of length ``n_selected`` is used for every frame.
    cell : np.ndarray
        Either a single cell (``(3, 3)`` matrix or three box lengths) or one
        per frame (``(frames, 3, 3)`` or ``(frames, 3)``).
    selection : np.ndarray of int, optional
        Atom index carrying each value (default: every atom, in order).
    weights : np.ndarray, optional
        Per-value weights, same shape rules as `values` (default: 1).
    mask : np.ndarray of bool, optional
        ``(frames, n_selected)`` flags of the values kept in each frame, as
        produced by an upstream filter (default: all kept).
    is_density : bool, optional
        Whether the values describe a density (default: False).

    Raises
    ------
    ValueError
        If array shapes are inconsistent.
    """

    def __init__(
        self,
        positions: np.ndarray,
        values: np.ndarray,
        cell: np.ndarray,
        selection: np.ndarray | None = None,
        *,
        weights: np.ndarray | None = None,
        mask: np.ndarray | None = None,
        is_density: bool = False,
    ):
        super().__init__(is_density=is_density)

        positions = np.asarray(positions, dtype=np.float64)
        if positions.ndim != 3 or positions.shape[2] != 3:
            raise ValueError("positions must have shape (frames, atoms, 3).")
        self.positions = positions
        self.frames = positions.shape[0]
        n_atoms = positions.shape[1]

        if selection is None:
            selection = np.arange(n_atoms)
        self.selection = np.asarray(selection, dtype=np.int64)
        if np.any(self.selection < 0) or np.any(self.selection >= n_atoms):
            raise ValueError("selection contains atom indices outside the position array.")
        n_selected = len(self.selection)

        self.values = self._per_frame(values, n_selected, "values")
        if weights is None:
            self.weights = np.ones((self.frames, n_selected))
        else:
            self.weights = self._per_frame(weights, n_selected, "weights")
        if mask is None:
            self.mask = np.ones((self.frames, n_selected), dtype=bool)
        else:
            self.mask = np.asarray(mask, dtype=bool)
            if self.mask.shape != (self.frames, n_selected):
                raise ValueError("Mask and value arrays are incommensurate.")

        cell = np.asarray(cell, dtype=np.float64)
        if cell.shape in ((3,), (3, 3)):
            self.cells = np.repeat(as_cell_matrix(cell)[None], self.frames, axis=0)
        elif cell.shape[0] == self.frames and cell.shape[1:] in ((3,), (3, 3)):
            self.cells = np.array([as_cell_matrix(c) for c in cell])
        else:
            raise ValueError("Cell and position arrays are incommensurate.")

        self.current = 0
        self._slots = np.flatnonzero(self.mask[0])

    def _per_frame(self, data: np.ndarray, n_selected: int, name: str) -> np.ndarray:
        data = np.asarray(data, dtype=np.float64)
        if data.ndim == 1:
            data = np.broadcast_to(data, (self.frames, data.shape[0]))
        if data.shape != (self.frames, n_selected):
            raise ValueError(f"{name.capitalize()} and position arrays are incommensurate.")
        return data

    @property
    def cell_matrix(self) -> np.ndarray:
        return self.cells[self.current]

    def number_of_stored_values(self) -> int:
        return len(self._slots)

    def retrieve_value(self, slot: int) -> tuple[float, float, np.ndarray]:
        k = self._slots[slot]
        return (
            float(self.values[self.current, k]),
            float(self.weights[self.current, k]),
            self.positions[self.current, self.selection[k]],
        )

    def retrieve_values(self, slots: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        k = self._slots[np.asarray(slots, dtype=np.int64)]
        return (
            self.values[self.current, k],
            self.weights[self.current, k],
            self.positions[self.current, self.selection[k]],
        )

    def get_position(self, atom: int) -> np.ndarray:
        return self.positions[self.current, atom]

    def _iter_frames_impl(
        self,
        start: int,
        stop: int,
        stride: int
    ) -> Iterator[int]:
        """Step through the in-memory arrays."""
        for i in range(start, stop, stride):
            yield self.get_frame(i)

    def get_frame(self, index: int) -> int:
        """Make frame `index` current and return it."""
        if not -self.frames <= index < self.frames:
            raise IndexError(f"Frame {index} out of range for {self.frames} frames.")
        self.current = index % self.frames
        self._slots = np.flatnonzero(self.mask[self.current])
        return self.current
