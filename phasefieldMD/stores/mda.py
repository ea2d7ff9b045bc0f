"""
MDAnalysis value store for phasefieldMD.

This module provides the MDAValueStore class, which takes particle positions
and the cell from an MDAnalysis universe and per-particle values either from
an array or from a function evaluated on every loaded frame.
"""

from typing import Callable, Iterator, Union

import MDAnalysis as MD  # type: ignore[import-untyped]
from MDAnalysis.lib.mdamath import triclinic_vectors  # type: ignore[import-untyped]
import numpy as np

from phasefieldMD.errors import DataUnavailableError
from ._base import ValueStore


ValueSource = Union[np.ndarray, Callable[..., np.ndarray]]


class MDAValueStore(ValueStore):
    """
    Per-particle values attached to an **MDAnalysis** selection.

    Parameters
    ----------
    universe : MDAnalysis.Universe
        Universe providing positions and box dimensions.
    values : np.ndarray or callable
        Either an array of shape ``(frames, n_selected)`` (or ``(n_selected,)``
        for values constant in time), or a function called with the selected
        AtomGroup on every loaded frame and returning ``n_selected`` values.
    select : str, optional
        MDAnalysis selection string for the atoms carrying values
        (default: ``'all'``).
    weights : np.ndarray or callable, optional
        Per-value weights with the same conventions as `values` (default: 1).
    is_density : bool, optional
        Whether the values describe a density (default: False).

    Raises
    ------
    ValueError
        If the selection is empty or value arrays do not match it.
    """

    def __init__(
        self,
        universe: MD.Universe,
        values: ValueSource,
        select: str = 'all',
        *,
        weights: ValueSource | None = None,
        is_density: bool = False,
    ):
        super().__init__(is_density=is_density)

        self.mdanalysis_universe = universe
        self.atoms = universe.select_atoms(select)
        if len(self.atoms) == 0:
            raise ValueError(f"Selection {select!r} matched no atoms.")
        self.frames = len(universe.trajectory)

        self._values_source = self._check_source(values, "values")
        self._weights_source = None if weights is None else self._check_source(weights, "weights")
        self._load(universe.trajectory.ts.frame)

    @classmethod
    def from_files(
        cls,
        topology_file: str,
        trajectory_file: str,
        values: ValueSource,
        select: str = 'all',
        **kwargs,
    ) -> "MDAValueStore":
        """
        Build a store from topology and trajectory files.

        Raises
        ------
        RuntimeError
            If MDAnalysis fails to load the files.
        """
        try:
            universe = MD.Universe(topology_file, trajectory_file)
        except Exception as e:
            raise RuntimeError(f"Failed to load MDAnalysis Universe: {e}") from e
        return cls(universe, values, select, **kwargs)

    def _check_source(self, source: ValueSource, name: str) -> ValueSource:
        if callable(source):
            return source
        data = np.asarray(source, dtype=np.float64)
        if data.ndim == 1:
            data = np.broadcast_to(data, (self.frames, data.shape[0]))
        if data.shape != (self.frames, len(self.atoms)):
            raise ValueError(f"{name.capitalize()} and selection are incommensurate.")
        return data

    def _evaluate(self, source: ValueSource, frame: int) -> np.ndarray:
        if callable(source):
            data = np.asarray(source(self.atoms), dtype=np.float64)
            if data.shape != (len(self.atoms),):
                raise ValueError(
                    f"Value function returned shape {data.shape}, expected ({len(self.atoms)},)."
                )
            return data
        return source[frame]

    def _load(self, frame: int) -> int:
        ts = self.mdanalysis_universe.trajectory.ts
        if ts.dimensions is None:
            raise DataUnavailableError("Trajectory frame carries no box dimensions.")
        self._cell_matrix = np.array(triclinic_vectors(ts.dimensions), dtype=np.float64)
        self._positions = self.atoms.positions.astype(np.float64)
        self._values = self._evaluate(self._values_source, frame)
        if self._weights_source is None:
            self._weights = np.ones(len(self.atoms))
        else:
            self._weights = self._evaluate(self._weights_source, frame)
        self.current = frame
        return frame

    @property
    def cell_matrix(self) -> np.ndarray:
        return self._cell_matrix

    def number_of_stored_values(self) -> int:
        return len(self.atoms)

    def retrieve_value(self, slot: int) -> tuple[float, float, np.ndarray]:
        return float(self._values[slot]), float(self._weights[slot]), self._positions[slot]

    def retrieve_values(self, slots: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        slots = np.asarray(slots, dtype=np.int64)
        return self._values[slots], self._weights[slots], self._positions[slots]

    def get_position(self, atom: int) -> np.ndarray:
        return self.mdanalysis_universe.atoms[atom].position.astype(np.float64)

    def _iter_frames_impl(
        self,
        start: int,
        stop: int,
        stride: int
    ) -> Iterator[int]:
        """Iterate using MDAnalysis trajectory slicing."""
        for ts in self.mdanalysis_universe.trajectory[start:stop:stride]:
            yield self._load(ts.frame)

    def get_frame(self, index: int) -> int:
        """Make frame `index` current and return it."""
        ts = self.mdanalysis_universe.trajectory[index]
        return self._load(ts.frame)
