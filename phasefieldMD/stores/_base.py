"""
Base class for upstream per-particle value stores.

A value store holds, for the current frame, one scalar value (and weight)
per stored particle slot together with the position of the particle that
carries it. The accumulation controller pulls these samples once per frame.
"""

from abc import ABC, abstractmethod
from typing import Iterator

import numpy as np


class ValueStore(ABC):
    """
    Abstract base class defining the interface for value stores.

    Required Attributes
    -------------------
    frames : int
        Number of frames available.
    is_density : bool
        True if the stored values are occurrence weights (a density) rather
        than an order parameter to be averaged.
    """

    frames: int
    is_density: bool

    def __init__(self, *, is_density: bool = False) -> None:
        """
        Initialise common store attributes.

        Parameters
        ----------
        is_density : bool, optional
            Whether the store describes a density (default: False).
        """
        self.is_density = bool(is_density)
        self._reset_pending = False

    def _normalize_bounds(
        self, start: int, stop: int | None, stride: int
    ) -> tuple[int, int, int]:
        """
        Clamp frame bounds with slice semantics.

        Negative indices count from the last frame, ``stop=None`` runs to the
        end, and out-of-range bounds are clipped to ``[0, frames]``.
        """
        start, stop, _ = slice(start, stop).indices(self.frames)
        return start, stop, stride

    @property
    @abstractmethod
    def cell_matrix(self) -> np.ndarray:
        """Cell of the current frame, shape (3, 3), rows = lattice vectors."""
        ...

    @abstractmethod
    def number_of_stored_values(self) -> int:
        """Number of particle slots holding a value in the current frame."""
        ...

    @abstractmethod
    def retrieve_value(self, slot: int) -> tuple[float, float, np.ndarray]:
        """Return ``(value, weight, position)`` for one stored slot."""
        ...

    @abstractmethod
    def get_position(self, atom: int) -> np.ndarray:
        """Return the Cartesian position of any atom in the current frame."""
        ...

    def retrieve_values(self, slots: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Return values, weights and positions for several slots.

        Subclasses backed by arrays should override this with a vectorised
        lookup.

        Returns
        -------
        values : np.ndarray, shape (N,)
        weights : np.ndarray, shape (N,)
        positions : np.ndarray, shape (N, 3)
        """
        n = len(slots)
        values = np.empty(n)
        weights = np.empty(n)
        positions = np.empty((n, 3))
        for i, slot in enumerate(slots):
            values[i], weights[i], positions[i] = self.retrieve_value(int(slot))
        return values, weights, positions

    def active_tasks(self) -> np.ndarray:
        """Slots to process in the current frame: every stored value."""
        return np.arange(self.number_of_stored_values())

    def clear(self) -> None:
        """Signal that previously stored data is no longer valid."""
        self._reset_pending = True

    def was_reset(self) -> bool:
        """
        Return True once after :meth:`clear` has been called.

        Reading the signal consumes it.
        """
        pending = self._reset_pending
        self._reset_pending = False
        return pending

    def iter_frames(
        self,
        start: int = 0,
        stop: int | None = None,
        stride: int = 1
    ) -> Iterator[int]:
        """
        Load frames one after the other, yielding each frame index.

        Parameters
        ----------
        start, stop : int, optional
            Frame range with slice semantics (default: every frame).
        stride : int, optional
            Frame step (default: 1).

        Yields
        ------
        int
            Index of the frame that is now current.
        """
        start, stop, stride = self._normalize_bounds(start, stop, stride)
        return self._iter_frames_impl(start, stop, stride)

    @abstractmethod
    def _iter_frames_impl(
        self,
        start: int,
        stop: int,
        stride: int
    ) -> Iterator[int]:
        """
        Internal implementation of frame iteration.

        Subclasses implement this with normalized (non-negative) bounds.
        """
        ...

    @abstractmethod
    def get_frame(self, index: int) -> int:
        """Make frame `index` current and return it."""
        ...
