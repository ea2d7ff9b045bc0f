"""Shared fixtures for unit tests."""

import numpy as np
import pytest

from phasefieldMD.stores._base import ValueStore


class StoreMock(ValueStore):
    """Minimal in-memory value store with required attributes for testing."""

    def __init__(self, positions, values, box=(10.0, 10.0, 10.0), weights=None, is_density=False):
        super().__init__(is_density=is_density)
        self.positions = np.asarray(positions, dtype=np.float64)
        self.values = np.asarray(values, dtype=np.float64)
        self.weights = (
            np.ones_like(self.values) if weights is None
            else np.asarray(weights, dtype=np.float64)
        )
        self.frames = self.positions.shape[0]
        self.cells = np.array([np.diag(box)] * self.frames, dtype=np.float64)
        self.current = 0

    @property
    def cell_matrix(self):
        return self.cells[self.current]

    def number_of_stored_values(self):
        return self.values.shape[1]

    def retrieve_value(self, slot):
        return (
            self.values[self.current, slot],
            self.weights[self.current, slot],
            self.positions[self.current, slot],
        )

    def get_position(self, atom):
        return self.positions[self.current, atom]

    def _iter_frames_impl(self, start, stop, stride):
        for i in range(start, stop, stride):
            yield self.get_frame(i)

    def get_frame(self, index):
        self.current = index
        return index


@pytest.fixture
def store():
    """Two frames; atom 0 is the (zero-weight) origin, atoms 1-2 carry values 1.0 and 3.0."""
    positions = np.array([
        [[5.0, 5.0, 5.0], [5.0, 5.0, 5.0], [7.0, 5.0, 5.0]],
        [[5.0, 5.0, 5.0], [5.0, 5.0, 5.0], [7.0, 5.0, 5.0]],
    ])
    values = np.array([
        [0.0, 1.0, 3.0],
        [0.0, 1.0, 3.0],
    ])
    weights = np.array([
        [0.0, 1.0, 1.0],
        [0.0, 1.0, 1.0],
    ])
    return StoreMock(positions, values, weights=weights)


@pytest.fixture
def rng():
    return np.random.default_rng(2024)


@pytest.fixture
def make_store():
    """Factory for StoreMock instances with custom positions and values."""
    return StoreMock
