"""Tests for the value stores in phasefieldMD.stores."""

from unittest.mock import patch

import MDAnalysis as MD
from MDAnalysis.coordinates.memory import MemoryReader
import numpy as np
import pytest

from phasefieldMD.errors import DataUnavailableError
from phasefieldMD.grid.controller import compute_phase_field
from phasefieldMD.stores import MDAValueStore, NumpyValueStore, ValueStore


# ---------------------------------------------------------------------------
# NumpyValueStore
# ---------------------------------------------------------------------------

@pytest.fixture
def numpy_store():
    positions = np.arange(3 * 4 * 3, dtype=float).reshape(3, 4, 3)
    values = np.array([
        [1.0, 2.0, 3.0],
        [4.0, 5.0, 6.0],
        [7.0, 8.0, 9.0],
    ])
    mask = np.array([
        [True, True, True],
        [True, False, True],
        [False, False, False],
    ])
    return NumpyValueStore(positions, values, [10.0, 10.0, 10.0], selection=[1, 2, 3], mask=mask)


class TestNumpyValueStore:

    def test_is_a_value_store(self, numpy_store):
        assert isinstance(numpy_store, ValueStore)
        assert numpy_store.frames == 3
        assert numpy_store.is_density is False

    def test_cell_from_box_lengths(self, numpy_store):
        np.testing.assert_array_equal(numpy_store.cell_matrix, np.diag([10.0, 10.0, 10.0]))

    def test_per_frame_cells(self):
        positions = np.zeros((2, 1, 3))
        cells = np.array([[10.0, 10.0, 10.0], [12.0, 10.0, 10.0]])
        store = NumpyValueStore(positions, [1.0], cells)
        store.get_frame(1)
        assert store.cell_matrix[0, 0] == 12.0

    def test_retrieve_value_uses_selection(self, numpy_store):
        value, weight, position = numpy_store.retrieve_value(0)
        assert value == 1.0
        assert weight == 1.0
        np.testing.assert_array_equal(position, [3.0, 4.0, 5.0])

    def test_mask_filters_slots(self, numpy_store):
        numpy_store.get_frame(1)
        assert numpy_store.number_of_stored_values() == 2
        np.testing.assert_array_equal(numpy_store.active_tasks(), [0, 1])
        values, weights, positions = numpy_store.retrieve_values(numpy_store.active_tasks())
        np.testing.assert_array_equal(values, [4.0, 6.0])
        np.testing.assert_array_equal(positions[1], numpy_store.positions[1, 3])

    def test_fully_masked_frame(self, numpy_store):
        numpy_store.get_frame(2)
        assert numpy_store.number_of_stored_values() == 0

    def test_vectorised_lookup_matches_base_loop(self, numpy_store):
        slots = np.array([2, 0])
        fast = numpy_store.retrieve_values(slots)
        slow = ValueStore.retrieve_values(numpy_store, slots)
        for a, b in zip(fast, slow):
            np.testing.assert_array_equal(a, b)

    def test_weights(self):
        positions = np.zeros((1, 2, 3))
        store = NumpyValueStore(positions, [1.0, 2.0], [5.0, 5.0, 5.0], weights=[0.5, 2.0])
        _, weights, _ = store.retrieve_values([0, 1])
        np.testing.assert_array_equal(weights, [0.5, 2.0])

    def test_iter_frames_with_negative_start(self, numpy_store):
        assert list(numpy_store.iter_frames(start=-2)) == [1, 2]
        assert numpy_store.current == 2

    def test_get_frame_out_of_range(self, numpy_store):
        with pytest.raises(IndexError):
            numpy_store.get_frame(3)

    def test_negative_frame_index(self, numpy_store):
        assert numpy_store.get_frame(-1) == 2

    def test_clear_signal_is_consumed(self, numpy_store):
        assert numpy_store.was_reset() is False
        numpy_store.clear()
        assert numpy_store.was_reset() is True
        assert numpy_store.was_reset() is False

    @pytest.mark.parametrize("kwargs,match", [
        ({'positions': np.zeros((2, 3))}, "positions"),
        ({'values': np.zeros((2, 5))}, "Values"),
        ({'cell': np.ones((4, 3))}, "Cell"),
        ({'selection': [0, 7]}, "selection"),
        ({'mask': np.ones((2, 1), dtype=bool)}, "Mask"),
    ])
    def test_inconsistent_shapes(self, kwargs, match):
        args = {
            'positions': np.zeros((2, 3, 3)),
            'values': np.zeros((2, 3)),
            'cell': [10.0, 10.0, 10.0],
        }
        args.update(kwargs)
        with pytest.raises(ValueError, match=match):
            NumpyValueStore(**args)


# ---------------------------------------------------------------------------
# MDAValueStore
# ---------------------------------------------------------------------------

@pytest.fixture
def universe():
    """Three atoms over two frames in a 10 A cubic box."""
    coordinates = np.array([
        [[5.0, 5.0, 5.0], [6.0, 5.0, 5.0], [3.0, 5.0, 5.0]],
        [[5.0, 5.0, 5.0], [7.0, 5.0, 5.0], [4.0, 5.0, 5.0]],
    ], dtype=np.float32)
    u = MD.Universe.empty(3, trajectory=False)
    u.load_new(
        coordinates, format=MemoryReader,
        dimensions=np.array([10.0, 10.0, 10.0, 90.0, 90.0, 90.0]),
    )
    return u


class TestMDAValueStore:

    def test_array_values(self, universe):
        store = MDAValueStore(universe, np.array([[1.0, 2.0], [3.0, 4.0]]), select='index 1 2')
        assert store.frames == 2
        assert store.number_of_stored_values() == 2
        np.testing.assert_allclose(store.cell_matrix, np.diag([10.0, 10.0, 10.0]), atol=1e-5)
        values, weights, positions = store.retrieve_values([0, 1])
        np.testing.assert_allclose(values, [1.0, 2.0])
        np.testing.assert_allclose(weights, [1.0, 1.0])
        np.testing.assert_allclose(positions[:, 0], [6.0, 3.0])

    def test_iter_frames_loads_each_frame(self, universe):
        store = MDAValueStore(universe, np.array([[1.0, 2.0], [3.0, 4.0]]), select='index 1 2')
        seen = []
        for frame in store.iter_frames():
            seen.append((frame, store.retrieve_value(0)[0], store.get_position(1)[0]))
        assert [s[0] for s in seen] == [0, 1]
        assert [s[1] for s in seen] == [1.0, 3.0]
        np.testing.assert_allclose([s[2] for s in seen], [6.0, 7.0])

    def test_callable_values(self, universe):
        store = MDAValueStore(universe, lambda atoms: atoms.positions[:, 0] - 5.0, select='index 1 2')
        store.get_frame(1)
        np.testing.assert_allclose(store.retrieve_values([0, 1])[0], [2.0, -1.0])

    def test_constant_values_and_weights(self, universe):
        store = MDAValueStore(universe, np.array([1.0, 2.0]), select='index 1 2',
                              weights=np.array([0.5, 0.25]))
        store.get_frame(1)
        _, weights, _ = store.retrieve_values([0, 1])
        np.testing.assert_allclose(weights, [0.5, 0.25])

    def test_empty_selection(self, universe):
        with pytest.raises(ValueError, match="matched no atoms"):
            MDAValueStore(universe, np.zeros(0), select='index 10')

    def test_mismatched_values(self, universe):
        with pytest.raises(ValueError, match="incommensurate"):
            MDAValueStore(universe, np.zeros((2, 3)), select='index 1 2')

    def test_bad_value_function(self, universe):
        with pytest.raises(ValueError, match="Value function"):
            MDAValueStore(universe, lambda atoms: np.zeros(5), select='index 1 2')

    def test_missing_box(self, universe):
        store = MDAValueStore(universe, np.array([1.0, 2.0]), select='index 1 2')
        universe.trajectory.ts.dimensions = None
        with pytest.raises(DataUnavailableError, match="box"):
            store._load(0)

    @patch("phasefieldMD.stores.mda.MD.Universe", side_effect=Exception("fail"))
    def test_from_files_wraps_load_failure(self, mock_universe):
        with pytest.raises(RuntimeError, match="Failed to load MDAnalysis Universe"):
            MDAValueStore.from_files("topol.pdb", "traj.xtc", np.zeros(1))

    def test_feeds_controller(self, universe):
        store = MDAValueStore(universe, np.array([2.0, 4.0]), select='index 1 2')
        controller = compute_phase_field(
            store, 0, direction='x', nbins=10, bandwidth=0.5, kernel='uniform'
        )
        assert controller.frames_processed == 2
        field = controller.report()
        # Frame 0 places the values at +1 and -2, frame 1 at +2 and -1
        np.testing.assert_allclose(field[[3, 4, 6, 7]], [4.0, 4.0, 2.0, 2.0], atol=1e-6)
