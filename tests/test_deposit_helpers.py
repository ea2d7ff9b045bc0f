"""
Tests for the grid reduction backends.

Both backends must accumulate every contribution, including repeated cells,
skip padding entries and agree with each other.
"""

import numpy as np
import pytest


# ---------------------------------------------------------------------------
# Backend Selection Tests
# ---------------------------------------------------------------------------

class TestBackendSelection:

    def test_explicit_numpy_backend(self):
        from phasefieldMD.grid.deposit_helpers import get_backend_function
        fn = get_backend_function('numpy')
        assert 'numba' not in fn.__module__

    def test_explicit_numba_backend(self):
        from phasefieldMD.grid.deposit_helpers import get_backend_function
        fn = get_backend_function('numba')
        assert 'numba' in fn.__module__

    def test_invalid_backend_raises(self):
        from phasefieldMD.grid.deposit_helpers import get_backend_function
        with pytest.raises(ValueError, match="Unknown grid backend"):
            get_backend_function('cupy')


# ---------------------------------------------------------------------------
# Reduction
# ---------------------------------------------------------------------------

@pytest.fixture(params=['numpy', 'numba'])
def scatter_add(request):
    from phasefieldMD.grid.deposit_helpers import get_backend_function
    return get_backend_function(request.param)


class TestScatterAdd:

    def test_repeated_cells_all_accumulate(self, scatter_add):
        values = np.zeros((2, 3))
        weights = np.zeros((2, 3))
        cells = np.array([4, 4, 4, 1])
        scatter_add(values, weights, cells, np.array([1.0, 2.0, 3.0, 0.5]), np.ones(4))
        assert values[1, 1] == pytest.approx(6.0)
        assert weights[1, 1] == pytest.approx(3.0)
        assert values[0, 1] == pytest.approx(0.5)
        assert values.sum() == pytest.approx(6.5)

    def test_padding_is_skipped(self, scatter_add):
        values = np.zeros(5)
        weights = np.zeros(5)
        cells = np.array([[0, -1], [-1, 2]])
        scatter_add(values, weights, cells, np.full((2, 2), 7.0), np.ones((2, 2)))
        np.testing.assert_allclose(values, [7.0, 0.0, 7.0, 0.0, 0.0])
        np.testing.assert_allclose(weights, [1.0, 0.0, 1.0, 0.0, 0.0])

    def test_accumulates_onto_existing_sums(self, scatter_add):
        values = np.ones(3)
        weights = np.ones(3)
        scatter_add(values, weights, np.array([2]), np.array([1.5]), np.array([0.5]))
        np.testing.assert_allclose(values, [1.0, 1.0, 2.5])
        np.testing.assert_allclose(weights, [1.0, 1.0, 1.5])


class TestBackendConsistency:

    def test_numpy_and_numba_agree(self, rng):
        from phasefieldMD.grid.deposit_helpers import scatter_add
        from phasefieldMD.grid.deposit_helpers_numba import scatter_add_numba

        shape = (6, 5, 4)
        cells = rng.integers(-1, 120, size=500)
        contributions = rng.normal(size=500)
        deposited = rng.random(500)

        v_np, w_np = np.zeros(shape), np.zeros(shape)
        v_nb, w_nb = np.zeros(shape), np.zeros(shape)
        scatter_add(v_np, w_np, cells, contributions, deposited)
        scatter_add_numba(v_nb, w_nb, cells, contributions, deposited)

        np.testing.assert_allclose(v_nb, v_np, rtol=1e-12, atol=1e-12)
        np.testing.assert_allclose(w_nb, w_np, rtol=1e-12, atol=1e-12)

    @pytest.mark.parametrize("n_chunks", [2, 7, 64])
    def test_chunked_reduction_matches_sequential(self, rng, n_chunks):
        from phasefieldMD.grid.deposit_helpers_numba import scatter_add_numba

        cells = rng.integers(0, 50, size=300)
        contributions = rng.normal(size=300)
        deposited = rng.random(300)

        v_seq, w_seq = np.zeros(50), np.zeros(50)
        v_par, w_par = np.zeros(50), np.zeros(50)
        scatter_add_numba(v_seq, w_seq, cells, contributions, deposited, n_chunks=1)
        scatter_add_numba(v_par, w_par, cells, contributions, deposited, n_chunks=n_chunks)

        np.testing.assert_allclose(v_par, v_seq, rtol=1e-12, atol=1e-12)
        np.testing.assert_allclose(w_par, w_seq, rtol=1e-12, atol=1e-12)

    def test_chunked_reduction_is_reproducible(self, rng):
        from phasefieldMD.grid.deposit_helpers_numba import scatter_add_numba

        cells = rng.integers(0, 20, size=1000)
        contributions = rng.normal(size=1000)
        deposited = rng.random(1000)

        results = []
        for _ in range(3):
            values, weights = np.zeros(20), np.zeros(20)
            scatter_add_numba(values, weights, cells, contributions, deposited, n_chunks=4)
            results.append(values)
        np.testing.assert_array_equal(results[0], results[1])
        np.testing.assert_array_equal(results[0], results[2])

    def test_empty_input(self):
        from phasefieldMD.grid.deposit_helpers_numba import scatter_add_numba
        values, weights = np.zeros(4), np.zeros(4)
        empty = np.zeros(0)
        scatter_add_numba(values, weights, np.zeros(0, dtype=np.int64), empty, empty)
        assert values.sum() == 0.0
