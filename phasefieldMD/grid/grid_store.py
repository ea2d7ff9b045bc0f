"""GridStore class holding the accumulated field, deposited weights and normalisation."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from phasefieldMD.errors import ConfigurationError, VolatileBoxError
from phasefieldMD.grid.constants import (
    BOX_TOLERANCE,
    NUMERICAL_TOLERANCE,
    per_axis,
    validate_mode,
)
from phasefieldMD.grid.deposit_helpers import get_backend_function


class GridAxis:
    """
    One dimension of a grid.

    Grid points sit at ``lower + k * spacing`` for ``k = 0 .. nbins - 1``;
    the upper bound is exclusive. On a periodic axis point ``nbins`` is the
    image of point 0.
    """

    def __init__(self, name: str, lower: float, upper: float, nbins: int, periodic: bool):
        self.name = name
        self.lower = float(lower)
        self.upper = float(upper)
        self.nbins = int(nbins)
        self.periodic = bool(periodic)

    @property
    def extent(self) -> float:
        return self.upper - self.lower

    @property
    def spacing(self) -> float:
        return self.extent / self.nbins

    def points(self) -> np.ndarray:
        """Coordinates of the grid points along this axis."""
        return self.lower + np.arange(self.nbins) * self.spacing

    def __repr__(self) -> str:
        return (
            f"GridAxis({self.name!r}, lower={self.lower:g}, upper={self.upper:g}, "
            f"nbins={self.nbins}, periodic={self.periodic})"
        )


class GridStore:
    """
    Dense N-dimensional accumulator for kernel-smoothed particle data.

    Parameters
    ----------
    axis_names : sequence of str
        Names of the 1-3 grid axes, in order (e.g. ``('x', 'z')``).
    mode : {'average', 'density'}
        ``'average'`` reports ``sum(K w phi) / sum(K w)`` per cell;
        ``'density'`` reports ``sum(K w) / norm`` where `norm` counts frames.
    unnormalized : bool, optional
        If True, `read` returns the raw accumulated sums (default: False).
    backend : {'numpy', 'numba'}, optional
        Reduction backend. Defaults to the PHASEFIELDMD_BACKEND setting.

    Attributes
    ----------
    axes : list of GridAxis
        Axis metadata; empty until `bind` is called.
    values : np.ndarray or None
        Accumulated sums (shape: one entry per axis bin count).
    weights : np.ndarray or None
        Accumulated kernel weight deposited in each cell.
    bound : bool
        Whether bounds and bin counts are fixed for the current cycle.
        `reset` clears it; the zeroed arrays and axes stay readable until
        the next `bind`.
    """

    def __init__(
        self,
        axis_names: Sequence[str],
        mode: str = 'average',
        unnormalized: bool = False,
        backend: str | None = None,
    ):
        self.axis_names = tuple(axis_names)
        if not 1 <= len(self.axis_names) <= 3:
            raise ConfigurationError(
                f"A grid needs between 1 and 3 axes, got {len(self.axis_names)}."
            )
        self.ndim = len(self.axis_names)
        self.mode = validate_mode(mode)
        self.unnormalized = bool(unnormalized)

        self.axes: list[GridAxis] = []
        self.values: np.ndarray | None = None
        self.weights: np.ndarray | None = None
        self._norm = 0.0
        self.bound = False

        self._scatter_add = get_backend_function(backend)

    @property
    def norm(self) -> float:
        """Normalisation counter (number of frames averaged in density mode)."""
        return self._norm

    @property
    def normalized(self) -> bool:
        """True if `read` reports normalised values rather than raw sums."""
        return not self.unnormalized

    @property
    def shape(self) -> tuple[int, ...]:
        self._require_allocated()
        return tuple(axis.nbins for axis in self.axes)

    @property
    def size(self) -> int:
        return int(np.prod(self.shape))

    def bind(
        self,
        lower: Sequence[float],
        upper: Sequence[float],
        nbins: int | Sequence[int] | None = None,
        spacing: float | Sequence[float] | None = None,
        periodic: bool | Sequence[bool] | None = None,
    ) -> None:
        """
        Fix axis bounds and bin counts and allocate zeroed accumulators.

        Parameters
        ----------
        lower, upper : sequence of float
            Per-axis bounds; the grid covers ``[lower, upper)``.
        nbins : int or sequence of int, optional
            Bin counts per axis. Zero or negative entries count as unset.
        spacing : float or sequence of float, optional
            Approximate grid spacing per axis. Used when `nbins` is unset;
            when both are set the finer of the two resolutions wins.
        periodic : bool or sequence of bool, optional
            Periodicity per axis (default: all periodic).

        Raises
        ------
        ConfigurationError
            If neither `nbins` nor `spacing` gives a bin count for an axis,
            if an axis range is degenerate, or on length mismatches.
        RuntimeError
            If the grid is already bound; call `reset` first.
        """
        if self.bound:
            raise RuntimeError(
                "Grid bounds are fixed for this run; reset() the grid before rebinding."
            )

        lower_arr = per_axis(lower, self.ndim, "lower")
        upper_arr = per_axis(upper, self.ndim, "upper")
        nbins_arr = per_axis(nbins, self.ndim, "nbins")
        spacing_arr = per_axis(spacing, self.ndim, "spacing")
        if periodic is None:
            periodic_arr = np.ones(self.ndim, dtype=bool)
        else:
            periodic_arr = np.broadcast_to(np.asarray(periodic, dtype=bool), (self.ndim,))

        axes = []
        for i, name in enumerate(self.axis_names):
            extent = upper_arr[i] - lower_arr[i]
            if abs(extent) < NUMERICAL_TOLERANCE:
                raise ConfigurationError(
                    f"range set for {name} axis makes no sense: "
                    f"lower={lower_arr[i]:g}, upper={upper_arr[i]:g}"
                )
            if extent < 0:
                raise ConfigurationError(
                    f"lower bound of {name} axis ({lower_arr[i]:g}) exceeds "
                    f"its upper bound ({upper_arr[i]:g})"
                )

            n = 0
            if nbins_arr is not None and nbins_arr[i] > 0:
                n = int(nbins_arr[i])
            if spacing_arr is not None and spacing_arr[i] > 0:
                if n == 0:
                    n = int(np.ceil(extent / spacing_arr[i] - NUMERICAL_TOLERANCE))
                else:
                    n = max(n, int(np.floor(extent / spacing_arr[i])))
            if n <= 0:
                raise ConfigurationError(
                    f"NBINS or SPACING must be set for the {name} axis."
                )
            axes.append(GridAxis(name, lower_arr[i], upper_arr[i], n, periodic_arr[i]))

        self.axes = axes
        shape = tuple(axis.nbins for axis in axes)
        self.values = np.zeros(shape, dtype=np.float64)
        self.weights = np.zeros(shape, dtype=np.float64)
        self._norm = 0.0
        self.bound = True

    def reset(self) -> None:
        """
        Zero all cells and the normalisation counter and unbind the grid.

        Reads keep working on the zeroed grid; accumulating requires the
        next accumulation cycle to rebind it against the current box.
        """
        if self.values is not None:
            self.values.fill(0.0)
            self.weights.fill(0.0)
        self._norm = 0.0
        self.bound = False

    def accumulate(
        self,
        cells: int | np.ndarray,
        contributions: float | np.ndarray,
        weights: float | np.ndarray | None = None,
    ) -> None:
        """
        Add contributions to the running sums of the given cells.

        Parameters
        ----------
        cells : int or np.ndarray of int
            Flat (row-major) cell indices. Negative entries are skipped.
        contributions : float or np.ndarray
            Added to the value channel, one per cell entry.
        weights : float or np.ndarray, optional
            Added to the deposited-weight channel (default: nothing).

        Notes
        -----
        The reduction is commutative; the order of `cells` does not change the
        result beyond floating-point rounding.
        """
        self._require_bound()
        cells = np.atleast_1d(np.asarray(cells, dtype=np.int64))
        contributions = np.broadcast_to(
            np.asarray(contributions, dtype=np.float64), cells.shape
        )
        if weights is None:
            deposited = np.zeros(cells.shape)
        else:
            deposited = np.broadcast_to(np.asarray(weights, dtype=np.float64), cells.shape)
        if np.any(cells >= self.size):
            raise IndexError(f"Cell index out of range for a grid of {self.size} cells.")
        self._scatter_add(self.values, self.weights, cells, contributions, deposited)

    def add_norm(self, delta: float = 1.0) -> None:
        """Increase the normalisation counter by `delta`."""
        self._norm += float(delta)

    def cell_index(self, multi_index: Sequence[int]) -> int:
        """Return the flat index of a per-axis bin index tuple."""
        return int(np.ravel_multi_index(tuple(multi_index), self.shape))

    def read(self, cell: int | Sequence[int]) -> float:
        """
        Return the reported field value of one cell.

        Parameters
        ----------
        cell : int or sequence of int
            Flat index, or one bin index per axis.

        Returns
        -------
        float
            The raw sum when the grid is unnormalised; otherwise the sum
            divided by the frame count (density mode) or by the kernel weight
            deposited in the cell (average mode). A zero divisor returns the
            raw sum.
        """
        self._require_allocated()
        if np.ndim(cell) == 0:
            flat = int(cell)
            if not 0 <= flat < self.size:
                raise IndexError(
                    f"Cell index {flat} out of range for a grid of {self.size} cells."
                )
        else:
            flat = self.cell_index(cell)
        raw = float(self.values.flat[flat])
        if self.unnormalized:
            return raw
        if self.mode == 'density':
            divisor = self._norm
        else:
            divisor = float(self.weights.flat[flat])
        if abs(divisor) < NUMERICAL_TOLERANCE:
            return raw
        return raw / divisor

    def read_all(self) -> np.ndarray:
        """Return a copy of the whole reported field, shaped like the grid."""
        self._require_allocated()
        raw = self.values.copy()
        if self.unnormalized:
            return raw
        if self.mode == 'density':
            if abs(self._norm) < NUMERICAL_TOLERANCE:
                return raw
            return raw / self._norm
        divisor = self.weights
        safe = np.abs(divisor) >= NUMERICAL_TOLERANCE
        with np.errstate(divide="ignore", invalid="ignore"):
            return np.where(safe, raw / np.where(safe, divisor, 1.0), raw)

    def grid_points(self) -> list[np.ndarray]:
        """Per-axis grid point coordinates."""
        self._require_allocated()
        return [axis.points() for axis in self.axes]

    def check_box(self, box: Sequence[float]) -> None:
        """
        Verify that periodic axes still span the box they were bound to.

        Parameters
        ----------
        box : sequence of float
            Current box length along each grid axis, in grid-axis order.

        Raises
        ------
        VolatileBoxError
            If a periodic axis extent differs from the box length by more
            than ``BOX_TOLERANCE``.
        """
        self._require_bound()
        for axis, length in zip(self.axes, box):
            if not axis.periodic:
                continue
            if abs(axis.extent - float(length)) > BOX_TOLERANCE:
                raise VolatileBoxError(axis.name, axis.extent, float(length))

    def _require_bound(self) -> None:
        if not self.bound:
            raise RuntimeError("Grid is not bound; bind it against the current box before accumulating.")

    def _require_allocated(self) -> None:
        if self.values is None:
            raise RuntimeError("Grid has not been bound yet; run an accumulation cycle first.")
