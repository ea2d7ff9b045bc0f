"""AccumulationController: one grid update per simulation step, and compute_phase_field."""

from __future__ import annotations

import logging
import warnings
from collections.abc import Mapping, Sequence

import numpy as np
from tqdm import tqdm

from phasefieldMD.errors import ConfigurationError
from phasefieldMD.grid.constants import (
    per_axis,
    validate_direction,
    validate_memory_policy,
    validate_mode,
)
from phasefieldMD.grid.geometry import GeometryMapper
from phasefieldMD.grid.grid_store import GridStore
from phasefieldMD.grid.kernels import KernelRegistry, KernelSpreader, default_registry
from phasefieldMD.stores._base import ValueStore

logger = logging.getLogger(__name__)


class AccumulationController:
    """
    Accumulate a per-particle scalar onto a grid, one frame at a time.

    The field reported in average mode is

        phi(r) = sum_i K(r - r_i) w_i phi_i / sum_i K(r - r_i) w_i

    and in density mode ``rho(r) = sum_i K(r - r_i) w_i / N_frames``.

    Parameters
    ----------
    store : ValueStore
        Upstream store supplying values, weights and positions per frame.
    origin : int
        Index of the atom whose position is the grid origin.
    direction : {'x', 'y', 'z', 'xy', 'xz', 'yz', 'xyz'}, optional
        Grid axes (default: 'xyz').
    nbins : int or sequence of int, optional
        Bin count per axis.
    spacing : float or sequence of float, optional
        Approximate grid spacing per axis (alternative to, or together
        with, `nbins`). At least one of the two is required.
    bandwidth : float or sequence of float
        Kernel bandwidth per axis, in grid units (fractional units when
        `fractional` is True).
    kernel : str, optional
        Kernel family name looked up in `registry` (default: 'gaussian').
    fractional : bool, optional
        Use fractional coordinates (default: False). Incompatible with
        `confine`.
    confine : mapping of str to (float, float), optional
        Literal ``(lower, upper)`` bounds for some axes, e.g. ``{'z': (0, 5)}``.
    unnormalized : bool, optional
        Report raw accumulated sums (default: False).
    memory : {'cumulative', 'block'}, optional
        'cumulative' averages over the whole run; 'block' starts a fresh
        average after every `report` (default: 'cumulative').
    mode : {'average', 'density'}, optional
        Defaults to 'density' if ``store.is_density`` else 'average'.
    single_run : bool, optional
        If False the step-0 frame is skipped (default: True).
    registry : KernelRegistry, optional
        Kernel families available by name (default: :func:`default_registry`).
    backend : {'numpy', 'numba'}, optional
        Grid reduction backend (default: PHASEFIELDMD_BACKEND setting).

    Raises
    ------
    ConfigurationError
        On any contradictory or incomplete set-up.
    """

    def __init__(
        self,
        store: ValueStore,
        origin: int,
        *,
        direction: str = 'xyz',
        nbins: int | Sequence[int] | None = None,
        spacing: float | Sequence[float] | None = None,
        bandwidth: float | Sequence[float],
        kernel: str = 'gaussian',
        fractional: bool = False,
        confine: Mapping[str, tuple[float, float]] | None = None,
        unnormalized: bool = False,
        memory: str = 'cumulative',
        mode: str | None = None,
        single_run: bool = True,
        registry: KernelRegistry | None = None,
        backend: str | None = None,
    ):
        directions = validate_direction(direction)
        ndim = len(directions)

        self.store = store
        self.origin = int(origin)
        self.nbins = per_axis(nbins, ndim, "nbins")
        self.spacing = per_axis(spacing, ndim, "spacing")
        if (self.nbins is None or not np.all(self.nbins > 0)) and (
            self.spacing is None or not np.all(self.spacing > 0)
        ):
            if self.nbins is None and self.spacing is None:
                raise ConfigurationError("NBINS or SPACING must be set")
            have_nbins = self.nbins > 0 if self.nbins is not None else np.zeros(ndim, dtype=bool)
            have_spacing = self.spacing > 0 if self.spacing is not None else np.zeros(ndim, dtype=bool)
            if not np.all(have_nbins | have_spacing):
                raise ConfigurationError("NBINS or SPACING must be set for every grid axis")

        self.mapper = GeometryMapper(directions, fractional=fractional, confinement=confine)
        if registry is None:
            registry = default_registry()
        self.spreader = KernelSpreader(
            registry.get(kernel), per_axis(bandwidth, ndim, "bandwidth")
        )

        if mode is None:
            mode = 'density' if store.is_density else 'average'
        self.mode = validate_mode(mode)
        self.memory = validate_memory_policy(memory)
        self.single_run = bool(single_run)

        self.grid = GridStore(
            self.mapper.axis_names, mode=self.mode, unnormalized=unnormalized, backend=backend
        )
        self.frames_processed = 0

        logger.info(
            "%s grid along %s axes (origin atom %d, kernel %s, %s memory%s)",
            self.mode, direction, self.origin, self.spreader.family.name, self.memory,
            ", fractional coordinates" if fractional else "",
        )
        for name, confined, lo, hi in zip(
            self.mapper.axis_names, self.mapper.confined, self.mapper.cmin, self.mapper.cmax
        ):
            if confined:
                logger.info("confining calculation in %s direction to [%g, %g)", name, lo, hi)

    @property
    def bound(self) -> bool:
        return self.grid.bound

    def _bind(self, cell_matrix: np.ndarray) -> None:
        """(Re)bind the grid against the current cell."""
        lower, upper = self.mapper.grid_bounds(cell_matrix)
        if self.grid.bound:
            self.grid.reset()
        self.grid.bind(
            lower, upper, nbins=self.nbins, spacing=self.spacing, periodic=self.mapper.periodic
        )
        self.spreader.validate(self.grid)
        for axis, r in zip(self.grid.axes, self.spreader.radius):
            if 2.0 * r < axis.spacing:
                warnings.warn(
                    f"Kernel support along the {axis.name} axis ({2.0 * r:g}) is narrower "
                    f"than the grid spacing ({axis.spacing:g}); particles between grid "
                    "points will deposit no weight.",
                    UserWarning,
                    stacklevel=3,
                )
        logger.info("grid bound: %s", self.grid.axes)

    def update(self, step: int) -> None:
        """
        Process the store's current frame.

        Parameters
        ----------
        step : int
            Simulation step (or frame index) of the current frame.

        Raises
        ------
        GeometryError
            If the cell is not orthorhombic.
        VolatileBoxError
            If the box changed along a bound periodic axis.
        """
        if not self.single_run and step == 0:
            return

        cell_matrix = np.asarray(self.store.cell_matrix, dtype=np.float64)
        store_cleared = self.store.was_reset()
        if not self.grid.bound or store_cleared:
            self._bind(cell_matrix)
        elif not self.mapper.fractional:
            self.mapper.check_cell(cell_matrix)
            self.grid.check_box(self.mapper.box_extents(cell_matrix))

        tasks = self.store.active_tasks()
        origin = np.asarray(self.store.get_position(self.origin), dtype=np.float64)

        if self.mode == 'density':
            self.grid.add_norm(1.0)

        if len(tasks) > 0:
            values, weights, positions = self.store.retrieve_values(tasks)
            points = self.mapper.map_points(origin, positions, cell_matrix)
            cells, kernel_weights = self.spreader.spread_many(points, self.grid)
            deposited = kernel_weights * np.asarray(weights, dtype=np.float64)[:, None]
            if self.mode == 'density':
                contributions = deposited
            else:
                contributions = deposited * np.asarray(values, dtype=np.float64)[:, None]
            self.grid.accumulate(cells, contributions, deposited)

        self.frames_processed += 1

    def accumulate(self, start: int = 0, stop: int | None = None, period: int = 1) -> None:
        """
        Run `update` over a range of the store's frames.

        Parameters
        ----------
        start : int, optional
            Start frame index (default: 0). Negative indices count from end.
        stop : int or None, optional
            Stop frame index (default: None, meaning all frames).
        period : int, optional
            Frame stride (default: 1).
        """
        if period <= 0:
            raise ConfigurationError("period must be a positive integer")
        first, last, _ = self.store._normalize_bounds(start, stop, period)
        to_run = range(first, last, period)
        if len(to_run) == 0:
            raise ValueError("Final frame occurs before first frame in trajectory.")
        for step in tqdm(self.store.iter_frames(start, stop, period), total=len(to_run)):
            self.update(step)

    def report(self) -> np.ndarray:
        """
        Return the current field and close the block under the 'block' policy.

        Returns
        -------
        np.ndarray
            Field values shaped like the grid (see :meth:`GridStore.read_all`).
        """
        field = self.grid.read_all()
        if self.memory == 'block':
            self.grid.reset()
        return field


def compute_phase_field(
    store: ValueStore,
    origin: int,
    *,
    bandwidth: float | Sequence[float],
    direction: str = 'xyz',
    nbins: int | Sequence[int] | None = None,
    spacing: float | Sequence[float] | None = None,
    kernel: str = 'gaussian',
    fractional: bool = False,
    confine: Mapping[str, tuple[float, float]] | None = None,
    unnormalized: bool = False,
    mode: str | None = None,
    start: int = 0,
    stop: int | None = None,
    period: int = 1,
    registry: KernelRegistry | None = None,
) -> AccumulationController:
    """
    Accumulate a phase field (or density) over a range of frames in one call.

    This is a convenience wrapper that creates an AccumulationController with
    the cumulative memory policy and runs it over the selected frames.

    Returns
    -------
    AccumulationController
        Controller whose ``grid`` holds the accumulated field; read it with
        ``controller.grid.read_all()`` or ``controller.report()``.

    Examples
    --------
    >>> from phasefieldMD import NumpyValueStore, compute_phase_field
    >>> store = NumpyValueStore(positions, order_parameter, cell=[20.0, 20.0, 40.0])
    >>> controller = compute_phase_field(store, origin=0, nbins=(14, 14, 28), bandwidth=1.0)
    >>> field = controller.report()
    """
    controller = AccumulationController(
        store,
        origin,
        direction=direction,
        nbins=nbins,
        spacing=spacing,
        bandwidth=bandwidth,
        kernel=kernel,
        fractional=fractional,
        confine=confine,
        unnormalized=unnormalized,
        memory='cumulative',
        mode=mode,
        registry=registry,
    )
    controller.accumulate(start=start, stop=stop, period=period)
    return controller
