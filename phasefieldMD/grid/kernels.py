"""
Kernel families and the spreader that turns a point into weighted grid cells.

Kernel families are looked up by name in an explicit :class:`KernelRegistry`
that is built once (see :func:`default_registry`) and handed to the
accumulation controller. There is no module-level registry to mutate.
"""

from __future__ import annotations

from typing import Callable

import numpy as np

from phasefieldMD.errors import ConfigurationError
from phasefieldMD.grid.grid_store import GridStore

#: Gaussians are truncated where ``0.5 * u**2`` exceeds this value.
GAUSSIAN_DP2_CUTOFF: float = 6.25


class KernelFamily:
    """
    A radially symmetric kernel shape.

    Parameters
    ----------
    name : str
        Name used to select the family.
    shape : callable
        Vectorised function of the squared, bandwidth-scaled distance ``u**2``
        returning the weight. It must return 0 for ``u > support``.
    support : float
        Support radius in units of the bandwidth.
    """

    def __init__(self, name: str, shape: Callable[[np.ndarray], np.ndarray], support: float):
        if support <= 0:
            raise ConfigurationError(f"Kernel {name!r} must have a positive support radius.")
        self.name = name.lower().strip()
        self.shape = shape
        self.support = float(support)

    def __call__(self, u2: np.ndarray) -> np.ndarray:
        return self.shape(u2)

    def __repr__(self) -> str:
        return f"KernelFamily({self.name!r}, support={self.support:g})"


def _gaussian(u2: np.ndarray) -> np.ndarray:
    return np.where(0.5 * u2 <= GAUSSIAN_DP2_CUTOFF, np.exp(-0.5 * u2), 0.0)


def _triangular(u2: np.ndarray) -> np.ndarray:
    return np.maximum(0.0, 1.0 - np.sqrt(u2))


def _uniform(u2: np.ndarray) -> np.ndarray:
    return np.where(u2 < 1.0, 1.0, 0.0)


class KernelRegistry:
    """Name -> :class:`KernelFamily` lookup."""

    def __init__(self) -> None:
        self._families: dict[str, KernelFamily] = {}

    def register(self, family: KernelFamily, overwrite: bool = False) -> None:
        """
        Add a kernel family.

        Raises
        ------
        ValueError
            If a family with the same name exists and `overwrite` is False.
        """
        if family.name in self._families and not overwrite:
            raise ValueError(f"Kernel {family.name!r} is already registered.")
        self._families[family.name] = family

    def get(self, name: str) -> KernelFamily:
        """
        Return the family registered under `name` (case-insensitive).

        Raises
        ------
        ConfigurationError
            If no such family is registered.
        """
        key = name.lower().strip()
        if key not in self._families:
            raise ConfigurationError(
                f"Unknown kernel {name!r}. Available kernels: {self.names()}"
            )
        return self._families[key]

    def names(self) -> list[str]:
        return sorted(self._families)

    def __contains__(self, name: str) -> bool:
        return name.lower().strip() in self._families


def default_registry() -> KernelRegistry:
    """Build a new registry holding the built-in kernel families."""
    registry = KernelRegistry()
    registry.register(KernelFamily("gaussian", _gaussian, np.sqrt(2.0 * GAUSSIAN_DP2_CUTOFF)))
    registry.register(KernelFamily("triangular", _triangular, 1.0))
    registry.register(KernelFamily("uniform", _uniform, 1.0))
    return registry


class KernelSpreader:
    """
    Spread points onto the cells of a bound grid through a kernel.

    Parameters
    ----------
    family : KernelFamily
        Kernel shape.
    bandwidth : np.ndarray, shape (ndim,)
        Kernel width along each grid axis, in grid coordinates.

    Notes
    -----
    Weights are un-normalised (peak value 1). Normalising the reported field
    by the deposited weight is the grid's concern at read time.
    """

    def __init__(self, family: KernelFamily, bandwidth: np.ndarray):
        bandwidth = np.atleast_1d(np.asarray(bandwidth, dtype=np.float64))
        if np.any(bandwidth <= 0) or not np.all(np.isfinite(bandwidth)):
            raise ConfigurationError(f"Bandwidths must be positive and finite, got {bandwidth}.")
        self.family = family
        self.bandwidth = bandwidth

    @property
    def radius(self) -> np.ndarray:
        """Support radius along each axis, in grid coordinates."""
        return self.family.support * self.bandwidth

    def validate(self, grid: GridStore) -> None:
        """
        Check the kernel against a freshly bound grid.

        Raises
        ------
        ConfigurationError
            If the bandwidth count does not match the grid, or the kernel
            support spans a whole periodic axis (images would overlap).
        """
        if self.bandwidth.size != grid.ndim:
            raise ConfigurationError(
                f"{self.bandwidth.size} bandwidths given for a grid with {grid.ndim} axes."
            )
        for axis, r in zip(grid.axes, self.radius):
            if axis.periodic and 2.0 * r >= axis.extent:
                raise ConfigurationError(
                    f"Kernel support ({2.0 * r:g}) along the periodic {axis.name} axis "
                    f"must be smaller than the axis length ({axis.extent:g}); "
                    "reduce the bandwidth."
                )

    def spread_many(
        self, points: np.ndarray, grid: GridStore
    ) -> tuple[np.ndarray, np.ndarray]:
        """
        Evaluate the kernel stencil of many points at once.

        Parameters
        ----------
        points : np.ndarray, shape (N, ndim)
            Points in grid coordinates.
        grid : GridStore
            Bound grid providing axis bounds, spacings and periodicity.

        Returns
        -------
        cells : np.ndarray of int, shape (N, M)
            Flat cell indices; -1 where the stencil entry is outside the
            support or off a non-periodic axis.
        weights : np.ndarray, shape (N, M)
            Kernel weights (0 where `cells` is -1).
        """
        points = np.asarray(points, dtype=np.float64).reshape(-1, grid.ndim)
        n_points = points.shape[0]
        radius = self.radius

        u2 = np.zeros((n_points,) + (1,) * grid.ndim)
        flat = np.zeros((n_points,) + (1,) * grid.ndim, dtype=np.int64)
        inside = np.ones((n_points,) + (1,) * grid.ndim, dtype=bool)
        stride = 1
        for i in reversed(range(grid.ndim)):
            axis = grid.axes[i]
            dx = axis.spacing
            x = points[:, i]
            first = np.ceil((x - radius[i] - axis.lower) / dx).astype(np.int64)
            width = int(np.floor(2.0 * radius[i] / dx)) + 2
            k = first[:, None] + np.arange(width)[None, :]

            scaled = (axis.lower + k * dx - x[:, None]) / self.bandwidth[i]
            if axis.periodic:
                on_grid = np.ones(k.shape, dtype=bool)
                k = np.mod(k, axis.nbins)
            else:
                on_grid = (k >= 0) & (k < axis.nbins)
                k = np.clip(k, 0, axis.nbins - 1)

            # Broadcast this axis into its own dimension of the stencil
            view = [n_points] + [1] * grid.ndim
            view[i + 1] = width
            u2 = u2 + (scaled ** 2).reshape(view)
            flat = flat + (k * stride).reshape(view)
            inside = inside & on_grid.reshape(view)
            stride *= axis.nbins

        weights = self.family(u2) * inside
        cells = np.where(weights > 0.0, flat, -1)
        weights = np.where(cells >= 0, weights, 0.0)
        return cells.reshape(n_points, -1), weights.reshape(n_points, -1)

    def spread(self, point: np.ndarray, grid: GridStore) -> tuple[np.ndarray, np.ndarray]:
        """
        Return the cells within the kernel support of one point and their weights.

        Parameters
        ----------
        point : np.ndarray, shape (ndim,)
            Point in grid coordinates.
        grid : GridStore
            Bound grid.

        Returns
        -------
        cells : np.ndarray of int
            Flat cell indices with non-zero weight.
        weights : np.ndarray
            Kernel weight of each cell.
        """
        cells, weights = self.spread_many(np.atleast_2d(point), grid)
        keep = cells[0] >= 0
        return cells[0][keep], weights[0][keep]
