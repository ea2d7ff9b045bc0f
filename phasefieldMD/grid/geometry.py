"""GeometryMapper: particle positions to grid coordinates."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

import numpy as np

from phasefieldMD.cell import (
    apply_minimum_image,
    box_lengths,
    cartesian_to_fractional,
    require_orthorhombic,
)
from phasefieldMD.errors import ConfigurationError
from phasefieldMD.grid.constants import AXIS_NAMES, NUMERICAL_TOLERANCE


class GeometryMapper:
    """
    Map particle positions to grid coordinates relative to a moving origin.

    Parameters
    ----------
    directions : sequence of int
        Cartesian axes kept in the output (0=x, 1=y, 2=z), in output order.
    fractional : bool, optional
        Express displacements as fractions of the cell vectors, each component
        in [-0.5, 0.5) (default: False).
    confinement : mapping of str to (float, float), optional
        Literal ``(lower, upper)`` range for some of the selected axes, keyed
        by axis name. Confined axes are non-periodic.

    Raises
    ------
    ConfigurationError
        If confinement is combined with fractional coordinates, names an axis
        that is not selected, or gives a degenerate range.
    """

    def __init__(
        self,
        directions: Sequence[int],
        fractional: bool = False,
        confinement: Mapping[str, tuple[float, float]] | None = None,
    ):
        self.directions = tuple(int(d) for d in directions)
        self.axis_names = tuple(AXIS_NAMES[d] for d in self.directions)
        self.fractional = bool(fractional)
        self.ndim = len(self.directions)

        confinement = dict(confinement or {})
        self.confined = np.zeros(self.ndim, dtype=bool)
        self.cmin = np.zeros(self.ndim)
        self.cmax = np.zeros(self.ndim)
        for name, limits in confinement.items():
            key = name.lower().strip()
            if key not in self.axis_names:
                raise ConfigurationError(
                    f"Cannot confine the {name} axis: it is not one of the grid axes {self.axis_names}."
                )
            if self.fractional:
                raise ConfigurationError(
                    f"Confining the {key} axis is incompatible with fractional coordinates."
                )
            lower, upper = (float(v) for v in limits)
            if abs(upper - lower) < NUMERICAL_TOLERANCE:
                raise ConfigurationError(f"range set for {key} axis makes no sense: [{lower:g}, {upper:g})")
            if upper < lower:
                raise ConfigurationError(
                    f"lower bound of {key} axis ({lower:g}) exceeds its upper bound ({upper:g})"
                )
            i = self.axis_names.index(key)
            self.confined[i] = True
            self.cmin[i] = lower
            self.cmax[i] = upper

    @property
    def periodic(self) -> np.ndarray:
        """Per-axis periodicity: every axis that is not confined."""
        return ~self.confined

    def check_cell(self, cell_matrix: np.ndarray) -> None:
        """
        Reject non-orthorhombic cells, whatever the axis confinement.

        Raises
        ------
        GeometryError
            If the cell is not orthorhombic.
        """
        if self.fractional:
            require_orthorhombic(cell_matrix, "Fractional grid coordinates")
        else:
            require_orthorhombic(cell_matrix, "Grid accumulation")

    def box_extents(self, cell_matrix: np.ndarray) -> np.ndarray:
        """Box length along each grid axis, in grid-axis order."""
        return box_lengths(cell_matrix)[list(self.directions)]

    def grid_bounds(self, cell_matrix: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """
        Axis bounds for binding a grid against the current cell.

        Fractional grids span [-0.5, 0.5); otherwise unconfined axes span
        half a box length either side of the origin and confined axes use
        their literal range.

        Returns
        -------
        lower, upper : np.ndarray, shape (ndim,)
        """
        lower = np.full(self.ndim, -0.5)
        upper = np.full(self.ndim, 0.5)
        if not self.fractional:
            self.check_cell(cell_matrix)
            box = self.box_extents(cell_matrix)
            lower = np.where(self.confined, self.cmin, lower * box)
            upper = np.where(self.confined, self.cmax, upper * box)
        return lower, upper

    def map_points(
        self,
        origin: np.ndarray,
        positions: np.ndarray,
        cell_matrix: np.ndarray,
    ) -> np.ndarray:
        """
        Map Cartesian positions to grid coordinates.

        Parameters
        ----------
        origin : np.ndarray, shape (3,)
            Cartesian position of the reference particle.
        positions : np.ndarray, shape (N, 3)
            Cartesian particle positions.
        cell_matrix : np.ndarray, shape (3, 3)
            Current cell with rows = lattice vectors.

        Returns
        -------
        np.ndarray, shape (N, ndim)
            Minimum-image displacement from the origin along the grid axes,
            in absolute or fractional units.
        """
        self.check_cell(cell_matrix)
        cell_inverse = np.linalg.inv(cell_matrix)
        displacement = np.asarray(positions, dtype=np.float64).reshape(-1, 3) - np.asarray(origin, dtype=np.float64)
        displacement = apply_minimum_image(displacement, cell_matrix, cell_inverse)
        if self.fractional:
            displacement = cartesian_to_fractional(displacement, cell_inverse)
        return displacement[:, list(self.directions)]

    def map_point(
        self,
        origin: np.ndarray,
        position: np.ndarray,
        cell_matrix: np.ndarray,
    ) -> np.ndarray:
        """Map a single position; see :meth:`map_points`."""
        return self.map_points(origin, np.atleast_2d(position), cell_matrix)[0]
