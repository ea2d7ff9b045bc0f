"""
Gaussian cube output for accumulated 3D fields.

Cube files are written with :func:`ase.io.cube.write_cube`, which expects
lengths in Angstrom; grids accumulated in other length units are scaled
with factors taken from :mod:`scipy.constants`.
"""

from __future__ import annotations

from typing import Any

import numpy as np
import scipy.constants as constants
from ase import Atoms
from ase.io.cube import write_cube
from pymatgen.core import Structure
from pymatgen.io.ase import AseAtomsAdaptor

from phasefieldMD.cell import as_cell_matrix
from phasefieldMD.errors import ConfigurationError
from phasefieldMD.grid.grid_store import GridStore

# Angstrom per unit of length
LENGTH_UNITS = {
    'angstrom': 1.0,
    'nm': constants.nano / constants.angstrom,
    'bohr': constants.physical_constants['Bohr radius'][0] / constants.angstrom,
}


def length_conversion(length_unit: str) -> float:
    """
    Return the number of Angstrom in one `length_unit`.

    Raises
    ------
    ConfigurationError
        If the unit is not one of ``LENGTH_UNITS``.
    """
    key = length_unit.lower().strip()
    if key not in LENGTH_UNITS:
        raise ConfigurationError(
            f"Unknown length unit '{length_unit}'. Supported: {sorted(LENGTH_UNITS)}"
        )
    return LENGTH_UNITS[key]


def write_to_cube(
    grid: GridStore,
    filename: str,
    structure: Structure | Atoms | Any | None = None,
    cell_matrix: np.ndarray | None = None,
    *,
    fractional: bool = False,
    center: np.ndarray | None = None,
    length_unit: str = 'angstrom',
    comment: str | None = None,
) -> None:
    """
    Write the field held by a 3D grid to a Gaussian `.cube` file.

    Parameters
    ----------
    grid : GridStore
        Bound three-dimensional grid; its normalised field is written.
    filename : str
        Output filename.
    structure : pymatgen.Structure or ase.Atoms, optional
        Atoms to include in the file. A pymatgen `Structure` is converted
        to ASE `Atoms` first.
    cell_matrix : np.ndarray, optional
        Simulation cell, in `length_unit`. Needed for fractional grids when
        no `structure` is given.
    fractional : bool, optional
        Whether the grid was accumulated in fractional coordinates
        (default: False).
    center : np.ndarray, optional
        Cartesian position of the origin atom, in `length_unit`. The grid is
        placed relative to it (default: the cell origin).
    length_unit : {'angstrom', 'nm', 'bohr'}, optional
        Length unit of the grid and of `cell_matrix` (default: 'angstrom').
    comment : str, optional
        Comment line for the cube header.

    Raises
    ------
    ConfigurationError
        If the grid is not three-dimensional or no cell is available for a
        fractional grid.
    """
    grid._require_allocated()
    if len(grid.axes) != 3:
        raise ConfigurationError(
            f"Cube files hold 3D data; grid has {len(grid.axes)} axes."
        )
    scale = length_conversion(length_unit)

    if structure is None:
        atoms = Atoms(pbc=True)
    elif isinstance(structure, Structure):
        atoms = AseAtomsAdaptor.get_atoms(structure)
    else:
        atoms = structure.copy()

    lower = np.array([axis.lower for axis in grid.axes])
    extents = np.array([axis.extent for axis in grid.axes])

    if fractional:
        if cell_matrix is not None:
            cell = as_cell_matrix(cell_matrix) * scale
        elif structure is not None:
            cell = np.array(atoms.cell)
        else:
            raise ConfigurationError("A cell is required to write a fractional grid.")
        voxel_cell = extents[:, None] * cell
        origin = lower @ cell
    else:
        voxel_cell = np.diag(extents) * scale
        origin = lower * scale
    if center is not None:
        origin = origin + np.asarray(center, dtype=np.float64) * scale

    # write_cube derives voxel vectors from atoms.cell
    atoms.set_cell(voxel_cell, scale_atoms=False)

    with open(filename, "w") as f:
        write_cube(f, atoms, data=grid.read_all(), origin=origin, comment=comment)
