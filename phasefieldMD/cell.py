"""
Cell geometry for periodic simulation boxes.

All functions use the convention that rows of the cell matrix are lattice
vectors: ``M[0] = a``, ``M[1] = b``, ``M[2] = c`` (matching ASE and
MDAnalysis ``triclinic_dimensions``).

Key operations:

- Fractional from Cartesian: ``s = r @ inv(M)``
- Minimum image convention: ``ds = r @ inv(M)``, ``ds -= round(ds)``,
  ``dr = ds @ M``
- Box lengths of an orthorhombic cell: ``diag(M)``
"""

from __future__ import annotations

import numpy as np

from phasefieldMD.errors import GeometryError

#: Absolute tolerance for deciding whether off-diagonal cell matrix elements
#: are zero, i.e. whether the cell is orthorhombic.
ORTHORHOMBIC_TOLERANCE: float = 1e-6


def as_cell_matrix(cell: np.ndarray) -> np.ndarray:
    """
    Return *cell* as a float (3, 3) cell matrix.

    A length-3 sequence is interpreted as the box lengths of an orthorhombic
    cell.

    Raises
    ------
    GeometryError
        If the input is neither shape (3,) nor (3, 3), or the cell is singular.
    """
    cell = np.asarray(cell, dtype=np.float64)
    if cell.shape == (3,):
        cell = np.diag(cell)
    if cell.shape != (3, 3):
        raise GeometryError(
            f"Cell must be a (3, 3) matrix or three box lengths, got shape {cell.shape}."
        )
    if abs(np.linalg.det(cell)) <= 0.0:
        raise GeometryError("Cell matrix is singular.")
    return cell


def is_orthorhombic(
    cell_matrix: np.ndarray, atol: float = ORTHORHOMBIC_TOLERANCE
) -> bool:
    """
    Return ``True`` if all off-diagonal elements of *cell_matrix* are below
    *atol*, i.e. the cell is orthorhombic (or cubic).
    """
    off_diagonal = cell_matrix[~np.eye(3, dtype=bool)]
    return bool(np.all(np.abs(off_diagonal) < atol))


def require_orthorhombic(cell_matrix: np.ndarray, reason: str) -> None:
    """
    Raise :class:`GeometryError` unless *cell_matrix* is orthorhombic.

    Parameters
    ----------
    cell_matrix : np.ndarray, shape (3, 3)
        Cell matrix with rows = lattice vectors.
    reason : str
        What requires the orthorhombic cell; included in the error message.
    """
    if not is_orthorhombic(cell_matrix):
        off_diagonal = np.abs(cell_matrix[~np.eye(3, dtype=bool)]).max()
        raise GeometryError(
            f"{reason} requires an orthorhombic cell; largest off-diagonal "
            f"cell element is {off_diagonal:g} (tolerance {ORTHORHOMBIC_TOLERANCE:g})."
        )


def box_lengths(cell_matrix: np.ndarray) -> np.ndarray:
    """Return the diagonal box lengths ``[Lx, Ly, Lz]`` of a cell matrix."""
    return np.diag(cell_matrix).copy()


def cartesian_to_fractional(
    positions: np.ndarray, cell_inverse: np.ndarray
) -> np.ndarray:
    """
    Convert Cartesian positions (or displacements) to fractional coordinates.

    Parameters
    ----------
    positions : np.ndarray, shape (..., 3)
        Cartesian vectors.
    cell_inverse : np.ndarray, shape (3, 3)
        Inverse of the cell matrix (``np.linalg.inv(cell_matrix)``).
    """
    return positions @ cell_inverse


def apply_minimum_image(
    displacement: np.ndarray,
    cell_matrix: np.ndarray,
    cell_inverse: np.ndarray,
) -> np.ndarray:
    """
    Apply the minimum image convention to displacement vectors.

    The displacement is converted to fractional coordinates, each component
    is rounded to the nearest integer and subtracted, then the result is
    converted back to Cartesian. Components end up in [-0.5, 0.5] of the
    corresponding lattice vector.

    Parameters
    ----------
    displacement : np.ndarray, shape (..., 3)
        Displacement vectors in Cartesian coordinates.
    cell_matrix : np.ndarray, shape (3, 3)
        Cell matrix with rows = lattice vectors.
    cell_inverse : np.ndarray, shape (3, 3)
        Inverse of the cell matrix.
    """
    fractional = displacement @ cell_inverse
    fractional -= np.round(fractional)
    return fractional @ cell_matrix
