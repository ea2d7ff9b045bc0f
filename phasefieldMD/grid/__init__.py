"""
Grid accumulation classes for phasefieldMD.

This package provides the pieces that turn per-particle values into a
smooth field on a regular grid:
- GeometryMapper: Cartesian positions to grid coordinates about an origin atom
- KernelSpreader: Bounded-support kernels spread onto neighbouring grid points
- GridStore: Weighted sums and normalisation for every grid point
- AccumulationController: One grid update per frame, and reporting
- compute_phase_field: Convenience function for accumulating in one call
"""

from phasefieldMD.grid.geometry import GeometryMapper
from phasefieldMD.grid.grid_store import GridAxis, GridStore
from phasefieldMD.grid.kernels import (
    KernelFamily,
    KernelRegistry,
    KernelSpreader,
    default_registry,
)
from phasefieldMD.grid.controller import AccumulationController, compute_phase_field

__all__ = [
    "GeometryMapper",
    "GridAxis",
    "GridStore",
    "KernelFamily",
    "KernelRegistry",
    "KernelSpreader",
    "default_registry",
    "AccumulationController",
    "compute_phase_field",
]
