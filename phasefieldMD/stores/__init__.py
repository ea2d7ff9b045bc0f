"""
Upstream value stores for phasefieldMD.

A value store supplies, frame by frame, the scalar value (and weight) of each
stored particle slot and the position of the particle carrying it.

Classes
-------
ValueStore
    Abstract interface consumed by the accumulation controller.
NumpyValueStore
    In-memory NumPy arrays.
MDAValueStore
    Positions and cell from an MDAnalysis universe.
"""

from ._base import ValueStore
from .mda import MDAValueStore
from .numpy import NumpyValueStore

__all__ = [
    "ValueStore",
    "MDAValueStore",
    "NumpyValueStore",
]
