"""Kernel-smoothed phase fields from per-particle order parameters in molecular dynamics"""
from .version import __version__
from .errors import (
    PhaseFieldError,
    ConfigurationError,
    GeometryError,
    VolatileBoxError,
    DataUnavailableError,
)
from .grid import (
    GeometryMapper,
    GridAxis,
    GridStore,
    KernelFamily,
    KernelRegistry,
    KernelSpreader,
    default_registry,
    AccumulationController,
    compute_phase_field,
)
from .stores import ValueStore, NumpyValueStore, MDAValueStore
from .io import write_to_cube

__all__ = [
    "__version__",
    "PhaseFieldError",
    "ConfigurationError",
    "GeometryError",
    "VolatileBoxError",
    "DataUnavailableError",
    "GeometryMapper",
    "GridAxis",
    "GridStore",
    "KernelFamily",
    "KernelRegistry",
    "KernelSpreader",
    "default_registry",
    "AccumulationController",
    "compute_phase_field",
    "ValueStore",
    "NumpyValueStore",
    "MDAValueStore",
    "write_to_cube",
]
