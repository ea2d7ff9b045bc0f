"""
Exception hierarchy for phasefieldMD.

All errors raised by the accumulation engine are fatal for the current run:
accumulated statistics cannot be patched once the set-up or the geometry is
found to be inconsistent.
"""


class PhaseFieldError(Exception):
    """Base class for all phasefieldMD errors."""
    pass


class ConfigurationError(PhaseFieldError, ValueError):
    """Raised for contradictory or incomplete grid set-up.

    Examples are an unknown axis selection, missing bin counts and spacing,
    a degenerate axis range, or confinement combined with fractional
    coordinates.
    """
    pass


class GeometryError(PhaseFieldError):
    """Raised when a non-orthorhombic cell reaches the grid mapping."""
    pass


class VolatileBoxError(PhaseFieldError):
    """Raised when the box extent along a bound periodic axis changes mid-run."""

    def __init__(self, axis: str, expected: float, observed: float) -> None:
        self.axis = axis
        self.expected = expected
        self.observed = observed
        super().__init__(
            f"box size should be fixed; use fractional coordinates instead "
            f"(axis {axis}: grid was bound to a box length of {expected:g}, "
            f"current box length is {observed:g})"
        )


class DataUnavailableError(PhaseFieldError):
    """Raised when requested data is not available from a value store."""
    pass
