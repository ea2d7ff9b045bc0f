"""File output for accumulated fields."""

from phasefieldMD.io.cube import LENGTH_UNITS, length_conversion, write_to_cube

__all__ = ["LENGTH_UNITS", "length_conversion", "write_to_cube"]
