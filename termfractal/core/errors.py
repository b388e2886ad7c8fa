"""
Exception types raised at the construction boundaries of the engine.

Numeric overflow and cache pressure have no exception types: the kernel
treats overflow as an escape event and the cache evicts silently.
"""


class FractalError(Exception):
    """Base class for all termfractal errors."""


class InvalidDescriptor(FractalError, ValueError):
    """A fractal descriptor or equation could not be constructed."""


class ViewportDegenerate(FractalError, ValueError):
    """A viewport has non-positive zoom, dimensions or iteration budget."""


class ConfigError(FractalError, ValueError):
    """A configuration file or value failed validation."""
