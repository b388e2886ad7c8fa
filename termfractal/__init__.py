"""
Escape-time fractal engine for text-cell displays.

This library computes Mandelbrot, Julia, Burning Ship, Tricorn and Multibrot
frames as numeric grids for terminal renderers. Frames are evaluated in
parallel by JIT-compiled kernels and memoized by a fingerprint of every
input that affects them.

Key Features:
- Closed set of fractal descriptors with an equation parser
- Immutable viewports with aspect-corrected cell mapping
- Adaptive sampling and 2x2 supersampling driven by a quality policy
- Compute-once LRU frame cache safe for concurrent callers

Example usage:
    >>> from termfractal import FractalEngine, Mandelbrot, Viewport, QualityPolicy
    >>> engine = FractalEngine()
    >>> grid = engine.compute_frame(Mandelbrot(), Viewport(80, 40), QualityPolicy())
    >>> grid.shape
    (40, 80)
"""

__version__ = "1.0.0"
__author__ = "Terminal Fractals Team"

from termfractal.core.errors import FractalError, InvalidDescriptor, ViewportDegenerate, ConfigError
from termfractal.core.fractal_types import (
    FractalDescriptor,
    Mandelbrot,
    Julia,
    BurningShip,
    Tricorn,
    Multibrot,
    FractalRegistry,
    JULIA_PRESETS,
    parse_equation,
)
from termfractal.core.math_functions import EscapeResult, Grid, escape_time
from termfractal.core.viewport import Viewport
from termfractal.core.quality import QualityPolicy, DerivedQuality, PolicyTuning, derive_quality
from termfractal.acceleration.cache import Fingerprint, ResultCache
from termfractal.acceleration.parallel import GridEvaluator
from termfractal.rendering.text import TextRenderer

# Main API classes
from termfractal.api import FractalEngine, EngineConfig

__all__ = [
    "FractalEngine",
    "EngineConfig",
    "FractalDescriptor",
    "Mandelbrot",
    "Julia",
    "BurningShip",
    "Tricorn",
    "Multibrot",
    "FractalRegistry",
    "JULIA_PRESETS",
    "parse_equation",
    "EscapeResult",
    "Grid",
    "escape_time",
    "Viewport",
    "QualityPolicy",
    "DerivedQuality",
    "PolicyTuning",
    "derive_quality",
    "Fingerprint",
    "ResultCache",
    "GridEvaluator",
    "TextRenderer",
    "FractalError",
    "InvalidDescriptor",
    "ViewportDegenerate",
    "ConfigError",
]
