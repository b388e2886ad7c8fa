"""
Viewport values and the mapping from display cells to the complex plane.

A Viewport is an immutable description of what the user is looking at.
Navigation commands never mutate it; they return a new Viewport, so a
computation in flight always sees stable inputs.
"""

import cmath
import math
import logging
import random
from dataclasses import dataclass, replace
from numbers import Integral
from typing import Tuple

import numpy as np

from .errors import ViewportDegenerate

logger = logging.getLogger(__name__)

# Span of the complex plane across the longer physical axis at zoom 1
BASE_SPAN = 4.0
# Terminal cells are roughly twice as tall as they are wide
CELL_ASPECT = 2.0

MIN_ADJUSTED_ITERATIONS = 10
MAX_ADJUSTED_ITERATIONS = 1000

# Auto-explore: zoom per step, random drift span at zoom 1, zoom that triggers a reset
AUTO_ZOOM_FACTOR = 1.1
AUTO_DRIFT = 0.01
AUTO_RESET_ZOOM = 1000.0
HOME_CENTER = complex(-0.5, 0.0)


@dataclass(frozen=True)
class Viewport:
    """
    Logical display grid positioned on the complex plane.

    Args:
        width, height: Grid size in character cells
        center: Complex coordinate at the middle of the grid
        zoom: Magnification, 1.0 shows BASE_SPAN on the longer axis
        max_iterations: Base iteration budget before quality scaling
    """

    width: int
    height: int
    center: complex = complex(-0.5, 0.0)
    zoom: float = 1.0
    max_iterations: int = 100

    def __post_init__(self):
        for name in ('width', 'height', 'max_iterations'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, Integral):
                raise ViewportDegenerate(f"{name} must be an integer, got {value!r}")
        if self.width <= 0 or self.height <= 0:
            raise ViewportDegenerate(
                f"Width and height must be positive, got {self.width}x{self.height}")
        if self.max_iterations < 1:
            raise ViewportDegenerate(f"max_iterations must be >= 1, got {self.max_iterations}")
        try:
            zoom = float(self.zoom)
            center = complex(self.center)
        except (TypeError, ValueError) as e:
            raise ViewportDegenerate(f"Invalid zoom or center: {e}") from e
        if not math.isfinite(zoom) or zoom <= 0:
            raise ViewportDegenerate(f"zoom must be a positive finite number, got {self.zoom}")
        if not cmath.isfinite(center):
            raise ViewportDegenerate(f"center must be finite, got {self.center}")

        object.__setattr__(self, 'width', int(self.width))
        object.__setattr__(self, 'height', int(self.height))
        object.__setattr__(self, 'max_iterations', int(self.max_iterations))
        object.__setattr__(self, 'zoom', zoom)
        object.__setattr__(self, 'center', center)

    def cell_steps(self, supersample: int = 1) -> Tuple[float, float]:
        """
        Get the complex-plane distance between neighbouring samples.

        Args:
            supersample: Linear supersampling factor

        Returns:
            Tuple of (real step per column, imaginary step per row)
        """
        longer = max(self.width, self.height * CELL_ASPECT)
        unit = BASE_SPAN / self.zoom / longer
        return unit / supersample, unit * CELL_ASPECT / supersample

    def bounds(self) -> Tuple[float, float, float, float]:
        """Get the displayed rectangle as (xmin, xmax, ymin, ymax)."""
        dx, dy = self.cell_steps()
        half_w = dx * self.width / 2.0
        half_h = dy * self.height / 2.0
        return (self.center.real - half_w, self.center.real + half_w,
                self.center.imag - half_h, self.center.imag + half_h)

    def create_coordinate_arrays(self, supersample: int = 1) -> Tuple[np.ndarray, np.ndarray]:
        """
        Create sample coordinates for every cell of the (supersampled) grid.

        Samples sit at cell centres, row 0 at the top of the display.

        Args:
            supersample: Linear supersampling factor ``s``

        Returns:
            Tuple of (real, imag) arrays of shape (s*height, s*width)
        """
        if isinstance(supersample, bool) or not isinstance(supersample, Integral) or supersample < 1:
            raise ValueError(f"supersample must be a positive integer, got {supersample!r}")

        cols = self.width * supersample
        rows = self.height * supersample
        dx, dy = self.cell_steps(supersample)

        x = self.center.real + (np.arange(cols, dtype=np.float64) + 0.5 - cols / 2.0) * dx
        y = self.center.imag - (np.arange(rows, dtype=np.float64) + 0.5 - rows / 2.0) * dy
        return np.meshgrid(x, y)

    def create_complex_array(self, supersample: int = 1) -> np.ndarray:
        """Create a complex coordinate array for the (supersampled) grid."""
        x, y = self.create_coordinate_arrays(supersample)
        return x + 1j * y

    def cell_to_complex(self, row: int, col: int) -> complex:
        """Convert a display cell to the complex coordinate at its centre."""
        dx, dy = self.cell_steps()
        real = self.center.real + (col + 0.5 - self.width / 2.0) * dx
        imag = self.center.imag - (row + 0.5 - self.height / 2.0) * dy
        return complex(real, imag)

    # Navigation helpers, each returns a new Viewport

    def zoomed(self, factor: float) -> 'Viewport':
        """Multiply the zoom by ``factor``."""
        return replace(self, zoom=self.zoom * factor)

    def panned(self, dx: float, dy: float) -> 'Viewport':
        """
        Move the centre by a fraction of the current view.

        Args:
            dx, dy: Offsets at zoom 1, scaled down by the current zoom
        """
        return replace(self, center=self.center + complex(dx, dy) / self.zoom)

    def recentered(self, center: complex) -> 'Viewport':
        return replace(self, center=center)

    def resized(self, width: int, height: int) -> 'Viewport':
        return replace(self, width=width, height=height)

    def with_iterations(self, max_iterations: int) -> 'Viewport':
        return replace(self, max_iterations=max_iterations)

    def adjust_iterations(self, step: int) -> 'Viewport':
        """Add ``step`` iterations, clamped like the interactive +/- commands."""
        target = min(max(self.max_iterations + step, MIN_ADJUSTED_ITERATIONS),
                     MAX_ADJUSTED_ITERATIONS)
        return replace(self, max_iterations=target)


def auto_explore_step(viewport: Viewport, rng: random.Random,
                      home: complex = HOME_CENTER) -> Viewport:
    """
    Advance an unattended exploration by one step.

    Zooms in by AUTO_ZOOM_FACTOR and drifts the centre by a random offset
    of at most AUTO_DRIFT / 2 per axis, scaled by the new zoom. Once the
    zoom passes AUTO_RESET_ZOOM the view returns to ``home`` at zoom 1.

    Args:
        viewport: Current view
        rng: Random source; a seeded ``random.Random`` makes the path repeatable
        home: Centre to return to after a reset

    Returns:
        The next Viewport
    """
    zoom = viewport.zoom * AUTO_ZOOM_FACTOR
    drift = complex(rng.random() - 0.5, rng.random() - 0.5) * AUTO_DRIFT / zoom
    if zoom > AUTO_RESET_ZOOM:
        logger.debug(f"Auto-explore passed zoom {AUTO_RESET_ZOOM:g}, returning to {home}")
        return replace(viewport, zoom=1.0, center=home)
    return replace(viewport, zoom=zoom, center=viewport.center + drift)
