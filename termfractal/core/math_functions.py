"""
Core result types and the per-point escape-time kernel entry.

The heavy lifting happens in the JIT kernels of
``termfractal.acceleration.numba_backend``; this module exposes them as
plain Python values for callers that work one coordinate at a time, and
defines the Grid container handed to renderers.
"""

import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

import numpy as np

from .fractal_types import FractalDescriptor
from ..acceleration.numba_backend import escape_point, smooth_value

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EscapeResult:
    """Outcome of iterating a single coordinate."""

    escaped: bool
    iterations_used: int
    smooth_value: Optional[float] = None


def escape_time(z0: complex, descriptor: FractalDescriptor, max_iterations: int) -> EscapeResult:
    """
    Iterate one coordinate under the given fractal.

    Args:
        z0: Complex coordinate of the cell
        descriptor: Fractal to evaluate
        max_iterations: Iteration budget

    Returns:
        EscapeResult; interior points have ``escaped=False`` and
        ``iterations_used == max_iterations``
    """
    kind, cr, ci, power = descriptor.kernel_args()
    z0 = complex(z0)
    n, escaped, mag2 = escape_point(kind, z0.real, z0.imag, cr, ci, power, int(max_iterations))
    if not escaped:
        return EscapeResult(False, int(n))
    return EscapeResult(True, int(n), float(smooth_value(n, escaped, mag2, int(max_iterations))))


class Grid:
    """
    Row-major matrix of escape data for one frame.

    All arrays are read-only so a single Grid can be shared between the
    cache and any number of renderers.

    Attributes:
        iterations: Iteration counts (averaged over supersampled blocks)
        escaped: Fraction of escaped samples per cell, 0.0 or 1.0 without
            supersampling
        smooth: Continuous iteration counts, ``max_iterations`` for interior
        interpolated: True where the cell was filled from its neighbours
            instead of being evaluated
        max_iterations: Effective iteration cap the grid was computed with
    """

    def __init__(self, iterations: np.ndarray, escaped: np.ndarray, smooth: np.ndarray,
                 interpolated: np.ndarray, max_iterations: int):
        self.iterations = np.asarray(iterations, dtype=np.float64)
        self.escaped = np.asarray(escaped, dtype=np.float64)
        self.smooth = np.asarray(smooth, dtype=np.float64)
        self.interpolated = np.asarray(interpolated, dtype=bool)
        self.max_iterations = int(max_iterations)

        shapes = {a.shape for a in (self.iterations, self.escaped, self.smooth, self.interpolated)}
        if len(shapes) != 1:
            raise ValueError(f"Grid arrays must share one shape, got {sorted(shapes)}")

        for array in (self.iterations, self.escaped, self.smooth, self.interpolated):
            array.setflags(write=False)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.iterations.shape

    @property
    def height(self) -> int:
        return self.shape[0]

    @property
    def width(self) -> int:
        return self.shape[1]

    def cell(self, row: int, col: int) -> EscapeResult:
        """Get the escape result of one cell."""
        escaped = bool(self.escaped[row, col] >= 0.5)
        iterations = int(round(self.iterations[row, col]))
        if not escaped:
            return EscapeResult(False, iterations)
        return EscapeResult(True, iterations, float(self.smooth[row, col]))

    def rows(self) -> Iterator[List[EscapeResult]]:
        """Iterate over rows of EscapeResult, top to bottom."""
        for row in range(self.height):
            yield [self.cell(row, col) for col in range(self.width)]

    def to_iteration_lists(self) -> List[List[int]]:
        """Get rounded iteration counts as nested lists."""
        return np.rint(self.iterations).astype(np.int64).tolist()

    def __eq__(self, other) -> bool:
        if not isinstance(other, Grid):
            return NotImplemented
        return (self.max_iterations == other.max_iterations
                and np.array_equal(self.iterations, other.iterations)
                and np.array_equal(self.escaped, other.escaped)
                and np.array_equal(self.smooth, other.smooth)
                and np.array_equal(self.interpolated, other.interpolated))

    __hash__ = None

    def __repr__(self) -> str:
        return f"Grid({self.width}x{self.height}, max_iterations={self.max_iterations})"
