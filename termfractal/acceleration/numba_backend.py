"""
Numba JIT compilation backend for the escape-time kernels.

Every kernel is compiled in nopython mode with ``nogil=True`` so that the
grid evaluator's thread pool runs tiles truly in parallel. The kernels are
pure functions of their scalar arguments and hold no shared state.
"""

import logging
import math

import numba
import numpy as np
from numba import jit

from ..core.fractal_types import MANDELBROT, JULIA, BURNING_SHIP, TRICORN

logger = logging.getLogger(__name__)

BAILOUT_SQ = 4.0
OVERFLOW_LIMIT = 1e150


@jit(nopython=True, nogil=True, cache=True)
def _cmul(ar, ai, br, bi):
    """Complex multiplication on split real/imaginary parts."""
    return ar * br - ai * bi, ar * bi + ai * br


@jit(nopython=True, nogil=True, cache=True)
def _overflowing(zr, zi):
    # Also true for NaN components
    return not (abs(zr) <= OVERFLOW_LIMIT and abs(zi) <= OVERFLOW_LIMIT)


@jit(nopython=True, nogil=True, cache=True)
def _quadratic_orbit(zr, zi, cr, ci, max_iter):
    """
    Iterate z = z^2 + c.

    Shared by Mandelbrot (z_0 = 0) and Julia (z_0 = coordinate).

    Returns:
        Tuple of (iterations_used, escaped, |z|^2 at exit)
    """
    for n in range(max_iter):
        if _overflowing(zr, zi):
            return n, True, math.inf
        zr, zi = _cmul(zr, zi, zr, zi)
        zr += cr
        zi += ci
        mag2 = zr * zr + zi * zi
        if not mag2 <= BAILOUT_SQ:
            return n, True, mag2
    return max_iter, False, zr * zr + zi * zi


@jit(nopython=True, nogil=True, cache=True)
def _burning_ship_orbit(zr, zi, cr, ci, max_iter):
    """Iterate z = (|Re(z)| + i|Im(z)|)^2 + c."""
    for n in range(max_iter):
        if _overflowing(zr, zi):
            return n, True, math.inf
        zr_abs = abs(zr)
        zi_abs = abs(zi)
        zr, zi = _cmul(zr_abs, zi_abs, zr_abs, zi_abs)
        zr += cr
        zi += ci
        mag2 = zr * zr + zi * zi
        if not mag2 <= BAILOUT_SQ:
            return n, True, mag2
    return max_iter, False, zr * zr + zi * zi


@jit(nopython=True, nogil=True, cache=True)
def _tricorn_orbit(zr, zi, cr, ci, max_iter):
    """Iterate z = conj(z)^2 + c."""
    for n in range(max_iter):
        if _overflowing(zr, zi):
            return n, True, math.inf
        zr, zi = _cmul(zr, -zi, zr, -zi)
        zr += cr
        zi += ci
        mag2 = zr * zr + zi * zi
        if not mag2 <= BAILOUT_SQ:
            return n, True, mag2
    return max_iter, False, zr * zr + zi * zi


@jit(nopython=True, nogil=True, cache=True)
def _multibrot_orbit(zr, zi, cr, ci, power, max_iter):
    """
    Iterate z = z^power + c.

    The power is applied by repeated complex multiplication, so power 2
    performs exactly the same floating point operations as the quadratic
    orbit and there are no branch-cut artifacts.
    """
    for n in range(max_iter):
        if _overflowing(zr, zi):
            return n, True, math.inf
        pr = zr
        pi = zi
        for _ in range(power - 1):
            pr, pi = _cmul(pr, pi, zr, zi)
        zr = pr + cr
        zi = pi + ci
        mag2 = zr * zr + zi * zi
        if not mag2 <= BAILOUT_SQ:
            return n, True, mag2
    return max_iter, False, zr * zr + zi * zi


@jit(nopython=True, nogil=True, cache=True)
def escape_point(kind, x, y, cr, ci, power, max_iter):
    """
    Evaluate one coordinate for the fractal identified by ``kind``.

    This is the single dispatch point over the fractal variants.

    Args:
        kind: Fractal kind code from ``core.fractal_types``
        x, y: Real and imaginary parts of the coordinate
        cr, ci: Julia constant (ignored by the other variants)
        power: Multibrot power (ignored by the other variants)
        max_iter: Iteration budget

    Returns:
        Tuple of (iterations_used, escaped, |z|^2 at exit)
    """
    if kind == MANDELBROT:
        return _quadratic_orbit(0.0, 0.0, x, y, max_iter)
    elif kind == JULIA:
        return _quadratic_orbit(x, y, cr, ci, max_iter)
    elif kind == BURNING_SHIP:
        return _burning_ship_orbit(0.0, 0.0, x, y, max_iter)
    elif kind == TRICORN:
        return _tricorn_orbit(0.0, 0.0, x, y, max_iter)
    else:
        return _multibrot_orbit(0.0, 0.0, x, y, power, max_iter)


@jit(nopython=True, nogil=True, cache=True)
def smooth_value(iterations, escaped, mag2, max_iter):
    """
    Continuous iteration count for anti-banding colour gradients.

    Interior points report ``max_iter``; escapes caught by the overflow
    guard report their integer count.
    """
    if not escaped:
        return float(max_iter)
    if not math.isfinite(mag2):
        return float(iterations)
    value = iterations + 1.0 - math.log2(math.log(math.sqrt(mag2)))
    return min(max(value, 0.0), float(max_iter))


@jit(nopython=True, nogil=True, cache=True)
def escape_tile(kind, real, imag, cr, ci, power, max_iter, mask,
                iterations, escaped, smooth):
    """
    Evaluate every masked cell of a tile, writing into the output views.

    Args:
        real, imag: Coordinate arrays for the tile
        mask: Boolean array, only True cells are evaluated
        iterations, escaped, smooth: Output arrays with the tile's shape
    """
    rows, cols = real.shape
    for i in range(rows):
        for j in range(cols):
            if not mask[i, j]:
                continue
            n, esc, mag2 = escape_point(kind, real[i, j], imag[i, j], cr, ci, power, max_iter)
            iterations[i, j] = n
            escaped[i, j] = esc
            smooth[i, j] = smooth_value(n, esc, mag2, max_iter)


def warm_up():
    """Compile the kernels ahead of the first frame."""
    real = np.zeros((1, 1), dtype=np.float64)
    imag = np.zeros((1, 1), dtype=np.float64)
    mask = np.ones((1, 1), dtype=np.bool_)
    for kind in range(5):
        escape_tile(kind, real, imag, 0.0, 0.0, 2, 1, mask,
                    np.zeros((1, 1), dtype=np.int64),
                    np.zeros((1, 1), dtype=np.bool_),
                    np.zeros((1, 1), dtype=np.float64))
    logger.debug("Escape-time kernels compiled")


def numba_version() -> str:
    """Get the installed Numba version."""
    return numba.__version__
