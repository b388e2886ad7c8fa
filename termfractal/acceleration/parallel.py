"""
Tile-parallel grid evaluation.

The coordinate grid is cut into tiles which a thread pool evaluates with
the GIL-free JIT kernels. Every tile writes a disjoint region of output
arrays owned by the call, so the assembled result does not depend on the
worker count or on completion order. Nothing is visible to the caller
until every tile has finished.
"""

import logging
import multiprocessing as mp
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from .numba_backend import escape_tile
from ..core.fractal_types import FractalDescriptor
from ..core.math_functions import Grid
from ..core.quality import DerivedQuality
from ..core.viewport import Viewport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TileSpec:
    """Specification for a single tile in parallel evaluation."""
    tile_id: int
    x_start: int
    x_end: int
    y_start: int
    y_end: int

    @property
    def width(self) -> int:
        return self.x_end - self.x_start

    @property
    def height(self) -> int:
        return self.y_end - self.y_start

    def region(self) -> Tuple[slice, slice]:
        """Get the (rows, cols) slices covered by this tile."""
        return slice(self.y_start, self.y_end), slice(self.x_start, self.x_end)


def create_tile_grid(width: int, height: int, tile_size: int = 32) -> List[TileSpec]:
    """
    Create a grid of tiles for parallel processing.

    Args:
        width: Total grid width
        height: Total grid height
        tile_size: Target tile size (cells)

    Returns:
        List of TileSpec objects in row-major order
    """
    tiles = []
    tile_id = 0

    for y in range(0, height, tile_size):
        for x in range(0, width, tile_size):
            tiles.append(TileSpec(
                tile_id=tile_id,
                x_start=x,
                x_end=min(x + tile_size, width),
                y_start=y,
                y_end=min(y + tile_size, height),
            ))
            tile_id += 1

    logger.debug(f"Created {len(tiles)} tiles of target size {tile_size}x{tile_size}")
    return tiles


def sample_indices(length: int, stride: int) -> np.ndarray:
    """Get the evaluated positions along one axis, always including both ends."""
    indices = np.arange(0, length, stride)
    if indices[-1] != length - 1:
        indices = np.append(indices, length - 1)
    return indices


def sample_mask(rows: int, cols: int, stride: int) -> np.ndarray:
    """Get a boolean mask of the cells evaluated directly at ``stride``."""
    mask = np.zeros((rows, cols), dtype=bool)
    mask[np.ix_(sample_indices(rows, stride), sample_indices(cols, stride))] = True
    return mask


def _linear_weights(samples: np.ndarray, length: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Get neighbouring sample slots and blend weights for every position."""
    positions = np.arange(length)
    upper = np.clip(np.searchsorted(samples, positions, side='left'), 0, len(samples) - 1)
    lower = np.where(samples[upper] == positions, upper, np.maximum(upper - 1, 0))
    span = samples[upper] - samples[lower]
    weight = np.where(span > 0, (positions - samples[lower]) / np.maximum(span, 1), 0.0)
    return lower, upper, weight


def interpolate_missing(values: np.ndarray, mask: np.ndarray, stride: int) -> np.ndarray:
    """
    Fill un-evaluated cells by bilinear interpolation between sampled cells.

    Args:
        values: Array whose masked cells hold evaluated data
        mask: Cells evaluated directly
        stride: Stride the mask was built with

    Returns:
        New float64 array; evaluated cells keep their exact values
    """
    rows, cols = values.shape
    row_samples = sample_indices(rows, stride)
    col_samples = sample_indices(cols, stride)
    coarse = values[np.ix_(row_samples, col_samples)].astype(np.float64)

    lo, hi, w = _linear_weights(col_samples, cols)
    along_cols = coarse[:, lo] * (1.0 - w) + coarse[:, hi] * w

    lo, hi, w = _linear_weights(row_samples, rows)
    filled = along_cols[lo, :] * (1.0 - w)[:, None] + along_cols[hi, :] * w[:, None]

    return np.where(mask, values, filled)


def downsample(values: np.ndarray, factor: int) -> np.ndarray:
    """Average each ``factor`` x ``factor`` block into one cell."""
    if factor == 1:
        return values.astype(np.float64)
    rows, cols = values.shape
    blocks = values.astype(np.float64).reshape(rows // factor, factor, cols // factor, factor)
    return blocks.mean(axis=(1, 3))


def get_optimal_worker_count() -> int:
    """Get the number of worker threads matching the hardware parallelism."""
    return max(1, mp.cpu_count())


class GridEvaluator:
    """Thread-pool evaluator turning coordinate grids into Grids."""

    def __init__(self, num_workers: Optional[int] = None, tile_size: int = 32):
        """
        Initialize the evaluator.

        Args:
            num_workers: Number of worker threads (None for CPU count)
            tile_size: Size of square tiles handed to each worker
        """
        if num_workers is None:
            self.num_workers = get_optimal_worker_count()
        else:
            self.num_workers = max(1, num_workers)
        if tile_size < 1:
            raise ValueError("tile_size must be >= 1")
        self.tile_size = tile_size
        logger.info(f"Grid evaluator: {self.num_workers} workers, {tile_size}x{tile_size} tiles")

    def evaluate(self, descriptor: FractalDescriptor, real: np.ndarray, imag: np.ndarray,
                 max_iterations: int, sample_stride: int = 1,
                 supersample_factor: int = 1) -> Grid:
        """
        Evaluate a coordinate grid.

        Args:
            descriptor: Fractal to evaluate
            real, imag: Coordinate arrays, already expanded by the supersample factor
            max_iterations: Effective iteration cap
            sample_stride: Evaluate every n-th row and column and interpolate
                the rest; 1 evaluates every cell
            supersample_factor: Block size averaged into one output cell

        Returns:
            Grid of shape (rows / supersample_factor, cols / supersample_factor)
        """
        if real.shape != imag.shape or real.ndim != 2:
            raise ValueError("real and imag must be 2D arrays of one shape")
        rows, cols = real.shape
        if rows % supersample_factor or cols % supersample_factor:
            raise ValueError(f"Grid {cols}x{rows} is not divisible by supersample factor "
                             f"{supersample_factor}")
        if sample_stride < 1:
            raise ValueError("sample_stride must be >= 1")

        start_time = time.perf_counter()
        real = np.ascontiguousarray(real, dtype=np.float64)
        imag = np.ascontiguousarray(imag, dtype=np.float64)

        mask = sample_mask(rows, cols, sample_stride)
        iterations = np.zeros((rows, cols), dtype=np.int64)
        escaped = np.zeros((rows, cols), dtype=np.bool_)
        smooth = np.zeros((rows, cols), dtype=np.float64)

        kind, cr, ci, power = descriptor.kernel_args()
        tiles = create_tile_grid(cols, rows, self.tile_size)

        def run_tile(tile: TileSpec) -> TileSpec:
            region = tile.region()
            escape_tile(kind, real[region], imag[region], cr, ci, power, max_iterations,
                        mask[region], iterations[region], escaped[region], smooth[region])
            return tile

        if self.num_workers == 1 or len(tiles) == 1:
            for tile in tiles:
                run_tile(tile)
        else:
            with ThreadPoolExecutor(max_workers=self.num_workers) as executor:
                futures = [executor.submit(run_tile, tile) for tile in tiles]
                for future in as_completed(futures):
                    future.result()

        iterations_f = iterations.astype(np.float64)
        escaped_f = escaped.astype(np.float64)
        if sample_stride > 1:
            iterations_f = interpolate_missing(iterations_f, mask, sample_stride)
            escaped_f = interpolate_missing(escaped_f, mask, sample_stride)
            smooth = interpolate_missing(smooth, mask, sample_stride)

        interpolated = ~mask
        if supersample_factor > 1:
            block = supersample_factor
            iterations_f = downsample(iterations_f, block)
            escaped_f = downsample(escaped_f, block)
            smooth = downsample(smooth, block)
            interpolated = interpolated.reshape(rows // block, block, cols // block, block).any(axis=(1, 3))

        elapsed = time.perf_counter() - start_time
        logger.debug(f"Evaluated {rows}x{cols} samples ({int(mask.sum())} direct, "
                     f"{len(tiles)} tiles) in {elapsed * 1000:.1f} ms")

        return Grid(iterations_f, escaped_f, smooth, interpolated, max_iterations)

    def evaluate_viewport(self, descriptor: FractalDescriptor, viewport: Viewport,
                          derived: DerivedQuality) -> Grid:
        """Evaluate a viewport with parameters from the quality policy."""
        factor = derived.supersample_factor
        real, imag = viewport.create_coordinate_arrays(factor)
        return self.evaluate(descriptor, real, imag, derived.effective_max_iterations,
                             sample_stride=derived.sample_stride,
                             supersample_factor=factor)
