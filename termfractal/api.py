"""
Main API classes for fractal frame computation.

This module combines the quality policy, the viewport mapper, the grid
evaluator and the result cache into the single entry point used by the
renderer and the user interface.
"""

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .acceleration.cache import DEFAULT_CAPACITY, Fingerprint, ResultCache
from .acceleration.numba_backend import warm_up
from .acceleration.parallel import GridEvaluator
from .core.fractal_types import FractalDescriptor, Mandelbrot
from .core.math_functions import Grid
from .core.quality import DerivedQuality, PolicyTuning, QualityPolicy, derive_quality
from .core.viewport import Viewport

logger = logging.getLogger(__name__)


@dataclass
class EngineConfig:
    """Configuration for the fractal engine."""

    # Cache
    enable_caching: bool = True
    cache_capacity: int = DEFAULT_CAPACITY

    # Parallelism
    use_parallel_processing: bool = True
    num_workers: Optional[int] = None
    tile_size: int = 32

    # Quality policy constants
    tuning: PolicyTuning = field(default_factory=PolicyTuning)

    def validate(self):
        """Validate configuration parameters."""
        if self.cache_capacity < 1:
            raise ValueError("cache_capacity must be >= 1")

        if self.num_workers is not None and self.num_workers < 1:
            raise ValueError("num_workers must be >= 1")

        if self.tile_size < 1:
            raise ValueError("tile_size must be >= 1")


class FractalEngine:
    """Cache-aware fractal frame computation."""

    def __init__(self, config: Optional[EngineConfig] = None,
                 evaluator: Optional[GridEvaluator] = None):
        """
        Initialize the engine.

        Args:
            config: Engine configuration (uses defaults if None)
            evaluator: Grid evaluator to use instead of building one from config
        """
        self.config = config or EngineConfig()
        self.config.validate()

        if evaluator is None:
            workers = self.config.num_workers if self.config.use_parallel_processing else 1
            evaluator = GridEvaluator(workers, self.config.tile_size)
        self.evaluator = evaluator
        self.cache = ResultCache(self.config.cache_capacity)

        self._background: Optional[ThreadPoolExecutor] = None
        self.last_frame_seconds = 0.0

        logger.info(f"FractalEngine initialized: caching={self.config.enable_caching}, "
                    f"capacity={self.config.cache_capacity}, workers={self.evaluator.num_workers}")

    def derive_quality(self, viewport: Viewport, policy: QualityPolicy) -> DerivedQuality:
        """Get the evaluator parameters the policy yields for a viewport."""
        return derive_quality(viewport.zoom, viewport.max_iterations, policy, self.config.tuning)

    def compute_frame(self, descriptor: FractalDescriptor, viewport: Viewport,
                      policy: Optional[QualityPolicy] = None) -> Grid:
        """
        Compute or fetch the Grid for a frame.

        Args:
            descriptor: Fractal to evaluate
            viewport: Display grid and its position on the plane
            policy: Quality switches (defaults if None)

        Returns:
            Read-only Grid of exactly viewport.width x viewport.height cells
        """
        policy = policy or QualityPolicy()
        start_time = time.perf_counter()

        def compute() -> Grid:
            derived = self.derive_quality(viewport, policy)
            logger.debug(f"Computing {descriptor.name} frame {viewport.width}x{viewport.height} "
                         f"zoom={viewport.zoom:g}: {derived}")
            return self.evaluator.evaluate_viewport(descriptor, viewport, derived)

        if self.config.enable_caching:
            grid = self.cache.get_or_compute(Fingerprint(descriptor, viewport, policy), compute)
        else:
            grid = compute()

        self.last_frame_seconds = time.perf_counter() - start_time
        return grid

    def submit_frame(self, descriptor: FractalDescriptor, viewport: Viewport,
                     policy: Optional[QualityPolicy] = None) -> Future:
        """
        Compute a frame in the background.

        The result lands in the cache even if the caller stops waiting for
        the returned Future, e.g. because the view moved on.
        """
        if self._background is None:
            self._background = ThreadPoolExecutor(max_workers=1, thread_name_prefix="termfractal-frame")
        return self._background.submit(self.compute_frame, descriptor, viewport, policy)

    def clear_cache(self):
        """Purge all cached frames."""
        self.cache.clear()

    def cache_stats(self) -> Dict[str, int]:
        """Get entry, hit and miss counts of the frame cache."""
        return self.cache.get_stats()

    def set_cache_capacity(self, capacity: int):
        """Resize the frame cache."""
        self.config.cache_capacity = capacity
        self.cache.set_capacity(capacity)

    def shutdown(self):
        """Stop the background frame worker."""
        if self._background is not None:
            self._background.shutdown(wait=True)
            self._background = None

    def __enter__(self) -> 'FractalEngine':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()

    def benchmark(self, width: int = 160, height: int = 80, max_iterations: int = 500,
                  descriptor: Optional[FractalDescriptor] = None) -> Dict[str, Any]:
        """
        Measure uncached evaluation speed.

        Args:
            width, height: Frame size in cells
            max_iterations: Iteration budget
            descriptor: Fractal to evaluate (Mandelbrot if None)

        Returns:
            Timing results
        """
        descriptor = descriptor or Mandelbrot()
        viewport = Viewport(width, height, complex(-0.5, 0.0), 1.0, max_iterations)
        policy = QualityPolicy(adaptive_sampling=False)
        derived = self.derive_quality(viewport, policy)

        logger.info("Starting performance benchmark")
        warm_up()

        start_time = time.perf_counter()
        self.evaluator.evaluate_viewport(descriptor, viewport, derived)
        elapsed = time.perf_counter() - start_time

        return {
            'resolution': f"{width}x{height}",
            'fractal': descriptor.name,
            'max_iterations': derived.effective_max_iterations,
            'num_workers': self.evaluator.num_workers,
            'tile_size': self.evaluator.tile_size,
            'time': elapsed,
            'cells_per_second': (width * height) / elapsed if elapsed > 0 else float('inf'),
        }
