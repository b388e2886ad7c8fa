"""
Quality and performance policy.

Turns the user's quality flags and the current zoom into the concrete
parameters the grid evaluator works with. The derivation is a pure
function: equal inputs always give equal derived parameters.
"""

import math
import logging
from dataclasses import dataclass, field
from typing import Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QualityPolicy:
    """User-facing quality switches."""

    performance_mode: bool = False
    quality_mode: bool = False
    adaptive_sampling: bool = True
    supersample_factor: int = 1

    def __post_init__(self):
        if self.supersample_factor not in (1, 2) or isinstance(self.supersample_factor, bool):
            raise ValueError(f"supersample_factor must be 1 or 2, got {self.supersample_factor!r}")


@dataclass(frozen=True)
class DerivedQuality:
    """Parameters consumed by the grid evaluator and the renderer."""

    effective_max_iterations: int
    sample_stride: int
    supersample_factor: int
    fine_gradation: bool


@dataclass(frozen=True)
class PolicyTuning:
    """
    Tuning constants of the quality policy.

    Attributes:
        iterations_per_decade: Extra iterations per factor of 10 in zoom
        normal_ceiling: Iteration ceiling in normal mode
        quality_ceiling: Iteration ceiling in quality mode
        performance_ceiling: Hard iteration cap in performance mode
        performance_stride: Minimum sample stride in performance mode
        adaptive_thresholds: (zoom, stride) pairs in ascending zoom order
    """

    iterations_per_decade: int = 50
    normal_ceiling: int = 2000
    quality_ceiling: int = 5000
    performance_ceiling: int = 256
    performance_stride: int = 2
    adaptive_thresholds: Tuple[Tuple[float, int], ...] = field(
        default=((10.0, 2), (1000.0, 3)))

    def __post_init__(self):
        if self.iterations_per_decade < 0:
            raise ValueError("iterations_per_decade must be >= 0")
        if min(self.normal_ceiling, self.quality_ceiling, self.performance_ceiling) < 1:
            raise ValueError("Iteration ceilings must be >= 1")
        if self.performance_stride < 1:
            raise ValueError("performance_stride must be >= 1")
        zooms = [zoom for zoom, _ in self.adaptive_thresholds]
        strides = [stride for _, stride in self.adaptive_thresholds]
        if zooms != sorted(zooms) or strides != sorted(strides) or any(s < 1 for s in strides):
            raise ValueError("adaptive_thresholds must ascend in both zoom and stride")


DEFAULT_TUNING = PolicyTuning()


def scaled_iterations(base_iterations: int, zoom: float, tuning: PolicyTuning = DEFAULT_TUNING) -> int:
    """Scale the base iteration budget with log10 of the zoom."""
    decades = max(0.0, math.log10(zoom))
    return base_iterations + int(tuning.iterations_per_decade * decades)


def adaptive_stride(zoom: float, tuning: PolicyTuning = DEFAULT_TUNING) -> int:
    """Get the sample stride for the zoom from the adaptive thresholds."""
    stride = 1
    for threshold, threshold_stride in tuning.adaptive_thresholds:
        if zoom >= threshold:
            stride = threshold_stride
    return stride


def derive_quality(zoom: float, base_iterations: int, policy: QualityPolicy,
                   tuning: PolicyTuning = DEFAULT_TUNING) -> DerivedQuality:
    """
    Derive evaluator parameters from the zoom and the quality switches.

    Args:
        zoom: Current viewport zoom
        base_iterations: Viewport's own iteration budget
        policy: User-facing quality switches
        tuning: Policy constants

    Returns:
        DerivedQuality with iteration cap, stride and supersample factor
    """
    iterations = scaled_iterations(base_iterations, zoom, tuning)

    if policy.performance_mode:
        ceiling = tuning.performance_ceiling
    elif policy.quality_mode:
        ceiling = max(tuning.quality_ceiling, base_iterations)
    else:
        ceiling = max(tuning.normal_ceiling, base_iterations)
    effective = max(1, min(iterations, ceiling))

    stride = 1
    if policy.adaptive_sampling:
        stride = adaptive_stride(zoom, tuning)
    if policy.performance_mode:
        stride = max(stride, tuning.performance_stride)

    supersample = 1 if policy.performance_mode else policy.supersample_factor

    return DerivedQuality(
        effective_max_iterations=effective,
        sample_stride=stride,
        supersample_factor=supersample,
        fine_gradation=policy.quality_mode,
    )
