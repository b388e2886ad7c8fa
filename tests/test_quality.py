"""Tests for the quality and performance policy."""

import itertools

import numpy as np
import pytest

from termfractal.core.quality import (
    DerivedQuality, PolicyTuning, QualityPolicy, adaptive_stride, derive_quality,
    scaled_iterations,
)

ZOOMS = np.logspace(-3, 15, 400)
POLICIES = [
    QualityPolicy(performance_mode=p, quality_mode=q, adaptive_sampling=a, supersample_factor=s)
    for p, q, a, s in itertools.product([False, True], [False, True], [False, True], [1, 2])
]


def test_defaults_at_unit_zoom():
    assert derive_quality(1.0, 100, QualityPolicy()) == DerivedQuality(
        effective_max_iterations=100, sample_stride=1, supersample_factor=1, fine_gradation=False)


@pytest.mark.parametrize("zoom, iterations, stride", [
    (0.01, 100, 1),
    (1.0, 100, 1),
    (9.99, 149, 1),
    (10.0, 150, 2),
    (999.0, 249, 2),
    (1000.0, 250, 3),
    (1e6, 400, 3),
])
def test_iterations_and_stride_grow_with_zoom(zoom, iterations, stride):
    derived = derive_quality(zoom, 100, QualityPolicy())
    assert derived.effective_max_iterations == iterations
    assert derived.sample_stride == stride


@pytest.mark.parametrize("policy", POLICIES)
@pytest.mark.parametrize("base", [1, 50, 100, 3000])
def test_zoom_never_reduces_stride_or_iterations(policy, base):
    previous = derive_quality(ZOOMS[0], base, policy)
    for zoom in ZOOMS[1:]:
        derived = derive_quality(zoom, base, policy)
        assert derived.sample_stride >= previous.sample_stride
        assert derived.effective_max_iterations >= previous.effective_max_iterations
        previous = derived


def test_derivation_is_deterministic():
    policy = QualityPolicy(quality_mode=True, supersample_factor=2)
    assert all(derive_quality(123.4, 250, policy) == derive_quality(123.4, 250, policy)
               for _ in range(10))


def test_performance_mode_caps_iterations_and_forces_stride():
    derived = derive_quality(1.0, 1000, QualityPolicy(performance_mode=True, adaptive_sampling=False))
    assert derived.effective_max_iterations == 256
    assert derived.sample_stride == 2


def test_performance_mode_keeps_larger_adaptive_stride():
    derived = derive_quality(1e4, 100, QualityPolicy(performance_mode=True))
    assert derived.sample_stride == 3


def test_performance_mode_disables_supersampling():
    derived = derive_quality(1.0, 100, QualityPolicy(performance_mode=True, supersample_factor=2))
    assert derived.supersample_factor == 1


def test_quality_mode_raises_ceiling_only():
    normal = derive_quality(1e200, 100, QualityPolicy())
    quality = derive_quality(1e200, 100, QualityPolicy(quality_mode=True))
    assert normal.effective_max_iterations == 2000
    assert quality.effective_max_iterations == 5000
    assert quality.sample_stride == normal.sample_stride
    assert quality.fine_gradation and not normal.fine_gradation


def test_quality_mode_combines_with_supersampling():
    derived = derive_quality(5.0, 100, QualityPolicy(quality_mode=True, supersample_factor=2))
    assert derived.supersample_factor == 2
    assert derived.fine_gradation


def test_ceiling_never_below_viewport_budget():
    assert derive_quality(1.0, 3000, QualityPolicy()).effective_max_iterations == 3000
    assert derive_quality(1.0, 8000, QualityPolicy(quality_mode=True)).effective_max_iterations == 8000


def test_adaptive_sampling_off_keeps_full_density():
    assert derive_quality(1e9, 100, QualityPolicy(adaptive_sampling=False)).sample_stride == 1


def test_custom_tuning():
    tuning = PolicyTuning(iterations_per_decade=100, adaptive_thresholds=((2.0, 4),))
    assert scaled_iterations(10, 100.0, tuning) == 210
    assert adaptive_stride(1.5, tuning) == 1
    assert adaptive_stride(2.0, tuning) == 4


@pytest.mark.parametrize("kwargs", [
    dict(iterations_per_decade=-1),
    dict(performance_ceiling=0),
    dict(performance_stride=0),
    dict(adaptive_thresholds=((100.0, 2), (10.0, 3))),
    dict(adaptive_thresholds=((10.0, 3), (100.0, 2))),
])
def test_invalid_tuning(kwargs):
    with pytest.raises(ValueError):
        PolicyTuning(**kwargs)


@pytest.mark.parametrize("factor", [0, 3, 4, True])
def test_supersample_factor_must_be_one_or_two(factor):
    with pytest.raises(ValueError):
        QualityPolicy(supersample_factor=factor)
