"""Tests for the cache-aware frame API."""

import threading
import time

import numpy as np
import pytest

from termfractal import (
    BurningShip, EngineConfig, FractalEngine, GridEvaluator, Julia, Mandelbrot, Multibrot,
    QualityPolicy, Tricorn, Viewport,
)


class CountingEvaluator(GridEvaluator):
    """Grid evaluator that counts evaluations and can hold them at a gate."""

    def __init__(self, gate=None):
        super().__init__(num_workers=2, tile_size=16)
        self.gate = gate
        self.calls = 0
        self._lock = threading.Lock()

    def evaluate_viewport(self, descriptor, viewport, derived):
        with self._lock:
            self.calls += 1
        if self.gate is not None:
            self.gate.wait(5)
        return super().evaluate_viewport(descriptor, viewport, derived)


@pytest.fixture
def engine():
    engine = FractalEngine(EngineConfig(num_workers=2, tile_size=16))
    yield engine
    engine.shutdown()


@pytest.mark.parametrize("descriptor", [
    Mandelbrot(), Julia(c=complex(-0.7, 0.27015)), BurningShip(), Tricorn(), Multibrot(power=3),
])
@pytest.mark.parametrize("policy", [
    QualityPolicy(),
    QualityPolicy(supersample_factor=2),
    QualityPolicy(performance_mode=True),
    QualityPolicy(quality_mode=True, supersample_factor=2),
])
def test_frame_has_viewport_shape(engine, descriptor, policy):
    viewport = Viewport(41, 17, zoom=15.0)
    grid = engine.compute_frame(descriptor, viewport, policy)
    derived = engine.derive_quality(viewport, policy)
    assert grid.shape == (17, 41)
    assert grid.max_iterations == derived.effective_max_iterations
    assert 0 <= grid.iterations.min()
    assert grid.iterations.max() <= derived.effective_max_iterations


def test_repeat_frames_are_bit_identical(engine):
    viewport = Viewport(40, 20, center=complex(-0.745, 0.113), zoom=200.0)
    policy = QualityPolicy(supersample_factor=2)
    first = engine.compute_frame(Mandelbrot(), viewport, policy)
    assert engine.compute_frame(Mandelbrot(), viewport, policy) is first

    engine.clear_cache()
    recomputed = engine.compute_frame(Mandelbrot(), viewport, policy)
    assert recomputed is not first
    assert recomputed == first

    single = FractalEngine(EngineConfig(num_workers=1, tile_size=64))
    assert single.compute_frame(Mandelbrot(), viewport, policy) == first


def test_default_policy(engine):
    grid = engine.compute_frame(Mandelbrot(), Viewport(10, 5))
    assert grid == engine.compute_frame(Mandelbrot(), Viewport(10, 5), QualityPolicy())


def test_cache_stats(engine):
    viewport = Viewport(20, 10)
    engine.compute_frame(Mandelbrot(), viewport)
    engine.compute_frame(Mandelbrot(), viewport)
    engine.compute_frame(Tricorn(), viewport)
    assert engine.cache_stats() == {"entry_count": 2, "hit_count": 1, "miss_count": 2}

    engine.clear_cache()
    assert engine.cache_stats()["entry_count"] == 0


def test_least_recently_used_frame_is_recomputed():
    evaluator = CountingEvaluator()
    engine = FractalEngine(EngineConfig(cache_capacity=2), evaluator=evaluator)
    frames = [Viewport(12, 6, zoom=zoom) for zoom in (1.0, 2.0, 3.0)]
    for viewport in frames:
        engine.compute_frame(Mandelbrot(), viewport)
    assert evaluator.calls == 3

    engine.compute_frame(Mandelbrot(), frames[2])
    assert evaluator.calls == 3
    engine.compute_frame(Mandelbrot(), frames[0])
    assert evaluator.calls == 4


def test_concurrent_identical_requests_compute_once():
    gate = threading.Event()
    evaluator = CountingEvaluator(gate)
    engine = FractalEngine(EngineConfig(), evaluator=evaluator)
    viewport = Viewport(24, 12, zoom=3.0)
    results = [None] * 6

    def request(index):
        results[index] = engine.compute_frame(Julia(c=0.3 + 0.5j), viewport, QualityPolicy())

    threads = [threading.Thread(target=request, args=(i,)) for i in range(6)]
    for thread in threads:
        thread.start()

    deadline = time.monotonic() + 5
    while engine.cache_stats()["hit_count"] < 5 and time.monotonic() < deadline:
        time.sleep(0.005)
    gate.set()
    for thread in threads:
        thread.join(10)

    assert evaluator.calls == 1
    assert all(result is results[0] for result in results)


def test_caching_can_be_disabled():
    evaluator = CountingEvaluator()
    engine = FractalEngine(EngineConfig(enable_caching=False), evaluator=evaluator)
    first = engine.compute_frame(Mandelbrot(), Viewport(10, 5))
    second = engine.compute_frame(Mandelbrot(), Viewport(10, 5))
    assert evaluator.calls == 2
    assert first == second
    assert engine.cache_stats()["entry_count"] == 0


def test_submit_frame_lands_in_cache(engine):
    viewport = Viewport(30, 15, zoom=4.0)
    future = engine.submit_frame(Tricorn(), viewport)
    grid = future.result(timeout=30)
    assert grid.shape == (15, 30)
    assert engine.compute_frame(Tricorn(), viewport) is grid
    assert engine.cache_stats()["hit_count"] == 1


def test_set_cache_capacity(engine):
    for zoom in (1.0, 2.0, 3.0):
        engine.compute_frame(Mandelbrot(), Viewport(8, 4, zoom=zoom))
    engine.set_cache_capacity(1)
    assert engine.cache_stats()["entry_count"] == 1
    assert engine.config.cache_capacity == 1


def test_zoom_enables_adaptive_sampling(engine):
    viewport = Viewport(30, 12, center=complex(-0.745, 0.113), zoom=100.0)
    sparse = engine.compute_frame(Mandelbrot(), viewport, QualityPolicy())
    dense = engine.compute_frame(Mandelbrot(), viewport, QualityPolicy(adaptive_sampling=False))
    assert sparse.interpolated.any()
    assert not dense.interpolated.any()
    assert np.array_equal(sparse.iterations[~sparse.interpolated], dense.iterations[~sparse.interpolated])


def test_performance_mode_caps_iterations(engine):
    grid = engine.compute_frame(Mandelbrot(), Viewport(20, 10, max_iterations=1000),
                                QualityPolicy(performance_mode=True))
    assert grid.max_iterations == 256
    assert grid.iterations.max() <= 256


def test_last_frame_seconds_is_recorded(engine):
    engine.compute_frame(Mandelbrot(), Viewport(10, 5))
    assert engine.last_frame_seconds >= 0.0


def test_benchmark(engine):
    results = engine.benchmark(20, 10, 50, Multibrot(power=3))
    assert results["resolution"] == "20x10"
    assert results["fractal"] == "multibrot"
    assert results["max_iterations"] == 50
    assert results["cells_per_second"] > 0
    assert engine.cache_stats()["miss_count"] == 0


@pytest.mark.parametrize("kwargs", [
    dict(cache_capacity=0), dict(num_workers=0), dict(tile_size=0),
])
def test_invalid_engine_config(kwargs):
    with pytest.raises(ValueError):
        FractalEngine(EngineConfig(**kwargs))


def test_engine_as_context_manager_stops_background_worker():
    with FractalEngine(EngineConfig(num_workers=1)) as engine:
        grid = engine.submit_frame(Mandelbrot(), Viewport(12, 6)).result(timeout=30)
        assert engine._background is not None
    assert engine._background is None
    assert engine.compute_frame(Mandelbrot(), Viewport(12, 6)) is grid


def test_context_manager_shuts_down_on_error():
    engine = FractalEngine(EngineConfig(num_workers=1))
    with pytest.raises(RuntimeError):
        with engine:
            engine.submit_frame(Mandelbrot(), Viewport(8, 4)).result(timeout=30)
            raise RuntimeError("interrupted")
    assert engine._background is None
