"""Tests for the text-cell renderer."""

import numpy as np

from termfractal.api import FractalEngine
from termfractal.core.fractal_types import Mandelbrot
from termfractal.core.math_functions import Grid
from termfractal.core.quality import QualityPolicy
from termfractal.core.viewport import Viewport
from termfractal.rendering.text import INTERIOR, RAMP, TextRenderer


def make_grid():
    iterations = np.array([[0.0, 5.0], [100.0, 100.0]])
    escaped = np.array([[1.0, 1.0], [0.0, 0.0]])
    smooth = np.array([[0.0, 60.0], [100.0, 100.0]])
    interpolated = np.zeros((2, 2), dtype=bool)
    return Grid(iterations, escaped, smooth, interpolated, 100)


def test_ascii_rendering():
    renderer = TextRenderer(use_colors=False, use_unicode=False)
    assert renderer.render_lines(make_grid()) == [" !", "##"]
    assert renderer.render_to_string(make_grid()) == " !\n##\n"


def test_unicode_interior_is_solid():
    renderer = TextRenderer(use_colors=False, use_unicode=True)
    assert renderer.render_lines(make_grid())[1] == INTERIOR.unicode_char * 2


def test_level_indices_mark_interior():
    levels = TextRenderer().level_indices(make_grid())
    assert levels.tolist() == [[0, 4], [-1, -1]]


def test_fine_gradation_uses_smooth_values():
    coarse = TextRenderer(fine_gradation=False).level_indices(make_grid())
    fine = TextRenderer(fine_gradation=True).level_indices(make_grid())
    assert fine[0, 1] > coarse[0, 1]
    assert fine[0, 1] < len(RAMP)


def test_colours_use_ansi_sequences():
    line = TextRenderer(use_colors=True, use_unicode=False).render_lines(make_grid())[0]
    assert "\x1b[" in line


def test_frame_renders_one_line_per_row():
    grid = FractalEngine().compute_frame(Mandelbrot(), Viewport(33, 11), QualityPolicy())
    lines = TextRenderer(use_colors=False).render_lines(grid)
    assert len(lines) == 11
    assert all(len(line) == 33 for line in lines)


def test_legend_lists_every_level():
    assert len(TextRenderer(use_colors=False).legend()) == len(RAMP) + 1
