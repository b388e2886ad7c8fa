"""
Text-cell rendering of computed grids.

Maps each cell of a Grid to a character and a terminal colour. This is a
thin consumer of the engine's output; it never calls the kernel.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import click
import numpy as np

from ..core.math_functions import Grid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RampLevel:
    """One step of the character ramp."""
    unicode_char: str
    ascii_char: str
    color: Optional[str]


# Ordered from fastest escape to slowest
RAMP: Tuple[RampLevel, ...] = (
    RampLevel(' ', ' ', None),
    RampLevel('░', '.', 'bright_black'),
    RampLevel('▒', ':', 'white'),
    RampLevel('▓', ';', 'bright_white'),
    RampLevel('█', '!', 'blue'),
    RampLevel('█', '|', 'cyan'),
    RampLevel('█', '$', 'green'),
    RampLevel('█', '@', 'yellow'),
    RampLevel('█', '&', 'red'),
    RampLevel('█', '%', 'magenta'),
    RampLevel('█', '*', 'bright_red'),
)
INTERIOR = RampLevel('█', '#', 'bright_magenta')


class TextRenderer:
    """Render grids as lines of (optionally coloured) text."""

    def __init__(self, use_colors: bool = True, use_unicode: bool = True,
                 fine_gradation: bool = False):
        """
        Initialize the renderer.

        Args:
            use_colors: Emit ANSI colour codes
            use_unicode: Use block characters instead of ASCII
            fine_gradation: Pick ramp levels from smooth iteration counts
        """
        self.use_colors = use_colors
        self.use_unicode = use_unicode
        self.fine_gradation = fine_gradation

    def level_indices(self, grid: Grid) -> np.ndarray:
        """
        Get the ramp level of every cell; -1 marks interior cells.

        Escape values are scaled logarithmically so that the slow-escaping
        boundary region keeps most of the ramp.
        """
        values = grid.smooth if self.fine_gradation else grid.iterations
        scale = np.log1p(max(grid.max_iterations, 1))
        normalized = np.log1p(np.clip(values, 0, None)) / scale
        levels = np.minimum((normalized * len(RAMP)).astype(np.int64), len(RAMP) - 1)
        return np.where(grid.escaped >= 0.5, levels, -1)

    def _glyph(self, level: int) -> str:
        ramp_level = INTERIOR if level < 0 else RAMP[level]
        char = ramp_level.unicode_char if self.use_unicode else ramp_level.ascii_char
        if self.use_colors and ramp_level.color:
            return click.style(char, fg=ramp_level.color)
        return char

    def render_lines(self, grid: Grid) -> List[str]:
        """Render a grid to one string per row."""
        glyphs = {}
        lines = []
        for row in self.level_indices(grid):
            chars = []
            for level in row:
                level = int(level)
                if level not in glyphs:
                    glyphs[level] = self._glyph(level)
                chars.append(glyphs[level])
            lines.append("".join(chars))
        return lines

    def render_to_string(self, grid: Grid) -> str:
        """Render a grid to a newline-terminated block of text."""
        return "".join(line + "\n" for line in self.render_lines(grid))

    def legend(self) -> List[str]:
        """Describe the ramp from fast escape to interior."""
        entries = [f"{self._glyph(i)} level {i}" for i in range(len(RAMP))]
        entries.append(f"{self._glyph(-1)} interior")
        return entries
