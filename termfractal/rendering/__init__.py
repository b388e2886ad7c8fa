"""Text-cell rendering of computed grids."""
