"""Fractal descriptors, viewports, quality policy and result types."""
