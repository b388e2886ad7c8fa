"""JIT kernels, tile-parallel evaluation and the frame cache."""
