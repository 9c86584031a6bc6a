"""Recovery engine: samples, mask application, dispersion, estimation, annealing."""
