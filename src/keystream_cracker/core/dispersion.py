"""Dispersion (smoothness energy) of a sample matrix.

The energy of a matrix is the mean squared step between adjacent columns,
taken over every row and every one of the measures - 1 column pairs:

    E = sum_r sum_c (x[r, c] - x[r, c-1])^2 / (days * (measures - 1))

A correctly decrypted, physically smooth series has a small E; a wrong
keystream bit injects column-sized jumps and inflates it.

The sum is split into per-pair totals (one float per adjacent column
pair). Each total is reduced over a contiguous row of samples, so a
total computed from a narrow column slice is bit-identical to the same
total computed from the full matrix. The annealer relies on this to
update two pairs at a time without drifting from a full recomputation.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray


def pair_energies(matrix: NDArray[np.uint32]) -> NDArray[np.float64]:
    """Sum over rows of the squared step for each adjacent column pair.

    Args:
        matrix: (days, n) samples, n >= 2.

    Returns:
        (n - 1,) float64 array; element i covers columns (i, i + 1).
    """
    columns = np.ascontiguousarray(np.asarray(matrix).T, dtype=np.float64)
    steps = np.diff(columns, axis=0)
    return np.square(steps).sum(axis=1)


def total_energy(pairs: NDArray[np.float64], days: int) -> float:
    """Normalize a vector of pair energies into the dispersion value."""
    return float(pairs.sum() / (days * len(pairs)))


def dispersion(matrix: NDArray[np.uint32]) -> float:
    """Dispersion of a (days, measures) sample matrix. Lower is smoother."""
    matrix = np.asarray(matrix)
    if matrix.ndim != 2 or matrix.shape[1] < 2:
        raise ValueError(f"Need a 2-D matrix with >= 2 columns, got shape {matrix.shape}")
    return total_energy(pair_energies(matrix), matrix.shape[0])
