"""Statistical validation of a recovered mask against a known keystream."""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray
from scipy.stats import binom

from keystream_cracker.utils.bit_helpers import bit_planes
from keystream_cracker.utils.constants import BIT_WIDTH, BMAX


class Validator:
    """Compare a recovered mask with the true keystream of a synthetic run.

    Computes per-bit matches, per-column match rates restricted to the
    bits below BMAX (the ones the annealer toggles individually), and a
    binomial confidence interval on the column match rate.
    """

    def __init__(
        self,
        keystream: NDArray[np.uint32],
        mask: NDArray[np.uint32],
        bmax: int = BMAX,
        bit_width: int = BIT_WIDTH,
    ) -> None:
        self.keystream = np.asarray(keystream, dtype=np.uint32)
        self.mask = np.asarray(mask, dtype=np.uint32)
        if self.keystream.shape != self.mask.shape:
            raise ValueError(
                f"Shape mismatch: keystream {self.keystream.shape}, mask {self.mask.shape}"
            )
        self.bmax = bmax
        self.bit_width = bit_width

    def bit_matches(self) -> NDArray[np.bool_]:
        """(measures, bit_width) boolean table, True where the bit is right."""
        residual = np.bitwise_xor(self.keystream, self.mask)
        return bit_planes(residual, self.bit_width) == 0

    def bit_match_rate(self) -> float:
        """Fraction of all (column, bit) positions recovered."""
        matches = self.bit_matches()
        if matches.size == 0:
            return 0.0
        return float(matches.mean())

    def column_matches(self) -> NDArray[np.bool_]:
        """True for columns whose bits below bmax are all right."""
        return np.all(self.bit_matches()[:, :self.bmax], axis=1)

    def column_match_rate(self) -> float:
        """Fraction of columns whose bits below bmax are all right."""
        cols = self.column_matches()
        if cols.size == 0:
            return 0.0
        return float(cols.mean())

    def exact_match_rate(self) -> float:
        """Fraction of columns whose whole key is right."""
        if self.mask.size == 0:
            return 0.0
        return float(np.mean(self.mask == self.keystream))

    def mismatched_columns(self) -> list[int]:
        return [int(i) for i in np.flatnonzero(~self.column_matches())]

    def confidence_interval(self, alpha: float = 0.95) -> tuple[float, float]:
        """Binomial confidence interval on the column match rate.

        Returns (lower, upper) bounds as fractions in [0, 1].
        """
        n = self.mask.size
        if n == 0:
            return (0.0, 0.0)
        p_hat = self.column_match_rate()
        lo, hi = binom.interval(alpha, n, p_hat)
        return (float(lo) / n, float(hi) / n)

    def summary(self) -> dict:
        """Full validation summary."""
        return {
            "column_match_rate": self.column_match_rate(),
            "bit_match_rate": self.bit_match_rate(),
            "exact_match_rate": self.exact_match_rate(),
            "confidence_interval": self.confidence_interval(),
            "mismatched_columns": len(self.mismatched_columns()),
        }
