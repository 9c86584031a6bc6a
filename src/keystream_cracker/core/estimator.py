"""Bit-mean estimator: a one-shot keystream guess from ciphertext statistics.

For the high bits of a bounded, slowly varying signal the plaintext bit is
almost always the same (usually 0) on every day, so the majority value of
the ciphertext bit in a column is the keystream bit itself. Low bits are
close to coin flips and the guess there is only a starting point.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from keystream_cracker.utils.bit_helpers import bit_planes, pack_bits
from keystream_cracker.utils.constants import BIT_WIDTH


def bit_counts(ciphertext: NDArray[np.uint32], bit_width: int = BIT_WIDTH) -> NDArray[np.int64]:
    """Number of rows with each bit set, per column. Shape (measures, bit_width)."""
    return bit_planes(ciphertext, bit_width).sum(axis=0, dtype=np.int64)


def bit_probabilities(ciphertext: NDArray[np.uint32], bit_width: int = BIT_WIDTH) -> NDArray[np.float64]:
    """Fraction of rows with each bit set, per column.

    Returns:
        (measures, bit_width) array in [0, 1]; [c, k] is bit k of column c.
    """
    ciphertext = np.asarray(ciphertext)
    return bit_counts(ciphertext, bit_width) / ciphertext.shape[0]


def estimate_mask(ciphertext: NDArray[np.uint32], bit_width: int = BIT_WIDTH) -> NDArray[np.uint32]:
    """Majority-vote keystream guess.

    Bit k of column c is set when p[c, k] >= 0.5. The comparison is done on
    integer counts, so an exact tie always sets the bit.
    """
    ciphertext = np.asarray(ciphertext)
    days = ciphertext.shape[0]
    majority = 2 * bit_counts(ciphertext, bit_width) >= days
    return pack_bits(majority)
