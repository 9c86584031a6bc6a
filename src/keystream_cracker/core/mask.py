"""Mask application: XOR a per-column keystream guess into every row."""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray


def apply_mask(
    ciphertext: NDArray[np.uint32],
    mask: NDArray[np.uint32],
) -> NDArray[np.uint32]:
    """Decrypt a sample matrix with a candidate mask.

    decrypted[r, c] = ciphertext[r, c] ^ mask[c]. Always returns a fresh
    array; the inputs are not modified.

    Args:
        ciphertext: (days, measures) sample matrix.
        mask: (measures,) candidate keystream.
    """
    ciphertext = np.asarray(ciphertext, dtype=np.uint32)
    mask = np.asarray(mask, dtype=np.uint32)
    if mask.shape != ciphertext.shape[1:]:
        raise ValueError(
            f"Mask of shape {mask.shape} does not match {ciphertext.shape[1]} columns"
        )
    return np.bitwise_xor(ciphertext, mask[np.newaxis, :])


def required_bit_width(decrypted: NDArray[np.uint32]) -> int:
    """ceil(log2(v)) of the largest sample.

    Reporting metric only. Since ceil(log2(.)) is monotonic only the
    maximum matters.
    """
    peak = int(np.max(decrypted))
    if peak <= 0:
        raise ValueError("Bit width is undefined for a matrix without positive samples")
    return int(np.ceil(np.log2(peak)))
