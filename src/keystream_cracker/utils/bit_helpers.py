"""Bit manipulation utilities for the Keystream Cracker."""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from keystream_cracker.utils.constants import BIT_WIDTH


def width_mask(bit_width: int = BIT_WIDTH) -> int:
    """All-ones value covering the low bit_width bits."""
    return (1 << bit_width) - 1


def bit_toggle(bit: int, bmax: int, bit_width: int = BIT_WIDTH) -> np.uint32:
    """Toggle value for a bit-group adjustment.

    bit < bmax flips exactly that bit. bit == bmax flips every bit at or
    above it, truncated to the sample width.
    """
    if not 0 <= bit <= bmax:
        raise ValueError(f"bit must be in [0, {bmax}], got {bit}")
    if bit == bmax:
        return np.uint32(~((1 << bit) - 1) & width_mask(bit_width))
    return np.uint32(1 << bit)


def bit_planes(values: NDArray[np.uint32], bit_width: int = BIT_WIDTH) -> NDArray[np.uint8]:
    """Split integers into their bits.

    Args:
        values: array of any shape.

    Returns:
        array of shape values.shape + (bit_width,) holding 0/1, LSB first.
    """
    values = np.asarray(values, dtype=np.uint32)
    shifts = np.arange(bit_width, dtype=np.uint32)
    return ((values[..., np.newaxis] >> shifts) & np.uint32(1)).astype(np.uint8)


def pack_bits(bits: NDArray[np.bool_]) -> NDArray[np.uint32]:
    """Inverse of bit_planes: (..., bit_width) booleans -> uint32, LSB first."""
    bits = np.asarray(bits, dtype=bool)
    weights = np.uint32(1) << np.arange(bits.shape[-1], dtype=np.uint32)
    return np.bitwise_or.reduce(
        np.where(bits, weights, np.uint32(0)), axis=-1
    ).astype(np.uint32)


def popcount(values: NDArray[np.uint32], bit_width: int = BIT_WIDTH) -> NDArray[np.int64]:
    """Number of set bits per element."""
    return bit_planes(values, bit_width).sum(axis=-1, dtype=np.int64)


def to_hex(values: NDArray[np.uint32], bit_width: int = BIT_WIDTH) -> list[str]:
    """Zero-padded hex strings, one per element."""
    digits = (bit_width + 3) // 4
    return [f"{int(v):0{digits}x}" for v in np.asarray(values).ravel()]
