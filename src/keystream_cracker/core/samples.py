"""Sample matrices: validation, encryption and synthetic data generation."""

from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike, NDArray

from keystream_cracker.core.mask import apply_mask
from keystream_cracker.utils.constants import BIT_WIDTH
from keystream_cracker.utils.types import Scenario, SignalProfile


def as_sample_matrix(data: ArrayLike, bit_width: int = BIT_WIDTH) -> NDArray[np.uint32]:
    """Validate and convert data into a (days, measures) uint32 sample matrix.

    Every sample must lie in [1, 2**bit_width). Positivity keeps the
    log-scale bit-width diagnostic defined for every matrix built here.
    """
    arr = np.asarray(data)
    if arr.ndim != 2:
        raise ValueError(f"Sample matrix must be 2-D, got {arr.ndim}-D")
    days, measures = arr.shape
    if days < 1 or measures < 2:
        raise ValueError(
            f"Sample matrix needs >= 1 row and >= 2 columns, got {days}x{measures}"
        )
    if not np.issubdtype(arr.dtype, np.integer):
        if not np.all(np.isfinite(arr)) or np.any(arr != np.round(arr)):
            raise ValueError("Sample matrix must hold integers")
    values = arr.astype(np.int64) if arr.dtype != np.uint64 else arr
    if np.any(values <= 0):
        raise ValueError("Sample matrix values must be strictly positive")
    if np.any(values >= (1 << bit_width)):
        raise ValueError(f"Sample matrix values must fit in {bit_width} bits")
    return values.astype(np.uint32)


def encrypt(plaintext: NDArray[np.uint32], keystream: NDArray[np.uint32]) -> NDArray[np.uint32]:
    """XOR each column of plaintext with its keystream value.

    XOR is its own inverse, so decryption is the same operation.
    """
    return apply_mask(plaintext, keystream)


def srand(rng: np.random.Generator, size: int | tuple[int, ...] | None = None) -> NDArray[np.float64]:
    """Uniform samples in [-0.5, 0.5)."""
    return rng.random(size) - 0.5


def generate_keystream(
    measures: int,
    rng: np.random.Generator,
    bit_width: int = BIT_WIDTH,
) -> NDArray[np.uint32]:
    """One uniformly random key per column."""
    return rng.integers(0, 1 << bit_width, size=measures, dtype=np.uint64).astype(np.uint32)


def generate_plaintext(
    days: int,
    measures: int,
    rng: np.random.Generator,
    profile: SignalProfile | None = None,
    bit_width: int = BIT_WIDTH,
) -> NDArray[np.uint32]:
    """Smooth, noisy daily series.

    Each day is a half sine period across the columns with a per-day
    offset, amplitude and phase, plus per-sample uniform noise:

        x[d, i] = round((mean_d + ampl_d * sin(phase_d + pi * i / measures)
                         + noise * s) * scale)

    Returns:
        (days, measures) validated sample matrix.
    """
    if profile is None:
        profile = SignalProfile()

    mean = profile.mean_center + profile.mean_spread * srand(rng, (days, 1))
    ampl = profile.ampl_center + profile.ampl_spread * srand(rng, (days, 1))
    phase = profile.phase_spread * np.pi * srand(rng, (days, 1))

    angle = phase + np.arange(measures, dtype=np.float64)[np.newaxis, :] / measures * np.pi
    noise = profile.noise * srand(rng, (days, measures))
    values = np.rint((mean + ampl * np.sin(angle) + noise) * profile.scale)

    return as_sample_matrix(values, bit_width)


def make_scenario(
    days: int,
    measures: int,
    rng: np.random.Generator,
    profile: SignalProfile | None = None,
    bit_width: int = BIT_WIDTH,
) -> Scenario:
    """Generate plaintext and keystream, then encrypt.

    Key columns that would map some plaintext sample to zero are redrawn,
    so the ciphertext is a valid sample matrix too.
    """
    plaintext = generate_plaintext(days, measures, rng, profile, bit_width)
    keystream = generate_keystream(measures, rng, bit_width)

    zero_cols = np.any(plaintext == keystream[np.newaxis, :], axis=0)
    while np.any(zero_cols):
        keystream[zero_cols] = generate_keystream(int(zero_cols.sum()), rng, bit_width)
        zero_cols = np.any(plaintext == keystream[np.newaxis, :], axis=0)

    ciphertext = as_sample_matrix(encrypt(plaintext, keystream), bit_width)
    return Scenario(plaintext=plaintext, keystream=keystream, ciphertext=ciphertext)
