"""Dataclass definitions for the Keystream Cracker."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray

from keystream_cracker.utils.constants import (
    BIT_WIDTH,
    BITCYCLES,
    BMAX,
    DAYS,
    ITERS,
    K,
    MEASURES,
    SIGNAL_SCALE,
    T0,
)


@dataclass
class CrackConfig:
    """Configuration for a recovery run."""

    days: int = DAYS
    measures: int = MEASURES
    n_iters: int = ITERS
    bmax: int = BMAX
    bit_cycles: int = BITCYCLES
    t0: float = T0
    k: float = K
    bit_width: int = BIT_WIDTH

    def __post_init__(self) -> None:
        if self.days < 1:
            raise ValueError(f"days must be >= 1, got {self.days}")
        if self.measures < 2:
            raise ValueError(f"measures must be >= 2, got {self.measures}")
        if self.n_iters < 1:
            raise ValueError(f"n_iters must be >= 1, got {self.n_iters}")
        if self.bit_cycles < 0:
            raise ValueError(f"bit_cycles must be >= 0, got {self.bit_cycles}")
        if not 0 < self.bit_width <= 32:
            raise ValueError(f"bit_width must be in [1, 32], got {self.bit_width}")
        if not 0 <= self.bmax < self.bit_width:
            raise ValueError(
                f"bmax must be in [0, {self.bit_width - 1}], got {self.bmax}"
            )

    @property
    def passes_per_iteration(self) -> int:
        return self.bit_cycles * self.bmax + 1


@dataclass
class SignalProfile:
    """Shape of the synthetic daily signal.

    Each day draws its own offset, amplitude and phase; samples follow a
    half sine wave across the day plus uniform noise, scaled to integers.
    With the defaults samples span roughly [56, 390], so many days cross
    256 and complementing the low byte is never as smooth as the signal.
    """

    mean_center: float = 20.0
    mean_spread: float = 20.0
    ampl_center: float = 6.0
    ampl_spread: float = 5.0
    phase_spread: float = 0.3  # fraction of pi
    noise: float = 1.0
    scale: float = SIGNAL_SCALE


@dataclass
class Scenario:
    """A synthetic plaintext / keystream / ciphertext triple."""

    plaintext: NDArray[np.uint32]
    keystream: NDArray[np.uint32]
    ciphertext: NDArray[np.uint32]


@dataclass
class PassReport:
    """Outcome of one bit-group adjustment pass."""

    bit: int
    temperature: float
    energy_before: float
    energy_after: float
    accepted: int  # columns whose toggle was kept
    proposals: int

    @property
    def change_percent(self) -> float:
        """Relative dispersion reduction in percent (positive = cooler)."""
        if self.energy_before == 0:
            return 0.0
        return 100.0 * (self.energy_before - self.energy_after) / self.energy_before

    @property
    def improved(self) -> bool:
        return self.energy_after <= self.energy_before


@dataclass
class IterationReport:
    """Summary of one outer annealing iteration."""

    step: int
    temperature: float
    energy: float
    passes: list[PassReport] = field(default_factory=list)

    @property
    def accepted(self) -> int:
        return sum(p.accepted for p in self.passes)


@dataclass
class CrackResult:
    """Complete results from a recovery run."""

    mask: NDArray[np.uint32]
    decrypted: NDArray[np.uint32]
    initial_mask: NDArray[np.uint32]
    initial_energy: float
    final_energy: float
    max_bit_width: int = 0
    trajectory: list[IterationReport] = field(default_factory=list)
