"""Simulated annealing refinement of a keystream guess.

The refiner owns the search state: a read-only copy of the ciphertext,
the candidate mask, the matrix it decrypts to and that matrix's
dispersion. Every outer iteration runs BITCYCLES * BMAX + 1 bit-group
passes at a fixed temperature

    T(j) = T0 * (exp(-K * j / (ITERS - 1)) - exp(-K))

which decays from ~T0 to exactly 0 at the last iteration. A pass picks a
toggle (one bit below BMAX, or every bit from BMAX up) and sweeps the
columns in order, keeping or undoing the toggle per column by the
Metropolis rule against the running energy.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Protocol

import numpy as np
from numpy.typing import NDArray

from keystream_cracker.core.dispersion import dispersion, pair_energies, total_energy
from keystream_cracker.core.estimator import estimate_mask
from keystream_cracker.core.mask import apply_mask, required_bit_width
from keystream_cracker.utils.bit_helpers import bit_toggle
from keystream_cracker.utils.types import (
    CrackConfig,
    CrackResult,
    IterationReport,
    PassReport,
)


class Reporter(Protocol):
    """Receives progress notifications from the refiner."""

    def iteration_started(self, step: int, n_iters: int, temperature: float) -> None: ...

    def pass_finished(self, report: PassReport) -> None: ...

    def iteration_finished(self, report: IterationReport) -> None: ...


class AnnealingRefiner:
    """Refine a candidate mask by simulated annealing on the dispersion.

    Two recomputation modes share the same proposal and acceptance
    sequence:

    - incremental (default): a proposal re-XORs one column and rebuilds
      the two adjacent pair energies.
    - reference: a proposal re-applies the whole mask and recomputes the
      full dispersion.

    Both produce bit-identical energies, so a seeded run takes exactly the
    same decisions in either mode.
    """

    def __init__(
        self,
        ciphertext: NDArray[np.uint32],
        mask: NDArray[np.uint32] | None = None,
        config: CrackConfig | None = None,
        rng: np.random.Generator | None = None,
        incremental: bool = True,
        reporter: Reporter | None = None,
    ) -> None:
        self.ciphertext = np.array(ciphertext, dtype=np.uint32)
        self.ciphertext.setflags(write=False)
        days, measures = self.ciphertext.shape
        self.config = config or CrackConfig(days=days, measures=measures)
        if (self.config.days, self.config.measures) != (days, measures):
            raise ValueError(
                f"Config is for {self.config.days}x{self.config.measures}, "
                f"ciphertext is {days}x{measures}"
            )
        self.rng = rng if rng is not None else np.random.default_rng()
        self.incremental = incremental
        self.reporter = reporter

        if mask is None:
            mask = estimate_mask(self.ciphertext, self.config.bit_width)
        self.mask = np.array(mask, dtype=np.uint32)
        if self.mask.shape != (measures,):
            raise ValueError(f"Mask must have shape ({measures},), got {self.mask.shape}")

        self.decrypted = apply_mask(self.ciphertext, self.mask)
        self._pairs = pair_energies(self.decrypted)
        self.energy = total_energy(self._pairs, days)

    @property
    def days(self) -> int:
        return self.ciphertext.shape[0]

    @property
    def measures(self) -> int:
        return self.ciphertext.shape[1]

    @staticmethod
    def temperature(step: int, n_iters: int, t0: float, k: float) -> float:
        """Annealing schedule T(j) = T0 * (exp(-K j / (N - 1)) - exp(-K))."""
        frac = step / max(n_iters - 1, 1)
        return float(t0 * (np.exp(-k * frac) - np.exp(-k)))

    def accept(self, e_old: float, e_new: float, temperature: float) -> bool:
        """Metropolis rule. Downhill is always kept; otherwise one uniform draw."""
        if e_new < e_old:
            return True
        u = self.rng.random()
        if temperature <= 0:
            return False
        return bool(np.exp(-(e_new - e_old) / temperature) >= u)

    def _toggle_column(self, column: int, toggle: np.uint32) -> float:
        """Flip toggle into mask[column] and return the new energy."""
        self.mask[column] ^= toggle
        if not self.incremental:
            self.decrypted = apply_mask(self.ciphertext, self.mask)
            return dispersion(self.decrypted)

        self.decrypted[:, column] ^= toggle
        lo = max(column - 1, 0)
        hi = min(column + 1, self.measures - 1)
        self._pairs[lo:hi] = pair_energies(self.decrypted[:, lo:hi + 1])
        return total_energy(self._pairs, self.days)

    def adjust_mask_bit(self, bit: int, temperature: float) -> PassReport:
        """One bit-group pass over all columns at a fixed temperature.

        The comparison baseline moves: column c+1 is judged against the
        energy left behind by the decisions on columns <= c.
        """
        toggle = bit_toggle(bit, self.config.bmax, self.config.bit_width)
        energy_before = self.energy
        current = energy_before
        accepted = 0

        for column in range(self.measures):
            pairs_before = self._pairs[max(column - 1, 0):column + 1].copy()
            candidate = self._toggle_column(column, toggle)

            if self.accept(current, candidate, temperature):
                current = candidate
                accepted += 1
            else:
                # Undo
                self.mask[column] ^= toggle
                self.decrypted[:, column] ^= toggle
                self._pairs[max(column - 1, 0):column + 1] = pairs_before

        if not self.incremental:
            self.decrypted = apply_mask(self.ciphertext, self.mask)
        self._pairs = pair_energies(self.decrypted)
        self.energy = total_energy(self._pairs, self.days)

        report = PassReport(
            bit=bit,
            temperature=temperature,
            energy_before=energy_before,
            energy_after=self.energy,
            accepted=accepted,
            proposals=self.measures,
        )
        if self.reporter is not None:
            self.reporter.pass_finished(report)
        return report

    def step(self, step: int) -> IterationReport:
        """Run one outer iteration: BITCYCLES * BMAX + 1 random passes."""
        cfg = self.config
        temperature = self.temperature(step, cfg.n_iters, cfg.t0, cfg.k)
        if self.reporter is not None:
            self.reporter.iteration_started(step, cfg.n_iters, temperature)

        passes = []
        for _ in range(cfg.passes_per_iteration):
            bit = int(self.rng.integers(0, cfg.bmax + 1))
            passes.append(self.adjust_mask_bit(bit, temperature))

        report = IterationReport(
            step=step,
            temperature=temperature,
            energy=self.energy,
            passes=passes,
        )
        if self.reporter is not None:
            self.reporter.iteration_finished(report)
        return report

    def iterate(self) -> Iterator[IterationReport]:
        """Yield after each of the n_iters outer iterations. No early exit."""
        for step in range(self.config.n_iters):
            yield self.step(step)

    def run(self) -> CrackResult:
        """Anneal for the full schedule and collect the result."""
        initial_mask = self.mask.copy()
        initial_energy = self.energy
        trajectory = list(self.iterate())
        return self.result(initial_mask, initial_energy, trajectory)

    def result(
        self,
        initial_mask: NDArray[np.uint32],
        initial_energy: float,
        trajectory: list[IterationReport],
    ) -> CrackResult:
        """Snapshot the current state into a CrackResult."""
        return CrackResult(
            mask=self.mask.copy(),
            decrypted=self.decrypted.copy(),
            initial_mask=np.array(initial_mask, dtype=np.uint32),
            initial_energy=initial_energy,
            final_energy=self.energy,
            max_bit_width=required_bit_width(self.decrypted),
            trajectory=trajectory,
        )


def recover_keystream(
    ciphertext: NDArray[np.uint32],
    config: CrackConfig | None = None,
    rng: np.random.Generator | None = None,
    incremental: bool = True,
    reporter: Reporter | None = None,
) -> CrackResult:
    """Estimate a starting mask from bit majorities, then anneal it."""
    refiner = AnnealingRefiner(
        ciphertext,
        config=config,
        rng=rng,
        incremental=incremental,
        reporter=reporter,
    )
    return refiner.run()
