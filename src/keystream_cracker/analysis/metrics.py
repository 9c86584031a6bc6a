"""Metric extraction from a recovery run."""

from __future__ import annotations

import numpy as np

from keystream_cracker.utils.types import CrackResult, PassReport


class MetricExtractor:
    """Summarize the annealing trajectory of a CrackResult."""

    def __init__(self, result: CrackResult) -> None:
        self.result = result

    @property
    def passes(self) -> list[PassReport]:
        return [p for it in self.result.trajectory for p in it.passes]

    def dispersion_stats(self) -> dict:
        """Initial, final and best dispersion, plus the relative reduction."""
        initial = self.result.initial_energy
        final = self.result.final_energy
        energies = [it.energy for it in self.result.trajectory]
        return {
            "initial": initial,
            "final": final,
            "minimum": float(min(energies + [initial])),
            "reduction_percent": 100.0 * (initial - final) / initial if initial > 0 else 0.0,
            "iterations": len(energies),
        }

    def acceptance_stats(self) -> dict:
        """How many column toggles were kept over the whole run."""
        passes = self.passes
        if not passes:
            return {
                "passes": 0,
                "proposals": 0,
                "accepted": 0,
                "acceptance_rate": 0.0,
                "heating_passes": 0,
            }

        proposals = sum(p.proposals for p in passes)
        accepted = sum(p.accepted for p in passes)
        return {
            "passes": len(passes),
            "proposals": proposals,
            "accepted": accepted,
            "acceptance_rate": accepted / proposals if proposals else 0.0,
            "heating_passes": sum(1 for p in passes if not p.improved),
        }

    def bit_usage(self, bmax: int) -> list[int]:
        """How often each bit index in [0, bmax] was chosen for a pass."""
        counts = np.zeros(bmax + 1, dtype=np.int64)
        for p in self.passes:
            counts[p.bit] += 1
        return [int(c) for c in counts]

    def full_report(self, bmax: int) -> dict:
        """Aggregate all metrics into a single report."""
        return {
            "dispersion": self.dispersion_stats(),
            "acceptance": self.acceptance_stats(),
            "bit_usage": self.bit_usage(bmax),
            "max_bit_width": self.result.max_bit_width,
        }
