"""Matplotlib-based 2D plots for recovery analysis."""

from __future__ import annotations

import os

import matplotlib
matplotlib.use("Agg")  # Non-interactive backend by default

import matplotlib.pyplot as plt
from matplotlib.colors import ListedColormap
import numpy as np
from numpy.typing import NDArray

from keystream_cracker.analysis.validation import Validator
from keystream_cracker.utils.constants import SIGNAL_SCALE
from keystream_cracker.utils.types import CrackResult


class PlotSuite:
    """Matplotlib-based 2D plots for Keystream Cracker runs."""

    def __init__(self, save_dir: str = ".") -> None:
        self.save_dir = os.path.expanduser(save_dir)

    def _save_or_show(
        self, fig: plt.Figure, name: str, show: bool, save: bool
    ) -> plt.Figure:
        if save:
            os.makedirs(self.save_dir, exist_ok=True)
            path = os.path.join(self.save_dir, f"kc_{name}.png")
            fig.savefig(path, dpi=150, bbox_inches="tight")
        if show:
            plt.show()
        else:
            plt.close(fig)
        return fig

    def dispersion_trajectory(
        self,
        result: CrackResult,
        show: bool = False,
        save: bool = True,
    ) -> plt.Figure:
        """Dispersion after every pass (log scale) with temperature overlay."""
        passes = [p for it in result.trajectory for p in it.passes]

        fig, ax1 = plt.subplots(figsize=(12, 6))
        if not passes:
            ax1.text(0.5, 0.5, "No data", ha="center", va="center")
            return self._save_or_show(fig, "dispersion", show, save)

        energies = [result.initial_energy] + [p.energy_after for p in passes]
        ax1.semilogy(range(len(energies)), energies, color="blue", label="Dispersion")
        ax1.set_xlabel("Pass")
        ax1.set_ylabel("Dispersion")
        ax1.set_title("Annealing Trajectory")
        ax1.grid(True, alpha=0.3)

        ax2 = ax1.twinx()
        ax2.plot(
            range(1, len(passes) + 1),
            [p.temperature for p in passes],
            color="red", alpha=0.5, label="Temperature",
        )
        ax2.set_ylabel("Temperature")

        lines = ax1.get_lines() + ax2.get_lines()
        ax1.legend(lines, [ln.get_label() for ln in lines], loc="upper right")

        fig.tight_layout()
        return self._save_or_show(fig, "dispersion", show, save)

    def series_comparison(
        self,
        decrypted: NDArray[np.uint32],
        plaintext: NDArray[np.uint32] | None = None,
        day: int = 0,
        show: bool = False,
        save: bool = True,
    ) -> plt.Figure:
        """One day of decrypted samples, optionally against the plaintext."""
        fig, ax = plt.subplots(figsize=(12, 5))
        columns = np.arange(decrypted.shape[1])

        if plaintext is not None:
            ax.plot(columns, plaintext[day] / SIGNAL_SCALE, color="green",
                    label="Plaintext", linewidth=2, alpha=0.6)
        ax.plot(columns, decrypted[day] / SIGNAL_SCALE, color="black",
                label="Decrypted", linewidth=0.8)
        ax.set_xlabel("Measure")
        ax.set_ylabel("Value")
        ax.set_title(f"Day {day}")
        ax.legend()
        ax.grid(True, alpha=0.3)

        fig.tight_layout()
        return self._save_or_show(fig, "series", show, save)

    def key_comparison(
        self,
        keystream: NDArray[np.uint32],
        mask: NDArray[np.uint32],
        bmax: int,
        show: bool = False,
        save: bool = True,
    ) -> plt.Figure:
        """Per-column, per-bit match map of the recovered mask.

        Green cells match the keystream, red cells are wrong. The dashed
        line marks BMAX.
        """
        validator = Validator(keystream, mask, bmax=bmax)
        matches = validator.bit_matches()

        fig, ax = plt.subplots(figsize=(16, 4))
        cmap = ListedColormap(["#e74c3c", "#2ecc71"])
        ax.imshow(matches.T.astype(np.int8), aspect="auto", origin="lower",
                  cmap=cmap, vmin=0, vmax=1, interpolation="nearest")
        ax.axhline(y=bmax - 0.5, color="black", linestyle="--", alpha=0.5)
        ax.set_xlabel("Column")
        ax.set_ylabel("Bit")
        ax.set_title(
            f"Key Comparison -- Column Match Rate: {validator.column_match_rate():.1%} "
            f"(bits < {bmax})"
        )

        fig.tight_layout()
        return self._save_or_show(fig, "key_comparison", show, save)
