"""Terminal progress output for the annealing loop."""

from __future__ import annotations

import sys
from typing import TextIO

from keystream_cracker.utils.types import IterationReport, PassReport

CLEAR_LINE = "\033[2K"
HEAT = "\033[1;31mHEAT\033[0m"
COOL = "\033[1;36mCOOL\033[0m"


class ConsoleReporter:
    """Print iteration headers and an in-place per-pass progress line.

    Pass lines end in a carriage return so the next one overwrites them.
    Human-facing only; nothing parses this output.
    """

    def __init__(self, stream: TextIO | None = None, color: bool = True) -> None:
        self.stream = stream if stream is not None else sys.stdout
        self.color = color

    def _tag(self, improved: bool) -> str:
        if self.color:
            return COOL if improved else HEAT
        return "COOL" if improved else "HEAT"

    def _clear(self) -> str:
        return CLEAR_LINE if self.color else ""

    def iteration_started(self, step: int, n_iters: int, temperature: float) -> None:
        print(
            f"{self._clear()}Iterating ({step + 1}/{n_iters}) T = {temperature:g} K",
            file=self.stream,
        )

    def pass_finished(self, report: PassReport) -> None:
        print(
            f"{self._clear()}Adjusting bit {report.bit}: "
            f"{report.energy_before:g} -> {report.energy_after:g} "
            f"({report.change_percent:g}%) ({self._tag(report.improved)})",
            end="\r",
            file=self.stream,
        )
        self.stream.flush()

    def iteration_finished(self, report: IterationReport) -> None:
        """Prints nothing.

        The last pass line is left on screen and the next iteration header
        clears and replaces it. The caller prints the final newline once
        the run ends.
        """
