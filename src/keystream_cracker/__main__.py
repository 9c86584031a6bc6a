"""Main entry point: python -m keystream_cracker"""

from __future__ import annotations

import argparse
import os
import sys

import numpy as np

from keystream_cracker import __version__
from keystream_cracker.analysis.export import dump_matrix, export_csv, load_matrix
from keystream_cracker.analysis.metrics import MetricExtractor
from keystream_cracker.analysis.validation import Validator
from keystream_cracker.core.annealer import AnnealingRefiner
from keystream_cracker.core.dispersion import dispersion
from keystream_cracker.core.samples import as_sample_matrix, make_scenario
from keystream_cracker.utils.constants import (
    BIT_WIDTH,
    BITCYCLES,
    BMAX,
    DAYS,
    ITERS,
    K,
    MEASURES,
    T0,
)
from keystream_cracker.utils.types import CrackConfig, CrackResult
from keystream_cracker.visualization.console import ConsoleReporter


def _add_search_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--iters", type=int, default=ITERS, help=f"Outer annealing iterations (default {ITERS})")
    p.add_argument("--bmax", type=int, default=BMAX, help=f"High-bit-group index (default {BMAX})")
    p.add_argument("--bit-cycles", type=int, default=BITCYCLES, help=f"Passes per bit per iteration (default {BITCYCLES})")
    p.add_argument("--t0", type=float, default=T0, help=f"Initial temperature (default {T0:g})")
    p.add_argument("--k", type=float, default=K, help=f"Temperature decay constant (default {K:g})")
    p.add_argument("--bit-width", type=int, default=BIT_WIDTH, help=f"Sample width in bits (default {BIT_WIDTH})")
    p.add_argument("--seed", type=int, default=None, help="Random seed (default: fresh entropy)")
    p.add_argument("--out-dir", type=str, default=".", help="Directory for .m dumps")
    p.add_argument("--reference", action="store_true", help="Recompute the full matrix on every proposal")
    p.add_argument("--csv", action="store_true", help="Export recovered keystream to keystream.csv")
    p.add_argument("--quiet", action="store_true", help="No per-pass progress")
    p.add_argument("--no-color", action="store_true", help="Plain progress output")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="keystream-cracker",
        description="Recover a repeated per-column XOR keystream from smooth time series",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    sub = parser.add_subparsers(dest="command")

    # simulate
    sim = sub.add_parser("simulate", help="Encrypt a synthetic signal and recover its keystream")
    sim.add_argument("--days", type=int, default=DAYS, help=f"Rows / repeated series (default {DAYS})")
    sim.add_argument("--measures", type=int, default=MEASURES, help=f"Columns / samples per series (default {MEASURES})")
    sim.add_argument("--no-viz", action="store_true", help="Skip plot generation")
    _add_search_args(sim)

    # crack
    crk = sub.add_parser("crack", help="Recover the keystream of a ciphertext dump")
    crk.add_argument("input", type=str, help="Ciphertext in .m dump layout")
    _add_search_args(crk)

    return parser


def make_config(args: argparse.Namespace, days: int, measures: int) -> CrackConfig:
    return CrackConfig(
        days=days,
        measures=measures,
        n_iters=args.iters,
        bmax=args.bmax,
        bit_cycles=args.bit_cycles,
        t0=args.t0,
        k=args.k,
        bit_width=args.bit_width,
    )


def anneal(
    refiner: AnnealingRefiner,
    out_dir: str,
) -> CrackResult:
    """Run the refiner, dumping the current candidate after every iteration."""
    initial_mask = refiner.mask.copy()
    initial_energy = refiner.energy
    improved_path = os.path.join(out_dir, "improved.m")

    trajectory = []
    for report in refiner.iterate():
        trajectory.append(report)
        dump_matrix(improved_path, refiner.decrypted)
    print()

    return refiner.result(initial_mask, initial_energy, trajectory)


def print_results(result: CrackResult, config: CrackConfig, validation: dict | None = None) -> None:
    report = MetricExtractor(result).full_report(config.bmax)
    disp = report["dispersion"]
    acc = report["acceptance"]

    print()
    print("=" * 50)
    print(" RESULTS")
    print("=" * 50)
    print(f"  Dispersion (initial):  {disp['initial']:g}")
    print(f"  Dispersion (final):    {disp['final']:g}")
    print(f"  Reduction:             {disp['reduction_percent']:.2f}%")
    print(f"  Acceptance rate:       {acc['acceptance_rate']:.4f} ({acc['accepted']}/{acc['proposals']})")
    print(f"  Max bit width:         {report['max_bit_width']}")
    if validation is not None:
        lo, hi = validation["confidence_interval"]
        print(f"  Column match rate:     {validation['column_match_rate']:.4f} (bits < {config.bmax})")
        print(f"  Confidence interval:   ({lo:.3f}, {hi:.3f})")
        print(f"  Bit match rate:        {validation['bit_match_rate']:.4f}")
        print(f"  Exact key matches:     {validation['exact_match_rate']:.4f}")
    print("=" * 50)


def _reporter(args: argparse.Namespace) -> ConsoleReporter | None:
    if args.quiet:
        return None
    return ConsoleReporter(color=not args.no_color)


def run_simulation(args: argparse.Namespace) -> None:
    """Synthetic pipeline: generate -> encrypt -> estimate -> anneal -> validate."""
    config = make_config(args, args.days, args.measures)
    rng = np.random.default_rng(args.seed)
    out_dir = args.out_dir
    os.makedirs(out_dir, exist_ok=True)

    print(f"Days: {config.days} | Measures: {config.measures} | Iterations: {config.n_iters}")
    scenario = make_scenario(config.days, config.measures, rng, bit_width=config.bit_width)

    dump_matrix(os.path.join(out_dir, "original.m"), scenario.plaintext)
    dump_matrix(os.path.join(out_dir, "encrypted.m"), scenario.ciphertext)

    refiner = AnnealingRefiner(
        scenario.ciphertext,
        config=config,
        rng=rng,
        incremental=not args.reference,
        reporter=_reporter(args),
    )

    print(f"Dispersion (original): {dispersion(scenario.plaintext):g}")
    print(f"Dispersion (encrypted): {dispersion(scenario.ciphertext):g}")
    dump_matrix(os.path.join(out_dir, "decrypted.m"), refiner.decrypted)
    print(f"Dispersion (decrypted): {refiner.energy:g}")

    result = anneal(refiner, out_dir)

    validator = Validator(scenario.keystream, result.mask, config.bmax, config.bit_width)
    print_results(result, config, validator.summary())

    if args.csv:
        path = os.path.join(out_dir, "keystream.csv")
        export_csv(path, result.mask, scenario.keystream, config.bit_width)
        print(f"Keystream exported to {path}")

    if not args.no_viz:
        from keystream_cracker.visualization.plots import PlotSuite

        print("\nGenerating plots...")
        plots = PlotSuite(save_dir=out_dir)
        plots.dispersion_trajectory(result)
        plots.series_comparison(result.decrypted, scenario.plaintext)
        plots.key_comparison(scenario.keystream, result.mask, config.bmax)
        print(f"Plots saved to {out_dir}")


def run_crack(args: argparse.Namespace) -> None:
    """Ciphertext-only pipeline: load -> estimate -> anneal -> dump."""
    ciphertext = as_sample_matrix(load_matrix(args.input), args.bit_width)
    days, measures = ciphertext.shape
    config = make_config(args, days, measures)
    rng = np.random.default_rng(args.seed)
    out_dir = args.out_dir
    os.makedirs(out_dir, exist_ok=True)

    print(f"Loaded {args.input}: {days} days x {measures} measures")
    refiner = AnnealingRefiner(
        ciphertext,
        config=config,
        rng=rng,
        incremental=not args.reference,
        reporter=_reporter(args),
    )
    print(f"Dispersion (encrypted): {dispersion(ciphertext):g}")
    dump_matrix(os.path.join(out_dir, "decrypted.m"), refiner.decrypted)
    print(f"Dispersion (decrypted): {refiner.energy:g}")

    result = anneal(refiner, out_dir)
    print_results(result, config)

    if args.csv:
        path = os.path.join(out_dir, "keystream.csv")
        export_csv(path, result.mask, bit_width=config.bit_width)
        print(f"Keystream exported to {path}")


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        if args.command == "simulate":
            run_simulation(args)
        elif args.command == "crack":
            run_crack(args)
        else:
            parser.print_help()
    except OSError as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(1)
    except ValueError as exc:
        parser.error(str(exc))


if __name__ == "__main__":
    main()
