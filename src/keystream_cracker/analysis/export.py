"""Textual matrix dumps and CSV export.

Dumps use the layout read by the downstream plotting scripts:

    D = .1 * [
     12 14 15;
     11 13 16;
    ];

The ".1" factor converts the stored tenths back to signal units.
"""

from __future__ import annotations

import csv
import os

import numpy as np
from numpy.typing import NDArray

from keystream_cracker.utils.bit_helpers import to_hex
from keystream_cracker.utils.constants import BIT_WIDTH, DUMP_SCALE, DUMP_VARIABLE, SAMPLE_LIMIT


def dump_header(variable: str = DUMP_VARIABLE) -> str:
    return f"{variable} = {DUMP_SCALE} * ["


def dump_matrix(path: str | os.PathLike, matrix: NDArray[np.uint32], variable: str = DUMP_VARIABLE) -> None:
    """Write a sample matrix in dump layout. OSError propagates."""
    with open(path, "w") as f:
        f.write(dump_header(variable) + "\n")
        for row in np.asarray(matrix):
            f.write("".join(f" {int(v)}" for v in row))
            f.write(";\n")
        f.write("];")


def load_matrix(path: str | os.PathLike) -> NDArray[np.int64]:
    """Read a matrix written by dump_matrix.

    Returns the stored integers (the header scale is not applied).
    Dumps written from signed 32-bit storage show bit 31 as a minus sign;
    values in [-2**31, 0) are mapped back to their unsigned 32-bit value.
    Validation into a sample matrix is left to the caller.
    """
    with open(path) as f:
        lines = f.read().splitlines()

    if not lines or not lines[0].rstrip().endswith("["):
        raise ValueError(f"{path}: missing '<name> = <scale> * [' header")

    rows: list[list[int]] = []
    for lineno, line in enumerate(lines[1:], start=2):
        text = line.strip()
        if text == "];":
            break
        if not text.endswith(";"):
            raise ValueError(f"{path}:{lineno}: row not terminated by ';'")
        try:
            rows.append([int(tok) for tok in text[:-1].split()])
        except ValueError as exc:
            raise ValueError(f"{path}:{lineno}: non-integer sample in {text!r}") from exc
    else:
        raise ValueError(f"{path}: missing closing '];'")

    if not rows:
        raise ValueError(f"{path}: no rows")
    width = len(rows[0])
    for i, row in enumerate(rows):
        if len(row) != width:
            raise ValueError(
                f"{path}:{i + 2}: expected {width} samples, got {len(row)}"
            )

    matrix = np.array(rows, dtype=np.int64)
    if np.any(matrix < -(SAMPLE_LIMIT // 2)):
        raise ValueError(f"{path}: sample below the signed 32-bit range")
    return np.where(matrix < 0, matrix + SAMPLE_LIMIT, matrix)


def export_csv(
    path: str | os.PathLike,
    mask: NDArray[np.uint32],
    keystream: NDArray[np.uint32] | None = None,
    bit_width: int = BIT_WIDTH,
) -> None:
    """Write the recovered keystream, one column per line.

    With a known keystream, adds the true key and the XOR residual.
    """
    mask_hex = to_hex(mask, bit_width)
    with open(path, "w", newline="") as f:
        writer = csv.writer(f)
        if keystream is None:
            writer.writerow(["column", "mask"])
            for i, m in enumerate(mask_hex):
                writer.writerow([i, m])
            return

        key_hex = to_hex(keystream, bit_width)
        residual_hex = to_hex(np.bitwise_xor(mask, keystream), bit_width)
        writer.writerow(["column", "mask", "keystream", "residual"])
        for i, (m, k, r) in enumerate(zip(mask_hex, key_hex, residual_hex)):
            writer.writerow([i, m, k, r])
