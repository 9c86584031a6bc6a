"""Run constants for the Keystream Cracker."""

# -- Sample matrix --
DAYS: int = 100
MEASURES: int = 6 * 60  # one sample every 4 minutes over a day
BIT_WIDTH: int = 32

# -- Annealing --
ITERS: int = 30
BMAX: int = 8  # bit index of the coarse high-bit-group toggle
BITCYCLES: int = 6
K: float = 10.0  # temperature decay constant
T0: float = 30.0  # initial temperature

# -- Synthetic signal --
SIGNAL_SCALE: float = 10.0  # samples are stored as tenths

# -- Export --
DUMP_SCALE: str = ".1"  # inverse of SIGNAL_SCALE, written into dump headers
DUMP_VARIABLE: str = "D"

# -- Derived --
PASSES_PER_ITERATION: int = BITCYCLES * BMAX + 1
SAMPLE_LIMIT: int = 1 << BIT_WIDTH
