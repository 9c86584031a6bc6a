"""Human-facing output: console progress and plots."""
