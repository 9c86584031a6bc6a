"""Post-run analysis: export, validation, metrics."""
