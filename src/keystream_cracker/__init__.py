"""Keystream Cracker -- recover a repeated per-slot XOR keystream from smooth series."""

__version__ = "0.1.0"
