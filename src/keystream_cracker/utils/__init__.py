"""Shared constants, dataclasses and bit utilities."""
