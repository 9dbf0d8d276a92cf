"""Rent It Forward booking backend."""

__version__ = "0.4.0"
