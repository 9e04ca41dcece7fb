"""Originality and similarity detection engine for academic writing."""

__version__ = "0.1.0"
