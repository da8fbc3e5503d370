"""Betpot: parimutuel betting escrow and settlement engine."""

__version__ = "0.1.0"
__author__ = "Betpot Team"

__all__ = ["__version__", "__author__"]
