"""Storage layer for Betpot - file-based ledger persistence.

The ledger (fund records, positions, outcomes, pot accounts and the
transition journal) is kept in data/ledger.yaml and written atomically.
"""

from .state import load_ledger, save_ledger, verify_ledger

__all__ = [
    "load_ledger",
    "save_ledger",
    "verify_ledger",
]
