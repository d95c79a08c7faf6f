"""
Budget Ledger - Source Package

A month-keyed household budget ledger: planned spend, actual spend,
rollovers and recurring allocations, reconciled across the legacy flat
list shape and the normalized per-month shape.

DESIGN PRINCIPLES:
1. Every write is a pure snapshot → snapshot transform
2. Totals are derived, never hand-edited
3. Legacy data is read, never lost or duplicated
4. Unknown ids and bad dates degrade, they never crash
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Budget Ledger Team"
