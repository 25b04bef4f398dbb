"""
Finance Tracker - Source Package

A personal finance ledger: spending transactions are validated,
persisted to a local key-value store, and queried for display.

DESIGN PRINCIPLES:
1. Every write goes through the validator first
2. Corrupt storage degrades to empty data, never crashes
3. Failures come back as results with a clear message
4. Components receive the store handle, nothing reaches for a global
"""

__version__ = "1.0.0"
__author__ = "Finance Tracker Team"
