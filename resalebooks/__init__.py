"""
Resale Books

Transaction aggregation and reconciliation engine for resale bookkeeping.
"""

__version__ = "1.0.0"
