"""
Nursery operations core.

Two independent, side-effect-free components:
- stock_ledger: rebuilds a per-batch stock ledger from events and allocations
- order_match: matches supplier order extractions against reference catalogs
"""

__version__ = "1.0.0"
