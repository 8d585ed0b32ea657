"""
Taxbook - Source Package

Reconciliation core of a personal tax-bookkeeping application.
Detects bank-imported transactions that duplicate manually entered
income and expense records.

DESIGN PRINCIPLES:
1. The engine suggests → Human confirms or dismisses
2. Fail early, fail visibly (a bad record aborts the whole run)
3. Ledger and bank records are never modified by reconciliation
4. Match records are append-only and every resolution is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Taxbook Team"
