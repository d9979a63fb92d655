"""
fintrack - Personal Finance Core

The financial state behind a personal money tracker: transactions,
budgets, savings goals, recurring transactions, loans and debts, kept in
an explicitly constructed store that persists every collection to a
key-value slot and derives spend rollups and reports on read.

DESIGN PRINCIPLES:
1. Derived values are computed on read, never stored
2. Validate before mutating, persist before returning
3. Fail early, fail visibly
4. AI advises, the user confirms
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "fintrack Team"
