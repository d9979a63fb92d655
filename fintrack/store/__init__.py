"""
Financial store package.

The store owns the user's collections; the helper modules hold the pure
pieces it is built from (recurrence schedule, currency display, seed
categories, CSV/JSON exchange).
"""

from fintrack.store.currency import format_currency
from fintrack.store.defaults import (
    DEFAULT_EXPENSE_CATEGORIES,
    DEFAULT_INCOME_CATEGORIES,
)
from fintrack.store.exchange import (
    CsvImportError,
    export_transactions_csv,
    export_transactions_json,
    parse_transactions_csv,
)
from fintrack.store.financial_store import EntityNotFoundError, FinancialStore
from fintrack.store.recurring import is_due, next_due_date, pending_due_dates

__all__ = [
    "DEFAULT_EXPENSE_CATEGORIES",
    "DEFAULT_INCOME_CATEGORIES",
    "CsvImportError",
    "EntityNotFoundError",
    "FinancialStore",
    "export_transactions_csv",
    "export_transactions_json",
    "format_currency",
    "is_due",
    "next_due_date",
    "parse_transactions_csv",
    "pending_due_dates",
]
