"""
Storage Services Package

Provides abstract interfaces and concrete implementations for the
persistence slots behind the financial store, and for the audit log.
"""

from fintrack.services.storage.interface import (
    BUDGETS_SLOT,
    CURRENCY_SLOT,
    DEBTS_SLOT,
    EXPENSE_CATEGORIES_SLOT,
    GOALS_SLOT,
    INCOME_CATEGORIES_SLOT,
    LOANS_SLOT,
    RECURRING_SLOT,
    SLOT_KEYS,
    TRANSACTIONS_SLOT,
    AuditStorageInterface,
    ConnectionError,
    CorruptSlotError,
    QuotaExceededError,
    SlotStorageInterface,
    StorageError,
)
from fintrack.services.storage.memory import (
    InMemoryAuditStorage,
    InMemorySlotStorage,
)
from fintrack.services.storage.json_file import JsonFileSlotStorage
from fintrack.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsSlotStorage,
)

__all__ = [
    # Slot keys
    "BUDGETS_SLOT",
    "CURRENCY_SLOT",
    "DEBTS_SLOT",
    "EXPENSE_CATEGORIES_SLOT",
    "GOALS_SLOT",
    "INCOME_CATEGORIES_SLOT",
    "LOANS_SLOT",
    "RECURRING_SLOT",
    "SLOT_KEYS",
    "TRANSACTIONS_SLOT",
    # Interfaces
    "AuditStorageInterface",
    "SlotStorageInterface",
    # Exceptions
    "ConnectionError",
    "CorruptSlotError",
    "QuotaExceededError",
    "StorageError",
    # Implementations
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsSlotStorage",
    "InMemoryAuditStorage",
    "InMemorySlotStorage",
    "JsonFileSlotStorage",
]
