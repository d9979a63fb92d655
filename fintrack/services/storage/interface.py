"""
Abstract Storage Interface

DESIGN DECISION: The store persists each collection to a "slot":
a string key holding the collection serialized as JSON text.
Defining the slot operations as an interface allows us to:
1. Swap a local JSON file for Google Sheets (or anything else)
2. Use in-memory storage for testing
3. Keep the store decoupled from where its bytes live

The interface is intentionally tiny. The store owns serialization;
backends only move strings.
"""

from abc import ABC, abstractmethod
from typing import Mapping, Optional

from fintrack.models.audit import AuditEvent


# Persisted slot keys, one per collection
TRANSACTIONS_SLOT = "transactions"
BUDGETS_SLOT = "budgets"
GOALS_SLOT = "goals"
RECURRING_SLOT = "recurringTransactions"
LOANS_SLOT = "loans"
DEBTS_SLOT = "debts"
EXPENSE_CATEGORIES_SLOT = "expenseCategories"
INCOME_CATEGORIES_SLOT = "incomeCategories"
CURRENCY_SLOT = "currency"

SLOT_KEYS = (
    TRANSACTIONS_SLOT,
    BUDGETS_SLOT,
    GOALS_SLOT,
    RECURRING_SLOT,
    LOANS_SLOT,
    DEBTS_SLOT,
    EXPENSE_CATEGORIES_SLOT,
    INCOME_CATEGORIES_SLOT,
    CURRENCY_SLOT,
)


class SlotStorageInterface(ABC):
    """
    Abstract interface for key -> JSON text persistence.

    Any storage implementation must implement these methods.
    Writes are synchronous: when a write returns, the value is durable.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read a slot.

        Returns:
            The stored text, or None if the slot was never written
        """
        pass

    @abstractmethod
    def set_many(self, values: Mapping[str, str]) -> None:
        """
        Write several slots as one unit.

        Either every slot is written or none is.

        Raises:
            StorageError: If the write fails
            QuotaExceededError: If the write would exceed the backend's limit
        """
        pass

    @abstractmethod
    def keys(self) -> list[str]:
        """List the slots that have been written."""
        pass

    def set(self, key: str, value: str) -> None:
        """Write a single slot."""
        self.set_many({key: value})


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity, in chronological order.
        """
        pass

    @abstractmethod
    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class CorruptSlotError(StorageError):
    """A slot holds text that cannot be parsed back into its collection."""

    def __init__(self, key: str, message: str):
        self.key = key
        super().__init__(f"Slot '{key}' is corrupt: {message}")


class QuotaExceededError(StorageError):
    """The write would exceed the backend's size limit."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
