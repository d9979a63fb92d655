"""Shared fixtures: an in-memory store with predictable ids."""

import itertools
from typing import Mapping

import pytest

from fintrack.audit import AuditLogger
from fintrack.services.storage import (
    InMemoryAuditStorage,
    InMemorySlotStorage,
    QuotaExceededError,
)
from fintrack.store import FinancialStore
from fintrack.validation import StoreValidator


class FlakySlotStorage(InMemorySlotStorage):
    """In-memory slots that can be told to refuse writes."""

    def __init__(self, initial=None):
        super().__init__(initial)
        self.fail_writes = False
        self.write_count = 0

    def set_many(self, values: Mapping[str, str]) -> None:
        if self.fail_writes:
            raise QuotaExceededError("storage quota exceeded")
        self.write_count += 1
        super().set_many(values)


def _build_store(slots=None, audit_storage=None) -> FinancialStore:
    counter = itertools.count(1)
    return FinancialStore(
        slots if slots is not None else InMemorySlotStorage(),
        validator=StoreValidator(["Khác", "Other"]),
        audit_logger=AuditLogger(audit_storage),
        id_factory=lambda: f"id-{next(counter)}",
        default_currency="VND",
    )


@pytest.fixture
def slots():
    return FlakySlotStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def store(slots, audit_storage):
    return _build_store(slots, audit_storage)


@pytest.fixture
def make_store():
    """Build extra stores, e.g. a second one over the same backend."""
    return _build_store
