"""
In-memory storage backends.

Used by tests and by sessions that should leave nothing on disk.
The slot backend copies nothing: strings are immutable.
"""

from typing import Mapping, Optional

from fintrack.models.audit import AuditEvent
from fintrack.services.storage.interface import (
    AuditStorageInterface,
    SlotStorageInterface,
)


class InMemorySlotStorage(SlotStorageInterface):
    """Slots held in a dict for the lifetime of the process."""

    def __init__(self, initial: Optional[Mapping[str, str]] = None):
        self._slots: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._slots.get(key)

    def set_many(self, values: Mapping[str, str]) -> None:
        self._slots.update(values)

    def keys(self) -> list[str]:
        return list(self._slots)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit list."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """Newest first."""
        return self._events[::-1][:limit]
