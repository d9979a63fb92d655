"""
Audit event models.

An AuditEvent describes one thing that happened to the user's data:
a store write that went through, a write that was refused, or a
round trip to the AI advisor. Events are only ever appended.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    # Store writes
    ENTITY_CREATED = "entity_created"
    ENTITY_UPDATED = "entity_updated"
    ENTITY_DELETED = "entity_deleted"
    TRANSACTIONS_IMPORTED = "transactions_imported"
    CATEGORY_RENAMED = "category_renamed"
    GOAL_FUNDED = "goal_funded"
    RECURRING_POSTED = "recurring_posted"
    CURRENCY_CHANGED = "currency_changed"

    # Refused or failed writes
    VALIDATION_FAILED = "validation_failed"
    PERSISTENCE_FAILED = "persistence_failed"

    # Advisor
    ADVICE_REQUESTED = "advice_requested"
    BILL_SCANNED = "bill_scanned"
    BILL_CONFIRMED = "bill_confirmed"
    BILL_REJECTED = "bill_rejected"
    FORECAST_GENERATED = "forecast_generated"

    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


# Column order of the audit worksheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


class AuditEvent(BaseModel):
    """One entry of the audit trail."""

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # 'transaction', 'budget', 'category', ...; entity_id is the store id,
    # or the name for categories
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None

    # Shared by every event of one user action
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None
    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """JSON-safe fields for the structured process log."""
        return self.model_dump(mode="json")

    def to_sheets_row(self) -> list[str]:
        """Cells in AUDIT_COLUMNS order. None becomes an empty cell."""
        data = self.to_log_dict()
        data["timestamp"] = self.timestamp.isoformat()
        data["details_json"] = (
            json.dumps(self.details, ensure_ascii=False) if self.details else ""
        )
        data["is_user_action"] = str(self.is_user_action)
        return ["" if data.get(column) is None else str(data[column]) for column in AUDIT_COLUMNS]

    @classmethod
    def from_sheets_row(cls, row: list) -> "AuditEvent":
        """Rebuild an event from to_sheets_row output. Short rows are padded."""
        cells = dict(zip(AUDIT_COLUMNS, list(row) + [""] * len(AUDIT_COLUMNS)))
        return cls(
            event_id=UUID(cells["event_id"]),
            timestamp=datetime.fromisoformat(cells["timestamp"]),
            event_type=AuditEventType(cells["event_type"]),
            severity=AuditSeverity(cells["severity"]),
            entity_type=cells["entity_type"] or None,
            entity_id=cells["entity_id"] or None,
            correlation_id=UUID(cells["correlation_id"]) if cells["correlation_id"] else None,
            description=cells["description"],
            details=json.loads(cells["details_json"]) if cells["details_json"] else {},
            error_message=cells["error_message"] or None,
            is_user_action=cells["is_user_action"].lower() == "true",
        )



class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.entity_created("transaction", tx.id, summary)
        event = AuditEventBuilder.recurring_posted(rt.id, tx.id, due_date)
    """

    @staticmethod
    def entity_created(
        entity_type: str,
        entity_id: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTITY_CREATED,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{entity_type.capitalize()} created",
            details=details or {},
            is_user_action=True,
        )

    @staticmethod
    def entity_updated(
        entity_type: str,
        entity_id: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTITY_UPDATED,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{entity_type.capitalize()} updated",
            details=details or {},
            is_user_action=True,
        )

    @staticmethod
    def entity_deleted(
        entity_type: str,
        entity_id: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTITY_DELETED,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{entity_type.capitalize()} deleted",
            is_user_action=True,
        )

    @staticmethod
    def transactions_imported(count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTIONS_IMPORTED,
            entity_type="transaction",
            description=f"Imported {count} transactions",
            details={"count": count},
            is_user_action=True,
        )

    @staticmethod
    def category_renamed(
        old_name: str,
        new_name: str,
        category_type: str,
        cascaded: dict[str, int],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_RENAMED,
            entity_type="category",
            entity_id=new_name,
            description=f"Category renamed: {old_name} -> {new_name}",
            details={
                "old_name": old_name,
                "new_name": new_name,
                "category_type": category_type,
                "cascaded": cascaded,
            },
            is_user_action=True,
        )

    @staticmethod
    def goal_funded(
        goal_id: str,
        requested: float,
        applied: float,
    ) -> AuditEvent:
        clamped = requested != applied
        return AuditEvent(
            event_type=AuditEventType.GOAL_FUNDED,
            severity=AuditSeverity.WARNING if clamped else AuditSeverity.INFO,
            entity_type="goal",
            entity_id=goal_id,
            description=(
                "Goal funded (clamped to target)" if clamped else "Goal funded"
            ),
            details={"requested": requested, "applied": applied},
            is_user_action=True,
        )

    @staticmethod
    def recurring_posted(
        recurring_id: str,
        transaction_id: str,
        due_date: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_POSTED,
            entity_type="recurring_transaction",
            entity_id=recurring_id,
            description=f"Recurring transaction posted for {due_date}",
            details={
                "transaction_id": transaction_id,
                "due_date": due_date,
            },
        )

    @staticmethod
    def currency_changed(old: str, new: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CURRENCY_CHANGED,
            entity_type="currency",
            description=f"Currency changed: {old} -> {new}",
            details={"old": old, "new": new},
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        operation: str,
        issues: list[dict],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            description=f"Validation failed for {operation} with {len(issues)} issues",
            details={
                "operation": operation,
                "issues": issues,
            },
        )

    @staticmethod
    def persistence_failed(
        slots: list[str],
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSISTENCE_FAILED,
            severity=AuditSeverity.ERROR,
            description="Failed to write persistence slots",
            error_message=error_message,
            details={"slots": slots},
        )

    @staticmethod
    def advice_requested(
        question: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ADVICE_REQUESTED,
            entity_type="advice",
            correlation_id=correlation_id,
            description="Financial advice requested",
            details={"question": question[:200]},
            is_user_action=True,
        )

    @staticmethod
    def bill_scanned(
        fields_found: list[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_SCANNED,
            entity_type="bill_scan",
            correlation_id=correlation_id,
            description=f"Bill scanned, {len(fields_found)} fields extracted",
            details={"fields_found": fields_found},
        )

    @staticmethod
    def bill_confirmed(
        transaction_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_CONFIRMED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="User confirmed scanned bill",
            is_user_action=True,
        )

    @staticmethod
    def bill_rejected(
        reason: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_REJECTED,
            entity_type="bill_scan",
            correlation_id=correlation_id,
            description="User rejected scanned bill",
            details={"reason": reason or "No reason provided"},
            is_user_action=True,
        )

    @staticmethod
    def forecast_generated(
        transaction_count: int,
        predicted_savings: float,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FORECAST_GENERATED,
            entity_type="forecast",
            correlation_id=correlation_id,
            description=f"Forecast generated from {transaction_count} transactions",
            details={
                "transaction_count": transaction_count,
                "predicted_savings": predicted_savings,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
