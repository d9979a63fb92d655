"""
Audit trail for fintrack.

Each accepted store write, each rejected write and each advisor call
becomes an AuditEvent. Events go to two places:

- the process log, as one JSON line per event (structlog)
- the configured audit storage, so the history survives restarts

Writing the trail must never break the action being recorded, so a
storage failure is reported in the process log and swallowed here.
Calls are synchronous because the store itself is synchronous.
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from fintrack.models.audit import AuditEvent, AuditEventBuilder
from fintrack.services.storage import AuditStorageInterface


def _configure_structlog() -> None:
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


_configure_structlog()

_LEVEL_BY_SEVERITY = {
    "critical": "error",
    "error": "error",
    "warning": "warning",
}


class AuditLogger:
    """
    Writes audit events to the process log and, optionally, to storage.

    Args:
        storage: Where events are kept. With None, events only reach
                 the process log.
    """

    def __init__(self, storage: Optional[AuditStorageInterface] = None):
        self._storage = storage
        self._logger = structlog.get_logger("fintrack.audit")

    @property
    def storage(self) -> Optional[AuditStorageInterface]:
        return self._storage

    def log(self, event: AuditEvent) -> bool:
        """
        Record one event.

        Returns False only when a storage backend is configured and the
        append failed.
        """
        level = _LEVEL_BY_SEVERITY.get(event.severity.value, "info")
        getattr(self._logger, level)("audit_event", **event.to_log_dict())

        if self._storage is None:
            return True

        try:
            return self._storage.append_event(event)
        except Exception as e:
            self._logger.error(
                "audit_storage_failed",
                error=str(e),
                event_id=str(event.event_id),
                event_type=event.event_type.value,
            )
            return False

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """An advisor (or other remote) call failed."""
        self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """New id shared by all events of one user action, e.g. a bill scan."""
    return uuid4()
