"""
Main Orchestrator for fintrack

This module ties together all the components and defines the
end-to-end flows for:
1. Bill Scan (image -> quality gate -> advisor scan -> validate -> confirm -> save)
2. Advice (store snapshot -> advisor -> markdown answer)
3. Forecast (recent transactions -> advisor -> 30-day prediction)

DESIGN DECISION: The orchestrator enforces the boundaries:
- No scanned bill is stored without explicit user confirmation
- The advisor only ever sees snapshots, never the store itself
- An advisor failure never touches the financial collections
- Every step is audited
"""

import logging
from datetime import date
from typing import NamedTuple, Optional
from uuid import UUID

import structlog
from pydantic import ValidationError

from fintrack.agents import AdvisorServiceError, FinancialAdvisorAgent
from fintrack.audit import AuditLogger, create_correlation_id
from fintrack.config import Settings, get_settings
from fintrack.models.audit import AuditEventBuilder
from fintrack.models.finance import (
    Priority,
    Transaction,
    TransactionData,
    TransactionType,
    ValidationResult,
)
from fintrack.models.insights import ForecastResult, ReceiptImage, ScannedBill
from fintrack.reports import ReportBuilder
from fintrack.services.image import ReceiptImageService
from fintrack.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsSlotStorage,
    InMemoryAuditStorage,
    InMemorySlotStorage,
    JsonFileSlotStorage,
    SlotStorageInterface,
)
from fintrack.store import FinancialStore
from fintrack.validation import StoreValidator


logger = structlog.get_logger(__name__)


class BillScanFlow:
    """
    Orchestrates the bill scan flow.

    Flow:
    1. Prepare -> validate upload, assess quality, shrink
    2. Gate -> stop if the photo is too poor to read
    3. Scan -> advisor proposes description, amount, category
    4. Validate -> warnings for anything the user should check
    5. Review -> Present to user (PAUSE - require confirmation)
    6. Confirm -> User explicitly approves (possibly edited) values
    7. Save -> add_transaction with the receipt embedded

    Human confirmation (step 6) is MANDATORY.
    The system NEVER auto-saves.
    """

    def __init__(
        self,
        store: FinancialStore,
        advisor: FinancialAdvisorAgent,
        image_service: Optional[ReceiptImageService] = None,
        validator: Optional[StoreValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._advisor = advisor
        self._image_service = image_service or ReceiptImageService()
        self._validator = validator or StoreValidator()
        self._audit_logger = audit_logger or AuditLogger()

    def prepare_image(
        self,
        image_bytes: bytes,
        filename: str,
    ) -> tuple[ReceiptImage, bool, str]:
        """
        Prepare an uploaded receipt photo.

        Returns:
            (receipt, can_proceed, message)

        If can_proceed is False, user should retake the photo.
        """
        receipt = self._image_service.prepare(image_bytes, filename)
        can_proceed, message = self._image_service.should_proceed_with_scan(receipt)
        return receipt, can_proceed, message

    async def scan(
        self,
        receipt: ReceiptImage,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[ScannedBill, ValidationResult, str]:
        """
        Ask the advisor to read the receipt.

        Returns:
            (scanned_bill, validation_result, user_message)

        Raises:
            AdvisorServiceError: If the scan failed; nothing was stored
        """
        correlation_id = correlation_id or create_correlation_id()
        categories = self._store.expense_categories

        try:
            scanned = await self._advisor.analyze_bill_image(
                self._image_service.decode(receipt),
                receipt.mime_type,
                [c.name for c in categories],
            )
        except AdvisorServiceError as e:
            self._audit_logger.log_external_service_error(
                service=e.service,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        self._audit_logger.log(AuditEventBuilder.bill_scanned(
            fields_found=scanned.fields_found,
            correlation_id=correlation_id,
        ))

        result = self._validator.validate_scanned_bill(scanned, categories)
        return scanned, result, self._validator.get_user_friendly_summary(result)

    def confirm(
        self,
        description: str,
        amount: float,
        category: str,
        transaction_date: date,
        receipt: Optional[ReceiptImage] = None,
        priority: Optional[Priority] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Save the reviewed bill as an expense.

        CRITICAL: This is called ONLY after explicit user confirmation.
        The arguments are the values the user approved, not the raw scan.
        """
        correlation_id = correlation_id or create_correlation_id()

        tx = self._store.add_transaction(TransactionData(
            type=TransactionType.EXPENSE,
            description=description,
            amount=amount,
            category=category,
            date=transaction_date,
            receipt_image=receipt.data_url if receipt else None,
            priority=priority,
        ))

        self._audit_logger.log(AuditEventBuilder.bill_confirmed(
            transaction_id=tx.id,
            correlation_id=correlation_id,
        ))
        return tx

    def reject(
        self,
        reason: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Record that the user discarded the scan."""
        self._audit_logger.log(AuditEventBuilder.bill_rejected(
            reason=reason,
            correlation_id=correlation_id or create_correlation_id(),
        ))


class AdvisorFlow:
    """
    Question -> snapshot -> advisor -> answer.

    The advisor sees the snapshot only. It cannot read or change the store.
    """

    def __init__(
        self,
        store: FinancialStore,
        advisor: FinancialAdvisorAgent,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._advisor = advisor
        self._audit_logger = audit_logger or AuditLogger()

    async def ask(
        self,
        question: str,
        correlation_id: Optional[UUID] = None,
    ) -> str:
        """
        Raises:
            AdvisorServiceError: If the advisor failed; ask again to retry
        """
        correlation_id = correlation_id or create_correlation_id()
        self._audit_logger.log(AuditEventBuilder.advice_requested(
            question=question,
            correlation_id=correlation_id,
        ))

        try:
            return await self._advisor.get_advice(question, self._store.snapshot())
        except AdvisorServiceError as e:
            self._audit_logger.log_external_service_error(
                service=e.service,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise


class ForecastFlow:
    """Recent transactions -> advisor -> cash-flow forecast."""

    def __init__(
        self,
        store: FinancialStore,
        advisor: FinancialAdvisorAgent,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._advisor = advisor
        self._audit_logger = audit_logger or AuditLogger()

    async def forecast(
        self,
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ForecastResult:
        today = today or date.today()
        correlation_id = correlation_id or create_correlation_id()
        transactions = self._store.transactions

        try:
            result = await self._advisor.forecast(transactions, today)
        except AdvisorServiceError as e:
            self._audit_logger.log_external_service_error(
                service=e.service,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        self._audit_logger.log(AuditEventBuilder.forecast_generated(
            transaction_count=len(self._advisor.recent_transactions(transactions, today)),
            predicted_savings=result.predicted_savings,
            correlation_id=correlation_id,
        ))
        return result


class AppComponents(NamedTuple):
    store: FinancialStore
    reports: ReportBuilder
    audit_logger: AuditLogger
    bill_scan_flow: Optional[BillScanFlow]
    advisor_flow: Optional[AdvisorFlow]
    forecast_flow: Optional[ForecastFlow]


def _create_storage(settings: Settings) -> tuple[SlotStorageInterface, AuditLogger]:
    backend = settings.storage.backend

    if backend == "memory":
        return InMemorySlotStorage(), AuditLogger(InMemoryAuditStorage())

    if backend == "google_sheets":
        client = GoogleSheetsClient(settings.google_sheets)
        return (
            GoogleSheetsSlotStorage(client),
            AuditLogger(GoogleSheetsAuditStorage(client)),
        )

    return (
        JsonFileSlotStorage(settings.storage.data_path, settings.storage.max_bytes),
        AuditLogger(),  # Local-only logging
    )


def create_app_components(
    settings: Optional[Settings] = None,
    advisor: Optional[FinancialAdvisorAgent] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to build from. Defaults to get_settings().
        advisor: Advisor to use. Built from the Gemini settings if omitted;
                 when those are missing the AI flows are None and the
                 rest of the app still works.

    Raises:
        StorageError: If the configured slot storage cannot be loaded
    """
    settings = settings or get_settings()
    # structlog filters through the stdlib level; no-op if already configured
    logging.basicConfig(
        format="%(message)s",
        level=logging.DEBUG if settings.app.debug_mode else logging.INFO,
    )
    slot_storage, audit_logger = _create_storage(settings)

    validator = StoreValidator(settings.app.protected_categories)
    store = FinancialStore(
        slot_storage,
        validator=validator,
        audit_logger=audit_logger,
        default_currency=settings.app.default_currency,
    )

    if advisor is None:
        try:
            advisor = FinancialAdvisorAgent(settings.gemini)
        except ValidationError as e:
            # Gemini not configured - continue without AI features
            logger.warning("advisor_not_configured", error=str(e))

    bill_scan_flow = advisor_flow = forecast_flow = None
    if advisor is not None:
        bill_scan_flow = BillScanFlow(
            store,
            advisor,
            image_service=ReceiptImageService(settings.app),
            validator=validator,
            audit_logger=audit_logger,
        )
        advisor_flow = AdvisorFlow(store, advisor, audit_logger)
        forecast_flow = ForecastFlow(store, advisor, audit_logger)

    return AppComponents(
        store=store,
        reports=ReportBuilder(store),
        audit_logger=audit_logger,
        bill_scan_flow=bill_scan_flow,
        advisor_flow=advisor_flow,
        forecast_flow=forecast_flow,
    )
