"""
Tests for the end-to-end flows

Bill scan with mandatory confirmation, advice and forecast, and the
application factory.
"""

import asyncio
import json
from datetime import date
from io import BytesIO

import pytest
from PIL import Image

from fintrack.agents import AdvisorServiceError, FinancialAdvisorAgent
from fintrack.audit import AuditLogger
from fintrack.config import AppSettings, Settings
from fintrack.models.audit import AuditEventType
from fintrack.models.finance import TransactionType
from fintrack.orchestrator import (
    AdvisorFlow,
    BillScanFlow,
    ForecastFlow,
    create_app_components,
)
from fintrack.services.image import ReceiptImageService
from fintrack.validation import StoreValidator


class FakeResponse:
    def __init__(self, text):
        self.text = text


class FakeModel:
    def __init__(self, *answers):
        self.answers = list(answers)
        self.calls = []

    async def generate_content_async(self, contents):
        self.calls.append(contents)
        answer = self.answers.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return FakeResponse(answer)


def receipt_bytes():
    img = Image.new("L", (800, 1000), 255)
    img.paste(0, (0, 0, 800, 500))
    buffer = BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def event_types(audit_storage):
    return [e.event_type for e in audit_storage.get_recent_events()]


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


def make_flow(store, audit_logger, *answers):
    model = FakeModel(*answers)
    flow = BillScanFlow(
        store,
        FinancialAdvisorAgent(model=model),
        image_service=ReceiptImageService(AppSettings()),
        validator=StoreValidator(["Khác", "Other"]),
        audit_logger=audit_logger,
    )
    return flow, model


class TestBillScanFlow:
    """Scanning proposes; only confirmation stores."""

    def test_scan_then_confirm(self, store, audit_storage, audit_logger):
        """Test the full happy path."""
        flow, model = make_flow(
            store,
            audit_logger,
            '{"description": "Circle K", "amount": 35000, "category": "Ăn uống"}',
        )

        receipt, ok, message = flow.prepare_image(receipt_bytes(), "receipt.png")
        assert ok
        assert message.startswith("✅")

        bill, result, summary = asyncio.run(flow.scan(receipt))
        assert bill.amount == 35000
        assert result.is_valid
        assert summary.startswith("✅")
        assert store.transactions == []

        tx = flow.confirm(
            description=bill.description,
            amount=bill.amount,
            category=bill.category,
            transaction_date=date(2024, 1, 15),
            receipt=receipt,
        )

        assert store.transactions == [tx]
        assert tx.type == TransactionType.EXPENSE
        assert tx.receipt_image == receipt.data_url
        assert model.calls[0][0]["mime_type"] == "image/jpeg"

        types = event_types(audit_storage)
        assert AuditEventType.BILL_SCANNED in types
        assert AuditEventType.BILL_CONFIRMED in types

    def test_user_edits_before_confirming(self, store, audit_logger):
        """Test that confirmed values, not scanned ones, are stored."""
        flow, _ = make_flow(store, audit_logger, '{"amount": 35000, "category": "Không rõ"}')
        receipt, _, _ = flow.prepare_image(receipt_bytes(), "receipt.png")

        bill, result, summary = asyncio.run(flow.scan(receipt))
        assert result.is_valid
        assert summary.startswith("⚠️")

        tx = flow.confirm("Cà phê sáng", 40000, "Ăn uống", date(2024, 1, 15))
        assert tx.amount == 40000
        assert tx.category == "Ăn uống"
        assert tx.receipt_image is None

    def test_scan_failure_stores_nothing(self, store, audit_storage, audit_logger):
        """Test that a failed scan is audited and changes nothing."""
        flow, _ = make_flow(store, audit_logger, RuntimeError("503 service unavailable"))
        receipt, _, _ = flow.prepare_image(receipt_bytes(), "receipt.png")

        with pytest.raises(AdvisorServiceError):
            asyncio.run(flow.scan(receipt))

        assert store.transactions == []
        events = audit_storage.get_recent_events()
        assert events[0].event_type == AuditEventType.EXTERNAL_SERVICE_ERROR
        assert "503" in events[0].error_message

    def test_reject(self, store, audit_storage, audit_logger):
        """Test discarding a scan."""
        flow, _ = make_flow(store, audit_logger)
        flow.reject("wrong receipt")
        assert store.transactions == []
        assert event_types(audit_storage) == [AuditEventType.BILL_REJECTED]

    def test_confirm_negative_amount_refused(self, store, audit_logger):
        """Test that confirmation still goes through store validation."""
        flow, _ = make_flow(store, audit_logger)
        with pytest.raises(ValueError):
            flow.confirm("x", -1, "Ăn uống", date(2024, 1, 15))
        assert store.transactions == []


class TestAdvisorFlows:
    """Advice and forecast see snapshots and never write."""

    def test_ask_sends_snapshot(self, store, slots, audit_logger):
        """Test that the advisor receives the store snapshot."""
        store.add_transaction({
            "type": "EXPENSE", "category": "Ăn uống", "amount": 150000, "date": "2024-01-15",
        })
        model = FakeModel("Bạn đang chi tiêu hợp lý.")
        flow = AdvisorFlow(store, FinancialAdvisorAgent(model=model), audit_logger)
        writes = slots.write_count

        answer = asyncio.run(flow.ask("Tôi chi tiêu thế nào?"))

        assert answer == "Bạn đang chi tiêu hợp lý."
        assert '"totalExpense": 150000.0' in model.calls[0]
        assert slots.write_count == writes

    def test_ask_failure_is_audited(self, store, audit_storage, audit_logger):
        """Test that advisor failures are recorded and raised."""
        advisor = FinancialAdvisorAgent(model=FakeModel(RuntimeError("x")))
        flow = AdvisorFlow(store, advisor, audit_logger)
        with pytest.raises(AdvisorServiceError):
            asyncio.run(flow.ask("?"))
        assert AuditEventType.EXTERNAL_SERVICE_ERROR in event_types(audit_storage)
        assert AuditEventType.ADVICE_REQUESTED in event_types(audit_storage)

    def test_forecast(self, store, audit_storage, audit_logger):
        """Test the forecast flow end to end."""
        store.add_transaction({
            "type": "INCOME", "category": "Lương", "amount": 10_000_000, "date": "2024-06-01",
        })
        model = FakeModel(json.dumps({
            "predictedIncome": 10_000_000,
            "predictedExpenses": 7_000_000,
            "predictedSavings": 3_000_000,
            "analysis": "Ổn định.",
        }))
        flow = ForecastFlow(store, FinancialAdvisorAgent(model=model), audit_logger)

        result = asyncio.run(flow.forecast(today=date(2024, 6, 15)))

        assert result.predicted_savings == 3_000_000
        event = audit_storage.get_recent_events()[0]
        assert event.event_type == AuditEventType.FORECAST_GENERATED


class TestAppFactory:
    """Tests for create_app_components."""

    def test_memory_backend_without_gemini(self, monkeypatch):
        """Test that missing Gemini config disables only the AI flows."""
        monkeypatch.setenv("FINTRACK_STORAGE_BACKEND", "memory")
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)

        components = create_app_components(Settings())

        assert components.bill_scan_flow is None
        assert components.advisor_flow is None
        assert components.forecast_flow is None

        tx = components.store.add_transaction({
            "type": "EXPENSE", "category": "Ăn uống", "amount": 1, "date": "2024-01-01",
        })
        assert components.reports.totals() == (0, 1)
        assert components.audit_logger.storage.get_events_by_entity("transaction", tx.id)

    def test_injected_advisor_enables_flows(self, monkeypatch):
        """Test that a supplied advisor wires every flow."""
        monkeypatch.setenv("FINTRACK_STORAGE_BACKEND", "memory")
        advisor = FinancialAdvisorAgent(model=FakeModel())

        components = create_app_components(Settings(), advisor=advisor)

        assert components.bill_scan_flow is not None
        assert components.advisor_flow is not None
        assert components.forecast_flow is not None

    def test_json_backend(self, monkeypatch, tmp_path):
        """Test that the json backend persists to the configured path."""
        path = tmp_path / "data.json"
        monkeypatch.setenv("FINTRACK_STORAGE_BACKEND", "json")
        monkeypatch.setenv("FINTRACK_STORAGE_DATA_PATH", str(path))

        advisor = FinancialAdvisorAgent(model=FakeModel())
        components = create_app_components(Settings(), advisor=advisor)
        components.store.set_currency("USD")

        assert json.loads(json.loads(path.read_text(encoding="utf-8"))["currency"]) == "USD"
