"""
Tests for slot persistence

Round trips through the JSON file backend, corrupt and legacy slots,
quota failures and reloading another store's writes.
"""

import json
from datetime import date

import pytest

from fintrack.models.finance import Category, Currency
from fintrack.services.storage import (
    CorruptSlotError,
    InMemorySlotStorage,
    JsonFileSlotStorage,
    QuotaExceededError,
    StorageError,
)



RECEIPT = "data:image/jpeg;base64,/9j/4AAQSkZJRgABAQ=="


def populate(store):
    store.add_transaction({
        "type": "EXPENSE",
        "category": "Ăn uống",
        "amount": 150000,
        "description": "Bún bò Huế",
        "date": "2024-01-15",
        "receiptImage": RECEIPT,
        "priority": "High",
    })
    store.add_transaction({
        "type": "INCOME", "category": "Lương", "amount": 15_000_000.5, "date": "2024-01-31",
    })
    store.add_budget({"category": "Ăn uống", "amount": 2_000_000})
    store.add_goal({
        "name": "Du lịch Đà Nẵng",
        "targetAmount": 10_000_000,
        "currentAmount": 2_500_000,
        "deadline": "2024-12-31",
    })
    store.add_recurring_transaction({
        "type": "EXPENSE",
        "category": "Nhà ở",
        "amount": 5_000_000,
        "startDate": "2024-01-01",
        "frequency": "monthly",
        "endDate": "2024-12-31",
        "lastPostedDate": "2024-01-01",
    })
    store.add_loan({
        "name": "Vay mua xe", "principal": 300_000_000, "interestRate": 9.5,
        "maturityDate": "2027-06-30",
    })
    store.add_debt({"name": "Thẻ tín dụng", "amount": 4_000_000, "dueDate": "2024-02-10"})
    store.add_category(Category(name="Cà phê", icon="food"), "EXPENSE")
    store.set_currency(Currency.USD)


class TestJsonFileRoundTrip:
    """Every collection survives a restart unchanged."""

    def test_reopen_restores_everything(self, tmp_path, make_store):
        """Test a fresh store over the same file sees identical state."""
        path = tmp_path / "fintrack.json"
        first = make_store(JsonFileSlotStorage(path))
        populate(first)

        second = make_store(JsonFileSlotStorage(path))

        assert second.transactions == first.transactions
        assert second.budgets == first.budgets
        assert second.goals == first.goals
        assert second.recurring_transactions == first.recurring_transactions
        assert second.loans == first.loans
        assert second.debts == first.debts
        assert second.expense_categories == first.expense_categories
        assert second.income_categories == first.income_categories
        assert second.currency == Currency.USD

        assert second.transactions[0].receipt_image == RECEIPT
        assert second.goals[0].deadline == date(2024, 12, 31)

    def test_file_is_utf8_with_camel_case_slots(self, tmp_path, make_store):
        """Test the on-disk document layout."""
        path = tmp_path / "fintrack.json"
        populate(make_store(JsonFileSlotStorage(path)))

        text = path.read_text(encoding="utf-8")
        assert "Bún bò Huế" in text

        slots = json.loads(text)
        assert set(slots) == {
            "transactions", "budgets", "goals", "recurringTransactions",
            "loans", "debts", "expenseCategories", "currency",
        }
        tx = json.loads(slots["transactions"])[0]
        assert tx["receiptImage"] == RECEIPT
        assert json.loads(slots["currency"]) == "USD"

    def test_no_temporary_files_left(self, tmp_path, make_store):
        """Test that atomic writes clean up after themselves."""
        path = tmp_path / "fintrack.json"
        populate(make_store(JsonFileSlotStorage(path)))
        assert [p.name for p in tmp_path.iterdir()] == ["fintrack.json"]

    def test_missing_file_gives_defaults(self, tmp_path, make_store):
        """Test a store over a file that does not exist yet."""
        store = make_store(JsonFileSlotStorage(tmp_path / "new" / "data.json"))
        assert store.transactions == []
        assert store.currency == Currency.VND
        assert len(store.expense_categories) == 14

    def test_invalid_document_raises(self, tmp_path, make_store):
        """Test that a non-JSON file is reported, not replaced."""
        path = tmp_path / "fintrack.json"
        path.write_text("not json", encoding="utf-8")
        with pytest.raises(StorageError):
            make_store(JsonFileSlotStorage(path))
        assert path.read_text(encoding="utf-8") == "not json"


class TestQuota:
    """Writes over the size limit fail and change nothing."""

    def test_quota_exceeded(self, tmp_path, make_store):
        """Test that the oversize write is refused and state is kept."""
        path = tmp_path / "fintrack.json"
        store = make_store(JsonFileSlotStorage(path, max_bytes=2_000))
        kept = store.add_transaction({
            "type": "EXPENSE", "category": "Ăn uống", "amount": 1, "date": "2024-01-01",
        })
        before = path.read_text(encoding="utf-8")

        with pytest.raises(QuotaExceededError):
            store.add_transaction({
                "type": "EXPENSE",
                "category": "Ăn uống",
                "amount": 1,
                "date": "2024-01-02",
                "receiptImage": "data:image/jpeg;base64," + "A" * 5_000,
            })

        assert store.transactions == [kept]
        assert path.read_text(encoding="utf-8") == before
        assert make_store(JsonFileSlotStorage(path)).transactions == [kept]


class TestCorruptSlots:
    """Unreadable slots fail loudly instead of loading as empty."""

    def test_invalid_json_slot(self, make_store):
        """Test a slot that is not JSON."""
        storage = InMemorySlotStorage({"transactions": "[{broken"})
        with pytest.raises(CorruptSlotError) as exc_info:
            make_store(storage)
        assert exc_info.value.key == "transactions"

    def test_slot_not_a_list(self, make_store):
        """Test a slot holding the wrong JSON type."""
        with pytest.raises(CorruptSlotError):
            make_store(InMemorySlotStorage({"budgets": '{"category": "x"}'}))

    def test_slot_with_bad_entity(self, make_store):
        """Test a slot whose items do not match the entity shape."""
        with pytest.raises(CorruptSlotError):
            make_store(InMemorySlotStorage({"goals": '[{"id": "g1"}]'}))

    def test_unknown_currency(self, make_store):
        """Test a currency slot naming an unsupported currency."""
        with pytest.raises(CorruptSlotError) as exc_info:
            make_store(InMemorySlotStorage({"currency": '"EUR"'}))
        assert exc_info.value.key == "currency"

    def test_slot_stored_as_nested_json(self, tmp_path, make_store):
        """Test a file holding a slot as an array instead of JSON text."""
        path = tmp_path / "fintrack.json"
        path.write_text(json.dumps({"transactions": []}), encoding="utf-8")
        with pytest.raises(CorruptSlotError) as exc_info:
            make_store(JsonFileSlotStorage(path))
        assert exc_info.value.key == "transactions"

    def test_legacy_spent_is_ignored(self, make_store):
        """Test that a stored spend value is replaced by the derived one."""
        storage = InMemorySlotStorage({
            "budgets": json.dumps([
                {"id": "b1", "category": "Ăn uống", "amount": 500000, "spent": 999999},
            ]),
            "transactions": json.dumps([
                {"id": "t1", "type": "EXPENSE", "category": "Ăn uống",
                 "amount": 150000, "date": "2024-01-15"},
            ]),
        })
        store = make_store(storage)
        assert store.budgets[0].spent == 150000

    def test_unknown_icon_falls_back(self, make_store):
        """Test that an unrecognised icon tag loads as the default icon."""
        store = make_store(InMemorySlotStorage({
            "incomeCategories": json.dumps([{"name": "Lương", "icon": "rocket"}]),
        }))
        assert store.income_categories[0].icon.value == "default"

    def test_written_empty_slot_is_not_reseeded(self, make_store):
        """Test that an explicitly empty category list stays empty."""
        store = make_store(InMemorySlotStorage({"expenseCategories": "[]"}))
        assert store.expense_categories == []


class TestReload:
    """Two stores over one backend: reload picks up the other's writes."""

    def test_reload_sees_other_writes(self, tmp_path, make_store):
        """Test that the last writer's state is what reload shows."""
        path = tmp_path / "fintrack.json"
        a = make_store(JsonFileSlotStorage(path))
        b = make_store(JsonFileSlotStorage(path))

        b.add_transaction({
            "type": "INCOME", "category": "Thưởng", "amount": 1, "date": "2024-01-01",
        })
        assert a.transactions == []

        a.reload()
        assert [t.category for t in a.transactions] == ["Thưởng"]
