"""
Tests for the FinancialStore

Covers transactions, budgets with derived spend, goals, loans, debts,
currency, validation-before-mutation and persistence failures.
"""

import json
from datetime import date

import pytest

from fintrack.models.audit import AuditEventType
from fintrack.models.finance import (
    BudgetData,
    Currency,
    Transaction,
    TransactionData,
    TransactionType,
)
from fintrack.services.storage import QuotaExceededError
from fintrack.store import EntityNotFoundError
from fintrack.validation import StoreValidationError


def expense(category="Ăn uống", amount=150_000, day=date(2024, 1, 15), **extra):
    return TransactionData(
        type=TransactionType.EXPENSE,
        category=category,
        amount=amount,
        date=day,
        **extra,
    )


def income(category="Lương", amount=10_000_000, day=date(2024, 1, 1)):
    return TransactionData(
        type=TransactionType.INCOME,
        category=category,
        amount=amount,
        date=day,
    )


class TestTransactions:
    """Tests for transaction CRUD."""

    def test_add_assigns_fresh_id_and_persists(self, store, slots):
        """Test that a new transaction gets an id and is written."""
        tx = store.add_transaction(expense(description="Phở"))
        assert tx.id == "id-1"
        assert store.transactions == [tx]

        persisted = json.loads(slots.get("transactions"))
        assert persisted[0]["id"] == "id-1"
        assert persisted[0]["description"] == "Phở"

    def test_add_accepts_plain_dict(self, store):
        """Test that camelCase dicts are accepted as input."""
        tx = store.add_transaction({
            "type": "EXPENSE",
            "category": "Di chuyển",
            "amount": 30000,
            "date": "2024-03-02",
        })
        assert tx.category == "Di chuyển"
        assert tx.date == date(2024, 3, 2)

    def test_add_multiple_single_write(self, store, slots):
        """Test bulk add gives one id per item in a single write."""
        added = store.add_multiple_transactions([expense(), income(), expense(amount=1)])
        assert [t.id for t in added] == ["id-1", "id-2", "id-3"]
        assert slots.write_count == 1
        assert len(store.transactions) == 3

    def test_add_multiple_rejects_whole_batch(self, store, slots):
        """Test that one bad item rejects the batch."""
        with pytest.raises(StoreValidationError) as exc_info:
            store.add_multiple_transactions([expense(), expense(amount=-5)])

        assert exc_info.value.result.errors[0].field == "items[1].amount"
        assert store.transactions == []
        assert slots.write_count == 0

    def test_update_replaces_by_id(self, store):
        """Test full replace-by-id."""
        tx = store.add_transaction(expense())
        edited = tx.model_copy(update={"amount": 99_000.0, "description": "Bún chả"})
        store.update_transaction(edited)
        assert store.get_transaction(tx.id) == edited

    def test_update_unknown_id_raises(self, store):
        """Test that updating a missing transaction fails loudly."""
        ghost = Transaction(
            id="nope",
            type=TransactionType.EXPENSE,
            category="Khác",
            amount=1,
            date=date(2024, 1, 1),
        )
        with pytest.raises(EntityNotFoundError):
            store.update_transaction(ghost)

    def test_delete(self, store, slots):
        """Test delete, and that deleting nothing writes nothing."""
        tx = store.add_transaction(expense())
        assert store.delete_transaction(tx.id) is True
        assert store.transactions == []

        writes = slots.write_count
        assert store.delete_transaction(tx.id) is False
        assert slots.write_count == writes

    def test_negative_amount_rejected_before_mutation(self, store, slots, audit_storage):
        """Test validation precedes mutation and is audited."""
        with pytest.raises(StoreValidationError) as exc_info:
            store.add_transaction(expense(amount=-1))

        assert exc_info.value.result.errors[0].issue_type == "negative_amount"
        assert store.transactions == []
        assert slots.get("transactions") is None

        events = audit_storage.get_recent_events()
        assert events[0].event_type == AuditEventType.VALIDATION_FAILED

    def test_refusal_audited_once_with_every_error(self, store, audit_storage):
        """Test that a refused write logs one event listing all its errors."""
        with pytest.raises(StoreValidationError) as exc_info:
            store.add_goal({"name": "", "targetAmount": -5})

        failures = [
            e for e in audit_storage.get_recent_events()
            if e.event_type == AuditEventType.VALIDATION_FAILED
        ]
        assert len(failures) == 1
        assert len(failures[0].details["issues"]) == exc_info.value.result.error_count
        assert store.goals == []


class TestPersistenceFailures:
    """A failed write must leave the store unchanged and fail loudly."""

    def test_failed_write_propagates_and_keeps_state(self, store, slots, audit_storage):
        """Test quota errors surface and nothing is half-applied."""
        kept = store.add_transaction(expense())
        slots.fail_writes = True

        with pytest.raises(QuotaExceededError):
            store.add_transaction(expense(amount=2))

        assert store.transactions == [kept]
        assert json.loads(slots.get("transactions"))[0]["id"] == kept.id

        failures = [
            e for e in audit_storage.get_recent_events()
            if e.event_type == AuditEventType.PERSISTENCE_FAILED
        ]
        assert failures[0].details["slots"] == ["transactions"]

    def test_failed_delete_keeps_entity(self, store, slots):
        """Test that a failed delete does not drop the entity."""
        tx = store.add_transaction(expense())
        slots.fail_writes = True
        with pytest.raises(QuotaExceededError):
            store.delete_transaction(tx.id)
        assert store.transactions == [tx]


class TestBudgets:
    """Tests for budgets and the derived spend invariant."""

    def test_end_to_end_scenario(self, store):
        """Test expense, then budget, then delete the expense."""
        tx = store.add_transaction(expense(category="Ăn uống", amount=150_000))
        budget = store.add_budget(BudgetData(category="Ăn uống", amount=500_000))

        status = store.get_budget(budget.id)
        assert status.spent == 150_000
        assert status.remaining == 350_000

        store.delete_transaction(tx.id)
        assert store.get_budget(budget.id).spent == 0

    def test_spent_tracks_every_edit(self, store):
        """Test spend follows adds, edits and deletes with no recompute step."""
        budget = store.add_budget({"category": "Ăn uống", "amount": 1_000_000})

        a = store.add_transaction(expense(amount=100_000))
        b = store.add_transaction(expense(amount=200_000))
        store.add_transaction(expense(category="Di chuyển", amount=50_000))
        store.add_transaction(income(category="Ăn uống", amount=999))

        def spent():
            return store.get_budget(budget.id).spent

        def expected():
            return sum(
                t.amount for t in store.transactions
                if t.type == TransactionType.EXPENSE and t.category == "Ăn uống"
            )

        assert spent() == expected() == 300_000

        store.update_transaction(a.model_copy(update={"amount": 120_000.0}))
        assert spent() == expected() == 320_000

        store.update_transaction(b.model_copy(update={"category": "Di chuyển"}))
        assert spent() == expected() == 120_000

        store.update_transaction(a.model_copy(update={"type": TransactionType.INCOME}))
        assert spent() == expected() == 0

    def test_spent_is_not_persisted(self, store, slots):
        """Test that the budgets slot holds no spend."""
        store.add_transaction(expense())
        store.add_budget(BudgetData(category="Ăn uống", amount=500_000))
        assert "spent" not in json.loads(slots.get("budgets"))[0]

    def test_one_budget_per_category(self, store):
        """Test the uniqueness invariant."""
        store.add_budget(BudgetData(category="Ăn uống", amount=500_000))
        with pytest.raises(StoreValidationError) as exc_info:
            store.add_budget(BudgetData(category="Ăn uống", amount=1))
        assert exc_info.value.result.errors[0].issue_type == "duplicate"
        assert len(store.budgets) == 1

    def test_update_accepts_status_and_discards_spend(self, store, slots):
        """Test updating from the read view."""
        store.add_transaction(expense())
        status = store.add_budget(BudgetData(category="Ăn uống", amount=500_000))

        updated = store.update_budget(status.model_copy(update={"amount": 800_000.0}))
        assert updated.amount == 800_000
        assert updated.spent == 150_000
        assert "spent" not in json.loads(slots.get("budgets"))[0]

    def test_update_to_taken_category_rejected(self, store):
        """Test that renaming a budget onto another budget's category fails."""
        store.add_budget(BudgetData(category="Ăn uống", amount=1))
        other = store.add_budget(BudgetData(category="Di chuyển", amount=1))
        with pytest.raises(StoreValidationError):
            store.update_budget(other.model_copy(update={"category": "Ăn uống"}))

    def test_delete_budget(self, store):
        """Test budget deletion."""
        budget = store.add_budget(BudgetData(category="Ăn uống", amount=1))
        assert store.delete_budget(budget.id)
        assert store.budgets == []


class TestGoals:
    """Tests for savings goals."""

    def test_add_funds_clamps_to_target(self, store):
        """Test that funding never pushes past the target."""
        goal = store.add_goal({
            "name": "Quỹ khẩn cấp",
            "targetAmount": 1_000_000,
            "currentAmount": 900_000,
        })
        funded = store.add_funds_to_goal(goal.id, 500_000)
        assert funded.current_amount == 1_000_000
        assert store.goals[0].current_amount == 1_000_000

    def test_add_funds_below_target(self, store):
        """Test plain funding."""
        goal = store.add_goal({"name": "Laptop", "targetAmount": 1_000_000})
        assert store.add_funds_to_goal(goal.id, 250_000).current_amount == 250_000

    def test_direct_set_is_clamped(self, store):
        """Test that add and update clamp current to target too."""
        goal = store.add_goal({"name": "Xe", "targetAmount": 100, "currentAmount": 150})
        assert goal.current_amount == 100

        updated = store.update_goal(goal.model_copy(update={"current_amount": 500.0}))
        assert updated.current_amount == 100

    def test_negative_funds_rejected(self, store):
        """Test that funds cannot be withdrawn through add_funds."""
        goal = store.add_goal({"name": "Laptop", "targetAmount": 1000, "currentAmount": 500})
        with pytest.raises(StoreValidationError):
            store.add_funds_to_goal(goal.id, -100)
        assert store.goals[0].current_amount == 500

    def test_funding_missing_goal(self, store):
        """Test funding an unknown goal."""
        with pytest.raises(EntityNotFoundError):
            store.add_funds_to_goal("missing", 1)

    def test_negative_target_rejected(self, store):
        """Test goal target validation."""
        with pytest.raises(StoreValidationError):
            store.add_goal({"name": "Bad", "targetAmount": -1})


class TestLoansAndDebts:
    """Loans and debts are added, and deleted when paid off."""

    def test_loan_lifecycle(self, store):
        """Test add and pay off a loan."""
        loan = store.add_loan({
            "name": "Vay mua nhà",
            "principal": 500_000_000,
            "interestRate": 8.5,
            "maturityDate": "2030-12-31",
        })
        assert store.loans == [loan]
        assert store.delete_loan(loan.id)
        assert store.loans == []

    def test_debt_lifecycle(self, store):
        """Test add and settle a debt."""
        debt = store.add_debt({
            "name": "Thẻ tín dụng",
            "amount": 5_000_000,
            "minimumPayment": 500_000,
            "dueDate": "2024-02-15",
        })
        assert store.debts[0].minimum_payment == 500_000
        assert store.delete_debt(debt.id)
        assert store.debts == []

    def test_negative_debt_rejected(self, store):
        """Test debt amount validation."""
        with pytest.raises(StoreValidationError):
            store.add_debt({"name": "X", "amount": -1, "dueDate": "2024-02-15"})


class TestCurrencyPreference:
    """Tests for the stored currency preference."""

    def test_default_and_change(self, store, slots):
        """Test default currency and persisting a change."""
        assert store.currency == Currency.VND
        assert store.format_currency(150_000) == "150.000 VND"

        store.set_currency("USD")
        assert store.currency == Currency.USD
        assert json.loads(slots.get("currency")) == "USD"
        assert store.format_currency(1234.5) == "$1,234.50"

    def test_changing_currency_keeps_amounts(self, store):
        """Test that the preference never converts stored amounts."""
        tx = store.add_transaction(expense(amount=150_000))
        before = store.format_currency(tx.amount)

        store.set_currency(Currency.USD)
        store.set_currency(Currency.VND)

        assert store.transactions[0].amount == 150_000
        assert store.format_currency(tx.amount) == before


class TestSnapshot:
    """Tests for the advisor snapshot."""

    def test_snapshot_contents(self, store):
        """Test totals, budgets with spend and receipt images left out."""
        store.add_transaction(income())
        store.add_transaction(expense(receipt_image="data:image/jpeg;base64,AAAA"))
        store.add_budget(BudgetData(category="Ăn uống", amount=500_000))
        store.add_goal({"name": "Laptop", "targetAmount": 1_000_000})

        snap = store.snapshot()
        assert snap["currency"] == "VND"
        assert snap["summary"] == {"totalIncome": 10_000_000, "totalExpense": 150_000}
        assert len(snap["recentTransactions"]) == 2
        assert all("receiptImage" not in t for t in snap["recentTransactions"])
        assert snap["budgets"][0]["spent"] == 150_000
        assert snap["goals"][0]["name"] == "Laptop"
        json.dumps(snap)

    def test_snapshot_limits_recent(self, store):
        """Test that only the most recent transactions are sent."""
        store.add_multiple_transactions([expense(amount=i) for i in range(5)])
        recent = store.snapshot(recent=2)["recentTransactions"]
        assert [t["amount"] for t in recent] == [3, 4]


class TestSearch:
    """Tests for transaction search."""

    @pytest.fixture
    def history(self, store):
        store.add_multiple_transactions([
            expense(description="Phở bò", day=date(2024, 1, 10)),
            expense(category="Di chuyển", description="Grab", day=date(2024, 1, 20)),
            income(day=date(2024, 1, 5)),
            expense(category="Mua sắm", description="Áo PHỞ", day=date(2024, 1, 15)),
        ])
        return store

    def test_matches_description_ignoring_case(self, history):
        """Test a description match regardless of case, newest first."""
        found = history.search_transactions("phở")
        assert [t.description for t in found] == ["Áo PHỞ", "Phở bò"]

    def test_matches_category(self, history):
        """Test that the category name is searched too."""
        assert [t.description for t in history.search_transactions("di chuyển")] == ["Grab"]

    def test_empty_term_sorts_everything(self, history):
        """Test that no term lists every transaction by date, newest first."""
        assert [t.date for t in history.search_transactions()] == [
            date(2024, 1, 20), date(2024, 1, 15), date(2024, 1, 10), date(2024, 1, 5),
        ]

    def test_no_match(self, history):
        """Test a term nothing contains."""
        assert history.search_transactions("xăng") == []
