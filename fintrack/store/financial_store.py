"""
Financial Store

DESIGN DECISION: One explicitly constructed object owns every financial
collection. Whoever needs the data is handed the store; there is no
process-wide instance to look up.

Every mutating call follows the same path:
1. VALIDATE  - StoreValidator checks the write against current state
2. COMPUTE   - build the new collection(s) without touching the old ones
3. PERSIST   - write every changed slot in ONE storage call
4. PUBLISH   - only now replace the in-memory collections
5. AUDIT     - record what happened

A rejected write (validation) or a failed write (storage) therefore
leaves the in-memory collections exactly as they were.

CRITICAL: Budget spend is never stored. It is recomputed from the
transaction log on every read, so it cannot drift from the transactions.
"""

import json
from collections import defaultdict
from datetime import date
from typing import Any, Callable, Iterable, Mapping, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ValidationError

from fintrack.audit import AuditLogger
from fintrack.config import get_settings
from fintrack.models.audit import AuditEventBuilder
from fintrack.models.finance import (
    Budget,
    BudgetData,
    BudgetStatus,
    Category,
    Currency,
    Debt,
    DebtData,
    Goal,
    GoalData,
    Loan,
    LoanData,
    RecurringTransaction,
    RecurringTransactionData,
    Transaction,
    TransactionData,
    TransactionType,
    ValidationIssue,
    ValidationResult,
)
from fintrack.services.storage import (
    BUDGETS_SLOT,
    CURRENCY_SLOT,
    DEBTS_SLOT,
    EXPENSE_CATEGORIES_SLOT,
    GOALS_SLOT,
    INCOME_CATEGORIES_SLOT,
    LOANS_SLOT,
    RECURRING_SLOT,
    TRANSACTIONS_SLOT,
    CorruptSlotError,
    SlotStorageInterface,
    StorageError,
)
from fintrack.store import recurring
from fintrack.store.currency import format_currency
from fintrack.store.defaults import (
    DEFAULT_EXPENSE_CATEGORIES,
    DEFAULT_INCOME_CATEGORIES,
)
from fintrack.validation import StoreValidator, raise_if_invalid


class EntityNotFoundError(LookupError):
    """Replace-by-id (or post) named an entity the store does not hold."""

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"No {entity_type} with id '{entity_id}'")


# Slot key -> (model of each item, default when the slot was never written)
_LIST_SLOTS: dict[str, tuple[type[BaseModel], Callable[[], list]]] = {
    TRANSACTIONS_SLOT: (Transaction, list),
    BUDGETS_SLOT: (Budget, list),
    GOALS_SLOT: (Goal, list),
    RECURRING_SLOT: (RecurringTransaction, list),
    LOANS_SLOT: (Loan, list),
    DEBTS_SLOT: (Debt, list),
    EXPENSE_CATEGORIES_SLOT: (Category, lambda: list(DEFAULT_EXPENSE_CATEGORIES)),
    INCOME_CATEGORIES_SLOT: (Category, lambda: list(DEFAULT_INCOME_CATEGORIES)),
}

_CATEGORY_SLOTS = {
    TransactionType.EXPENSE: EXPENSE_CATEGORIES_SLOT,
    TransactionType.INCOME: INCOME_CATEGORIES_SLOT,
}


def _coerce(model: type[BaseModel], value: Union[BaseModel, Mapping[str, Any]]):
    if isinstance(value, model):
        return value
    if isinstance(value, BaseModel):
        value = value.model_dump()
    return model.model_validate(value)


def _with_id(model: type[BaseModel], data: BaseModel, new_id: str):
    return model(**data.model_dump(exclude={"id"}), id=new_id)


def _clamp_goal(goal: Goal) -> Goal:
    if goal.current_amount > goal.target_amount:
        return goal.model_copy(update={"current_amount": goal.target_amount})
    return goal


class FinancialStore:
    """
    Owns and persists the user's financial collections.

    Args:
        storage: Slot backend. Each collection lives under its own key.
        validator: Precondition checks. Defaults to a StoreValidator.
        audit_logger: Where mutations are recorded. Defaults to local logging only.
        id_factory: Produces fresh entity ids. Defaults to random UUID strings.
        default_currency: Currency used until one is stored.

    Raises:
        CorruptSlotError: If a slot holds text that cannot be loaded.
    """

    def __init__(
        self,
        storage: SlotStorageInterface,
        validator: Optional[StoreValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        id_factory: Optional[Callable[[], str]] = None,
        default_currency: Optional[Union[Currency, str]] = None,
    ):
        settings = get_settings().app
        self._storage = storage
        self._validator = validator or StoreValidator()
        self._audit = audit_logger or AuditLogger()
        self._new_id = id_factory or (lambda: str(uuid4()))
        self._default_currency = Currency(default_currency or settings.default_currency)
        self._recent_limit = settings.advice_recent_transactions
        self._data: dict[str, Any] = self._load_all()

    # =========================================================================
    # LOADING AND PERSISTENCE
    # =========================================================================

    def _load_list(self, key: str) -> list:
        model, default = _LIST_SLOTS[key]
        text = self._storage.get(key)
        if text is None:
            return default()
        try:
            raw = json.loads(text)
        except (json.JSONDecodeError, TypeError) as e:
            raise CorruptSlotError(key, f"invalid JSON ({e})")
        if not isinstance(raw, list):
            raise CorruptSlotError(key, "expected a JSON array")
        try:
            return [model.model_validate(item) for item in raw]
        except ValidationError as e:
            raise CorruptSlotError(key, str(e))

    def _load_currency(self) -> Currency:
        text = self._storage.get(CURRENCY_SLOT)
        if text is None:
            return self._default_currency
        try:
            return Currency(json.loads(text))
        except (json.JSONDecodeError, TypeError, ValueError) as e:
            raise CorruptSlotError(CURRENCY_SLOT, str(e))

    def _load_all(self) -> dict[str, Any]:
        data: dict[str, Any] = {key: self._load_list(key) for key in _LIST_SLOTS}
        data[CURRENCY_SLOT] = self._load_currency()
        return data

    def reload(self) -> None:
        """
        Re-read every slot from storage.

        Another store over the same storage may have written since this
        one loaded. There is no merge: whatever storage holds now wins.
        """
        self._data = self._load_all()

    @staticmethod
    def _serialize(key: str, value: Any) -> str:
        if key == CURRENCY_SLOT:
            return json.dumps(value.value)
        return json.dumps(
            [item.to_slot_dict() for item in value],
            ensure_ascii=False,
        )

    def _commit(self, changes: dict[str, Any]) -> None:
        """Persist the changed slots as one unit, then publish them."""
        payload = {key: self._serialize(key, value) for key, value in changes.items()}
        try:
            self._storage.set_many(payload)
        except StorageError as e:
            self._audit.log(AuditEventBuilder.persistence_failed(
                slots=list(payload),
                error_message=str(e),
            ))
            raise
        self._data.update(changes)

    def _check(self, result: ValidationResult) -> None:
        if result.has_errors:
            self._audit.log(AuditEventBuilder.validation_failed(
                operation=result.operation,
                issues=[issue.model_dump() for issue in result.errors],
            ))
        raise_if_invalid(result)

    @staticmethod
    def _index_of(items: list, entity_id: str, entity_type: str) -> int:
        for i, item in enumerate(items):
            if item.id == entity_id:
                return i
        raise EntityNotFoundError(entity_type, entity_id)

    def _delete_by_id(self, key: str, entity_id: str, entity_type: str) -> bool:
        items = self._data[key]
        remaining = [item for item in items if item.id != entity_id]
        if len(remaining) == len(items):
            return False
        self._commit({key: remaining})
        self._audit.log(AuditEventBuilder.entity_deleted(entity_type, entity_id))
        return True

    def _replace_by_id(self, key: str, entity: BaseModel, entity_type: str) -> None:
        items = list(self._data[key])
        items[self._index_of(items, entity.id, entity_type)] = entity
        self._commit({key: items})
        self._audit.log(AuditEventBuilder.entity_updated(entity_type, entity.id))

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    @property
    def transactions(self) -> list[Transaction]:
        return list(self._data[TRANSACTIONS_SLOT])

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        for tx in self._data[TRANSACTIONS_SLOT]:
            if tx.id == transaction_id:
                return tx
        return None

    def search_transactions(self, term: str = "") -> list[Transaction]:
        """
        Transactions whose description or category contains `term`,
        ignoring case, newest date first. An empty term matches all.
        """
        needle = term.lower()
        matches = [
            tx for tx in self._data[TRANSACTIONS_SLOT]
            if needle in tx.description.lower() or needle in tx.category.lower()
        ]
        return sorted(matches, key=lambda tx: tx.date, reverse=True)

    def add_transaction(
        self,
        data: Union[TransactionData, Mapping[str, Any]],
    ) -> Transaction:
        """
        Store a new transaction under a fresh id.

        Budgets need no update: their spend is derived on read.
        """
        data = _coerce(TransactionData, data)
        self._check(self._validator.validate_transaction(data))

        tx = _with_id(Transaction, data, self._new_id())
        self._commit({TRANSACTIONS_SLOT: [*self._data[TRANSACTIONS_SLOT], tx]})

        self._audit.log(AuditEventBuilder.entity_created(
            "transaction",
            tx.id,
            {"type": tx.type.value, "category": tx.category, "amount": tx.amount},
        ))
        return tx

    def add_multiple_transactions(
        self,
        items: Iterable[Union[TransactionData, Mapping[str, Any]]],
    ) -> list[Transaction]:
        """
        Store several transactions with one write.

        If any item is invalid, none is stored.
        """
        batch = [_coerce(TransactionData, item) for item in items]

        issues = []
        for i, data in enumerate(batch):
            result = self._validator.validate_transaction(data)
            for issue in result.issues:
                issues.append(issue.model_copy(update={"field": f"items[{i}].{issue.field}"}))
        self._check(ValidationResult(operation="add_multiple_transactions", issues=issues))

        if not batch:
            return []

        added = [_with_id(Transaction, data, self._new_id()) for data in batch]
        self._commit({TRANSACTIONS_SLOT: [*self._data[TRANSACTIONS_SLOT], *added]})

        self._audit.log(AuditEventBuilder.transactions_imported(len(added)))
        return added

    def update_transaction(
        self,
        transaction: Union[Transaction, Mapping[str, Any]],
    ) -> Transaction:
        """Replace the stored transaction with the same id."""
        transaction = _coerce(Transaction, transaction)
        self._check(self._validator.validate_transaction(
            transaction, operation="update_transaction"
        ))
        self._replace_by_id(TRANSACTIONS_SLOT, transaction, "transaction")
        return transaction

    def delete_transaction(self, transaction_id: str) -> bool:
        """Returns False (and writes nothing) if no such transaction exists."""
        return self._delete_by_id(TRANSACTIONS_SLOT, transaction_id, "transaction")

    # =========================================================================
    # BUDGETS
    # =========================================================================

    def _expense_totals(self) -> dict[str, float]:
        totals: dict[str, float] = defaultdict(float)
        for tx in self._data[TRANSACTIONS_SLOT]:
            if tx.type == TransactionType.EXPENSE:
                totals[tx.category] += tx.amount
        return totals

    @staticmethod
    def _status(budget: Budget, totals: Mapping[str, float]) -> BudgetStatus:
        return BudgetStatus(
            id=budget.id,
            category=budget.category,
            amount=budget.amount,
            spent=totals.get(budget.category, 0.0),
        )

    @property
    def budgets(self) -> list[BudgetStatus]:
        """
        Budgets with their spend.

        spent = lifetime sum of EXPENSE amounts in the budget's category.
        """
        totals = self._expense_totals()
        return [self._status(b, totals) for b in self._data[BUDGETS_SLOT]]

    def get_budget(self, budget_id: str) -> Optional[BudgetStatus]:
        for budget in self._data[BUDGETS_SLOT]:
            if budget.id == budget_id:
                return self._status(budget, self._expense_totals())
        return None

    def add_budget(
        self,
        data: Union[BudgetData, Mapping[str, Any]],
    ) -> BudgetStatus:
        data = _coerce(BudgetData, data)
        self._check(self._validator.validate_budget(data, self._data[BUDGETS_SLOT]))

        budget = _with_id(Budget, data, self._new_id())
        self._commit({BUDGETS_SLOT: [*self._data[BUDGETS_SLOT], budget]})

        self._audit.log(AuditEventBuilder.entity_created(
            "budget",
            budget.id,
            {"category": budget.category, "amount": budget.amount},
        ))
        return self._status(budget, self._expense_totals())

    def update_budget(
        self,
        budget: Union[Budget, Mapping[str, Any]],
    ) -> BudgetStatus:
        """
        Replace the stored budget with the same id.

        A BudgetStatus is accepted; its derived spend is discarded.
        """
        budget = _coerce(Budget, budget)
        if isinstance(budget, BudgetStatus):
            budget = budget.to_budget()
        self._check(self._validator.validate_budget(
            budget,
            self._data[BUDGETS_SLOT],
            exclude_id=budget.id,
            operation="update_budget",
        ))
        self._replace_by_id(BUDGETS_SLOT, budget, "budget")
        return self._status(budget, self._expense_totals())

    def delete_budget(self, budget_id: str) -> bool:
        return self._delete_by_id(BUDGETS_SLOT, budget_id, "budget")

    # =========================================================================
    # GOALS
    # =========================================================================

    @property
    def goals(self) -> list[Goal]:
        return list(self._data[GOALS_SLOT])

    def get_goal(self, goal_id: str) -> Optional[Goal]:
        for goal in self._data[GOALS_SLOT]:
            if goal.id == goal_id:
                return goal
        return None

    def add_goal(self, data: Union[GoalData, Mapping[str, Any]]) -> Goal:
        """current_amount above the target is capped at the target."""
        data = _coerce(GoalData, data)
        self._check(self._validator.validate_goal(data))

        goal = _clamp_goal(_with_id(Goal, data, self._new_id()))
        self._commit({GOALS_SLOT: [*self._data[GOALS_SLOT], goal]})

        self._audit.log(AuditEventBuilder.entity_created(
            "goal",
            goal.id,
            {"name": goal.name, "target_amount": goal.target_amount},
        ))
        return goal

    def update_goal(self, goal: Union[Goal, Mapping[str, Any]]) -> Goal:
        goal = _coerce(Goal, goal)
        self._check(self._validator.validate_goal(goal, operation="update_goal"))
        goal = _clamp_goal(goal)
        self._replace_by_id(GOALS_SLOT, goal, "goal")
        return goal

    def add_funds_to_goal(self, goal_id: str, amount: float) -> Goal:
        """
        Add savings to a goal.

        The result never exceeds the target: funding 500,000 into a goal
        at 900,000 of 1,000,000 leaves it at exactly 1,000,000.
        """
        self._check(self._validator.validate_goal_funds(amount))
        goals = list(self._data[GOALS_SLOT])
        index = self._index_of(goals, goal_id, "goal")
        goal = goals[index]

        requested = goal.current_amount + amount
        applied = min(requested, goal.target_amount)
        goals[index] = goal.model_copy(update={"current_amount": applied})
        self._commit({GOALS_SLOT: goals})

        self._audit.log(AuditEventBuilder.goal_funded(goal_id, requested, applied))
        return goals[index]

    def delete_goal(self, goal_id: str) -> bool:
        return self._delete_by_id(GOALS_SLOT, goal_id, "goal")

    # =========================================================================
    # CATEGORIES
    # =========================================================================

    @property
    def expense_categories(self) -> list[Category]:
        return list(self._data[EXPENSE_CATEGORIES_SLOT])

    @property
    def income_categories(self) -> list[Category]:
        return list(self._data[INCOME_CATEGORIES_SLOT])

    def categories_for(self, category_type: TransactionType) -> list[Category]:
        return list(self._data[_CATEGORY_SLOTS[TransactionType(category_type)]])

    def get_category_by_name(self, name: str) -> Optional[Category]:
        """Expense categories are searched before income categories."""
        for category in [*self.expense_categories, *self.income_categories]:
            if category.name == name:
                return category
        return None

    def add_category(
        self,
        category: Union[Category, Mapping[str, Any]],
        category_type: TransactionType,
    ) -> Category:
        category = _coerce(Category, category)
        key = _CATEGORY_SLOTS[TransactionType(category_type)]
        self._check(self._validator.validate_category_name(
            category, self._data[key]
        ))

        self._commit({key: [*self._data[key], category]})
        self._audit.log(AuditEventBuilder.entity_created(
            "category",
            category.name,
            {"type": TransactionType(category_type).value, "icon": category.icon.value},
        ))
        return category

    def update_category(
        self,
        old_name: str,
        new_category: Union[Category, Mapping[str, Any]],
        category_type: TransactionType,
    ) -> Category:
        """
        Replace a category and, on rename, rewrite every reference to it.

        Transactions and recurring transactions of `category_type` are
        renamed; budgets too when the type is EXPENSE. Entities of the
        other type keep the old name. All slots change in one write.
        """
        category_type = TransactionType(category_type)
        new_category = _coerce(Category, new_category)
        key = _CATEGORY_SLOTS[category_type]

        categories = list(self._data[key])
        index = next(
            (i for i, c in enumerate(categories) if c.name == old_name),
            None,
        )
        if index is None:
            raise EntityNotFoundError("category", old_name)

        self._check(self._validator.validate_category_name(
            new_category,
            categories,
            exclude_name=old_name,
            operation="update_category",
        ))

        categories[index] = new_category
        changes: dict[str, Any] = {key: categories}
        cascaded: dict[str, int] = {}

        if new_category.name != old_name:
            def rename(items: list, slot: str) -> None:
                renamed = 0
                updated = []
                for item in items:
                    matches = item.category == old_name and (
                        slot == BUDGETS_SLOT or item.type == category_type
                    )
                    if matches:
                        item = item.model_copy(update={"category": new_category.name})
                        renamed += 1
                    updated.append(item)
                if renamed:
                    changes[slot] = updated
                cascaded[slot] = renamed

            rename(self._data[TRANSACTIONS_SLOT], TRANSACTIONS_SLOT)
            rename(self._data[RECURRING_SLOT], RECURRING_SLOT)
            if category_type == TransactionType.EXPENSE:
                rename(self._data[BUDGETS_SLOT], BUDGETS_SLOT)

        self._commit(changes)

        if new_category.name != old_name:
            self._audit.log(AuditEventBuilder.category_renamed(
                old_name=old_name,
                new_name=new_category.name,
                category_type=category_type.value,
                cascaded=cascaded,
            ))
        else:
            self._audit.log(AuditEventBuilder.entity_updated(
                "category", old_name, {"icon": new_category.icon.value}
            ))
        return new_category

    def category_usage(self, name: str, category_type: TransactionType) -> dict[str, int]:
        """
        Count references that block deleting a category.

        Any transaction or recurring transaction using the name counts,
        whatever its type. Budgets only count for expense categories.
        """
        usage = {
            "transactions": sum(
                1 for t in self._data[TRANSACTIONS_SLOT] if t.category == name
            ),
            "recurring_transactions": sum(
                1 for t in self._data[RECURRING_SLOT] if t.category == name
            ),
        }
        if TransactionType(category_type) == TransactionType.EXPENSE:
            usage["budgets"] = sum(
                1 for b in self._data[BUDGETS_SLOT] if b.category == name
            )
        return usage

    def delete_category(self, name: str, category_type: TransactionType) -> bool:
        """
        Remove a category.

        Raises:
            StoreValidationError: If the category is protected or still used

        Returns False (and writes nothing) if no such category exists.
        """
        category_type = TransactionType(category_type)
        key = _CATEGORY_SLOTS[category_type]
        categories = self._data[key]
        if not any(c.name == name for c in categories):
            return False

        self._check(self._validator.validate_category_deletion(
            name, category_type, self.category_usage(name, category_type)
        ))

        self._commit({key: [c for c in categories if c.name != name]})
        self._audit.log(AuditEventBuilder.entity_deleted("category", name))
        return True

    # =========================================================================
    # LOANS AND DEBTS
    # =========================================================================

    @property
    def loans(self) -> list[Loan]:
        return list(self._data[LOANS_SLOT])

    def add_loan(self, data: Union[LoanData, Mapping[str, Any]]) -> Loan:
        data = _coerce(LoanData, data)
        self._check(self._validator.validate_loan(data))

        loan = _with_id(Loan, data, self._new_id())
        self._commit({LOANS_SLOT: [*self._data[LOANS_SLOT], loan]})

        self._audit.log(AuditEventBuilder.entity_created(
            "loan", loan.id, {"name": loan.name, "principal": loan.principal}
        ))
        return loan

    def delete_loan(self, loan_id: str) -> bool:
        """Paying off a loan deletes it."""
        return self._delete_by_id(LOANS_SLOT, loan_id, "loan")

    @property
    def debts(self) -> list[Debt]:
        return list(self._data[DEBTS_SLOT])

    def add_debt(self, data: Union[DebtData, Mapping[str, Any]]) -> Debt:
        data = _coerce(DebtData, data)
        self._check(self._validator.validate_debt(data))

        debt = _with_id(Debt, data, self._new_id())
        self._commit({DEBTS_SLOT: [*self._data[DEBTS_SLOT], debt]})

        self._audit.log(AuditEventBuilder.entity_created(
            "debt", debt.id, {"name": debt.name, "amount": debt.amount}
        ))
        return debt

    def delete_debt(self, debt_id: str) -> bool:
        """Settling a debt deletes it."""
        return self._delete_by_id(DEBTS_SLOT, debt_id, "debt")

    # =========================================================================
    # RECURRING TRANSACTIONS
    # =========================================================================

    @property
    def recurring_transactions(self) -> list[RecurringTransaction]:
        return list(self._data[RECURRING_SLOT])

    def get_recurring_transaction(self, recurring_id: str) -> Optional[RecurringTransaction]:
        for rt in self._data[RECURRING_SLOT]:
            if rt.id == recurring_id:
                return rt
        return None

    def recurring_by_due_date(self) -> list[RecurringTransaction]:
        """Recurring transactions, soonest next occurrence first."""
        return recurring.sort_by_due_date(self._data[RECURRING_SLOT])

    def add_recurring_transaction(
        self,
        data: Union[RecurringTransactionData, Mapping[str, Any]],
    ) -> RecurringTransaction:
        data = _coerce(RecurringTransactionData, data)
        self._check(self._validator.validate_recurring(data))

        rt = _with_id(RecurringTransaction, data, self._new_id())
        self._commit({RECURRING_SLOT: [*self._data[RECURRING_SLOT], rt]})

        self._audit.log(AuditEventBuilder.entity_created(
            "recurring_transaction",
            rt.id,
            {"frequency": rt.frequency.value, "category": rt.category, "amount": rt.amount},
        ))
        return rt

    def update_recurring_transaction(
        self,
        rt: Union[RecurringTransaction, Mapping[str, Any]],
    ) -> RecurringTransaction:
        rt = _coerce(RecurringTransaction, rt)
        self._check(self._validator.validate_recurring(
            rt, operation="update_recurring_transaction"
        ))
        self._replace_by_id(RECURRING_SLOT, rt, "recurring_transaction")
        return rt

    def delete_recurring_transaction(self, recurring_id: str) -> bool:
        return self._delete_by_id(RECURRING_SLOT, recurring_id, "recurring_transaction")

    @staticmethod
    def _occurrence(rt: RecurringTransaction, due: date, tx_id: str) -> Transaction:
        return Transaction(
            id=tx_id,
            type=rt.type,
            category=rt.category,
            amount=rt.amount,
            description=rt.description,
            date=due,
        )

    def post_recurring_transaction(
        self,
        recurring_id: str,
        today: Optional[date] = None,
    ) -> Transaction:
        """
        Post the next occurrence of a recurring transaction.

        The new transaction (dated at the due date, not at `today`) and
        the advanced last_posted_date are written together: either both
        are stored or neither is.

        Raises:
            EntityNotFoundError: If no such recurring transaction exists
            StoreValidationError: If the next occurrence is not due yet
                                  or falls after the end date
        """
        today = today or date.today()
        items = list(self._data[RECURRING_SLOT])
        index = self._index_of(items, recurring_id, "recurring_transaction")
        rt = items[index]

        due = recurring.next_due_date(rt)
        if not recurring.is_due(rt, today):
            expired = recurring.is_expired(rt, due)
            self._check(ValidationResult(
                operation="post_recurring_transaction",
                issues=[ValidationIssue(
                    field="next_due_date",
                    issue_type="expired" if expired else "not_due",
                    message=(
                        f"Next occurrence {due.isoformat()} is after the end date"
                        if expired
                        else f"Next occurrence is not due until {due.isoformat()}"
                    ),
                    severity="error",
                )],
            ))

        tx = self._occurrence(rt, due, self._new_id())
        items[index] = rt.model_copy(update={"last_posted_date": due})
        self._commit({
            TRANSACTIONS_SLOT: [*self._data[TRANSACTIONS_SLOT], tx],
            RECURRING_SLOT: items,
        })

        self._audit.log(AuditEventBuilder.recurring_posted(rt.id, tx.id, due.isoformat()))
        return tx

    def post_due_recurring_transactions(
        self,
        today: Optional[date] = None,
    ) -> list[Transaction]:
        """
        Catch up every recurring transaction to `today`.

        Each missed occurrence becomes its own transaction. Everything
        is written in one unit; nothing is written when nothing is due.
        """
        today = today or date.today()
        items = list(self._data[RECURRING_SLOT])
        posted: list[tuple[str, Transaction]] = []

        for i, rt in enumerate(items):
            dates = recurring.pending_due_dates(rt, today)
            if not dates:
                continue
            for due in dates:
                posted.append((rt.id, self._occurrence(rt, due, self._new_id())))
            items[i] = rt.model_copy(update={"last_posted_date": dates[-1]})

        if not posted:
            return []

        new_transactions = [tx for _, tx in posted]
        self._commit({
            TRANSACTIONS_SLOT: [*self._data[TRANSACTIONS_SLOT], *new_transactions],
            RECURRING_SLOT: items,
        })

        for recurring_id, tx in posted:
            self._audit.log(AuditEventBuilder.recurring_posted(
                recurring_id, tx.id, tx.date.isoformat()
            ))
        return new_transactions

    # =========================================================================
    # CURRENCY
    # =========================================================================

    @property
    def currency(self) -> Currency:
        return self._data[CURRENCY_SLOT]

    def set_currency(self, currency: Union[Currency, str]) -> Currency:
        """Change the display currency. Stored amounts are not converted."""
        new = Currency(currency)
        old = self.currency
        self._commit({CURRENCY_SLOT: new})
        if new != old:
            self._audit.log(AuditEventBuilder.currency_changed(old.value, new.value))
        return new

    def format_currency(self, amount: float) -> str:
        return format_currency(amount, self.currency)

    # =========================================================================
    # ADVISOR SNAPSHOT
    # =========================================================================

    def snapshot(self, recent: Optional[int] = None) -> dict:
        """
        JSON-ready summary of the user's finances for the advisor.

        Receipt images are left out of the recent transactions.
        """
        limit = recent or self._recent_limit
        transactions = self._data[TRANSACTIONS_SLOT]

        total_income = sum(t.amount for t in transactions if t.type == TransactionType.INCOME)
        total_expense = sum(t.amount for t in transactions if t.type == TransactionType.EXPENSE)

        return {
            "currency": self.currency.value,
            "summary": {
                "totalIncome": total_income,
                "totalExpense": total_expense,
            },
            "recentTransactions": [
                t.model_dump(
                    mode="json",
                    by_alias=True,
                    exclude_none=True,
                    exclude={"receipt_image"},
                )
                for t in transactions[-limit:]
            ],
            "budgets": [
                b.model_dump(mode="json", by_alias=True) for b in self.budgets
            ],
            "goals": [g.to_slot_dict() for g in self._data[GOALS_SLOT]],
        }
