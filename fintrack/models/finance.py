"""
Core Data Models for fintrack

These models define the schemas for everything the FinancialStore owns.
They are designed to:
1. Round-trip the persisted JSON shape losslessly (camelCase keys)
2. Be immutable once stored - edits are full replace-by-id
3. Keep derived values (budget spend) out of the persisted shape

DESIGN DECISION: Amount sign and cross-entity rules are NOT enforced here.
They are store invariants checked by StoreValidator, so a bad write fails
with a StoreValidationError listing every issue instead of a bare schema error.
"""

import datetime as dt
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
)
from pydantic.alias_generators import to_camel


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of money flow."""
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class Priority(str, Enum):
    """Optional importance tag on a transaction."""
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class RecurringFrequency(str, Enum):
    """How often a recurring transaction spawns a concrete one."""
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class Currency(str, Enum):
    """Display currency preference. Stored amounts never change with it."""
    VND = "VND"
    USD = "USD"


class CategoryIcon(str, Enum):
    """
    Known category icon identifiers.

    DESIGN DECISION: A closed set with an explicit DEFAULT case.
    The presentation layer maps these to artwork; the core only
    guarantees the value is one of these.
    """
    FOOD = "food"
    TRANSPORT = "transport"
    HOUSING = "housing"
    UTILITIES = "utilities"
    SHOPPING = "shopping"
    ENTERTAINMENT = "entertainment"
    HEALTH = "health"
    EDUCATION = "education"
    INVESTMENT = "investment"
    GIFT = "gift"
    SALARY = "salary"
    BONUS = "bonus"
    DEFAULT = "default"

    @classmethod
    def resolve(cls, value: object) -> "CategoryIcon":
        """Map any stored icon tag to a known icon, falling back to DEFAULT."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.DEFAULT


# =============================================================================
# BASE
# =============================================================================

class FinanceModel(BaseModel):
    """
    Base for persisted entities.

    Field names are snake_case in Python and camelCase on the wire,
    matching the slot JSON shape.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        frozen=True,
    )

    def to_slot_dict(self) -> dict:
        """Serialize to the persisted JSON shape."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# CATEGORIES
# =============================================================================

class Category(FinanceModel):
    """A named spending or income bucket. Names are unique within a type."""

    name: str = Field(
        ...,
        max_length=100,
        description="Category name (referenced by value from transactions)"
    )
    icon: CategoryIcon = Field(
        default=CategoryIcon.DEFAULT,
        description="Symbolic icon tag"
    )

    @field_validator("icon", mode="before")
    @classmethod
    def resolve_icon(cls, v: object) -> CategoryIcon:
        return CategoryIcon.resolve(v)


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TransactionData(FinanceModel):
    """A transaction before it has been given an id."""

    type: TransactionType
    category: str = Field(
        ...,
        description="Category name, by value"
    )
    amount: float = Field(
        ...,
        description="Amount in the user's currency (non-negative)"
    )
    description: str = Field(
        default="",
        max_length=500,
    )
    date: dt.date = Field(
        ...,
        description="Calendar date of the transaction"
    )
    receipt_image: Optional[str] = Field(
        default=None,
        description="Embedded receipt image as a data URL"
    )
    priority: Optional[Priority] = None


class Transaction(TransactionData):
    """A stored transaction."""

    id: str = Field(
        ...,
        min_length=1,
        description="Opaque unique identifier, immutable"
    )


class RecurringTransactionData(FinanceModel):
    """
    A template that periodically spawns concrete Transactions.

    Recurring transactions never count towards totals themselves.
    """

    type: TransactionType
    category: str
    amount: float
    description: str = Field(
        default="",
        max_length=500,
    )
    start_date: dt.date
    frequency: RecurringFrequency
    end_date: Optional[dt.date] = Field(
        default=None,
        description="Last day an occurrence may fall on; strictly after start_date"
    )
    last_posted_date: Optional[dt.date] = Field(
        default=None,
        description="Due date of the most recently posted occurrence"
    )


class RecurringTransaction(RecurringTransactionData):
    """A stored recurring transaction."""

    id: str = Field(..., min_length=1)


# =============================================================================
# BUDGETS
# =============================================================================

class BudgetData(FinanceModel):
    """A spending cap for one expense category."""

    category: str
    amount: float = Field(
        ...,
        description="Cap for the category"
    )


class Budget(BudgetData):
    """
    A stored budget.

    CRITICAL: There is no persisted `spent`. Spend is derived from the
    transaction log on every read (see BudgetStatus).
    """

    id: str = Field(..., min_length=1)


class BudgetStatus(Budget):
    """Read view of a budget with its derived spend."""

    spent: float = Field(
        default=0.0,
        description="Sum of EXPENSE transactions in this category"
    )

    @computed_field
    @property
    def remaining(self) -> float:
        return self.amount - self.spent

    @computed_field
    @property
    def percent_used(self) -> float:
        if self.amount <= 0:
            return 100.0 if self.spent > 0 else 0.0
        return self.spent / self.amount * 100

    @property
    def is_overspent(self) -> bool:
        return self.spent > self.amount

    def to_budget(self) -> Budget:
        """Drop the derived fields."""
        return Budget(id=self.id, category=self.category, amount=self.amount)


# =============================================================================
# GOALS, LOANS, DEBTS
# =============================================================================

class GoalData(FinanceModel):
    """A savings goal."""

    name: str = Field(..., max_length=200)
    target_amount: float
    current_amount: float = 0.0
    deadline: Optional[dt.date] = None


class Goal(GoalData):
    """A stored savings goal. current_amount never exceeds target_amount."""

    id: str = Field(..., min_length=1)

    @property
    def progress(self) -> float:
        """Fraction of the target saved, 0-1."""
        if self.target_amount <= 0:
            return 0.0
        return min(1.0, self.current_amount / self.target_amount)

    @property
    def is_complete(self) -> bool:
        return self.current_amount >= self.target_amount


class LoanData(FinanceModel):
    """Money lent or borrowed under a fixed maturity."""

    name: str = Field(..., max_length=200)
    principal: float
    interest_rate: float = Field(
        default=0.0,
        description="Annual interest rate, as a percentage"
    )
    maturity_date: dt.date


class Loan(LoanData):
    """A stored loan. Paying it off deletes it."""

    id: str = Field(..., min_length=1)


class DebtData(FinanceModel):
    """An outstanding debt."""

    name: str = Field(..., max_length=200)
    amount: float
    interest_rate: Optional[float] = None
    minimum_payment: Optional[float] = None
    due_date: dt.date


class Debt(DebtData):
    """A stored debt. Settling it deletes it."""

    id: str = Field(..., min_length=1)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'negative_amount', 'duplicate', 'in_use')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of validating one store operation or one scanned bill.

    Errors block the operation. Warnings are shown but don't block.
    """

    operation: str = Field(
        ...,
        description="What was being validated (e.g., 'add_transaction')"
    )
    validated_at: dt.datetime = Field(
        default_factory=lambda: dt.datetime.now(dt.timezone.utc)
    )
    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "error"]

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "warning"]
