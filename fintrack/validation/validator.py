"""
Store Validation

DESIGN DECISION: Every precondition of a store write is checked HERE,
before the store computes anything, so a rejected operation leaves all
collections untouched.

Checks fall into two groups:

FIELD CHECKS (need only the incoming data):
- Non-negative amounts
- Required names present
- Recurring end date strictly after start date

CROSS-ENTITY CHECKS (need the store's current collections):
- Category names unique within a type (case-insensitive)
- Protected and in-use categories cannot be deleted
- At most one budget per category

Scanned bills get their own softer pass: a receipt read by the advisor is
a proposal, so most problems are warnings the user fixes on review.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them, and the store refuses the write.
"""

import math
from typing import Iterable, Optional

from fintrack.config import get_settings
from fintrack.models.finance import (
    BudgetData,
    Category,
    DebtData,
    GoalData,
    LoanData,
    RecurringTransactionData,
    TransactionData,
    TransactionType,
    ValidationIssue,
    ValidationResult,
)
from fintrack.models.insights import ScannedBill


class StoreValidationError(ValueError):
    """A store operation was refused. `result` lists every issue found."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = "; ".join(issue.message for issue in result.errors)
        super().__init__(f"{result.operation} rejected: {messages}")


def raise_if_invalid(result: ValidationResult) -> ValidationResult:
    """Raise StoreValidationError if the result carries any error."""
    if result.has_errors:
        raise StoreValidationError(result)
    return result


def _amount_issues(
    field: str,
    value: Optional[float],
    label: str,
) -> list[ValidationIssue]:
    if value is None:
        return []
    if math.isnan(value) or math.isinf(value):
        return [ValidationIssue(
            field=field,
            issue_type="invalid_value",
            message=f"{label} must be a finite number",
            severity="error",
        )]
    if value < 0:
        return [ValidationIssue(
            field=field,
            issue_type="negative_amount",
            message=f"{label} cannot be negative ({value})",
            severity="error",
            suggested_fix="Enter the amount as a positive number",
        )]
    return []


def _name_issues(field: str, value: str, label: str) -> list[ValidationIssue]:
    if not value or not value.strip():
        return [ValidationIssue(
            field=field,
            issue_type="missing",
            message=f"{label} is required",
            severity="error",
        )]
    return []


class StoreValidator:
    """
    Validates store writes.

    Stateless apart from the protected category names; the store passes
    in whatever current state a cross-entity check needs.
    """

    def __init__(self, protected_categories: Optional[Iterable[str]] = None):
        """
        Initialize validator.

        Args:
            protected_categories: Names that can never be deleted.
                                  Defaults to the configured set.
        """
        settings = get_settings().app
        if protected_categories is None:
            protected_categories = settings.protected_categories
        self._protected = {name.strip().casefold() for name in protected_categories}
        self._max_amount = settings.max_transaction_amount

    def is_protected(self, name: str) -> bool:
        return name.strip().casefold() in self._protected

    # -------------------------------------------------------------------------
    # Field checks
    # -------------------------------------------------------------------------

    def validate_transaction(
        self,
        data: TransactionData,
        operation: str = "add_transaction",
    ) -> ValidationResult:
        issues = []
        issues.extend(_amount_issues("amount", data.amount, "Amount"))
        issues.extend(_name_issues("category", data.category, "Category"))
        return ValidationResult(operation=operation, issues=issues)

    def validate_recurring(
        self,
        data: RecurringTransactionData,
        operation: str = "add_recurring_transaction",
    ) -> ValidationResult:
        issues = []
        issues.extend(_amount_issues("amount", data.amount, "Amount"))
        issues.extend(_name_issues("category", data.category, "Category"))

        if data.end_date is not None and data.end_date <= data.start_date:
            issues.append(ValidationIssue(
                field="end_date",
                issue_type="end_before_start",
                message=(
                    f"End date {data.end_date.isoformat()} must be after "
                    f"start date {data.start_date.isoformat()}"
                ),
                severity="error",
                suggested_fix="Pick an end date later than the start date, or none",
            ))
        return ValidationResult(operation=operation, issues=issues)

    def validate_budget(
        self,
        data: BudgetData,
        existing: Iterable[BudgetData],
        exclude_id: Optional[str] = None,
        operation: str = "add_budget",
    ) -> ValidationResult:
        """
        Check a budget against the stored ones.

        Budget categories match transactions by exact value, so the
        one-budget-per-category check is exact as well.
        """
        issues = []
        issues.extend(_amount_issues("amount", data.amount, "Budget amount"))
        issues.extend(_name_issues("category", data.category, "Category"))

        for budget in existing:
            if exclude_id is not None and getattr(budget, "id", None) == exclude_id:
                continue
            if budget.category == data.category:
                issues.append(ValidationIssue(
                    field="category",
                    issue_type="duplicate",
                    message=f"A budget for '{data.category}' already exists",
                    severity="error",
                    suggested_fix="Edit the existing budget instead",
                ))
                break
        return ValidationResult(operation=operation, issues=issues)

    def validate_goal(
        self,
        data: GoalData,
        operation: str = "add_goal",
    ) -> ValidationResult:
        issues = []
        issues.extend(_name_issues("name", data.name, "Goal name"))
        issues.extend(_amount_issues("target_amount", data.target_amount, "Target amount"))
        issues.extend(_amount_issues("current_amount", data.current_amount, "Current amount"))

        if (
            not issues
            and data.current_amount > data.target_amount
        ):
            issues.append(ValidationIssue(
                field="current_amount",
                issue_type="clamped",
                message="Current amount exceeds the target and will be capped at it",
                severity="warning",
            ))
        return ValidationResult(operation=operation, issues=issues)

    def validate_goal_funds(
        self,
        amount: float,
        operation: str = "add_funds_to_goal",
    ) -> ValidationResult:
        return ValidationResult(
            operation=operation,
            issues=_amount_issues("amount", amount, "Amount added"),
        )

    def validate_loan(
        self,
        data: LoanData,
        operation: str = "add_loan",
    ) -> ValidationResult:
        issues = []
        issues.extend(_name_issues("name", data.name, "Loan name"))
        issues.extend(_amount_issues("principal", data.principal, "Principal"))
        issues.extend(_amount_issues("interest_rate", data.interest_rate, "Interest rate"))
        return ValidationResult(operation=operation, issues=issues)

    def validate_debt(
        self,
        data: DebtData,
        operation: str = "add_debt",
    ) -> ValidationResult:
        issues = []
        issues.extend(_name_issues("name", data.name, "Debt name"))
        issues.extend(_amount_issues("amount", data.amount, "Debt amount"))
        issues.extend(_amount_issues("interest_rate", data.interest_rate, "Interest rate"))
        issues.extend(_amount_issues(
            "minimum_payment", data.minimum_payment, "Minimum payment"
        ))
        return ValidationResult(operation=operation, issues=issues)

    # -------------------------------------------------------------------------
    # Category checks
    # -------------------------------------------------------------------------

    def validate_category_name(
        self,
        category: Category,
        existing: Iterable[Category],
        exclude_name: Optional[str] = None,
        operation: str = "add_category",
    ) -> ValidationResult:
        """
        Names are unique within a type, compared case-insensitively.

        Args:
            exclude_name: On rename, the category's current name, so a
                          change of icon or of letter case alone passes.
        """
        issues = _name_issues("name", category.name, "Category name")
        if not issues:
            wanted = category.name.strip().casefold()
            skip = exclude_name.strip().casefold() if exclude_name else None
            for other in existing:
                folded = other.name.strip().casefold()
                if folded == skip:
                    continue
                if folded == wanted:
                    issues.append(ValidationIssue(
                        field="name",
                        issue_type="duplicate",
                        message=f"Category '{other.name}' already exists",
                        severity="error",
                        suggested_fix="Choose a different name",
                    ))
                    break
        return ValidationResult(operation=operation, issues=issues)

    def validate_category_deletion(
        self,
        name: str,
        category_type: TransactionType,
        usage: dict[str, int],
        operation: str = "delete_category",
    ) -> ValidationResult:
        """
        Args:
            usage: Reference counts by collection, e.g.
                   {"transactions": 3, "recurring_transactions": 0, "budgets": 1}
        """
        issues = []
        if self.is_protected(name):
            issues.append(ValidationIssue(
                field="name",
                issue_type="protected",
                message=f"Category '{name}' is a default category and cannot be deleted",
                severity="error",
            ))

        in_use = {kind: count for kind, count in usage.items() if count}
        if in_use:
            where = ", ".join(f"{count} {kind.replace('_', ' ')}" for kind, count in in_use.items())
            issues.append(ValidationIssue(
                field="name",
                issue_type="in_use",
                message=f"Category '{name}' is still used by {where}",
                severity="error",
                suggested_fix="Reassign or delete those entries first",
            ))
        return ValidationResult(operation=operation, issues=issues)

    # -------------------------------------------------------------------------
    # Scanned bills
    # -------------------------------------------------------------------------

    def validate_scanned_bill(
        self,
        bill: ScannedBill,
        categories: Iterable[Category],
    ) -> ValidationResult:
        """
        Review what the advisor read off a receipt.

        Only a negative amount is an error. Everything else the user can
        correct on the review screen.
        """
        issues = []

        if bill.amount is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="missing",
                message="The total amount could not be read",
                severity="warning",
                suggested_fix="Enter the amount manually",
            ))
        else:
            issues.extend(_amount_issues("amount", bill.amount, "Amount"))
            if bill.amount == 0:
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="zero_amount",
                    message="The amount read is zero",
                    severity="warning",
                    suggested_fix="Check the amount against the receipt",
                ))
            elif bill.amount > self._max_amount:
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="absurd_amount",
                    message=f"Amount {bill.amount:,.0f} seems unusually high",
                    severity="warning",
                    suggested_fix="Verify the amount is correct",
                ))

        if not bill.description:
            issues.append(ValidationIssue(
                field="description",
                issue_type="missing",
                message="No description was read from the receipt",
                severity="info",
            ))

        if bill.category is None:
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing",
                message="No category was suggested",
                severity="warning",
                suggested_fix="Pick a category",
            ))
        elif bill.category not in {c.name for c in categories}:
            issues.append(ValidationIssue(
                field="category",
                issue_type="unknown_category",
                message=f"Suggested category '{bill.category}' does not exist",
                severity="warning",
                suggested_fix="Pick one of your expense categories",
            ))

        return ValidationResult(operation="scan_bill", issues=issues)

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what we show to non-technical users.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed! Please review the details below."

        lines = []

        if result.has_errors:
            lines.append("❌ Some information is not valid:")
            for issue in result.errors:
                lines.append(f"   • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        lines.append("")
        if result.is_valid:
            lines.append("You can still proceed, but please review carefully.")
        else:
            lines.append("Please fix the issues above before continuing.")

        return "\n".join(lines)
