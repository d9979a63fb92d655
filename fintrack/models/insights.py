"""
Derived and advisory models.

Nothing in this module is persisted. Reports are recomputed from the
store on demand; advisor results are best-effort output of an external
service and must be confirmed by the user before they touch the store.
"""

import datetime as dt
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ImageQuality(str, Enum):
    """Receipt image quality assessment result."""
    GOOD = "good"
    ACCEPTABLE = "acceptable"
    POOR = "poor"  # Requires user to retake
    UNUSABLE = "unusable"  # Hard reject


class HealthStatus(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    NEEDS_IMPROVEMENT = "needs_improvement"


class BudgetState(str, Enum):
    ON_TRACK = "on_track"
    OVERSPENT = "overspent"


class CalendarEventType(str, Enum):
    TRANSACTION_INCOME = "TRANSACTION_INCOME"
    TRANSACTION_EXPENSE = "TRANSACTION_EXPENSE"
    LOAN = "LOAN"
    DEBT = "DEBT"
    GOAL = "GOAL"


# =============================================================================
# ADVISOR MODELS
# =============================================================================

class ScannedBill(BaseModel):
    """
    What the advisor read off a receipt image.

    CRITICAL: This is PROPOSED data. Every field may be missing and
    nothing is stored until the user confirms.
    """

    description: Optional[str] = Field(default=None, max_length=500)
    amount: Optional[float] = None
    category: Optional[str] = None

    @property
    def fields_found(self) -> list[str]:
        return [
            name for name in ("description", "amount", "category")
            if getattr(self, name) is not None
        ]


class ForecastResult(BaseModel):
    """30-day cash-flow prediction returned by the advisor."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    predicted_income: float
    predicted_expenses: float
    predicted_savings: float
    analysis: str


class ReceiptImage(BaseModel):
    """A receipt prepared for scanning and for embedding in a transaction."""

    data_url: str = Field(
        ...,
        description="data:<mime>;base64,<payload> suitable for receipt_image"
    )
    mime_type: str
    width: int = Field(ge=1)
    height: int = Field(ge=1)
    quality_assessment: ImageQuality
    quality_score: float = Field(ge=0.0, le=1.0)
    quality_issues: list[str] = Field(default_factory=list)


# =============================================================================
# REPORT MODELS
# =============================================================================

class CategoryTotal(BaseModel):
    name: str
    value: float


class TrendPoint(BaseModel):
    date: dt.date
    amount: float


class DailyFlow(BaseModel):
    date: dt.date
    income: float = 0.0
    expense: float = 0.0


class BudgetComparison(BaseModel):
    """A budget against spend restricted to a report period."""

    budget_id: str
    category: str
    amount: float
    spent: float
    status: BudgetState


class MonthlyComparisonRow(BaseModel):
    """Spend in one category across the comparison months (keyed YYYY-MM)."""

    category: str
    amounts: dict[str, float]


class ReportData(BaseModel):
    """
    Result of one report run.

    Which sections are filled depends on the report type.
    """

    start: dt.date
    end: dt.date
    total: float = 0.0
    by_category: list[CategoryTotal] = Field(default_factory=list)
    trend: list[TrendPoint] = Field(default_factory=list)
    budget_comparison: list[BudgetComparison] = Field(default_factory=list)
    monthly_comparison: list[MonthlyComparisonRow] = Field(default_factory=list)
    comparison_months: list[str] = Field(default_factory=list)

    @property
    def total_budgeted(self) -> float:
        return sum(b.amount for b in self.budget_comparison)

    @property
    def total_spent(self) -> float:
        return sum(b.spent for b in self.budget_comparison)


class HealthScore(BaseModel):
    """0-100 financial health score and its three components."""

    score: int = Field(ge=0, le=100)
    status: HealthStatus
    savings_score: float
    budget_score: float
    debt_score: float


class DashboardSummary(BaseModel):
    total_income: float
    total_expense: float
    balance: float
    last_seven_days: list[DailyFlow]
    expense_by_category: list[CategoryTotal]
    health: HealthScore


class CalendarEvent(BaseModel):
    """
    One dated entry on the financial calendar.

    Loans appear on their maturity date with the principal, debts on
    their due date and goals on their deadline with the target amount.
    """

    type: CalendarEventType
    description: str
    amount: Optional[float] = None
