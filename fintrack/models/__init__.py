"""
Data Models Package

This package contains all Pydantic models used in fintrack.
All data flowing through the system must conform to these schemas.
"""

from fintrack.models.finance import (
    Budget,
    BudgetData,
    BudgetStatus,
    Category,
    CategoryIcon,
    Currency,
    Debt,
    DebtData,
    Goal,
    GoalData,
    Loan,
    LoanData,
    Priority,
    RecurringFrequency,
    RecurringTransaction,
    RecurringTransactionData,
    Transaction,
    TransactionData,
    TransactionType,
    ValidationIssue,
    ValidationResult,
)
from fintrack.models.insights import (
    BudgetComparison,
    BudgetState,
    CalendarEvent,
    CalendarEventType,
    CategoryTotal,
    DailyFlow,
    DashboardSummary,
    ForecastResult,
    HealthScore,
    HealthStatus,
    ImageQuality,
    MonthlyComparisonRow,
    ReceiptImage,
    ReportData,
    ScannedBill,
    TrendPoint,
)
from fintrack.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance models
    "Budget",
    "BudgetData",
    "BudgetStatus",
    "Category",
    "CategoryIcon",
    "Currency",
    "Debt",
    "DebtData",
    "Goal",
    "GoalData",
    "Loan",
    "LoanData",
    "Priority",
    "RecurringFrequency",
    "RecurringTransaction",
    "RecurringTransactionData",
    "Transaction",
    "TransactionData",
    "TransactionType",
    "ValidationIssue",
    "ValidationResult",
    # Derived / advisory models
    "BudgetComparison",
    "BudgetState",
    "CalendarEvent",
    "CalendarEventType",
    "CategoryTotal",
    "DailyFlow",
    "DashboardSummary",
    "ForecastResult",
    "HealthScore",
    "HealthStatus",
    "ImageQuality",
    "MonthlyComparisonRow",
    "ReceiptImage",
    "ReportData",
    "ScannedBill",
    "TrendPoint",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
