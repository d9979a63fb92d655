"""
Report Builder

DESIGN DECISION: Reports are DETERMINISTIC and DERIVED.
Every number here is recomputed from the store's collections on each
call; nothing is cached and nothing is written back.

Date ranges are inclusive on both ends. Amounts are summed in the
stored values, whatever the display currency.
"""

import calendar
import math
from collections import defaultdict
from datetime import date, timedelta
from typing import Iterable, Optional

from dateutil.relativedelta import relativedelta

from fintrack.models.finance import Transaction, TransactionType
from fintrack.models.insights import (
    BudgetComparison,
    BudgetState,
    CalendarEvent,
    CalendarEventType,
    CategoryTotal,
    DailyFlow,
    DashboardSummary,
    HealthScore,
    HealthStatus,
    MonthlyComparisonRow,
    ReportData,
    TrendPoint,
)
from fintrack.store import FinancialStore


# Health score weights and targets
SAVINGS_WEIGHT = 40
BUDGET_WEIGHT = 30
DEBT_WEIGHT = 30
TARGET_SAVINGS_RATE = 0.2
MAX_DEBT_TO_INCOME = 0.4

COMPARISON_MONTHS = 3
TOP_CATEGORIES = 5


def _by_category(transactions: Iterable[Transaction]) -> list[CategoryTotal]:
    totals: dict[str, float] = defaultdict(float)
    for t in transactions:
        totals[t.category] += t.amount
    return [
        CategoryTotal(name=name, value=value)
        for name, value in sorted(totals.items(), key=lambda item: item[1], reverse=True)
    ]


def _in_range(transactions: Iterable[Transaction], start: date, end: date) -> list[Transaction]:
    return [t for t in transactions if start <= t.date <= end]


class ReportBuilder:
    """
    Builds read-only views over a FinancialStore.

    GUARANTEES:
    - Only reads from the store
    - Same store state and arguments always give the same report
    """

    def __init__(self, store: FinancialStore):
        self._store = store

    def totals(self) -> tuple[float, float]:
        """Lifetime (income, expense)."""
        income = expense = 0.0
        for t in self._store.transactions:
            if t.type == TransactionType.INCOME:
                income += t.amount
            else:
                expense += t.amount
        return income, expense

    def health_score(self) -> HealthScore:
        """
        0-100 score from three parts.

        - Savings (40): savings rate against a 20% target
        - Budgets (30): unspent share of all budgets; full marks with no budgets
        - Debt (30): debt-to-income against a 40% ceiling
        """
        income, expense = self.totals()

        savings_rate = (income - expense) / income if income > 0 else 0.0
        savings_score = min(1.0, max(0.0, savings_rate) / TARGET_SAVINGS_RATE) * SAVINGS_WEIGHT

        budgets = self._store.budgets
        total_budget = sum(b.amount for b in budgets)
        total_spent = sum(b.spent for b in budgets)
        if total_budget > 0:
            budget_score = max(0.0, (total_budget - total_spent) / total_budget) * BUDGET_WEIGHT
        else:
            budget_score = float(BUDGET_WEIGHT)

        total_debt = sum(d.amount for d in self._store.debts)
        debt_to_income = total_debt / income if income > 0 else 0.0
        debt_score = max(0.0, 1 - min(1.0, debt_to_income / MAX_DEBT_TO_INCOME)) * DEBT_WEIGHT

        # Halves round up
        score = int(math.floor(savings_score + budget_score + debt_score + 0.5))
        if score >= 80:
            status = HealthStatus.EXCELLENT
        elif score >= 50:
            status = HealthStatus.GOOD
        else:
            status = HealthStatus.NEEDS_IMPROVEMENT

        return HealthScore(
            score=score,
            status=status,
            savings_score=savings_score,
            budget_score=budget_score,
            debt_score=debt_score,
        )

    def dashboard_summary(self, today: Optional[date] = None) -> DashboardSummary:
        """Totals, the last seven days of cash flow and expense split."""
        today = today or date.today()
        transactions = self._store.transactions
        income, expense = self.totals()

        days = [today - timedelta(days=offset) for offset in range(6, -1, -1)]
        flows = {day: [0.0, 0.0] for day in days}
        for t in transactions:
            if t.date in flows:
                flows[t.date][0 if t.type == TransactionType.INCOME else 1] += t.amount

        return DashboardSummary(
            total_income=income,
            total_expense=expense,
            balance=income - expense,
            last_seven_days=[
                DailyFlow(date=day, income=flows[day][0], expense=flows[day][1])
                for day in days
            ],
            expense_by_category=_by_category(
                t for t in transactions if t.type == TransactionType.EXPENSE
            ),
            health=self.health_score(),
        )

    def category_report(
        self,
        transaction_type: TransactionType,
        start: date,
        end: date,
    ) -> ReportData:
        """Income or expense in a period: total, split by category, daily trend."""
        transaction_type = TransactionType(transaction_type)
        relevant = [
            t for t in _in_range(self._store.transactions, start, end)
            if t.type == transaction_type
        ]

        trend: dict[date, float] = defaultdict(float)
        for t in relevant:
            trend[t.date] += t.amount

        return ReportData(
            start=start,
            end=end,
            total=sum(t.amount for t in relevant),
            by_category=_by_category(relevant),
            trend=[TrendPoint(date=day, amount=trend[day]) for day in sorted(trend)],
        )

    def budget_report(self, start: date, end: date) -> ReportData:
        """
        Budgets against spend inside the period only.

        Unlike FinancialStore.budgets, which counts lifetime spend.
        """
        spent: dict[str, float] = defaultdict(float)
        for t in _in_range(self._store.transactions, start, end):
            if t.type == TransactionType.EXPENSE:
                spent[t.category] += t.amount

        comparison = []
        for b in self._store.budgets:
            amount_spent = spent.get(b.category, 0.0)
            comparison.append(BudgetComparison(
                budget_id=b.id,
                category=b.category,
                amount=b.amount,
                spent=amount_spent,
                status=BudgetState.OVERSPENT if amount_spent > b.amount else BudgetState.ON_TRACK,
            ))

        return ReportData(
            start=start,
            end=end,
            total=sum(spent.values()),
            budget_comparison=comparison,
        )

    def expense_allocation(self, start: date, end: date) -> ReportData:
        """
        Expense split for the period, plus a month-over-month view.

        The comparison covers the three calendar months ending with
        `end`'s month (regardless of `start`) and the five categories
        with the most spend across them.
        """
        transactions = self._store.transactions
        expenses = [
            t for t in _in_range(transactions, start, end)
            if t.type == TransactionType.EXPENSE
        ]

        first_of_end_month = end.replace(day=1)
        months = [
            first_of_end_month - relativedelta(months=back)
            for back in range(COMPARISON_MONTHS - 1, -1, -1)
        ]
        labels = [m.strftime("%Y-%m") for m in months]

        monthly: dict[str, dict[str, float]] = {label: defaultdict(float) for label in labels}
        for t in transactions:
            if t.type != TransactionType.EXPENSE:
                continue
            label = t.date.strftime("%Y-%m")
            if label in monthly:
                monthly[label][t.category] += t.amount

        overall: dict[str, float] = defaultdict(float)
        for per_category in monthly.values():
            for category, amount in per_category.items():
                overall[category] += amount
        top = sorted(overall, key=lambda c: overall[c], reverse=True)[:TOP_CATEGORIES]

        return ReportData(
            start=start,
            end=end,
            total=sum(t.amount for t in expenses),
            by_category=_by_category(expenses),
            monthly_comparison=[
                MonthlyComparisonRow(
                    category=category,
                    amounts={label: monthly[label].get(category, 0.0) for label in labels},
                )
                for category in top
            ],
            comparison_months=labels,
        )

    def calendar_events(self, year: int, month: int) -> dict[date, list[CalendarEvent]]:
        """
        Dated events falling in one calendar month, keyed by day.

        Days without events are absent. Within a day, transactions come
        first (in store order), then loan maturities, debt due dates and
        goal deadlines.
        """
        first = date(year, month, 1)
        last = first.replace(day=calendar.monthrange(year, month)[1])
        events: dict[date, list[CalendarEvent]] = defaultdict(list)

        def add(day: Optional[date], event: CalendarEvent) -> None:
            if day is not None and first <= day <= last:
                events[day].append(event)

        for t in self._store.transactions:
            add(t.date, CalendarEvent(
                type=(
                    CalendarEventType.TRANSACTION_INCOME
                    if t.type == TransactionType.INCOME
                    else CalendarEventType.TRANSACTION_EXPENSE
                ),
                description=t.description,
                amount=t.amount,
            ))
        for loan in self._store.loans:
            add(loan.maturity_date, CalendarEvent(
                type=CalendarEventType.LOAN,
                description=f"Đáo hạn: {loan.name}",
                amount=loan.principal,
            ))
        for debt in self._store.debts:
            add(debt.due_date, CalendarEvent(
                type=CalendarEventType.DEBT,
                description=f"Đến hạn: {debt.name}",
                amount=debt.amount,
            ))
        for goal in self._store.goals:
            add(goal.deadline, CalendarEvent(
                type=CalendarEventType.GOAL,
                description=f"Deadline: {goal.name}",
                amount=goal.target_amount,
            ))

        return {day: events[day] for day in sorted(events)}
