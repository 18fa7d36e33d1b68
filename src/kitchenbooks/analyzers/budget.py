"""
Budget vs Actual — monthly category budgets against recorded expenses.

Every expense category carries a ``budget_monthly`` figure. For one calendar
month each category is listed with:
- budget and actual spend (expense rows dated in the month)
- variance = budget - actual, negative when over budget
- percent_used = actual / budget x 100, or None when no budget is set
- over_budget when actual exceeds budget (so any spend on a zero budget)

Categories are listed whether or not anything was spent, ordered by expense
type and then name. Expenses whose category is missing or unknown are not
dropped: they are reported as ``uncategorized_actual`` and count toward the
actual total.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from decimal import Decimal

from kitchenbooks.analyzers.aggregation import Aggregator, GroupBy
from kitchenbooks.models.ledger import ExpenseCategory, Period, RecordKind, TransactionRecord
from kitchenbooks.models.money import ZERO, money, safe_percent, total
from kitchenbooks.models.reports import BudgetLine, BudgetReport

logger = logging.getLogger("kitchenbooks.analyzers.budget")


class BudgetAnalyzer:
    """Compare category budgets with actual spend for a month.

    Usage::

        report = BudgetAnalyzer.compare(rows, categories, month_period(2025, 6))
        for line in report.lines:
            print(line.name, line.budget, line.actual, line.over_budget)
    """

    @classmethod
    def compare(
        cls,
        rows: Iterable[TransactionRecord],
        categories: Mapping[str, ExpenseCategory] | Iterable[ExpenseCategory],
        period: Period,
    ) -> BudgetReport:
        if not isinstance(categories, Mapping):
            categories = {c.id: c for c in categories}

        spent = Aggregator.aggregate(rows, period=period, kind=RecordKind.EXPENSE, group_by=GroupBy.CATEGORY)

        lines = [cls._line(category, spent.amount(category.id)) for category in categories.values()]
        lines.sort(key=lambda line: (line.expense_type.value, line.name, line.category_id))

        unknown = total(b.total_amount for b in spent.buckets if b.key not in categories)
        if unknown:
            logger.warning("%s of expenses in %s have no known category", unknown, period)

        total_budget = total(line.budget for line in lines)
        report = BudgetReport(
            period=period,
            lines=lines,
            uncategorized_actual=unknown,
            total_budget=total_budget,
            total_actual=spent.grand_total,
            total_variance=total_budget - spent.grand_total,
        )
        logger.info(
            "Budget %s: %d categories, %d over budget",
            period,
            len(lines),
            report.over_budget_count,
        )
        return report

    @staticmethod
    def _line(category: ExpenseCategory, actual: Decimal) -> BudgetLine:
        budget = money(category.budget_monthly)
        return BudgetLine(
            category_id=category.id,
            name=category.name,
            expense_type=category.expense_type,
            budget=budget,
            actual=actual,
            variance=budget - actual,
            percent_used=safe_percent(actual, budget) if budget > ZERO else None,
            over_budget=actual > budget,
        )
