"""
P&L Statement Builder — revenue through net income for a period.

Sections:
- Revenue: food, beverage, alcohol, catering and other sales, less discounts,
  comps and refunds.
- COGS: calculated food cost (recipe cost x units sold) plus COGS-typed
  expenses. Both are summed; neither replaces the other.
- Labor: committed payroll (wages + employer taxes) plus labor-typed expenses.
- Operating: operating, other and uncategorized expenses.
- Marketing: marketing-typed expenses.

Derived lines are computed from the cent-rounded sections so that
GrossProfit = Revenue - COGS, PrimeCost = COGS + Labor and
NetIncome = GrossProfit - Labor - Operating - Marketing hold to the cent.

The five source sections do not depend on each other. ``build_async`` runs
them concurrently; ``build`` runs them in order. Both give the same result.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from decimal import Decimal
from functools import partial
from typing import Any

from kitchenbooks.analyzers.aggregation import (
    Aggregator,
    GroupBy,
    LedgerSnapshot,
    calculated_food_cost,
    sale_type_of,
)
from kitchenbooks.models.ledger import (
    DEDUCTION_SALE_TYPES,
    REVENUE_SALE_TYPES,
    ExpenseCategory,
    ExpenseType,
    Period,
    PayrollRowType,
    RecordKind,
    SaleType,
    TransactionRecord,
)
from kitchenbooks.models.money import money, percent_change, safe_percent, total
from kitchenbooks.models.reports import (
    PNL_SECTIONS,
    PnLLine,
    PnLRatios,
    PnLSection,
    PnLStatement,
    RevenueBreakdown,
)

logger = logging.getLogger("kitchenbooks.analyzers.pnl")

_PAYROLL_LABELS = {
    PayrollRowType.WAGES.value: "Wages",
    PayrollRowType.EMPLOYER_TAXES.value: "Employer payroll taxes",
}


def expense_type_of(row: TransactionRecord, categories: Mapping[str, ExpenseCategory]) -> ExpenseType:
    """P&L section an expense row rolls up to. Other and uncategorized go to operating."""
    category = categories.get(row.category_id) if row.category_id else None
    if category is None or category.expense_type == ExpenseType.OTHER:
        return ExpenseType.OPERATING
    return category.expense_type


class PnLBuilder:
    """Build profit-and-loss statements from a ledger snapshot."""

    @classmethod
    def build(
        cls,
        snapshot: LedgerSnapshot,
        period: Period,
        comparison: Period | None = None,
    ) -> PnLStatement:
        """Build a statement, optionally with a comparison period and variance."""
        jobs = cls._section_jobs(snapshot, period)
        statement = cls._assemble(period, {name: job() for name, job in jobs.items()})
        if comparison is not None:
            prior = cls.build(snapshot, comparison)
            cls._attach_comparison(statement, prior)
        return statement

    @classmethod
    async def build_async(
        cls,
        snapshot: LedgerSnapshot,
        period: Period,
        comparison: Period | None = None,
    ) -> PnLStatement:
        """Same as :meth:`build`, with the section computations fanned out."""
        if comparison is None:
            return await cls._build_concurrently(snapshot, period)
        current, prior = await asyncio.gather(
            cls._build_concurrently(snapshot, period),
            cls._build_concurrently(snapshot, comparison),
        )
        cls._attach_comparison(current, prior)
        return current

    @classmethod
    async def _build_concurrently(cls, snapshot: LedgerSnapshot, period: Period) -> PnLStatement:
        jobs = cls._section_jobs(snapshot, period)
        results = await asyncio.gather(*(asyncio.to_thread(job) for job in jobs.values()))
        return cls._assemble(period, dict(zip(jobs.keys(), results)))

    @classmethod
    def _section_jobs(cls, snapshot: LedgerSnapshot, period: Period) -> dict[str, Callable[[], Any]]:
        return {
            "revenue": partial(cls.revenue, snapshot, period),
            "cogs": partial(cls.cogs, snapshot, period),
            "labor": partial(cls.labor, snapshot, period),
            "operating": partial(cls.expense_section, snapshot, period, ExpenseType.OPERATING),
            "marketing": partial(cls.expense_section, snapshot, period, ExpenseType.MARKETING),
        }

    # ------------------------------------------------------------------ #
    # Source sections
    # ------------------------------------------------------------------ #

    @staticmethod
    def revenue(snapshot: LedgerSnapshot, period: Period) -> RevenueBreakdown:
        amounts: dict[SaleType, Decimal] = {t: Decimal("0") for t in SaleType}
        for row in snapshot.of_kind(RecordKind.SALE, period):
            amounts[sale_type_of(row)] += row.amount

        gross = total(amounts[t] for t in REVENUE_SALE_TYPES)
        deductions = total(amounts[t] for t in DEDUCTION_SALE_TYPES)
        return RevenueBreakdown(
            food_sales=money(amounts[SaleType.FOOD]),
            beverage_sales=money(amounts[SaleType.BEVERAGE]),
            alcohol_sales=money(amounts[SaleType.ALCOHOL]),
            catering_sales=money(amounts[SaleType.CATERING]),
            other_sales=money(amounts[SaleType.OTHER]),
            gross_sales=gross,
            discounts=money(amounts[SaleType.DISCOUNT]),
            comps=money(amounts[SaleType.COMP]),
            refunds=money(amounts[SaleType.REFUND]),
            net_revenue=gross - deductions,
        )

    @classmethod
    def cogs(cls, snapshot: LedgerSnapshot, period: Period) -> tuple[PnLSection, list[str]]:
        food_cost, warnings = calculated_food_cost(snapshot.rows, snapshot.menu_costs, period=period)
        lines = [PnLLine(label="Calculated food cost", amount=food_cost)]
        lines.extend(cls._expense_lines(snapshot, period, ExpenseType.COGS))
        return cls._section("cogs", lines), warnings

    @classmethod
    def labor(cls, snapshot: LedgerSnapshot, period: Period) -> PnLSection:
        payroll = Aggregator.aggregate(
            snapshot.rows, period=period, kind=RecordKind.PAYROLL, group_by=GroupBy.SUBTYPE
        )
        lines = [
            PnLLine(label=_PAYROLL_LABELS.get(b.key, b.key), amount=b.total_amount, count=b.count)
            for b in payroll.buckets
        ]
        lines.extend(cls._expense_lines(snapshot, period, ExpenseType.LABOR))
        return cls._section("labor", lines)

    @classmethod
    def expense_section(cls, snapshot: LedgerSnapshot, period: Period, expense_type: ExpenseType) -> PnLSection:
        return cls._section(expense_type.value, cls._expense_lines(snapshot, period, expense_type))

    @staticmethod
    def _expense_lines(snapshot: LedgerSnapshot, period: Period, expense_type: ExpenseType) -> list[PnLLine]:
        rows = [
            r
            for r in snapshot.of_kind(RecordKind.EXPENSE, period)
            if expense_type_of(r, snapshot.categories) == expense_type
        ]
        by_category = Aggregator.aggregate(rows, group_by=GroupBy.CATEGORY)
        lines = []
        for bucket in by_category.buckets:
            category = snapshot.categories.get(bucket.key)
            label = category.name if category else bucket.key.title()
            lines.append(PnLLine(label=label, amount=bucket.total_amount, count=bucket.count))
        return lines

    @staticmethod
    def _section(name: str, lines: list[PnLLine]) -> PnLSection:
        return PnLSection(name=name, amount=total(line.amount for line in lines), lines=lines)

    # ------------------------------------------------------------------ #
    # Derived lines
    # ------------------------------------------------------------------ #

    @staticmethod
    def _assemble(period: Period, parts: dict[str, Any]) -> PnLStatement:
        revenue: RevenueBreakdown = parts["revenue"]
        cogs, warnings = parts["cogs"]
        labor: PnLSection = parts["labor"]
        operating: PnLSection = parts["operating"]
        marketing: PnLSection = parts["marketing"]

        net_revenue = revenue.net_revenue
        gross_profit = net_revenue - cogs.amount
        prime_cost = cogs.amount + labor.amount
        net_income = gross_profit - labor.amount - operating.amount - marketing.amount

        def with_margin(section: PnLSection) -> PnLSection:
            return section.model_copy(update={"margin_percent": safe_percent(section.amount, net_revenue)})

        revenue_lines = [
            PnLLine(label="Food sales", amount=revenue.food_sales),
            PnLLine(label="Beverage sales", amount=revenue.beverage_sales),
            PnLLine(label="Alcohol sales", amount=revenue.alcohol_sales),
            PnLLine(label="Catering sales", amount=revenue.catering_sales),
            PnLLine(label="Other sales", amount=revenue.other_sales),
            PnLLine(label="Discounts", amount=-revenue.discounts),
            PnLLine(label="Comps", amount=-revenue.comps),
            PnLLine(label="Refunds", amount=-revenue.refunds),
        ]

        statement = PnLStatement(
            period=period,
            revenue=revenue,
            revenue_section=with_margin(PnLSection(name="revenue", amount=net_revenue, lines=revenue_lines)),
            cogs=with_margin(cogs),
            gross_profit=with_margin(PnLSection(name="gross_profit", amount=gross_profit)),
            labor=with_margin(labor),
            prime_cost=with_margin(PnLSection(name="prime_cost", amount=prime_cost)),
            operating=with_margin(operating),
            marketing=with_margin(marketing),
            net_income=with_margin(PnLSection(name="net_income", amount=net_income)),
            ratios=PnLRatios(
                food_cost_percent=safe_percent(cogs.amount, net_revenue),
                labor_cost_percent=safe_percent(labor.amount, net_revenue),
                prime_cost_percent=safe_percent(prime_cost, net_revenue),
                operating_expense_percent=safe_percent(operating.amount, net_revenue),
            ),
            warnings=list(warnings),
        )
        logger.info(
            "P&L %s: net revenue %s, net income %s",
            period,
            net_revenue,
            net_income,
        )
        return statement

    @staticmethod
    def _attach_comparison(current: PnLStatement, prior: PnLStatement) -> None:
        # Variance against a zero prior is reported as 0, not as undefined.
        current.comparison = prior
        current.variance = {
            name: percent_change(current.section(name).amount, prior.section(name).amount)
            for name in PNL_SECTIONS
        }
        for message in prior.warnings:
            if message not in current.warnings:
                current.warnings.append(message)
