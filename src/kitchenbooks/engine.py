"""
KitchenBooks — report query surface.

The AnalyticsEngine is the top-level entry point. It reads a point-in-time
snapshot from the ledger store, hands it to the pure analyzers, and returns
their reports. Running payroll is the one operation that writes.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

from kitchenbooks.analyzers.aggregation import LedgerSnapshot, menu_item_sales
from kitchenbooks.analyzers.aging import AgingBucketer
from kitchenbooks.analyzers.budget import BudgetAnalyzer
from kitchenbooks.analyzers.cashflow import CashFlowAnalyzer
from kitchenbooks.analyzers.menu_engineering import MenuEngineeringClassifier
from kitchenbooks.analyzers.payroll import PayrollCalculator, summarize_by_department, summarize_run
from kitchenbooks.analyzers.periods import (
    CompareMode,
    PeriodResolver,
    ResolvedPeriod,
    month_period,
    year_period,
)
from kitchenbooks.analyzers.pnl import PnLBuilder
from kitchenbooks.analyzers.tax_estimator import TaxEstimator
from kitchenbooks.config import KitchenBooksConfig
from kitchenbooks.connectors.base import BaseLedgerStore
from kitchenbooks.connectors.registry import default_registry
from kitchenbooks.models.ledger import EmployeeHours, Period, RecordKind, RunSummary
from kitchenbooks.models.money import ZERO
from kitchenbooks.models.reports import (
    AgingReport,
    BudgetReport,
    CashFlowReport,
    DepartmentPayrollReport,
    MenuEngineeringReport,
    PnLStatement,
    QuarterlyEstimate,
    TaxEstimate,
    Vendor1099,
)

logger = logging.getLogger("kitchenbooks")

# Row kinds a P&L or tax report reads
_REPORT_KINDS = (RecordKind.SALE, RecordKind.EXPENSE, RecordKind.PAYROLL)

PeriodLike = Period | str | tuple[Any, Any]


@dataclass
class AnalyticsEngine:
    """Top-level query surface for KitchenBooks.

    Usage::

        from kitchenbooks import AnalyticsEngine

        engine = AnalyticsEngine.from_config("kitchenbooks.yaml")
        statement = await engine.get_pnl("month", compare=True)
        aging = engine.get_aging_report()

    Periods can be given as a ``Period``, a period name (``"month"``,
    ``"ytd"``...) or a ``(start, end)`` pair.
    """

    store: BaseLedgerStore
    config: KitchenBooksConfig = field(default_factory=KitchenBooksConfig)
    today: date | None = None

    @classmethod
    def from_config(cls, config_path: str | None = None, **overrides: Any) -> AnalyticsEngine:
        """Create an engine (and its store) from a config file or keyword arguments."""
        config = KitchenBooksConfig.load(config_path, **overrides)
        store = default_registry.create(config.store)
        logger.info("KitchenBooks initialized with %s store", store.name)
        return cls(store=store, config=config)

    # ------------------------------------------------------------------ #
    #  Periods                                                            #
    # ------------------------------------------------------------------ #

    @property
    def resolver(self) -> PeriodResolver:
        return PeriodResolver(today=self.today, week_start=self.config.periods.week_start_index)

    def resolve_period(self, name: str = "month", **kwargs: Any) -> ResolvedPeriod:
        """Resolve a named or custom period; see :meth:`PeriodResolver.resolve`."""
        return self.resolver.resolve(name, **kwargs)

    def _period(self, period: PeriodLike) -> Period:
        if isinstance(period, Period):
            return period
        if isinstance(period, tuple):
            return Period.between(*period)
        return self.resolver.resolve(period).period

    # ------------------------------------------------------------------ #
    #  Snapshots                                                          #
    # ------------------------------------------------------------------ #

    def _span(self, periods: list[Period]) -> Period:
        return Period(start=min(p.start for p in periods), end=max(p.end for p in periods))

    def snapshot(self, *periods: Period) -> LedgerSnapshot:
        """Read the rows and master data covering ``periods``."""
        span = self._span(list(periods))
        rows = [row for kind in _REPORT_KINDS for row in self.store.fetch_rows(kind, span)]
        return LedgerSnapshot(
            rows=tuple(rows),
            categories={c.id: c for c in self.store.fetch_categories()},
            menu_costs=tuple(self.store.fetch_menu_item_costs(span)),
        )

    async def snapshot_async(self, *periods: Period) -> LedgerSnapshot:
        """Same as :meth:`snapshot`, with the store reads fanned out."""
        span = self._span(list(periods))
        *row_sets, categories, costs = await asyncio.gather(
            *(asyncio.to_thread(self.store.fetch_rows, kind, span) for kind in _REPORT_KINDS),
            asyncio.to_thread(self.store.fetch_categories),
            asyncio.to_thread(self.store.fetch_menu_item_costs, span),
        )
        return LedgerSnapshot(
            rows=tuple(row for rows in row_sets for row in rows),
            categories={c.id: c for c in categories},
            menu_costs=tuple(costs),
        )

    # ------------------------------------------------------------------ #
    #  Reports                                                            #
    # ------------------------------------------------------------------ #

    async def get_pnl(
        self,
        period: PeriodLike,
        compare: Period | CompareMode | str | bool | None = None,
    ) -> PnLStatement:
        """Build a P&L statement.

        Args:
            period: Primary period.
            compare: An explicit comparison ``Period``, or ``True`` /
                ``"previous_period"`` / ``"previous_year"``.
        """
        primary = self._period(period)
        comparison = self._comparison(primary, compare)
        periods = [primary] + ([comparison] if comparison else [])
        snapshot = await self.snapshot_async(*periods)
        return await PnLBuilder.build_async(snapshot, primary, comparison)

    def get_pnl_sync(
        self,
        period: PeriodLike,
        compare: Period | CompareMode | str | bool | None = None,
    ) -> PnLStatement:
        """Synchronous wrapper around :meth:`get_pnl`."""
        return asyncio.run(self.get_pnl(period, compare))

    def _comparison(self, primary: Period, compare: Period | CompareMode | str | bool | None) -> Period | None:
        if not compare:
            return None
        if isinstance(compare, Period):
            return compare
        return self.resolver.comparison_for(primary, compare)

    def get_aging_report(self, kind: RecordKind | str = RecordKind.PAYABLE, today: date | None = None) -> AgingReport:
        """Age open payables (or receivables) as of ``today``."""
        kind = RecordKind(kind)
        rows = self.store.fetch_rows(kind)
        vendors = {v.id: v for v in self.store.fetch_vendors()}
        return AgingBucketer.bucket(rows, today or self.resolver.today, kind=kind, vendors=vendors)

    def get_menu_engineering(self, period: PeriodLike) -> MenuEngineeringReport:
        """Classify the menu items sold in ``period``."""
        period = self._period(period)
        rows = self.store.fetch_rows(RecordKind.SALE, period)
        costs = self.store.fetch_menu_item_costs(period)
        items, warnings = menu_item_sales(rows, costs, period=period)
        return MenuEngineeringClassifier.analyze(items, period=period, warnings=warnings)

    def get_budget_vs_actual(self, year: int | None = None, month: int | None = None) -> BudgetReport:
        """Category budgets against spend for one month (default: the current month)."""
        today = self.resolver.today
        period = month_period(year or today.year, month or today.month)
        rows = self.store.fetch_rows(RecordKind.EXPENSE, period)
        return BudgetAnalyzer.compare(rows, self.store.fetch_categories(), period)

    def get_cash_flow(self, period: PeriodLike, opening_balance: Decimal = ZERO) -> CashFlowReport:
        """Weekly cash in and out for ``period``, payroll counted on its payment date."""
        period = self._period(period)
        rows = self.store.fetch_rows(RecordKind.SALE, period) + self.store.fetch_rows(RecordKind.EXPENSE, period)
        # paid-on dates can fall outside the pay period, so read every run
        payroll = self.store.fetch_payroll_records()
        return CashFlowAnalyzer.analyze(rows, payroll, period, opening_balance=opening_balance)

    def run_payroll(
        self,
        period: PeriodLike,
        hours: list[EmployeeHours | dict],
        payment_date: date | None = None,
    ) -> RunSummary:
        """Calculate and commit a payroll run.

        Raises:
            DuplicatePayrollPeriod: An employee was already paid for this
                period, or is listed twice. Nothing is committed.
        """
        period = self._period(period)
        employees = self.store.fetch_employees(active_only=True)
        calculator = PayrollCalculator(self.config.payroll)
        records, warnings = calculator.build_run(period, employees, hours, payment_date=payment_date)

        if not records:
            logger.warning("Payroll run for %s has no payable employees", period)
            return summarize_run(period, [], warnings)

        summary = self.store.commit_payroll_run(records)
        logger.info(
            "Payroll %s: %d employees, gross %s, employer cost %s",
            period,
            summary.employees_processed,
            summary.total_gross,
            summary.total_employer_cost,
        )
        return summary.model_copy(update={"warnings": summary.warnings + warnings})

    def get_payroll_by_department(self, period: PeriodLike | None = None) -> DepartmentPayrollReport:
        """Committed payroll per department, for all time when ``period`` is None."""
        resolved = self._period(period) if period is not None else None
        records = self.store.fetch_payroll_records(resolved)
        employees = self.store.fetch_employees(active_only=False)
        return summarize_by_department(records, employees, resolved)

    def get_schedule_c(self, year: int) -> TaxEstimate:
        """Schedule C, quarterly estimates and 1099 list for ``year``."""
        snapshot = self.snapshot(year_period(year))
        vendors = {v.id: v for v in self.store.fetch_vendors()}
        return TaxEstimator.estimate(snapshot, year, vendors=vendors, rates=self.config.tax)

    def get_quarterly_estimates(self, year: int) -> list[QuarterlyEstimate]:
        snapshot = self.snapshot(year_period(year))
        return TaxEstimator.quarterly_estimates(snapshot, year, rates=self.config.tax)

    def get_1099_vendors(self, year: int) -> list[Vendor1099]:
        snapshot = self.snapshot(year_period(year))
        vendors = {v.id: v for v in self.store.fetch_vendors()}
        result, _ = TaxEstimator.vendors_1099(snapshot, year, vendors=vendors, rates=self.config.tax)
        return result
