"""
Cash Flow — weekly money in and money out.

For each Monday-to-Sunday week of a period:
1. **cash_in**: revenue sales less discounts, comps and refunds.
2. **expenses_out**: expense rows.
3. **payroll_out**: net pay of committed payroll records, dated by payment
   date (or the pay period's last day when no payment date was recorded).
4. **net_cash_flow** and a **running_balance** carried from an opening
   balance.

Payroll ledger rows (wages and employer taxes) are accrual figures for the
P&L and are not read here. Only weeks with activity are listed.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from datetime import date
from decimal import Decimal

from kitchenbooks.analyzers.aggregation import (
    Aggregator,
    GroupBy,
    filter_rows,
    sale_type_of,
    week_start,
)
from kitchenbooks.models.ledger import (
    DEDUCTION_SALE_TYPES,
    REVENUE_SALE_TYPES,
    PayrollRecord,
    Period,
    RecordKind,
    TransactionRecord,
)
from kitchenbooks.models.money import ZERO, money, total
from kitchenbooks.models.reports import CashFlowReport, WeeklyCashFlow

logger = logging.getLogger("kitchenbooks.analyzers.cashflow")


def payroll_cash_date(record: PayrollRecord) -> date:
    return record.payment_date or record.pay_period.end


class CashFlowAnalyzer:
    """Weekly cash flow from the ledger and committed payroll."""

    @classmethod
    def analyze(
        cls,
        rows: Iterable[TransactionRecord],
        payroll: Iterable[PayrollRecord],
        period: Period,
        *,
        opening_balance: Decimal = ZERO,
    ) -> CashFlowReport:
        """
        Build the weekly cash flow for ``period``.

        Args:
            rows: Ledger rows; only sales and expenses are read.
            payroll: Committed payroll records. Those paid outside ``period``
                are ignored.
            period: Inclusive range. Its first and last weeks may be partial.
            opening_balance: Balance the running balance starts from.

        Returns:
            CashFlowReport whose weeks are in date order.
        """
        sales = filter_rows(rows, period=period, kind=RecordKind.SALE)
        received = Aggregator.aggregate(
            [r for r in sales if sale_type_of(r) in REVENUE_SALE_TYPES], group_by=GroupBy.WEEK
        )
        returned = Aggregator.aggregate(
            [r for r in sales if sale_type_of(r) in DEDUCTION_SALE_TYPES], group_by=GroupBy.WEEK
        )
        spent = Aggregator.aggregate(rows, period=period, kind=RecordKind.EXPENSE, group_by=GroupBy.WEEK)

        paid: dict[str, Decimal] = defaultdict(lambda: Decimal("0"))
        for record in payroll:
            day = payroll_cash_date(record)
            if period.contains(day):
                paid[week_start(day).isoformat()] += record.net_pay

        keys = sorted(
            {b.key for b in received.buckets}
            | {b.key for b in returned.buckets}
            | {b.key for b in spent.buckets}
            | paid.keys()
        )

        weeks: list[WeeklyCashFlow] = []
        balance = money(opening_balance)
        for key in keys:
            cash_in = received.amount(key) - returned.amount(key)
            expenses_out = spent.amount(key)
            payroll_out = money(paid[key])
            net = cash_in - expenses_out - payroll_out
            balance += net
            weeks.append(
                WeeklyCashFlow(
                    week_start=date.fromisoformat(key),
                    cash_in=cash_in,
                    expenses_out=expenses_out,
                    payroll_out=payroll_out,
                    total_out=expenses_out + payroll_out,
                    net_cash_flow=net,
                    running_balance=balance,
                )
            )

        report = CashFlowReport(
            period=period,
            opening_balance=money(opening_balance),
            weeks=weeks,
            total_in=total(w.cash_in for w in weeks),
            total_out=total(w.total_out for w in weeks),
            net_change=total(w.net_cash_flow for w in weeks),
        )
        logger.debug(
            "Cash flow %s: %d weeks, in %s, out %s",
            period,
            len(weeks),
            report.total_in,
            report.total_out,
        )
        return report
