"""Tests for the weekly cash flow report."""

from datetime import date
from decimal import Decimal

import pytest
from conftest import EMPLOYEES, JUNE, sale

from kitchenbooks.analyzers.cashflow import CashFlowAnalyzer, payroll_cash_date
from kitchenbooks.analyzers.payroll import PayrollCalculator
from kitchenbooks.models.ledger import EmployeeHours, Period

ANA = EMPLOYEES[0]
HOURS = EmployeeHours(employee_id="e1", regular_hours=Decimal("40"))
FIRST_HALF = Period(start=date(2025, 6, 1), end=date(2025, 6, 14))

# June 1, 2025 is a Sunday, so the report opens with the week of May 26
WEEK_OF_MAY_26 = date(2025, 5, 26)
WEEK_OF_JUNE_2 = date(2025, 6, 2)
WEEK_OF_JUNE_9 = date(2025, 6, 9)
WEEK_OF_JUNE_16 = date(2025, 6, 16)


def _paid(payment_date=None, period=FIRST_HALF):
    record, _ = PayrollCalculator().calculate(ANA, HOURS, period, payment_date=payment_date)
    return record


class TestWeeklyCashFlow:
    """Sample June ledger, no committed payroll."""

    def test_weeks(self, rows):
        """Only weeks with activity are listed, oldest first."""
        report = CashFlowAnalyzer.analyze(rows, [], JUNE)
        assert [w.week_start for w in report.weeks] == [WEEK_OF_MAY_26, WEEK_OF_JUNE_2, WEEK_OF_JUNE_9]

    def test_cash_in_is_net_of_discounts(self, rows):
        """1200 of sales less a 50 discount in the week of June 2."""
        week = CashFlowAnalyzer.analyze(rows, [], JUNE).week(WEEK_OF_JUNE_2)
        assert week.cash_in == Decimal("1150.00")
        assert week.total_out == Decimal("0.00")

    def test_sunday_belongs_to_preceding_monday(self, rows):
        """Expenses from Tuesday June 10 through Sunday June 15 share a week."""
        week = CashFlowAnalyzer.analyze(rows, [], JUNE).week(WEEK_OF_JUNE_9)
        assert week.expenses_out == Decimal("360.00")
        assert week.net_cash_flow == Decimal("-360.00")

    def test_running_balance(self, rows):
        """The balance carries week to week from zero."""
        report = CashFlowAnalyzer.analyze(rows, [], JUNE)
        assert [w.running_balance for w in report.weeks] == [
            Decimal("-300.00"),
            Decimal("850.00"),
            Decimal("490.00"),
        ]

    def test_totals(self, rows):
        """Totals match the weeks and the P&L revenue and expense figures."""
        report = CashFlowAnalyzer.analyze(rows, [], JUNE)
        assert report.total_in == Decimal("1150.00")
        assert report.total_out == Decimal("660.00")
        assert report.net_change == Decimal("490.00")
        assert report.closing_balance == Decimal("490.00")

    def test_opening_balance(self, rows):
        """An opening balance shifts every running balance."""
        report = CashFlowAnalyzer.analyze(rows, [], JUNE, opening_balance=Decimal("1000"))
        assert report.weeks[0].running_balance == Decimal("700.00")
        assert report.net_change == Decimal("490.00")
        assert report.closing_balance == Decimal("1490.00")

    def test_refunds_and_comps_reduce_cash_in(self):
        """Refunds and comps come out of the week's receipts."""
        rows = [
            sale(date(2025, 6, 3), 100),
            sale(date(2025, 6, 4), 10, subtype="refund"),
            sale(date(2025, 6, 5), 5, subtype="comp"),
        ]
        assert CashFlowAnalyzer.analyze(rows, [], JUNE).total_in == Decimal("85.00")

    def test_empty(self):
        """No activity gives no weeks."""
        report = CashFlowAnalyzer.analyze([], [], JUNE)
        assert report.weeks == []
        assert report.net_change == Decimal("0")


class TestPayrollOutflows:
    """Committed payroll is paid out as net pay."""

    def test_payment_date(self, rows):
        """Net pay lands in the week it was paid."""
        record = _paid(payment_date=date(2025, 6, 20))
        week = CashFlowAnalyzer.analyze(rows, [record], JUNE).week(WEEK_OF_JUNE_16)
        assert week.payroll_out == record.net_pay
        assert week.total_out == record.net_pay
        assert week.running_balance == Decimal("490.00") - record.net_pay

    def test_pay_period_end_when_unpaid(self, rows):
        """Without a payment date the pay period's last day is used."""
        record = _paid()
        assert payroll_cash_date(record) == date(2025, 6, 14)
        week = CashFlowAnalyzer.analyze(rows, [record], JUNE).week(WEEK_OF_JUNE_9)
        assert week.payroll_out == record.net_pay
        assert week.total_out == Decimal("360.00") + record.net_pay

    def test_paid_outside_period_ignored(self, rows):
        """A June pay period paid in July is July's cash."""
        record = _paid(payment_date=date(2025, 7, 3))
        report = CashFlowAnalyzer.analyze(rows, [record], JUNE)
        assert report.total_out == Decimal("660.00")

    @pytest.mark.parametrize("opening", [Decimal("0"), Decimal("250.50")])
    def test_closing_balance_reconciles(self, rows, opening):
        """Closing balance is opening plus receipts less payments."""
        report = CashFlowAnalyzer.analyze(rows, [_paid()], JUNE, opening_balance=opening)
        assert report.closing_balance == opening + report.total_in - report.total_out
        assert report.weeks[-1].running_balance == report.closing_balance
