"""Tests for the payroll calculator and atomic payroll commits."""

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal

import pytest
from conftest import EMPLOYEES

from kitchenbooks.analyzers.payroll import PayrollCalculator, summarize_by_department, summarize_run
from kitchenbooks.config import PayrollRates
from kitchenbooks.connectors.base import check_run
from kitchenbooks.connectors.csv_connector import CSVLedgerStore
from kitchenbooks.connectors.memory_store import InMemoryLedgerStore
from kitchenbooks.connectors.sql_connector import SQLLedgerStore
from kitchenbooks.exceptions import DuplicatePayrollPeriod, InvalidRecord
from kitchenbooks.models.ledger import EmployeeHours, Period, RecordKind
from kitchenbooks.models.reports import UNASSIGNED_DEPARTMENT

PAY_PERIOD = Period(start=date(2025, 6, 1), end=date(2025, 6, 14))
ANA, BEN, CAL = EMPLOYEES

ANA_HOURS = EmployeeHours(
    employee_id="e1", regular_hours=Decimal("80"), overtime_hours=Decimal("5"), tips=Decimal("100")
)


@pytest.fixture
def calculator() -> PayrollCalculator:
    return PayrollCalculator()


@pytest.fixture
def memory_store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore(employees=EMPLOYEES)


@pytest.fixture
def sql_store() -> SQLLedgerStore:
    store = SQLLedgerStore("sqlite://", create_schema=True)
    store.add_master_data(employees=EMPLOYEES)
    return store


def _run(calculator, *hours, period=PAY_PERIOD):
    records, _ = calculator.build_run(period, [ANA, BEN], list(hours))
    return records


class TestPayrollCalculator:
    """Gross-to-net for one employee."""

    def test_hourly_with_overtime_and_tips(self, calculator):
        """Test gross pay for hourly staff with overtime and tips."""
        record, warnings = calculator.calculate(ANA, ANA_HOURS, PAY_PERIOD)
        assert warnings == []
        assert record.regular_pay == Decimal("1200.00")
        assert record.overtime_pay == Decimal("112.50")
        assert record.tips == Decimal("100.00")
        assert record.gross_pay == Decimal("1412.50")

    def test_withholdings_round_half_up(self, calculator):
        """Test that each withholding rounds half up to the cent."""
        record, _ = calculator.calculate(ANA, ANA_HOURS, PAY_PERIOD)
        w = record.withholdings
        assert w.federal == Decimal("169.50")
        assert w.state == Decimal("70.63")
        assert w.social_security == Decimal("87.58")
        assert w.medicare == Decimal("20.48")
        assert record.net_pay == Decimal("1064.31")

    def test_employer_cost(self, calculator):
        """Test employer taxes and total employer cost."""
        record, _ = calculator.calculate(ANA, ANA_HOURS, PAY_PERIOD)
        t = record.employer_taxes
        assert (t.social_security, t.medicare, t.futa, t.suta) == (
            Decimal("87.58"),
            Decimal("20.48"),
            Decimal("8.48"),
            Decimal("38.14"),
        )
        assert record.employer_cost == Decimal("1567.18")

    def test_record_reconciles(self, calculator):
        """Test that net pay and employer cost are built from rounded parts."""
        record, _ = calculator.calculate(ANA, ANA_HOURS, PAY_PERIOD)
        assert record.net_pay == record.gross_pay - record.withholdings.total
        assert record.employer_cost == record.gross_pay + record.employer_taxes.total

    def test_salaried(self, calculator):
        """Test that salaried staff get a flat period salary and unpaid overtime."""
        hours = EmployeeHours(employee_id="e2", regular_hours=Decimal("80"), overtime_hours=Decimal("3"))
        record, warnings = calculator.calculate(BEN, hours, PAY_PERIOD)
        assert record.regular_pay == Decimal("2000.00")
        assert record.overtime_pay == Decimal("0")
        assert record.gross_pay == Decimal("2000.00")
        assert len(warnings) == 1
        assert "salaried" in warnings[0]

    def test_custom_rates(self):
        """Test a configured overtime multiplier."""
        calculator = PayrollCalculator(PayrollRates(overtime_multiplier=Decimal("2")))
        record, _ = calculator.calculate(ANA, ANA_HOURS, PAY_PERIOD)
        assert record.overtime_pay == Decimal("150.00")

    def test_ledger_rows(self, calculator):
        """Test the wages and employer-tax rows a record produces."""
        record, _ = calculator.calculate(ANA, ANA_HOURS, PAY_PERIOD)
        wages, taxes = record.to_ledger_rows()
        assert wages.kind == RecordKind.PAYROLL
        assert wages.amount == record.gross_pay
        assert taxes.amount == record.employer_taxes.total
        assert wages.date == PAY_PERIOD.end


class TestBuildRun:
    """Building a run from entered hours."""

    def test_unknown_and_inactive_skipped(self, calculator):
        """Test that unknown and inactive employees are skipped with warnings."""
        records, warnings = calculator.build_run(
            PAY_PERIOD,
            [ANA, BEN],
            [ANA_HOURS, {"employee_id": "e3", "regular_hours": 10}, {"employee_id": "ghost"}],
        )
        assert [r.employee_id for r in records] == ["e1"]
        assert len(warnings) == 2

    def test_duplicate_entry_rejected(self, calculator):
        """Test that listing an employee twice rejects the whole run."""
        with pytest.raises(DuplicatePayrollPeriod) as exc:
            calculator.build_run(PAY_PERIOD, [ANA], [ANA_HOURS, ANA_HOURS])
        assert exc.value.conflicts == [("e1", PAY_PERIOD)]

    def test_summary(self, calculator):
        """Test run-level totals."""
        records = _run(calculator, ANA_HOURS, {"employee_id": "e2"})
        summary = summarize_run(PAY_PERIOD, records)
        assert summary.employees_processed == 2
        assert summary.total_gross == Decimal("3412.50")
        assert summary.total_employer_cost == sum(r.employer_cost for r in records)

    def test_check_run(self, calculator):
        """Test that empty runs and runs spanning pay periods are rejected."""
        with pytest.raises(InvalidRecord):
            check_run([])
        june = _run(calculator, ANA_HOURS)
        july = _run(calculator, ANA_HOURS, period=Period(start=date(2025, 7, 1), end=date(2025, 7, 14)))
        with pytest.raises(InvalidRecord, match="one pay period"):
            check_run(june + july)


class TestDepartmentSummary:
    """Committed payroll grouped by department."""

    def test_grouped_and_ordered_by_employer_cost(self, calculator):
        """Ben (no department) costs more than Ana, so Unassigned comes first."""
        records = _run(calculator, ANA_HOURS, {"employee_id": "e2"})
        kitchen_ana = ANA.model_copy(update={"department": "Kitchen"})
        report = summarize_by_department(records, [kitchen_ana, BEN])
        assert [d.department for d in report.departments] == [UNASSIGNED_DEPARTMENT, "Kitchen"]
        kitchen = report.get("Kitchen")
        assert kitchen.employee_count == 1
        assert kitchen.regular_hours == Decimal("80")
        assert kitchen.overtime_hours == Decimal("5")
        assert kitchen.gross_pay == Decimal("1412.50")
        assert report.total_employees == 2
        assert report.total_gross == Decimal("3412.50")
        assert report.total_employer_cost == sum(r.employer_cost for r in records)

    def test_employee_counted_once_across_periods(self, calculator):
        """Two runs for one employee add up but count one head."""
        second = Period(start=date(2025, 6, 15), end=date(2025, 6, 28))
        records = _run(calculator, ANA_HOURS) + _run(calculator, ANA_HOURS, period=second)
        report = summarize_by_department(records, [ANA.model_copy(update={"department": "Kitchen"})])
        kitchen = report.get("Kitchen")
        assert kitchen.employee_count == 1
        assert kitchen.gross_pay == Decimal("2825.00")
        assert kitchen.net_pay == sum(r.net_pay for r in records)

    def test_period_filter(self, calculator):
        """Only runs whose pay period lies inside the requested range are counted."""
        july = Period(start=date(2025, 7, 1), end=date(2025, 7, 14))
        records = _run(calculator, ANA_HOURS) + _run(calculator, ANA_HOURS, period=july)
        report = summarize_by_department(records, [ANA], period=PAY_PERIOD)
        assert report.period == PAY_PERIOD
        assert report.total_gross == Decimal("1412.50")

    def test_unknown_employee_unassigned(self, calculator):
        """Records for employees no longer on file still show up."""
        records = _run(calculator, ANA_HOURS)
        report = summarize_by_department(records, [])
        assert [d.department for d in report.departments] == [UNASSIGNED_DEPARTMENT]

    def test_no_records(self):
        """No payroll gives an empty report."""
        report = summarize_by_department([], EMPLOYEES)
        assert report.departments == []
        assert report.total_employer_cost == Decimal("0")


@pytest.fixture
def csv_store(tmp_path) -> CSVLedgerStore:
    (tmp_path / "rows.csv").write_text("kind,date,amount\n")
    return CSVLedgerStore(tmp_path)


@pytest.fixture(params=["memory", "sql", "csv"])
def store(request, memory_store, sql_store, csv_store):
    return {"memory": memory_store, "sql": sql_store, "csv": csv_store}[request.param]


class TestCommitPayrollRun:
    """Atomic commits against every store backend."""

    def test_commit(self, store, calculator):
        """Test committing a run and reading it back."""
        summary = store.commit_payroll_run(_run(calculator, ANA_HOURS))
        assert summary.employees_processed == 1
        assert summary.total_gross == Decimal("1412.50")
        assert summary.total_net == Decimal("1064.31")
        stored = store.fetch_payroll_records(PAY_PERIOD)
        assert len(stored) == 1
        assert stored[0].gross_pay == Decimal("1412.50")

    def test_commit_writes_ledger_rows(self, store, calculator):
        """Test that a commit adds the payroll ledger rows."""
        store.commit_payroll_run(_run(calculator, ANA_HOURS))
        rows = store.fetch_rows(RecordKind.PAYROLL, PAY_PERIOD)
        assert sorted(r.subtype for r in rows) == ["employer_taxes", "wages"]
        assert sum(r.amount for r in rows) == Decimal("1567.18")

    def test_second_run_for_same_period_rejected(self, store, calculator):
        """Test that a second run for the same period is rejected."""
        store.commit_payroll_run(_run(calculator, ANA_HOURS))
        with pytest.raises(DuplicatePayrollPeriod) as exc:
            store.commit_payroll_run(_run(calculator, ANA_HOURS))
        assert exc.value.conflicts == [("e1", PAY_PERIOD)]

    def test_failed_run_leaves_nothing_behind(self, store, calculator):
        """Test that a rejected run stores none of its records."""
        store.commit_payroll_run(_run(calculator, ANA_HOURS))
        with pytest.raises(DuplicatePayrollPeriod):
            store.commit_payroll_run(_run(calculator, {"employee_id": "e2"}, ANA_HOURS))
        assert [r.employee_id for r in store.fetch_payroll_records()] == ["e1"]
        assert len(store.fetch_rows(RecordKind.PAYROLL)) == 2

    def test_next_period_allowed(self, store, calculator):
        """Test that the following pay period can be run."""
        store.commit_payroll_run(_run(calculator, ANA_HOURS))
        next_period = Period(start=date(2025, 6, 15), end=date(2025, 6, 28))
        store.commit_payroll_run(_run(calculator, ANA_HOURS, period=next_period))
        assert len(store.fetch_payroll_records()) == 2
        assert len(store.fetch_payroll_records(next_period)) == 1

    def test_empty_run_rejected(self, store):
        """Test that an empty run is rejected."""
        with pytest.raises(InvalidRecord):
            store.commit_payroll_run([])


class TestConcurrentCommits:
    """Racing runs for the same pay period."""

    def test_concurrent_runs_commit_once(self, memory_store, calculator):
        """Test that only one of several racing runs commits."""
        store = memory_store
        runs = [_run(calculator, ANA_HOURS) for _ in range(4)]

        def commit(records):
            try:
                store.commit_payroll_run(records)
                return True
            except DuplicatePayrollPeriod:
                return False

        with ThreadPoolExecutor(max_workers=4) as pool:
            outcomes = list(pool.map(commit, runs))

        assert outcomes.count(True) == 1
        assert len(store.fetch_payroll_records()) == 1


class TestCSVPayrollFile:
    """Runs committed to a CSV store survive into the next session."""

    def test_run_written_to_payroll_csv(self, csv_store, calculator):
        """A commit appends one line per record to payroll.csv."""
        csv_store.commit_payroll_run(_run(calculator, ANA_HOURS, {"employee_id": "e2"}))
        lines = csv_store.payroll_path.read_text().strip().splitlines()
        assert len(lines) == 3
        assert lines[0].startswith("id,employee_id,pay_period_start")

    def test_reloaded_store_sees_committed_run(self, csv_store, calculator):
        """A fresh store over the same folder loads the records and their ledger rows."""
        csv_store.commit_payroll_run(_run(calculator, ANA_HOURS))

        reopened = CSVLedgerStore(csv_store.data_dir)
        records = reopened.fetch_payroll_records(PAY_PERIOD)
        assert len(records) == 1
        assert records[0] == csv_store.fetch_payroll_records(PAY_PERIOD)[0]
        assert sum(r.amount for r in reopened.fetch_rows(RecordKind.PAYROLL)) == Decimal("1567.18")

    def test_duplicate_rejected_in_later_session(self, csv_store, calculator):
        """The same pay period cannot be paid again after a restart."""
        csv_store.commit_payroll_run(_run(calculator, ANA_HOURS))

        reopened = CSVLedgerStore(csv_store.data_dir)
        with pytest.raises(DuplicatePayrollPeriod):
            reopened.commit_payroll_run(_run(calculator, ANA_HOURS))
        assert len(reopened.payroll_path.read_text().strip().splitlines()) == 2

    def test_payment_date_round_trip(self, csv_store, calculator):
        """Optional payment dates survive the file, blank or set."""
        records, _ = calculator.build_run(PAY_PERIOD, [ANA, BEN], [ANA_HOURS], payment_date=date(2025, 6, 20))
        csv_store.commit_payroll_run(records)
        reopened = CSVLedgerStore(csv_store.data_dir)
        assert reopened.fetch_payroll_records()[0].payment_date == date(2025, 6, 20)

    def test_corrupt_payroll_file(self, csv_store):
        """A payroll.csv missing required columns is reported with its line number."""
        csv_store.payroll_path.write_text("id,employee_id\np1,e1\n")
        with pytest.raises(InvalidRecord, match="payroll.csv line 2"):
            CSVLedgerStore(csv_store.data_dir)

    def test_persistence_flags(self, memory_store, csv_store, sql_store):
        """Only stores that keep runs after the process exits report themselves persistent."""
        assert memory_store.persistent is False
        assert sql_store.persistent is False
        assert csv_store.persistent is True
