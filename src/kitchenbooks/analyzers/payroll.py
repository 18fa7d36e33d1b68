"""
Payroll Calculator — gross-to-net pay and employer cost per pay period.

For each employee in a run:
- regular_pay = regular_hours x pay_rate (salaried: annual salary / pay periods)
- overtime_pay = overtime_hours x pay_rate x overtime multiplier (hourly only)
- gross_pay = regular_pay + overtime_pay + tips
- withholdings (federal, state, Social Security, Medicare) are flat rates on gross
- employer_cost = gross_pay + employer Social Security, Medicare, FUTA and SUTA

Every component is rounded to cents on its own, and net pay and employer cost
are built from the rounded components, so the record always reconciles.

The calculator only builds records. Persisting them, and rejecting a pay
period that was already run, is the ledger store's job.

``summarize_by_department`` rolls committed records up per department for
reporting.
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from collections.abc import Iterable, Mapping
from datetime import date
from decimal import Decimal

from kitchenbooks.config import PayrollRates
from kitchenbooks.exceptions import DuplicatePayrollPeriod
from kitchenbooks.models.ledger import (
    Employee,
    EmployeeHours,
    EmployerTaxes,
    PayrollRecord,
    PayType,
    Period,
    RunSummary,
    Withholdings,
)
from kitchenbooks.models.money import ZERO, money, total
from kitchenbooks.models.reports import UNASSIGNED_DEPARTMENT, DepartmentPayroll, DepartmentPayrollReport

logger = logging.getLogger("kitchenbooks.analyzers.payroll")


class PayrollCalculator:
    """Turn entered hours into immutable payroll records.

    Usage::

        calc = PayrollCalculator()
        records, warnings = calc.build_run(period, employees, hours)
        summary = store.commit_payroll_run(records)
    """

    def __init__(self, rates: PayrollRates | None = None) -> None:
        self.rates = rates or PayrollRates()

    def withholdings(self, gross_pay: Decimal) -> Withholdings:
        r = self.rates
        return Withholdings(
            federal=money(gross_pay * r.federal),
            state=money(gross_pay * r.state),
            social_security=money(gross_pay * r.social_security),
            medicare=money(gross_pay * r.medicare),
        )

    def employer_taxes(self, gross_pay: Decimal) -> EmployerTaxes:
        r = self.rates
        return EmployerTaxes(
            social_security=money(gross_pay * r.employer_social_security),
            medicare=money(gross_pay * r.employer_medicare),
            futa=money(gross_pay * r.futa),
            suta=money(gross_pay * r.suta),
        )

    def calculate(
        self,
        employee: Employee,
        hours: EmployeeHours,
        period: Period,
        *,
        payment_date: date | None = None,
    ) -> tuple[PayrollRecord, list[str]]:
        """Build one employee's record for ``period``.

        Returns the record and any warnings (e.g. overtime entered for a
        salaried employee, which is recorded but not paid).
        """
        warnings: list[str] = []
        if employee.pay_type == PayType.SALARY:
            regular_pay = money(employee.pay_rate / Decimal(self.rates.pay_periods_per_year))
            overtime_pay = ZERO
            if hours.overtime_hours > 0:
                warnings.append(
                    f"{employee.full_name} ({employee.id}) is salaried; "
                    f"{hours.overtime_hours} overtime hours recorded but not paid"
                )
                logger.warning(warnings[-1])
        else:
            regular_pay = money(hours.regular_hours * employee.pay_rate)
            overtime_pay = money(hours.overtime_hours * employee.pay_rate * self.rates.overtime_multiplier)

        tips = money(hours.tips)
        gross_pay = regular_pay + overtime_pay + tips
        withheld = self.withholdings(gross_pay)
        employer = self.employer_taxes(gross_pay)

        record = PayrollRecord(
            id=str(uuid.uuid4()),
            employee_id=employee.id,
            pay_period=period,
            pay_type=employee.pay_type,
            regular_hours=hours.regular_hours,
            overtime_hours=hours.overtime_hours,
            tips=tips,
            regular_pay=regular_pay,
            overtime_pay=overtime_pay,
            gross_pay=gross_pay,
            withholdings=withheld,
            net_pay=gross_pay - withheld.total,
            employer_taxes=employer,
            employer_cost=gross_pay + employer.total,
            payment_date=payment_date,
        )
        return record, warnings

    def build_run(
        self,
        period: Period,
        employees: Mapping[str, Employee] | Iterable[Employee],
        hours: Iterable[EmployeeHours | dict],
        *,
        payment_date: date | None = None,
    ) -> tuple[list[PayrollRecord], list[str]]:
        """Build records for a whole run without persisting anything.

        Employees that are unknown (or not in ``employees``, e.g. inactive)
        are skipped with a warning.

        Raises:
            DuplicatePayrollPeriod: The same employee is listed more than once.
                Nothing is built in that case.
        """
        if not isinstance(employees, Mapping):
            employees = {e.id: e for e in employees}
        entries = [h if isinstance(h, EmployeeHours) else EmployeeHours.model_validate(h) for h in hours]

        seen: set[str] = set()
        repeated: list[str] = []
        for entry in entries:
            if entry.employee_id in seen and entry.employee_id not in repeated:
                repeated.append(entry.employee_id)
            seen.add(entry.employee_id)
        if repeated:
            raise DuplicatePayrollPeriod((emp, period) for emp in repeated)

        records: list[PayrollRecord] = []
        warnings: list[str] = []
        for entry in entries:
            employee = employees.get(entry.employee_id)
            if employee is None:
                warnings.append(f"Employee {entry.employee_id} not found or inactive; skipped")
                logger.warning(warnings[-1])
                continue
            record, notes = self.calculate(employee, entry, period, payment_date=payment_date)
            records.append(record)
            warnings.extend(notes)

        logger.debug("Built %d payroll records for %s", len(records), period)
        return records, warnings


def summarize_run(
    period: Period,
    records: list[PayrollRecord],
    warnings: Iterable[str] = (),
) -> RunSummary:
    """Run-level totals for a set of records."""
    return RunSummary(
        pay_period=period,
        employees_processed=len(records),
        total_gross=total(r.gross_pay for r in records),
        total_net=total(r.net_pay for r in records),
        total_employer_cost=total(r.employer_cost for r in records),
        records=list(records),
        warnings=list(warnings),
    )


def summarize_by_department(
    records: Iterable[PayrollRecord],
    employees: Mapping[str, Employee] | Iterable[Employee],
    period: Period | None = None,
) -> DepartmentPayrollReport:
    """Committed payroll grouped by the employee's department.

    Only records whose pay period lies inside ``period`` are counted.
    Employees without a department, and records for employees no longer on
    file, are grouped as ``Unassigned``. Departments are ordered by employer
    cost, largest first, then by name.
    """
    if not isinstance(employees, Mapping):
        employees = {e.id: e for e in employees}

    grouped: dict[str, list[PayrollRecord]] = defaultdict(list)
    for record in records:
        if period is not None and not (
            period.contains(record.pay_period.start) and period.contains(record.pay_period.end)
        ):
            continue
        employee = employees.get(record.employee_id)
        department = (employee.department if employee else None) or UNASSIGNED_DEPARTMENT
        grouped[department].append(record)

    departments = [
        DepartmentPayroll(
            department=name,
            employee_count=len({r.employee_id for r in group}),
            regular_hours=sum((r.regular_hours for r in group), Decimal("0")),
            overtime_hours=sum((r.overtime_hours for r in group), Decimal("0")),
            gross_pay=total(r.gross_pay for r in group),
            net_pay=total(r.net_pay for r in group),
            employer_cost=total(r.employer_cost for r in group),
        )
        for name, group in grouped.items()
    ]
    departments.sort(key=lambda d: (-d.employer_cost, d.department))

    return DepartmentPayrollReport(
        period=period,
        departments=departments,
        total_employees=sum(d.employee_count for d in departments),
        total_gross=total(d.gross_pay for d in departments),
        total_net=total(d.net_pay for d in departments),
        total_employer_cost=total(d.employer_cost for d in departments),
    )
