"""
In-memory ledger store — rows and master data held in Python lists.

Used for tests, demos and as the loaded form of the CSV store. Payroll
commits check and insert under one lock, so two concurrent runs for the same
employee and pay period cannot both succeed. Subclasses that keep runs on
disk override ``_persist``, which runs under the same lock.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from typing import Any

from kitchenbooks.analyzers.payroll import summarize_run
from kitchenbooks.connectors.base import BaseLedgerStore, check_run, match_filters, payroll_in_period
from kitchenbooks.exceptions import DuplicatePayrollPeriod
from kitchenbooks.models.ledger import (
    Employee,
    ExpenseCategory,
    MenuItemCost,
    PayrollRecord,
    Period,
    RecordKind,
    RunSummary,
    TransactionRecord,
    Vendor,
)

logger = logging.getLogger("kitchenbooks.connectors.memory")


class InMemoryLedgerStore(BaseLedgerStore):
    """Ledger store backed by plain lists.

    Usage::

        store = InMemoryLedgerStore(rows=[...], categories=[...])
        store.add_rows([TransactionRecord(kind="sale", date=..., amount=...)])
    """

    name = "memory"
    description = "In-memory ledger (tests and demos)"
    persistent = False

    def __init__(
        self,
        rows: Iterable[TransactionRecord] | None = None,
        *,
        categories: Iterable[ExpenseCategory] | None = None,
        employees: Iterable[Employee] | None = None,
        vendors: Iterable[Vendor] | None = None,
        menu_costs: Iterable[MenuItemCost] | None = None,
        **options: Any,
    ) -> None:
        super().__init__(**options)
        self._lock = threading.Lock()
        self._rows: list[TransactionRecord] = []
        self._categories: dict[str, ExpenseCategory] = {}
        self._employees: dict[str, Employee] = {}
        self._vendors: dict[str, Vendor] = {}
        self._menu_costs: dict[str, MenuItemCost] = {}
        self._payroll: list[PayrollRecord] = []
        self._payroll_keys: set[tuple] = set()

        self.add_rows(rows or [])
        for category in categories or []:
            self._categories[category.id] = category
        for employee in employees or []:
            self._employees[employee.id] = employee
        for vendor in vendors or []:
            self._vendors[vendor.id] = vendor
        for cost in menu_costs or []:
            self._menu_costs[cost.item_id] = cost

    def add_rows(self, rows: Iterable[TransactionRecord]) -> None:
        """Append rows; rows without an id get a sequential one."""
        with self._lock:
            for row in rows:
                if not row.id:
                    row = row.model_copy(update={"id": f"row-{len(self._rows) + 1}"})
                self._rows.append(row)

    # ------------------------------------------------------------------ #
    #  Reads                                                              #
    # ------------------------------------------------------------------ #

    def fetch_rows(
        self,
        kind: RecordKind | None = None,
        period: Period | None = None,
        **filters: Any,
    ) -> list[TransactionRecord]:
        with self._lock:
            rows = list(self._rows)
        selected = [
            r
            for r in rows
            if (kind is None or r.kind == kind)
            and (period is None or period.contains(r.date))
            and match_filters(r, filters)
        ]
        # sorted() is stable, so same-day rows keep insertion order
        return sorted(selected, key=lambda r: r.date)

    def fetch_categories(self) -> list[ExpenseCategory]:
        return list(self._categories.values())

    def fetch_employees(self, active_only: bool = True) -> list[Employee]:
        return [e for e in self._employees.values() if e.is_active or not active_only]

    def fetch_vendors(self) -> list[Vendor]:
        return list(self._vendors.values())

    def fetch_menu_item_costs(self, period: Period | None = None) -> list[MenuItemCost]:
        return list(self._menu_costs.values())

    def fetch_payroll_records(self, period: Period | None = None) -> list[PayrollRecord]:
        with self._lock:
            records = list(self._payroll)
        return [r for r in records if payroll_in_period(r, period)]

    # ------------------------------------------------------------------ #
    #  Payroll write                                                      #
    # ------------------------------------------------------------------ #

    def commit_payroll_run(self, records: Iterable[PayrollRecord]) -> RunSummary:
        records = check_run(records)

        with self._lock:
            batch: set[tuple] = set()
            conflicts = []
            for record in records:
                if record.key in self._payroll_keys or record.key in batch:
                    conflicts.append((record.employee_id, record.pay_period))
                batch.add(record.key)
            if conflicts:
                raise DuplicatePayrollPeriod(conflicts)

            self._persist(records)
            self._remember(records)

        logger.info("Committed %d payroll records for %s", len(records), records[0].pay_period)
        return summarize_run(records[0].pay_period, records)

    def _persist(self, records: list[PayrollRecord]) -> None:
        """Write a checked run to durable storage. Called under the lock, before memory is updated."""

    def _remember(self, records: Iterable[PayrollRecord]) -> None:
        for record in records:
            self._payroll.append(record)
            self._payroll_keys.add(record.key)
            self._rows.extend(record.to_ledger_rows())
