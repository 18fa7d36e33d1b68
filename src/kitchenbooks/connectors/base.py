"""
Base ledger store — abstract interface for every ledger backend.

Stores are the bridge between KitchenBooks and wherever the restaurant's
books live: a database, a folder of CSV exports, or plain memory in tests.
Reports only ever read from a store; the one write is committing a payroll
run, which must be all-or-nothing.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

from kitchenbooks.exceptions import InvalidRecord
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


class BaseLedgerStore(ABC):
    """Abstract base class for all ledger stores.

    To create a new store, subclass this and implement the ``fetch_*``
    methods and ``commit_payroll_run``.

    Example::

        class MyPOSStore(BaseLedgerStore):
            name = "my_pos"

            def fetch_rows(self, kind=None, period=None, **filters):
                ...

            def commit_payroll_run(self, records):
                ...
    """

    name: str = "base"
    description: str = "Base ledger store"
    # False when committed payroll runs do not outlive the process
    persistent: bool = True

    def __init__(self, **options: Any) -> None:
        self.options = options

    @abstractmethod
    def fetch_rows(
        self,
        kind: RecordKind | None = None,
        period: Period | None = None,
        **filters: Any,
    ) -> list[TransactionRecord]:
        """Ledger rows of ``kind`` inside ``period``, ordered by date ascending.

        Args:
            kind: Row kind to return (all kinds when omitted).
            period: Inclusive date range (all dates when omitted).
            **filters: Field equality filters, e.g. ``vendor_id="v-1"``.

        Never mutates the store.
        """
        ...

    @abstractmethod
    def fetch_categories(self) -> list[ExpenseCategory]:
        ...

    @abstractmethod
    def fetch_employees(self, active_only: bool = True) -> list[Employee]:
        ...

    @abstractmethod
    def fetch_vendors(self) -> list[Vendor]:
        ...

    @abstractmethod
    def fetch_menu_item_costs(self, period: Period | None = None) -> list[MenuItemCost]:
        """Per-unit recipe and labor cost of each menu item for ``period``."""
        ...

    @abstractmethod
    def fetch_payroll_records(self, period: Period | None = None) -> list[PayrollRecord]:
        """Committed payroll records whose pay period lies inside ``period``."""
        ...

    @abstractmethod
    def commit_payroll_run(self, records: Iterable[PayrollRecord]) -> RunSummary:
        """Persist a run atomically.

        Either every record (and its ledger rows) is stored, or none is.

        Raises:
            DuplicatePayrollPeriod: A record for the same employee and pay
                period already exists, or appears twice in ``records``.
        """
        ...


def match_filters(row: TransactionRecord, filters: dict[str, Any]) -> bool:
    """True when every ``field=value`` filter equals the row's field."""
    return all(getattr(row, field, None) == value for field, value in filters.items())


def payroll_in_period(record: PayrollRecord, period: Period | None) -> bool:
    if period is None:
        return True
    return period.start <= record.pay_period.start and record.pay_period.end <= period.end


def check_run(records: Iterable[PayrollRecord]) -> list[PayrollRecord]:
    """Materialize a run, rejecting empty runs and runs spanning several pay periods."""
    records = list(records)
    if not records:
        raise InvalidRecord("A payroll run needs at least one record")
    periods = {r.pay_period for r in records}
    if len(periods) > 1:
        raise InvalidRecord(f"A payroll run covers one pay period, got {len(periods)}")
    return records
