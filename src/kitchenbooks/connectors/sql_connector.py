"""
SQL Store — ledger tables in any SQL database.

Works with PostgreSQL, MySQL, SQLite, SQL Server, etc. via SQLAlchemy Core.
Money is stored as fixed-point text so no backend rounds it through floats.

Payroll commits insert every record and its ledger rows in one transaction.
A unique constraint on (employee_id, pay_period_start, pay_period_end) makes
the duplicate check part of the insert itself, so concurrent runs for the
same pay period cannot both commit.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    create_engine,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import StaticPool
from sqlalchemy.types import TypeDecorator

from kitchenbooks.analyzers.payroll import summarize_run
from kitchenbooks.connectors.base import BaseLedgerStore, check_run, payroll_in_period
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

logger = logging.getLogger("kitchenbooks.connectors.sql")


class DecimalText(TypeDecorator):
    """Decimal stored as its exact string form."""

    impl = String(32)
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> str | None:
        return None if value is None else str(Decimal(value))

    def process_result_value(self, value: Any, dialect: Any) -> Decimal | None:
        return None if value is None else Decimal(value)


metadata = MetaData()

transactions = Table(
    "transactions",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("kind", String(16), nullable=False, index=True),
    Column("date", Date, nullable=False, index=True),
    Column("amount", DecimalText, nullable=False),
    Column("category_id", String(64)),
    Column("vendor_id", String(64)),
    Column("menu_item_id", String(64)),
    Column("employee_id", String(64)),
    Column("subtype", String(32)),
    Column("quantity", DecimalText, nullable=False, default=Decimal("0")),
    Column("due_date", Date),
    Column("amount_paid", DecimalText, nullable=False, default=Decimal("0")),
    Column("status", String(16), nullable=False, default="open"),
    Column("payment_method", String(32)),
    Column("description", String(255), nullable=False, default=""),
)

expense_categories = Table(
    "expense_categories",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("name", String(128), nullable=False),
    Column("expense_type", String(16), nullable=False),
    Column("tax_category", String(64)),
    Column("is_tax_deductible", Boolean, nullable=False, default=True),
    Column("budget_monthly", DecimalText, nullable=False, default=Decimal("0")),
)

employees = Table(
    "employees",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("first_name", String(64), nullable=False),
    Column("last_name", String(64), nullable=False),
    Column("position", String(64), nullable=False, default=""),
    Column("department", String(64)),
    Column("pay_type", String(16), nullable=False),
    Column("pay_rate", DecimalText, nullable=False),
    Column("is_active", Boolean, nullable=False, default=True),
)

vendors = Table(
    "vendors",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("name", String(128), nullable=False),
    Column("email", String(128)),
    Column("phone", String(32)),
    Column("is_1099_exempt", Boolean, nullable=False, default=False),
)

menu_item_costs = Table(
    "menu_item_costs",
    metadata,
    Column("item_id", String(64), primary_key=True),
    Column("name", String(128), nullable=False, default=""),
    Column("recipe_cost", DecimalText, nullable=False),
    Column("labor_cost", DecimalText, nullable=False, default=Decimal("0")),
    Column("menu_category", String(64), nullable=False, default="Uncategorized"),
)

payroll_records = Table(
    "payroll_records",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("employee_id", String(64), nullable=False),
    Column("pay_period_start", Date, nullable=False),
    Column("pay_period_end", Date, nullable=False),
    Column("pay_type", String(16), nullable=False),
    Column("regular_hours", DecimalText, nullable=False),
    Column("overtime_hours", DecimalText, nullable=False),
    Column("tips", DecimalText, nullable=False),
    Column("regular_pay", DecimalText, nullable=False),
    Column("overtime_pay", DecimalText, nullable=False),
    Column("gross_pay", DecimalText, nullable=False),
    Column("federal_tax_withheld", DecimalText, nullable=False),
    Column("state_tax_withheld", DecimalText, nullable=False),
    Column("social_security_withheld", DecimalText, nullable=False),
    Column("medicare_withheld", DecimalText, nullable=False),
    Column("net_pay", DecimalText, nullable=False),
    Column("employer_social_security", DecimalText, nullable=False),
    Column("employer_medicare", DecimalText, nullable=False),
    Column("employer_futa", DecimalText, nullable=False),
    Column("employer_suta", DecimalText, nullable=False),
    Column("employer_cost", DecimalText, nullable=False),
    Column("payment_date", Date),
    Column("created_at", DateTime, nullable=False),
    UniqueConstraint("employee_id", "pay_period_start", "pay_period_end", name="uq_payroll_employee_period"),
)

_MASTER_TABLES = {
    "categories": (expense_categories, ExpenseCategory),
    "employees": (employees, Employee),
    "vendors": (vendors, Vendor),
    "menu_costs": (menu_item_costs, MenuItemCost),
}


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:")


class SQLLedgerStore(BaseLedgerStore):
    """Ledger stored in a SQL database.

    Uses SQLAlchemy for broad database compatibility.

    Usage::

        store = SQLLedgerStore(url="postgresql://...")
        store.create_schema()
        rows = store.fetch_rows(RecordKind.EXPENSE, period, vendor_id="v-1")
    """

    name = "sql"
    description = "Ledger stored in a SQL database"

    def __init__(
        self,
        url: str | None = None,
        *,
        engine: Engine | None = None,
        create_schema: bool = False,
        **options: Any,
    ) -> None:
        super().__init__(**options)
        if engine is None:
            if not url:
                raise ValueError("SQLLedgerStore needs a database url or an engine")
            if _is_memory_sqlite(url):
                self.persistent = False
                # One shared connection, or each thread would see its own empty database
                engine = create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
            else:
                engine = create_engine(url)
        self.engine = engine
        if create_schema:
            self.create_schema()

    def create_schema(self) -> None:
        """Create any missing ledger tables."""
        metadata.create_all(self.engine)
        logger.debug("Ledger schema ready on %s", self.engine.url)

    # ------------------------------------------------------------------ #
    #  Loading (used by imports and tests)                                #
    # ------------------------------------------------------------------ #

    def add_rows(self, rows: Iterable[TransactionRecord]) -> None:
        values = []
        for row in rows:
            data = row.model_dump()
            data["kind"] = row.kind.value
            data["id"] = row.id or str(uuid.uuid4())
            values.append(data)
        if values:
            with self.engine.begin() as conn:
                conn.execute(transactions.insert(), values)

    def add_master_data(self, **records: Iterable[Any]) -> None:
        """Insert master data, e.g. ``add_master_data(vendors=[...], employees=[...])``."""
        with self.engine.begin() as conn:
            for key, items in records.items():
                table, _ = _MASTER_TABLES[key]
                values = [item.model_dump(mode="json") for item in items]
                if values:
                    conn.execute(table.insert(), values)

    # ------------------------------------------------------------------ #
    #  Reads                                                              #
    # ------------------------------------------------------------------ #

    def fetch_rows(
        self,
        kind: RecordKind | None = None,
        period: Period | None = None,
        **filters: Any,
    ) -> list[TransactionRecord]:
        query = select(transactions)
        if kind is not None:
            query = query.where(transactions.c.kind == RecordKind(kind).value)
        if period is not None:
            query = query.where(transactions.c.date.between(period.start, period.end))
        for field, value in filters.items():
            query = query.where(transactions.c[field] == getattr(value, "value", value))
        query = query.order_by(transactions.c.date, transactions.c.id)

        with self.engine.connect() as conn:
            result = conn.execute(query).mappings().all()
        return [TransactionRecord.model_validate(dict(r)) for r in result]

    def _fetch_master(self, key: str, *where: Any) -> list[Any]:
        table, model = _MASTER_TABLES[key]
        query = select(table).where(*where) if where else select(table)
        with self.engine.connect() as conn:
            result = conn.execute(query).mappings().all()
        return [model.model_validate(dict(r)) for r in result]

    def fetch_categories(self) -> list[ExpenseCategory]:
        return self._fetch_master("categories")

    def fetch_employees(self, active_only: bool = True) -> list[Employee]:
        if active_only:
            return self._fetch_master("employees", employees.c.is_active.is_(True))
        return self._fetch_master("employees")

    def fetch_vendors(self) -> list[Vendor]:
        return self._fetch_master("vendors")

    def fetch_menu_item_costs(self, period: Period | None = None) -> list[MenuItemCost]:
        return self._fetch_master("menu_costs")

    def fetch_payroll_records(self, period: Period | None = None) -> list[PayrollRecord]:
        query = select(payroll_records).order_by(payroll_records.c.pay_period_start, payroll_records.c.employee_id)
        with self.engine.connect() as conn:
            result = conn.execute(query).mappings().all()
        records = [PayrollRecord.from_flat(r) for r in result]
        return [r for r in records if payroll_in_period(r, period)]

    # ------------------------------------------------------------------ #
    #  Payroll write                                                      #
    # ------------------------------------------------------------------ #

    def commit_payroll_run(self, records: Iterable[PayrollRecord]) -> RunSummary:
        records = check_run(records)
        ledger_rows = [row for record in records for row in record.to_ledger_rows()]

        try:
            with self.engine.begin() as conn:
                conn.execute(payroll_records.insert(), [r.to_flat() for r in records])
                conn.execute(
                    transactions.insert(),
                    [{**row.model_dump(), "kind": row.kind.value} for row in ledger_rows],
                )
        except IntegrityError as e:
            # The transaction has been rolled back; report which keys collided.
            conflicts = self._conflicts(records)
            logger.warning("Payroll run rejected: %d duplicate records", len(conflicts))
            raise DuplicatePayrollPeriod(conflicts) from e

        logger.info("Committed %d payroll records for %s", len(records), records[0].pay_period)
        return summarize_run(records[0].pay_period, records)

    def _conflicts(self, records: list[PayrollRecord]) -> list[tuple[str, Period]]:
        query = select(
            payroll_records.c.employee_id,
            payroll_records.c.pay_period_start,
            payroll_records.c.pay_period_end,
        ).where(payroll_records.c.employee_id.in_({r.employee_id for r in records}))
        with self.engine.connect() as conn:
            existing = {tuple(r) for r in conn.execute(query).all()}

        conflicts: list[tuple[str, Period]] = []
        seen: set[tuple] = set()
        for record in records:
            if record.key in existing or record.key in seen:
                conflicts.append((record.employee_id, record.pay_period))
            seen.add(record.key)
        return conflicts
